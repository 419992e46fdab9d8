"""Plan request/response schemas: generation, details, pending work, adjustments."""
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from planteria.schemas.draft import PlanDraft
from planteria.schemas.nodes import DeliverableDetailOut, OutcomeDetailOut, OutcomeOut


class PlanGenerateRequest(BaseModel):
    """Body for POST /api/plans/generate."""

    idea: str = Field(..., description="Free-text idea to turn into a plan")


class PlanGenerateResponse(BaseModel):
    """Response for POST /api/plans/generate (202): the shell plan, populated in the background."""

    plan_id: UUID
    status: str


class PlanOut(BaseModel):
    id: UUID
    idea: str
    title: str
    summary: str
    status: str
    generation_error: Optional[str] = None
    research_insights: Optional[List[Dict[str, Any]]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class PlansResponse(BaseModel):
    plans: List[PlanOut]


class PlanDetailsOut(PlanOut):
    """Whole plan tree, every level in stored order, nothing filtered."""

    outcomes: List[OutcomeDetailOut] = Field(default_factory=list)


class PendingWorkOut(BaseModel):
    """
    Next actionable step of a plan.
    done=True: every outcome is done (outcome is None).
    done=False with empty deliverables: the current outcome has no open deliverable.
    deliverables holds at most one entry, carrying only its non-done actions.
    """

    plan: PlanOut
    done: bool
    outcome: Optional[OutcomeOut] = None
    deliverables: List[DeliverableDetailOut] = Field(default_factory=list)
    summary_lines: List[str] = Field(default_factory=list)


class PlanAdjustRequest(BaseModel):
    """Body for POST /api/plans/{plan_id}/adjust."""

    prompt: str = Field(..., description="Instruction for the model, e.g. 'split outcome 2 into two'")


class PlanAdjustResponse(BaseModel):
    plan_id: UUID
    event_id: UUID
    summary: Optional[str] = None
    draft: PlanDraft


class PlanApplyResponse(BaseModel):
    plan_id: UUID
    applied: bool = True
    outcomes: int
    deliverables: int
    actions: int


class AdjustmentEventOut(BaseModel):
    id: UUID
    plan_id: UUID
    thread_id: str
    prompt: str
    status: str
    summary: Optional[str] = None
    error: Optional[str] = None
    applied_at: Optional[datetime] = None
    latency_ms: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class AdjustmentHistoryResponse(BaseModel):
    plan_id: UUID
    events: List[AdjustmentEventOut]
