"""Outcome / Deliverable / Action request and response schemas."""
from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

NodeStatus = Literal["todo", "doing", "done"]


class StatusUpdate(BaseModel):
    """Body for PUT /api/{outcomes|deliverables|actions}/{id}/status."""

    status: NodeStatus


class OutcomeCreate(BaseModel):
    title: str = Field(..., max_length=200)
    summary: str = Field("", max_length=400)


class OutcomeUpdate(BaseModel):
    """Partial patch; omitted fields are left untouched."""

    title: Optional[str] = Field(None, max_length=200)
    summary: Optional[str] = Field(None, max_length=400)
    status: Optional[NodeStatus] = None


class DeliverableCreate(BaseModel):
    title: str = Field(..., max_length=200)
    done_when: str = Field(..., max_length=400)
    notes: Optional[str] = Field(None, max_length=400)


class DeliverableUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    done_when: Optional[str] = Field(None, max_length=400)
    notes: Optional[str] = Field(None, max_length=400)
    status: Optional[NodeStatus] = None


class ActionCreate(BaseModel):
    title: str = Field(..., max_length=200)


class ActionUpdate(BaseModel):
    title: Optional[str] = Field(None, max_length=200)
    status: Optional[NodeStatus] = None


class ActionOut(BaseModel):
    id: UUID
    deliverable_id: UUID
    title: str
    status: str
    order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DeliverableOut(BaseModel):
    id: UUID
    outcome_id: UUID
    title: str
    done_when: str
    notes: Optional[str] = None
    status: str
    order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class OutcomeOut(BaseModel):
    id: UUID
    plan_id: UUID
    title: str
    summary: str
    status: str
    order: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DeliverableDetailOut(DeliverableOut):
    """Deliverable with its actions, in order."""

    actions: List[ActionOut] = Field(default_factory=list)


class OutcomeDetailOut(OutcomeOut):
    """Outcome with its deliverables (and their actions), in order."""

    deliverables: List[DeliverableDetailOut] = Field(default_factory=list)
