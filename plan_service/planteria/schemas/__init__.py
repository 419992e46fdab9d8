"""Pydantic request/response schemas."""
from planteria.schemas.common import ErrorResponse, IntegrationErrorResponse, MessageResponse, error_responses
from planteria.schemas.draft import ActionDraft, DeliverableDraft, OutcomeDraft, PlanDraft
from planteria.schemas.nodes import (
    ActionOut,
    DeliverableDetailOut,
    DeliverableOut,
    OutcomeDetailOut,
    OutcomeOut,
    StatusUpdate,
)
from planteria.schemas.plans import (
    AdjustmentEventOut,
    PendingWorkOut,
    PlanDetailsOut,
    PlanOut,
)

__all__ = [
    "ErrorResponse",
    "error_responses",
    "IntegrationErrorResponse",
    "MessageResponse",
    "ActionDraft",
    "DeliverableDraft",
    "OutcomeDraft",
    "PlanDraft",
    "ActionOut",
    "DeliverableDetailOut",
    "DeliverableOut",
    "OutcomeDetailOut",
    "OutcomeOut",
    "StatusUpdate",
    "AdjustmentEventOut",
    "PendingWorkOut",
    "PlanDetailsOut",
    "PlanOut",
]
