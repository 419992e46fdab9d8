"""Outcome API: patch, status, delete, and the deliverables below an outcome."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.db import get_db
from planteria.deps import get_current_user_id, to_http_exception
from planteria.errors import PlanError
from planteria.schemas.common import MessageResponse, error_responses
from planteria.schemas.nodes import DeliverableCreate, DeliverableOut, OutcomeOut, OutcomeUpdate, StatusUpdate
from planteria.services.tree_service import (
    add_deliverable,
    delete_outcome,
    list_deliverables,
    set_outcome_status,
    update_outcome,
)

router = APIRouter(prefix="/api/outcomes", tags=["outcomes"], responses=error_responses(401, 403, 404))


@router.patch("/{outcome_id}", response_model=OutcomeOut)
async def patch_outcome(
    outcome_id: UUID,
    payload: OutcomeUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> OutcomeOut:
    """Partial update; status=done also completes every deliverable and action of the outcome."""
    try:
        outcome = await update_outcome(db, user_id, outcome_id, payload.model_dump(exclude_unset=True))
    except PlanError as e:
        raise to_http_exception(e) from e
    return OutcomeOut.model_validate(outcome)


@router.put("/{outcome_id}/status", response_model=OutcomeOut)
async def put_outcome_status(
    outcome_id: UUID,
    payload: StatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> OutcomeOut:
    try:
        outcome = await set_outcome_status(db, user_id, outcome_id, payload.status)
    except PlanError as e:
        raise to_http_exception(e) from e
    return OutcomeOut.model_validate(outcome)


@router.delete("/{outcome_id}", response_model=MessageResponse)
async def delete_outcome_endpoint(
    outcome_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete the outcome and everything under it; remaining outcomes are re-numbered."""
    try:
        await delete_outcome(db, user_id, outcome_id)
    except PlanError as e:
        raise to_http_exception(e) from e
    return MessageResponse(message="Outcome deleted")


@router.get("/{outcome_id}/deliverables", response_model=List[DeliverableOut])
async def get_deliverables(
    outcome_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[DeliverableOut]:
    try:
        deliverables = await list_deliverables(db, user_id, outcome_id)
    except PlanError as e:
        raise to_http_exception(e) from e
    return [DeliverableOut.model_validate(d) for d in deliverables]


@router.post("/{outcome_id}/deliverables", response_model=DeliverableOut, status_code=status.HTTP_201_CREATED)
async def post_deliverable(
    outcome_id: UUID,
    payload: DeliverableCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DeliverableOut:
    try:
        deliverable = await add_deliverable(
            db,
            user_id,
            outcome_id,
            title=payload.title,
            done_when=payload.done_when,
            notes=payload.notes,
        )
    except PlanError as e:
        raise to_http_exception(e) from e
    return DeliverableOut.model_validate(deliverable)
