"""Deliverable API: patch, status, delete, and the actions below a deliverable."""
from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.db import get_db
from planteria.deps import get_current_user_id, to_http_exception
from planteria.errors import PlanError
from planteria.schemas.common import MessageResponse, error_responses
from planteria.schemas.nodes import ActionCreate, ActionOut, DeliverableOut, DeliverableUpdate, StatusUpdate
from planteria.services.tree_service import (
    add_action,
    delete_deliverable,
    list_actions,
    set_deliverable_status,
    update_deliverable,
)

router = APIRouter(
    prefix="/api/deliverables",
    tags=["deliverables"],
    responses=error_responses(401, 403, 404),
)


@router.patch("/{deliverable_id}", response_model=DeliverableOut)
async def patch_deliverable(
    deliverable_id: UUID,
    payload: DeliverableUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DeliverableOut:
    """Partial update (title, done_when, notes, status). Send notes=null to clear notes."""
    try:
        deliverable = await update_deliverable(
            db, user_id, deliverable_id, payload.model_dump(exclude_unset=True)
        )
    except PlanError as e:
        raise to_http_exception(e) from e
    return DeliverableOut.model_validate(deliverable)


@router.put("/{deliverable_id}/status", response_model=DeliverableOut)
async def put_deliverable_status(
    deliverable_id: UUID,
    payload: StatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> DeliverableOut:
    try:
        deliverable = await set_deliverable_status(db, user_id, deliverable_id, payload.status)
    except PlanError as e:
        raise to_http_exception(e) from e
    return DeliverableOut.model_validate(deliverable)


@router.delete("/{deliverable_id}", response_model=MessageResponse)
async def delete_deliverable_endpoint(
    deliverable_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await delete_deliverable(db, user_id, deliverable_id)
    except PlanError as e:
        raise to_http_exception(e) from e
    return MessageResponse(message="Deliverable deleted")


@router.get("/{deliverable_id}/actions", response_model=List[ActionOut])
async def get_actions(
    deliverable_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[ActionOut]:
    try:
        actions = await list_actions(db, user_id, deliverable_id)
    except PlanError as e:
        raise to_http_exception(e) from e
    return [ActionOut.model_validate(a) for a in actions]


@router.post("/{deliverable_id}/actions", response_model=ActionOut, status_code=status.HTTP_201_CREATED)
async def post_action(
    deliverable_id: UUID,
    payload: ActionCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ActionOut:
    try:
        action = await add_action(db, user_id, deliverable_id, payload.title)
    except PlanError as e:
        raise to_http_exception(e) from e
    return ActionOut.model_validate(action)
