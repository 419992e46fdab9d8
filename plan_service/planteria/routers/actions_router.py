"""Action API: patch, status, delete."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.db import get_db
from planteria.deps import get_current_user_id, to_http_exception
from planteria.errors import PlanError
from planteria.schemas.common import MessageResponse, error_responses
from planteria.schemas.nodes import ActionOut, ActionUpdate, StatusUpdate
from planteria.services.tree_service import delete_action, set_action_status, update_action

router = APIRouter(prefix="/api/actions", tags=["actions"], responses=error_responses(401, 403, 404))


@router.patch("/{action_id}", response_model=ActionOut)
async def patch_action(
    action_id: UUID,
    payload: ActionUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ActionOut:
    try:
        action = await update_action(db, user_id, action_id, payload.model_dump(exclude_unset=True))
    except PlanError as e:
        raise to_http_exception(e) from e
    return ActionOut.model_validate(action)


@router.put("/{action_id}/status", response_model=ActionOut)
async def put_action_status(
    action_id: UUID,
    payload: StatusUpdate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ActionOut:
    try:
        action = await set_action_status(db, user_id, action_id, payload.status)
    except PlanError as e:
        raise to_http_exception(e) from e
    return ActionOut.model_validate(action)


@router.delete("/{action_id}", response_model=MessageResponse)
async def delete_action_endpoint(
    action_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete the action; the remaining actions of its deliverable are re-numbered."""
    try:
        await delete_action(db, user_id, action_id)
    except PlanError as e:
        raise to_http_exception(e) from e
    return MessageResponse(message="Action deleted")
