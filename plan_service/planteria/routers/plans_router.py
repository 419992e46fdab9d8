"""Plans API: generate, list, details, pending work, delete, AI adjust/apply, adjustment history, outcomes."""
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.db import get_db, get_session_factory
from planteria.deps import get_current_user_id, to_http_exception
from planteria.errors import PlanError
from planteria.schemas.common import MessageResponse, error_responses
from planteria.schemas.nodes import OutcomeCreate, OutcomeOut
from planteria.schemas.plans import (
    AdjustmentEventOut,
    AdjustmentHistoryResponse,
    PendingWorkOut,
    PlanAdjustRequest,
    PlanAdjustResponse,
    PlanApplyResponse,
    PlanDetailsOut,
    PlanGenerateRequest,
    PlanGenerateResponse,
    PlanOut,
    PlansResponse,
)
from planteria.services.adjustment_log_service import list_adjustment_history
from planteria.services.generation_service import adjust_plan, delete_plan, request_plan_generation
from planteria.services.generation_worker import enqueue_generation
from planteria.services.replace_service import apply_plan_adjustment, count_draft_nodes
from planteria.services.resolver_service import list_user_plans, resolve_pending_work, resolve_plan_details
from planteria.services.tree_service import add_outcome, list_outcomes

router = APIRouter(
    prefix="/api/plans",
    tags=["plans"],
    responses=error_responses(400, 401, 403, 404, 409, 502),
)


@router.post(
    "/generate",
    response_model=PlanGenerateResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def post_generate_plan(
    payload: PlanGenerateRequest,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PlanGenerateResponse:
    """
    Create the plan shell (status scraping) and queue generation.
    Poll GET /api/plans/{plan_id} for scraping/generating -> ready | error.
    400 missing_api_key when neither the user nor the service has an OpenAI key.
    """
    try:
        plan = await request_plan_generation(db, user_id, payload.idea)
    except PlanError as e:
        raise to_http_exception(e) from e
    await db.commit()
    await enqueue_generation(plan.id, user_id, plan.idea)
    return PlanGenerateResponse(plan_id=plan.id, status=plan.status)


@router.get("", response_model=PlansResponse)
async def get_plans(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PlansResponse:
    """Caller's plans, most recently updated first."""
    plans = await list_user_plans(db, user_id)
    return PlansResponse(plans=[PlanOut.model_validate(p) for p in plans])


@router.get("/{plan_id}", response_model=PlanDetailsOut)
async def get_plan_details(
    plan_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PlanDetailsOut:
    """Whole plan tree."""
    try:
        return await resolve_plan_details(db, user_id, plan_id)
    except PlanError as e:
        raise to_http_exception(e) from e


@router.get("/{plan_id}/pending-work", response_model=PendingWorkOut)
async def get_pending_work(
    plan_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PendingWorkOut:
    """Next open outcome, its first open deliverable and that deliverable's open actions."""
    try:
        return await resolve_pending_work(db, user_id, plan_id)
    except PlanError as e:
        raise to_http_exception(e) from e


@router.delete("/{plan_id}", response_model=MessageResponse)
async def delete_plan_endpoint(
    plan_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    """Delete the plan with its tree, thread and adjustment history."""
    try:
        await delete_plan(db, user_id, plan_id)
    except PlanError as e:
        raise to_http_exception(e) from e
    return MessageResponse(message="Plan deleted")


@router.post("/{plan_id}/adjust", response_model=PlanAdjustResponse)
async def post_adjust_plan(
    plan_id: UUID,
    payload: PlanAdjustRequest,
    user_id: str = Depends(get_current_user_id),
    session_factory=Depends(get_session_factory),
) -> PlanAdjustResponse:
    """
    Revise the plan with the model and apply the result (whole tree replaced).
    The attempt is recorded in GET /api/plans/{plan_id}/adjustments whatever the outcome.
    """
    try:
        result = await adjust_plan(user_id, plan_id, payload.prompt, session_factory=session_factory)
    except PlanError as e:
        raise to_http_exception(e) from e
    return PlanAdjustResponse(
        plan_id=result.plan_id,
        event_id=result.event_id,
        summary=result.summary,
        draft=result.draft,
    )


@router.post("/{plan_id}/apply", response_model=PlanApplyResponse)
async def post_apply_plan_draft(
    plan_id: UUID,
    draft: Dict[str, Any] = Body(..., description="Complete plan draft (camelCase or snake_case keys)"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> PlanApplyResponse:
    """
    Apply a caller-supplied draft. It is re-validated in full; its idea must equal the plan's idea (409 otherwise).
    """
    try:
        applied = await apply_plan_adjustment(db, user_id, plan_id, draft)
    except PlanError as e:
        raise to_http_exception(e) from e
    outcomes, deliverables, actions = count_draft_nodes(applied)
    return PlanApplyResponse(
        plan_id=plan_id,
        outcomes=outcomes,
        deliverables=deliverables,
        actions=actions,
    )


@router.get("/{plan_id}/adjustments", response_model=AdjustmentHistoryResponse)
async def get_adjustment_history(
    plan_id: UUID,
    limit: Optional[int] = Query(None, description="Max events (default 20, clamped to 1-100)"),
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> AdjustmentHistoryResponse:
    """Generation/adjustment attempts of the plan, newest first."""
    try:
        events = await list_adjustment_history(db, user_id, plan_id, limit=limit)
    except PlanError as e:
        raise to_http_exception(e) from e
    return AdjustmentHistoryResponse(
        plan_id=plan_id,
        events=[AdjustmentEventOut.model_validate(ev) for ev in events],
    )


@router.get("/{plan_id}/outcomes", response_model=List[OutcomeOut])
async def get_outcomes(
    plan_id: UUID,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> List[OutcomeOut]:
    try:
        outcomes = await list_outcomes(db, user_id, plan_id)
    except PlanError as e:
        raise to_http_exception(e) from e
    return [OutcomeOut.model_validate(o) for o in outcomes]


@router.post("/{plan_id}/outcomes", response_model=OutcomeOut, status_code=status.HTTP_201_CREATED)
async def post_outcome(
    plan_id: UUID,
    payload: OutcomeCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> OutcomeOut:
    """Append an outcome at the end of the plan."""
    try:
        outcome = await add_outcome(db, user_id, plan_id, payload.title, payload.summary)
    except PlanError as e:
        raise to_http_exception(e) from e
    return OutcomeOut.model_validate(outcome)
