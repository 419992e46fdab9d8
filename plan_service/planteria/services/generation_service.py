"""
Plan generation and AI adjustment.
Generation is split in two: request_plan_generation creates the plan shell inside the request;
run_plan_generation (background worker) calls the model and fills the tree.
Multi-step flows commit each step in its own short-lived session. No session is held open across the
model call, and the pending audit row is committed before the model is called.
"""
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.config import get_settings
from planteria.db import SessionFactory, get_session_factory
from planteria.errors import (
    EventAlreadyFinal,
    MissingApiKey,
    ValidationFailure,
    format_error_message,
    truncate_message,
)
from planteria.logging_config import get_logger
from planteria.models import Plan, PlanAdjustmentEvent, PlanThread
from planteria.schemas.draft import PlanDraft
from planteria.services.adjustment_log_service import fail_pending_events, log_event, mark_event_applied, mark_event_failed
from planteria.services.llm_service import LLMService
from planteria.services.ordering_service import OUTCOMES, delete_subtree, list_children
from planteria.services.ownership_service import require_plan_ownership
from planteria.services.prompts import build_plan_adjustment_prompt, build_plan_draft_prompt
from planteria.services.replace_service import apply_plan_adjustment, count_draft_nodes, replace_plan_tree
from planteria.services.resolver_service import resolve_plan_details
from planteria.services.secret_service import get_user_openai_key, resolve_openai_key
from planteria.services.thread_service import get_or_create_plan_thread

logger = get_logger(__name__)

PLAN_SHELL_TITLE = "New plan"
PLAN_SHELL_SUMMARY = "Hang tight while we generate your plan."
PROMPT_MAX_LENGTH = 2000
GENERATION_TIMEOUT_MESSAGE = "Plan generation timed out"


@dataclass
class AdjustmentResult:
    plan_id: UUID
    event_id: UUID
    summary: str
    draft: PlanDraft


def _clean_prompt(value: Optional[str], field: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationFailure(f"{field} must not be empty")
    if len(text) > PROMPT_MAX_LENGTH:
        raise ValidationFailure(f"{field} must be at most {PROMPT_MAX_LENGTH} characters")
    return text


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


def describe_draft(draft: PlanDraft) -> str:
    """Short audit summary of an applied draft."""
    outcomes, deliverables, actions = count_draft_nodes(draft)
    return f"{draft.title}: {outcomes} outcomes, {deliverables} deliverables, {actions} actions"


async def _resolve_llm(db: AsyncSession, user_id: str) -> LLMService:
    settings = get_settings()
    api_key = resolve_openai_key(await get_user_openai_key(db, user_id), settings)
    if not api_key:
        raise MissingApiKey()
    return LLMService(settings, api_key=api_key)


async def request_plan_generation(db: AsyncSession, user_id: str, idea: str) -> Plan:
    """
    Fast half of generation: validate the idea, make sure a model key is available, create the shell plan.
    The caller commits and enqueues run_plan_generation.
    """
    idea = _clean_prompt(idea, "idea")
    settings = get_settings()
    if not resolve_openai_key(await get_user_openai_key(db, user_id), settings):
        raise MissingApiKey()
    timestamp = datetime.now(timezone.utc)
    plan = Plan(
        id=uuid.uuid4(),
        user_id=user_id,
        idea=idea,
        title=PLAN_SHELL_TITLE,
        summary=PLAN_SHELL_SUMMARY,
        status="scraping",
        generation_error=None,
        research_insights=[],
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(plan)
    await db.flush()
    logger.info("generation.requested", plan_id=str(plan.id), user_id=user_id)
    return plan


async def _record_generation_failure(
    factory: SessionFactory,
    plan_id: UUID,
    event_id: Optional[UUID],
    error: BaseException,
) -> None:
    """Terminal error on the event and the plan. Failures while recording are logged, the original error wins."""
    message = truncate_message(format_error_message(error), get_settings().max_error_length)
    try:
        async with factory() as db:
            if event_id is not None:
                try:
                    await mark_event_failed(db, event_id, message)
                except EventAlreadyFinal:
                    logger.warning("generation.event_already_final", event_id=str(event_id))
            plan = await db.get(Plan, plan_id)
            if plan is not None:
                plan.status = "error"
                plan.generation_error = message
                plan.updated_at = datetime.now(timezone.utc)
            await db.commit()
    except SQLAlchemyError as e:
        logger.error("generation.failure_not_recorded", plan_id=str(plan_id), error=str(e))


async def run_plan_generation(
    plan_id: UUID,
    user_id: str,
    idea: str,
    session_factory: Optional[SessionFactory] = None,
) -> PlanDraft:
    """
    Background half of generation: thread, pending event, status generating, model call, full-tree replace
    (stored idea kept, no idea check), event applied.
    On failure: event error, plan status error with a capped generation_error, then re-raise.
    """
    factory = session_factory or get_session_factory()
    event_id: Optional[UUID] = None
    try:
        async with factory() as db:
            llm = await _resolve_llm(db, user_id)
        thread_id = await get_or_create_plan_thread(factory, plan_id, user_id, llm.create_thread)
        async with factory() as db:
            event = await log_event(db, user_id, plan_id, prompt=idea, thread_id=thread_id)
            event_id = event.id
            plan = (await require_plan_ownership(db, user_id, plan_id)).plan
            plan.status = "generating"
            plan.generation_error = None
            plan.updated_at = datetime.now(timezone.utc)
            insights = list(plan.research_insights or [])
            await db.commit()
        logger.info("generation.started", plan_id=str(plan_id), event_id=str(event_id))

        start = time.perf_counter()
        draft = await llm.generate_plan_draft(build_plan_draft_prompt(idea, insights), thread_id=thread_id)
        latency_ms = _elapsed_ms(start)

        async with factory() as db:
            plan = (await require_plan_ownership(db, user_id, plan_id)).plan
            applied = await replace_plan_tree(db, plan, draft, enforce_idea=False)
            await mark_event_applied(db, event_id, summary=describe_draft(applied), latency_ms=latency_ms)
            await db.commit()
    except Exception as e:
        logger.warning("generation.failed", plan_id=str(plan_id), error=format_error_message(e))
        await _record_generation_failure(factory, plan_id, event_id, e)
        raise
    logger.info("generation.completed", plan_id=str(plan_id), latency_ms=latency_ms)
    return applied


async def fail_plan_generation(
    plan_id: UUID,
    message: str = GENERATION_TIMEOUT_MESSAGE,
    session_factory: Optional[SessionFactory] = None,
) -> bool:
    """Mark a still-running generation as error and close its pending events. Returns False if nothing changed."""
    factory = session_factory or get_session_factory()
    async with factory() as db:
        plan = await db.get(Plan, plan_id)
        if plan is None or plan.status not in ("scraping", "generating"):
            return False
        text = truncate_message(message, get_settings().max_error_length)
        plan.status = "error"
        plan.generation_error = text
        plan.updated_at = datetime.now(timezone.utc)
        await fail_pending_events(db, plan_id, text)
        await db.commit()
    logger.warning("generation.marked_failed", plan_id=str(plan_id), reason=message)
    return True


async def adjust_plan(
    user_id: str,
    plan_id: UUID,
    prompt: str,
    session_factory: Optional[SessionFactory] = None,
) -> AdjustmentResult:
    """
    Revise a plan with the model: current tree + instruction in, complete draft out, applied with the idea guard.
    Ownership, validation and missing-key errors are raised before any event is logged.
    Once the pending event exists, any failure marks it error and is re-raised.
    """
    prompt = _clean_prompt(prompt, "prompt")
    factory = session_factory or get_session_factory()

    async with factory() as db:
        details = await resolve_plan_details(db, user_id, plan_id)
        llm = await _resolve_llm(db, user_id)
    thread_id = await get_or_create_plan_thread(factory, plan_id, user_id, llm.create_thread)
    async with factory() as db:
        event = await log_event(db, user_id, plan_id, prompt=prompt, thread_id=thread_id)
        event_id = event.id
        await db.commit()

    try:
        start = time.perf_counter()
        draft = await llm.generate_plan_draft(build_plan_adjustment_prompt(details, prompt), thread_id=thread_id)
        latency_ms = _elapsed_ms(start)
        async with factory() as db:
            applied = await apply_plan_adjustment(db, user_id, plan_id, draft)
            summary = describe_draft(applied)
            await mark_event_applied(db, event_id, summary=summary, latency_ms=latency_ms)
            await db.commit()
    except Exception as e:
        logger.warning("adjustment.failed", plan_id=str(plan_id), event_id=str(event_id), error=format_error_message(e))
        async with factory() as db:
            await mark_event_failed(db, event_id, format_error_message(e))
            await db.commit()
        raise
    logger.info("adjustment.applied", plan_id=str(plan_id), event_id=str(event_id), latency_ms=latency_ms)
    return AdjustmentResult(plan_id=plan_id, event_id=event_id, summary=summary, draft=applied)


async def delete_plan(db: AsyncSession, user_id: str, plan_id: UUID) -> int:
    """Remove the plan, its whole subtree, its thread and its audit events. Returns tree rows deleted."""
    chain = await require_plan_ownership(db, user_id, plan_id)
    removed = 0
    for outcome in await list_children(db, OUTCOMES, plan_id):
        removed += await delete_subtree(db, OUTCOMES, outcome)
    await db.execute(delete(PlanThread).where(PlanThread.plan_id == plan_id))
    await db.execute(delete(PlanAdjustmentEvent).where(PlanAdjustmentEvent.plan_id == plan_id))
    await db.delete(chain.plan)
    await db.flush()
    logger.info("plan.deleted", plan_id=str(plan_id), rows_deleted=removed)
    return removed
