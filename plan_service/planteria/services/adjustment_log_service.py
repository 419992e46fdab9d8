"""
Audit log of model-driven changes (plan_adjustment_events).
State machine: pending -> applied | error. Terminal rows never change again; rows are removed only
together with their plan. The pending row is written before the model is called.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.config import get_settings
from planteria.errors import EventAlreadyFinal, NotFound, truncate_message
from planteria.logging_config import get_logger
from planteria.models import PlanAdjustmentEvent
from planteria.services.ownership_service import require_plan_ownership
from planteria.utils.ids import clamp_limit

logger = get_logger(__name__)

HISTORY_DEFAULT_LIMIT = 20
HISTORY_MAX_LIMIT = 100


async def log_event(
    db: AsyncSession,
    user_id: str,
    plan_id: UUID,
    prompt: str,
    thread_id: str,
) -> PlanAdjustmentEvent:
    """Record a pending attempt (prompt + thread) for the caller's plan."""
    await require_plan_ownership(db, user_id, plan_id)
    timestamp = datetime.now(timezone.utc)
    event = PlanAdjustmentEvent(
        id=uuid.uuid4(),
        plan_id=plan_id,
        user_id=user_id,
        thread_id=thread_id,
        prompt=prompt,
        status="pending",
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(event)
    await db.flush()
    logger.info("adjustment.event_logged", event_id=str(event.id), plan_id=str(plan_id), thread_id=thread_id)
    return event


async def _finalize(db: AsyncSession, event_id: UUID, values: Dict[str, Any]) -> PlanAdjustmentEvent:
    """Compare-and-set from pending; a row that already left pending is not touched."""
    result = await db.execute(
        update(PlanAdjustmentEvent)
        .where(PlanAdjustmentEvent.id == event_id, PlanAdjustmentEvent.status == "pending")
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        existing = await db.get(PlanAdjustmentEvent, event_id, populate_existing=True)
        if existing is None:
            raise NotFound("event")
        logger.warning(
            "adjustment.transition_rejected",
            event_id=str(event_id),
            current=existing.status,
            requested=values.get("status"),
        )
        raise EventAlreadyFinal()
    event = await db.get(PlanAdjustmentEvent, event_id, populate_existing=True)
    return event


async def mark_event_applied(
    db: AsyncSession,
    event_id: UUID,
    summary: Optional[str] = None,
    latency_ms: Optional[int] = None,
    applied_at: Optional[datetime] = None,
) -> PlanAdjustmentEvent:
    timestamp = applied_at or datetime.now(timezone.utc)
    event = await _finalize(
        db,
        event_id,
        {
            "status": "applied",
            "summary": summary,
            "applied_at": timestamp,
            "latency_ms": latency_ms,
            "error": None,
            "updated_at": timestamp,
        },
    )
    logger.info("adjustment.event_applied", event_id=str(event_id), latency_ms=latency_ms)
    return event


async def mark_event_failed(db: AsyncSession, event_id: UUID, error: str) -> PlanAdjustmentEvent:
    """Terminal error; the message is capped at MAX_ERROR_LENGTH."""
    settings = get_settings()
    message = truncate_message(error or "Unknown error", settings.max_error_length)
    event = await _finalize(
        db,
        event_id,
        {
            "status": "error",
            "error": message,
            "updated_at": datetime.now(timezone.utc),
        },
    )
    logger.info("adjustment.event_failed", event_id=str(event_id), error=message)
    return event


async def fail_pending_events(db: AsyncSession, plan_id: UUID, error: str) -> int:
    """Close every still-pending event of a plan as error (e.g. after a timeout). Returns rows changed."""
    settings = get_settings()
    result = await db.execute(
        update(PlanAdjustmentEvent)
        .where(PlanAdjustmentEvent.plan_id == plan_id, PlanAdjustmentEvent.status == "pending")
        .values(
            status="error",
            error=truncate_message(error, settings.max_error_length),
            updated_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        logger.info("adjustment.pending_closed", plan_id=str(plan_id), count=result.rowcount)
    return result.rowcount


async def list_adjustment_history(
    db: AsyncSession,
    user_id: str,
    plan_id: UUID,
    limit: Optional[int] = None,
) -> List[PlanAdjustmentEvent]:
    """Events of the caller's plan, newest first. limit defaults to 20, clamped to 1..100."""
    await require_plan_ownership(db, user_id, plan_id)
    bounded = clamp_limit(limit, HISTORY_DEFAULT_LIMIT, maximum=HISTORY_MAX_LIMIT)
    q = (
        select(PlanAdjustmentEvent)
        .where(PlanAdjustmentEvent.plan_id == plan_id)
        .order_by(PlanAdjustmentEvent.created_at.desc(), PlanAdjustmentEvent.id.desc())
        .limit(bounded)
    )
    r = await db.execute(q)
    return list(r.scalars().all())
