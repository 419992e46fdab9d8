"""
Manual edits of the plan tree: add / update / delete / set-status per level, plus ordered listing.
Every call is gated by the ownership chain and ends by bumping plan.updated_at to the mutation timestamp.
Raises PlanError subclasses (NotFound, AccessDenied, ValidationFailure); routers map them to HTTP.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from planteria.errors import ValidationFailure
from planteria.logging_config import get_logger
from planteria.models import Action, Deliverable, Outcome, Plan
from planteria.services.ordering_service import (
    ACTIONS,
    DELIVERABLES,
    OUTCOMES,
    TreeLevel,
    cascade_done,
    compact_siblings,
    delete_subtree,
    list_children,
    next_order,
)
from planteria.services.ownership_service import (
    require_action_ownership,
    require_deliverable_ownership,
    require_outcome_ownership,
    require_plan_ownership,
)

logger = get_logger(__name__)

NODE_STATUSES = ("todo", "doing", "done")
TITLE_MAX_LENGTH = 80
TEXT_MAX_LENGTH = 160


def _clean_text(value: Any, field: str, max_length: int, required: bool = True) -> str:
    """Trim; reject empty (when required) or over-long values."""
    if value is None:
        value = ""
    if not isinstance(value, str):
        raise ValidationFailure(f"{field} must be a string")
    text = value.strip()
    if required and not text:
        raise ValidationFailure(f"{field} must not be empty")
    if len(text) > max_length:
        raise ValidationFailure(f"{field} must be at most {max_length} characters")
    return text


def _clean_notes(value: Any) -> Optional[str]:
    text = _clean_text(value, "notes", TEXT_MAX_LENGTH, required=False)
    return text or None


def _check_status(status: Any) -> str:
    if status not in NODE_STATUSES:
        raise ValidationFailure(f"status must be one of {', '.join(NODE_STATUSES)}")
    return status


def _touch(plan: Plan, node: Any, timestamp: datetime) -> None:
    node.updated_at = timestamp
    plan.updated_at = timestamp


async def _apply_status(
    db: AsyncSession,
    level: TreeLevel,
    node: Any,
    status: str,
    timestamp: datetime,
) -> int:
    """Set status; only an Outcome moving to done pulls its descendants along."""
    node.status = _check_status(status)
    if status == "done" and level is OUTCOMES:
        return await cascade_done(db, level, node, timestamp)
    return 0


async def _remove(db: AsyncSession, level: TreeLevel, plan: Plan, node: Any, parent_id: UUID) -> int:
    timestamp = datetime.now(timezone.utc)
    node_id = node.id
    deleted = await delete_subtree(db, level, node)
    await compact_siblings(db, level, parent_id)
    plan.updated_at = timestamp
    await db.flush()
    logger.info(
        "tree.node_deleted",
        level=level.name,
        node_id=str(node_id),
        plan_id=str(plan.id),
        rows_deleted=deleted,
    )
    return deleted


# --- Outcomes ---


async def list_outcomes(db: AsyncSession, user_id: str, plan_id: UUID) -> List[Outcome]:
    chain = await require_plan_ownership(db, user_id, plan_id)
    return await list_children(db, OUTCOMES, chain.plan.id)


async def add_outcome(
    db: AsyncSession,
    user_id: str,
    plan_id: UUID,
    title: str,
    summary: str = "",
) -> Outcome:
    """Append an outcome at the end of the plan (order = max + 1)."""
    chain = await require_plan_ownership(db, user_id, plan_id)
    title = _clean_text(title, "title", TITLE_MAX_LENGTH)
    summary = _clean_text(summary, "summary", TEXT_MAX_LENGTH, required=False)
    timestamp = datetime.now(timezone.utc)
    outcome = Outcome(
        id=uuid.uuid4(),
        plan_id=chain.plan.id,
        title=title,
        summary=summary,
        status="todo",
        order=await next_order(db, OUTCOMES, chain.plan.id),
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(outcome)
    chain.plan.updated_at = timestamp
    await db.flush()
    logger.info("tree.outcome_added", plan_id=str(plan_id), outcome_id=str(outcome.id), order=outcome.order)
    return outcome


async def update_outcome(
    db: AsyncSession,
    user_id: str,
    outcome_id: UUID,
    changes: Mapping[str, Any],
) -> Outcome:
    """
    Partial patch (title, summary, status). Keys absent from changes are left alone.
    status=done marks every deliverable and action of the outcome done as well.
    """
    chain = await require_outcome_ownership(db, user_id, outcome_id)
    outcome = chain.outcome
    timestamp = datetime.now(timezone.utc)
    if "title" in changes:
        outcome.title = _clean_text(changes["title"], "title", TITLE_MAX_LENGTH)
    if "summary" in changes:
        outcome.summary = _clean_text(changes["summary"], "summary", TEXT_MAX_LENGTH, required=False)
    cascaded = 0
    if "status" in changes:
        cascaded = await _apply_status(db, OUTCOMES, outcome, changes["status"], timestamp)
    _touch(chain.plan, outcome, timestamp)
    await db.flush()
    logger.info(
        "tree.outcome_updated",
        outcome_id=str(outcome.id),
        fields=sorted(changes.keys()),
        cascaded=cascaded,
    )
    return outcome


async def set_outcome_status(db: AsyncSession, user_id: str, outcome_id: UUID, status: str) -> Outcome:
    return await update_outcome(db, user_id, outcome_id, {"status": status})


async def delete_outcome(db: AsyncSession, user_id: str, outcome_id: UUID) -> int:
    """Delete the outcome with its deliverables and actions; remaining outcomes are re-numbered."""
    chain = await require_outcome_ownership(db, user_id, outcome_id)
    return await _remove(db, OUTCOMES, chain.plan, chain.outcome, chain.plan.id)


# --- Deliverables ---


async def list_deliverables(db: AsyncSession, user_id: str, outcome_id: UUID) -> List[Deliverable]:
    chain = await require_outcome_ownership(db, user_id, outcome_id)
    return await list_children(db, DELIVERABLES, chain.outcome.id)


async def add_deliverable(
    db: AsyncSession,
    user_id: str,
    outcome_id: UUID,
    title: str,
    done_when: str,
    notes: Optional[str] = None,
) -> Deliverable:
    chain = await require_outcome_ownership(db, user_id, outcome_id)
    title = _clean_text(title, "title", TITLE_MAX_LENGTH)
    done_when = _clean_text(done_when, "done_when", TEXT_MAX_LENGTH)
    notes = _clean_notes(notes)
    timestamp = datetime.now(timezone.utc)
    deliverable = Deliverable(
        id=uuid.uuid4(),
        outcome_id=chain.outcome.id,
        title=title,
        done_when=done_when,
        notes=notes,
        status="todo",
        order=await next_order(db, DELIVERABLES, chain.outcome.id),
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(deliverable)
    chain.plan.updated_at = timestamp
    await db.flush()
    logger.info(
        "tree.deliverable_added",
        outcome_id=str(outcome_id),
        deliverable_id=str(deliverable.id),
        order=deliverable.order,
    )
    return deliverable


async def update_deliverable(
    db: AsyncSession,
    user_id: str,
    deliverable_id: UUID,
    changes: Mapping[str, Any],
) -> Deliverable:
    """Partial patch (title, done_when, notes, status). notes=None clears the notes."""
    chain = await require_deliverable_ownership(db, user_id, deliverable_id)
    deliverable = chain.deliverable
    timestamp = datetime.now(timezone.utc)
    if "title" in changes:
        deliverable.title = _clean_text(changes["title"], "title", TITLE_MAX_LENGTH)
    if "done_when" in changes:
        deliverable.done_when = _clean_text(changes["done_when"], "done_when", TEXT_MAX_LENGTH)
    if "notes" in changes:
        deliverable.notes = _clean_notes(changes["notes"])
    if "status" in changes:
        await _apply_status(db, DELIVERABLES, deliverable, changes["status"], timestamp)
    _touch(chain.plan, deliverable, timestamp)
    await db.flush()
    logger.info("tree.deliverable_updated", deliverable_id=str(deliverable.id), fields=sorted(changes.keys()))
    return deliverable


async def set_deliverable_status(db: AsyncSession, user_id: str, deliverable_id: UUID, status: str) -> Deliverable:
    return await update_deliverable(db, user_id, deliverable_id, {"status": status})


async def delete_deliverable(db: AsyncSession, user_id: str, deliverable_id: UUID) -> int:
    chain = await require_deliverable_ownership(db, user_id, deliverable_id)
    return await _remove(db, DELIVERABLES, chain.plan, chain.deliverable, chain.outcome.id)


# --- Actions ---


async def list_actions(db: AsyncSession, user_id: str, deliverable_id: UUID) -> List[Action]:
    chain = await require_deliverable_ownership(db, user_id, deliverable_id)
    return await list_children(db, ACTIONS, chain.deliverable.id)


async def add_action(db: AsyncSession, user_id: str, deliverable_id: UUID, title: str) -> Action:
    chain = await require_deliverable_ownership(db, user_id, deliverable_id)
    title = _clean_text(title, "title", TITLE_MAX_LENGTH)
    timestamp = datetime.now(timezone.utc)
    action = Action(
        id=uuid.uuid4(),
        deliverable_id=chain.deliverable.id,
        title=title,
        status="todo",
        order=await next_order(db, ACTIONS, chain.deliverable.id),
        created_at=timestamp,
        updated_at=timestamp,
    )
    db.add(action)
    chain.plan.updated_at = timestamp
    await db.flush()
    logger.info("tree.action_added", deliverable_id=str(deliverable_id), action_id=str(action.id), order=action.order)
    return action


async def update_action(
    db: AsyncSession,
    user_id: str,
    action_id: UUID,
    changes: Mapping[str, Any],
) -> Action:
    chain = await require_action_ownership(db, user_id, action_id)
    action = chain.action
    timestamp = datetime.now(timezone.utc)
    if "title" in changes:
        action.title = _clean_text(changes["title"], "title", TITLE_MAX_LENGTH)
    if "status" in changes:
        await _apply_status(db, ACTIONS, action, changes["status"], timestamp)
    _touch(chain.plan, action, timestamp)
    await db.flush()
    logger.info("tree.action_updated", action_id=str(action.id), fields=sorted(changes.keys()))
    return action


async def set_action_status(db: AsyncSession, user_id: str, action_id: UUID, status: str) -> Action:
    return await update_action(db, user_id, action_id, {"status": status})


async def delete_action(db: AsyncSession, user_id: str, action_id: UUID) -> int:
    chain = await require_action_ownership(db, user_id, action_id)
    return await _remove(db, ACTIONS, chain.plan, chain.action, chain.deliverable.id)
