"""
Read-only views of a plan: pending work (next actionable step) and full details.
Pure reads; order and status are never touched here.
"""
from collections import defaultdict
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.logging_config import get_logger
from planteria.models import Action, Deliverable, Outcome, Plan
from planteria.schemas.nodes import (
    ActionOut,
    DeliverableDetailOut,
    DeliverableOut,
    OutcomeDetailOut,
    OutcomeOut,
)
from planteria.schemas.plans import PendingWorkOut, PlanDetailsOut, PlanOut
from planteria.services.ordering_service import ACTIONS, DELIVERABLES, OUTCOMES, list_children
from planteria.services.ownership_service import require_plan_ownership
from planteria.utils.ids import clamp_limit

logger = get_logger(__name__)

RECENT_PLANS_DEFAULT = 5
RECENT_PLANS_MAX = 10


def _heading(text: Optional[str]) -> str:
    """Collapse whitespace for one-line summaries."""
    return " ".join((text or "").split()) or "Untitled"


def _deliverable_detail(deliverable: Deliverable, actions: List[Action]) -> DeliverableDetailOut:
    base = DeliverableOut.model_validate(deliverable).model_dump()
    return DeliverableDetailOut(**base, actions=[ActionOut.model_validate(a) for a in actions])


def build_summary_lines(
    plan: Plan,
    outcome: Optional[Outcome],
    deliverable: Optional[Deliverable],
    actions: List[Action],
) -> List[str]:
    """Plain-text lines for chat clients: plan, outcome, deliverable, then the remaining actions."""
    lines = [f"Plan: {_heading(plan.title)}"]
    if outcome is None:
        lines.append("All outcomes are complete.")
        return lines
    lines.append(f"Outcome: {_heading(outcome.title)}")
    if deliverable is None:
        lines.append("No outstanding deliverables.")
        return lines
    lines.append(f"Deliverable: {_heading(deliverable.title)}")
    lines.append(f"Done when: {_heading(deliverable.done_when)}")
    if deliverable.notes and deliverable.notes.strip():
        lines.append(f"Notes: {_heading(deliverable.notes)}")
    if actions:
        lines.append("Next actions:")
        lines.extend(f"- {_heading(action.title)}" for action in actions)
    else:
        lines.append("No remaining actions.")
    return lines


async def resolve_pending_work(db: AsyncSession, user_id: str, plan_id: UUID) -> PendingWorkOut:
    """
    Greedy descent: first non-done outcome by order, then its first non-done deliverable,
    then that deliverable's non-done actions in order.
    No open outcome -> done=True. Open outcome without an open deliverable -> done=False, no deliverables.
    """
    chain = await require_plan_ownership(db, user_id, plan_id)
    plan = chain.plan

    outcome = next((o for o in await list_children(db, OUTCOMES, plan.id) if o.status != "done"), None)
    deliverable: Optional[Deliverable] = None
    actions: List[Action] = []
    if outcome is not None:
        deliverable = next(
            (d for d in await list_children(db, DELIVERABLES, outcome.id) if d.status != "done"),
            None,
        )
    if deliverable is not None:
        actions = [a for a in await list_children(db, ACTIONS, deliverable.id) if a.status != "done"]

    return PendingWorkOut(
        plan=PlanOut.model_validate(plan),
        done=outcome is None,
        outcome=OutcomeOut.model_validate(outcome) if outcome is not None else None,
        deliverables=[_deliverable_detail(deliverable, actions)] if deliverable is not None else [],
        summary_lines=build_summary_lines(plan, outcome, deliverable, actions),
    )


async def resolve_plan_details(db: AsyncSession, user_id: str, plan_id: UUID) -> PlanDetailsOut:
    """Whole tree, every level in stored order. One query per level."""
    chain = await require_plan_ownership(db, user_id, plan_id)
    plan = chain.plan

    outcomes = await list_children(db, OUTCOMES, plan.id)
    outcome_ids = [o.id for o in outcomes]
    deliverables: List[Deliverable] = []
    if outcome_ids:
        r = await db.execute(
            select(Deliverable)
            .where(Deliverable.outcome_id.in_(outcome_ids))
            .order_by(Deliverable.order.asc(), Deliverable.created_at.asc(), Deliverable.id.asc())
        )
        deliverables = list(r.scalars().all())
    deliverable_ids = [d.id for d in deliverables]
    actions: List[Action] = []
    if deliverable_ids:
        r = await db.execute(
            select(Action)
            .where(Action.deliverable_id.in_(deliverable_ids))
            .order_by(Action.order.asc(), Action.created_at.asc(), Action.id.asc())
        )
        actions = list(r.scalars().all())

    actions_by_deliverable: Dict[UUID, List[Action]] = defaultdict(list)
    for action in actions:
        actions_by_deliverable[action.deliverable_id].append(action)
    deliverables_by_outcome: Dict[UUID, List[DeliverableDetailOut]] = defaultdict(list)
    for deliverable in deliverables:
        deliverables_by_outcome[deliverable.outcome_id].append(
            _deliverable_detail(deliverable, actions_by_deliverable[deliverable.id])
        )

    outcome_out = [
        OutcomeDetailOut(
            **OutcomeOut.model_validate(outcome).model_dump(),
            deliverables=deliverables_by_outcome[outcome.id],
        )
        for outcome in outcomes
    ]
    return PlanDetailsOut(**PlanOut.model_validate(plan).model_dump(), outcomes=outcome_out)


async def list_user_plans(db: AsyncSession, user_id: str, limit: Optional[int] = None) -> List[Plan]:
    """Caller's plans, most recently updated first."""
    q = (
        select(Plan)
        .where(Plan.user_id == user_id)
        .order_by(Plan.updated_at.desc(), Plan.created_at.desc())
    )
    if limit is not None:
        q = q.limit(limit)
    r = await db.execute(q)
    return list(r.scalars().all())


async def list_recent_plans(db: AsyncSession, user_id: str, limit: Optional[int] = None) -> List[Plan]:
    """Integration listing: newest first by updated_at, limit clamped to 1..10 (default 5)."""
    bounded = clamp_limit(limit, RECENT_PLANS_DEFAULT, maximum=RECENT_PLANS_MAX)
    return await list_user_plans(db, user_id, limit=bounded)
