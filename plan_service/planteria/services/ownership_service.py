"""
Ownership chain: walk a node up to its plan, one fetch per level.
Missing rows fail at the most specific level (Action/Deliverable/Outcome/Plan not found);
AccessDenied is raised only once the plan is loaded and its owner differs.
Read-only: nothing here mutates state.
"""
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from planteria.errors import AccessDenied, NotFound
from planteria.models import Action, Deliverable, Outcome, Plan


@dataclass
class OwnershipChain:
    """Ancestors fetched during the check, so callers do not re-query them."""

    plan: Plan
    outcome: Optional[Outcome] = None
    deliverable: Optional[Deliverable] = None
    action: Optional[Action] = None


async def require_plan_ownership(db: AsyncSession, user_id: str, plan_id: UUID) -> OwnershipChain:
    plan = await db.get(Plan, plan_id)
    if plan is None:
        raise NotFound("plan")
    if plan.user_id != user_id:
        raise AccessDenied()
    return OwnershipChain(plan=plan)


async def require_outcome_ownership(db: AsyncSession, user_id: str, outcome_id: UUID) -> OwnershipChain:
    outcome = await db.get(Outcome, outcome_id)
    if outcome is None:
        raise NotFound("outcome")
    chain = await require_plan_ownership(db, user_id, outcome.plan_id)
    chain.outcome = outcome
    return chain


async def require_deliverable_ownership(db: AsyncSession, user_id: str, deliverable_id: UUID) -> OwnershipChain:
    deliverable = await db.get(Deliverable, deliverable_id)
    if deliverable is None:
        raise NotFound("deliverable")
    chain = await require_outcome_ownership(db, user_id, deliverable.outcome_id)
    chain.deliverable = deliverable
    return chain


async def require_action_ownership(db: AsyncSession, user_id: str, action_id: UUID) -> OwnershipChain:
    action = await db.get(Action, action_id)
    if action is None:
        raise NotFound("action")
    chain = await require_deliverable_ownership(db, user_id, action.deliverable_id)
    chain.action = action
    return chain
