"""
Full-tree replace: drop a plan's whole subtree and rebuild it from a draft.
Used by initial generation (no idea check) and by applying an adjustment (idea must match).
Node identity is not preserved across replacements; order comes from array position.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Union
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.errors import ConsistencyFailure, PartialApplyFailure, ValidationFailure, format_error_message
from planteria.logging_config import get_logger
from planteria.models import Action, Deliverable, Outcome, Plan
from planteria.schemas.draft import PlanDraft
from planteria.services.ordering_service import OUTCOMES, delete_subtree, list_children
from planteria.services.ownership_service import require_plan_ownership

logger = get_logger(__name__)

DraftInput = Union[PlanDraft, Mapping[str, Any]]


def validate_draft(draft: Any) -> PlanDraft:
    """
    Validate any draft against PlanDraft, including one that is already a PlanDraft:
    model instances can be built with model_construct and skip validation.
    """
    payload = draft.model_dump(by_alias=True) if isinstance(draft, PlanDraft) else draft
    try:
        return PlanDraft.model_validate(payload)
    except ValidationError as e:
        errors = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        first = errors[0] if errors else {"loc": "", "msg": "invalid draft"}
        raise ValidationFailure(
            f"Plan draft failed validation at {first['loc'] or 'root'}: {first['msg']}",
            errors=errors,
        ) from e


def count_draft_nodes(draft: PlanDraft) -> tuple[int, int, int]:
    """(outcomes, deliverables, actions) in a draft."""
    deliverables = [d for o in draft.outcomes for d in o.deliverables]
    actions = sum(len(d.actions) for d in deliverables)
    return len(draft.outcomes), len(deliverables), actions


async def replace_plan_tree(
    db: AsyncSession,
    plan: Plan,
    draft: DraftInput,
    enforce_idea: bool = False,
) -> PlanDraft:
    """
    Replace plan's outcomes/deliverables/actions with the draft's and mark the plan ready.
    enforce_idea: reject a draft whose idea differs from plan.idea (ConsistencyFailure) before any write.
    All inserted rows and the plan share one timestamp. plan.idea is never rewritten.
    Database errors part-way through raise PartialApplyFailure; the caller's transaction decides what persists.
    """
    validated = validate_draft(draft)
    if enforce_idea and validated.idea != plan.idea:
        logger.warning("replace.idea_mismatch", plan_id=str(plan.id))
        raise ConsistencyFailure()

    timestamp = datetime.now(timezone.utc)
    removed = 0
    try:
        for outcome in await list_children(db, OUTCOMES, plan.id):
            removed += await delete_subtree(db, OUTCOMES, outcome)

        for o_index, o_draft in enumerate(validated.outcomes):
            # a done outcome forces its whole subtree to done
            outcome_done = o_draft.status == "done"
            outcome = Outcome(
                id=uuid.uuid4(),
                plan_id=plan.id,
                title=o_draft.title,
                summary=o_draft.summary,
                status=o_draft.status,
                order=o_index,
                created_at=timestamp,
                updated_at=timestamp,
            )
            db.add(outcome)
            for d_index, d_draft in enumerate(o_draft.deliverables):
                deliverable = Deliverable(
                    id=uuid.uuid4(),
                    outcome_id=outcome.id,
                    title=d_draft.title,
                    done_when=d_draft.done_when,
                    notes=d_draft.notes,
                    status="done" if outcome_done else d_draft.status,
                    order=d_index,
                    created_at=timestamp,
                    updated_at=timestamp,
                )
                db.add(deliverable)
                for a_index, a_draft in enumerate(d_draft.actions):
                    db.add(
                        Action(
                            id=uuid.uuid4(),
                            deliverable_id=deliverable.id,
                            title=a_draft.title,
                            status="done" if outcome_done else a_draft.status,
                            order=a_index,
                            created_at=timestamp,
                            updated_at=timestamp,
                        )
                    )

        plan.title = validated.title
        plan.summary = validated.summary
        plan.status = "ready"
        plan.generation_error = None
        plan.updated_at = timestamp
        await db.flush()
    except SQLAlchemyError as e:
        logger.error("replace.partial_apply", plan_id=str(plan.id), removed=removed, error=str(e))
        raise PartialApplyFailure(format_error_message(e)) from e

    outcomes, deliverables, actions = count_draft_nodes(validated)
    logger.info(
        "replace.applied",
        plan_id=str(plan.id),
        removed=removed,
        outcomes=outcomes,
        deliverables=deliverables,
        actions=actions,
    )
    return validated


async def apply_plan_adjustment(
    db: AsyncSession,
    user_id: str,
    plan_id: UUID,
    proposal: DraftInput,
) -> PlanDraft:
    """Apply an untrusted proposal to the caller's plan: ownership check, re-validation, idea guard, replace."""
    chain = await require_plan_ownership(db, user_id, plan_id)
    return await replace_plan_tree(db, chain.plan, proposal, enforce_idea=True)
