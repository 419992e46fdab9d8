"""Tree mutations: cascading delete, done cascade, partial updates, input bounds, plan.updated_at."""
from datetime import timedelta

import pytest
from sqlalchemy import func, select

from planteria.errors import ValidationFailure
from planteria.models import Action, Deliverable, Outcome
from planteria.services.ordering_service import ACTIONS, DELIVERABLES, OUTCOMES, list_children
from planteria.services.tree_service import (
    add_deliverable,
    add_outcome,
    delete_outcome,
    list_outcomes,
    set_action_status,
    set_deliverable_status,
    set_outcome_status,
    update_deliverable,
    update_outcome,
)

from conftest import OLD_TIMESTAMP


async def _tree(db, plan_id):
    outcomes = await list_children(db, OUTCOMES, plan_id)
    deliverables = [d for o in outcomes for d in await list_children(db, DELIVERABLES, o.id)]
    actions = [a for d in deliverables for a in await list_children(db, ACTIONS, d.id)]
    return outcomes, deliverables, actions


@pytest.mark.asyncio
async def test_delete_outcome_removes_whole_subtree(db, plan_factory) -> None:
    plan = await plan_factory(
        tree=[
            {"deliverables": [{"actions": ["todo", "done", "doing"]}, {"actions": ["todo"]}, {}]},
            {"deliverables": [{"actions": ["todo"]}]},
        ]
    )
    outcomes, _, _ = await _tree(db, plan.id)
    doomed = outcomes[0]
    deliverable_ids = [d.id for d in await list_children(db, DELIVERABLES, doomed.id)]
    assert len(deliverable_ids) == 3

    deleted = await delete_outcome(db, "user-1", doomed.id)
    assert deleted == 1 + 3 + 4

    left_deliverables = await db.scalar(
        select(func.count()).select_from(Deliverable).where(Deliverable.outcome_id == doomed.id)
    )
    left_actions = await db.scalar(
        select(func.count()).select_from(Action).where(Action.deliverable_id.in_(deliverable_ids))
    )
    assert left_deliverables == 0
    assert left_actions == 0
    remaining = await list_outcomes(db, "user-1", plan.id)
    assert [(o.title, o.order) for o in remaining] == [("Outcome 1", 0)]


@pytest.mark.asyncio
async def test_outcome_done_forces_every_descendant_done(db, plan_factory) -> None:
    plan = await plan_factory(
        tree=[
            {
                "status": "doing",
                "deliverables": [
                    {"status": "todo", "actions": ["todo", "doing", "done"]},
                    {"status": "done", "actions": ["todo"]},
                    {"status": "doing", "actions": []},
                ],
            },
            {"deliverables": [{"actions": ["todo"]}]},
        ]
    )
    outcomes, _, _ = await _tree(db, plan.id)

    outcome = await set_outcome_status(db, "user-1", outcomes[0].id, "done")

    assert outcome.status == "done"
    deliverables = await list_children(db, DELIVERABLES, outcome.id)
    actions = [a for d in deliverables for a in await list_children(db, ACTIONS, d.id)]
    assert all(d.status == "done" for d in deliverables)
    assert all(a.status == "done" for a in actions)
    assert len(actions) == 4
    changed = [d for d in deliverables if d.updated_at != OLD_TIMESTAMP]
    assert {d.updated_at for d in changed} == {outcome.updated_at}
    other = await list_children(db, DELIVERABLES, outcomes[1].id)
    assert [d.status for d in other] == ["todo"]


@pytest.mark.asyncio
async def test_timestamps_read_back_as_utc(plan_factory, session_factory) -> None:
    plan = await plan_factory(tree=[{"deliverables": [{"actions": ["todo"]}]}])

    async with session_factory() as s:
        outcome = (await s.execute(select(Outcome).where(Outcome.plan_id == plan.id))).scalar_one()
        deliverable = (await s.execute(select(Deliverable).where(Deliverable.outcome_id == outcome.id))).scalar_one()
        action = (await s.execute(select(Action).where(Action.deliverable_id == deliverable.id))).scalar_one()

    for node in (outcome, deliverable, action):
        assert node.updated_at.tzinfo is not None
        assert node.updated_at.utcoffset() == timedelta(0)
        assert node.created_at == OLD_TIMESTAMP


@pytest.mark.asyncio
async def test_reopening_a_node_leaves_relatives_alone(db, plan_factory) -> None:
    plan = await plan_factory(
        tree=[{"status": "done", "deliverables": [{"status": "done", "actions": ["done", "done"]}]}]
    )
    outcomes, deliverables, actions = await _tree(db, plan.id)

    await set_deliverable_status(db, "user-1", deliverables[0].id, "doing")
    await set_action_status(db, "user-1", actions[0].id, "todo")

    assert outcomes[0].status == "done"
    assert deliverables[0].status == "doing"
    assert [a.status for a in actions] == ["todo", "done"]


@pytest.mark.asyncio
async def test_deliverable_done_does_not_cascade(db, plan_factory) -> None:
    plan = await plan_factory(tree=[{"deliverables": [{"actions": ["todo", "doing"]}]}])
    _, deliverables, actions = await _tree(db, plan.id)

    await set_deliverable_status(db, "user-1", deliverables[0].id, "done")
    assert [a.status for a in actions] == ["todo", "doing"]


@pytest.mark.asyncio
async def test_mutations_bump_plan_updated_at(db, plan_factory) -> None:
    plan = await plan_factory(tree=[{"deliverables": [{}]}])
    outcomes, deliverables, _ = await _tree(db, plan.id)

    updated = await update_deliverable(db, "user-1", deliverables[0].id, {"notes": "Ask Sam for the mic"})
    assert plan.updated_at == updated.updated_at
    assert plan.updated_at > OLD_TIMESTAMP

    added = await add_outcome(db, "user-1", plan.id, "  Grow the audience  ", "Reach 100 listeners")
    assert added.title == "Grow the audience"
    assert added.order == 1
    assert added.status == "todo"
    assert plan.updated_at == added.updated_at


@pytest.mark.asyncio
async def test_partial_update_touches_only_given_fields(db, plan_factory) -> None:
    plan = await plan_factory(tree=[{"status": "doing", "deliverables": [{"notes": "keep me"}]}])
    outcomes, deliverables, _ = await _tree(db, plan.id)

    outcome = await update_outcome(db, "user-1", outcomes[0].id, {"summary": "New summary"})
    assert outcome.title == "Outcome 0"
    assert outcome.status == "doing"
    assert outcome.summary == "New summary"

    deliverable = await update_deliverable(db, "user-1", deliverables[0].id, {"title": "Renamed"})
    assert deliverable.notes == "keep me"
    cleared = await update_deliverable(db, "user-1", deliverables[0].id, {"notes": None})
    assert cleared.notes is None


@pytest.mark.asyncio
async def test_manual_edit_bounds(db, plan_factory) -> None:
    plan = await plan_factory(tree=[{}])
    outcomes, _, _ = await _tree(db, plan.id)

    with pytest.raises(ValidationFailure):
        await add_outcome(db, "user-1", plan.id, "   ")
    with pytest.raises(ValidationFailure):
        await add_outcome(db, "user-1", plan.id, "x" * 81)
    with pytest.raises(ValidationFailure):
        await add_deliverable(db, "user-1", outcomes[0].id, "Title", "")
    with pytest.raises(ValidationFailure):
        await update_outcome(db, "user-1", outcomes[0].id, {"status": "finished"})
    assert await db.scalar(select(func.count()).select_from(Outcome).where(Outcome.plan_id == plan.id)) == 1
