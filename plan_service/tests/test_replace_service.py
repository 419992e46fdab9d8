"""Full-tree replace: re-validation, idea guard, re-apply gives the same shape, plan patched to ready."""
import pytest
from sqlalchemy import select

from planteria.errors import AccessDenied, ConsistencyFailure, ValidationFailure
from planteria.models import Outcome
from planteria.schemas.draft import PlanDraft
from planteria.services.ordering_service import ACTIONS, DELIVERABLES, OUTCOMES, list_children
from planteria.services.replace_service import apply_plan_adjustment, replace_plan_tree, validate_draft


async def _shape(db, plan_id):
    shape = []
    for outcome in await list_children(db, OUTCOMES, plan_id):
        deliverables = []
        for deliverable in await list_children(db, DELIVERABLES, outcome.id):
            actions = [(a.title, a.order, a.status) for a in await list_children(db, ACTIONS, deliverable.id)]
            deliverables.append((deliverable.title, deliverable.order, deliverable.status, actions))
        shape.append((outcome.title, outcome.order, outcome.status, deliverables))
    return shape


@pytest.mark.asyncio
async def test_reapplying_same_draft_gives_isomorphic_tree(db, plan_factory, draft_factory) -> None:
    plan = await plan_factory(tree=[{"deliverables": [{"actions": ["todo"]}]}])
    draft = draft_factory()

    await apply_plan_adjustment(db, "user-1", plan.id, draft)
    first_shape = await _shape(db, plan.id)
    first_ids = {o.id for o in await list_children(db, OUTCOMES, plan.id)}

    await apply_plan_adjustment(db, "user-1", plan.id, draft)
    second_shape = await _shape(db, plan.id)
    second_ids = {o.id for o in await list_children(db, OUTCOMES, plan.id)}

    assert first_shape == second_shape
    assert first_ids.isdisjoint(second_ids)
    assert first_shape[0][0] == "Produce pilot episodes"
    assert [d[1] for d in first_shape[0][3]] == [0, 1]
    assert first_shape[1][3][0][3] == [("Pick a host", 0, "done")]


@pytest.mark.asyncio
async def test_replace_patches_plan_and_shares_one_timestamp(db, plan_factory, draft_factory) -> None:
    plan = await plan_factory(status="generating", tree=[])
    plan.generation_error = "previous failure"

    await replace_plan_tree(db, plan, draft_factory(idea="something else entirely"), enforce_idea=False)

    assert plan.status == "ready"
    assert plan.generation_error is None
    assert plan.title == "Podcast launch plan"
    assert plan.idea == "Launch a podcast"
    outcomes = await list_children(db, OUTCOMES, plan.id)
    stamps = {o.created_at for o in outcomes} | {o.updated_at for o in outcomes}
    for outcome in outcomes:
        for deliverable in await list_children(db, DELIVERABLES, outcome.id):
            stamps |= {deliverable.created_at, deliverable.updated_at}
    assert stamps == {plan.updated_at}


@pytest.mark.asyncio
async def test_done_outcome_in_draft_forces_its_subtree_done(db, plan_factory, draft_factory) -> None:
    plan = await plan_factory(tree=[])
    draft = draft_factory()
    draft["outcomes"][0]["status"] = "done"
    draft["outcomes"][0]["deliverables"][0]["status"] = "doing"

    await replace_plan_tree(db, plan, draft)

    shape = await _shape(db, plan.id)
    assert shape[0][2] == "done"
    assert [d[2] for d in shape[0][3]] == ["done", "done"]
    assert [a[2] for a in shape[0][3][0][3]] == ["done", "done"]
    assert shape[1][2] == "todo"
    assert shape[1][3][0][2] == "todo"


@pytest.mark.asyncio
async def test_idea_mismatch_is_rejected_and_tree_untouched(db, plan_factory, draft_factory) -> None:
    plan = await plan_factory(tree=[{"deliverables": [{"actions": ["todo", "done"]}]}])
    before = await _shape(db, plan.id)

    with pytest.raises(ConsistencyFailure) as exc_info:
        await apply_plan_adjustment(db, "user-1", plan.id, draft_factory(idea="Open a bakery"))

    assert exc_info.value.message == "Plan idea mismatch"
    assert await _shape(db, plan.id) == before
    assert plan.title == "Podcast launch plan"


@pytest.mark.asyncio
async def test_untrusted_drafts_are_revalidated(db, plan_factory, draft_factory) -> None:
    plan = await plan_factory(tree=[{}])

    too_many = draft_factory()
    too_many["outcomes"] = too_many["outcomes"] * 4
    with pytest.raises(ValidationFailure) as exc_info:
        await apply_plan_adjustment(db, "user-1", plan.id, too_many)
    assert any(err["loc"] == "outcomes" for err in exc_info.value.errors)

    short_done_when = draft_factory()
    short_done_when["outcomes"][0]["deliverables"][0]["doneWhen"] = "soon"
    with pytest.raises(ValidationFailure):
        await apply_plan_adjustment(db, "user-1", plan.id, short_done_when)

    unchecked = PlanDraft.model_construct(idea="Launch a podcast", title="ok", summary="short", outcomes=[])
    with pytest.raises(ValidationFailure):
        await apply_plan_adjustment(db, "user-1", plan.id, unchecked)

    rows = (await db.execute(select(Outcome).where(Outcome.plan_id == plan.id))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_snake_case_drafts_are_accepted(draft_factory) -> None:
    draft = draft_factory()
    for outcome in draft["outcomes"]:
        for deliverable in outcome["deliverables"]:
            deliverable["done_when"] = deliverable.pop("doneWhen")
    validated = validate_draft(draft)
    assert validated.outcomes[0].deliverables[0].done_when == "Episode one is edited and exported."
    assert validated.outcomes[0].deliverables[1].actions == []


@pytest.mark.asyncio
async def test_apply_requires_ownership(db, plan_factory, draft_factory) -> None:
    plan = await plan_factory(tree=[])
    with pytest.raises(AccessDenied):
        await apply_plan_adjustment(db, "intruder", plan.id, draft_factory())
