"""HTTP surface of the plans, tree and key routers."""
import uuid
from unittest.mock import AsyncMock, patch

import pytest

from planteria.schemas.draft import PlanDraft

from conftest import VALID_OPENAI_KEY, make_draft


@pytest.mark.asyncio
async def test_root_and_health(client) -> None:
    r = await client.get("/")
    assert r.status_code == 200
    assert r.json()["name"] == "planteria"
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    r = await client.get("/api/healthz")
    assert r.status_code == 200
    r = await client.get("/api/readyz")
    assert r.status_code == 200
    assert r.json()["db"] == "ok"


@pytest.mark.asyncio
async def test_missing_user_header_is_401(client) -> None:
    r = await client.get("/api/plans")
    assert r.status_code == 401
    assert r.headers["X-Error-Code"] == "unauthenticated"


@pytest.mark.asyncio
async def test_generate_needs_a_key_then_queues(client, headers) -> None:
    r = await client.post("/api/plans/generate", json={"idea": "Launch a podcast"}, headers=headers())
    assert r.status_code == 400
    assert r.headers["X-Error-Code"] == "missing_api_key"

    r = await client.put("/api/keys/openai", json={"api_key": VALID_OPENAI_KEY}, headers=headers())
    assert r.status_code == 200
    assert r.json()["has_key"] is True
    assert r.json()["last_four"] == VALID_OPENAI_KEY[-4:]

    enqueue = AsyncMock()
    with patch("planteria.routers.plans_router.enqueue_generation", enqueue):
        r = await client.post("/api/plans/generate", json={"idea": "Launch a podcast"}, headers=headers())
    assert r.status_code == 202
    body = r.json()
    assert body["status"] == "scraping"
    enqueue.assert_awaited_once_with(uuid.UUID(body["plan_id"]), "user-1", "Launch a podcast")

    r = await client.get(f"/api/plans/{body['plan_id']}", headers=headers())
    assert r.status_code == 200
    assert r.json()["title"] == "New plan"
    assert r.json()["outcomes"] == []


@pytest.mark.asyncio
async def test_malformed_openai_key_is_422(client, headers) -> None:
    r = await client.put("/api/keys/openai", json={"api_key": "nope"}, headers=headers())
    assert r.status_code == 422
    r = await client.get("/api/keys/openai", headers=headers())
    assert r.json()["has_key"] is False


@pytest.mark.asyncio
async def test_other_users_plan_is_403_and_unknown_is_404(client, headers, plan_factory) -> None:
    plan = await plan_factory(tree=[{"deliverables": [{"actions": ["todo"]}]}])

    r = await client.get(f"/api/plans/{plan.id}", headers=headers("intruder"))
    assert r.status_code == 403
    r = await client.get(f"/api/plans/{uuid.uuid4()}", headers=headers())
    assert r.status_code == 404
    assert r.headers["X-Error-Code"] == "plan_not_found"
    r = await client.get(f"/api/outcomes/{uuid.uuid4()}/deliverables", headers=headers())
    assert r.headers["X-Error-Code"] == "outcome_not_found"


@pytest.mark.asyncio
async def test_tree_crud_keeps_order_dense(client, headers, plan_factory) -> None:
    plan = await plan_factory(tree=[{"deliverables": [{"actions": ["todo"]}]}])

    r = await client.post(f"/api/plans/{plan.id}/outcomes", json={"title": "Grow audience"}, headers=headers())
    assert r.status_code == 201
    new_outcome = r.json()
    assert new_outcome["order"] == 1

    r = await client.post(
        f"/api/outcomes/{new_outcome['id']}/deliverables",
        json={"title": "Newsletter", "done_when": "First issue is sent to subscribers."},
        headers=headers(),
    )
    assert r.status_code == 201
    deliverable = r.json()
    assert deliverable["order"] == 0

    for title in ("Pick a tool", "Write issue one", "Send it"):
        r = await client.post(
            f"/api/deliverables/{deliverable['id']}/actions", json={"title": title}, headers=headers()
        )
        assert r.status_code == 201
    actions = (await client.get(f"/api/deliverables/{deliverable['id']}/actions", headers=headers())).json()
    assert [a["order"] for a in actions] == [0, 1, 2]

    r = await client.delete(f"/api/actions/{actions[0]['id']}", headers=headers())
    assert r.status_code == 200
    actions = (await client.get(f"/api/deliverables/{deliverable['id']}/actions", headers=headers())).json()
    assert [(a["title"], a["order"]) for a in actions] == [("Write issue one", 0), ("Send it", 1)]

    r = await client.patch(f"/api/actions/{actions[0]['id']}", json={"title": "  Draft issue one  "}, headers=headers())
    assert r.status_code == 200
    assert r.json()["title"] == "Draft issue one"

    r = await client.put(f"/api/outcomes/{new_outcome['id']}/status", json={"status": "done"}, headers=headers())
    assert r.status_code == 200
    actions = (await client.get(f"/api/deliverables/{deliverable['id']}/actions", headers=headers())).json()
    assert {a["status"] for a in actions} == {"done"}

    outcomes = (await client.get(f"/api/plans/{plan.id}/outcomes", headers=headers())).json()
    r = await client.delete(f"/api/outcomes/{outcomes[0]['id']}", headers=headers())
    assert r.status_code == 200
    outcomes = (await client.get(f"/api/plans/{plan.id}/outcomes", headers=headers())).json()
    assert [(o["title"], o["order"]) for o in outcomes] == [("Grow audience", 0)]


@pytest.mark.asyncio
async def test_invalid_status_and_blank_title_are_rejected(client, headers, plan_factory) -> None:
    plan = await plan_factory(tree=[{}])
    outcomes = (await client.get(f"/api/plans/{plan.id}/outcomes", headers=headers())).json()
    r = await client.put(f"/api/outcomes/{outcomes[0]['id']}/status", json={"status": "finished"}, headers=headers())
    assert r.status_code == 422
    r = await client.post(f"/api/plans/{plan.id}/outcomes", json={"title": "   "}, headers=headers())
    assert r.status_code == 422
    assert r.headers["X-Error-Code"] == "validation_failed"


@pytest.mark.asyncio
async def test_pending_work_endpoint(client, headers, plan_factory) -> None:
    plan = await plan_factory(tree=[{"status": "done"}, {"deliverables": [{"actions": ["done", "todo"]}]}])
    r = await client.get(f"/api/plans/{plan.id}/pending-work", headers=headers())
    assert r.status_code == 200
    body = r.json()
    assert body["done"] is False
    assert body["outcome"]["title"] == "Outcome 1"
    assert [a["title"] for a in body["deliverables"][0]["actions"]] == ["Action 1.0.1"]


@pytest.mark.asyncio
async def test_apply_draft_and_idea_mismatch(client, headers, plan_factory) -> None:
    plan = await plan_factory(tree=[{}])

    r = await client.post(f"/api/plans/{plan.id}/apply", json=make_draft(idea="Open a bakery"), headers=headers())
    assert r.status_code == 409
    assert r.headers["X-Error-Code"] == "plan_idea_mismatch"

    bad = make_draft()
    bad["outcomes"] = []
    r = await client.post(f"/api/plans/{plan.id}/apply", json=bad, headers=headers())
    assert r.status_code == 422

    r = await client.post(f"/api/plans/{plan.id}/apply", json=make_draft(), headers=headers())
    assert r.status_code == 200
    assert r.json() == {
        "plan_id": str(plan.id),
        "applied": True,
        "outcomes": 2,
        "deliverables": 3,
        "actions": 3,
    }
    details = (await client.get(f"/api/plans/{plan.id}", headers=headers())).json()
    assert details["status"] == "ready"
    assert [o["title"] for o in details["outcomes"]] == ["Produce pilot episodes", "Publish the show"]


@pytest.mark.asyncio
async def test_adjust_endpoint_records_history(client, headers, plan_factory) -> None:
    plan = await plan_factory(tree=[{}])
    r = await client.put("/api/keys/openai", json={"api_key": VALID_OPENAI_KEY}, headers=headers())
    assert r.status_code == 200

    llm = AsyncMock()
    llm.create_thread = AsyncMock(return_value="conv_http")
    llm.generate_plan_draft = AsyncMock(return_value=PlanDraft.model_validate(make_draft()))
    with patch("planteria.services.generation_service.LLMService", return_value=llm):
        r = await client.post(f"/api/plans/{plan.id}/adjust", json={"prompt": "Add publishing"}, headers=headers())
    assert r.status_code == 200
    assert r.json()["summary"] == "Podcast launch plan: 2 outcomes, 3 deliverables, 3 actions"

    r = await client.get(f"/api/plans/{plan.id}/adjustments", headers=headers())
    assert r.status_code == 200
    events = r.json()["events"]
    assert [(e["status"], e["prompt"], e["thread_id"]) for e in events] == [("applied", "Add publishing", "conv_http")]


@pytest.mark.asyncio
async def test_delete_plan_endpoint(client, headers, plan_factory) -> None:
    plan = await plan_factory(tree=[{"deliverables": [{"actions": ["todo"]}]}])
    r = await client.delete(f"/api/plans/{plan.id}", headers=headers("intruder"))
    assert r.status_code == 403
    r = await client.delete(f"/api/plans/{plan.id}", headers=headers())
    assert r.status_code == 200
    r = await client.get(f"/api/plans/{plan.id}", headers=headers())
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_generation_status(client) -> None:
    r = await client.get("/api/generation/status")
    assert r.status_code == 200
    assert r.json()["running"] is False
