"""
Shared fixtures: a fresh in-memory SQLite database per test, app dependency overrides,
and factories for plans (with trees) and drafts.
Environment is set before any planteria import so cached settings pick it up.
"""
import os

from cryptography.fernet import Fernet

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_ENCRYPTION_KEY"] = Fernet.generate_key().decode()
os.environ["GENERATION_WORKER_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = ""
os.environ["REDIS_URL"] = ""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from planteria.db import Base, get_db, get_session_factory
from planteria.main import app
from planteria.models import Action, Deliverable, Outcome, Plan

OLD_TIMESTAMP = datetime(2024, 1, 1, tzinfo=timezone.utc)
VALID_OPENAI_KEY = "sk-test_abcdefghijklmnopqrstuvwxyz0123"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


def tracking_sessions(session_factory):
    """Wrap a session factory; the returned dict holds how many of its sessions are open right now."""
    state = {"open": 0}

    @asynccontextmanager
    async def _open():
        state["open"] += 1
        try:
            async with session_factory() as session:
                yield session
        finally:
            state["open"] -= 1

    return _open, state


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def plan_factory(db):
    """
    Build a committed plan with an explicit tree. tree is a list of outcomes:
    {"status": "todo", "deliverables": [{"status": "doing", "actions": ["todo", "done"]}]}
    Titles are derived from positions ("Outcome 0", "Deliverable 0.1", "Action 0.1.2").
    All rows carry OLD_TIMESTAMP so later mutations are visibly newer.
    """

    async def _make(
        user_id: str = "user-1",
        idea: str = "Launch a podcast",
        tree: Optional[List[Dict[str, Any]]] = None,
        status: str = "ready",
        updated_at: datetime = OLD_TIMESTAMP,
    ) -> Plan:
        plan = Plan(
            id=uuid.uuid4(),
            user_id=user_id,
            idea=idea,
            title="Podcast launch plan",
            summary="Ship the first three episodes and build a listener base.",
            status=status,
            research_insights=[],
            created_at=OLD_TIMESTAMP,
            updated_at=updated_at,
        )
        db.add(plan)
        for o_index, o_shape in enumerate(tree or []):
            outcome = Outcome(
                id=uuid.uuid4(),
                plan_id=plan.id,
                title=f"Outcome {o_index}",
                summary="",
                status=o_shape.get("status", "todo"),
                order=o_index,
                created_at=OLD_TIMESTAMP,
                updated_at=OLD_TIMESTAMP,
            )
            db.add(outcome)
            for d_index, d_shape in enumerate(o_shape.get("deliverables", [])):
                deliverable = Deliverable(
                    id=uuid.uuid4(),
                    outcome_id=outcome.id,
                    title=f"Deliverable {o_index}.{d_index}",
                    done_when=f"Deliverable {o_index}.{d_index} is accepted.",
                    notes=d_shape.get("notes"),
                    status=d_shape.get("status", "todo"),
                    order=d_index,
                    created_at=OLD_TIMESTAMP,
                    updated_at=OLD_TIMESTAMP,
                )
                db.add(deliverable)
                for a_index, a_status in enumerate(d_shape.get("actions", [])):
                    db.add(
                        Action(
                            id=uuid.uuid4(),
                            deliverable_id=deliverable.id,
                            title=f"Action {o_index}.{d_index}.{a_index}",
                            status=a_status,
                            order=a_index,
                            created_at=OLD_TIMESTAMP,
                            updated_at=OLD_TIMESTAMP,
                        )
                    )
        await db.commit()
        return plan

    return _make


def make_draft(idea: str = "Launch a podcast", title: str = "Podcast launch plan") -> Dict[str, Any]:
    """A draft within every schema bound: 2 outcomes, 3 deliverables, 3 actions."""
    return {
        "idea": idea,
        "title": title,
        "summary": "Ship the first three episodes and build a listener base.",
        "outcomes": [
            {
                "title": "Produce pilot episodes",
                "summary": "Record and edit the first episodes.",
                "deliverables": [
                    {
                        "title": "Pilot episode",
                        "doneWhen": "Episode one is edited and exported.",
                        "notes": None,
                        "actions": [{"title": "Write outline"}, {"title": "Record audio"}],
                    },
                    {
                        "title": "Cover art",
                        "doneWhen": "Square cover art is exported at 3000px.",
                        "actions": [],
                    },
                ],
            },
            {
                "title": "Publish the show",
                "summary": "",
                "deliverables": [
                    {
                        "title": "Hosting account",
                        "doneWhen": "Feed URL is live on the host.",
                        "actions": [{"title": "Pick a host", "status": "done"}],
                    }
                ],
            },
        ],
    }


@pytest.fixture
def draft_factory():
    return make_draft


def user_headers(user_id: str = "user-1") -> Dict[str, str]:
    return {"X-User-ID": user_id}


@pytest.fixture
def headers():
    return user_headers
