"""Plan -> model conversation affinity: one reusable thread handle per plan."""
import uuid
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.db import SessionFactory
from planteria.logging_config import get_logger
from planteria.models import PlanThread
from planteria.services.ownership_service import require_plan_ownership

logger = get_logger(__name__)

ThreadFactory = Callable[[Dict[str, str]], Awaitable[str]]


async def find_plan_thread(db: AsyncSession, plan_id: UUID) -> Optional[PlanThread]:
    r = await db.execute(select(PlanThread).where(PlanThread.plan_id == plan_id))
    return r.scalar_one_or_none()


async def get_or_create_plan_thread(
    session_factory: SessionFactory,
    plan_id: UUID,
    user_id: str,
    create_thread: ThreadFactory,
) -> str:
    """
    Return the plan's thread id, creating one through create_thread(metadata) when the plan has none.
    Lookup and insert run in separate sessions; none is open while create_thread talks to the model.
    plan_threads.plan_id is unique, so when a concurrent caller stored a handle first, that one is returned.
    """
    async with session_factory() as db:
        await require_plan_ownership(db, user_id, plan_id)
        existing = await find_plan_thread(db, plan_id)
        if existing is not None:
            return existing.thread_id

    thread_id = await create_thread({"plan_id": str(plan_id), "user_id": user_id})

    async with session_factory() as db:
        timestamp = datetime.now(timezone.utc)
        db.add(
            PlanThread(
                id=uuid.uuid4(),
                plan_id=plan_id,
                thread_id=thread_id,
                created_at=timestamp,
                updated_at=timestamp,
            )
        )
        try:
            await db.commit()
        except IntegrityError:
            await db.rollback()
            existing = await find_plan_thread(db, plan_id)
            if existing is None:
                raise
            logger.info("thread.lost_race", plan_id=str(plan_id), discarded_thread_id=thread_id)
            return existing.thread_id
    logger.info("thread.created", plan_id=str(plan_id), thread_id=thread_id)
    return thread_id
