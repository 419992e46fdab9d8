"""
Async engine, session factory and request-scoped session dependency.
PostgreSQL (asyncpg) in deployments; the same models run on SQLite (aiosqlite) for tests.
"""
from collections.abc import AsyncGenerator
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from planteria.config import get_settings

settings = get_settings()


def engine_options(database_url: str) -> Dict[str, Any]:
    """create_async_engine kwargs for the URL's backend."""
    if database_url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}


engine = create_async_engine(
    settings.database_url,
    echo=settings.app_env == "local" and settings.log_level.upper() == "DEBUG",
    **engine_options(settings.database_url),
)

# autoflush is off: services flush explicitly before reading back what they wrote.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


SessionFactory = async_sessionmaker[AsyncSession]


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: commit when the handler returns, roll back if it raises."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> SessionFactory:
    """
    Dependency for multi-step flows (generate, adjust) that commit each step in its own session.
    Audit rows must survive a failure of a later step, so these flows cannot share the request session.
    """
    return async_session_factory
