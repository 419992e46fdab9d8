# Health: /health (load balancer), /api/healthz (liveness), /api/readyz (DB, Redis when configured, worker).
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from planteria import __version__
from planteria.config import get_settings
from planteria.db import get_db
from planteria.logging_config import get_logger
from planteria.services.generation_worker import get_generation_status

router = APIRouter(tags=["health"])
logger = get_logger(__name__)


def _unhealthy(**checks: str) -> JSONResponse:
    return JSONResponse(status_code=503, content={"status": "unhealthy", **checks})


@router.get("/health")
def health() -> dict[str, str]:
    """Load balancer health check with service name and version."""
    return {"status": "ok", "service": "planteria", "version": __version__}


@router.get("/api/healthz")
def healthz() -> dict[str, str]:
    """Liveness: the process is up. Always 200."""
    return {"status": "ok"}


async def _redis_state(redis_url: str) -> str:
    client = Redis.from_url(redis_url, decode_responses=True)
    try:
        await client.ping()
    finally:
        await client.aclose()
    return "ok"


@router.get("/api/readyz")
async def readyz(db: AsyncSession = Depends(get_db)):
    """
    Readiness: 200 when the database answers and Redis (if REDIS_URL is set) pings, else 503.
    The generation worker state is reported but never fails readiness.
    """
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("readyz.db_fail", error=str(e))
        return _unhealthy(db="fail")

    settings = get_settings()
    redis_state = "skipped"
    if settings.redis_url:
        try:
            redis_state = await _redis_state(settings.redis_url)
        except (RedisError, OSError) as e:
            logger.warning("readyz.redis_fail", error=str(e))
            return _unhealthy(db="ok", redis="fail")

    worker = get_generation_status()
    return {
        "status": "ok",
        "db": "ok",
        "redis": redis_state,
        "generation_worker": "running" if worker["running"] else "stopped",
        "generation_queue": worker["queue_size"],
    }
