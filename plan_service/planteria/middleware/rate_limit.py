"""
Per-caller rate limit over a Redis sorted-set sliding window.
Caller is X-User-ID for the app API and the bearer key for /mcp; anonymous requests are not limited.
Without REDIS_URL the middleware is a pass-through; Redis errors let the request through.
"""
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware

from planteria.config import get_settings
from planteria.logging_config import get_logger

logger = get_logger(__name__)

REDIS_KEY_PREFIX = "planteria:rl:"
WINDOW_SECONDS = 60


def rate_limit_key(request: Request) -> Optional[str]:
    user = request.headers.get("X-User-ID", "").strip()
    if user:
        return f"user:{user}"
    scheme, _, token = request.headers.get("Authorization", "").strip().partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        # plnt_<prefix>_... : the prefix identifies the key without keeping the secret in Redis
        return f"key:{token.strip()[:13]}"
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    """RATE_LIMIT_PER_MIN requests per caller per rolling minute; 429 with Retry-After beyond that."""

    def __init__(self, app) -> None:  # noqa: ANN001
        super().__init__(app)
        self._redis: Optional[Redis] = None

    def _client(self, redis_url: str) -> Redis:
        if self._redis is None:
            self._redis = Redis.from_url(redis_url, decode_responses=True)
        return self._redis

    async def _window_count(self, redis_url: str, key: str) -> int:
        now = time.time()
        rkey = REDIS_KEY_PREFIX + key
        pipe = self._client(redis_url).pipeline()
        pipe.zremrangebyscore(rkey, "-inf", now - WINDOW_SECONDS)
        pipe.zadd(rkey, {uuid.uuid4().hex: now})
        pipe.zcard(rkey)
        pipe.expire(rkey, WINDOW_SECONDS + 10)
        _, _, count, _ = await pipe.execute()
        return int(count)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        settings = get_settings()
        key = rate_limit_key(request) if settings.redis_url else None
        if key is None:
            return await call_next(request)
        try:
            count = await self._window_count(settings.redis_url, key)
        except (RedisError, OSError) as e:
            logger.warning("rate_limit.redis_error", key=key, error=str(e))
            return await call_next(request)
        if count > settings.rate_limit_per_min:
            logger.info("rate_limit.exceeded", key=key, limit=settings.rate_limit_per_min, count=count)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded, retry in a minute."},
                headers={"Retry-After": str(WINDOW_SECONDS)},
            )
        return await call_next(request)
