# Correlation-ID middleware: take X-Correlation-ID (or X-Request-Id from integration clients) or mint one,
# bind it into the structlog context and echo it on the response.
import uuid
from typing import Callable

import structlog.contextvars
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from planteria.logging_config import get_logger

logger = get_logger(__name__)

HEADER_CORRELATION_ID = "X-Correlation-ID"
HEADER_REQUEST_ID = "X-Request-Id"


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Bind correlation_id to the request's log context and response header."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get(HEADER_CORRELATION_ID, "").strip()
            or request.headers.get(HEADER_REQUEST_ID, "").strip()
            or str(uuid.uuid4())
        )
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(correlation_id=correlation_id, path=request.url.path)

        response = await call_next(request)
        response.headers[HEADER_CORRELATION_ID] = correlation_id
        return response
