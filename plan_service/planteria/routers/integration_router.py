"""
Read-only integration API for third-party agents (MCP-style tools).
Auth: Authorization: Bearer <integration key> (issued via POST /api/keys/integration).
Errors are {"error": code, "message": text}: 401 missing_api_key | invalid_api_key,
400 invalid_json | invalid_plan_id | malformed_plan_id, 404 plan_not_found (absent or someone else's plan).
"""
import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.config import get_settings
from planteria.db import get_db
from planteria.errors import AccessDenied, MalformedId, NotFound
from planteria.logging_config import get_logger
from planteria.schemas.common import IntegrationErrorResponse, error_responses
from planteria.schemas.plans import PendingWorkOut, PlanDetailsOut, PlanOut, PlansResponse
from planteria.services.resolver_service import list_recent_plans, resolve_pending_work, resolve_plan_details
from planteria.services.secret_service import resolve_user_by_integration_key
from planteria.utils.ids import parse_id

router = APIRouter(
    prefix="/mcp",
    tags=["integration"],
    responses=error_responses(400, 401, 404, model=IntegrationErrorResponse),
)
logger = get_logger(__name__)

# agents never see more than this many plans, whatever INTEGRATION_PLAN_LIMIT says
MAX_INTEGRATION_PLANS = 5


class IntegrationError(Exception):
    """Early exit carrying the integration error body."""

    def __init__(self, status_code: int, error: str, message: str) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.message = message

    def response(self) -> JSONResponse:
        return JSONResponse(
            status_code=self.status_code,
            content={"error": self.error, "message": self.message},
        )


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "").strip()
    if not header:
        return None
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


async def _authenticate(request: Request, db: AsyncSession) -> str:
    token = _bearer_token(request)
    if token is None:
        raise IntegrationError(status.HTTP_401_UNAUTHORIZED, "missing_api_key", "Missing bearer API key")
    user_id = await resolve_user_by_integration_key(db, token)
    if user_id is None:
        logger.info("integration.invalid_key")
        raise IntegrationError(status.HTTP_401_UNAUTHORIZED, "invalid_api_key", "Invalid API key")
    return user_id


async def _read_plan_id(request: Request) -> Any:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise IntegrationError(status.HTTP_400_BAD_REQUEST, "invalid_json", "Request body must be JSON")
    raw = body.get("planId", body.get("plan_id")) if isinstance(body, dict) else None
    if not isinstance(raw, str) or not raw.strip():
        raise IntegrationError(status.HTTP_400_BAD_REQUEST, "invalid_plan_id", "planId is required")
    try:
        return parse_id(raw, "plan")
    except MalformedId:
        raise IntegrationError(status.HTTP_400_BAD_REQUEST, "malformed_plan_id", "planId is not a valid identifier")


def _plan_not_found() -> IntegrationError:
    return IntegrationError(status.HTTP_404_NOT_FOUND, "plan_not_found", "Plan not found")


@router.get("/plans", response_model=PlansResponse)
async def get_recent_plans(request: Request, db: AsyncSession = Depends(get_db)):
    """Up to 5 most recently updated plans of the key owner."""
    try:
        user_id = await _authenticate(request, db)
    except IntegrationError as e:
        return e.response()
    limit = min(get_settings().integration_plan_limit, MAX_INTEGRATION_PLANS)
    plans = await list_recent_plans(db, user_id, limit=limit)
    return PlansResponse(plans=[PlanOut.model_validate(p) for p in plans])


@router.post("/pending-work", response_model=PendingWorkOut)
async def post_pending_work(request: Request, db: AsyncSession = Depends(get_db)):
    """Next actionable step of one plan. Body: {"planId": "..."}."""
    try:
        user_id = await _authenticate(request, db)
        plan_id = await _read_plan_id(request)
        try:
            return await resolve_pending_work(db, user_id, plan_id)
        except (NotFound, AccessDenied):
            raise _plan_not_found()
    except IntegrationError as e:
        return e.response()


@router.post("/plan-details", response_model=PlanDetailsOut)
async def post_plan_details(request: Request, db: AsyncSession = Depends(get_db)):
    """Whole plan tree. Body: {"planId": "..."}."""
    try:
        user_id = await _authenticate(request, db)
        plan_id = await _read_plan_id(request)
        try:
            return await resolve_plan_details(db, user_id, plan_id)
        except (NotFound, AccessDenied):
            raise _plan_not_found()
    except IntegrationError as e:
        return e.response()
