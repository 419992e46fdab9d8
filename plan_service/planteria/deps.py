"""Request dependencies: caller identity and PlanError -> HTTP mapping."""
from typing import Optional

from fastapi import Header, HTTPException, status

from planteria.errors import PlanError, Unauthenticated

HEADER_USER_ID = "X-User-ID"

STATUS_BY_CODE = {
    "unauthenticated": status.HTTP_401_UNAUTHORIZED,
    "access_denied": status.HTTP_403_FORBIDDEN,
    "validation_failed": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "plan_idea_mismatch": status.HTTP_409_CONFLICT,
    "event_not_pending": status.HTTP_409_CONFLICT,
    "missing_api_key": status.HTTP_400_BAD_REQUEST,
    "upstream_failure": status.HTTP_502_BAD_GATEWAY,
    "partial_apply_failure": status.HTTP_500_INTERNAL_SERVER_ERROR,
    "secret_store_unavailable": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def http_status_for(error: PlanError) -> int:
    """404 for every *_not_found, 400 for malformed ids, table lookup otherwise."""
    if error.code.endswith("_not_found"):
        return status.HTTP_404_NOT_FOUND
    if error.code.startswith("malformed_"):
        return status.HTTP_400_BAD_REQUEST
    return STATUS_BY_CODE.get(error.code, status.HTTP_400_BAD_REQUEST)


def to_http_exception(error: PlanError) -> HTTPException:
    """HTTPException with detail = human message; the code travels in X-Error-Code."""
    return HTTPException(
        status_code=http_status_for(error),
        detail=error.message,
        headers={"X-Error-Code": error.code},
    )


async def get_current_user_id(
    x_user_id: Optional[str] = Header(None, alias=HEADER_USER_ID),
) -> str:
    """Caller identity set by the auth gateway. Missing -> 401."""
    user_id = (x_user_id or "").strip()
    if not user_id:
        raise to_http_exception(Unauthenticated())
    return user_id
