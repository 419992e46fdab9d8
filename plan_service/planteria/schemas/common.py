"""Error and message bodies shared by the routers."""
from typing import Any, Dict

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of a PlanError mapped to HTTP; the stable code is in the X-Error-Code header."""

    detail: str = Field(..., description="Human readable message, e.g. 'Outcome not found'")


class IntegrationErrorResponse(BaseModel):
    """Error body of the read-only integration API."""

    error: str = Field(..., description="Stable error code, e.g. plan_not_found")
    message: str = Field(..., description="Human readable message")


class MessageResponse(BaseModel):
    message: str


def error_responses(*status_codes: int, model: type = ErrorResponse) -> Dict[int, Dict[str, Any]]:
    """OpenAPI `responses=` entries for the given error statuses."""
    return {code: {"model": model} for code in status_codes}
