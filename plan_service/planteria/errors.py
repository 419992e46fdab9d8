"""
Domain errors for the plan hierarchy.
Every error is a ValueError whose str() is a stable snake_case code (same convention as the
ValueError("plan_not_found") codes the routers switch on); `message` is the human-readable text.
"""
from typing import Optional


class PlanError(ValueError):
    """Base class: code for routing, message for people."""

    code = "plan_error"
    default_message = "Plan operation failed"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None) -> None:
        if code is not None:
            self.code = code
        self.message = message or self.default_message
        super().__init__(self.code)

    def __str__(self) -> str:
        return self.code


class Unauthenticated(PlanError):
    code = "unauthenticated"
    default_message = "Unauthorized"


class AccessDenied(PlanError):
    code = "access_denied"
    default_message = "Access denied"


class NotFound(PlanError):
    """Missing entity, reported at the most specific level of the ownership chain."""

    def __init__(self, level: str, message: Optional[str] = None) -> None:
        self.level = level
        super().__init__(
            message or f"{level.capitalize()} not found",
            code=f"{level}_not_found",
        )


class MalformedId(PlanError):
    """Identifier that cannot be parsed at all (distinct from a well-formed id that does not exist)."""

    def __init__(self, level: str = "plan") -> None:
        self.level = level
        super().__init__(f"{level} id is not a valid identifier", code=f"malformed_{level}_id")


class ValidationFailure(PlanError):
    code = "validation_failed"
    default_message = "Input violates schema bounds"

    def __init__(self, message: Optional[str] = None, errors: Optional[list] = None) -> None:
        self.errors = errors or []
        super().__init__(message)


class ConsistencyFailure(PlanError):
    code = "plan_idea_mismatch"
    default_message = "Plan idea mismatch"


class EventAlreadyFinal(PlanError):
    code = "event_not_pending"
    default_message = "Adjustment event already reached a terminal status"


class MissingApiKey(PlanError):
    code = "missing_api_key"
    default_message = "OpenAI API key required. Add one from Settings."


class UpstreamFailure(PlanError):
    code = "upstream_failure"
    default_message = "Model service call failed"


class PartialApplyFailure(PlanError):
    code = "partial_apply_failure"
    default_message = "Plan replacement was interrupted"


class SecretStoreError(PlanError):
    code = "secret_store_unavailable"
    default_message = "Secret store is not configured"


def format_error_message(error: BaseException) -> str:
    """Readable text for any exception (PlanError.message, else str(), else class name)."""
    if isinstance(error, PlanError):
        return error.message
    text = str(error).strip()
    if text:
        return text
    return type(error).__name__ or "Unknown error"


def truncate_message(message: str, limit: int) -> str:
    """Cap persisted error text; keeps the '...' marker inside the limit."""
    if len(message) <= limit:
        return message
    return f"{message[: max(0, limit - 3)]}..."
