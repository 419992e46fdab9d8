"""
Normalise identifiers and list limits coming from query strings or JSON bodies.
Path parameters are typed as UUID by FastAPI; these helpers cover values read by hand.
"""
from typing import Any, Optional
from uuid import UUID

from planteria.errors import MalformedId


def parse_id(value: Any, level: str = "plan") -> UUID:
    """
    Parse a UUID given as str or UUID.
    Raises MalformedId(level) for anything that is not a well-formed identifier.
    """
    if isinstance(value, UUID):
        return value
    if not isinstance(value, str):
        raise MalformedId(level)
    try:
        return UUID(value.strip())
    except ValueError as e:
        raise MalformedId(level) from e


def clamp_limit(value: Optional[int], default: int, minimum: int = 1, maximum: int = 100) -> int:
    """None -> default; otherwise forced into [minimum, maximum]."""
    if value is None:
        return default
    return max(minimum, min(maximum, int(value)))
