"""Key management schemas: the user's own model key and the integration key."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class OpenAiKeyIn(BaseModel):
    """Body for PUT /api/keys/openai."""

    api_key: str = Field(..., description="OpenAI secret key (sk-...)")


class ApiKeyStatusOut(BaseModel):
    """Stored key metadata; the secret itself is never returned."""

    provider: str
    has_key: bool
    last_four: Optional[str] = None
    updated_at: Optional[datetime] = None


class IntegrationKeyIssuedOut(BaseModel):
    """Returned once when the integration key is issued; only the hash is kept."""

    api_key: str
    key_prefix: str
    last_four: str
    created_at: Optional[datetime] = None
