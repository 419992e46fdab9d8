"""Generation worker status schemas."""
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DeadLetterOut(BaseModel):
    plan_id: UUID
    attempts: int
    error: str
    failed_at: datetime


class GenerationStatusResponse(BaseModel):
    """Response for GET /api/generation/status."""

    enabled: bool
    running: bool
    queue_size: int
    processed: int
    failed: int
    last_run_at: Optional[datetime] = None
    dead_letters: List[DeadLetterOut] = Field(default_factory=list)
