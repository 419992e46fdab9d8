"""Plan model: root of the Outcome -> Deliverable -> Action hierarchy, owned by one user."""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planteria.db import Base
from planteria.models.types import UTCDateTime

PLAN_STATUSES = ("scraping", "generating", "ready", "error")


class Plan(Base):
    """
    One user's idea-to-execution plan.
    status: scraping | generating | ready | error (generation lifecycle).
    idea is never rewritten after creation; adjustments are checked against it.
    research_insights: [{"title": "...", "url": "...", "snippet": "..."}, ...]
    """

    __tablename__ = "plans"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    idea: Mapped[str] = mapped_column(Text(), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    summary: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="scraping")
    generation_error: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    research_insights: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
    )

    outcomes = relationship("Outcome", back_populates="plan", passive_deletes=True)
    threads = relationship("PlanThread", back_populates="plan", passive_deletes=True)
    adjustment_events = relationship(
        "PlanAdjustmentEvent",
        back_populates="plan",
        passive_deletes=True,
    )
