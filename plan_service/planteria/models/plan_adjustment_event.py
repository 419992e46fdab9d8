"""Audit log model: one row per AI generation / adjustment attempt."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planteria.db import Base
from planteria.models.types import UTCDateTime

EVENT_STATUSES = ("pending", "applied", "error")


class PlanAdjustmentEvent(Base):
    """
    Audit row for a model call against a plan.
    status: pending -> applied | error. Terminal rows are never updated again.
    Rows go away only with their plan.
    """

    __tablename__ = "plan_adjustment_events"
    __table_args__ = (Index("ix_plan_adjustment_events_plan_created", "plan_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    plan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("plans.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    thread_id: Mapped[str] = mapped_column(String(255), nullable=False)
    prompt: Mapped[str] = mapped_column(Text(), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    summary: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    applied_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    latency_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
    )

    plan = relationship("Plan", back_populates="adjustment_events")
