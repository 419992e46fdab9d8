"""Outcome model: first level under a plan."""
import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planteria.db import Base
from planteria.models.types import UTCDateTime

NODE_STATUSES = ("todo", "doing", "done")


class Outcome(Base):
    """
    Outcome of a plan. order is dense (0..n-1) among the outcomes of one plan.
    Marking an outcome done forces every deliverable and action below it to done.
    """

    __tablename__ = "outcomes"
    __table_args__ = (Index("ix_outcomes_plan_order", "plan_id", "order"),)

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
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    summary: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="todo")
    order: Mapped[int] = mapped_column("order", Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
    )

    plan = relationship("Plan", back_populates="outcomes")
    deliverables = relationship("Deliverable", back_populates="outcome", passive_deletes=True)
