"""Deliverable model: belongs to one outcome."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planteria.db import Base
from planteria.models.types import UTCDateTime


class Deliverable(Base):
    """Deliverable with an acceptance sentence (done_when) and optional notes."""

    __tablename__ = "deliverables"
    __table_args__ = (Index("ix_deliverables_outcome_order", "outcome_id", "order"),)

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    outcome_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("outcomes.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    done_when: Mapped[str] = mapped_column(Text(), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
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

    outcome = relationship("Outcome", back_populates="deliverables")
    actions = relationship("Action", back_populates="deliverable", passive_deletes=True)
