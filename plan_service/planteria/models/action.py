"""Action model: leaf of the hierarchy."""
import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from planteria.db import Base
from planteria.models.types import UTCDateTime


class Action(Base):
    """Single step of a deliverable."""

    __tablename__ = "actions"
    __table_args__ = (Index("ix_actions_deliverable_order", "deliverable_id", "order"),)

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    deliverable_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("deliverables.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
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

    deliverable = relationship("Deliverable", back_populates="actions")
