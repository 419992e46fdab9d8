"""Per-user secrets: the user's own model key (encrypted) and the integration key (salted hash)."""
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from planteria.db import Base
from planteria.models.types import UTCDateTime


class UserApiKey(Base):
    """
    provider=openai: ciphertext holds the Fernet token of the user's key.
    provider=integration: key_prefix is the public lookup part, hash = sha256(salt + key).
    """

    __tablename__ = "user_api_keys"
    __table_args__ = (UniqueConstraint("user_id", "provider", name="ux_user_api_keys_user_provider"),)

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    ciphertext: Mapped[Optional[str]] = mapped_column(Text(), nullable=True)
    key_prefix: Mapped[Optional[str]] = mapped_column(String(32), nullable=True, unique=True)
    hash: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    salt: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    last_four: Mapped[str] = mapped_column(String(8), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
    )
