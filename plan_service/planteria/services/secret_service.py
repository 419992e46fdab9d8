"""
Secret store.
- openai: the user's own model key, Fernet-encrypted (reversible), shown back only as last four chars.
- integration: service-issued bearer key "plnt_<prefix>_<secret>", stored as prefix + salt + sha256(salt + key).
"""
import hashlib
import hmac
import re
import secrets
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.config import Settings, get_settings
from planteria.errors import SecretStoreError, ValidationFailure
from planteria.logging_config import get_logger
from planteria.models import UserApiKey

logger = get_logger(__name__)

PROVIDER_OPENAI = "openai"
PROVIDER_INTEGRATION = "integration"
OPENAI_KEY_PATTERN = re.compile(r"^sk-[A-Za-z0-9_-]{21,}$")
INTEGRATION_KEY_SCHEME = "plnt"


def _fernet(settings: Optional[Settings] = None) -> Fernet:
    settings = settings or get_settings()
    if not settings.secret_encryption_key:
        raise SecretStoreError()
    try:
        return Fernet(settings.secret_encryption_key.encode())
    except (TypeError, ValueError) as e:
        raise SecretStoreError("SECRET_ENCRYPTION_KEY is not a valid Fernet key") from e


def _hash_key(salt: str, key: str) -> str:
    return hashlib.sha256(f"{salt}{key}".encode()).hexdigest()


async def _get_key_row(db: AsyncSession, user_id: str, provider: str) -> Optional[UserApiKey]:
    r = await db.execute(
        select(UserApiKey).where(UserApiKey.user_id == user_id, UserApiKey.provider == provider)
    )
    return r.scalar_one_or_none()


async def _upsert_key_row(db: AsyncSession, user_id: str, provider: str, **values) -> UserApiKey:
    timestamp = datetime.now(timezone.utc)
    row = await _get_key_row(db, user_id, provider)
    if row is None:
        row = UserApiKey(id=uuid.uuid4(), user_id=user_id, provider=provider, created_at=timestamp)
        db.add(row)
    for name, value in values.items():
        setattr(row, name, value)
    row.updated_at = timestamp
    await db.flush()
    return row


async def _delete_key_row(db: AsyncSession, user_id: str, provider: str) -> bool:
    result = await db.execute(
        delete(UserApiKey).where(UserApiKey.user_id == user_id, UserApiKey.provider == provider)
    )
    return bool(result.rowcount)


# --- user's own OpenAI key ---


async def save_openai_key(db: AsyncSession, user_id: str, api_key: str) -> UserApiKey:
    """Validate format, encrypt and store (replaces any previous key)."""
    api_key = (api_key or "").strip()
    if not OPENAI_KEY_PATTERN.match(api_key):
        raise ValidationFailure("Invalid OpenAI API key format")
    token = _fernet().encrypt(api_key.encode()).decode()
    row = await _upsert_key_row(
        db,
        user_id,
        PROVIDER_OPENAI,
        ciphertext=token,
        last_four=api_key[-4:],
    )
    logger.info("secrets.openai_key_saved", user_id=user_id, last_four=row.last_four)
    return row


async def delete_openai_key(db: AsyncSession, user_id: str) -> bool:
    deleted = await _delete_key_row(db, user_id, PROVIDER_OPENAI)
    logger.info("secrets.openai_key_deleted", user_id=user_id, deleted=deleted)
    return deleted


async def get_openai_key_status(db: AsyncSession, user_id: str) -> Optional[UserApiKey]:
    return await _get_key_row(db, user_id, PROVIDER_OPENAI)


async def get_user_openai_key(db: AsyncSession, user_id: str) -> Optional[str]:
    """Decrypted user key, or None when the user has not stored one."""
    row = await _get_key_row(db, user_id, PROVIDER_OPENAI)
    if row is None or not row.ciphertext:
        return None
    try:
        return _fernet().decrypt(row.ciphertext.encode()).decode()
    except InvalidToken as e:
        logger.error("secrets.openai_key_undecryptable", user_id=user_id)
        raise SecretStoreError("Stored OpenAI key cannot be decrypted") from e


def resolve_openai_key(user_key: Optional[str], settings: Optional[Settings] = None) -> Optional[str]:
    """User's key first, then the service default OPENAI_API_KEY, else None."""
    if user_key and user_key.strip():
        return user_key.strip()
    settings = settings or get_settings()
    default = (settings.openai_api_key or "").strip()
    return default or None


# --- integration key ---


def _split_integration_key(api_key: str) -> Optional[Tuple[str, str]]:
    parts = (api_key or "").strip().split("_", 2)
    if len(parts) != 3 or parts[0] != INTEGRATION_KEY_SCHEME or not parts[1] or not parts[2]:
        return None
    return parts[1], parts[2]


async def issue_integration_key(db: AsyncSession, user_id: str) -> Tuple[str, UserApiKey]:
    """
    Issue a new integration key for the user, replacing the old one.
    Returns (plaintext key, row); the plaintext is not recoverable afterwards.
    """
    prefix = secrets.token_hex(4)
    api_key = f"{INTEGRATION_KEY_SCHEME}_{prefix}_{secrets.token_urlsafe(32)}"
    salt = secrets.token_hex(16)
    row = await _upsert_key_row(
        db,
        user_id,
        PROVIDER_INTEGRATION,
        key_prefix=prefix,
        salt=salt,
        hash=_hash_key(salt, api_key),
        last_four=api_key[-4:],
    )
    logger.info("secrets.integration_key_issued", user_id=user_id, key_prefix=prefix)
    return api_key, row


async def revoke_integration_key(db: AsyncSession, user_id: str) -> bool:
    revoked = await _delete_key_row(db, user_id, PROVIDER_INTEGRATION)
    logger.info("secrets.integration_key_revoked", user_id=user_id, revoked=revoked)
    return revoked


async def get_integration_key_status(db: AsyncSession, user_id: str) -> Optional[UserApiKey]:
    return await _get_key_row(db, user_id, PROVIDER_INTEGRATION)


async def resolve_user_by_integration_key(db: AsyncSession, api_key: str) -> Optional[str]:
    """Owner of a presented integration key, or None. Hash comparison is constant-time."""
    parsed = _split_integration_key(api_key)
    if parsed is None:
        return None
    prefix, _ = parsed
    r = await db.execute(
        select(UserApiKey).where(
            UserApiKey.provider == PROVIDER_INTEGRATION,
            UserApiKey.key_prefix == prefix,
        )
    )
    row = r.scalar_one_or_none()
    if row is None or not row.salt or not row.hash:
        return None
    if not hmac.compare_digest(row.hash, _hash_key(row.salt, api_key.strip())):
        return None
    return row.user_id
