"""Key vault: encrypted user model keys and hashed integration keys."""
from unittest.mock import patch

import pytest

from planteria.config import get_settings
from planteria.errors import SecretStoreError, ValidationFailure
from planteria.services.secret_service import (
    delete_openai_key,
    get_integration_key_status,
    get_openai_key_status,
    get_user_openai_key,
    issue_integration_key,
    resolve_openai_key,
    resolve_user_by_integration_key,
    revoke_integration_key,
    save_openai_key,
)

from conftest import VALID_OPENAI_KEY


@pytest.mark.asyncio
async def test_openai_key_is_encrypted_at_rest(db) -> None:
    row = await save_openai_key(db, "user-1", f"  {VALID_OPENAI_KEY}  ")
    assert row.ciphertext != VALID_OPENAI_KEY
    assert VALID_OPENAI_KEY not in row.ciphertext
    assert row.last_four == VALID_OPENAI_KEY[-4:]
    assert await get_user_openai_key(db, "user-1") == VALID_OPENAI_KEY
    assert await get_user_openai_key(db, "user-2") is None


@pytest.mark.asyncio
async def test_saving_again_replaces_the_key(db) -> None:
    await save_openai_key(db, "user-1", VALID_OPENAI_KEY)
    replacement = "sk-proj-ZYXWVUTSRQPONMLKJIHGFEDCBA9876"
    await save_openai_key(db, "user-1", replacement)
    assert await get_user_openai_key(db, "user-1") == replacement
    status = await get_openai_key_status(db, "user-1")
    assert status.last_four == "9876"


@pytest.mark.asyncio
async def test_malformed_openai_key_is_rejected(db) -> None:
    with pytest.raises(ValidationFailure) as exc_info:
        await save_openai_key(db, "user-1", "not-a-key")
    assert exc_info.value.message == "Invalid OpenAI API key format"
    assert await get_openai_key_status(db, "user-1") is None


@pytest.mark.asyncio
async def test_delete_openai_key(db) -> None:
    await save_openai_key(db, "user-1", VALID_OPENAI_KEY)
    assert await delete_openai_key(db, "user-1") is True
    assert await delete_openai_key(db, "user-1") is False
    assert await get_user_openai_key(db, "user-1") is None


@pytest.mark.asyncio
async def test_vault_refuses_without_encryption_key(db) -> None:
    settings = get_settings().model_copy(update={"secret_encryption_key": None})
    with patch("planteria.services.secret_service.get_settings", return_value=settings):
        with pytest.raises(SecretStoreError):
            await save_openai_key(db, "user-1", VALID_OPENAI_KEY)


def test_resolve_openai_key_prefers_user_key() -> None:
    settings = get_settings().model_copy(update={"openai_api_key": "sk-service-default"})
    assert resolve_openai_key(VALID_OPENAI_KEY, settings) == VALID_OPENAI_KEY
    assert resolve_openai_key(None, settings) == "sk-service-default"
    assert resolve_openai_key("   ", settings) == "sk-service-default"
    empty = settings.model_copy(update={"openai_api_key": "  "})
    assert resolve_openai_key(None, empty) is None


@pytest.mark.asyncio
async def test_integration_key_resolves_its_owner(db) -> None:
    api_key, row = await issue_integration_key(db, "user-1")
    assert api_key.startswith(f"plnt_{row.key_prefix}_")
    assert row.hash != api_key
    assert row.last_four == api_key[-4:]
    assert await resolve_user_by_integration_key(db, api_key) == "user-1"
    assert await resolve_user_by_integration_key(db, api_key + "x") is None
    assert await resolve_user_by_integration_key(db, "plnt_deadbeef_nothing") is None
    assert await resolve_user_by_integration_key(db, "garbage") is None


@pytest.mark.asyncio
async def test_reissuing_invalidates_the_old_integration_key(db) -> None:
    old_key, _ = await issue_integration_key(db, "user-1")
    new_key, _ = await issue_integration_key(db, "user-1")
    assert await resolve_user_by_integration_key(db, old_key) is None
    assert await resolve_user_by_integration_key(db, new_key) == "user-1"

    assert await revoke_integration_key(db, "user-1") is True
    assert await resolve_user_by_integration_key(db, new_key) is None
    assert await get_integration_key_status(db, "user-1") is None
