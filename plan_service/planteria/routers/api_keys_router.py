"""Key management: the user's own OpenAI key and the integration (bearer) key."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from planteria.db import get_db
from planteria.deps import get_current_user_id, to_http_exception
from planteria.errors import PlanError
from planteria.schemas.api_keys import ApiKeyStatusOut, IntegrationKeyIssuedOut, OpenAiKeyIn
from planteria.schemas.common import MessageResponse, error_responses
from planteria.services.secret_service import (
    PROVIDER_OPENAI,
    delete_openai_key,
    get_openai_key_status,
    issue_integration_key,
    revoke_integration_key,
    save_openai_key,
)

router = APIRouter(prefix="/api/keys", tags=["keys"], responses=error_responses(401, 503))


@router.get("/openai", response_model=ApiKeyStatusOut)
async def get_openai_key(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ApiKeyStatusOut:
    """Whether a personal key is stored, with its last four characters."""
    row = await get_openai_key_status(db, user_id)
    if row is None:
        return ApiKeyStatusOut(provider=PROVIDER_OPENAI, has_key=False)
    return ApiKeyStatusOut(
        provider=PROVIDER_OPENAI,
        has_key=True,
        last_four=row.last_four,
        updated_at=row.updated_at,
    )


@router.put("/openai", response_model=ApiKeyStatusOut)
async def put_openai_key(
    payload: OpenAiKeyIn,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ApiKeyStatusOut:
    """Store (or replace) the personal OpenAI key. 422 on a malformed key, 503 if encryption is not configured."""
    try:
        row = await save_openai_key(db, user_id, payload.api_key)
    except PlanError as e:
        raise to_http_exception(e) from e
    return ApiKeyStatusOut(
        provider=PROVIDER_OPENAI,
        has_key=True,
        last_four=row.last_four,
        updated_at=row.updated_at,
    )


@router.delete("/openai", response_model=MessageResponse)
async def delete_openai_key_endpoint(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    deleted = await delete_openai_key(db, user_id)
    return MessageResponse(message="OpenAI key deleted" if deleted else "No OpenAI key stored")


@router.post("/integration", response_model=IntegrationKeyIssuedOut, status_code=status.HTTP_201_CREATED)
async def post_integration_key(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> IntegrationKeyIssuedOut:
    """Issue a new integration key (replaces the previous one). The key is shown only in this response."""
    api_key, row = await issue_integration_key(db, user_id)
    return IntegrationKeyIssuedOut(
        api_key=api_key,
        key_prefix=row.key_prefix,
        last_four=row.last_four,
        created_at=row.updated_at,
    )


@router.delete("/integration", response_model=MessageResponse)
async def delete_integration_key(
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    revoked = await revoke_integration_key(db, user_id)
    return MessageResponse(message="Integration key revoked" if revoked else "No integration key issued")
