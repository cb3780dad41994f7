# =============================================================================
# Admin API — Key Issuance & Embedding Backfill
# =============================================================================
#
# Both endpoints are guarded by the shared X-Admin-Key header rather than a
# user key: they act across users.
#
#   POST /admin/keys                  issue a bearer key for a user
#   POST /admin/backfill-embeddings   embed every session lacking a vector
#
# The raw API key is only returned ONCE, at creation; afterwards only its
# prefix is visible.
#
# DESIGN DECISION: The backfill runs inline (in a worker thread) and returns
# its counts in the response. For very large collections the Celery task
# `backfill_embeddings` runs the same sweep in the background.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from report_assistant.api.deps import require_admin_key
from report_assistant.db.engine import get_async_session
from report_assistant.db.models import ApiKey
from report_assistant.models.requests import CreateApiKeyRequest
from report_assistant.models.responses import ApiKeyCreatedResponse, BackfillResponse
from report_assistant.services.auth import generate_api_key
from report_assistant.services.backfill import run_backfill
from report_assistant.services.session_index import get_session_index

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin_key)],
)


@router.post(
    "/keys",
    response_model=ApiKeyCreatedResponse,
    status_code=201,
    summary="Issue an API key for a user",
)
async def create_api_key(
    request: CreateApiKeyRequest,
    session: AsyncSession = Depends(get_async_session),
) -> ApiKeyCreatedResponse:
    raw_key, key_prefix, key_hash = generate_api_key()

    expires_at = None
    if request.expires_in_days is not None:
        expires_at = datetime.now(UTC) + timedelta(days=request.expires_in_days)

    new_key = ApiKey(
        user_id=request.user_id,
        name=request.name,
        key_prefix=key_prefix,
        key_hash=key_hash,
        is_active=True,
        expires_at=expires_at,
    )
    session.add(new_key)
    await session.commit()

    logger.info(
        "API key created: user_id=%s, name='%s', prefix='%s'",
        request.user_id, request.name, key_prefix,
    )

    return ApiKeyCreatedResponse(
        key=raw_key,
        key_prefix=key_prefix,
        user_id=request.user_id,
        name=request.name,
        expires_at=expires_at,
    )


@router.post(
    "/backfill-embeddings",
    response_model=BackfillResponse,
    summary="Embed all sessions that have no embedding yet",
)
async def backfill_embeddings_endpoint() -> BackfillResponse:
    # The sweep uses the sync engine and sleeps between calls
    summary = await asyncio.to_thread(run_backfill, get_session_index())
    return BackfillResponse(message="Backfill complete", **summary.to_dict())
