# =============================================================================
# API Dependencies — Authentication & Shared Resources
# =============================================================================
#
# FastAPI dependencies used across the routers:
#
#   get_current_user_id()   — Bearer API key → owning user id
#   require_admin_key()     — X-Admin-Key header check for /admin routes
#   get_session_repository()— request-scoped SessionRepository
#   get_index()             — the session vector index
#
# Every user-facing endpoint depends on get_current_user_id(), and every
# data access downstream is scoped to the id it returns. Tests replace any
# of these through app.dependency_overrides.
# =============================================================================

from __future__ import annotations

import logging
from datetime import UTC, datetime

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from report_assistant.config import Settings, get_settings
from report_assistant.db.engine import get_async_session
from report_assistant.db.models import ApiKey
from report_assistant.services.auth import (
    admin_key_matches,
    hash_api_key,
    key_rejection_reason,
)
from report_assistant.services.session_index import SessionIndex, get_session_index
from report_assistant.services.session_repository import SessionRepository

logger = logging.getLogger(__name__)

# auto_error=False so a missing header yields our own 401 message
_bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    session: AsyncSession = Depends(get_async_session),
) -> str:
    """
    Resolve the caller from `Authorization: Bearer <key>`.

    Raises:
        HTTPException 401: header missing or key unknown
        HTTPException 403: key deactivated or expired
    """
    if credentials is None:
        raise HTTPException(
            status_code=401,
            detail="You must be signed in. Provide "
            "'Authorization: Bearer <key>' header.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    stmt = select(ApiKey).where(ApiKey.key_hash == hash_api_key(credentials.credentials))
    result = await session.execute(stmt)
    api_key = result.scalar_one_or_none()

    if api_key is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid API key.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    reason = key_rejection_reason(api_key.is_active, api_key.expires_at)
    if reason is not None:
        logger.warning("Rejected API key %s: %s", api_key.key_prefix, reason)
        raise HTTPException(status_code=403, detail=reason)

    api_key.last_used_at = datetime.now(UTC)
    return api_key.user_id


def require_admin_key(
    x_admin_key: str | None = Header(default=None, alias="X-Admin-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """403 unless X-Admin-Key matches the configured admin key."""
    if not admin_key_matches(x_admin_key, settings.admin_api_key):
        raise HTTPException(status_code=403, detail="Forbidden")


async def get_session_repository(
    session: AsyncSession = Depends(get_async_session),
) -> SessionRepository:
    return SessionRepository(session)


def get_index() -> SessionIndex:
    return get_session_index()
