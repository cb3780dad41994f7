# =============================================================================
# Sessions API — Owner-Scoped CRUD for Report Sessions
# =============================================================================
#
#   POST   /sessions                    create
#   GET    /sessions                    list (most recently updated first)
#   GET    /sessions/{id}               read
#   PUT    /sessions/{id}               partial update
#   DELETE /sessions/{id}               delete
#   POST   /sessions/{id}/duplicate     copy under a new name
#
# Each write queues the embedding maintainer through the repository. A
# session owned by another user answers 404, exactly like a missing one.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from report_assistant.api.deps import get_current_user_id, get_session_repository
from report_assistant.models.requests import SessionCreate, SessionDuplicate, SessionUpdate
from report_assistant.models.responses import SessionResponse
from report_assistant.services.session_repository import (
    SessionNotFoundError,
    SessionRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def _not_found(session_id: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"Session {session_id} not found.")


@router.post("", response_model=SessionResponse, status_code=201)
async def create_session(
    request: SessionCreate,
    user_id: str = Depends(get_current_user_id),
    repository: SessionRepository = Depends(get_session_repository),
) -> SessionResponse:
    row = await repository.create(
        user_id=user_id,
        session_name=request.session_name,
        data=request.data,
        description=request.description,
        start_date=request.start_date,
        end_date=request.end_date,
        session_id=request.id,
    )
    return SessionResponse.from_row(row)


@router.get("", response_model=list[SessionResponse])
async def list_sessions(
    user_id: str = Depends(get_current_user_id),
    repository: SessionRepository = Depends(get_session_repository),
) -> list[SessionResponse]:
    rows = await repository.list_for_user(user_id)
    return [SessionResponse.from_row(row) for row in rows]


@router.get("/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: SessionRepository = Depends(get_session_repository),
) -> SessionResponse:
    try:
        row = await repository.get(user_id, session_id)
    except SessionNotFoundError as e:
        raise _not_found(session_id) from e
    return SessionResponse.from_row(row)


@router.put("/{session_id}", response_model=SessionResponse)
async def update_session(
    session_id: str,
    request: SessionUpdate,
    user_id: str = Depends(get_current_user_id),
    repository: SessionRepository = Depends(get_session_repository),
) -> SessionResponse:
    try:
        row = await repository.update(
            user_id,
            session_id,
            request.model_dump(exclude_unset=True),
        )
    except SessionNotFoundError as e:
        raise _not_found(session_id) from e
    return SessionResponse.from_row(row)


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: SessionRepository = Depends(get_session_repository),
) -> None:
    try:
        await repository.delete(user_id, session_id)
    except SessionNotFoundError as e:
        raise _not_found(session_id) from e


@router.post(
    "/{session_id}/duplicate",
    response_model=SessionResponse,
    status_code=201,
)
async def duplicate_session(
    session_id: str,
    request: SessionDuplicate,
    user_id: str = Depends(get_current_user_id),
    repository: SessionRepository = Depends(get_session_repository),
) -> SessionResponse:
    try:
        row = await repository.duplicate(user_id, session_id, request.new_name)
    except SessionNotFoundError as e:
        raise _not_found(session_id) from e

    logger.info("Duplicated session %s as %s", session_id, row.id)
    return SessionResponse.from_row(row)
