# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# Shape of data going OUT of the API. Session responses are built from the
# ORM row but never carry the raw embedding vector.
# =============================================================================

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Response for GET /health."""

    status: str = "ok"
    version: str
    service: str


class SourceRef(BaseModel):
    """A session the chat answer drew on."""

    session_id: str
    session_name: str


class ChatResponse(BaseModel):
    """
    Response for POST /chat.

    `answer` is a JSON string of the form
    {"answer": {"en", "fr"}, "question": {"en", "fr"}}, or a plain localized
    sentence when none of the caller's sessions matched.
    """

    answer: str
    sources: list[SourceRef] = Field(default_factory=list)


class AnalyzeResponse(BaseModel):
    """Response for POST /analyze and POST /sessions/{id}/analysis."""

    text: str
    language: str | None = None
    cached: bool = False


class SessionResponse(BaseModel):
    """A saved session, without derived vector data."""

    id: str
    user_id: str
    session_name: str
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    data: dict[str, Any] | None = None
    has_embedding: bool = False
    ai_analysis: str | None = None
    ai_analysis_language: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_row(cls, row: Any) -> "SessionResponse":
        response = cls.model_validate(row)
        response.has_embedding = row.embedding is not None
        return response


class BackfillResponse(BaseModel):
    """Response for POST /admin/backfill-embeddings."""

    message: str = "Backfill complete"
    total: int
    processed: int
    skipped: int
    errors: int


class ApiKeyCreatedResponse(BaseModel):
    """
    Response for POST /admin/keys. `key` is shown exactly once; only its
    hash is stored.
    """

    key: str
    key_prefix: str
    user_id: str
    name: str
    expires_at: datetime | None = None
