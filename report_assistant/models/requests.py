# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# Shape of data coming INTO the API. Schema violations become automatic 422
# responses; semantic checks (blank question, missing analysis payload) are
# left to the services so they can answer 400 with a specific message.
# =============================================================================

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatTurn(BaseModel):
    """One prior message of the conversation."""

    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """
    Request body for POST /chat.

    Example:
        {
            "question": "Which session had the highest salary mass?",
            "history": [],
            "language": "en"
        }
    """

    # Blank questions are rejected with 400 by the chat service
    question: str = Field(
        default="",
        max_length=4000,
        description="Natural-language question about your saved sessions",
        examples=["Compare production execution between Q1 and Q2"],
    )
    history: list[ChatTurn] = Field(
        default_factory=list,
        description="Previous turns; only the most recent ones are used",
    )
    language: str = Field(
        default="en",
        description="UI language. Values starting with 'fr' select French",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "question": "How many staff did we have in March?",
                    "history": [],
                    "language": "en",
                },
            ]
        }
    )


class AnalyzeRequest(BaseModel):
    """Request body for POST /analyze — analyse an arbitrary session payload."""

    data: dict[str, Any] | None = Field(
        default=None,
        description="Session document or payload to analyse",
    )
    language: str = Field(default="en")


class SessionCreate(BaseModel):
    """Request body for POST /sessions."""

    id: str | None = Field(
        default=None,
        max_length=64,
        description="Optional client-chosen id; generated when omitted",
    )
    session_name: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    data: dict[str, Any] = Field(default_factory=dict)


class SessionUpdate(BaseModel):
    """
    Request body for PUT /sessions/{id}. Partial: only fields present in
    the body are changed.
    """

    session_name: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    data: dict[str, Any] | None = None

    @field_validator("session_name")
    @classmethod
    def session_name_not_null(cls, value: str | None) -> str:
        # Omitted is fine (defaults are not validated); explicit null is not
        if value is None:
            raise ValueError("session_name cannot be null")
        return value


class SessionDuplicate(BaseModel):
    """Request body for POST /sessions/{id}/duplicate."""

    new_name: str = Field(..., min_length=1, max_length=500)


class CreateApiKeyRequest(BaseModel):
    """Request body for POST /admin/keys."""

    user_id: str = Field(..., min_length=1, max_length=128)
    name: str = Field(..., min_length=1, max_length=200)
    expires_in_days: int | None = Field(default=None, ge=1, le=3650)
