# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────────────────────────┐     ┌─────────────────────────┐
# │  report_sessions                     │     │  api_keys               │
# ├──────────────────────────────────────┤     ├─────────────────────────┤
# │ id (PK, str)                         │     │ id (PK)                 │
# │ user_id (indexed)  ◀── owner ────────┼─────│ user_id                 │
# │ session_name, description            │     │ name, key_prefix        │
# │ start_date, end_date                 │     │ key_hash (unique)       │
# │ data (jsonb)                         │     │ is_active, expires_at   │
# │ embedding (vector(N))                │     │ last_used_at            │
# │ embedding_text (text)                │     │ created_at              │
# │ ai_analysis, ai_analysis_language    │     └─────────────────────────┘
# │ created_at, updated_at               │
# └──────────────────────────────────────┘
#
# `embedding` and `embedding_text` are derived fields. Only the Embedding
# Maintainer and the Backfill Sweep write them, always together, and
# `embedding` is always the vector of exactly `embedding_text`.
#
# `ai_analysis` / `ai_analysis_language` cache the last report analysis.
# =============================================================================

import uuid
from datetime import UTC, datetime
from typing import Any

from pgvector.sqlalchemy import Vector
from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from report_assistant.config import settings


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


def new_session_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


class ReportSession(Base):
    """
    A saved report session: one reporting period of personnel, budget and
    exploitation data, owned by a single user.

    This is the unit of retrieval. The chat service searches these rows by
    cosine distance on `embedding`, always pre-filtered by `user_id`.
    """

    __tablename__ = "report_sessions"

    id: Mapped[str] = mapped_column(
        String(64), primary_key=True, default=new_session_id,
    )

    # Owning user (the authenticated caller that created the session)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    session_name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Reporting period
    start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    # Payload as written by the UI (camelCase keys): staff, managementCount,
    # salaryMassCDF, budget, exploitation, and the other report sections.
    data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB, nullable=True, default=dict,
    )

    # ---------------------------------------------------------------------------
    # Derived Embedding Fields
    # ---------------------------------------------------------------------------
    # Null until the Embedding Maintainer (or a backfill) has processed the
    # session, and for sessions whose serialized text is too short to embed.
    # ---------------------------------------------------------------------------
    embedding: Mapped[list[float] | None] = mapped_column(
        Vector(settings.embedding_dimensions),
        nullable=True,
    )
    embedding_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Cached report analysis
    ai_analysis: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_analysis_language: Mapped[str | None] = mapped_column(
        String(16), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def to_document(self) -> dict[str, Any]:
        """
        Return the camelCase document form of this session.

        This is the shape consumed by the serializer, carried in change
        events, and returned by the sessions API. The raw `embedding` vector
        is never included.
        """
        return {
            "id": self.id,
            "userId": self.user_id,
            "sessionName": self.session_name,
            "description": self.description or "",
            "startDate": _iso(self.start_date),
            "endDate": _iso(self.end_date),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "data": self.data or {},
            "embeddingText": self.embedding_text,
            "aiAnalysis": self.ai_analysis,
            "aiAnalysisLanguage": self.ai_analysis_language,
        }

    def __repr__(self) -> str:
        return (
            f"<ReportSession(id='{self.id}', user_id='{self.user_id}', "
            f"name='{self.session_name}')>"
        )


class ApiKey(Base):
    """
    A bearer API key issued to one user.

    Only the SHA-256 hash is stored. The raw key is shown once, when the
    admin endpoint creates it.
    """

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # The user this key authenticates as
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # First 8 chars of the raw key, for identification in logs and admin
    key_prefix: Mapped[str] = mapped_column(String(16), nullable=False)

    key_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True,
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    last_used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, user_id='{self.user_id}', prefix='{self.key_prefix}')>"


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# =============================================================================
# Database Indexes
# =============================================================================
#
# HNSW index with `vector_cosine_ops`: the chat query orders by cosine
# distance on `embedding`. The owner B-tree index serves the user_id
# pre-filter and the session listing.
# =============================================================================

session_embedding_idx = Index(
    "idx_report_session_embedding_hnsw",
    ReportSession.embedding,
    postgresql_using="hnsw",
    postgresql_with={"m": 16, "ef_construction": 64},
    postgresql_ops={"embedding": "vector_cosine_ops"},
)

session_owner_idx = Index(
    "idx_report_session_user_updated",
    ReportSession.user_id,
    ReportSession.updated_at,
)
