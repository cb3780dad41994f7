# =============================================================================
# Session Index — Vector Storage & Owner-Scoped Similarity Search
# =============================================================================
#
# The embedding lives on the session row itself, so the "index" is the
# report_sessions table seen through three operations:
#
#   save_embedding()  — sync, Celery    — write vector + text in one UPDATE
#   iter_documents()  — sync, Celery    — every session, for the backfill
#   search()          — async, FastAPI  — top-K by cosine distance, owner-scoped
#
# Mixed sync/async interface: writers run in Celery workers (sync engine),
# the reader runs in request handlers (async engine).
#
# ARCHITECTURE:
#   SessionIndex (Protocol)
#   └── PgSessionIndex — PostgreSQL + pgvector
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select, update

from report_assistant.db.engine import async_session_factory, get_sync_session
from report_assistant.db.models import ReportSession

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data Structures
# ---------------------------------------------------------------------------


@dataclass
class IndexedSession:
    """A session document together with its stored embedding (if any)."""

    session_id: str
    document: dict[str, Any]
    embedding: list[float] | None


@dataclass
class SessionMatch:
    """A single result from the nearest-neighbour query."""

    session_id: str
    document: dict[str, Any]
    distance: float  # cosine distance, 0.0 = identical direction


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class SessionIndex(Protocol):
    """Storage operations used by the embedding maintainer, backfill and chat."""

    def save_embedding(
        self,
        session_id: str,
        embedding: list[float],
        embedding_text: str,
        expected_updated_at: str | None = None,
    ) -> bool:
        """
        Persist `embedding` and `embedding_text` on the session. Sync.

        Only these two fields are touched; the rest of the row is merged,
        not replaced. With `expected_updated_at` (ISO timestamp from the
        snapshot that was embedded) the write only lands if the row still
        carries that timestamp.

        Returns False when no row was written (deleted or superseded).
        """
        ...

    def iter_documents(self) -> Iterator[IndexedSession]:
        """Yield every stored session exactly once. Sync."""
        ...

    async def search(
        self,
        user_id: str,
        query_embedding: list[float],
        top_k: int = 5,
    ) -> list[SessionMatch]:
        """
        Return the `top_k` sessions owned by `user_id` closest to the query
        by cosine distance, nearest first. Async.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation: pgvector (PostgreSQL)
# ---------------------------------------------------------------------------


class PgSessionIndex:
    """pgvector-backed session index."""

    def save_embedding(
        self,
        session_id: str,
        embedding: list[float],
        embedding_text: str,
        expected_updated_at: str | None = None,
    ) -> bool:
        """
        Write both derived fields in a single UPDATE.

        The `updated_at` guard turns a late-arriving event for an older
        version into a no-op instead of overwriting a newer embedding.
        """
        stmt = (
            update(ReportSession)
            .where(ReportSession.id == session_id)
            .values(embedding=embedding, embedding_text=embedding_text)
        )
        if expected_updated_at is not None:
            stmt = stmt.where(
                ReportSession.updated_at == datetime.fromisoformat(expected_updated_at)
            )

        with get_sync_session() as session:
            result = session.execute(stmt)

        if result.rowcount == 0:
            logger.warning(
                "Session %s was deleted or changed before its embedding "
                "could be saved",
                session_id,
            )
            return False
        return True

    def iter_documents(self) -> Iterator[IndexedSession]:
        """Yield every session ordered by id (stable across re-runs)."""
        with get_sync_session() as session:
            ids = session.execute(
                select(ReportSession.id).order_by(ReportSession.id)
            ).scalars().all()

        # One short session per row keeps memory flat on large collections
        for session_id in ids:
            with get_sync_session() as session:
                row = session.get(ReportSession, session_id)
                if row is None:
                    continue
                embedding = (
                    list(row.embedding) if row.embedding is not None else None
                )
                yield IndexedSession(
                    session_id=row.id,
                    document=row.to_document(),
                    embedding=embedding,
                )

    async def search(
        self,
        user_id: str,
        query_embedding: list[float],
        top_k: int = 5,
    ) -> list[SessionMatch]:
        """
        Cosine KNN restricted to the caller's sessions.

        The owner filter is part of the WHERE clause, so another user's
        session can never be returned however close its vector is.
        """
        distance = ReportSession.embedding.cosine_distance(query_embedding)

        async with async_session_factory() as session:
            stmt = (
                select(ReportSession, distance.label("distance"))
                .where(ReportSession.user_id == user_id)
                .where(ReportSession.embedding.is_not(None))
                .order_by(distance)
                .limit(top_k)
            )
            result = await session.execute(stmt)
            rows = result.all()

        logger.debug(
            "Session search returned %d rows (user_id=%s, top_k=%d)",
            len(rows), user_id, top_k,
        )

        return [
            SessionMatch(
                session_id=row.id,
                document=row.to_document(),
                distance=float(dist),
            )
            for row, dist in rows
        ]


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

_index: PgSessionIndex | None = None


def get_session_index() -> PgSessionIndex:
    """Return the process-wide session index."""
    global _index
    if _index is None:
        _index = PgSessionIndex()
    return _index
