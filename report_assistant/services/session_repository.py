# =============================================================================
# Session Repository — Owner-Scoped CRUD With Change Events
# =============================================================================
#
# Every read and write is scoped to one user: a session owned by someone
# else is indistinguishable from a missing one (SessionNotFoundError).
#
# CHANGE EVENTS:
# Each write commits first, then hands a (session_id, before, after) pair of
# document snapshots to the change trigger: by default the Celery task
# `on_session_written`, which runs the Embedding Maintainer.
#
#   create     → (id, None,   after)
#   update     → (id, before, after)
#   delete     → (id, before, None)
#   cache write→ (id, before, after)   only derived keys differ → UNCHANGED
#
# A dispatch failure (broker down) is logged and swallowed: the write has
# already succeeded and the backfill sweep will pick the session up later.
# =============================================================================

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from report_assistant.db.models import ReportSession, new_session_id, utcnow

logger = logging.getLogger(__name__)

# Sections carried over by duplicate(); everything else in `data` is reset.
DUPLICATED_SECTIONS = (
    "staff",
    "personnel",
    "managementCount",
    "salaryMassCDF",
    "exploitation",
    "budget",
)

# Period-specific sections cleared by duplicate(), with their empty shapes.
_RESET_SECTIONS: dict[str, Any] = {
    "movements": [],
    "workforce": [],
    "serviceMissions": {
        "performed": {"type": "performed", "count": 0, "cost": 0},
        "received": {"type": "received", "count": 0, "cost": 0},
    },
    "medicalCare": [],
    "transfersKinshasa": [],
    "transfersAbroad": [],
    "missionCosts": {
        "inside": {"usd": 0, "cdf": 0},
        "abroad": {"usd": 0, "cdf": 0},
    },
    "divers": [],
}

_UPDATABLE_FIELDS = ("session_name", "description", "start_date", "end_date", "data")

WriteNotifier = Callable[[str, dict[str, Any] | None, dict[str, Any] | None], None]


class SessionNotFoundError(LookupError):
    """Raised when a session does not exist or belongs to another user."""


def dispatch_write_event(
    session_id: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
) -> None:
    """Queue the embedding maintenance task for one session write."""
    # Imported here: the worker module imports the service layer
    from report_assistant.workers.tasks import on_session_written

    try:
        on_session_written.delay(session_id, before, after)
    except Exception:
        logger.exception(
            "Failed to queue embedding update for session %s", session_id,
        )


class SessionRepository:
    """Owner-scoped persistence for report sessions."""

    def __init__(
        self,
        session: AsyncSession,
        notify: WriteNotifier | None = None,
    ) -> None:
        self._session = session
        self._notify = notify or dispatch_write_event

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(self, user_id: str, session_id: str) -> ReportSession:
        row = await self._session.get(ReportSession, session_id)
        if row is None or row.user_id != user_id:
            raise SessionNotFoundError(session_id)
        return row

    async def list_for_user(self, user_id: str) -> list[ReportSession]:
        """All of the user's sessions, most recently updated first."""
        stmt = (
            select(ReportSession)
            .where(ReportSession.user_id == user_id)
            .order_by(ReportSession.updated_at.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(
        self,
        user_id: str,
        session_name: str,
        data: dict[str, Any] | None = None,
        description: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        session_id: str | None = None,
    ) -> ReportSession:
        now = utcnow()
        row = ReportSession(
            id=session_id or new_session_id(),
            user_id=user_id,
            session_name=session_name,
            description=description,
            start_date=start_date,
            end_date=end_date,
            data=data or {},
            created_at=now,
            updated_at=now,
        )
        self._session.add(row)
        await self._session.commit()

        logger.info("Created session %s for user %s", row.id, user_id)
        self._notify(row.id, None, row.to_document())
        return row

    async def update(
        self,
        user_id: str,
        session_id: str,
        changes: dict[str, Any],
    ) -> ReportSession:
        """
        Apply a partial update from a field → value mapping. Keys outside
        the editable fields (owner, id, derived fields) are ignored;
        `updated_at` is bumped.
        """
        row = await self.get(user_id, session_id)
        before = row.to_document()

        for field in _UPDATABLE_FIELDS:
            if field in changes:
                setattr(row, field, changes[field])
        row.updated_at = utcnow()

        await self._session.commit()

        logger.info("Updated session %s", session_id)
        self._notify(session_id, before, row.to_document())
        return row

    async def delete(self, user_id: str, session_id: str) -> None:
        row = await self.get(user_id, session_id)
        before = row.to_document()

        await self._session.delete(row)
        await self._session.commit()

        logger.info("Deleted session %s", session_id)
        self._notify(session_id, before, None)

    async def duplicate(
        self,
        user_id: str,
        session_id: str,
        new_name: str,
    ) -> ReportSession:
        """
        Copy a session under a new name, keeping structural data (staff,
        management count, salary mass, exploitation, budget) and resetting
        the period-specific sections.
        """
        original = await self.get(user_id, session_id)
        source = original.data or {}

        data = copy.deepcopy(_RESET_SECTIONS)
        for key in DUPLICATED_SECTIONS:
            if key in source:
                data[key] = copy.deepcopy(source[key])

        return await self.create(
            user_id=user_id,
            session_name=new_name,
            data=data,
            description=original.description,
            start_date=original.start_date,
            end_date=original.end_date,
        )

    async def save_analysis(
        self,
        user_id: str,
        session_id: str,
        text: str,
        language: str,
    ) -> ReportSession:
        """Cache an analysis on the session without touching `updated_at`."""
        row = await self.get(user_id, session_id)
        before = row.to_document()

        row.ai_analysis = text
        row.ai_analysis_language = language
        await self._session.commit()

        self._notify(session_id, before, row.to_document())
        return row
