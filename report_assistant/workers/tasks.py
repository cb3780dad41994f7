# =============================================================================
# Celery Task Definitions — Embedding Maintenance
# =============================================================================
#
#   on_session_written(session_id, before, after)
#       Fired once per session write by SessionRepository. Runs the
#       Embedding Maintainer and returns the outcome name.
#
#   backfill_embeddings()
#       Runs the Backfill Sweep over every session and returns its counts.
#
# IMPORTANT: Celery workers are SYNCHRONOUS. These tasks use the sync
# engine through PgSessionIndex; never the async engine.
#
# RETRY STRATEGY: none. A failed embedding is logged and the stored vector
# left as it was; the next write or a backfill repairs it.
# =============================================================================

import logging

from report_assistant.services.backfill import run_backfill
from report_assistant.services.embedding_maintainer import (
    SessionWriteEvent,
    handle_session_write,
)
from report_assistant.services.session_index import get_session_index
from report_assistant.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="on_session_written", max_retries=0)
def on_session_written(
    session_id: str,
    before: dict | None,
    after: dict | None,
) -> str:
    """Bring one session's embedding in line with its latest content."""
    outcome = handle_session_write(
        SessionWriteEvent(session_id=session_id, before=before, after=after),
        get_session_index(),
    )
    logger.debug("Session %s write handled: %s", session_id, outcome.value)
    return outcome.value


@celery_app.task(bind=True, name="backfill_embeddings", max_retries=0)
def backfill_embeddings(self) -> dict:
    """Embed every session that has no embedding yet."""
    logger.info("[%s] Backfill task started", self.request.id)
    summary = run_backfill(get_session_index())
    message = (
        "Backfill interrupted by time limit" if summary.interrupted
        else "Backfill complete"
    )
    return {"message": message, **summary.to_dict()}
