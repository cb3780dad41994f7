# =============================================================================
# Embedding Maintainer — Keep Each Session's Vector in Sync With Its Content
# =============================================================================
#
# Invoked once per session write (create / update / delete) with before and
# after snapshots in document form (see ReportSession.to_document()).
#
# DECISION FLOW:
#   after is None                         → DELETED       (nothing to do)
#   before == after, derived keys removed → UNCHANGED     (incl. our own write)
#   serialize(after) shorter than minimum → INSUFFICIENT  (leave unembedded)
#   embed → save_embedding                → EMBEDDED
#   row changed again since this snapshot → SUPERSEDED    (newer event wins)
#   any provider / store error            → FAILED        (logged, not retried)
#
# The diff guard is what makes the maintainer idempotent: writing the
# embedding back only changes derived keys, so a re-delivered or
# self-triggered event short-circuits at UNCHANGED.
# =============================================================================

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from report_assistant.config import settings
from report_assistant.services.embedder import embed_text
from report_assistant.services.serializer import serialize_session
from report_assistant.services.session_index import SessionIndex

logger = logging.getLogger(__name__)

# Keys written by the system rather than the user. Changes to these alone
# never warrant a new embedding.
DERIVED_FIELDS = frozenset({
    "embedding",
    "embeddingText",
    "aiAnalysis",
    "aiAnalysisLanguage",
})


class WriteKind(str, enum.Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    UNCHANGED = "unchanged"


class WriteOutcome(str, enum.Enum):
    DELETED = "deleted"
    UNCHANGED = "unchanged"
    INSUFFICIENT = "insufficient"
    EMBEDDED = "embedded"
    SUPERSEDED = "superseded"
    FAILED = "failed"


@dataclass
class SessionWriteEvent:
    """A single write to one session, as seen by the change trigger."""

    session_id: str
    before: dict[str, Any] | None
    after: dict[str, Any] | None


def strip_derived_fields(document: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of `document` without system-maintained keys."""
    return {k: v for k, v in document.items() if k not in DERIVED_FIELDS}


def classify_write(
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
) -> WriteKind:
    """Classify a write by comparing the user-visible parts of two snapshots."""
    if after is None:
        return WriteKind.DELETED
    if before is None:
        return WriteKind.CREATED
    if strip_derived_fields(before) == strip_derived_fields(after):
        return WriteKind.UNCHANGED
    return WriteKind.UPDATED


def handle_session_write(
    event: SessionWriteEvent,
    index: SessionIndex,
    embed: Callable[[str], list[float]] = embed_text,
) -> WriteOutcome:
    """
    Recompute and persist the embedding for one session write.

    Never raises: every failure is logged with the session id and reported
    as FAILED, leaving the stored embedding untouched.
    """
    kind = classify_write(event.before, event.after)

    if kind is WriteKind.DELETED:
        logger.debug("Session %s deleted, nothing to embed", event.session_id)
        return WriteOutcome.DELETED

    if kind is WriteKind.UNCHANGED:
        logger.debug(
            "Session %s: only derived fields changed, skipping",
            event.session_id,
        )
        return WriteOutcome.UNCHANGED

    try:
        text = serialize_session(event.after)
    except Exception:
        logger.exception("Failed to serialize session %s", event.session_id)
        return WriteOutcome.FAILED

    if len(text) < settings.min_embedding_text_length:
        logger.info(
            "Session %s has insufficient text to embed (%d chars)",
            event.session_id, len(text),
        )
        return WriteOutcome.INSUFFICIENT

    try:
        vector = embed(text)
        if not vector:
            raise ValueError("embedding provider returned an empty vector")
        saved = index.save_embedding(
            event.session_id, vector, text,
            expected_updated_at=event.after.get("updatedAt"),
        )
    except Exception:
        logger.exception(
            "Error generating embedding for session %s", event.session_id,
        )
        return WriteOutcome.FAILED

    if not saved:
        logger.info(
            "Session %s changed after this snapshot, embedding discarded",
            event.session_id,
        )
        return WriteOutcome.SUPERSEDED

    logger.info(
        "Embedding %s for session %s (%d chars, %d dims)",
        "created" if kind is WriteKind.CREATED else "updated",
        event.session_id, len(text), len(vector),
    )
    return WriteOutcome.EMBEDDED
