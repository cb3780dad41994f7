# =============================================================================
# Backfill Sweep — Embed Every Session That Has No Embedding Yet
# =============================================================================
#
# One-shot catch-up pass over the whole collection, for sessions written
# before the maintainer existed or whose change event was lost.
#
#   for each session:
#     has embedding?          → skipped
#     text below minimum?     → skipped
#     embed + save            → processed   (then sleep a fixed delay)
#     any error               → errors      (sweep continues)
#
# A Celery soft time limit stops the sweep early; the partial summary is
# returned with `interrupted` set.
#
# Strictly sequential. The fixed delay after each embedding call keeps the
# sweep under the provider's rate limits.
#
# Safe to re-run: a second pass over a fully embedded collection only
# increments `skipped`.
# =============================================================================

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass

from celery.exceptions import SoftTimeLimitExceeded

from report_assistant.config import settings
from report_assistant.services.embedder import embed_text
from report_assistant.services.serializer import serialize_session
from report_assistant.services.session_index import SessionIndex

logger = logging.getLogger(__name__)


@dataclass
class BackfillSummary:
    """Counts from a single sweep. `total` is every record visited."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    errors: int = 0
    interrupted: bool = False

    def to_dict(self) -> dict[str, int]:
        counts = asdict(self)
        counts.pop("interrupted")
        return counts


def run_backfill(
    index: SessionIndex,
    embed: Callable[[str], list[float]] = embed_text,
    delay_seconds: float | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> BackfillSummary:
    """
    Embed every session lacking an embedding.

    Args:
        index: Where sessions are read from and embeddings written to.
        embed: Text → vector function (OpenAI embeddings by default).
        delay_seconds: Pause after each embedding call
            (default: settings.backfill_delay_seconds).
        sleep: Injected so tests don't actually wait.

    Returns:
        BackfillSummary with total / processed / skipped / errors.
    """
    delay = settings.backfill_delay_seconds if delay_seconds is None else delay_seconds
    summary = BackfillSummary()

    logger.info("Starting embedding backfill (delay=%.2fs)", delay)

    for record in index.iter_documents():
        summary.total += 1

        if record.embedding:
            summary.skipped += 1
            continue

        called_provider = False
        try:
            text = serialize_session(record.document)
            if len(text) < settings.min_embedding_text_length:
                summary.skipped += 1
                continue

            called_provider = True
            vector = embed(text)
            if not vector:
                raise ValueError("embedding provider returned an empty vector")
            index.save_embedding(record.session_id, vector, text)

            summary.processed += 1
            logger.info("Backfill: processed %s", record.session_id)
        except SoftTimeLimitExceeded:
            summary.interrupted = True
            logger.warning(
                "Backfill: time limit reached at %s, stopping with partial counts",
                record.session_id,
            )
            break
        except Exception:
            summary.errors += 1
            logger.exception("Backfill: failed for %s", record.session_id)
        finally:
            if called_provider and not summary.interrupted:
                sleep(delay)

    logger.info(
        "Backfill complete: total=%d, processed=%d, skipped=%d, errors=%d",
        summary.total, summary.processed, summary.skipped, summary.errors,
    )
    return summary
