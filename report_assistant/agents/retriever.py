# =============================================================================
# Retriever — Question Embedding & Owner-Scoped Session Lookup
# =============================================================================
#
# Two steps of the chat graph live here:
#
#   embed_question()  — question → vector (blocking SDK call, run off the
#                       event loop with asyncio.to_thread)
#   retrieve()        — vector → the caller's K nearest sessions, rendered
#                       as context blocks plus source references
#
# Context uses the cached `embedding_text` when present, so the model sees
# exactly the text that was matched. Sessions without it are serialized on
# the fly.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from report_assistant.config import settings
from report_assistant.services.embedder import embed_text
from report_assistant.services.serializer import serialize_session
from report_assistant.services.session_index import SessionIndex, SessionMatch

logger = logging.getLogger(__name__)

UNNAMED_SESSION = "Unnamed"


@dataclass
class SourceRef:
    """A session that contributed context to an answer."""

    session_id: str
    session_name: str


@dataclass
class RetrievalResult:
    context: str
    sources: list[SourceRef]

    @property
    def is_empty(self) -> bool:
        return not self.sources


async def embed_question(
    question: str,
    embed: Callable[[str], list[float]] | None = None,
) -> list[float]:
    return await asyncio.to_thread(embed or embed_text, question)


async def retrieve(
    user_id: str,
    query_embedding: list[float],
    index: SessionIndex,
    top_k: int | None = None,
) -> RetrievalResult:
    """
    Find the caller's sessions nearest to the question.

    Only sessions owned by `user_id` are ever considered.
    """
    matches = await index.search(
        user_id,
        query_embedding,
        top_k=top_k or settings.retrieval_top_k,
    )
    logger.info("Retrieved %d sessions for user %s", len(matches), user_id)

    return RetrievalResult(
        context="\n\n".join(format_context_block(m) for m in matches),
        sources=[
            SourceRef(
                session_id=m.document.get("id") or m.session_id,
                session_name=m.document.get("sessionName") or UNNAMED_SESSION,
            )
            for m in matches
        ],
    )


def format_context_block(match: SessionMatch) -> str:
    """`--- Session: <name> (ID: <id>) ---` followed by the session text."""
    document = match.document
    name = document.get("sessionName") or UNNAMED_SESSION
    text = document.get("embeddingText") or serialize_session(document)
    return f"--- Session: {name} (ID: {match.session_id}) ---\n{text}"
