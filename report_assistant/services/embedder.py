# =============================================================================
# Embedding Service — Fixed-Dimension Vector Generation (Provider-Agnostic)
# =============================================================================
#
# Generates vector embeddings using any OpenAI-compatible embedding API.
#
# Indexing (Embedding Maintainer, Backfill) and querying (Chat Service) MUST
# go through this module so both sides use the same model and the same
# `dimensions` value. A mismatch makes every cosine distance meaningless.
#
# No retry logic here. A failed embedding leaves the session without a fresh
# vector until its next substantive edit or the next backfill sweep.
# =============================================================================

from __future__ import annotations

import logging

from openai import OpenAI

from report_assistant.config import settings

logger = logging.getLogger(__name__)


class EmbeddingError(RuntimeError):
    """The provider answered, but not with a usable vector."""


# ---------------------------------------------------------------------------
# Embedding Client — Lazy Singleton
# ---------------------------------------------------------------------------
# API key resolution order:
#   1. OPENAI_API_KEY (explicit embedding key)
#   2. LLM_API_KEY (shared key for an OpenAI-compatible provider)
# ---------------------------------------------------------------------------

_client: OpenAI | None = None


def _get_client() -> OpenAI:
    """Lazily initialize and cache the embedding client."""
    global _client
    if _client is None:
        resolved_key = settings.openai_api_key or settings.llm_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for embeddings. "
                "Set OPENAI_API_KEY or LLM_API_KEY in .env"
            )

        client_kwargs: dict = {"api_key": resolved_key}
        if settings.embedding_base_url:
            client_kwargs["base_url"] = settings.embedding_base_url

        _client = OpenAI(**client_kwargs)

        logger.info(
            "Initialized embedding client (model=%s, base_url=%s)",
            settings.embedding_model,
            settings.embedding_base_url or "https://api.openai.com/v1",
        )
    return _client


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def embed_text(text: str) -> list[float]:
    """
    Generate one embedding vector for `text`.

    Args:
        text: Serialized session text or a user question.

    Returns:
        A list of `settings.embedding_dimensions` floats.

    Raises:
        ValueError: If no API key is configured.
        EmbeddingError: If the response carries no vector.
        openai.APIError: If the API call fails.
    """
    client = _get_client()

    response = client.embeddings.create(
        model=settings.embedding_model,
        input=text,
        dimensions=settings.embedding_dimensions,
    )

    vector = response.data[0].embedding if response.data else None
    if not vector:
        raise EmbeddingError("Failed to generate embedding — empty response")

    logger.debug(
        "Embedded %d chars → %d dims (model=%s)",
        len(text), len(vector), settings.embedding_model,
    )
    return list(vector)
