# =============================================================================
# Shared Test Fixtures
# =============================================================================
#
# In-memory stand-ins so the suite runs without PostgreSQL, Redis or API
# keys:
#   - FakeSessionIndex: SessionIndex protocol over a dict, with real cosine
#     ranking and the same owner filter as PgSessionIndex
#   - FakeLLM: records calls, returns a canned LLMResponse
# =============================================================================

from __future__ import annotations

import math
from collections.abc import Iterator
from typing import Any

import pytest

from report_assistant.services.llm import LLMResponse
from report_assistant.services.session_index import IndexedSession, SessionMatch


class FakeSessionIndex:
    """Dict-backed SessionIndex."""

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.saved: list[tuple[str, list[float], str]] = []
        self.fail_on_save: set[str] = set()

    def add(
        self,
        document: dict[str, Any],
        embedding: list[float] | None = None,
    ) -> None:
        self.rows[document["id"]] = {
            "document": dict(document),
            "embedding": embedding,
        }

    # --- SessionIndex protocol ---

    def save_embedding(
        self,
        session_id: str,
        embedding: list[float],
        embedding_text: str,
        expected_updated_at: str | None = None,
    ) -> bool:
        if session_id in self.fail_on_save:
            raise RuntimeError(f"store unavailable for {session_id}")
        if expected_updated_at is not None:
            current = self.rows.get(session_id)
            if current is None or current["document"].get("updatedAt") != expected_updated_at:
                return False
        self.saved.append((session_id, embedding, embedding_text))
        row = self.rows.setdefault(
            session_id, {"document": {"id": session_id}, "embedding": None},
        )
        row["embedding"] = list(embedding)
        row["document"]["embeddingText"] = embedding_text
        return True

    def iter_documents(self) -> Iterator[IndexedSession]:
        for session_id in sorted(self.rows):
            row = self.rows[session_id]
            yield IndexedSession(
                session_id=session_id,
                document=dict(row["document"]),
                embedding=row["embedding"],
            )

    async def search(
        self,
        user_id: str,
        query_embedding: list[float],
        top_k: int = 5,
    ) -> list[SessionMatch]:
        candidates = [
            SessionMatch(
                session_id=session_id,
                document=dict(row["document"]),
                distance=_cosine_distance(query_embedding, row["embedding"]),
            )
            for session_id, row in self.rows.items()
            if row["document"].get("userId") == user_id and row["embedding"]
        ]
        candidates.sort(key=lambda m: m.distance)
        return candidates[:top_k]


class FakeLLM:
    """LLMProvider stand-in that returns `content` and records every call."""

    def __init__(self, content: str = "", error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        messages: list[dict[str, str]],
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        json_output: bool = False,
    ) -> LLMResponse:
        self.calls.append({
            "messages": messages,
            "system": system,
            "json_output": json_output,
        })
        if self.error is not None:
            raise self.error
        return LLMResponse(
            content=self.content,
            model="fake-model",
            input_tokens=100,
            output_tokens=20,
        )


def _cosine_distance(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    if norm == 0:
        return 1.0
    return 1.0 - dot / norm


@pytest.fixture
def index() -> FakeSessionIndex:
    return FakeSessionIndex()
