# =============================================================================
# Unit Tests — Retrieval-Augmented Chat
# =============================================================================
#
# Runs the compiled LangGraph graph end to end with:
#   - the question embedder patched to a fixed vector
#   - FakeSessionIndex for retrieval (real cosine ranking, owner filter)
#   - FakeLLM for generation
#
# Test groups:
#   1. Conversation assembly (responder)
#   2. Answer parsing (responder)
#   3. Retrieval & context formatting (retriever)
#   4. Full graph via chat()
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeLLM

from report_assistant.agents.orchestrator import InvalidQuestionError, chat
from report_assistant.agents.responder import (
    ACKNOWLEDGMENT,
    NO_MATCH_ANSWERS,
    SYSTEM_PROMPT,
    build_conversation,
    parse_answer,
)
from report_assistant.agents.retriever import format_context_block, retrieve
from report_assistant.services.serializer import serialize_session
from report_assistant.services.session_index import SessionMatch


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


VALID_ANSWER = json.dumps({
    "answer": {"en": "You had 14 staff.", "fr": "Vous aviez 14 agents."},
    "question": {"en": "How many staff?", "fr": "Combien d'agents ?"},
})


def _session(session_id: str, user_id: str, name: str, **extra) -> dict:
    doc = {
        "id": session_id,
        "userId": user_id,
        "sessionName": name,
        "data": {"staff": [{"category": "AGENTS", "male": 10, "female": 4}]},
    }
    doc.update(extra)
    return doc


@pytest.fixture
def embed_question():
    with patch(
        "report_assistant.agents.retriever.embed_text",
        MagicMock(return_value=[1.0, 0.0]),
    ) as mock_embed:
        yield mock_embed


# ---------------------------------------------------------------------------
# 1. Conversation Assembly
# ---------------------------------------------------------------------------


class TestBuildConversation:

    def test_layout(self):
        messages = build_conversation("CTX", "How many staff?")

        assert [m["role"] for m in messages] == ["user", "assistant", "user"]
        assert messages[0]["content"].startswith(SYSTEM_PROMPT)
        assert "--- CONTEXT DATA ---\nCTX\n--- END CONTEXT ---" in messages[0]["content"]
        assert messages[0]["content"].endswith(
            "Please acknowledge you have the context and are ready to answer questions."
        )
        assert messages[1]["content"] == ACKNOWLEDGMENT
        assert messages[2]["content"] == "How many staff?"

    def test_acknowledgment_is_bilingual_json(self):
        ack = json.loads(ACKNOWLEDGMENT)
        assert set(ack) == {"en", "fr"}

    def test_history_limited_to_most_recent_turns(self):
        history = [
            {"role": "user" if i % 2 == 0 else "assistant", "content": f"turn {i}"}
            for i in range(15)
        ]
        messages = build_conversation("CTX", "now", history=history, history_limit=10)

        assert len(messages) == 2 + 10 + 1
        assert messages[2]["content"] == "turn 5"
        assert messages[-2]["content"] == "turn 14"

    def test_non_user_roles_become_assistant(self):
        messages = build_conversation("CTX", "q", history=[{"role": "model", "content": "x"}])
        assert messages[2] == {"role": "assistant", "content": "x"}


# ---------------------------------------------------------------------------
# 2. Answer Parsing
# ---------------------------------------------------------------------------


class TestParseAnswer:

    def test_valid_json(self):
        payload = parse_answer(VALID_ANSWER, "How many staff?")
        assert payload.answer.en == "You had 14 staff."
        assert payload.question.fr == "Combien d'agents ?"

    def test_code_fences_are_stripped(self):
        raw = f"```json\n{VALID_ANSWER}\n```"
        payload = parse_answer(raw, "q")
        assert payload.answer.fr == "Vous aviez 14 agents."

    def test_garbage_falls_back(self):
        payload = parse_answer("Sure! Here is your answer: 14", "How many staff?")
        assert payload.answer.en == "Error generating response."
        assert payload.answer.fr == "Erreur lors de la génération de la réponse."
        assert payload.question.en == payload.question.fr == "How many staff?"

    def test_wrong_shape_falls_back(self):
        payload = parse_answer(json.dumps({"answer": "just a string"}), "q")
        assert payload.answer.en == "Error generating response."

    def test_empty_output_falls_back(self):
        assert parse_answer("", "q").answer.en == "Error generating response."

    def test_pathologically_nested_output_falls_back(self):
        raw = "[" * 200_000 + "]" * 200_000
        assert parse_answer(raw, "q").answer.en == "Error generating response."

    def test_non_object_json_falls_back(self):
        assert parse_answer("[1, 2, 3]", "q").answer.fr == (
            "Erreur lors de la génération de la réponse."
        )


# ---------------------------------------------------------------------------
# 3. Retrieval
# ---------------------------------------------------------------------------


class TestRetrieve:

    def test_context_prefers_cached_text(self):
        match = SessionMatch(
            session_id="s1",
            document=_session("s1", "alice", "Q1", embeddingText="cached text"),
            distance=0.1,
        )
        assert format_context_block(match) == "--- Session: Q1 (ID: s1) ---\ncached text"

    def test_context_serializes_when_no_cache(self):
        doc = _session("s1", "alice", "Q1")
        match = SessionMatch(session_id="s1", document=doc, distance=0.1)
        assert format_context_block(match).endswith(serialize_session(doc))

    def test_unnamed_session(self):
        match = SessionMatch(
            session_id="s9", document={"id": "s9", "embeddingText": "t"}, distance=0.0,
        )
        assert format_context_block(match).startswith("--- Session: Unnamed (ID: s9) ---")

    def test_blocks_joined_by_blank_line_nearest_first(self, index):
        index.add(_session("near", "alice", "Near", embeddingText="A"), embedding=[1.0, 0.0])
        index.add(_session("far", "alice", "Far", embeddingText="B"), embedding=[0.0, 1.0])

        result = _run(retrieve("alice", [1.0, 0.1], index, top_k=5))

        assert result.context == (
            "--- Session: Near (ID: near) ---\nA\n\n--- Session: Far (ID: far) ---\nB"
        )
        assert [s.session_id for s in result.sources] == ["near", "far"]

    def test_top_k_caps_results(self, index):
        for i in range(8):
            index.add(_session(f"s{i}", "alice", f"S{i}"), embedding=[1.0, float(i)])

        result = _run(retrieve("alice", [1.0, 0.0], index, top_k=5))
        assert len(result.sources) == 5


# ---------------------------------------------------------------------------
# 4. Full Graph
# ---------------------------------------------------------------------------


class TestChat:

    def test_blank_question_rejected(self, index):
        with pytest.raises(InvalidQuestionError):
            _run(chat("alice", "   ", index=index, llm=FakeLLM(VALID_ANSWER)))

    def test_answer_and_sources(self, index, embed_question):
        index.add(_session("s1", "alice", "Q1 2024"), embedding=[1.0, 0.0])
        llm = FakeLLM(VALID_ANSWER)

        result = _run(chat("alice", "How many staff?", index=index, llm=llm))

        assert json.loads(result.answer) == json.loads(VALID_ANSWER)
        assert [(s.session_id, s.session_name) for s in result.sources] == [("s1", "Q1 2024")]
        assert result.model == "fake-model"
        embed_question.assert_called_once_with("How many staff?")

    def test_llm_called_once_in_json_mode_with_rules(self, index, embed_question):
        index.add(_session("s1", "alice", "Q1"), embedding=[1.0, 0.0])
        llm = FakeLLM(VALID_ANSWER)

        _run(chat("alice", "How many staff?", index=index, llm=llm))

        assert len(llm.calls) == 1
        call = llm.calls[0]
        assert call["json_output"] is True
        assert call["system"] == SYSTEM_PROMPT
        assert "--- Session: Q1 (ID: s1) ---" in call["messages"][0]["content"]

    def test_retrieval_is_scoped_to_owner(self, index, embed_question):
        # Bob's session is a perfect match; Alice's is not
        index.add(_session("bob-1", "bob", "Bob's report"), embedding=[1.0, 0.0])
        index.add(_session("alice-1", "alice", "Alice's report"), embedding=[0.2, 1.0])
        llm = FakeLLM(VALID_ANSWER)

        result = _run(chat("alice", "staff?", index=index, llm=llm))

        assert [s.session_id for s in result.sources] == ["alice-1"]
        assert "Bob's report" not in llm.calls[0]["messages"][0]["content"]

    def test_no_match_returns_canned_english(self, index, embed_question):
        index.add(_session("bob-1", "bob", "Bob's report"), embedding=[1.0, 0.0])
        llm = FakeLLM(VALID_ANSWER)

        result = _run(chat("alice", "staff?", index=index, llm=llm))

        assert result.answer == NO_MATCH_ANSWERS["en"]
        assert result.sources == []
        assert llm.calls == []

    def test_no_match_localized_french(self, index, embed_question):
        result = _run(chat("alice", "effectif ?", language="fr-FR", index=index, llm=FakeLLM()))
        assert result.answer == NO_MATCH_ANSWERS["fr"]

    def test_unembedded_sessions_are_not_retrieved(self, index, embed_question):
        index.add(_session("s1", "alice", "Q1"), embedding=None)
        result = _run(chat("alice", "staff?", index=index, llm=FakeLLM(VALID_ANSWER)))
        assert result.sources == []

    def test_generation_error_falls_back(self, index, embed_question):
        index.add(_session("s1", "alice", "Q1"), embedding=[1.0, 0.0])
        llm = FakeLLM(error=RuntimeError("provider down"))

        result = _run(chat("alice", "How many staff?", index=index, llm=llm))

        payload = json.loads(result.answer)
        assert payload["answer"]["en"] == "Error generating response."
        assert payload["question"] == {"en": "How many staff?", "fr": "How many staff?"}
        assert [s.session_id for s in result.sources] == ["s1"]

    def test_malformed_output_falls_back(self, index, embed_question):
        index.add(_session("s1", "alice", "Q1"), embedding=[1.0, 0.0])

        result = _run(chat("alice", "q?", index=index, llm=FakeLLM("not json at all")))

        assert json.loads(result.answer)["answer"]["fr"] == (
            "Erreur lors de la génération de la réponse."
        )

    def test_history_forwarded(self, index, embed_question):
        index.add(_session("s1", "alice", "Q1"), embedding=[1.0, 0.0])
        llm = FakeLLM(VALID_ANSWER)
        history = [
            {"role": "user", "content": "previous question"},
            {"role": "assistant", "content": "previous answer"},
        ]

        _run(chat("alice", "follow-up", history=history, index=index, llm=llm))

        contents = [m["content"] for m in llm.calls[0]["messages"]]
        assert contents[2:] == ["previous question", "previous answer", "follow-up"]

    def test_embedding_failure_propagates(self, index):
        with patch(
            "report_assistant.agents.retriever.embed_text",
            MagicMock(side_effect=RuntimeError("embedding API down")),
        ):
            with pytest.raises(RuntimeError):
                _run(chat("alice", "staff?", index=index, llm=FakeLLM()))
