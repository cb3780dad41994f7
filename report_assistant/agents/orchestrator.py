# =============================================================================
# LangGraph Orchestrator — Retrieval-Augmented Chat Graph
# =============================================================================
#
# Wires the chat pipeline into a LangGraph StateGraph:
#
#   START ──▶ embed_question ──▶ retrieve ──┬──▶ no_match ─────────────▶ END
#                                           └──▶ generate ──▶ parse ──▶ END
#
# The branch after `retrieve` is the only conditional edge: when the caller
# has no embedded sessions there is nothing to ground an answer in, so the
# LLM is never called and a localized canned reply is returned.
#
# Failure semantics:
#   embed_question / retrieve errors  → propagate (API maps to 502 / 503)
#   generate errors, bad model output → bilingual fallback payload
#
# The graph is read-only: it never writes to the session store.
#
# DESIGN DECISION: Providers travel in the state (`llm_override`,
# `index_override`) so tests and callers can inject fakes without patching
# module globals. Not JSON-serialisable, which is fine while no
# checkpointer is configured.
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from report_assistant.agents.responder import (
    SYSTEM_PROMPT,
    build_conversation,
    fallback_payload,
    no_match_answer,
    parse_answer,
)
from report_assistant.agents.retriever import (
    RetrievalResult,
    SourceRef,
    embed_question,
    retrieve,
)
from report_assistant.config import settings
from report_assistant.services.llm import LLMProvider, get_llm_provider
from report_assistant.services.session_index import SessionIndex, get_session_index

logger = logging.getLogger(__name__)


class InvalidQuestionError(Exception):
    """The question is missing or blank."""


@dataclass
class ChatResult:
    answer: str                      # JSON string, or plain text for no-match
    sources: list[SourceRef] = field(default_factory=list)
    model: str | None = None


# ---------------------------------------------------------------------------
# Graph State
# ---------------------------------------------------------------------------


class ChatState(TypedDict, total=False):
    # --- Input ---
    user_id: str
    question: str
    history: list[dict[str, Any]]
    language: str
    llm_override: LLMProvider | None
    index_override: SessionIndex | None

    # --- Intermediate ---
    query_embedding: list[float]
    retrieval: RetrievalResult
    raw_output: str | None

    # --- Output ---
    answer: str
    sources: list[SourceRef]
    model: str | None


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


async def embed_question_node(state: ChatState) -> dict:
    vector = await embed_question(state["question"].strip())
    return {"query_embedding": vector}


async def retrieve_node(state: ChatState) -> dict:
    index = state.get("index_override") or get_session_index()
    result = await retrieve(
        state["user_id"],
        state["query_embedding"],
        index,
        top_k=settings.retrieval_top_k,
    )
    return {"retrieval": result, "sources": result.sources}


def route_after_retrieve(state: ChatState) -> str:
    return "no_match" if state["retrieval"].is_empty else "generate"


async def no_match_node(state: ChatState) -> dict:
    logger.info("No sessions matched for user %s", state["user_id"])
    return {"answer": no_match_answer(state.get("language")), "sources": []}


async def generate_node(state: ChatState) -> dict:
    """
    One LLM call in JSON mode. Provider errors are logged and leave
    `raw_output` empty so the parse step falls back.
    """
    # Resolved outside the try: a misconfigured provider must surface
    llm = state.get("llm_override") or get_llm_provider()

    messages = build_conversation(
        state["retrieval"].context,
        state["question"],
        history=state.get("history"),
        history_limit=settings.chat_history_limit,
    )

    try:
        response = await llm.complete(
            messages=messages,
            system=SYSTEM_PROMPT,
            json_output=True,
        )
    except Exception:
        logger.exception("Chat generation failed for user %s", state["user_id"])
        return {"raw_output": None, "model": None}

    return {"raw_output": response.content, "model": response.model}


async def parse_node(state: ChatState) -> dict:
    raw = state.get("raw_output")
    payload = (
        parse_answer(raw, state["question"])
        if raw is not None
        else fallback_payload(state["question"])
    )
    return {"answer": payload.model_dump_json()}


# ---------------------------------------------------------------------------
# Graph Assembly (compiled once at import)
# ---------------------------------------------------------------------------

_builder = StateGraph(ChatState)
_builder.add_node("embed_question", embed_question_node)
_builder.add_node("retrieve", retrieve_node)
_builder.add_node("no_match", no_match_node)
_builder.add_node("generate", generate_node)
_builder.add_node("parse", parse_node)

_builder.add_edge(START, "embed_question")
_builder.add_edge("embed_question", "retrieve")
_builder.add_conditional_edges(
    "retrieve",
    route_after_retrieve,
    {"no_match": "no_match", "generate": "generate"},
)
_builder.add_edge("no_match", END)
_builder.add_edge("generate", "parse")
_builder.add_edge("parse", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def chat(
    user_id: str,
    question: str,
    history: list[dict[str, Any]] | None = None,
    language: str = "en",
    llm: LLMProvider | None = None,
    index: SessionIndex | None = None,
) -> ChatResult:
    """
    Answer a question about the caller's own sessions.

    Args:
        user_id: Authenticated caller; retrieval never leaves their sessions.
        question: Natural-language question. Must not be blank.
        history: Prior turns ({"role", "content"}); only the most recent
            `chat_history_limit` are sent.
        language: UI language, used for the no-match reply.
        llm / index: Optional overrides of the configured singletons.

    Raises:
        InvalidQuestionError: `question` is empty after stripping.
    """
    if not isinstance(question, str) or not question.strip():
        raise InvalidQuestionError("A question is required.")

    initial_state: ChatState = {
        "user_id": user_id,
        "question": question,
        "history": list(history or []),
        "language": language or "en",
    }
    if llm is not None:
        initial_state["llm_override"] = llm
    if index is not None:
        initial_state["index_override"] = index

    logger.info(
        "Invoking chat graph: user_id=%s, question='%s', history=%d",
        user_id, question[:80], len(initial_state["history"]),
    )

    result = await graph.ainvoke(initial_state)

    return ChatResult(
        answer=result["answer"],
        sources=result.get("sources", []),
        model=result.get("model"),
    )
