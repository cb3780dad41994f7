# =============================================================================
# Chat API — Retrieval-Augmented Q&A Over the Caller's Sessions
# =============================================================================
#
# POST /chat runs the LangGraph chat graph
# (embed_question → retrieve → no_match | generate → parse).
#
# Error mapping:
#   blank question                → 400
#   provider misconfiguration     → 503  (ValueError from provider factories)
#   embedding / retrieval failure → 502
# Generation failures never reach this layer: the graph turns them into the
# bilingual fallback answer.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException

from report_assistant.agents.orchestrator import InvalidQuestionError, chat
from report_assistant.api.deps import get_current_user_id, get_index
from report_assistant.models.requests import ChatRequest
from report_assistant.models.responses import ChatResponse, SourceRef
from report_assistant.services.session_index import SessionIndex

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    summary="Ask a question about your saved sessions",
    description=(
        "Embeds the question, retrieves your most similar sessions and asks "
        "the LLM for a bilingual (English/French) answer grounded in them."
    ),
)
async def chat_endpoint(
    request: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    index: SessionIndex = Depends(get_index),
) -> ChatResponse:
    try:
        result = await chat(
            user_id=user_id,
            question=request.question,
            history=[turn.model_dump() for turn in request.history],
            language=request.language,
            index=index,
        )
    except InvalidQuestionError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e
    except Exception as e:
        logger.exception("Chat graph failed: %s", e)
        raise HTTPException(
            status_code=502,
            detail=f"LLM service error: {e}",
        ) from e

    return ChatResponse(
        answer=result.answer,
        sources=[
            SourceRef(session_id=s.session_id, session_name=s.session_name)
            for s in result.sources
        ],
    )
