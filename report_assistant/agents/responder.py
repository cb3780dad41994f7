# =============================================================================
# Responder — Prompt Assembly & Bilingual Answer Parsing
# =============================================================================
#
# Builds the chat conversation sent to the LLM and turns whatever comes back
# into a validated bilingual payload.
#
# CONVERSATION LAYOUT:
#   user       rules + "--- CONTEXT DATA ---" + context + acknowledgment request
#   assistant  synthetic acknowledgment (bilingual JSON)
#   ...        last N history turns
#   user       current question
#
# PARSING (model output is untrusted):
#   1. json.loads + pydantic validation
#   2. strip ```json / ``` fences, retry once
#   3. give up → fixed bilingual error payload, raw text logged
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Payload Schema
# ---------------------------------------------------------------------------


class BilingualText(BaseModel):
    en: str
    fr: str


class ChatAnswerPayload(BaseModel):
    """The JSON object the model is instructed to return."""

    answer: BilingualText
    question: BilingualText


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """You are an AI assistant for an administrative and operational reporting system (OCC — Office Congolais de Contrôle). You help users query and understand their session data which covers:
- Personnel/HR (staff counts by category/grade/gender, management cadre, salary mass)
- Budget (production forecast vs achievement, charges, treasury receipts/disbursements)
- Exploitation (import/export volumes and values, lab analysis compliance, metrology, technical control)

Rules:
1. Answer ONLY based on the provided session data context. Do not make up information.
2. If the context does not contain enough information to answer, say so explicitly.
3. When referencing data, cite which session it comes from by name.
4. Provide specific numbers and calculations when possible.
5. Be concise but thorough. Use bullet points for clarity when listing multiple data points.
6. If the user asks for comparisons between sessions, compare the relevant metrics side by side.
7. IMPORTANT: You must respond in JSON format with the following structure:
   {
     "answer": {
       "en": "English answer here...",
       "fr": "French answer here..."
     },
     "question": {
       "en": "The user's question translated to English...",
       "fr": "The user's question translated to French..."
     }
   }
   Do not include any markdown formatting like ```json. Return raw JSON only."""

ACKNOWLEDGMENT = json.dumps(
    {
        "en": "I have received the context data. I'm ready to answer your questions about your sessions.",
        "fr": "J'ai bien reçu les données de contexte. Je suis prêt à répondre à vos questions sur vos sessions.",
    },
    ensure_ascii=False,
    separators=(",", ":"),
)

NO_MATCH_ANSWERS = {
    "en": "I couldn't find any sessions matching your question. Please make sure you have saved sessions with data.",
    "fr": "Je n'ai trouvé aucune session correspondant à votre question. Veuillez vous assurer que vous avez des sessions enregistrées avec des données.",
}

FALLBACK_ANSWER = BilingualText(
    en="Error generating response.",
    fr="Erreur lors de la génération de la réponse.",
)


def no_match_answer(language: str | None) -> str:
    """Canned reply when the caller has no retrievable sessions."""
    if language and language.startswith("fr"):
        return NO_MATCH_ANSWERS["fr"]
    return NO_MATCH_ANSWERS["en"]


def grounding_turn(context: str) -> str:
    return (
        f"{SYSTEM_PROMPT}\n\n"
        f"--- CONTEXT DATA ---\n{context}\n--- END CONTEXT ---\n\n"
        "Please acknowledge you have the context and are ready to answer questions."
    )


def build_conversation(
    context: str,
    question: str,
    history: Sequence[dict[str, Any]] | None = None,
    history_limit: int = 10,
) -> list[dict[str, str]]:
    """
    Assemble the message list for one chat turn.

    Only the last `history_limit` history entries are kept. Any role other
    than "user" is sent as "assistant".
    """
    messages = [
        {"role": "user", "content": grounding_turn(context)},
        {"role": "assistant", "content": ACKNOWLEDGMENT},
    ]

    recent = list(history or [])[-history_limit:] if history_limit > 0 else []
    for turn in recent:
        role = "user" if turn.get("role") == "user" else "assistant"
        messages.append({"role": role, "content": str(turn.get("content", ""))})

    messages.append({"role": "user", "content": question})
    return messages


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def fallback_payload(question: str) -> ChatAnswerPayload:
    return ChatAnswerPayload(
        answer=FALLBACK_ANSWER,
        question=BilingualText(en=question, fr=question),
    )


def strip_code_fences(raw: str) -> str:
    return raw.replace("```json", "").replace("```", "").strip()


def _try_parse(raw: str) -> ChatAnswerPayload | None:
    try:
        return ChatAnswerPayload.model_validate(json.loads(raw))
    except (ValueError, ValidationError, TypeError, RecursionError):
        return None


def parse_answer(raw: str | None, question: str) -> ChatAnswerPayload:
    """
    Parse model output into a ChatAnswerPayload. Never raises.

    Empty or unparseable output yields the bilingual error payload.
    """
    if not raw or not raw.strip():
        logger.warning("Chat model returned an empty response")
        return fallback_payload(question)

    payload = _try_parse(raw) or _try_parse(strip_code_fences(raw))
    if payload is None:
        logger.error("Failed to parse chat response as JSON: %s", raw)
        return fallback_payload(question)
    return payload
