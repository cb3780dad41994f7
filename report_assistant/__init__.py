# =============================================================================
# Session Report Assistant
# =============================================================================
# Backend for a budget/HR reporting application: serializes saved report
# sessions into text, keeps a vector embedding of each one current, and
# answers questions about a user's own sessions with retrieval-augmented
# generation.
#
# Package structure:
#   report_assistant/
#   ├── api/          → FastAPI route handlers (sessions, chat, analyze, admin)
#   ├── agents/       → LangGraph chat graph and the report analyst
#   ├── db/           → Database engines, sessions and ORM models
#   ├── models/       → Pydantic V2 request/response schemas
#   ├── services/     → Serializer, embedding maintenance, backfill, LLM and
#   │                    embedding providers, session storage
#   └── workers/      → Celery app and background tasks
# =============================================================================
