# =============================================================================
# FastAPI Application Entry Point
# =============================================================================
#
# Run with:
#   uvicorn report_assistant.main:app --reload
#
# Background work (embedding maintenance, backfill) runs in a separate
# Celery worker:
#   celery -A report_assistant.workers.celery_app worker --loglevel=info
# =============================================================================

import logging

from fastapi import FastAPI

from report_assistant.api import admin, analyze, chat, sessions
from report_assistant.config import settings
from report_assistant.models.responses import HealthResponse

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

app = FastAPI(
    title=settings.app_name,
    description=(
        "Session serialization, embedding maintenance and retrieval-augmented "
        "chat over saved report sessions"
    ),
    version=settings.app_version,
)

app.include_router(sessions.router)
app.include_router(analyze.router)
app.include_router(chat.router)
app.include_router(admin.router)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=settings.app_version,
        service=settings.app_name,
    )
