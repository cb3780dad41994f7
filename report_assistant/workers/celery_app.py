# =============================================================================
# Celery Application Configuration
# =============================================================================
#
# ARCHITECTURE:
# ┌──────────┐     ┌────────┐     ┌───────────────┐     ┌──────────┐
# │ FastAPI  │────▶│ Redis  │────▶│ Celery Worker │────▶│ Postgres │
# │(producer)│     │(broker)│     │  (consumer)   │     │ pgvector │
# └──────────┘     └────────┘     └───────────────┘     └──────────┘
#
# Producers: SessionRepository (one event per write) and callers of the
# backfill task. Task arguments are JSON document snapshots.
# =============================================================================

from celery import Celery

from report_assistant.config import settings

celery_app = Celery(
    "report_assistant.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # Snapshots are plain JSON documents
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Re-queue a task if the worker dies mid-run
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # Bounds the backfill sweep
    task_soft_time_limit=540,
    task_time_limit=600,

    result_expires=3600,

    include=["report_assistant.workers.tasks"],
)
