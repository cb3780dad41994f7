# =============================================================================
# Workers Package — Celery Background Tasks
# =============================================================================
#   - celery_app.py: Celery application configuration
#   - tasks.py: `on_session_written` (embedding maintainer) and
#     `backfill_embeddings` (bulk sweep)
#
# Embedding calls are network-bound and must not hold up session writes, so
# the API only queues a task with before/after snapshots and returns.
# =============================================================================
