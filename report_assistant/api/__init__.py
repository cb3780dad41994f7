# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# One APIRouter per feature:
#   - sessions.py: owner-scoped session CRUD and duplication
#   - chat.py: retrieval-augmented Q&A over the caller's sessions
#   - analyze.py: executive-summary analysis (ad hoc and cached per session)
#   - admin.py: API key issuance and the embedding backfill
#   - deps.py: authentication and shared dependencies
# =============================================================================
