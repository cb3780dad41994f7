# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
# Request/response schemas for the HTTP API, kept separate from the ORM
# models in report_assistant/db/models.py so the stored embedding vector
# never leaks into a response.
# =============================================================================
