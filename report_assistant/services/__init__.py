# =============================================================================
# Services Package — Business Logic
# =============================================================================
# Core logic, independent of the HTTP layer:
#   - serializer.py: deterministic session → text projection
#   - embedder.py: OpenAI embedding generation (fixed dimensionality)
#   - embedding_maintainer.py: per-write embedding upkeep
#   - backfill.py: bulk catch-up sweep over the whole collection
#   - session_index.py: pgvector storage and owner-scoped similarity search
#   - session_repository.py: session CRUD that emits change events
#   - llm.py: multi-provider LLM abstraction (Anthropic, OpenAI-compatible)
#   - auth.py: API key generation, hashing and admin key checks
# =============================================================================
