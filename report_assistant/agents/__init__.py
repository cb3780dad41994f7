# =============================================================================
# Agents Package — LLM-Facing Pipelines
# =============================================================================
#   - orchestrator.py: LangGraph chat graph (embed → retrieve → generate →
#     parse) and the `chat()` entry point
#   - retriever.py: question embedding and owner-scoped session retrieval
#   - responder.py: conversation assembly and bilingual answer parsing
#   - analyst.py: executive-summary analysis of a single session
# =============================================================================
