# =============================================================================
# Analyze API — Executive Summaries of Report Sessions
# =============================================================================
#
#   POST /analyze                      analyse a payload sent in the body
#   POST /sessions/{id}/analysis       analyse a stored session, with caching
#
# The stored variant returns the cached `ai_analysis` unless `refresh=true`
# or nothing is cached yet; a fresh analysis is written back together with
# its language.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from report_assistant.agents.analyst import (
    AnalysisFailedError,
    MissingReportDataError,
    analyze_report,
)
from report_assistant.api.deps import get_current_user_id, get_session_repository
from report_assistant.models.requests import AnalyzeRequest
from report_assistant.models.responses import AnalyzeResponse
from report_assistant.services.embedding_maintainer import strip_derived_fields
from report_assistant.services.session_repository import (
    SessionNotFoundError,
    SessionRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Analysis"])


async def _run_analysis(data, language: str):
    try:
        return await analyze_report(data, language)
    except MissingReportDataError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except AnalysisFailedError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise HTTPException(
            status_code=503,
            detail=f"Service configuration error: {e}",
        ) from e


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    summary="Analyse a report payload",
)
async def analyze_endpoint(
    request: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
) -> AnalyzeResponse:
    result = await _run_analysis(request.data, request.language)
    return AnalyzeResponse(text=result.text, language=request.language)


@router.post(
    "/sessions/{session_id}/analysis",
    response_model=AnalyzeResponse,
    summary="Analyse a saved session (cached)",
)
async def session_analysis_endpoint(
    session_id: str,
    language: str = Query(default="en"),
    refresh: bool = Query(default=False),
    user_id: str = Depends(get_current_user_id),
    repository: SessionRepository = Depends(get_session_repository),
) -> AnalyzeResponse:
    try:
        row = await repository.get(user_id, session_id)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail="Session not found.") from e

    if row.ai_analysis and not refresh:
        return AnalyzeResponse(
            text=row.ai_analysis,
            language=row.ai_analysis_language,
            cached=True,
        )

    result = await _run_analysis(strip_derived_fields(row.to_document()), language)
    await repository.save_analysis(user_id, session_id, result.text, language)

    logger.info("Stored analysis for session %s (language=%s)", session_id, language)
    return AnalyzeResponse(text=result.text, language=language)
