# =============================================================================
# Report Analyst — Executive Summary of a Single Session
# =============================================================================
#
# One prompt, one LLM call: the whole session payload is embedded as
# pretty-printed JSON and the model writes a markdown executive summary.
#
# The prompt fixes the structure of the output:
#   - six focus areas (personnel, movements, medical, operations, budget,
#     recommendations)
#   - exactly three actionable recommendations (HR, Operations, Finance)
#   - exactly two adjacent ```mermaid blocks: a pie chart of personnel and
#     an `xychart-beta` bar chart of budget vs actuals
#
# The UI renders the mermaid blocks, so their shape matters as much as
# the prose.
#
# DESIGN DECISION: No retrieval here. The caller already holds the session
# it wants analysed, so the full payload goes straight into the prompt.
# =============================================================================

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from report_assistant.services.llm import LLMProvider, get_analysis_provider

logger = logging.getLogger(__name__)

EMPTY_ANALYSIS = "No analysis could be generated."
SERVICE_ERROR_MESSAGE = (
    "An error occurred while communicating with the AI service. "
    "Please try again."
)


class MissingReportDataError(Exception):
    """No session payload was supplied."""


class AnalysisFailedError(Exception):
    """The LLM call behind an analysis failed."""


@dataclass
class AnalysisResult:
    """Result from the analyst."""

    text: str
    model: str
    input_tokens: int
    output_tokens: int


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

_PROMPT_TEMPLATE = """
You are a senior administrative and operational analyst. Analyze the following report data (Administration, Exploitation, and Budget) provided in JSON format and provide a concise executive summary.

The user's preferred language is: {language}. Please respond in this language.

Focus on:
1. Personnel distribution and gender balance.
2. Significant personnel movements (hiring vs departures).
3. Medical cost drivers and transfer anomalies.
4. Operational performance (Exploitation):
   - Import/Export volume and value trends.
   - Lab analysis compliance rates.
5. Financial Performance (Budget):
   - Execution rates for Production vs Charges.
   - Treasury balance and cash flow health.
6. Provide 3 actionable recommendations covering HR, Operations, and Finance.
7. Generate exactly 2 concise Mermaid diagrams:
   - Diagram 1: A simple Pie Chart for Personnel Distribution (e.g., Gender or Category).
   - Diagram 2: A simple Bar Chart (using `xychart-beta`) for Financial Overview (e.g., Budget vs Actuals).
   - Constraints:
     - Keep diagrams compact. Use short labels.
     - Place the two diagrams immediately one after another, with no text in between.
     - Wrap EACH diagram in its own code block with the identifier "mermaid".
   - Example for Diagram 1:
   ```mermaid
   pie title Personnel
     "Men" : 60
     "Women" : 40
   ```
   - Example for Diagram 2:
   ```mermaid
   xychart-beta
     title "Budget vs Actuals"
     x-axis ["Prod", "Charges"]
     y-axis "Amount" 0 --> 100
     bar [80, 50]
   ```

Data:
{data}
"""


def response_language(language: str | None) -> str:
    return "French" if language and language.startswith("fr") else "English"


def build_prompt(data: Any, language: str | None) -> str:
    return _PROMPT_TEMPLATE.format(
        language=response_language(language),
        data=json.dumps(data, indent=2, ensure_ascii=False, default=str),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def analyze_report(
    data: Any,
    language: str | None = "en",
    llm: LLMProvider | None = None,
) -> AnalysisResult:
    """
    Produce an executive-summary analysis of one session's data.

    Args:
        data: Session document or bare payload; serialized into the prompt.
        language: UI language; "fr*" selects French, anything else English.
        llm: Provider override (default: the analysis provider singleton).

    Raises:
        MissingReportDataError: `data` is empty.
        AnalysisFailedError: the provider call failed.
    """
    if not data:
        raise MissingReportDataError("Session data is required.")

    llm = llm or get_analysis_provider()
    prompt = build_prompt(data, language)

    logger.info(
        "Analyst generating report summary (language=%s, prompt=%d chars)",
        response_language(language), len(prompt),
    )

    try:
        response = await llm.complete(
            messages=[{"role": "user", "content": prompt}],
        )
    except Exception as e:
        logger.exception("Report analysis failed")
        raise AnalysisFailedError(SERVICE_ERROR_MESSAGE) from e

    logger.info(
        "Analyst complete: model=%s, tokens=%d+%d",
        response.model, response.input_tokens, response.output_tokens,
    )

    return AnalysisResult(
        text=response.content or EMPTY_ANALYSIS,
        model=response.model,
        input_tokens=response.input_tokens,
        output_tokens=response.output_tokens,
    )
