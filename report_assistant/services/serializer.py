# =============================================================================
# Session Serializer — Deterministic Text Projection of a Report Session
# =============================================================================
#
# Turns a session document (the camelCase mapping produced by
# ReportSession.to_document()) into a natural-language text block.
#
# The same text is used twice:
#   1. As the input of the embedding model (stored in `embedding_text`)
#   2. As the retrieval context handed to the chat model
#
# Retrieval quality is bounded by this text, so every section follows a
# fixed layout and numbers use compact magnitude notation ("1.50M" rather
# than "1500000").
#
# CONTRACT:
#   - Pure and deterministic: same document in, same string out
#   - Total: never raises, whatever the payload looks like
#   - Absent or empty sections are omitted, never rendered as zeros
#
# LAYOUT (one line per non-empty section, joined by "\n"):
#   Session: "<name>" — <description> (<start> to <end>).
#   Personnel: ...
#   Budget: ...
#   Exploitation — Operating data: ...
#   Failures/Damages: ...
#   Lab Analysis: ...
#   Metrology: ...
#   Technical Control: ...
# =============================================================================

from __future__ import annotations

import math
from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any

DEFAULT_SESSION_NAME = "Unnamed Session"

# Fixed month table: the rendered period must not depend on the host locale.
_MONTHS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_TOP_BUDGET_ITEMS = 5


# ---------------------------------------------------------------------------
# Formatting Helpers
# ---------------------------------------------------------------------------


def format_number(value: float) -> str:
    """
    Render a number in compact magnitude notation.

    >>> format_number(0)
    '0'
    >>> format_number(1_500_000)
    '1.50M'
    >>> format_number(750_000)
    '750.0K'
    >>> format_number(42.4)
    '42'
    """
    if value == 0:
        return "0"
    if abs(value) >= 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    if abs(value) >= 1_000:
        return f"{value / 1_000:.1f}K"
    return f"{value:.0f}"


def format_date(value: Any) -> str:
    """
    Render a date as "Jan 5, 2024" (UTC, English month names).

    Accepts ISO-8601 strings (with or without a trailing "Z"), `datetime`
    and `date` objects. Anything unparseable is echoed back as a string.
    """
    parsed: date | None = None
    if isinstance(value, datetime):
        parsed = _to_utc(value)
    elif isinstance(value, date):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = _to_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            parsed = None

    if parsed is None:
        return str(value)
    return f"{_MONTHS[parsed.month - 1]} {parsed.day}, {parsed.year}"


def execution_rate(forecast: float, achievement: float) -> str:
    """Achievement as a percentage of forecast, one decimal. "N/A" for a zero forecast."""
    if forecast == 0:
        return "N/A"
    return f"{achievement / forecast * 100:.1f}%"


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def serialize_session(document: Mapping[str, Any]) -> str:
    """
    Serialize a session document into its embedding / context text.

    Args:
        document: Session document with header fields (`sessionName`,
            `description`, `startDate`, `endDate`) and an optional `data`
            payload.

    Returns:
        The header line, followed by one line per non-empty section.
    """
    parts = [_header(document)]

    data = document.get("data")
    if not isinstance(data, Mapping) or not data:
        return "\n".join(parts)

    parts.append(_personnel(data))
    parts.append(_budget(data.get("budget")))

    exploitation = data.get("exploitation")
    if isinstance(exploitation, Mapping):
        parts.append(_operating_data(exploitation.get("operatingData")))
        parts.append(_counters("Failures/Damages", exploitation.get("failures")))
        parts.append(_lab_analysis(exploitation.get("labAnalysis")))
        parts.append(_counters("Metrology", exploitation.get("metrology")))
        parts.append(
            _counters("Technical Control", exploitation.get("technicalControl"))
        )

    return "\n".join(part for part in parts if part)


# ---------------------------------------------------------------------------
# Section Builders
# ---------------------------------------------------------------------------
# Each builder returns "" when its section has nothing to say.
# ---------------------------------------------------------------------------


def _header(document: Mapping[str, Any]) -> str:
    name = document.get("sessionName") or DEFAULT_SESSION_NAME
    description = document.get("description")
    desc = f" — {description}" if description else ""

    start, end = document.get("startDate"), document.get("endDate")
    period = f" ({format_date(start)} to {format_date(end)})" if start and end else ""

    return f'Session: "{name}"{desc}{period}.'


def _personnel(data: Mapping[str, Any]) -> str:
    staff = _rows(data.get("staff"))
    if not staff:
        return ""

    # Insertion-ordered grouping by the exact category string
    categories: dict[str, list[float]] = {}
    for row in staff:
        counts = categories.setdefault(str(row.get("category") or "Other"), [0, 0])
        counts[0] += _num(row.get("male"))
        counts[1] += _num(row.get("female"))

    total_male = sum(c[0] for c in categories.values())
    total_female = sum(c[1] for c in categories.values())

    breakdown = "; ".join(
        f"{cat}: {_plain(m + f)} ({_plain(m)}M/{_plain(f)}F)"
        for cat, (m, f) in categories.items()
    )

    return (
        f"Personnel: {_plain(total_male + total_female)} total staff "
        f"({_plain(total_male)} male, {_plain(total_female)} female). "
        f"Management cadre: {_plain(_num(data.get('managementCount')))}. "
        f"Salary mass: {format_number(_num(data.get('salaryMassCDF')))} CDF. "
        f"By category — {breakdown}."
    )


def _budget(budget: Any) -> str:
    if not isinstance(budget, Mapping):
        return ""

    receipts = sum(_num(r.get("achievement")) for r in _rows(budget.get("treasuryReceipts")))
    disbursements = sum(
        _num(r.get("achievement")) for r in _rows(budget.get("treasuryDisbursements"))
    )

    pieces = [
        _budget_group("Production", _rows(budget.get("production"))),
        _budget_group("Charges", _rows(budget.get("charges"))),
        (
            f"Treasury: receipts {format_number(receipts)}, "
            f"disbursements {format_number(disbursements)}, "
            f"balance {format_number(receipts - disbursements)}."
        ),
    ]
    return "Budget: " + " ".join(piece for piece in pieces if piece)


def _budget_group(label: str, rows: list[Mapping[str, Any]]) -> str:
    if not rows:
        return ""

    total_forecast = sum(_num(r.get("forecast")) for r in rows)
    total_achievement = sum(_num(r.get("achievement")) for r in rows)

    active = [
        r for r in rows
        if _num(r.get("forecast")) > 0 or _num(r.get("achievement")) > 0
    ]
    # sorted() is stable: equal achievements keep their input order
    top = sorted(active, key=lambda r: _num(r.get("achievement")), reverse=True)
    top_items = "; ".join(
        f"{r.get('label', '')}: forecast {format_number(_num(r.get('forecast')))}, "
        f"achieved {format_number(_num(r.get('achievement')))} "
        f"({execution_rate(_num(r.get('forecast')), _num(r.get('achievement')))})"
        for r in top[:_TOP_BUDGET_ITEMS]
    )

    summary = (
        f"{label}: total forecast {format_number(total_forecast)}, "
        f"achieved {format_number(total_achievement)} "
        f"({execution_rate(total_forecast, total_achievement)})."
    )
    if top_items:
        summary += f" Top items — {top_items}."
    return summary


def _operating_data(rows: Any) -> str:
    entries = []
    for row in _rows(rows):
        volume = row.get("volume") if isinstance(row.get("volume"), Mapping) else {}
        value = row.get("value") if isinstance(row.get("value"), Mapping) else {}
        kgs, cif, fob = _num(volume.get("kgs")), _num(value.get("cif")), _num(value.get("fob"))
        if not (kgs > 0 or cif > 0 or fob > 0):
            continue

        figures = []
        if kgs:
            figures.append(f"{format_number(kgs)} kgs")
        if cif:
            figures.append(f"CIF {format_number(cif)}")
        elif fob:
            figures.append(f"FOB {format_number(fob)}")

        label = f"{row.get('category', '')} {row.get('subcategory', '')}".strip()
        entries.append(f"{label}: {', '.join(figures)}")

    if not entries:
        return ""
    return f"Exploitation — Operating data: {'; '.join(entries)}."


def _counters(title: str, rows: Any) -> str:
    """Flat "name: count" lists (failures, metrology, technical control)."""
    entries = [
        f"{row.get('name', '')}: {_plain(_num(row.get('count')))}"
        for row in _rows(rows)
        if _num(row.get("count")) > 0
    ]
    if not entries:
        return ""
    return f"{title}: {'; '.join(entries)}."


def _lab_analysis(rows: Any) -> str:
    lab_rows = _rows(rows)
    received = sum(_num(r.get("received")) for r in lab_rows)
    analyzed = sum(_num(r.get("analyzed")) for r in lab_rows)
    non_compliant = sum(_num(r.get("nonCompliant")) for r in lab_rows)
    if not (received or analyzed or non_compliant):
        return ""

    if analyzed > 0:
        compliance = f"{(analyzed - non_compliant) / analyzed * 100:.1f}%"
    else:
        compliance = "N/A"

    line = (
        f"Lab Analysis: {_plain(received)} total samples received, "
        f"{_plain(analyzed)} analyzed, {_plain(non_compliant)} non-compliant "
        f"({compliance} compliance)."
    )

    details = "; ".join(
        f"{r.get('product') or r.get('category') or 'Unspecified'}: "
        f"{_plain(_num(r.get('received')))} received, "
        f"{_plain(_num(r.get('analyzed')))} analyzed, "
        f"{_plain(_num(r.get('nonCompliant')))} non-compliant"
        for r in lab_rows
        if _num(r.get("received")) > 0
    )
    if details:
        line += f" Breakdown — {details}."
    return line


# ---------------------------------------------------------------------------
# Coercion Helpers
# ---------------------------------------------------------------------------
# Payloads are written by a UI and imported from spreadsheets, so numeric
# fields may arrive as strings, nulls or garbage. Coerce instead of raising.
# ---------------------------------------------------------------------------


def _rows(value: Any) -> list[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [row for row in value if isinstance(row, Mapping)]


def _num(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if isinstance(value, (int, float)) and math.isfinite(value):
        return value
    return 0


def _plain(value: float) -> str:
    """Counts print as integers when they are whole numbers."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)
