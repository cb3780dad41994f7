# =============================================================================
# Unit Tests — Session Serializer
# =============================================================================
#
# Pure-function tests: no database, no network.
#
# Test groups:
#   1. Number / date / rate formatting
#   2. Header line
#   3. Personnel block (incl. worked example)
#   4. Budget block (incl. worked example)
#   5. Exploitation blocks
#   6. Totality on malformed payloads
# =============================================================================

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from report_assistant.services.serializer import (
    execution_rate,
    format_date,
    format_number,
    serialize_session,
)

# ---------------------------------------------------------------------------
# 1. Formatting
# ---------------------------------------------------------------------------


class TestFormatNumber:

    def test_zero(self):
        assert format_number(0) == "0"

    @pytest.mark.parametrize("value, expected", [
        (1, "1"),
        (42.4, "42"),
        (999, "999"),
        (-500, "-500"),
    ])
    def test_plain_below_thousand(self, value, expected):
        assert format_number(value) == expected

    @pytest.mark.parametrize("value, expected", [
        (1_000, "1.0K"),
        (1_560, "1.6K"),
        (500_000, "500.0K"),
        (-2_500, "-2.5K"),
    ])
    def test_thousands_one_decimal(self, value, expected):
        assert format_number(value) == expected

    @pytest.mark.parametrize("value, expected", [
        (1_000_000, "1.00M"),
        (1_500_000, "1.50M"),
        (12_345_678, "12.35M"),
        (-3_000_000, "-3.00M"),
    ])
    def test_millions_two_decimals(self, value, expected):
        assert format_number(value) == expected


class TestExecutionRate:

    def test_zero_forecast_is_na(self):
        assert execution_rate(0, 100) == "N/A"

    def test_one_decimal(self):
        assert execution_rate(1_000_000, 750_000) == "75.0%"
        assert execution_rate(3, 1) == "33.3%"

    def test_over_achievement(self):
        assert execution_rate(100, 150) == "150.0%"


class TestFormatDate:

    def test_iso_string_with_z(self):
        assert format_date("2024-01-05T00:00:00.000Z") == "Jan 5, 2024"

    def test_converted_to_utc(self):
        # 23:30 at UTC-02:00 is already the next day in UTC
        assert format_date("2024-03-31T23:30:00-02:00") == "Apr 1, 2024"

    def test_datetime_object(self):
        assert format_date(datetime(2023, 12, 25, tzinfo=UTC)) == "Dec 25, 2023"

    def test_unparseable_is_echoed(self):
        assert format_date("sometime in spring") == "sometime in spring"


# ---------------------------------------------------------------------------
# 2. Header
# ---------------------------------------------------------------------------


class TestHeader:

    def test_header_only_without_payload(self):
        doc = {"sessionName": "Q1"}
        assert serialize_session(doc) == 'Session: "Q1".'

    def test_empty_payload_is_header_only(self):
        doc = {"sessionName": "Q1", "data": {}}
        assert serialize_session(doc) == 'Session: "Q1".'

    def test_default_name(self):
        assert serialize_session({}) == 'Session: "Unnamed Session".'

    def test_description_and_period(self):
        doc = {
            "sessionName": "Q1 2024",
            "description": "First quarter",
            "startDate": "2024-01-01T00:00:00Z",
            "endDate": "2024-03-31T00:00:00Z",
        }
        assert serialize_session(doc) == (
            'Session: "Q1 2024" — First quarter (Jan 1, 2024 to Mar 31, 2024).'
        )

    def test_period_requires_both_dates(self):
        doc = {"sessionName": "Q1", "startDate": "2024-01-01T00:00:00Z"}
        assert serialize_session(doc) == 'Session: "Q1".'


# ---------------------------------------------------------------------------
# 3. Personnel
# ---------------------------------------------------------------------------


class TestPersonnel:

    def test_worked_example(self):
        """Management cadre comes from the stored counter, not the rows."""
        doc = {
            "sessionName": "Q1",
            "data": {
                "staff": [
                    {"category": "MANAGEMENT STAFF", "grade": "DIR", "male": 2, "female": 1},
                ],
                "salaryMassCDF": 500000,
            },
        }
        assert serialize_session(doc) == (
            'Session: "Q1".\n'
            "Personnel: 3 total staff (2 male, 1 female). Management cadre: 0. "
            "Salary mass: 500.0K CDF. By category — MANAGEMENT STAFF: 3 (2M/1F)."
        )

    def test_groups_by_category_in_first_seen_order(self):
        doc = {
            "sessionName": "S",
            "data": {
                "staff": [
                    {"category": "AGENTS", "male": 10, "female": 5},
                    {"category": "CADRES", "male": 3},
                    {"category": "AGENTS", "male": 1, "female": 1},
                ],
                "managementCount": 4,
            },
        }
        text = serialize_session(doc)
        assert "Personnel: 20 total staff (14 male, 6 female)." in text
        assert "Management cadre: 4." in text
        assert "By category — AGENTS: 17 (11M/6F); CADRES: 3 (3M/0F)." in text

    def test_missing_category_is_other(self):
        doc = {"data": {"staff": [{"male": 1, "female": 1}]}}
        assert "Other: 2 (1M/1F)" in serialize_session(doc)

    def test_no_staff_rows_omits_block(self):
        doc = {"sessionName": "S", "data": {"staff": [], "salaryMassCDF": 10}}
        assert "Personnel" not in serialize_session(doc)


# ---------------------------------------------------------------------------
# 4. Budget
# ---------------------------------------------------------------------------


class TestBudget:

    def test_worked_example(self):
        doc = {
            "sessionName": "B",
            "data": {
                "budget": {
                    "production": [
                        {"label": "Fees", "forecast": 1_000_000, "achievement": 750_000},
                    ],
                },
            },
        }
        line = serialize_session(doc).split("\n")[1]
        assert line.startswith(
            "Budget: Production: total forecast 1.00M, achieved 750.0K (75.0%)."
        )
        assert "Top items — Fees: forecast 1.00M, achieved 750.0K (75.0%)." in line

    def test_top_five_by_achievement(self):
        rows = [
            {"label": f"item{i}", "forecast": 100, "achievement": i * 10}
            for i in range(1, 8)
        ]
        doc = {"data": {"budget": {"charges": rows}}}
        line = serialize_session(doc)
        assert "item7" in line and "item3" in line
        assert "item2" not in line and "item1:" not in line
        assert line.index("item7") < line.index("item6") < line.index("item3")

    def test_zero_rows_excluded_from_top_items(self):
        doc = {"data": {"budget": {"production": [
            {"label": "Dead", "forecast": 0, "achievement": 0},
            {"label": "Live", "forecast": 10, "achievement": 5},
        ]}}}
        text = serialize_session(doc)
        assert "Live" in text
        assert "Dead" not in text

    def test_treasury_balance(self):
        doc = {"data": {"budget": {
            "treasuryReceipts": [{"label": "in", "achievement": 5_000}],
            "treasuryDisbursements": [{"label": "out", "achievement": 2_000}],
        }}}
        assert (
            "Treasury: receipts 5.0K, disbursements 2.0K, balance 3.0K."
            in serialize_session(doc)
        )

    def test_empty_groups_omitted(self):
        doc = {"data": {"budget": {"production": [], "charges": []}}}
        text = serialize_session(doc)
        assert "Production" not in text
        assert "Charges" not in text


# ---------------------------------------------------------------------------
# 5. Exploitation
# ---------------------------------------------------------------------------


class TestExploitation:

    def test_operating_data_prefers_cif(self):
        doc = {"data": {"exploitation": {"operatingData": [
            {"category": "Import", "subcategory": "Cement",
             "volume": {"kgs": 2_000_000}, "value": {"cif": 1_500, "fob": 900}},
            {"category": "Export", "subcategory": "Copper",
             "volume": {"kgs": 0}, "value": {"fob": 3_000_000}},
            {"category": "Import", "subcategory": "Empty",
             "volume": {"kgs": 0}, "value": {}},
        ]}}}
        assert (
            "Exploitation — Operating data: Import Cement: 2.00M kgs, CIF 1.5K; "
            "Export Copper: FOB 3.00M."
        ) in serialize_session(doc)

    def test_counters_drop_non_positive(self):
        doc = {"data": {"exploitation": {
            "failures": [{"name": "Leaks", "count": 3}, {"name": "None", "count": 0}],
            "metrology": [{"name": "Scales", "count": 12}],
            "technicalControl": [{"name": "Vehicles", "count": -1}],
        }}}
        text = serialize_session(doc)
        assert "Failures/Damages: Leaks: 3." in text
        assert "Metrology: Scales: 12." in text
        assert "Technical Control" not in text
        assert "None" not in text

    def test_lab_analysis(self):
        doc = {"data": {"exploitation": {"labAnalysis": [
            {"category": "Food", "product": "Flour", "received": 10,
             "analyzed": 8, "nonCompliant": 2},
            {"category": "Fuel", "received": 0, "analyzed": 0, "nonCompliant": 0},
        ]}}}
        assert serialize_session(doc).split("\n")[1] == (
            "Lab Analysis: 10 total samples received, 8 analyzed, 2 non-compliant "
            "(75.0% compliance). Breakdown — Flour: 10 received, 8 analyzed, "
            "2 non-compliant."
        )

    def test_lab_analysis_all_zero_omitted(self):
        doc = {"data": {"exploitation": {"labAnalysis": [
            {"product": "X", "received": 0, "analyzed": 0, "nonCompliant": 0},
        ]}}}
        assert "Lab Analysis" not in serialize_session(doc)

    def test_lab_compliance_na_when_nothing_analyzed(self):
        doc = {"data": {"exploitation": {"labAnalysis": [
            {"product": "X", "received": 4, "analyzed": 0, "nonCompliant": 0},
        ]}}}
        assert "(N/A compliance)" in serialize_session(doc)


# ---------------------------------------------------------------------------
# 6. Totality
# ---------------------------------------------------------------------------


class TestTotality:

    @pytest.mark.parametrize("data", [
        {"staff": "not a list"},
        {"staff": [None, 3, {"male": "abc", "female": None}]},
        {"budget": ["wrong", "shape"]},
        {"budget": {"production": [{"forecast": "1e3", "achievement": float("nan")}]}},
        {"exploitation": {"operatingData": [{"volume": 5, "value": "x"}]}},
        {"exploitation": {"labAnalysis": [{"received": True}]}},
    ])
    def test_never_raises(self, data):
        text = serialize_session({"sessionName": "S", "data": data})
        assert text.startswith('Session: "S"')

    def test_numeric_strings_are_parsed(self):
        doc = {"data": {"staff": [{"category": "A", "male": "4", "female": "1"}]}}
        assert "5 total staff (4 male, 1 female)" in serialize_session(doc)

    def test_deterministic(self):
        doc = {"sessionName": "S", "data": {"staff": [{"category": "A", "male": 1}]}}
        assert serialize_session(doc) == serialize_session(dict(doc))
