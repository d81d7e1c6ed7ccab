"""Tests for the CSV registry export."""

from __future__ import annotations

import csv
import io
from datetime import UTC, date, datetime

from src.models.compliance import ComplianceCategory, ComplianceItemWithCategory
from src.models.enums import ComplianceStatus, Priority
from src.services.csv_export import (
    CSV_HEADERS,
    compliance_id,
    export_csv,
    export_filename,
    format_csv_date,
    format_status,
)


def _item(**overrides) -> ComplianceItemWithCategory:
    fields = {
        "user_id": "user_a",
        "title": "Item",
        "created_at": datetime(2025, 1, 2, 9, 30, tzinfo=UTC),
        "updated_at": datetime(2025, 1, 3, 9, 30, tzinfo=UTC),
    }
    fields.update(overrides)
    return ComplianceItemWithCategory(**fields)


class TestFormatting:
    def test_compliance_id_is_zero_padded(self) -> None:
        assert compliance_id(1) == "COMP-001"
        assert compliance_id(42) == "COMP-042"
        assert compliance_id(1000) == "COMP-1000"

    def test_status_is_title_cased(self) -> None:
        assert format_status(ComplianceStatus.IN_PROGRESS) == "In Progress"
        assert format_status(ComplianceStatus.NON_COMPLIANT) == "Non Compliant"
        assert format_status(ComplianceStatus.PENDING) == "Pending"

    def test_dates(self) -> None:
        assert format_csv_date(date(2025, 3, 7)) == "03/07/2025"
        assert format_csv_date(datetime(2025, 12, 31, 23, 0, tzinfo=UTC)) == "12/31/2025"
        assert format_csv_date(None) == ""

    def test_filename(self) -> None:
        assert export_filename(date(2025, 6, 11)) == "compliance-registry-2025-06-11.csv"


class TestExportCsv:
    def test_header_only_for_empty_list(self) -> None:
        assert export_csv([]) == ",".join(CSV_HEADERS) + "\n"

    def test_header_has_thirteen_columns(self) -> None:
        assert len(CSV_HEADERS) == 13
        assert CSV_HEADERS[0] == "Compliance ID"

    def test_comma_and_quote_are_escaped(self) -> None:
        output = export_csv([_item(title='Quarterly, "Q3" Review')])
        assert '"Quarterly, ""Q3"" Review"' in output

        rows = list(csv.reader(io.StringIO(output)))
        assert rows[1][1] == 'Quarterly, "Q3" Review'

    def test_newline_in_notes_round_trips(self) -> None:
        output = export_csv([_item(notes="line one\nline two")])
        rows = list(csv.reader(io.StringIO(output)))
        assert rows[1][10] == "line one\nline two"

    def test_row_values_and_order(self) -> None:
        category = ComplianceCategory(id="2", name="Tax Compliance")
        items = [
            _item(
                title="First",
                category=category,
                category_id="2",
                status=ComplianceStatus.IN_PROGRESS,
                priority=Priority.HIGH,
                due_date=date(2025, 4, 15),
                assigned_to="Dana",
                owner_email="dana@example.com",
            ),
            _item(title="Second"),
        ]
        rows = list(csv.reader(io.StringIO(export_csv(items))))

        assert rows[0] == list(CSV_HEADERS)
        assert rows[1] == [
            "COMP-001",
            "First",
            "Tax Compliance",
            "In Progress",
            "High",
            "04/15/2025",
            "",
            "Dana",
            "dana@example.com",
            "",
            "",
            "01/02/2025",
            "01/03/2025",
        ]
        assert rows[2][0] == "COMP-002"
        assert rows[2][2] == "Uncategorized"
        assert rows[2][7] == "Unassigned"
