"""CSV export of the compliance registry.

Rows follow the order of the items passed in.  The ``Compliance ID``
column (``COMP-001``, ``COMP-002``, ...) is the 1-based row position at
export time, not a stored identifier: it changes whenever the list is
filtered or reordered.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Final

from src.models.compliance import ComplianceItem

CSV_HEADERS: Final[tuple[str, ...]] = (
    "Compliance ID",
    "Title",
    "Category",
    "Status",
    "Priority",
    "Due Date",
    "Last Reviewed Date",
    "Assigned To",
    "Owner Email",
    "Description",
    "Notes",
    "Created At",
    "Updated At",
)


def compliance_id(position: int) -> str:
    """Display id for the 1-based row *position*."""
    return f"COMP-{position:03d}"


def format_status(status: str) -> str:
    """``in_progress`` -> ``In Progress``."""
    return " ".join(word.capitalize() for word in str(status).split("_"))


def format_csv_date(value: date | datetime | None) -> str:
    """``MM/DD/YYYY``, or empty when unset."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        value = value.astimezone(UTC).date() if value.tzinfo else value.date()
    return value.strftime("%m/%d/%Y")


def _row(position: int, item: ComplianceItem) -> list[str]:
    category = getattr(item, "category", None)
    return [
        compliance_id(position),
        item.title,
        category.name if category is not None else "Uncategorized",
        format_status(item.status),
        str(item.priority).capitalize(),
        format_csv_date(item.due_date),
        format_csv_date(item.last_reviewed_date),
        item.assigned_to or "Unassigned",
        item.owner_email,
        item.description,
        item.notes,
        format_csv_date(item.created_at),
        format_csv_date(item.updated_at),
    ]


def export_csv(items: Sequence[ComplianceItem]) -> str:
    """Render *items* as a CSV document with a header row.

    Values containing a comma, quote or line break are quoted with inner
    quotes doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for position, item in enumerate(items, start=1):
        writer.writerow(_row(position, item))
    return buffer.getvalue()


def export_filename(today: date | None = None) -> str:
    """``compliance-registry-YYYY-MM-DD.csv`` for *today* (UTC)."""
    today = today or datetime.now(UTC).date()
    return f"compliance-registry-{today.isoformat()}.csv"
