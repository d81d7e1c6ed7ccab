"""Dashboard metrics over a user's compliance items."""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from datetime import UTC, datetime

from src.models.compliance import ComplianceItem, ComplianceMetrics
from src.models.enums import ComplianceStatus
from src.services.evaluator import is_overdue


def compute_metrics(
    items: Sequence[ComplianceItem], now: datetime | None = None
) -> ComplianceMetrics:
    """Count items per status, overdue items, and the compliance rate.

    The rate is the rounded percentage of compliant items, 0 for an
    empty list.  Overdue uses the same day arithmetic as reminders.
    """
    now = now or datetime.now(UTC)
    counts = Counter(item.status for item in items)
    total = len(items)
    compliant = counts[ComplianceStatus.COMPLIANT]

    return ComplianceMetrics(
        total=total,
        compliant=compliant,
        non_compliant=counts[ComplianceStatus.NON_COMPLIANT],
        in_progress=counts[ComplianceStatus.IN_PROGRESS],
        pending=counts[ComplianceStatus.PENDING],
        overdue=sum(1 for item in items if is_overdue(item, now)),
        # Half-up like the dashboard, not banker's rounding.
        compliance_rate=int(compliant * 100 / max(total, 1) + 0.5),
    )
