"""Notification evaluator: decides whether an item warrants a reminder.

Pure functions only.  The caller supplies ``now`` so a whole dispatch
pass classifies every item against the same instant.

Rules, in order:

1. Compliant items, items without a due date and items without an
   owner email never notify.
2. ``days_until_due = ceil((due - now) / 1 day)`` where ``due`` is
   midnight UTC at the start of the due date.
3. ``days_until_due < 0`` on an active item is *overdue*.
4. ``0 <= days_until_due <= nearing_due_days`` on an active item is
   *nearing due*, carrying the day count.

An item due today is therefore nearing due with zero days remaining,
never overdue.
"""

from __future__ import annotations

import math
from datetime import UTC, date, datetime, time
from typing import Final

from src.models.compliance import ComplianceItem
from src.models.enums import ComplianceStatus, NotificationKind
from src.models.notification import NO_NOTIFICATION, NotificationVerdict

DEFAULT_NEARING_DUE_DAYS: Final[int] = 3

_SECONDS_PER_DAY: Final[int] = 24 * 60 * 60

# Statuses that can still become overdue or nearing due.
ACTIVE_STATUSES: Final[frozenset[ComplianceStatus]] = frozenset(
    {
        ComplianceStatus.PENDING,
        ComplianceStatus.IN_PROGRESS,
        ComplianceStatus.NON_COMPLIANT,
    }
)


def due_instant(due_date: date) -> datetime:
    """The moment an item becomes due: midnight UTC on *due_date*."""
    return datetime.combine(due_date, time.min, tzinfo=UTC)


def days_until_due(due_date: date, now: datetime) -> int:
    """Whole days from *now* until *due_date*, fractional days rounded up."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    delta = due_instant(due_date) - now
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def is_overdue(item: ComplianceItem, now: datetime) -> bool:
    """Whether *item* is past due and not yet compliant.

    Unlike :func:`evaluate`, this ignores ``owner_email``: it answers the
    dashboard's question, not whether an email can be sent.
    """
    if item.due_date is None or item.status not in ACTIVE_STATUSES:
        return False
    return days_until_due(item.due_date, now) < 0


def evaluate(
    item: ComplianceItem,
    now: datetime,
    *,
    nearing_due_days: int = DEFAULT_NEARING_DUE_DAYS,
) -> NotificationVerdict:
    """Classify *item* at *now* as overdue, nearing due, or neither."""
    if (
        item.status == ComplianceStatus.COMPLIANT
        or item.due_date is None
        or not item.owner_email.strip()
    ):
        return NO_NOTIFICATION

    if item.status not in ACTIVE_STATUSES:
        return NO_NOTIFICATION

    days = days_until_due(item.due_date, now)
    if days < 0:
        return NotificationVerdict(kind=NotificationKind.OVERDUE)
    if days <= nearing_due_days:
        return NotificationVerdict(
            kind=NotificationKind.NEARING_DUE, days_remaining=days
        )
    return NO_NOTIFICATION
