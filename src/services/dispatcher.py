"""Notification dispatcher: turns evaluator verdicts into reminder emails.

One dispatch pass:

1. Snapshot ``now`` once and evaluate every item against it.
2. For each verdict, claim the ``(item_id, kind)`` slot in the
   :class:`~src.services.ledger.NotificationLedger`.  Slots attempted
   within the dedup window are skipped.
3. Persist the claimed slots, releasing them again if that write fails,
   then hand each rendered message to the notification sink concurrently.
4. Record a :class:`DeliveryAttempt` for every send, successful or not.

An attempt counts even when the sink fails or is not configured, so a
broken sink is tried at most once per key per window.  Sink failures are
logged and never abort the pass.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime
from typing import Final

import structlog

from src.models.compliance import ComplianceCategory, ComplianceItem
from src.models.enums import DeliveryState, NotificationKind
from src.models.notification import (
    DeliveryAttempt,
    NotificationMessage,
    NotificationVerdict,
    SinkResult,
)
from src.services.email_sink import NotificationSink
from src.services.errors import SinkUnavailable, StorageError
from src.services.evaluator import DEFAULT_NEARING_DUE_DAYS, evaluate
from src.services.ledger import NotificationLedger, as_utc

logger = structlog.get_logger(__name__)

_MAX_LOG_ENTRIES: Final[int] = 1000

_UNCATEGORIZED: Final[str] = "Uncategorized"
_UNASSIGNED: Final[str] = "Unassigned"


# ---------------------------------------------------------------------------
# Message rendering
# ---------------------------------------------------------------------------


def format_due_date(value: date | None) -> str:
    """US short date without zero padding (``3/7/2025``)."""
    if value is None:
        return "Not set"
    return f"{value.month}/{value.day}/{value.year}"


def _category_name(item: ComplianceItem) -> str:
    category: ComplianceCategory | None = getattr(item, "category", None)
    return category.name if category is not None else _UNCATEGORIZED


def build_message(item: ComplianceItem, verdict: NotificationVerdict) -> NotificationMessage:
    """Render the reminder email for *item* under *verdict*."""
    kind = verdict.kind
    if kind is None:
        raise ValueError("Cannot build a message for an item that needs no notification")

    category = _category_name(item)
    assignee = item.assigned_to or _UNASSIGNED
    due = format_due_date(item.due_date)
    description = item.description or "No description provided"
    notes = item.notes or "No additional notes"

    if kind == NotificationKind.OVERDUE:
        subject = f"URGENT: Compliance Item Overdue - {item.title}"
        lines = [
            "Compliance Item Overdue",
            "",
            f"Title: {item.title}",
            f"Category: {category}",
            f"Status: {item.status}",
            f"Priority: {item.priority}",
            f"Due Date: {due}",
            f"Assigned To: {assignee}",
            "",
            "This compliance item is now overdue. Please take immediate action.",
        ]
    else:
        subject = f"Reminder: Compliance Item Due Soon - {item.title}"
        lines = [
            "Compliance Item Due Soon",
            "",
            f"Title: {item.title}",
            f"Category: {category}",
            f"Status: {item.status}",
            f"Priority: {item.priority}",
            f"Due Date: {due}",
            f"Days Remaining: {verdict.days_remaining}",
            f"Assigned To: {assignee}",
            "",
            f"This compliance item is due in {verdict.days_remaining} day(s). "
            "Please review and update the status.",
        ]
    lines += ["", "Description:", description, "", "Notes:", notes]

    return NotificationMessage(
        to=item.owner_email.strip(),
        subject=subject,
        body="\n".join(lines),
        item_id=item.id,
        kind=kind,
        metadata={
            "item_title": item.title,
            "item_category": category,
            "item_status": str(item.status),
            "item_priority": str(item.priority),
            "due_date": due,
            "assigned_to": assignee,
            "days_remaining": "" if verdict.days_remaining is None else str(verdict.days_remaining),
            "notification_type": str(kind),
        },
    )


def build_alert(item: ComplianceItem, verdict: NotificationVerdict) -> tuple[str, str]:
    """Short user-facing alert ``(title, body)`` describing a reminder."""
    if verdict.kind == NotificationKind.OVERDUE:
        title = f"URGENT: {item.title} is overdue"
    else:
        title = f"Reminder: {item.title} due in {verdict.days_remaining} day(s)"
    return title, f"Email sent to {item.owner_email.strip()}"


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class NotificationDispatcher:
    """Evaluates items and sends deduplicated reminders through a sink.

    Parameters
    ----------
    sink:
        Where rendered messages are delivered.
    ledger:
        Dedup ledger shared by every pass in this process.
    nearing_due_days:
        Upper bound (inclusive) of the nearing-due window.
    """

    __slots__ = ("_ledger", "_log", "_nearing_due_days", "_sink")

    def __init__(
        self,
        sink: NotificationSink,
        ledger: NotificationLedger,
        *,
        nearing_due_days: int = DEFAULT_NEARING_DUE_DAYS,
    ) -> None:
        self._sink = sink
        self._ledger = ledger
        self._nearing_due_days = nearing_due_days
        self._log: deque[DeliveryAttempt] = deque(maxlen=_MAX_LOG_ENTRIES)

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    @property
    def ledger(self) -> NotificationLedger:
        return self._ledger

    def evaluate(self, item: ComplianceItem, now: datetime) -> NotificationVerdict:
        return evaluate(item, now, nearing_due_days=self._nearing_due_days)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def dispatch(
        self,
        items: Iterable[ComplianceItem],
        now: datetime | None = None,
    ) -> list[DeliveryAttempt]:
        """Run one reminder pass over *items* and return the attempts made."""
        now = as_utc(now or datetime.now(UTC))
        await self._ledger.load()

        claimed: list[tuple[ComplianceItem, NotificationVerdict]] = []
        previous: list[datetime | None] = []
        skipped = 0
        for item in items:
            verdict = self.evaluate(item, now)
            if verdict.kind is None:
                continue
            last = self._ledger.last_sent(item.id, verdict.kind)
            if not self._ledger.claim(item.id, verdict.kind, now):
                skipped += 1
                logger.debug(
                    "dispatcher.recently_notified",
                    item_id=item.id,
                    kind=str(verdict.kind),
                )
                continue
            claimed.append((item, verdict))
            previous.append(last)

        if not claimed:
            logger.debug("dispatcher.pass_complete", attempted=0, skipped=skipped)
            return []

        try:
            await self._ledger.flush()
        except StorageError:
            for (item, verdict), last in zip(claimed, previous):
                self._ledger.release(item.id, verdict.kind, last)
            logger.error("dispatcher.ledger_flush_failed", claimed=len(claimed))
            raise

        attempts = await asyncio.gather(
            *(self._deliver(item, verdict, now) for item, verdict in claimed)
        )
        logger.info(
            "dispatcher.pass_complete",
            attempted=len(attempts),
            sent=sum(1 for a in attempts if a.sent),
            skipped=skipped,
        )
        return list(attempts)

    async def _deliver(
        self,
        item: ComplianceItem,
        verdict: NotificationVerdict,
        now: datetime,
    ) -> DeliveryAttempt:
        message = build_message(item, verdict)

        try:
            result = await self._sink.send(message)
        except SinkUnavailable as exc:
            logger.warning(
                "dispatcher.sink_failed",
                item_id=item.id,
                kind=str(message.kind),
                error=str(exc),
            )
            result = SinkResult(
                state=DeliveryState.FAILED, provider=self._sink.provider, error=str(exc)
            )
        except Exception as exc:
            logger.error(
                "dispatcher.sink_error",
                item_id=item.id,
                kind=str(message.kind),
                exc_info=True,
            )
            result = SinkResult(
                state=DeliveryState.FAILED,
                provider=self._sink.provider,
                error=str(exc) or type(exc).__name__,
            )

        alert_title, alert_body = build_alert(item, verdict)
        attempt = DeliveryAttempt(
            item_id=item.id,
            user_id=item.user_id,
            kind=message.kind,
            days_remaining=verdict.days_remaining,
            to=message.to,
            subject=message.subject,
            body=message.body,
            state=result.state,
            sent=result.sent,
            error=result.error,
            attempted_at=now,
            alert_title=alert_title,
            alert_body=alert_body,
        )
        self._log.append(attempt)
        return attempt

    # ------------------------------------------------------------------
    # Delivery log
    # ------------------------------------------------------------------

    def attempts_for_user(self, user_id: str) -> list[DeliveryAttempt]:
        """All logged attempts for *user_id*'s items, newest first."""
        return [a for a in reversed(self._log) if a.user_id == user_id]

    def recent_attempts(self, limit: int | None = None) -> Sequence[DeliveryAttempt]:
        attempts = list(reversed(self._log))
        return attempts if limit is None else attempts[:limit]
