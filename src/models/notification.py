"""Notification verdicts, outgoing messages, and delivery records."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from src.models.enums import DeliveryState, NotificationKind


class NotificationVerdict(BaseModel):
    """Result of evaluating one item at one instant.

    ``kind`` is ``None`` when no notification is due.  ``days_remaining``
    is only set for :attr:`NotificationKind.NEARING_DUE`.
    """

    model_config = {"frozen": True}

    kind: NotificationKind | None = None
    days_remaining: int | None = None

    @property
    def needs_notification(self) -> bool:
        return self.kind is not None


NO_NOTIFICATION = NotificationVerdict()


class NotificationMessage(BaseModel):
    """A rendered email ready to hand to a notification sink."""

    to: str
    subject: str
    body: str
    item_id: str
    kind: NotificationKind
    # Template parameters forwarded to the email provider.
    metadata: dict[str, str] = Field(default_factory=dict)


class SinkResult(BaseModel):
    """What a notification sink reports for one send."""

    state: DeliveryState
    provider: str = ""
    error: str | None = None
    raw_response: dict[str, Any] = Field(default_factory=dict)

    @property
    def sent(self) -> bool:
        return self.state in (DeliveryState.SENT, DeliveryState.LOGGED)


class DeliveryAttempt(BaseModel):
    """One recorded send attempt, successful or not."""

    attempt_id: str = Field(default_factory=lambda: uuid4().hex)
    item_id: str
    user_id: str
    kind: NotificationKind
    days_remaining: int | None = None
    to: str
    subject: str
    body: str
    state: DeliveryState
    sent: bool = False
    error: str | None = None
    attempted_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    # Short user-facing alert describing the reminder.
    alert_title: str = ""
    alert_body: str = ""


class ItemNotificationStatus(BaseModel):
    """Per-item verdict as shown next to the item in the list view."""

    item_id: str
    title: str
    needs_notification: bool
    kind: NotificationKind | None = None
    days_remaining: int | None = None
