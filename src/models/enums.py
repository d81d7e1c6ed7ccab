from __future__ import annotations

from enum import StrEnum


class ComplianceStatus(StrEnum):
    __slots__ = ()

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    NON_COMPLIANT = "non_compliant"
    COMPLIANT = "compliant"


class Priority(StrEnum):
    __slots__ = ()

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationKind(StrEnum):
    __slots__ = ()

    OVERDUE = "overdue"
    NEARING_DUE = "nearing_due"


class DeliveryState(StrEnum):
    """Outcome of a single notification send attempt."""

    __slots__ = ()

    SENT = "sent"
    FAILED = "failed"
    NOT_CONFIGURED = "not_configured"
    LOGGED = "logged"
