"""Compliance tracker service layer -- storage, records, auth, and reminders."""

from __future__ import annotations

from src.services.auth import AuthService, SessionStore, UserRepository
from src.services.dispatcher import NotificationDispatcher
from src.services.email_sink import EmailJSSink, LoggingSink, NotificationSink, create_sink
from src.services.errors import (
    ComplianceError,
    Conflict,
    NotFound,
    SinkUnavailable,
    StorageError,
    Unauthorized,
    ValidationFailure,
)
from src.services.evaluator import evaluate
from src.services.ledger import NotificationLedger
from src.services.record_store import RecordStore
from src.services.scheduler import ReminderScheduler
from src.services.storage import InMemoryBackend, JsonFileBackend, StorageBackend, create_backend

__all__ = [
    "AuthService",
    "ComplianceError",
    "Conflict",
    "EmailJSSink",
    "InMemoryBackend",
    "JsonFileBackend",
    "LoggingSink",
    "NotFound",
    "NotificationDispatcher",
    "NotificationLedger",
    "NotificationSink",
    "RecordStore",
    "ReminderScheduler",
    "SessionStore",
    "SinkUnavailable",
    "StorageBackend",
    "StorageError",
    "Unauthorized",
    "UserRepository",
    "ValidationFailure",
    "create_backend",
    "create_sink",
    "evaluate",
]
