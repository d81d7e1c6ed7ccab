"""Per-item, per-kind record of when a reminder was last attempted.

Keyed by ``(item_id, kind)`` and persisted as one document in the
storage backend, ``{"<item_id>:<kind>": "<ISO timestamp>"}``.  A key is
eligible again once its entry is strictly older than the dedup window.

:meth:`NotificationLedger.claim` checks and records in one synchronous
step, so two overlapping dispatch passes in the same process cannot both
win the same key.  Across processes the ledger is last-writer-wins.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta

import structlog

from src.models.enums import NotificationKind
from src.services.errors import StorageError
from src.services.storage import StorageBackend

logger = structlog.get_logger(__name__)

LEDGER_COLLECTION = "notification_ledger"


def ledger_key(item_id: str, kind: NotificationKind | str) -> str:
    return f"{item_id}:{kind}"


def as_utc(stamp: datetime) -> datetime:
    """Naive timestamps are read as UTC."""
    if stamp.tzinfo is None:
        return stamp.replace(tzinfo=UTC)
    return stamp


class NotificationLedger:
    """Last-attempt timestamps with a fixed dedup window.

    Parameters
    ----------
    backend:
        Storage backend holding the ``notification_ledger`` document.
    window:
        How long after an attempt the same key stays suppressed.
    """

    def __init__(
        self,
        backend: StorageBackend,
        window: timedelta = timedelta(hours=24),
    ) -> None:
        self._backend = backend
        self._window = window
        self._entries: dict[str, datetime] | None = None
        self._lock = asyncio.Lock()

    @property
    def window(self) -> timedelta:
        return self._window

    async def load(self) -> None:
        """Read the persisted ledger once; later calls are no-ops."""
        if self._entries is not None:
            return
        async with self._lock:
            if self._entries is not None:
                return
            raw = await self._backend.load(LEDGER_COLLECTION)
            if raw is None:
                raw = {}
            if not isinstance(raw, dict):
                raise StorageError("Notification ledger is not an object")

            entries: dict[str, datetime] = {}
            for key, value in raw.items():
                try:
                    stamp = datetime.fromisoformat(value)
                except (TypeError, ValueError):
                    logger.warning("ledger.invalid_entry_skipped", key=key)
                    continue
                entries[key] = as_utc(stamp)
            self._entries = entries
            logger.debug("ledger.loaded", entries=len(entries))

    def _loaded(self) -> dict[str, datetime]:
        if self._entries is None:
            raise RuntimeError("NotificationLedger.load() must be awaited first")
        return self._entries

    def last_sent(self, item_id: str, kind: NotificationKind) -> datetime | None:
        return self._loaded().get(ledger_key(item_id, kind))

    def is_eligible(self, item_id: str, kind: NotificationKind, now: datetime) -> bool:
        """True when the key has no entry or its entry is older than the window."""
        last = self.last_sent(item_id, kind)
        return last is None or last < as_utc(now) - self._window

    def claim(self, item_id: str, kind: NotificationKind, now: datetime) -> bool:
        """Record *now* for the key if it is eligible.  Returns whether it was."""
        if not self.is_eligible(item_id, kind, now):
            return False
        self._loaded()[ledger_key(item_id, kind)] = as_utc(now)
        return True

    def record(self, item_id: str, kind: NotificationKind, now: datetime) -> None:
        """Unconditionally set the key's last-attempt timestamp."""
        self._loaded()[ledger_key(item_id, kind)] = as_utc(now)

    def release(
        self, item_id: str, kind: NotificationKind, previous: datetime | None
    ) -> None:
        """Undo a claim, restoring the key's earlier timestamp (or none)."""
        entries = self._loaded()
        key = ledger_key(item_id, kind)
        if previous is None:
            entries.pop(key, None)
        else:
            entries[key] = previous

    async def flush(self) -> None:
        """Persist the current entries."""
        entries = self._loaded()
        await self._backend.save(
            LEDGER_COLLECTION,
            {key: stamp.isoformat() for key, stamp in entries.items()},
        )

    def __len__(self) -> int:
        return len(self._entries or {})
