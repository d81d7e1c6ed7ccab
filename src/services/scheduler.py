"""Periodic reminder scheduler.

Runs a notification dispatch pass over every user's items on a fixed
interval (five minutes by default) as an ``asyncio`` background task in
the application's event loop.  Each pass runs to completion before the
next sleep starts, so passes never overlap.  :meth:`ReminderScheduler.stop`
cancels the task; a pass cut short simply leaves some items for the next
one.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from src.models.notification import DeliveryAttempt
    from src.services.dispatcher import NotificationDispatcher
    from src.services.record_store import RecordStore

logger = structlog.get_logger(__name__)


class ReminderScheduler:
    """Triggers reminder passes in the background.

    Parameters
    ----------
    store:
        Record store supplying items (with categories) for every user.
    dispatcher:
        The :class:`NotificationDispatcher` that evaluates and sends.
    settings:
        Application settings object (used for
        ``enable_reminder_scheduler``, ``reminder_interval_seconds`` and
        ``reminder_initial_delay_seconds``).
    """

    def __init__(
        self,
        store: RecordStore,
        dispatcher: NotificationDispatcher,
        settings: object,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._settings = settings
        self._task: asyncio.Task | None = None  # type: ignore[type-arg]
        self._running = False
        self._last_run: datetime | None = None
        self._runs = 0

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Whether the background loop is currently active."""
        return self._running

    @property
    def last_run(self) -> datetime | None:
        """Start time of the last completed pass."""
        return self._last_run

    @property
    def runs(self) -> int:
        return self._runs

    # ------------------------------------------------------------------
    # Background loop
    # ------------------------------------------------------------------

    async def start_background_scheduler(self) -> None:
        """Start the background loop and return immediately."""
        if not getattr(self._settings, "enable_reminder_scheduler", True):
            logger.info("scheduler.reminders_disabled")
            return
        if self._task is not None:
            return

        self._running = True
        logger.info(
            "scheduler.background_started",
            interval_s=getattr(self._settings, "reminder_interval_seconds", 300.0),
        )
        self._task = asyncio.create_task(self._background_loop())

    async def _background_loop(self) -> None:
        interval = float(getattr(self._settings, "reminder_interval_seconds", 300.0))
        initial_delay = float(
            getattr(self._settings, "reminder_initial_delay_seconds", 5.0)
        )

        try:
            if initial_delay > 0:
                await asyncio.sleep(initial_delay)
            while self._running:
                await self._safe_run()
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("scheduler.background_cancelled")
        finally:
            self._running = False
            logger.info("scheduler.background_stopped")

    async def _safe_run(self) -> list[DeliveryAttempt] | None:
        """Execute one pass, logging instead of raising on failure."""
        started = datetime.now(UTC)
        try:
            items = await self._store.list_items_with_categories()
            attempts = await self._dispatcher.dispatch(items, started)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.error("scheduler.run_failed", exc_info=True)
            return None

        self._last_run = started
        self._runs += 1
        logger.info(
            "scheduler.run_complete",
            items=len(items),
            attempts=len(attempts),
        )
        return attempts

    # ------------------------------------------------------------------
    # On-demand execution
    # ------------------------------------------------------------------

    async def run_once(self) -> list[DeliveryAttempt] | None:
        """Run a single pass over every user's items right now."""
        logger.info("scheduler.manual_trigger")
        return await self._safe_run()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        logger.info("scheduler.stopping")
        self._running = False

        if self._task is not None:
            self._task.cancel()
            try:
                await asyncio.wait_for(self._task, timeout=10.0)
            except (asyncio.CancelledError, asyncio.TimeoutError):
                pass
            self._task = None

        logger.info("scheduler.stopped")
