"""Reminder endpoints for the calling user's items.

Provides:
    * ``GET /notifications/status`` -- per-item verdict (overdue, due soon)
    * ``POST /notifications/check`` -- run a reminder pass right now
    * ``GET /notifications/log`` -- send attempts made for the caller's items
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, Query, Request

from src.middleware.auth import get_current_user
from src.models.auth import User
from src.models.notification import DeliveryAttempt, ItemNotificationStatus
from src.services.dispatcher import NotificationDispatcher
from src.services.record_store import RecordStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/status", response_model=list[ItemNotificationStatus])
async def notification_status(
    request: Request,
    user: User = Depends(get_current_user),
) -> list[ItemNotificationStatus]:
    """Evaluate each of the caller's items at the current instant."""
    store: RecordStore = request.app.state.store
    dispatcher: NotificationDispatcher = request.app.state.dispatcher

    now = datetime.now(UTC)
    statuses: list[ItemNotificationStatus] = []
    for item in await store.items.list(user.id):
        verdict = dispatcher.evaluate(item, now)
        statuses.append(
            ItemNotificationStatus(
                item_id=item.id,
                title=item.title,
                needs_notification=verdict.needs_notification,
                kind=verdict.kind,
                days_remaining=verdict.days_remaining,
            )
        )
    return statuses


@router.post("/check", response_model=list[DeliveryAttempt])
async def check_notifications(
    request: Request,
    user: User = Depends(get_current_user),
) -> list[DeliveryAttempt]:
    """Run a dispatch pass over the caller's items and return new attempts.

    Items already reminded within the dedup window are skipped, so an
    immediate second call returns an empty list.
    """
    store: RecordStore = request.app.state.store
    dispatcher: NotificationDispatcher = request.app.state.dispatcher

    items = await store.list_items_with_categories(user.id)
    attempts = await dispatcher.dispatch(items, datetime.now(UTC))
    logger.info("notifications.checked", user_id=user.id, attempts=len(attempts))
    return attempts


@router.get("/log", response_model=list[DeliveryAttempt])
async def notification_log(
    request: Request,
    limit: int = Query(default=100, ge=1, le=1000),
    user: User = Depends(get_current_user),
) -> list[DeliveryAttempt]:
    """The caller's send attempts, newest first."""
    dispatcher: NotificationDispatcher = request.app.state.dispatcher
    return dispatcher.attempts_for_user(user.id)[:limit]
