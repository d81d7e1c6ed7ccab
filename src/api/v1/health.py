"""Health check endpoints.

``GET /health`` is an unauthenticated liveness probe.  ``/health/ready``
additionally reads the category collection and reports the reminder
subsystem's state.
"""

from __future__ import annotations

import time

import structlog
from fastapi import APIRouter, Request
from pydantic import BaseModel

from src.services.errors import StorageError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str
    uptime_seconds: float


class ReadinessResponse(BaseModel):
    """Readiness check response with individual component statuses."""

    status: str
    checks: dict[str, str]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Liveness probe.

    Returns 200 if the process is running.  Does *not* touch storage.
    """
    start_time: float = getattr(request.app.state, "start_time", time.time())
    uptime = time.time() - start_time

    return HealthResponse(
        status="ok",
        version=request.app.version,
        uptime_seconds=round(uptime, 2),
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Readiness probe: storage readable, sink and scheduler state."""
    checks: dict[str, str] = {}
    all_ok = True

    # -- Storage -----------------------------------------------------------
    store = getattr(request.app.state, "store", None)
    if store is not None:
        try:
            categories = await store.categories.list()
            checks["storage"] = f"ok ({len(categories)} categories)"
        except StorageError as exc:
            checks["storage"] = f"error: {exc!s}"
            all_ok = False
    else:
        checks["storage"] = "not_initialised"
        all_ok = False

    # -- Notification sink -------------------------------------------------
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is not None:
        sink = dispatcher.sink
        checks["email"] = (
            f"ok ({sink.provider})" if sink.is_configured else "not_configured"
        )
    else:
        checks["email"] = "not_initialised"

    # -- Reminder scheduler ------------------------------------------------
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is not None and scheduler.is_running:
        checks["reminders"] = "running"
    else:
        checks["reminders"] = "stopped"

    status = "ready" if all_ok else "degraded"

    logger.info("health.readiness_check", status=status, checks=checks)

    return ReadinessResponse(status=status, checks=checks)
