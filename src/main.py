"""Compliance tracker FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
manages the lifecycle of the backend services (record store, auth gate,
notification ledger, email sink, dispatcher, reminder scheduler).
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import Settings, settings
from src.api.router import api_router
from src.services.errors import StorageError

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging(cfg: Settings) -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if cfg.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(cfg.log_level.upper(), logging.INFO),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage startup and shutdown of the compliance tracker services.

    On startup:
      1. Open the storage backend and record store
      2. Seed the default categories (first run only)
      3. Build the auth gate (users + in-memory sessions)
      4. Build the notification ledger, email sink and dispatcher
      5. Start the periodic reminder scheduler
      6. Store everything on ``app.state``

    On shutdown:
      - Stop the reminder scheduler.
      - Close the email sink's HTTP client.
    """
    cfg: Settings = app.state.settings
    _configure_logging(cfg)
    logger.info(
        "app.startup",
        env=cfg.env,
        storage=cfg.storage_backend,
        email_provider=cfg.email_provider,
    )

    app.state.start_time = time.time()

    # -- 1. Storage and record store ----------------------------------------
    from src.services.record_store import RecordStore
    from src.services.storage import create_backend

    backend = create_backend(cfg.storage_backend, cfg.data_dir)
    store = RecordStore(backend)
    app.state.store = store
    logger.info("app.record_store_initialised", data_dir=cfg.data_dir)

    # -- 2. Default categories ----------------------------------------------
    if cfg.seed_default_categories:
        from src.data.seed import seed_default_categories

        try:
            await seed_default_categories(store)
        except StorageError:
            logger.error("app.seed_failed", exc_info=True)

    # -- 3. Auth gate -------------------------------------------------------
    from src.services.auth import AuthService, SessionStore, UserRepository

    auth = AuthService(
        UserRepository(backend),
        SessionStore(),
        bcrypt_rounds=cfg.bcrypt_rounds,
    )
    app.state.auth = auth
    logger.info("app.auth_initialised")

    # -- 4. Notifications ---------------------------------------------------
    from src.services.dispatcher import NotificationDispatcher
    from src.services.email_sink import create_sink
    from src.services.ledger import NotificationLedger

    sink = create_sink(cfg)
    if not sink.is_configured:
        logger.warning(
            "app.email_not_configured",
            note="Reminders will be recorded but not emailed",
        )
    ledger = NotificationLedger(
        backend, window=timedelta(hours=cfg.notification_dedup_hours)
    )
    dispatcher = NotificationDispatcher(
        sink, ledger, nearing_due_days=cfg.nearing_due_days
    )
    app.state.dispatcher = dispatcher
    logger.info("app.dispatcher_initialised", provider=sink.provider)

    # -- 5. Reminder scheduler ----------------------------------------------
    from src.services.scheduler import ReminderScheduler

    scheduler = ReminderScheduler(store=store, dispatcher=dispatcher, settings=cfg)
    await scheduler.start_background_scheduler()
    app.state.scheduler = scheduler

    logger.info("app.startup_complete")

    yield

    # -- Shutdown -----------------------------------------------------------
    logger.info("app.shutdown_start")

    await scheduler.stop()
    await sink.close()
    auth.sessions.clear()

    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


async def _storage_error_handler(request: Request, exc: StorageError) -> ORJSONResponse:
    logger.error("app.storage_error", path=request.url.path, error=str(exc))
    return ORJSONResponse(
        status_code=503,
        content={"detail": "Storage unavailable"},
    )


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the application.  Tests pass their own ``Settings``."""
    cfg = app_settings or settings

    app = FastAPI(
        title="Compliance Tracker API",
        description=(
            "Track compliance obligations by category, owner and due date, "
            "with emailed reminders for overdue and soon-due items."
        ),
        version="0.1.0",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if not cfg.is_production else None,
        redoc_url="/redoc" if not cfg.is_production else None,
    )
    app.state.settings = cfg

    # -- CORS middleware ----------------------------------------------------
    # allow_credentials=True must NOT be combined with allow_origins=["*"].
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origin_list,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Authorization"],
        expose_headers=["Content-Disposition"],
    )

    app.add_exception_handler(StorageError, _storage_error_handler)

    # -- Include routers ----------------------------------------------------
    app.include_router(api_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
