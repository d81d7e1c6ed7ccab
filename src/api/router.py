"""Main API router combining all v1 route modules.

Routes are mounted at the root so the paths match the existing web
client (``/auth/login``, ``/items``, ...).

Includes:
    * Auth: signup, login, logout, current user
    * Records: categories and compliance items (CSV export, metrics)
    * Reminders: notification status, on-demand check, delivery log
    * Health: liveness and readiness probes
"""

from __future__ import annotations

from fastapi import APIRouter

from src.api.v1 import auth, categories, health, items, notifications

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(categories.router)
api_router.include_router(items.router)
api_router.include_router(notifications.router)
api_router.include_router(health.router)
