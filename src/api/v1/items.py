"""Compliance item endpoints, always scoped to the calling user.

Provides:
    * CRUD over the caller's items (``/items``)
    * CSV export of the (optionally filtered) registry (``/items/export``)
    * Dashboard metrics (``/items/metrics``)

An item owned by another user is indistinguishable from a missing one.
Deleting an unknown or foreign id still reports success.
"""

from __future__ import annotations

from datetime import UTC, datetime

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel

from src.middleware.auth import get_current_user
from src.models.auth import User
from src.models.compliance import (
    ComplianceItem,
    ComplianceItemWithCategory,
    ComplianceMetrics,
    ItemCreate,
    ItemUpdateRequest,
)
from src.models.enums import ComplianceStatus
from src.services.csv_export import export_csv, export_filename
from src.services.errors import NotFound, ValidationFailure
from src.services.metrics import compute_metrics
from src.services.record_store import RecordStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/items", tags=["items"])


class MessageResponse(BaseModel):
    message: str


def _store(request: Request) -> RecordStore:
    return request.app.state.store


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@router.get("", response_model=list[ComplianceItemWithCategory])
async def list_items(
    request: Request,
    category_id: str | None = Query(default=None),
    status: ComplianceStatus | None = Query(default=None),
    user: User = Depends(get_current_user),
) -> list[ComplianceItemWithCategory]:
    """The caller's items with categories, soonest due first, undated last."""
    return await _store(request).list_items_with_categories(
        user.id, category_id=category_id, status=status
    )


@router.get("/export")
async def export_items(
    request: Request,
    category_id: str | None = Query(default=None),
    status: ComplianceStatus | None = Query(default=None),
    user: User = Depends(get_current_user),
) -> Response:
    """Download the caller's registry as CSV."""
    items = await _store(request).list_items_with_categories(
        user.id, category_id=category_id, status=status
    )
    filename = export_filename(datetime.now(UTC).date())
    logger.info("items.exported", user_id=user.id, rows=len(items))
    return Response(
        content=export_csv(items),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/metrics", response_model=ComplianceMetrics)
async def item_metrics(
    request: Request,
    user: User = Depends(get_current_user),
) -> ComplianceMetrics:
    items = await _store(request).items.list(user.id)
    return compute_metrics(items, datetime.now(UTC))


# ---------------------------------------------------------------------------
# Write
# ---------------------------------------------------------------------------


@router.post("", response_model=ComplianceItem)
async def create_item(
    body: ItemCreate,
    request: Request,
    user: User = Depends(get_current_user),
) -> ComplianceItem:
    try:
        return await _store(request).items.insert(user.id, body)
    except ValidationFailure as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.patch("", response_model=ComplianceItem)
async def update_item(
    body: ItemUpdateRequest,
    request: Request,
    user: User = Depends(get_current_user),
) -> ComplianceItem:
    """Apply the fields present in the body to the caller's item."""
    try:
        return await _store(request).items.update(body.id, user.id, body.changes())
    except NotFound as exc:
        raise HTTPException(status_code=404, detail="Item not found") from exc
    except ValidationFailure as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.delete("", response_model=MessageResponse)
async def delete_item(
    request: Request,
    id: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
) -> MessageResponse:
    await _store(request).items.delete(id, user.id)
    return MessageResponse(message="Deleted")
