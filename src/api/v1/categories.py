"""Compliance category endpoints (shared by all authenticated users)."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from src.middleware.auth import get_current_user
from src.models.auth import User
from src.models.compliance import CategoryCreate, ComplianceCategory
from src.services.errors import ValidationFailure
from src.services.record_store import RecordStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[ComplianceCategory])
async def list_categories(
    request: Request,
    user: User = Depends(get_current_user),
) -> list[ComplianceCategory]:
    """All categories ordered by name."""
    store: RecordStore = request.app.state.store
    return await store.categories.list()


@router.post("", response_model=ComplianceCategory)
async def create_category(
    body: CategoryCreate,
    request: Request,
    user: User = Depends(get_current_user),
) -> ComplianceCategory:
    store: RecordStore = request.app.state.store
    try:
        category = await store.categories.insert(body)
    except ValidationFailure as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    logger.info("categories.created", category_id=category.id, user_id=user.id)
    return category
