"""Compliance category and item models.

Stored records, the category-joined read model, and the request bodies
used to create and patch them.  A patch is an explicit set of optional
fields: only the fields the caller actually sent (``model_fields_set``)
are merged onto the stored record.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.models.enums import ComplianceStatus, Priority


def _now() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid4().hex


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------


class ComplianceCategory(BaseModel):
    """A grouping for compliance items (e.g. "Tax Compliance")."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=_new_id)
    name: str
    description: str = ""
    color: str = ""
    created_at: datetime = Field(default_factory=_now)


class ComplianceItem(BaseModel):
    """A single tracked compliance obligation owned by one user."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(default_factory=_new_id)
    user_id: str
    category_id: str | None = None
    title: str
    description: str = ""
    status: ComplianceStatus = ComplianceStatus.PENDING
    priority: Priority = Priority.MEDIUM
    due_date: date | None = None
    last_reviewed_date: date | None = None
    assigned_to: str = ""
    # Older stored items may lack the field or carry null; both read as "".
    owner_email: str = ""
    notes: str = ""
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @field_validator("owner_email", "description", "assigned_to", "notes", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class ComplianceItemWithCategory(ComplianceItem):
    """An item with its category resolved; a dangling reference is ``None``."""

    category: ComplianceCategory | None = None


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = Field(default="", max_length=2000)
    color: str = Field(default="", max_length=50)


class ItemCreate(BaseModel):
    """Fields a caller may supply when creating an item.

    ``id``, ``user_id`` and the timestamps are always assigned by the
    store and are ignored if sent.
    """

    model_config = ConfigDict(extra="ignore")

    category_id: str | None = None
    title: str = Field(..., min_length=1, max_length=500)
    description: str = ""
    status: ComplianceStatus = ComplianceStatus.PENDING
    priority: Priority = Priority.MEDIUM
    due_date: date | None = None
    last_reviewed_date: date | None = None
    assigned_to: str = ""
    owner_email: str | None = ""
    notes: str = ""

    @field_validator("category_id", "due_date", "last_reviewed_date", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        # HTML forms submit "" for an unselected category or empty date.
        if isinstance(value, str) and not value.strip():
            return None
        return value


class ItemPatch(BaseModel):
    """Partial update: every field is independently present or absent."""

    model_config = ConfigDict(extra="ignore")

    category_id: str | None = None
    title: str | None = Field(default=None, max_length=500)
    description: str | None = None
    status: ComplianceStatus | None = None
    priority: Priority | None = None
    due_date: date | None = None
    last_reviewed_date: date | None = None
    assigned_to: str | None = None
    owner_email: str | None = None
    notes: str | None = None

    @field_validator("category_id", "due_date", "last_reviewed_date", mode="before")
    @classmethod
    def _blank_as_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def changes(self) -> dict[str, Any]:
        """Return only the fields the caller explicitly sent."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class ItemUpdateRequest(ItemPatch):
    """``PATCH /items`` body: the target id plus the patch fields."""

    id: str = Field(..., min_length=1)

    def changes(self) -> dict[str, Any]:
        return {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name != "id"
        }


# ---------------------------------------------------------------------------
# Dashboard metrics
# ---------------------------------------------------------------------------


class ComplianceMetrics(BaseModel):
    """Aggregated counts shown on the dashboard cards."""

    total: int
    compliant: int
    non_compliant: int
    in_progress: int
    pending: int
    overdue: int
    compliance_rate: int
