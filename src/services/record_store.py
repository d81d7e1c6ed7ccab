"""Record store for compliance categories and items.

Typed repositories over a :class:`~src.services.storage.StorageBackend`.
Each mutation reads the whole collection, applies the change in memory,
and persists the whole collection again.  Item reads, updates and
deletes are always scoped to the requesting owner: another user's item
behaves exactly like a missing one.

Known limitation: there is no optimistic-concurrency token.  Two
processes updating the same record concurrently both succeed and the
last write wins.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from src.models.compliance import (
    CategoryCreate,
    ComplianceCategory,
    ComplianceItem,
    ComplianceItemWithCategory,
    ItemCreate,
)
from src.models.enums import ComplianceStatus
from src.services.errors import NotFound, StorageError, ValidationFailure
from src.services.storage import StorageBackend

logger = structlog.get_logger(__name__)

T = TypeVar("T", bound=BaseModel)

CATEGORIES_COLLECTION = "categories"
ITEMS_COLLECTION = "items"

# Fields a patch may never change.
_IMMUTABLE_ITEM_FIELDS = frozenset({"id", "user_id", "created_at", "updated_at"})
# Fields that may be cleared to null.
_NULLABLE_ITEM_FIELDS = frozenset({"category_id", "due_date", "last_reviewed_date"})
# Free-text fields where null means "".
_TEXT_ITEM_FIELDS = frozenset({"description", "assigned_to", "owner_email", "notes"})


def _now() -> datetime:
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Ordering
# ---------------------------------------------------------------------------


def sort_records(
    records: Iterable[T],
    key: str,
    *,
    ascending: bool = True,
    nulls_first: bool = False,
) -> list[T]:
    """Sort *records* by attribute *key*.

    Null placement is independent of direction: ``nulls_first`` puts
    every record whose *key* is ``None`` before all others, otherwise
    after them.  The sort is stable, so equal keys keep their input order.
    """
    present: list[T] = []
    missing: list[T] = []
    for record in records:
        (missing if getattr(record, key, None) is None else present).append(record)

    present.sort(key=lambda r: getattr(r, key), reverse=not ascending)
    return missing + present if nulls_first else present + missing


# ---------------------------------------------------------------------------
# Generic collection
# ---------------------------------------------------------------------------


class Collection(Generic[T]):
    """Whole-document read/write of one collection of *model* records."""

    def __init__(self, backend: StorageBackend, name: str, model: type[T]) -> None:
        self._backend = backend
        self._name = name
        self._model = model

    @property
    def name(self) -> str:
        return self._name

    def _check_sort_key(self, key: str) -> None:
        if key not in self._model.model_fields:
            raise ValidationFailure(f"Cannot order {self._name} by unknown field {key!r}")

    async def _read(self) -> list[T]:
        raw = await self._backend.load(self._name)
        if raw is None:
            return []
        if not isinstance(raw, list):
            raise StorageError(f"Collection {self._name!r} is not a list")

        records: list[T] = []
        for entry in raw:
            try:
                records.append(self._model.model_validate(entry))
            except ValidationError:
                logger.warning(
                    "record_store.invalid_record_skipped",
                    collection=self._name,
                    record_id=entry.get("id", "unknown") if isinstance(entry, dict) else "unknown",
                    exc_info=True,
                )
        return records

    async def _write(self, records: Sequence[T]) -> None:
        await self._backend.save(
            self._name, [r.model_dump(mode="json") for r in records]
        )


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------


class CategoryRepository(Collection[ComplianceCategory]):
    """Compliance categories: shared by all users, created but never edited."""

    def __init__(self, backend: StorageBackend) -> None:
        super().__init__(backend, CATEGORIES_COLLECTION, ComplianceCategory)

    async def list(
        self,
        *,
        order_by: str = "name",
        ascending: bool = True,
        nulls_first: bool = False,
    ) -> list[ComplianceCategory]:
        self._check_sort_key(order_by)
        return sort_records(
            await self._read(), order_by, ascending=ascending, nulls_first=nulls_first
        )

    async def get(self, category_id: str) -> ComplianceCategory | None:
        for category in await self._read():
            if category.id == category_id:
                return category
        return None

    async def insert(self, data: CategoryCreate) -> ComplianceCategory:
        name = data.name.strip()
        if not name:
            raise ValidationFailure("Category name is required")

        categories = await self._read()
        category = ComplianceCategory(
            name=name,
            description=data.description,
            color=data.color,
        )
        categories.append(category)
        await self._write(categories)
        logger.info("record_store.category_inserted", category_id=category.id)
        return category

    async def seed(self, defaults: Sequence[ComplianceCategory]) -> bool:
        """Write *defaults* if the collection has never been created.

        Returns ``True`` when seeding happened.
        """
        if await self._backend.exists(self._name):
            return False
        await self._write(list(defaults))
        logger.info("record_store.categories_seeded", count=len(defaults))
        return True


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------


class ItemRepository(Collection[ComplianceItem]):
    """Compliance items, each owned by exactly one user."""

    def __init__(self, backend: StorageBackend) -> None:
        super().__init__(backend, ITEMS_COLLECTION, ComplianceItem)

    async def list(
        self,
        owner_id: str | None = None,
        *,
        category_id: str | None = None,
        status: ComplianceStatus | None = None,
        order_by: str = "due_date",
        ascending: bool = True,
        nulls_first: bool = False,
    ) -> list[ComplianceItem]:
        """List items, optionally narrowed to one owner, category or status.

        ``owner_id=None`` lists every user's items and is only used by
        the background reminder pass.
        """
        self._check_sort_key(order_by)
        items = [
            item
            for item in await self._read()
            if (owner_id is None or item.user_id == owner_id)
            and (category_id is None or item.category_id == category_id)
            and (status is None or item.status == status)
        ]
        return sort_records(items, order_by, ascending=ascending, nulls_first=nulls_first)

    async def get(self, item_id: str, owner_id: str) -> ComplianceItem:
        for item in await self._read():
            if item.id == item_id and item.user_id == owner_id:
                return item
        raise NotFound(f"Item {item_id!r} not found")

    async def insert(self, owner_id: str, data: ItemCreate) -> ComplianceItem:
        title = data.title.strip()
        if not title:
            raise ValidationFailure("Title is required")

        fields = data.model_dump()
        fields["title"] = title
        fields["owner_email"] = (data.owner_email or "").strip()

        now = _now()
        item = ComplianceItem(user_id=owner_id, created_at=now, updated_at=now, **fields)

        items = await self._read()
        items.append(item)
        await self._write(items)
        logger.info("record_store.item_inserted", item_id=item.id, user_id=owner_id)
        return item

    async def update(
        self, item_id: str, owner_id: str, changes: dict[str, Any]
    ) -> ComplianceItem:
        """Merge *changes* onto the owner's item and stamp ``updated_at``.

        Raises :class:`NotFound` when the item is absent or owned by
        someone else, and :class:`ValidationFailure` when a change is
        not allowed (e.g. clearing the title).
        """
        cleaned = _clean_item_changes(changes)

        items = await self._read()
        for index, item in enumerate(items):
            if item.id == item_id and item.user_id == owner_id:
                break
        else:
            logger.info("record_store.item_update_not_found", item_id=item_id, user_id=owner_id)
            raise NotFound(f"Item {item_id!r} not found")

        merged = {**item.model_dump(), **cleaned, "updated_at": _now()}
        try:
            updated = ComplianceItem.model_validate(merged)
        except ValidationError as exc:
            raise ValidationFailure(str(exc)) from exc

        items[index] = updated
        await self._write(items)
        logger.info(
            "record_store.item_updated",
            item_id=item_id,
            user_id=owner_id,
            fields=sorted(cleaned),
        )
        return updated

    async def delete(self, item_id: str, owner_id: str) -> bool:
        """Remove the owner's item.  Returns whether anything was removed.

        Deleting an unknown or foreign id leaves the collection untouched.
        """
        items = await self._read()
        remaining = [
            item for item in items
            if not (item.id == item_id and item.user_id == owner_id)
        ]
        removed = len(remaining) != len(items)
        if removed:
            await self._write(remaining)
        logger.info(
            "record_store.item_delete",
            item_id=item_id,
            user_id=owner_id,
            removed=removed,
        )
        return removed


def _clean_item_changes(changes: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for field, value in changes.items():
        if field in _IMMUTABLE_ITEM_FIELDS or field not in ComplianceItem.model_fields:
            continue
        if value is None:
            if field in _TEXT_ITEM_FIELDS:
                value = ""
            elif field not in _NULLABLE_ITEM_FIELDS:
                raise ValidationFailure(f"Field {field!r} cannot be null")
        if field == "title":
            value = value.strip()
            if not value:
                raise ValidationFailure("Title is required")
        if field == "owner_email":
            value = value.strip()
        cleaned[field] = value
    return cleaned


# ---------------------------------------------------------------------------
# Facade
# ---------------------------------------------------------------------------


class RecordStore:
    """Entry point bundling both collections and the category join.

    Owns the storage backend; callers never touch it directly.
    """

    __slots__ = ("_backend", "categories", "items")

    def __init__(self, backend: StorageBackend) -> None:
        self._backend = backend
        self.categories = CategoryRepository(backend)
        self.items = ItemRepository(backend)

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    async def resolve_join(
        self, items: Sequence[ComplianceItem]
    ) -> list[ComplianceItemWithCategory]:
        """Attach each item's category, or ``None`` for a dangling reference."""
        by_id = {c.id: c for c in await self.categories.list()}
        return [
            ComplianceItemWithCategory(
                **item.model_dump(),
                category=by_id.get(item.category_id) if item.category_id else None,
            )
            for item in items
        ]

    async def list_items_with_categories(
        self,
        owner_id: str | None = None,
        *,
        category_id: str | None = None,
        status: ComplianceStatus | None = None,
    ) -> list[ComplianceItemWithCategory]:
        """Items ordered by due date ascending, undated items last."""
        items = await self.items.list(
            owner_id,
            category_id=category_id,
            status=status,
            order_by="due_date",
            ascending=True,
            nulls_first=False,
        )
        return await self.resolve_join(items)
