"""Tests for the pydantic models: request coercion and patch semantics."""

from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError

from src.models import (
    ComplianceItem,
    ComplianceStatus,
    ItemCreate,
    ItemPatch,
    ItemUpdateRequest,
    NotificationKind,
    NotificationVerdict,
    StoredUser,
)


class TestItemCreate:
    def test_blank_form_values_become_none(self) -> None:
        body = ItemCreate(title="x", category_id="", due_date="", last_reviewed_date="  ")
        assert body.category_id is None
        assert body.due_date is None
        assert body.last_reviewed_date is None

    def test_iso_date_parsed(self) -> None:
        assert ItemCreate(title="x", due_date="2025-04-15").due_date == date(2025, 4, 15)

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ItemCreate(title="x", status="archived")

    def test_server_fields_ignored(self) -> None:
        body = ItemCreate(title="x", user_id="someone-else", id="forced")
        assert "user_id" not in body.model_dump()
        assert "id" not in body.model_dump()


class TestPatchModels:
    def test_changes_only_include_sent_fields(self) -> None:
        patch = ItemPatch(status="compliant", notes=None)
        assert patch.changes() == {"status": ComplianceStatus.COMPLIANT, "notes": None}

    def test_update_request_excludes_id(self) -> None:
        body = ItemUpdateRequest(id="item-1", title="New title")
        assert body.changes() == {"title": "New title"}

    def test_update_request_requires_id(self) -> None:
        with pytest.raises(ValidationError):
            ItemUpdateRequest(title="no id")


class TestStoredModels:
    def test_null_text_fields_read_as_empty(self) -> None:
        item = ComplianceItem(
            user_id="u", title="t", owner_email=None, notes=None, description=None
        )
        assert item.owner_email == ""
        assert item.notes == ""
        assert item.description == ""

    def test_public_user_hides_hash(self) -> None:
        stored = StoredUser(email="a@example.com", password_hash="$2b$04$abc")
        public = stored.public()
        assert public.id == stored.id
        assert "password_hash" not in public.model_dump()

    def test_verdict_is_frozen(self) -> None:
        verdict = NotificationVerdict(kind=NotificationKind.OVERDUE)
        with pytest.raises(ValidationError):
            verdict.kind = None  # type: ignore[misc]
