"""Shared fixtures for the compliance tracker test suite.

All tests run WITHOUT network access and without touching the real
data directory.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any

import pytest

from src.models.compliance import ComplianceItem
from src.models.enums import ComplianceStatus
from src.services.record_store import RecordStore
from src.services.storage import InMemoryBackend

# Wednesday 2025-06-11, 12:00 UTC.
FIXED_NOW = datetime(2025, 6, 11, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def backend() -> InMemoryBackend:
    return InMemoryBackend()


@pytest.fixture
def store(backend: InMemoryBackend) -> RecordStore:
    return RecordStore(backend)


@pytest.fixture
def make_item() -> Callable[..., ComplianceItem]:
    """Factory for items owned by ``user_a`` with a reminder address."""

    def _make(**overrides: Any) -> ComplianceItem:
        fields: dict[str, Any] = {
            "user_id": "user_a",
            "title": "Quarterly VAT return",
            "status": ComplianceStatus.PENDING,
            "owner_email": "owner@example.com",
            "due_date": date(2025, 6, 20),
        }
        fields.update(overrides)
        return ComplianceItem(**fields)

    return _make
