"""Default compliance categories seeded on first startup.

Finance compliance subcategories with fixed ids ``"1"`` .. ``"7"`` so
that clients can rely on them across installations.  Seeding only runs
when the category collection has never been written.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

import structlog

from src.models.compliance import ComplianceCategory

if TYPE_CHECKING:
    from src.services.record_store import RecordStore

logger = structlog.get_logger(__name__)

_RED: Final[str] = "#dc2626"
_BLACK: Final[str] = "#000000"

# (id, name, description, color)
_DEFAULT_CATEGORIES: Final[tuple[tuple[str, str, str, str], ...]] = (
    ("1", "Financial Reporting", "Financial statements, disclosures, and reporting requirements", _RED),
    ("2", "Tax Compliance", "Tax filings, payments, and regulatory tax requirements", _RED),
    ("3", "Audit & Controls", "Internal controls, audit requirements, and risk management", _BLACK),
    ("4", "Regulatory Compliance", "Banking regulations, SOX, GAAP, and other financial regulations", _RED),
    ("5", "Budget & Forecasting", "Budget compliance, forecasting accuracy, and variance analysis", _BLACK),
    ("6", "Accounts Payable/Receivable", "AP/AR processes, payment terms, and collection compliance", _RED),
    ("7", "Capital Management", "Capital allocation, debt compliance, and liquidity requirements", _BLACK),
)


def default_categories(now: datetime | None = None) -> list[ComplianceCategory]:
    """Build the default category records, all stamped with *now*."""
    created_at = now or datetime.now(UTC)
    return [
        ComplianceCategory(
            id=category_id,
            name=name,
            description=description,
            color=color,
            created_at=created_at,
        )
        for category_id, name, description, color in _DEFAULT_CATEGORIES
    ]


async def seed_default_categories(store: RecordStore) -> list[ComplianceCategory]:
    """Seed the default categories into *store* if it has none yet.

    Returns the categories now present, seeded or not.
    """
    seeded = await store.categories.seed(default_categories())
    categories = await store.categories.list()
    logger.info("seed.categories_ready", seeded=seeded, count=len(categories))
    return categories
