"""
Pytest configuration for the inventory engine tests.

This file adds the parent directory to the Python path so that tests
can import from the domain, repositories, services and api modules, and
provides a fresh in-memory store per test.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.catalog import CatalogFields, ProductFormat  # noqa: E402
from repositories.memory_store import MemoryInventoryStore  # noqa: E402
from repositories.store import ItemDraft  # noqa: E402
from services import intake_service  # noqa: E402


@pytest.fixture
def store() -> MemoryInventoryStore:
    return MemoryInventoryStore()


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


def _intake(
    store: MemoryInventoryStore,
    *,
    catalog_id: str = "9780140283334",
    title: str = "The Great Gatsby",
    at: datetime = datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc),
    cost: int = 0,
    fmt: ProductFormat = ProductFormat.BOOK,
) -> int:
    """Intake one item and return its id."""

    result = intake_service.intake_item(
        store,
        intake_service.IntakeRequest(
            catalog_id=catalog_id,
            fields=CatalogFields(format=fmt, title=title),
            draft=ItemDraft(condition_grade="GOOD", cost=cost),
        ),
        now=at,
    )
    return result.item.item_id


@pytest.fixture
def make_item(store):
    """Factory fixture: `make_item(**kwargs)` intakes one item into `store` and returns its id."""

    def _make(**kwargs) -> int:
        return _intake(store, **kwargs)

    return _make
