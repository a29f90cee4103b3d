"""
Storage contract for the inventory engine.

Every backend implements `InventoryStore`. The contract is deliberately coarse:
each mutating method is one atomic unit (all rows change or none do), so the
services never need to coordinate multi-row writes themselves.

Read models and query parameters shared by all backends live here too.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, List, Optional, Protocol, Tuple, TypeVar

from domain.catalog import CatalogRecord, FormatMetadata
from domain.cog import CogRecord, CogReversal, CogReversalMode, CogWindow
from domain.item import Item, ItemDetails
from domain.lot import Lot, LotDeletion, LotRemoval, LotSummary
from domain.status import HistoryChannel, ItemStatus, StatusHistoryEntry

T = TypeVar("T")

MAX_PAGE_SIZE = 100
# Search terms that parse to a positive integer below this bound match item ids.
_MAX_ITEM_ID_SEARCH = 2**31


class ItemSort(str, Enum):
    DEFAULT = "default"
    ID_ASC = "id_asc"
    ID_DESC = "id_desc"


@dataclass(frozen=True, slots=True)
class ItemQueryFilters:
    """Filter criteria for item listings."""

    status: Optional[ItemStatus] = None
    location: Optional[str] = None
    lot_number: Optional[int] = None
    search: Optional[str] = None
    sort: ItemSort = ItemSort.DEFAULT


@dataclass(frozen=True, slots=True)
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


@dataclass(frozen=True, slots=True)
class ItemDraft:
    """Per-unit fields supplied at intake."""

    condition_grade: Optional[str] = None
    condition_notes: Optional[str] = None
    cost: int = 0
    format_metadata: Optional[FormatMetadata] = None


@dataclass(frozen=True, slots=True)
class SkippedItem:
    item_id: int
    reason: str


@dataclass(frozen=True, slots=True)
class BulkLocationResult:
    location: str
    updated_ids: Tuple[int, ...]
    skipped: Tuple[SkippedItem, ...] = field(default_factory=tuple)

    @property
    def updated_count(self) -> int:
        return len(self.updated_ids)


@dataclass(frozen=True, slots=True)
class ItemRemoval:
    item_id: int
    lot_number: Optional[int] = None
    lot_dissolved: bool = False


def normalize_paging(page: int, page_size: int) -> Tuple[int, int]:
    """Clamp page to >= 1 and page_size to 1..MAX_PAGE_SIZE."""

    return max(1, int(page)), min(max(1, int(page_size)), MAX_PAGE_SIZE)


def parse_search(search: Optional[str]) -> Tuple[Optional[int], Optional[str]]:
    """
    Split a search term into (item id, text).

    A positive integer below 2^31 is an item id lookup; anything else matches the
    catalog id exactly or the title case-insensitively.
    """

    text = (search or "").strip()
    if not text:
        return None, None
    if text.isdigit():
        value = int(text)
        if 0 < value < _MAX_ITEM_ID_SEARCH:
            return value, None
    return None, text


def default_sort_key(details: ItemDetails) -> Tuple[int, int, int]:
    """Lot number ascending with unlotted items last, then id descending."""

    if details.lot_number is None:
        return (1, 0, -details.item.item_id)
    return (0, details.lot_number, -details.item.item_id)


class InventoryStore(Protocol):
    """Persistence operations used by the services."""

    # Catalog and items

    def get_catalog(self, catalog_id: str) -> Optional[CatalogRecord]: ...

    def intake_item(self, catalog: CatalogRecord, draft: ItemDraft, intake_at: datetime) -> Item:
        """Upsert `catalog` and insert a new INTAKE item referencing it."""
        ...

    def get_item(self, item_id: int) -> Optional[Item]: ...

    def get_item_details(self, item_id: int) -> Optional[ItemDetails]: ...

    def items_by_catalog_id(self, catalog_id: str) -> List[Item]: ...

    def list_items(self, filters: ItemQueryFilters, page: int, page_size: int) -> Page[ItemDetails]: ...

    def all_items(self) -> List[ItemDetails]: ...

    # Item state

    def save_item_state(
        self,
        before: Item,
        after: Item,
        *,
        channel: HistoryChannel,
        changed_at: datetime,
        note: Optional[str] = None,
    ) -> Item:
        """
        Write the status-machine fields of `after` if the stored item still matches
        `before`; otherwise raise ConcurrentModificationError. Appends history.
        """
        ...

    def update_item_condition(
        self,
        item_id: int,
        condition_grade: Optional[str],
        condition_notes: Optional[str],
        changed_at: datetime,
    ) -> Item:
        """Overwrite both condition fields in one write and append a history entry."""
        ...

    def assign_location_bulk(
        self, item_ids: List[int], location: str, changed_at: datetime
    ) -> BulkLocationResult: ...

    def delete_item(self, item_id: int) -> ItemRemoval: ...

    def item_history(self, item_id: int, limit: int = 10) -> List[StatusHistoryEntry]: ...

    # Lots

    def create_lot(self, item_ids: List[int], created_at: datetime) -> Lot: ...

    def get_lot(self, lot_number: int) -> Optional[Lot]: ...

    def lot_members(self, lot_number: int) -> List[ItemDetails]: ...

    def add_to_lot(self, lot_number: int, item_id: int, changed_at: datetime) -> Lot: ...

    def remove_from_lot(self, lot_number: int, item_id: int, changed_at: datetime) -> LotRemoval: ...

    def delete_lot(self, lot_number: int, changed_at: datetime) -> LotDeletion: ...

    def list_lots(self, page: int, page_size: int) -> Page[LotSummary]: ...

    # Cost of goods

    def apply_cog(
        self,
        window: CogWindow,
        bounds: Tuple[datetime, datetime],
        total_spent: int,
        recorded_at: datetime,
    ) -> CogRecord: ...

    def delete_cog_record(self, record_id: int, mode: CogReversalMode) -> CogReversal: ...

    def get_cog_record(self, record_id: int) -> Optional[CogRecord]: ...

    def list_cog_records(self, page: int, page_size: int) -> Page[CogRecord]: ...


__all__ = [
    "MAX_PAGE_SIZE",
    "ItemSort",
    "ItemQueryFilters",
    "Page",
    "ItemDraft",
    "SkippedItem",
    "BulkLocationResult",
    "ItemRemoval",
    "normalize_paging",
    "parse_search",
    "default_sort_key",
    "InventoryStore",
]
