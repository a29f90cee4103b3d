"""
Domain: Item, the unit of inventory.

Contract excerpts implemented here:
- An Item is created at intake in status INTAKE with no location.
- Assigning a location to an INTAKE item puts it away (status STORED).
- listed_at is set only once the item has reached LISTED (or left the main line
  through RETURNED / DISCARDED after listing); sold_at is set only on SOLD items.
- The SKU is derived as "<location>-<id>", never stored.

Items are immutable values; every operation returns a new instance and leaves the
original untouched. Persistence and concurrency control live in the repositories.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional

from .catalog import CatalogRecord, FormatMetadata
from .errors import InvalidInputError, InvalidTransitionError
from .status import ItemStatus, has_reached, require_transition
from .time import require_utc_timestamp

LOCATION_MAX_LENGTH = 20
CONDITION_GRADE_MAX_LENGTH = 10


def normalize_location(location: Optional[str]) -> str:
    """Strip and validate a free-text location code."""

    text = (location or "").strip()
    if not text:
        raise InvalidInputError("location must be a non-empty string")
    if len(text) > LOCATION_MAX_LENGTH:
        raise InvalidInputError(
            f"location must be at most {LOCATION_MAX_LENGTH} characters",
            {"location": text},
        )
    return text


def normalize_condition_grade(grade: Optional[str]) -> Optional[str]:
    """Strip a condition grade; blank means no grade."""

    text = (grade or "").strip()
    if not text:
        return None
    if len(text) > CONDITION_GRADE_MAX_LENGTH:
        raise InvalidInputError(
            f"conditionGrade must be at most {CONDITION_GRADE_MAX_LENGTH} characters",
            {"condition_grade": text},
        )
    return text


@dataclass(frozen=True, slots=True)
class Item:
    """
    Mutable-in-storage, immutable-in-memory record of one physical unit.

    `cost` is in integer minor-currency units. `lot_id` is the internal key of the
    lot the item belongs to; the visible lot number is derived by the lot manager.
    """

    item_id: int
    catalog_id: str
    intake_at: datetime
    status: ItemStatus = ItemStatus.INTAKE
    cost: int = 0
    condition_grade: Optional[str] = None
    condition_notes: Optional[str] = None
    location: Optional[str] = None
    lot_id: Optional[int] = None
    listed_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None
    format_metadata: Optional[FormatMetadata] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("intake_at", self.intake_at)
        if self.cost < 0:
            raise ValueError("cost must be >= 0")
        if self.listed_at is not None:
            require_utc_timestamp("listed_at", self.listed_at)
            if not (has_reached(self.status, ItemStatus.LISTED) or self.status in (ItemStatus.RETURNED, ItemStatus.DISCARDED)):
                raise ValueError("listed_at requires status LISTED or later")
        if self.sold_at is not None:
            require_utc_timestamp("sold_at", self.sold_at)
            if self.status is not ItemStatus.SOLD:
                raise ValueError("sold_at requires status SOLD")

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def sku(self) -> Optional[str]:
        if not self.location:
            return None
        return f"{self.location}-{self.item_id}"

    def assign_location(self, location: str) -> "Item":
        """
        Put the item at `location`.

        INTAKE items advance to STORED. Re-assigning the same location is a no-op and
        returns the item unchanged.
        """

        location = normalize_location(location)
        if self.is_terminal:
            raise InvalidTransitionError(
                f"item {self.item_id} is {self.status.value} (terminal); location cannot change",
                {"item_id": self.item_id, "from_status": self.status.value},
            )
        status = ItemStatus.STORED if self.status is ItemStatus.INTAKE else self.status
        if location == self.location and status is self.status:
            return self
        return replace(self, location=location, status=status)

    def mark_listed(self, listed_at: datetime) -> "Item":
        """STORED -> LISTED; on a LISTED item only the listed date is updated."""

        require_utc_timestamp("listed_at", listed_at)
        if self.status is not ItemStatus.LISTED:
            require_transition(self.item_id, self.status, ItemStatus.LISTED)
        return replace(self, status=ItemStatus.LISTED, listed_at=listed_at)

    def mark_sold(self, sold_at: datetime) -> "Item":
        """LISTED -> SOLD; on a SOLD item only the sold date is updated."""

        require_utc_timestamp("sold_at", sold_at)
        if self.status is not ItemStatus.SOLD:
            require_transition(self.item_id, self.status, ItemStatus.SOLD)
        return replace(self, status=ItemStatus.SOLD, sold_at=sold_at)

    def mark_returned(self) -> "Item":
        require_transition(self.item_id, self.status, ItemStatus.RETURNED)
        return replace(self, status=ItemStatus.RETURNED)

    def mark_discarded(self) -> "Item":
        require_transition(self.item_id, self.status, ItemStatus.DISCARDED)
        return replace(self, status=ItemStatus.DISCARDED)

    def with_cost(self, cost: int) -> "Item":
        return replace(self, cost=cost)

    def with_lot(self, lot_id: Optional[int]) -> "Item":
        return replace(self, lot_id=lot_id)

    def with_condition(self, condition_grade: Optional[str], condition_notes: Optional[str]) -> "Item":
        """Replace both condition fields. Allowed in every status, terminal ones included."""

        notes = (condition_notes or "").strip() or None
        return replace(self, condition_grade=normalize_condition_grade(condition_grade), condition_notes=notes)

    def same_state(self, other: "Item") -> bool:
        """True if the status-machine fields (status, location, dates) match."""

        return (
            self.status is other.status
            and self.location == other.location
            and self.listed_at == other.listed_at
            and self.sold_at == other.sold_at
        )


@dataclass(frozen=True, slots=True)
class ItemDetails:
    """Read model: an item joined with its catalog record and derived lot number."""

    item: Item
    catalog: Optional[CatalogRecord] = None
    lot_number: Optional[int] = None

    @property
    def title(self) -> str:
        return self.catalog.title if self.catalog is not None else "Unknown Title"


__all__ = [
    "LOCATION_MAX_LENGTH",
    "CONDITION_GRADE_MAX_LENGTH",
    "normalize_location",
    "normalize_condition_grade",
    "Item",
    "ItemDetails",
]
