"""
Domain: duplicate intake detection (advisory).

A duplicate is any existing item sharing the catalog identifier being intaken. The
report never blocks intake; when the lookup itself fails the report says so
(`available=False`) instead of claiming "not a duplicate".
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Tuple

from .item import Item
from .status import ItemStatus


@dataclass(frozen=True, slots=True)
class DuplicateMatch:
    item_id: int
    status: ItemStatus
    intake_at: datetime
    location: Optional[str]


@dataclass(frozen=True, slots=True)
class DuplicateReport:
    catalog_id: Optional[str]
    matches: Tuple[DuplicateMatch, ...] = field(default_factory=tuple)
    available: bool = True

    @property
    def is_duplicate(self) -> bool:
        return bool(self.matches)

    @property
    def message(self) -> Optional[str]:
        if not self.available:
            return "Duplicate information is not available"
        if not self.matches:
            return None
        return (
            f"This product has been intaken before. Found {len(self.matches)} existing item(s); "
            "a new label is needed for this additional copy."
        )

    @staticmethod
    def unavailable(catalog_id: Optional[str]) -> "DuplicateReport":
        return DuplicateReport(catalog_id=catalog_id, matches=(), available=False)


def build_report(catalog_id: Optional[str], items: Iterable[Item]) -> DuplicateReport:
    """Matches ordered by intake date, newest first (ties: highest id first)."""

    ordered = sorted(items, key=lambda item: (item.intake_at, item.item_id), reverse=True)
    return DuplicateReport(
        catalog_id=catalog_id,
        matches=tuple(
            DuplicateMatch(
                item_id=item.item_id,
                status=item.status,
                intake_at=item.intake_at,
                location=item.location,
            )
            for item in ordered
        ),
    )


__all__ = ["DuplicateMatch", "DuplicateReport", "build_report"]
