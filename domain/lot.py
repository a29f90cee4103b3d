"""
Domain: lots (groups of items moved, priced and located together).

Contract excerpts implemented here:
- A lot's number is the minimum item id among its members at creation. It is fixed
  from then on: adding a smaller id or removing the original minimum never renumbers
  the lot, so a number printed on a label keeps naming the same group.
- Live lot numbers are unique. A new lot whose minimum id is still the number of a
  live lot (that item left the lot earlier) is rejected.
- A lot with zero members does not exist: it is dissolved in the same operation that
  removes its last member.
- Grouping requires every item to exist and to be free (re-grouping requires an
  explicit detach first).
- Removing an item that is already free is a benign no-op, so two callers racing the
  same removal both observe success.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import AbstractSet, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .errors import AlreadyMemberError, EmptySelectionError, LotNumberInUseError, NotAMemberError, NotFoundError
from .item import Item
from .time import require_utc_timestamp

SAMPLE_TITLE_LIMIT = 3


@dataclass(frozen=True, slots=True)
class Lot:
    lot_id: int
    lot_number: int
    member_ids: FrozenSet[int]
    created_at: datetime

    def __post_init__(self) -> None:
        require_utc_timestamp("created_at", self.created_at)
        if not self.member_ids:
            raise ValueError("a lot must have at least one member")

    @classmethod
    def new(cls, lot_id: int, member_ids: Iterable[int], created_at: datetime) -> "Lot":
        members = frozenset(member_ids)
        if not members:
            raise ValueError("a lot must have at least one member")
        return cls(lot_id=lot_id, lot_number=min(members), member_ids=members, created_at=created_at)

    @property
    def size(self) -> int:
        return len(self.member_ids)

    def sorted_member_ids(self) -> List[int]:
        return sorted(self.member_ids)

    def with_member(self, item_id: int) -> "Lot":
        return replace(self, member_ids=self.member_ids | {item_id})

    def without(self, item_id: int) -> Optional["Lot"]:
        """Lot minus `item_id`, or None when that empties (dissolves) it."""

        remaining = self.member_ids - {item_id}
        if not remaining:
            return None
        return replace(self, member_ids=remaining)


class RemovalOutcome(str, Enum):
    REMOVED = "removed"
    ALREADY_REMOVED = "already_removed"


@dataclass(frozen=True, slots=True)
class LotRemoval:
    lot_number: int
    item_id: int
    outcome: RemovalOutcome
    lot_number_after: Optional[int] = None
    lot_dissolved: bool = False


@dataclass(frozen=True, slots=True)
class LotDeletion:
    lot_number: int
    released_item_ids: Tuple[int, ...]


@dataclass(frozen=True, slots=True)
class LotSummary:
    """Read-side projection; not stored."""

    lot_number: int
    item_count: int
    sample_titles: Tuple[str, ...]
    created_at: datetime


def validate_new_lot(
    item_ids: Iterable[int],
    items: Mapping[int, Item],
    numbers_in_use: AbstractSet[int] = frozenset(),
) -> Tuple[int, ...]:
    """
    Check a lot-creation request against current item state.

    Returns the de-duplicated ids in ascending order; the first is the new lot
    number. Raises without side effects if the request is empty, references unknown
    items, any item is already grouped, or the new number belongs to a live lot.
    """

    unique = tuple(sorted(set(item_ids)))
    if not unique:
        raise EmptySelectionError("A lot needs at least one item")

    missing = [item_id for item_id in unique if item_id not in items]
    if missing:
        raise NotFoundError(
            f"Items not found: {', '.join(f'#{i}' for i in missing)}",
            {"item_ids": missing},
        )

    grouped = [item_id for item_id in unique if items[item_id].lot_id is not None]
    if grouped:
        raise AlreadyMemberError(
            f"Items already in a lot: {', '.join(f'#{i}' for i in grouped)}",
            {"item_ids": grouped},
        )

    if unique[0] in numbers_in_use:
        raise LotNumberInUseError(
            f"Lot #{unique[0]} still exists; group these items without item #{unique[0]} "
            f"or dissolve lot #{unique[0]} first",
            {"lot_number": unique[0]},
        )
    return unique


def validate_addition(lot: Lot, item: Item) -> None:
    if item.lot_id is None:
        return
    if item.lot_id == lot.lot_id:
        raise AlreadyMemberError(
            f"Item #{item.item_id} is already in lot #{lot.lot_number}",
            {"item_id": item.item_id, "lot_number": lot.lot_number},
        )
    raise AlreadyMemberError(
        f"Item #{item.item_id} belongs to another lot; remove it first",
        {"item_id": item.item_id},
    )


def resolve_removal(lot_number: int, lot: Optional[Lot], item: Item) -> Optional[Lot]:
    """
    Decide what removing `item` from lot `lot_number` means against current state.

    `lot` is the live lot numbered `lot_number`, if any. Returns the lot to shrink,
    or None when the item is already free (a benign repeat of the removal).
    """

    if item.lot_id is None:
        return None
    if lot is not None and item.lot_id == lot.lot_id:
        return lot
    raise NotAMemberError(
        f"Item #{item.item_id} is not in lot #{lot_number}",
        {"item_id": item.item_id, "lot_number": lot_number},
    )


def summarize_lot(lot: Lot, titles: Mapping[int, str]) -> LotSummary:
    samples: List[str] = []
    for item_id in lot.sorted_member_ids():
        title = titles.get(item_id, "Unknown Title")
        if title not in samples:
            samples.append(title)
        if len(samples) == SAMPLE_TITLE_LIMIT:
            break
    return LotSummary(
        lot_number=lot.lot_number,
        item_count=lot.size,
        sample_titles=tuple(samples),
        created_at=lot.created_at,
    )


__all__ = [
    "SAMPLE_TITLE_LIMIT",
    "Lot",
    "RemovalOutcome",
    "LotRemoval",
    "LotDeletion",
    "LotSummary",
    "validate_new_lot",
    "validate_addition",
    "resolve_removal",
    "summarize_lot",
]
