"""
Status service: putaway, listing, selling, returns, discards, condition edits and
removal.

Single-item operations load the item, compute the new state with the domain
methods on `Item`, then ask the store for a compare-and-set write. They fail fast
and leave the row untouched on any error.

The batch date update is best-effort: every item is processed independently and
per-item failures are returned, never rolled back as a batch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional, Tuple
from zoneinfo import ZoneInfo

from domain.errors import EmptySelectionError, InvalidInputError, InventoryError, NotFoundError
from domain.item import Item, ItemDetails, normalize_location
from domain.status import HistoryChannel, StatusHistoryEntry
from domain.time import start_of_day, utc_now
from repositories.store import BulkLocationResult, InventoryStore, ItemRemoval

logger = logging.getLogger(__name__)

_UTC = ZoneInfo("UTC")
HISTORY_LIMIT = 10

# Marks a condition field the caller did not send.
UNCHANGED = object()


class DateType(str, Enum):
    LISTED = "listed"
    SOLD = "sold"


@dataclass(frozen=True, slots=True)
class DateUpdateFailure:
    item_id: int
    error: str
    message: str


@dataclass(frozen=True, slots=True)
class DateUpdateResult:
    date_type: DateType
    items_updated: int
    status_changes: int
    updated_ids: Tuple[int, ...]
    failures: Tuple[DateUpdateFailure, ...]


@dataclass(frozen=True, slots=True)
class ItemView:
    """Item detail with its most recent history entries (newest first)."""

    details: ItemDetails
    history: Tuple[StatusHistoryEntry, ...]


def _load(store: InventoryStore, item_id: int) -> Item:
    item = store.get_item(item_id)
    if item is None:
        raise NotFoundError(f"Item #{item_id} not found", {"item_id": item_id})
    return item


def _save(
    store: InventoryStore,
    before: Item,
    after: Item,
    channel: HistoryChannel,
    now: datetime,
    note: Optional[str] = None,
) -> Item:
    if after is before:
        return before
    return store.save_item_state(before, after, channel=channel, changed_at=now, note=note)


def _instant(on: Optional[date], tz: ZoneInfo, now: datetime) -> datetime:
    """Calendar date -> start of that day in `tz` (UTC); no date means now."""

    return start_of_day(on, tz) if on is not None else now


def get_item(store: InventoryStore, item_id: int, *, history_limit: int = HISTORY_LIMIT) -> ItemView:
    details = store.get_item_details(item_id)
    if details is None:
        raise NotFoundError(f"Item #{item_id} not found", {"item_id": item_id})
    history = store.item_history(item_id, history_limit)
    return ItemView(details=details, history=tuple(history))


def assign_location(
    store: InventoryStore,
    item_id: int,
    location: str,
    *,
    now: Optional[datetime] = None,
) -> Item:
    """
    Put an item at `location`. INTAKE items advance to STORED.

    Re-assigning the current location is a no-op and writes nothing.
    """

    now = now or utc_now()
    before = _load(store, item_id)
    after = before.assign_location(location)
    saved = _save(store, before, after, HistoryChannel.PUTAWAY, now, f"Location set to {after.location}")
    if saved is not before:
        logger.info(
            "Item put away",
            extra={"item_id": item_id, "location": saved.location, "status": saved.status.value},
        )
    return saved


def bulk_assign_location(
    store: InventoryStore,
    item_ids: List[int],
    location: str,
    *,
    now: Optional[datetime] = None,
) -> BulkLocationResult:
    """
    Assign one location to many items in a single transaction.

    Missing and terminal items are skipped with a reason; if none of the ids
    exist the whole request fails with NotFoundError.
    """

    if not item_ids:
        raise EmptySelectionError("itemIds must not be empty")
    location = normalize_location(location)
    result = store.assign_location_bulk(list(item_ids), location, now or utc_now())
    logger.info(
        "Bulk location assigned",
        extra={
            "location": location,
            "updated_count": result.updated_count,
            "skipped_count": len(result.skipped),
        },
    )
    return result


def mark_listed(
    store: InventoryStore,
    item_id: int,
    listed_on: Optional[date] = None,
    *,
    tz: ZoneInfo = _UTC,
    now: Optional[datetime] = None,
) -> Item:
    now = now or utc_now()
    before = _load(store, item_id)
    after = before.mark_listed(_instant(listed_on, tz, now))
    saved = _save(store, before, after, HistoryChannel.LISTING, now)
    logger.info("Item listed", extra={"item_id": item_id, "listed_at": saved.listed_at})
    return saved


def mark_sold(
    store: InventoryStore,
    item_id: int,
    sold_on: Optional[date] = None,
    *,
    tz: ZoneInfo = _UTC,
    now: Optional[datetime] = None,
) -> Item:
    now = now or utc_now()
    before = _load(store, item_id)
    after = before.mark_sold(_instant(sold_on, tz, now))
    saved = _save(store, before, after, HistoryChannel.SALE, now)
    logger.info("Item sold", extra={"item_id": item_id, "sold_at": saved.sold_at})
    return saved


def mark_returned(
    store: InventoryStore,
    item_id: int,
    note: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Item:
    now = now or utc_now()
    before = _load(store, item_id)
    saved = _save(store, before, before.mark_returned(), HistoryChannel.RETURN, now, note)
    logger.info("Item returned", extra={"item_id": item_id})
    return saved


def mark_discarded(
    store: InventoryStore,
    item_id: int,
    note: Optional[str] = None,
    *,
    now: Optional[datetime] = None,
) -> Item:
    now = now or utc_now()
    before = _load(store, item_id)
    saved = _save(store, before, before.mark_discarded(), HistoryChannel.DISCARD, now, note)
    logger.info("Item discarded", extra={"item_id": item_id})
    return saved


def update_condition(
    store: InventoryStore,
    item_id: int,
    *,
    condition_grade: Any = UNCHANGED,
    condition_notes: Any = UNCHANGED,
    now: Optional[datetime] = None,
) -> Item:
    """
    Edit an item's condition grade and/or notes.

    Fields left as UNCHANGED keep their stored value; None (or blank) clears one.
    Both fields are written together in a single store call.
    """

    if condition_grade is UNCHANGED and condition_notes is UNCHANGED:
        raise InvalidInputError("Provide conditionGrade or conditionNotes")

    current = _load(store, item_id)
    edited = current.with_condition(
        current.condition_grade if condition_grade is UNCHANGED else condition_grade,
        current.condition_notes if condition_notes is UNCHANGED else condition_notes,
    )
    saved = store.update_item_condition(
        item_id, edited.condition_grade, edited.condition_notes, now or utc_now()
    )
    logger.info("Item condition updated", extra={"item_id": item_id, "condition_grade": saved.condition_grade})
    return saved


def update_dates(
    store: InventoryStore,
    item_ids: List[int],
    date_type: DateType,
    on: date,
    *,
    tz: ZoneInfo = _UTC,
    now: Optional[datetime] = None,
) -> DateUpdateResult:
    """
    Apply markListed / markSold with date `on` to each item independently.

    Items already in the target status only get their date corrected; that counts
    as an update but not as a status change. Failures are collected per item.
    """

    if not item_ids:
        raise EmptySelectionError("itemIds must not be empty")

    now = now or utc_now()
    at = start_of_day(on, tz)
    updated: List[int] = []
    failures: List[DateUpdateFailure] = []
    status_changes = 0

    for item_id in dict.fromkeys(item_ids):
        try:
            before = _load(store, item_id)
            if date_type is DateType.SOLD:
                after = before.mark_sold(at)
            else:
                after = before.mark_listed(at)
            saved = _save(store, before, after, HistoryChannel.DATE_UPDATE, now, f"{date_type.value} date set to {on.isoformat()}")
        except InventoryError as e:
            failures.append(DateUpdateFailure(item_id=item_id, error=e.code, message=e.message))
            continue
        updated.append(item_id)
        if saved.status is not before.status:
            status_changes += 1

    logger.info(
        "Batch date update finished",
        extra={
            "date_type": date_type.value,
            "date": on.isoformat(),
            "items_updated": len(updated),
            "status_changes": status_changes,
            "failures": len(failures),
        },
    )
    return DateUpdateResult(
        date_type=date_type,
        items_updated=len(updated),
        status_changes=status_changes,
        updated_ids=tuple(updated),
        failures=tuple(failures),
    )


def remove_item(store: InventoryStore, item_id: int) -> ItemRemoval:
    """Administrative removal. SOLD items cannot be removed; lot membership is released."""

    removal = store.delete_item(item_id)
    logger.info(
        "Item removed",
        extra={
            "item_id": item_id,
            "lot_number": removal.lot_number,
            "lot_dissolved": removal.lot_dissolved,
        },
    )
    return removal


__all__ = [
    "DateType",
    "DateUpdateFailure",
    "DateUpdateResult",
    "ItemView",
    "HISTORY_LIMIT",
    "UNCHANGED",
    "get_item",
    "assign_location",
    "bulk_assign_location",
    "mark_listed",
    "mark_sold",
    "mark_returned",
    "mark_discarded",
    "update_condition",
    "update_dates",
    "remove_item",
]
