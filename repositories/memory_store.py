"""
In-process InventoryStore.

Every public method holds a single re-entrant lock for its whole duration, so
operations are serialized exactly as the database backend serializes them with
row locks. Each mutation validates all of its preconditions before writing
anything, which makes a rejected operation side-effect free.

Used by the test suite and for local runs without a database.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from domain.catalog import CatalogRecord
from domain.cog import (
    CogRecord,
    CogReversal,
    CogReversalMode,
    CogWindow,
    average_per_item,
    select_reversal_targets,
)
from domain.errors import ConcurrentModificationError, InvalidTransitionError, NotFoundError
from domain.item import Item, ItemDetails
from domain.lot import (
    Lot,
    LotDeletion,
    LotRemoval,
    LotSummary,
    RemovalOutcome,
    resolve_removal,
    summarize_lot,
    validate_addition,
    validate_new_lot,
)
from domain.status import HistoryChannel, ItemStatus, StatusHistoryEntry
from repositories.store import (
    BulkLocationResult,
    ItemDraft,
    ItemQueryFilters,
    ItemRemoval,
    ItemSort,
    Page,
    SkippedItem,
    default_sort_key,
    normalize_paging,
    parse_search,
)


class MemoryInventoryStore:
    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._catalog: Dict[str, CatalogRecord] = {}
        self._items: Dict[int, Item] = {}
        self._lots: Dict[int, Lot] = {}
        self._history: List[StatusHistoryEntry] = []
        self._cog_records: Dict[int, CogRecord] = {}
        self._item_ids = itertools.count(1)
        self._lot_ids = itertools.count(1)
        self._cog_ids = itertools.count(1)
        self._history_ids = itertools.count(1)

    # ------------------------------------------------------------------
    # internal helpers (caller holds the lock)
    # ------------------------------------------------------------------

    def _require_item(self, item_id: int) -> Item:
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError(f"Item #{item_id} not found", {"item_id": item_id})
        return item

    def _lot_by_number(self, lot_number: int) -> Optional[Lot]:
        for lot in self._lots.values():
            if lot.lot_number == lot_number:
                return lot
        return None

    def _require_lot(self, lot_number: int) -> Lot:
        lot = self._lot_by_number(lot_number)
        if lot is None:
            raise NotFoundError(f"Lot #{lot_number} not found", {"lot_number": lot_number})
        return lot

    def _details(self, item: Item) -> ItemDetails:
        lot = self._lots.get(item.lot_id) if item.lot_id is not None else None
        return ItemDetails(
            item=item,
            catalog=self._catalog.get(item.catalog_id),
            lot_number=lot.lot_number if lot is not None else None,
        )

    def _record_history(
        self,
        item: Item,
        from_status: Optional[ItemStatus],
        channel: HistoryChannel,
        changed_at: datetime,
        note: Optional[str] = None,
    ) -> None:
        self._history.append(
            StatusHistoryEntry(
                item_id=item.item_id,
                from_status=from_status,
                to_status=item.status,
                channel=channel,
                changed_at=changed_at,
                note=note,
                entry_id=next(self._history_ids),
            )
        )

    def _set_lot(self, item: Item, lot_id: Optional[int]) -> Item:
        updated = item.with_lot(lot_id)
        self._items[item.item_id] = updated
        return updated

    # ------------------------------------------------------------------
    # catalog and items
    # ------------------------------------------------------------------

    def get_catalog(self, catalog_id: str) -> Optional[CatalogRecord]:
        with self._lock:
            return self._catalog.get(catalog_id)

    def intake_item(self, catalog: CatalogRecord, draft: ItemDraft, intake_at: datetime) -> Item:
        with self._lock:
            item = Item(
                item_id=next(self._item_ids),
                catalog_id=catalog.catalog_id,
                intake_at=intake_at,
                cost=draft.cost,
                condition_grade=draft.condition_grade,
                condition_notes=draft.condition_notes,
                format_metadata=draft.format_metadata,
            )
            self._catalog[catalog.catalog_id] = catalog
            self._items[item.item_id] = item
            self._record_history(item, None, HistoryChannel.INTAKE, intake_at)
            return item

    def get_item(self, item_id: int) -> Optional[Item]:
        with self._lock:
            return self._items.get(item_id)

    def get_item_details(self, item_id: int) -> Optional[ItemDetails]:
        with self._lock:
            item = self._items.get(item_id)
            return self._details(item) if item is not None else None

    def items_by_catalog_id(self, catalog_id: str) -> List[Item]:
        with self._lock:
            return [item for item in self._items.values() if item.catalog_id == catalog_id]

    def list_items(self, filters: ItemQueryFilters, page: int, page_size: int) -> Page[ItemDetails]:
        page, page_size = normalize_paging(page, page_size)
        with self._lock:
            rows = [self._details(item) for item in self._items.values()]

        if filters.status is not None:
            rows = [row for row in rows if row.item.status is filters.status]
        if filters.location:
            rows = [row for row in rows if row.item.location == filters.location]
        if filters.lot_number is not None:
            rows = [row for row in rows if row.lot_number == filters.lot_number]

        search_id, search_text = parse_search(filters.search)
        if search_id is not None:
            rows = [row for row in rows if row.item.item_id == search_id]
        elif search_text is not None:
            needle = search_text.lower()
            rows = [
                row
                for row in rows
                if row.item.catalog_id == search_text or needle in row.title.lower()
            ]

        if filters.sort is ItemSort.ID_ASC:
            rows.sort(key=lambda row: row.item.item_id)
        elif filters.sort is ItemSort.ID_DESC:
            rows.sort(key=lambda row: row.item.item_id, reverse=True)
        else:
            rows.sort(key=default_sort_key)

        offset = (page - 1) * page_size
        return Page(items=rows[offset : offset + page_size], total=len(rows), page=page, page_size=page_size)

    def all_items(self) -> List[ItemDetails]:
        with self._lock:
            return [self._details(self._items[item_id]) for item_id in sorted(self._items)]

    # ------------------------------------------------------------------
    # item state
    # ------------------------------------------------------------------

    def save_item_state(
        self,
        before: Item,
        after: Item,
        *,
        channel: HistoryChannel,
        changed_at: datetime,
        note: Optional[str] = None,
    ) -> Item:
        with self._lock:
            current = self._require_item(before.item_id)
            if not current.same_state(before):
                raise ConcurrentModificationError(
                    f"Item #{before.item_id} was modified concurrently; reload and retry",
                    {"item_id": before.item_id, "current_status": current.status.value},
                )
            updated = replace(
                current,
                status=after.status,
                location=after.location,
                listed_at=after.listed_at,
                sold_at=after.sold_at,
            )
            self._items[updated.item_id] = updated
            self._record_history(updated, current.status, channel, changed_at, note)
            return updated

    def update_item_condition(
        self,
        item_id: int,
        condition_grade: Optional[str],
        condition_notes: Optional[str],
        changed_at: datetime,
    ) -> Item:
        with self._lock:
            current = self._require_item(item_id)
            updated = replace(current, condition_grade=condition_grade, condition_notes=condition_notes)
            self._items[item_id] = updated
            self._record_history(updated, current.status, HistoryChannel.CONDITION_UPDATE, changed_at, "Condition updated")
            return updated

    def assign_location_bulk(self, item_ids: List[int], location: str, changed_at: datetime) -> BulkLocationResult:
        unique = list(dict.fromkeys(item_ids))
        with self._lock:
            existing = [item_id for item_id in unique if item_id in self._items]
            if not existing:
                raise NotFoundError("None of the requested items exist", {"item_ids": unique})

            skipped: List[SkippedItem] = []
            updates: List[Tuple[Item, Item]] = []
            for item_id in unique:
                item = self._items.get(item_id)
                if item is None:
                    skipped.append(SkippedItem(item_id, "not found"))
                elif item.is_terminal:
                    skipped.append(SkippedItem(item_id, f"item is {item.status.value} (terminal)"))
                else:
                    updates.append((item, item.assign_location(location)))

            for before, after in updates:
                if after is before:
                    continue
                self._items[after.item_id] = after
                self._record_history(after, before.status, HistoryChannel.BULK_PUTAWAY, changed_at, f"Location set to {location}")

            return BulkLocationResult(
                location=location,
                updated_ids=tuple(after.item_id for _, after in updates),
                skipped=tuple(skipped),
            )

    def delete_item(self, item_id: int) -> ItemRemoval:
        with self._lock:
            item = self._require_item(item_id)
            if item.status is ItemStatus.SOLD:
                raise InvalidTransitionError(
                    f"Item #{item_id} is SOLD and cannot be deleted",
                    {"item_id": item_id, "from_status": item.status.value},
                )

            lot_number: Optional[int] = None
            dissolved = False
            if item.lot_id is not None:
                lot = self._lots[item.lot_id]
                lot_number = lot.lot_number
                remaining = lot.without(item_id)
                if remaining is None:
                    del self._lots[lot.lot_id]
                    dissolved = True
                else:
                    self._lots[lot.lot_id] = remaining

            del self._items[item_id]
            self._history = [entry for entry in self._history if entry.item_id != item_id]
            return ItemRemoval(item_id=item_id, lot_number=lot_number, lot_dissolved=dissolved)

    def item_history(self, item_id: int, limit: int = 10) -> List[StatusHistoryEntry]:
        with self._lock:
            entries = [entry for entry in self._history if entry.item_id == item_id]
        entries.sort(key=lambda entry: (entry.changed_at, entry.entry_id or 0), reverse=True)
        return entries[:limit]

    # ------------------------------------------------------------------
    # lots
    # ------------------------------------------------------------------

    def create_lot(self, item_ids: List[int], created_at: datetime) -> Lot:
        with self._lock:
            in_use = {lot.lot_number for lot in self._lots.values()}
            member_ids = validate_new_lot(item_ids, self._items, in_use)
            lot = Lot.new(next(self._lot_ids), member_ids, created_at)
            self._lots[lot.lot_id] = lot
            for item_id in member_ids:
                item = self._set_lot(self._items[item_id], lot.lot_id)
                self._record_history(
                    item, item.status, HistoryChannel.LOT_CREATION, created_at, f"Grouped into lot #{lot.lot_number}"
                )
            return lot

    def get_lot(self, lot_number: int) -> Optional[Lot]:
        with self._lock:
            return self._lot_by_number(lot_number)

    def lot_members(self, lot_number: int) -> List[ItemDetails]:
        with self._lock:
            lot = self._require_lot(lot_number)
            return [self._details(self._items[item_id]) for item_id in lot.sorted_member_ids()]

    def add_to_lot(self, lot_number: int, item_id: int, changed_at: datetime) -> Lot:
        with self._lock:
            lot = self._require_lot(lot_number)
            item = self._require_item(item_id)
            validate_addition(lot, item)

            grown = lot.with_member(item_id)
            self._lots[lot.lot_id] = grown
            item = self._set_lot(item, lot.lot_id)
            self._record_history(item, item.status, HistoryChannel.LOT_ADD, changed_at, f"Added to lot #{grown.lot_number}")
            return grown

    def remove_from_lot(self, lot_number: int, item_id: int, changed_at: datetime) -> LotRemoval:
        with self._lock:
            item = self._require_item(item_id)
            live = self._lot_by_number(lot_number)
            lot = resolve_removal(lot_number, live, item)
            if lot is None:
                return LotRemoval(
                    lot_number=lot_number,
                    item_id=item_id,
                    outcome=RemovalOutcome.ALREADY_REMOVED,
                    lot_number_after=live.lot_number if live is not None else None,
                )

            remaining = lot.without(item_id)
            if remaining is None:
                del self._lots[lot.lot_id]
            else:
                self._lots[lot.lot_id] = remaining
            item = self._set_lot(item, None)
            self._record_history(item, item.status, HistoryChannel.LOT_REMOVAL, changed_at, f"Removed from lot #{lot_number}")
            return LotRemoval(
                lot_number=lot_number,
                item_id=item_id,
                outcome=RemovalOutcome.REMOVED,
                lot_number_after=remaining.lot_number if remaining is not None else None,
                lot_dissolved=remaining is None,
            )

    def delete_lot(self, lot_number: int, changed_at: datetime) -> LotDeletion:
        with self._lock:
            lot = self._require_lot(lot_number)
            for item_id in lot.sorted_member_ids():
                item = self._set_lot(self._items[item_id], None)
                self._record_history(item, item.status, HistoryChannel.LOT_DELETION, changed_at, f"Lot #{lot_number} deleted")
            del self._lots[lot.lot_id]
            return LotDeletion(lot_number=lot_number, released_item_ids=tuple(lot.sorted_member_ids()))

    def list_lots(self, page: int, page_size: int) -> Page[LotSummary]:
        page, page_size = normalize_paging(page, page_size)
        with self._lock:
            lots = sorted(self._lots.values(), key=lambda lot: lot.lot_number)
            offset = (page - 1) * page_size
            window = lots[offset : offset + page_size]
            summaries = [summarize_lot(lot, self._titles(lot.member_ids)) for lot in window]
            return Page(items=summaries, total=len(lots), page=page, page_size=page_size)

    def _titles(self, item_ids: Iterable[int]) -> Dict[int, str]:
        titles: Dict[int, str] = {}
        for item_id in item_ids:
            catalog = self._catalog.get(self._items[item_id].catalog_id)
            titles[item_id] = catalog.title if catalog is not None else "Unknown Title"
        return titles

    # ------------------------------------------------------------------
    # cost of goods
    # ------------------------------------------------------------------

    def _ids_intaken_between(self, start: datetime, end: datetime) -> List[int]:
        return sorted(item.item_id for item in self._items.values() if start <= item.intake_at <= end)

    def apply_cog(
        self,
        window: CogWindow,
        bounds: Tuple[datetime, datetime],
        total_spent: int,
        recorded_at: datetime,
    ) -> CogRecord:
        start, end = bounds
        with self._lock:
            selected = self._ids_intaken_between(start, end)
            average = average_per_item(total_spent, len(selected))
            for item_id in selected:
                self._items[item_id] = self._items[item_id].with_cost(average)

            record = CogRecord(
                record_id=next(self._cog_ids),
                recorded_at=recorded_at,
                start_date=window.start_date,
                end_date=window.end_date,
                window_start_at=start,
                window_end_at=end,
                total_spent=total_spent,
                items_updated=len(selected),
                average_per_item=average,
                item_ids=tuple(selected),
            )
            self._cog_records[record.record_id] = record
            return record

    def delete_cog_record(self, record_id: int, mode: CogReversalMode) -> CogReversal:
        with self._lock:
            record = self._cog_records.get(record_id)
            if record is None:
                raise NotFoundError(f"COG record #{record_id} not found", {"record_id": record_id})

            window_ids = None
            if mode is CogReversalMode.WINDOW:
                window_ids = self._ids_intaken_between(record.window_start_at, record.window_end_at)
            targets = select_reversal_targets(record, mode, self._items.keys(), window_ids)

            for item_id in targets:
                self._items[item_id] = self._items[item_id].with_cost(0)
            del self._cog_records[record_id]
            return CogReversal(record_id=record_id, items_reset=len(targets), item_ids=tuple(targets), mode=mode)

    def get_cog_record(self, record_id: int) -> Optional[CogRecord]:
        with self._lock:
            return self._cog_records.get(record_id)

    def list_cog_records(self, page: int, page_size: int) -> Page[CogRecord]:
        page, page_size = normalize_paging(page, page_size)
        with self._lock:
            records = sorted(
                self._cog_records.values(),
                key=lambda record: (record.recorded_at, record.record_id),
                reverse=True,
            )
        offset = (page - 1) * page_size
        return Page(items=records[offset : offset + page_size], total=len(records), page=page, page_size=page_size)


__all__ = ["MemoryInventoryStore"]
