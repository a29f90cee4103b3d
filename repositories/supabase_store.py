"""
Supabase-backed InventoryStore (persistence).

Reads go through the PostgREST table/view query builders. Every mutation that
touches more than one row, or that must check-then-write, is a PL/pgSQL function
in sql/002_atomic_functions.sql invoked with `rpc()`, so it runs as a single
database transaction with row locks. Those functions report rejected
preconditions as `{"success": false, "error": CODE, "message": ...}`; this module
turns them back into the typed errors of `domain.errors`.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx
from postgrest.exceptions import APIError

from domain.catalog import (
    CatalogRecord,
    ProductFormat,
    metadata_from_dict,
    metadata_to_dict,
)
from domain.cog import CogRecord, CogReversal, CogReversalMode, CogWindow
from domain.errors import NotFoundError, StorageError, error_for_code
from domain.item import Item, ItemDetails
from domain.lot import Lot, LotDeletion, LotRemoval, LotSummary, RemovalOutcome, summarize_lot
from domain.status import HistoryChannel, ItemStatus, StatusHistoryEntry
from domain.time import parse_utc_datetime, to_iso_utc
from repositories.store import (
    BulkLocationResult,
    ItemDraft,
    ItemQueryFilters,
    ItemRemoval,
    ItemSort,
    Page,
    SkippedItem,
    normalize_paging,
    parse_search,
)

logger = logging.getLogger(__name__)

# Supabase table and view names.
# Keep these aligned with sql/001_schema.sql.
_CATALOG_TABLE: str = "catalog_records"
_ITEMS_TABLE: str = "items"
_ITEM_DETAILS_VIEW: str = "item_details"
_LOT_NUMBERS_VIEW: str = "lot_numbers"
_HISTORY_TABLE: str = "item_status_history"
_COG_TABLE: str = "cog_records"

_SCAN_PAGE_SIZE = 1000


def _optional_datetime(value: Any) -> Optional[datetime]:
    return parse_utc_datetime(value) if value is not None else None


def _optional_iso(value: Optional[datetime], *, name: str) -> Optional[str]:
    return to_iso_utc(value, name=name) if value is not None else None


def _row_to_catalog(row: Mapping[str, Any]) -> CatalogRecord:
    """Convert a catalog_records row into a CatalogRecord."""

    created = row.get("created_at_utc")
    return CatalogRecord(
        catalog_id=str(row["catalog_id"]),
        format=ProductFormat(str(row["format"])),
        title=str(row["title"]),
        creator=row.get("creator"),
        publisher=row.get("publisher"),
        year=row.get("year"),
        sub_format=row.get("sub_format"),
        image_url=row.get("image_url"),
        categories=tuple(row.get("categories") or ()),
        created_at=_optional_datetime(created),
    )


def _row_to_item(row: Mapping[str, Any]) -> Item:
    """Convert an items row (or item_details row) into an Item."""

    return Item(
        item_id=int(row["item_id"]),
        catalog_id=str(row["catalog_id"]),
        intake_at=parse_utc_datetime(row["intake_at_utc"]),
        status=ItemStatus(str(row["status"])),
        cost=int(row.get("cost") or 0),
        condition_grade=row.get("condition_grade"),
        condition_notes=row.get("condition_notes"),
        location=row.get("location"),
        lot_id=row.get("lot_id"),
        listed_at=_optional_datetime(row.get("listed_at_utc")),
        sold_at=_optional_datetime(row.get("sold_at_utc")),
        format_metadata=metadata_from_dict(row.get("format_metadata")),
    )


def _row_to_details(row: Mapping[str, Any]) -> ItemDetails:
    catalog = None
    if row.get("catalog_format") is not None:
        catalog = _row_to_catalog(
            {
                **row,
                "format": row["catalog_format"],
                "created_at_utc": row.get("catalog_created_at_utc"),
            }
        )
    lot_number = row.get("lot_number")
    return ItemDetails(
        item=_row_to_item(row),
        catalog=catalog,
        lot_number=int(lot_number) if lot_number is not None else None,
    )


def _payload_to_lot(payload: Mapping[str, Any]) -> Lot:
    return Lot(
        lot_id=int(payload["lot_id"]),
        lot_number=int(payload["lot_number"]),
        member_ids=frozenset(int(item_id) for item_id in payload.get("item_ids") or ()),
        created_at=parse_utc_datetime(payload["created_at_utc"]),
    )


def _row_to_cog(row: Mapping[str, Any]) -> CogRecord:
    return CogRecord(
        record_id=int(row["record_id"]),
        recorded_at=parse_utc_datetime(row["recorded_at_utc"]),
        start_date=date.fromisoformat(str(row["start_date"])),
        end_date=date.fromisoformat(str(row["end_date"])),
        window_start_at=parse_utc_datetime(row["window_start_utc"]),
        window_end_at=parse_utc_datetime(row["window_end_utc"]),
        total_spent=int(row["total_spent"]),
        items_updated=int(row["items_updated"]),
        average_per_item=int(row["average_per_item"]),
        item_ids=tuple(int(item_id) for item_id in row.get("item_ids") or ()),
    )


def _row_to_history(row: Mapping[str, Any]) -> StatusHistoryEntry:
    from_status = row.get("from_status")
    return StatusHistoryEntry(
        item_id=int(row["item_id"]),
        from_status=ItemStatus(str(from_status)) if from_status else None,
        to_status=ItemStatus(str(row["to_status"])),
        channel=HistoryChannel(str(row["channel"])),
        changed_at=parse_utc_datetime(row["changed_at_utc"]),
        note=row.get("note"),
        entry_id=row.get("entry_id"),
    )


def _catalog_payload(catalog: CatalogRecord) -> Dict[str, Any]:
    return {
        "catalog_id": catalog.catalog_id,
        "format": catalog.format.value,
        "title": catalog.title,
        "creator": catalog.creator,
        "publisher": catalog.publisher,
        "year": catalog.year,
        "sub_format": catalog.sub_format,
        "image_url": catalog.image_url,
        "categories": list(catalog.categories),
        "created_at_utc": _optional_iso(catalog.created_at, name="created_at"),
    }


def _state_payload(item: Item) -> Dict[str, Any]:
    return {
        "status": item.status.value,
        "location": item.location,
        "listed_at_utc": _optional_iso(item.listed_at, name="listed_at"),
        "sold_at_utc": _optional_iso(item.sold_at, name="sold_at"),
    }


def _search_text(text: str) -> str:
    # PostgREST `or` filters use commas and parentheses as syntax.
    return "".join(ch for ch in text if ch not in ",()")


class SupabaseInventoryStore:
    def __init__(self, client: Any) -> None:
        self._client = client

    # ------------------------------------------------------------------
    # plumbing
    # ------------------------------------------------------------------

    def _rows(self, response: Any, action: str) -> List[Dict[str, Any]]:
        error = getattr(response, "error", None)
        if error:
            logger.error("Supabase query failed", extra={"action": action, "error": str(error)})
            raise StorageError(f"Failed to {action}: {error}")
        return getattr(response, "data", None) or []

    def _execute(self, query: Any, action: str) -> Any:
        try:
            return query.execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error("Supabase query failed", extra={"action": action, "error": str(e)})
            raise StorageError(f"Failed to {action}: {e}") from e

    def _call_rpc(self, function: str, params: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Call an atomic SQL function and return its success payload.

        Rejected preconditions are raised as the matching InventoryError subclass;
        transport or database failures as StorageError.
        """

        try:
            response = self._client.rpc(function, dict(params)).execute()
        except APIError as e:
            # supabase-py raises APIError when the function's JSON result does not
            # look like a PostgREST row set, for success and failure payloads alike.
            payload = e.json() if callable(getattr(e, "json", None)) else {}
            if not isinstance(payload, dict):
                payload = {}
            if payload.get("success") is True:
                return payload
            if payload.get("success") is False:
                raise error_for_code(payload.get("error"), payload.get("message"), payload.get("details"))
            logger.error("RPC failed", extra={"function": function, "error": str(e)})
            raise StorageError(f"{function} failed: {getattr(e, 'message', None) or e}") from e
        except httpx.HTTPError as e:
            logger.error("RPC transport failed", extra={"function": function, "error": str(e)})
            raise StorageError(f"{function} failed: {e}") from e

        error = getattr(response, "error", None)
        if error:
            logger.error("RPC failed", extra={"function": function, "error": str(error)})
            raise StorageError(f"{function} failed: {error}")

        result = getattr(response, "data", None)
        if isinstance(result, list) and len(result) == 1:
            result = result[0]
        if not isinstance(result, dict):
            logger.error("RPC returned an unexpected payload", extra={"function": function})
            raise StorageError(f"{function} returned an unexpected payload")

        if result.get("success"):
            return result
        raise error_for_code(result.get("error"), result.get("message"), result.get("details"))

    # ------------------------------------------------------------------
    # catalog and items
    # ------------------------------------------------------------------

    def get_catalog(self, catalog_id: str) -> Optional[CatalogRecord]:
        query = self._client.table(_CATALOG_TABLE).select("*").eq("catalog_id", catalog_id).limit(1)
        rows = self._rows(self._execute(query, "get catalog record"), "get catalog record")
        return _row_to_catalog(rows[0]) if rows else None

    def intake_item(self, catalog: CatalogRecord, draft: ItemDraft, intake_at: datetime) -> Item:
        result = self._call_rpc(
            "intake_item",
            {
                "p_catalog": _catalog_payload(catalog),
                "p_item": {
                    "cost": draft.cost,
                    "condition_grade": draft.condition_grade,
                    "condition_notes": draft.condition_notes,
                    "format_metadata": metadata_to_dict(draft.format_metadata),
                },
                "p_intake_at": to_iso_utc(intake_at, name="intake_at"),
            },
        )
        return _row_to_item(result["item"])

    def get_item(self, item_id: int) -> Optional[Item]:
        query = self._client.table(_ITEMS_TABLE).select("*").eq("item_id", item_id).limit(1)
        rows = self._rows(self._execute(query, "get item"), "get item")
        return _row_to_item(rows[0]) if rows else None

    def get_item_details(self, item_id: int) -> Optional[ItemDetails]:
        query = self._client.table(_ITEM_DETAILS_VIEW).select("*").eq("item_id", item_id).limit(1)
        rows = self._rows(self._execute(query, "get item details"), "get item details")
        return _row_to_details(rows[0]) if rows else None

    def items_by_catalog_id(self, catalog_id: str) -> List[Item]:
        query = self._client.table(_ITEMS_TABLE).select("*").eq("catalog_id", catalog_id)
        rows = self._rows(self._execute(query, "find items by catalog id"), "find items by catalog id")
        return [_row_to_item(row) for row in rows]

    def list_items(self, filters: ItemQueryFilters, page: int, page_size: int) -> Page[ItemDetails]:
        page, page_size = normalize_paging(page, page_size)
        query = self._client.table(_ITEM_DETAILS_VIEW).select("*", count="exact")

        if filters.status is not None:
            query = query.eq("status", filters.status.value)
        if filters.location:
            query = query.eq("location", filters.location)
        if filters.lot_number is not None:
            query = query.eq("lot_number", filters.lot_number)

        search_id, search_text = parse_search(filters.search)
        if search_id is not None:
            query = query.eq("item_id", search_id)
        elif search_text is not None:
            text = _search_text(search_text)
            query = query.or_(f"catalog_id.eq.{text},title.ilike.*{text}*")

        if filters.sort is ItemSort.ID_ASC:
            query = query.order("item_id")
        elif filters.sort is ItemSort.ID_DESC:
            query = query.order("item_id", desc=True)
        else:
            # Ascending order puts NULL lot numbers (unlotted items) last.
            query = query.order("lot_number").order("item_id", desc=True)

        offset = (page - 1) * page_size
        query = query.range(offset, offset + page_size - 1)

        response = self._execute(query, "list items")
        rows = self._rows(response, "list items")
        total = getattr(response, "count", None)
        return Page(
            items=[_row_to_details(row) for row in rows],
            total=int(total) if total is not None else len(rows),
            page=page,
            page_size=page_size,
        )

    def all_items(self) -> List[ItemDetails]:
        results: List[ItemDetails] = []
        offset = 0
        while True:
            query = (
                self._client.table(_ITEM_DETAILS_VIEW)
                .select("*")
                .order("item_id")
                .range(offset, offset + _SCAN_PAGE_SIZE - 1)
            )
            rows = self._rows(self._execute(query, "scan items"), "scan items")
            results.extend(_row_to_details(row) for row in rows)
            if len(rows) < _SCAN_PAGE_SIZE:
                return results
            offset += _SCAN_PAGE_SIZE

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
        result = self._call_rpc(
            "transition_item",
            {
                "p_item_id": before.item_id,
                "p_expected": _state_payload(before),
                "p_new": _state_payload(after),
                "p_channel": channel.value,
                "p_note": note,
                "p_changed_at": to_iso_utc(changed_at, name="changed_at"),
            },
        )
        return _row_to_item(result["item"])

    def update_item_condition(
        self,
        item_id: int,
        condition_grade: Optional[str],
        condition_notes: Optional[str],
        changed_at: datetime,
    ) -> Item:
        result = self._call_rpc(
            "update_item_condition",
            {
                "p_item_id": item_id,
                "p_condition_grade": condition_grade,
                "p_condition_notes": condition_notes,
                "p_changed_at": to_iso_utc(changed_at, name="changed_at"),
            },
        )
        return _row_to_item(result["item"])

    def assign_location_bulk(self, item_ids: List[int], location: str, changed_at: datetime) -> BulkLocationResult:
        result = self._call_rpc(
            "bulk_assign_location",
            {
                "p_item_ids": list(dict.fromkeys(item_ids)),
                "p_location": location,
                "p_changed_at": to_iso_utc(changed_at, name="changed_at"),
            },
        )
        return BulkLocationResult(
            location=location,
            updated_ids=tuple(int(item_id) for item_id in result.get("updated_ids") or ()),
            skipped=tuple(
                SkippedItem(item_id=int(entry["item_id"]), reason=str(entry["reason"]))
                for entry in result.get("skipped") or ()
            ),
        )

    def delete_item(self, item_id: int) -> ItemRemoval:
        result = self._call_rpc("delete_item", {"p_item_id": item_id})
        lot_number = result.get("lot_number")
        return ItemRemoval(
            item_id=item_id,
            lot_number=int(lot_number) if lot_number is not None else None,
            lot_dissolved=bool(result.get("lot_dissolved")),
        )

    def item_history(self, item_id: int, limit: int = 10) -> List[StatusHistoryEntry]:
        query = (
            self._client.table(_HISTORY_TABLE)
            .select("*")
            .eq("item_id", item_id)
            .order("changed_at_utc", desc=True)
            .order("entry_id", desc=True)
            .limit(limit)
        )
        rows = self._rows(self._execute(query, "get item history"), "get item history")
        return [_row_to_history(row) for row in rows]

    # ------------------------------------------------------------------
    # lots
    # ------------------------------------------------------------------

    def create_lot(self, item_ids: List[int], created_at: datetime) -> Lot:
        result = self._call_rpc(
            "create_lot",
            {"p_item_ids": list(item_ids), "p_created_at": to_iso_utc(created_at, name="created_at")},
        )
        return _payload_to_lot(result["lot"])

    def get_lot(self, lot_number: int) -> Optional[Lot]:
        query = self._client.table(_LOT_NUMBERS_VIEW).select("*").eq("lot_number", lot_number).limit(1)
        rows = self._rows(self._execute(query, "get lot"), "get lot")
        if not rows:
            return None
        lot_id = int(rows[0]["lot_id"])
        members = self._rows(
            self._execute(self._client.table(_ITEMS_TABLE).select("item_id").eq("lot_id", lot_id), "get lot members"),
            "get lot members",
        )
        if not members:
            return None
        return Lot(
            lot_id=lot_id,
            lot_number=int(rows[0]["lot_number"]),
            member_ids=frozenset(int(row["item_id"]) for row in members),
            created_at=parse_utc_datetime(rows[0]["created_at_utc"]),
        )

    def lot_members(self, lot_number: int) -> List[ItemDetails]:
        query = self._client.table(_ITEM_DETAILS_VIEW).select("*").eq("lot_number", lot_number).order("item_id")
        rows = self._rows(self._execute(query, "get lot members"), "get lot members")
        if not rows:
            raise NotFoundError(f"Lot #{lot_number} not found", {"lot_number": lot_number})
        return [_row_to_details(row) for row in rows]

    def add_to_lot(self, lot_number: int, item_id: int, changed_at: datetime) -> Lot:
        result = self._call_rpc(
            "add_to_lot",
            {
                "p_lot_number": lot_number,
                "p_item_id": item_id,
                "p_changed_at": to_iso_utc(changed_at, name="changed_at"),
            },
        )
        return _payload_to_lot(result["lot"])

    def remove_from_lot(self, lot_number: int, item_id: int, changed_at: datetime) -> LotRemoval:
        result = self._call_rpc(
            "remove_from_lot",
            {
                "p_lot_number": lot_number,
                "p_item_id": item_id,
                "p_changed_at": to_iso_utc(changed_at, name="changed_at"),
            },
        )
        after = result.get("lot_number_after")
        return LotRemoval(
            lot_number=lot_number,
            item_id=item_id,
            outcome=RemovalOutcome(str(result["outcome"])),
            lot_number_after=int(after) if after is not None else None,
            lot_dissolved=bool(result.get("lot_dissolved")),
        )

    def delete_lot(self, lot_number: int, changed_at: datetime) -> LotDeletion:
        result = self._call_rpc(
            "delete_lot",
            {"p_lot_number": lot_number, "p_changed_at": to_iso_utc(changed_at, name="changed_at")},
        )
        return LotDeletion(
            lot_number=lot_number,
            released_item_ids=tuple(int(item_id) for item_id in result.get("released_item_ids") or ()),
        )

    def list_lots(self, page: int, page_size: int) -> Page[LotSummary]:
        page, page_size = normalize_paging(page, page_size)
        offset = (page - 1) * page_size
        query = (
            self._client.table(_LOT_NUMBERS_VIEW)
            .select("*", count="exact")
            .order("lot_number")
            .range(offset, offset + page_size - 1)
        )
        response = self._execute(query, "list lots")
        lot_rows = self._rows(response, "list lots")
        total = getattr(response, "count", None)

        members: Dict[int, Dict[int, str]] = {int(row["lot_id"]): {} for row in lot_rows}
        if members:
            member_query = (
                self._client.table(_ITEM_DETAILS_VIEW)
                .select("item_id, lot_id, title")
                .in_("lot_id", list(members))
                .order("item_id")
            )
            for row in self._rows(self._execute(member_query, "list lot members"), "list lot members"):
                members[int(row["lot_id"])][int(row["item_id"])] = row.get("title") or "Unknown Title"

        summaries: List[LotSummary] = []
        for row in lot_rows:
            titles = members[int(row["lot_id"])]
            if not titles:
                continue
            lot = Lot(
                lot_id=int(row["lot_id"]),
                lot_number=int(row["lot_number"]),
                member_ids=frozenset(titles),
                created_at=parse_utc_datetime(row["created_at_utc"]),
            )
            summaries.append(summarize_lot(lot, titles))

        return Page(
            items=summaries,
            total=int(total) if total is not None else len(summaries),
            page=page,
            page_size=page_size,
        )

    # ------------------------------------------------------------------
    # cost of goods
    # ------------------------------------------------------------------

    def apply_cog(
        self,
        window: CogWindow,
        bounds: Tuple[datetime, datetime],
        total_spent: int,
        recorded_at: datetime,
    ) -> CogRecord:
        start, end = bounds
        result = self._call_rpc(
            "apply_cog",
            {
                "p_start_date": window.start_date.isoformat(),
                "p_end_date": window.end_date.isoformat(),
                "p_window_start": to_iso_utc(start, name="window_start"),
                "p_window_end": to_iso_utc(end, name="window_end"),
                "p_total_spent": total_spent,
                "p_recorded_at": to_iso_utc(recorded_at, name="recorded_at"),
            },
        )
        return _row_to_cog(result["record"])

    def delete_cog_record(self, record_id: int, mode: CogReversalMode) -> CogReversal:
        result = self._call_rpc("delete_cog_record", {"p_record_id": record_id, "p_mode": mode.value})
        item_ids = tuple(int(item_id) for item_id in result.get("item_ids") or ())
        return CogReversal(record_id=record_id, items_reset=len(item_ids), item_ids=item_ids, mode=mode)

    def get_cog_record(self, record_id: int) -> Optional[CogRecord]:
        query = self._client.table(_COG_TABLE).select("*").eq("record_id", record_id).limit(1)
        rows = self._rows(self._execute(query, "get COG record"), "get COG record")
        return _row_to_cog(rows[0]) if rows else None

    def list_cog_records(self, page: int, page_size: int) -> Page[CogRecord]:
        page, page_size = normalize_paging(page, page_size)
        offset = (page - 1) * page_size
        query = (
            self._client.table(_COG_TABLE)
            .select("*", count="exact")
            .order("recorded_at_utc", desc=True)
            .order("record_id", desc=True)
            .range(offset, offset + page_size - 1)
        )
        response = self._execute(query, "list COG records")
        rows = self._rows(response, "list COG records")
        total = getattr(response, "count", None)
        return Page(
            items=[_row_to_cog(row) for row in rows],
            total=int(total) if total is not None else len(rows),
            page=page,
            page_size=page_size,
        )


__all__ = ["SupabaseInventoryStore"]
