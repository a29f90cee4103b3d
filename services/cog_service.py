"""
Cost of Goods (COG) ledger service.

Applying a record spreads a bulk spend over every item intaken in a calendar-date
window and overwrites their cost; deleting it resets the affected items to zero.
Both are single store transactions.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from domain.cog import CogRecord, CogReversal, CogReversalMode, CogWindow, require_positive_spend
from domain.errors import NotFoundError
from domain.time import utc_now
from repositories.store import InventoryStore, Page

logger = logging.getLogger(__name__)

_UTC = ZoneInfo("UTC")


def apply_cog(
    store: InventoryStore,
    start_date: date,
    end_date: date,
    total_spent: int,
    *,
    tz: ZoneInfo = _UTC,
    now: Optional[datetime] = None,
) -> CogRecord:
    """
    Allocate `total_spent` (minor units) evenly over items intaken in the window.

    The window covers [start of start_date, end of end_date] in `tz`. Each
    selected item's cost becomes round_half_up(total_spent / count).

    Raises:
        InvalidRangeError: start_date after end_date, or total_spent <= 0
        EmptySelectionError: no item was intaken inside the window
    """

    window = CogWindow(start_date, end_date)
    require_positive_spend(total_spent)

    record = store.apply_cog(window, window.bounds(tz), total_spent, now or utc_now())
    logger.info(
        "COG applied",
        extra={
            "record_id": record.record_id,
            "start_date": start_date.isoformat(),
            "end_date": end_date.isoformat(),
            "total_spent": total_spent,
            "items_updated": record.items_updated,
            "average_per_item": record.average_per_item,
        },
    )
    return record


def delete_cog_record(
    store: InventoryStore,
    record_id: int,
    *,
    mode: CogReversalMode = CogReversalMode.SNAPSHOT,
) -> CogReversal:
    """
    Reverse a COG application: reset affected items' cost to 0 and drop the record.

    SNAPSHOT resets the items recorded at apply time; WINDOW re-queries the
    record's window, which also zeroes items intaken there after the application.
    A missing record raises NotFoundError and touches no item.
    """

    reversal = store.delete_cog_record(record_id, mode)
    logger.info(
        "COG record deleted",
        extra={"record_id": record_id, "items_reset": reversal.items_reset, "mode": mode.value},
    )
    return reversal


def get_cog_record(store: InventoryStore, record_id: int) -> CogRecord:
    record = store.get_cog_record(record_id)
    if record is None:
        raise NotFoundError(f"COG record #{record_id} not found", {"record_id": record_id})
    return record


def list_cog_records(store: InventoryStore, page: int = 1, page_size: int = 20) -> Page[CogRecord]:
    return store.list_cog_records(page, page_size)


__all__ = ["apply_cog", "delete_cog_record", "get_cog_record", "list_cog_records"]
