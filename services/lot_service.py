"""
Lot manager.

A lot is numbered by the smallest member id when it is created and keeps that
number until it is dissolved, even if that member leaves. Each mutation is one atomic
store call, so a rejected request leaves every member untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Tuple

from domain.errors import EmptySelectionError, NotFoundError
from domain.item import ItemDetails
from domain.lot import Lot, LotDeletion, LotRemoval, LotSummary
from domain.time import utc_now
from repositories.store import InventoryStore, Page

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LotView:
    lot: Lot
    members: Tuple[ItemDetails, ...]

    @property
    def lot_number(self) -> int:
        return self.lot.lot_number


def create_lot(store: InventoryStore, item_ids: List[int], *, now: Optional[datetime] = None) -> Lot:
    """
    Group free items into a new lot numbered min(item_ids).

    Raises:
        EmptySelectionError: no ids given
        NotFoundError: any id does not exist
        AlreadyMemberError: any item already belongs to a lot
        LotNumberInUseError: a live lot already has number min(item_ids)
    """

    if not item_ids:
        raise EmptySelectionError("A lot needs at least one item")
    lot = store.create_lot(list(item_ids), now or utc_now())
    logger.info(
        "Lot created",
        extra={"lot_number": lot.lot_number, "item_ids": lot.sorted_member_ids()},
    )
    return lot


def get_lot(store: InventoryStore, lot_number: int) -> LotView:
    lot = store.get_lot(lot_number)
    if lot is None:
        raise NotFoundError(f"Lot #{lot_number} not found", {"lot_number": lot_number})
    return LotView(lot=lot, members=tuple(store.lot_members(lot_number)))


def add_to_lot(store: InventoryStore, lot_number: int, item_id: int, *, now: Optional[datetime] = None) -> Lot:
    lot = store.add_to_lot(lot_number, item_id, now or utc_now())
    logger.info(
        "Item added to lot",
        extra={"lot_number": lot_number, "item_id": item_id, "lot_number_after": lot.lot_number},
    )
    return lot


def remove_from_lot(
    store: InventoryStore,
    lot_number: int,
    item_id: int,
    *,
    now: Optional[datetime] = None,
) -> LotRemoval:
    """
    Detach an item from a lot, deleting the lot if it becomes empty.

    Idempotent: if the item is already free the call succeeds with outcome
    ALREADY_REMOVED, so concurrent duplicate requests both succeed.
    """

    removal = store.remove_from_lot(lot_number, item_id, now or utc_now())
    logger.info(
        "Item removed from lot",
        extra={
            "lot_number": lot_number,
            "item_id": item_id,
            "outcome": removal.outcome.value,
            "lot_number_after": removal.lot_number_after,
            "lot_dissolved": removal.lot_dissolved,
        },
    )
    return removal


def delete_lot(store: InventoryStore, lot_number: int, *, now: Optional[datetime] = None) -> LotDeletion:
    deletion = store.delete_lot(lot_number, now or utc_now())
    logger.info(
        "Lot deleted",
        extra={"lot_number": lot_number, "released_item_ids": list(deletion.released_item_ids)},
    )
    return deletion


def list_lots(store: InventoryStore, page: int = 1, page_size: int = 20) -> Page[LotSummary]:
    return store.list_lots(page, page_size)


__all__ = ["LotView", "create_lot", "get_lot", "add_to_lot", "remove_from_lot", "delete_lot", "list_lots"]
