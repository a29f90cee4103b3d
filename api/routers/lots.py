"""
Lot API Endpoints.

A lot groups items that are sold together. Its number is the smallest member id
at creation and stays fixed while the lot exists.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_store
from api.models import (
    CreateLotRequest,
    ItemResponse,
    LotDeletionResponse,
    LotDetailResponse,
    LotItemRequest,
    LotListResponse,
    LotRemovalResponse,
    LotResponse,
    LotSummaryResponse,
)
from domain.lot import Lot
from repositories.store import InventoryStore
from services import lot_service

router = APIRouter()


def _lot_response(lot: Lot) -> LotResponse:
    return LotResponse(
        lot_number=lot.lot_number,
        item_ids=lot.sorted_member_ids(),
        item_count=lot.size,
        created_at=lot.created_at,
    )


@router.get(
    "/lots",
    response_model=LotListResponse,
    summary="List Lots",
    description="Paginated lot summaries ordered by lot number."
)
def list_lots(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    store: InventoryStore = Depends(get_store),
):
    result = lot_service.list_lots(store, page, page_size)
    return LotListResponse(
        lots=[LotSummaryResponse.from_summary(summary) for summary in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.post(
    "/lots",
    response_model=LotResponse,
    status_code=201,
    summary="Create Lot",
    description="Group free items into a new lot numbered by the smallest item id."
)
def create_lot(request: CreateLotRequest, store: InventoryStore = Depends(get_store)):
    """
    Create a lot.

    Every item must exist and must not already belong to a lot; otherwise the
    request fails and no item is touched.

    **Example request:**
    ```json
    {"itemIds": [7, 3, 10]}
    ```
    creates lot #3.
    """
    return _lot_response(lot_service.create_lot(store, request.item_ids))


@router.get(
    "/lots/{lot_number}",
    response_model=LotDetailResponse,
    summary="Get Lot",
)
def get_lot(lot_number: int, store: InventoryStore = Depends(get_store)):
    view = lot_service.get_lot(store, lot_number)
    return LotDetailResponse(
        lot_number=view.lot_number,
        item_count=view.lot.size,
        created_at=view.lot.created_at,
        items=[ItemResponse.from_details(details) for details in view.members],
    )


@router.post(
    "/lots/{lot_number}/add",
    response_model=LotResponse,
    summary="Add Item To Lot",
    description="Add a free item to a lot. The lot keeps its number."
)
def add_to_lot(lot_number: int, request: LotItemRequest, store: InventoryStore = Depends(get_store)):
    return _lot_response(lot_service.add_to_lot(store, lot_number, request.item_id))


@router.post(
    "/lots/{lot_number}/remove",
    response_model=LotRemovalResponse,
    summary="Remove Item From Lot",
    description="Detach an item from a lot; the lot is deleted when its last member leaves."
)
def remove_from_lot(lot_number: int, request: LotItemRequest, store: InventoryStore = Depends(get_store)):
    """
    Remove one member from a lot.

    Idempotent: repeating the request after the item has left returns
    `outcome: "already_removed"` instead of an error. `lotNumberAfter` is the
    lot number, unchanged, or null if the lot was dissolved.
    """
    removal = lot_service.remove_from_lot(store, lot_number, request.item_id)
    return LotRemovalResponse(
        lot_number=removal.lot_number,
        item_id=removal.item_id,
        outcome=removal.outcome,
        lot_number_after=removal.lot_number_after,
        lot_dissolved=removal.lot_dissolved,
    )


@router.delete(
    "/lots/{lot_number}",
    response_model=LotDeletionResponse,
    summary="Delete Lot",
    description="Dissolve a lot, releasing all of its members."
)
def delete_lot(lot_number: int, store: InventoryStore = Depends(get_store)):
    deletion = lot_service.delete_lot(store, lot_number)
    return LotDeletionResponse(
        lot_number=deletion.lot_number,
        released_item_ids=list(deletion.released_item_ids),
    )
