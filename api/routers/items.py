"""
Item API Endpoints.

Browsing, putaway, condition edits, status changes (listed / sold / returned /
discarded), batch date corrections and administrative removal.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_app_settings, get_store
from api.models import (
    BulkLocationRequest,
    BulkLocationResponse,
    ConditionRequest,
    DateRequest,
    DateUpdateFailureResponse,
    HistoryEntryResponse,
    ItemDetailResponse,
    ItemListResponse,
    ItemRemovalResponse,
    ItemResponse,
    LocationRequest,
    NoteRequest,
    SkippedItemResponse,
    UpdateDatesRequest,
    UpdateDatesResponse,
)
from config.settings import Settings
from domain.errors import NotFoundError
from domain.status import ItemStatus
from repositories.store import InventoryStore, ItemQueryFilters, ItemSort
from services import status_service

router = APIRouter()


def _item_response(store: InventoryStore, item_id: int) -> ItemResponse:
    details = store.get_item_details(item_id)
    if details is None:
        raise NotFoundError(f"Item #{item_id} not found", {"item_id": item_id})
    return ItemResponse.from_details(details)


@router.get(
    "/items",
    response_model=ItemListResponse,
    summary="List Items",
    description="Paginated item listing with optional status, location, lot and search filters."
)
def list_items(
    status: Optional[ItemStatus] = Query(None, description="Filter by status (e.g. 'STORED')"),
    location: Optional[str] = Query(None, description="Filter by exact location code"),
    lot_number: Optional[int] = Query(None, alias="lotNumber", description="Filter by lot number"),
    search: Optional[str] = Query(None, description="Item id, exact catalog id, or title substring"),
    sort: ItemSort = Query(ItemSort.DEFAULT, description="'default', 'id_asc' or 'id_desc'"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    store: InventoryStore = Depends(get_store),
):
    """
    Query items.

    The default ordering groups lots together (lot number ascending, unlotted
    items last) and shows the newest items first within each group.

    **Example usage:**
    - All stored items: `GET /api/v1/items?status=STORED`
    - Items on a shelf: `GET /api/v1/items?location=A1-03`
    - By barcode or title: `GET /api/v1/items?search=gatsby`
    - Members of lot 3: `GET /api/v1/items?lotNumber=3`
    """
    filters = ItemQueryFilters(
        status=status,
        location=location,
        lot_number=lot_number,
        search=search,
        sort=sort,
    )
    result = store.list_items(filters, page, page_size)
    return ItemListResponse(
        items=[ItemResponse.from_details(details) for details in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.get(
    "/items/{item_id}",
    response_model=ItemDetailResponse,
    summary="Get Item",
    description="Item detail with catalog record, lot number and recent status history."
)
def get_item(item_id: int, store: InventoryStore = Depends(get_store)):
    view = status_service.get_item(store, item_id)
    base = ItemResponse.from_details(view.details)
    return ItemDetailResponse(
        **base.model_dump(),
        history=[HistoryEntryResponse.from_entry(entry) for entry in view.history],
    )


@router.patch(
    "/items/{item_id}",
    response_model=ItemResponse,
    summary="Update Condition",
    description="Edit an item's condition grade and/or notes."
)
def update_condition(item_id: int, request: ConditionRequest, store: InventoryStore = Depends(get_store)):
    """
    Edit the condition fields of an item in any status.

    Send only the fields to change; `null` clears a field. Both fields are
    written in one atomic update.

    **Example request:**
    ```json
    {"conditionGrade": "FAIR", "conditionNotes": "Spine creased"}
    ```
    """
    sent = request.model_fields_set
    status_service.update_condition(
        store,
        item_id,
        condition_grade=request.condition_grade if "condition_grade" in sent else status_service.UNCHANGED,
        condition_notes=request.condition_notes if "condition_notes" in sent else status_service.UNCHANGED,
    )
    return _item_response(store, item_id)


@router.patch(
    "/items/{item_id}/location",
    response_model=ItemResponse,
    summary="Assign Location",
    description="Set an item's storage location; INTAKE items become STORED."
)
def assign_location(item_id: int, request: LocationRequest, store: InventoryStore = Depends(get_store)):
    """
    Put an item away.

    **Example request:**
    ```json
    {"location": "A1-03"}
    ```
    """
    status_service.assign_location(store, item_id, request.location)
    return _item_response(store, item_id)


@router.post(
    "/items/bulk-location",
    response_model=BulkLocationResponse,
    summary="Bulk Assign Location",
    description="Assign one location to many items in a single transaction."
)
def bulk_assign_location(request: BulkLocationRequest, store: InventoryStore = Depends(get_store)):
    """
    Assign a location to several items at once.

    Items that do not exist, or that are in a terminal status, are reported in
    `skipped`. The request fails with 404 only when none of the ids exist.
    """
    result = status_service.bulk_assign_location(store, request.item_ids, request.location)
    return BulkLocationResponse(
        updated_count=result.updated_count,
        item_ids=list(result.updated_ids),
        location=result.location,
        skipped=[SkippedItemResponse(item_id=s.item_id, reason=s.reason) for s in result.skipped],
    )


@router.post(
    "/items/update-dates",
    response_model=UpdateDatesResponse,
    summary="Batch Update Dates",
    description="Set the listed or sold date on many items; each item succeeds or fails on its own."
)
def update_dates(
    request: UpdateDatesRequest,
    store: InventoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Correct listing or sale dates in bulk.

    Each item follows the single-item rules (STORED -> LISTED -> SOLD). An item
    already in the target status only gets its date changed. Anything else fails
    for that item; a STORED item with `dateType: "sold"` fails with
    `INVALID_TRANSITION`. Per-item failures are returned in `failures` and do
    not roll back the others.

    **Example request:**
    ```json
    {"itemIds": [5, 6], "dateType": "sold", "date": "2025-03-14"}
    ```
    """
    result = status_service.update_dates(
        store, request.item_ids, request.date_type, request.on, tz=settings.tz
    )
    return UpdateDatesResponse(
        date_type=result.date_type,
        items_updated=result.items_updated,
        status_changes=result.status_changes,
        item_ids=list(result.updated_ids),
        failures=[
            DateUpdateFailureResponse(item_id=f.item_id, error=f.error, message=f.message)
            for f in result.failures
        ],
    )


@router.post(
    "/items/{item_id}/listed",
    response_model=ItemResponse,
    summary="Mark Listed",
)
def mark_listed(
    item_id: int,
    request: DateRequest,
    store: InventoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """Mark an item LISTED. An optional `date` back-dates the listing."""
    status_service.mark_listed(store, item_id, request.on, tz=settings.tz)
    return _item_response(store, item_id)


@router.post(
    "/items/{item_id}/sold",
    response_model=ItemResponse,
    summary="Mark Sold",
)
def mark_sold(
    item_id: int,
    request: DateRequest,
    store: InventoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """Mark a LISTED item SOLD. On a SOLD item only the sale date is corrected."""
    status_service.mark_sold(store, item_id, request.on, tz=settings.tz)
    return _item_response(store, item_id)


@router.post(
    "/items/{item_id}/returned",
    response_model=ItemResponse,
    summary="Mark Returned",
)
def mark_returned(item_id: int, request: NoteRequest, store: InventoryStore = Depends(get_store)):
    status_service.mark_returned(store, item_id, request.note)
    return _item_response(store, item_id)


@router.post(
    "/items/{item_id}/discarded",
    response_model=ItemResponse,
    summary="Mark Discarded",
)
def mark_discarded(item_id: int, request: NoteRequest, store: InventoryStore = Depends(get_store)):
    status_service.mark_discarded(store, item_id, request.note)
    return _item_response(store, item_id)


@router.delete(
    "/items/{item_id}",
    response_model=ItemRemovalResponse,
    summary="Remove Item",
    description="Administratively delete an item. SOLD items cannot be removed."
)
def remove_item(item_id: int, store: InventoryStore = Depends(get_store)):
    removal = status_service.remove_item(store, item_id)
    return ItemRemovalResponse(
        deleted_item_id=removal.item_id,
        lot_number=removal.lot_number,
        lot_dissolved=removal.lot_dissolved,
    )
