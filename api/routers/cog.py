"""
Cost of Goods API Endpoints.

Apply a bulk purchase spend across the items intaken in a date window, list the
ledger, and reverse an application.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_app_settings, get_store
from api.models import ApplyCogRequest, CogDeleteResponse, CogListResponse, CogRecordResponse
from config.settings import Settings
from domain.cog import CogReversalMode
from repositories.store import InventoryStore
from services import cog_service

router = APIRouter()


@router.post(
    "/cog/apply",
    response_model=CogRecordResponse,
    status_code=201,
    summary="Apply Cost of Goods",
    description="Spread a total spend evenly over the items intaken in a date window."
)
def apply_cog(
    request: ApplyCogRequest,
    store: InventoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Apply a COG record.

    Dates are calendar days in the business timezone; the window includes both
    end dates. Every item intaken inside it gets
    `cost = round_half_up(totalSpent / itemCount)`, overwriting any earlier cost.

    **Example request:**
    ```json
    {"startDate": "2024-01-01", "endDate": "2024-01-31", "totalSpent": 30000}
    ```
    With three items in January each item's cost becomes 10000.
    """
    record = cog_service.apply_cog(
        store, request.start_date, request.end_date, request.total_spent, tz=settings.tz
    )
    return CogRecordResponse.from_record(record)


@router.get(
    "/cog/records",
    response_model=CogListResponse,
    summary="List COG Records",
    description="COG ledger entries, most recent first."
)
def list_cog_records(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    store: InventoryStore = Depends(get_store),
):
    result = cog_service.list_cog_records(store, page, page_size)
    return CogListResponse(
        records=[CogRecordResponse.from_record(record) for record in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        pages=result.pages,
    )


@router.get(
    "/cog/records/{record_id}",
    response_model=CogRecordResponse,
    summary="Get COG Record",
)
def get_cog_record(record_id: int, store: InventoryStore = Depends(get_store)):
    return CogRecordResponse.from_record(cog_service.get_cog_record(store, record_id))


@router.delete(
    "/cog/records/{record_id}",
    response_model=CogDeleteResponse,
    summary="Delete COG Record",
    description="Reverse a COG application: affected items' cost is reset to 0."
)
def delete_cog_record(
    record_id: int,
    mode: Optional[CogReversalMode] = Query(None, description="'snapshot' or 'window'; defaults to the configured mode"),
    store: InventoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Delete a COG record.

    `snapshot` resets the items recorded when the spend was applied. `window`
    re-selects the items intaken in the record's window, including items added
    after the application.
    """
    reversal = cog_service.delete_cog_record(store, record_id, mode=mode or settings.cog_reversal_mode)
    return CogDeleteResponse(
        record_id=reversal.record_id,
        items_reset=reversal.items_reset,
        mode=reversal.mode,
    )
