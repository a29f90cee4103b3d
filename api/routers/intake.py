"""
Intake API Endpoints.

Endpoints for receiving new physical items and checking a barcode for earlier
copies before intake.
"""

from fastapi import APIRouter, Depends

from api.dependencies import get_store
from api.models import DuplicateResponse, IntakeRequest, IntakeResponse, ItemResponse
from domain.catalog import CatalogFields, metadata_from_dict
from domain.errors import NotFoundError
from repositories.store import InventoryStore, ItemDraft
from services import intake_service

router = APIRouter()


@router.post(
    "/intake",
    response_model=IntakeResponse,
    status_code=201,
    summary="Intake Item",
    description="Create a new item in INTAKE status, creating or reusing its catalog record."
)
def intake_item(request: IntakeRequest, store: InventoryStore = Depends(get_store)):
    """
    Intake one physical item.

    The catalog record is looked up by `catalogId`; if none exists one is created
    from the supplied fields. Omitting `catalogId` makes a manual entry with a
    generated id (`title` is then required). The response carries a duplicate
    report listing earlier items with the same identifier; duplicates never
    block intake.

    **Example request:**
    ```json
    {
        "catalogId": "1234567890123",
        "format": "BOOK",
        "title": "The Great Gatsby",
        "conditionGrade": "GOOD",
        "costMinorUnits": 500
    }
    ```
    """
    fields = CatalogFields(
        format=request.format,
        title=request.title,
        creator=request.creator,
        publisher=request.publisher,
        year=request.year,
        sub_format=request.sub_format,
        image_url=request.image_url,
        categories=tuple(request.categories),
    )
    metadata = None
    if request.format_metadata is not None:
        metadata = metadata_from_dict(request.format_metadata.model_dump(mode="json"))
    draft = ItemDraft(
        condition_grade=request.condition_grade,
        condition_notes=request.condition_notes,
        cost=request.cost_minor_units,
        format_metadata=metadata,
    )

    result = intake_service.intake_item(
        store,
        intake_service.IntakeRequest(catalog_id=request.catalog_id, fields=fields, draft=draft),
    )

    details = store.get_item_details(result.item.item_id)
    if details is None:
        raise NotFoundError(f"Item #{result.item.item_id} not found", {"item_id": result.item.item_id})

    return IntakeResponse(
        item_id=result.item.item_id,
        item=ItemResponse.from_details(details),
        duplicate=DuplicateResponse.from_report(result.duplicate),
        new_catalog_record=result.new_catalog_record,
    )


@router.get(
    "/intake/duplicates/{catalog_id}",
    response_model=DuplicateResponse,
    summary="Check Duplicates",
    description="List existing items that share a catalog identifier."
)
def check_duplicates(catalog_id: str, store: InventoryStore = Depends(get_store)):
    """
    Duplicate sentinel for a barcode.

    Advisory only: if storage is unavailable the response has `available: false`
    rather than an error.

    **Example usage:**
    - `GET /api/v1/intake/duplicates/9780140283334`
    """
    return DuplicateResponse.from_report(intake_service.check_duplicates(store, catalog_id))
