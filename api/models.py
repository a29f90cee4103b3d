"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses. JSON uses
camelCase names; all money is integer minor units; dates are ISO-8601.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from domain.catalog import CatalogRecord, ProductFormat, metadata_to_dict
from domain.cog import CogRecord, CogReversalMode
from domain.duplicate import DuplicateReport
from domain.item import ItemDetails
from domain.lot import LotSummary, RemovalOutcome
from domain.status import HistoryChannel, ItemStatus, StatusHistoryEntry
from services.status_service import DateType


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Item Models
# ============================================================================

class CatalogResponse(ApiModel):
    catalog_id: str
    format: ProductFormat
    title: str
    creator: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    sub_format: Optional[str] = None
    image_url: Optional[str] = None
    categories: List[str] = []

    @classmethod
    def from_record(cls, record: CatalogRecord) -> "CatalogResponse":
        return cls(
            catalog_id=record.catalog_id,
            format=record.format,
            title=record.title,
            creator=record.creator,
            publisher=record.publisher,
            year=record.year,
            sub_format=record.sub_format,
            image_url=record.image_url,
            categories=list(record.categories),
        )


class ItemResponse(ApiModel):
    """Single item with its catalog record and derived lot number / SKU."""
    item_id: int
    catalog_id: str
    title: str
    status: ItemStatus
    location: Optional[str] = None
    sku: Optional[str] = None
    lot_number: Optional[int] = None
    cost: int
    condition_grade: Optional[str] = None
    condition_notes: Optional[str] = None
    intake_at: datetime
    listed_at: Optional[datetime] = None
    sold_at: Optional[datetime] = None
    format_metadata: Optional[Dict[str, Any]] = None
    catalog: Optional[CatalogResponse] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "itemId": 42,
                "catalogId": "9780140283334",
                "title": "The Great Gatsby",
                "status": "STORED",
                "location": "A1-03",
                "sku": "A1-03-42",
                "lotNumber": None,
                "cost": 250,
                "conditionGrade": "GOOD",
                "intakeAt": "2025-01-01T12:00:00Z",
            }
        }
    )

    @classmethod
    def from_details(cls, details: ItemDetails) -> "ItemResponse":
        item = details.item
        return cls(
            item_id=item.item_id,
            catalog_id=item.catalog_id,
            title=details.title,
            status=item.status,
            location=item.location,
            sku=item.sku,
            lot_number=details.lot_number,
            cost=item.cost,
            condition_grade=item.condition_grade,
            condition_notes=item.condition_notes,
            intake_at=item.intake_at,
            listed_at=item.listed_at,
            sold_at=item.sold_at,
            format_metadata=metadata_to_dict(item.format_metadata),
            catalog=CatalogResponse.from_record(details.catalog) if details.catalog is not None else None,
        )


class HistoryEntryResponse(ApiModel):
    from_status: Optional[ItemStatus] = None
    to_status: ItemStatus
    channel: HistoryChannel
    note: Optional[str] = None
    changed_at: datetime

    @classmethod
    def from_entry(cls, entry: StatusHistoryEntry) -> "HistoryEntryResponse":
        return cls(
            from_status=entry.from_status,
            to_status=entry.to_status,
            channel=entry.channel,
            note=entry.note,
            changed_at=entry.changed_at,
        )


class ItemDetailResponse(ItemResponse):
    history: List[HistoryEntryResponse] = []


class ItemListResponse(ApiModel):
    items: List[ItemResponse]
    total: int
    page: int
    page_size: int
    pages: int


class LocationRequest(ApiModel):
    location: str = Field(..., description="Storage location code (max 20 characters)")


class BulkLocationRequest(ApiModel):
    item_ids: List[int]
    location: str

    model_config = ConfigDict(
        json_schema_extra={"example": {"itemIds": [12, 13, 14], "location": "B2-01"}}
    )


class SkippedItemResponse(ApiModel):
    item_id: int
    reason: str


class BulkLocationResponse(ApiModel):
    updated_count: int
    item_ids: List[int]
    location: str
    skipped: List[SkippedItemResponse] = []


class DateRequest(ApiModel):
    on: Optional[date] = Field(None, alias="date", description="Calendar date; defaults to now")


class NoteRequest(ApiModel):
    note: Optional[str] = None


class ConditionRequest(ApiModel):
    """Fields left out of the body keep their stored value; null clears one."""
    condition_grade: Optional[str] = Field(None, description="Condition grade (max 10 characters)")
    condition_notes: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={"example": {"conditionGrade": "FAIR", "conditionNotes": "Spine creased"}}
    )


class UpdateDatesRequest(ApiModel):
    item_ids: List[int]
    date_type: DateType
    on: date = Field(..., alias="date")

    model_config = ConfigDict(
        json_schema_extra={"example": {"itemIds": [5, 6], "dateType": "sold", "date": "2025-03-14"}}
    )


class DateUpdateFailureResponse(ApiModel):
    item_id: int
    error: str
    message: str


class UpdateDatesResponse(ApiModel):
    date_type: DateType
    items_updated: int
    status_changes: int
    item_ids: List[int]
    failures: List[DateUpdateFailureResponse] = []


class ItemRemovalResponse(ApiModel):
    deleted_item_id: int
    lot_number: Optional[int] = None
    lot_dissolved: bool = False


# ============================================================================
# Intake Models
# ============================================================================

class FormatMetadataRequest(ApiModel):
    """Tagged per-format metadata; `format` selects the variant."""
    format: ProductFormat
    categories: List[str] = []
    genre: Optional[str] = None
    rating: Optional[str] = None
    runtime_minutes: Optional[int] = None
    track_count: Optional[int] = None


class IntakeRequest(ApiModel):
    catalog_id: Optional[str] = Field(None, description="ISBN / UPC / barcode; omit for manual entry")
    format: ProductFormat = ProductFormat.BOOK
    title: Optional[str] = None
    creator: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    sub_format: Optional[str] = None
    image_url: Optional[str] = None
    categories: List[str] = []
    condition_grade: Optional[str] = None
    condition_notes: Optional[str] = None
    cost_minor_units: int = 0
    format_metadata: Optional[FormatMetadataRequest] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "catalogId": "1234567890123",
                "format": "BOOK",
                "title": "The Great Gatsby",
                "creator": "F. Scott Fitzgerald",
                "conditionGrade": "GOOD",
                "costMinorUnits": 500,
            }
        }
    )


class DuplicateItemResponse(ApiModel):
    item_id: int
    status: ItemStatus
    intake_at: datetime
    location: Optional[str] = None


class DuplicateResponse(ApiModel):
    catalog_id: Optional[str] = None
    is_duplicate: bool
    available: bool
    message: Optional[str] = None
    existing_items: List[DuplicateItemResponse] = []

    @classmethod
    def from_report(cls, report: DuplicateReport) -> "DuplicateResponse":
        return cls(
            catalog_id=report.catalog_id,
            is_duplicate=report.is_duplicate,
            available=report.available,
            message=report.message,
            existing_items=[
                DuplicateItemResponse(
                    item_id=match.item_id,
                    status=match.status,
                    intake_at=match.intake_at,
                    location=match.location,
                )
                for match in report.matches
            ],
        )


class IntakeResponse(ApiModel):
    item_id: int
    item: ItemResponse
    duplicate: DuplicateResponse
    new_catalog_record: bool


# ============================================================================
# Lot Models
# ============================================================================

class CreateLotRequest(ApiModel):
    item_ids: List[int]

    model_config = ConfigDict(json_schema_extra={"example": {"itemIds": [7, 3, 10]}})


class LotItemRequest(ApiModel):
    item_id: int


class LotResponse(ApiModel):
    lot_number: int
    item_ids: List[int]
    item_count: int
    created_at: datetime


class LotDetailResponse(ApiModel):
    lot_number: int
    item_count: int
    created_at: datetime
    items: List[ItemResponse]


class LotSummaryResponse(ApiModel):
    lot_number: int
    item_count: int
    sample_titles: List[str]
    created_at: datetime

    @classmethod
    def from_summary(cls, summary: LotSummary) -> "LotSummaryResponse":
        return cls(
            lot_number=summary.lot_number,
            item_count=summary.item_count,
            sample_titles=list(summary.sample_titles),
            created_at=summary.created_at,
        )


class LotListResponse(ApiModel):
    lots: List[LotSummaryResponse]
    total: int
    page: int
    page_size: int
    pages: int


class LotRemovalResponse(ApiModel):
    lot_number: int
    item_id: int
    outcome: RemovalOutcome
    lot_number_after: Optional[int] = None
    lot_dissolved: bool


class LotDeletionResponse(ApiModel):
    lot_number: int
    released_item_ids: List[int]


# ============================================================================
# COG Models
# ============================================================================

class ApplyCogRequest(ApiModel):
    start_date: date
    end_date: date
    total_spent: int = Field(..., description="Total spend in minor units (e.g. cents)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"startDate": "2024-01-01", "endDate": "2024-01-31", "totalSpent": 30000}
        }
    )


class CogRecordResponse(ApiModel):
    record_id: int
    recorded_at: datetime
    start_date: date
    end_date: date
    total_spent: int
    items_updated: int
    average_per_item: int
    exact_average: Decimal

    @classmethod
    def from_record(cls, record: CogRecord) -> "CogRecordResponse":
        return cls(
            record_id=record.record_id,
            recorded_at=record.recorded_at,
            start_date=record.start_date,
            end_date=record.end_date,
            total_spent=record.total_spent,
            items_updated=record.items_updated,
            average_per_item=record.average_per_item,
            exact_average=record.exact_average,
        )


class CogListResponse(ApiModel):
    records: List[CogRecordResponse]
    total: int
    page: int
    page_size: int
    pages: int


class CogDeleteResponse(ApiModel):
    record_id: int
    items_reset: int
    mode: CogReversalMode


# ============================================================================
# Report Models
# ============================================================================

class InventorySummaryResponse(ApiModel):
    total_items: int
    status_breakdown: Dict[str, int]
    location_breakdown: Dict[str, int]
    last_updated: datetime


class SalesSummaryResponse(ApiModel):
    all_time_sold: int
    all_time_cost_of_goods: int
    all_time_average_cost: int
    financial_year: int
    financial_year_sold: int
    financial_year_cost_of_goods: int
    financial_year_average_cost: int
    previous_financial_year_sold: int
    previous_financial_year_cost_of_goods: int
    yoy_growth_percent: float
    cost_yoy_growth_percent: float
    month_name: str
    month_year: int
    current_month_sold: int


class MonthCountResponse(ApiModel):
    month: int
    month_name: str
    total_items_sold: int
    cost_of_goods: int
    average_cost: int


class MonthlySalesResponse(ApiModel):
    financial_year: int
    months: List[MonthCountResponse]
    total_items_sold: int
    total_cost_of_goods: int


class RecentSaleResponse(ApiModel):
    item_id: int
    catalog_id: str
    title: str
    creator: Optional[str] = None
    sold_at: datetime


class DayCountResponse(ApiModel):
    day: date = Field(..., alias="date")
    count: int


class RecentSalesResponse(ApiModel):
    days: int
    recent_sales: List[RecentSaleResponse]
    timeline: List[DayCountResponse]
    total_recent_count: int


class AgingItemResponse(ApiModel):
    item_id: int
    catalog_id: str
    title: str
    location: Optional[str] = None
    intake_at: datetime
    age_days: int


class AgingStockResponse(ApiModel):
    days: int
    cutoff: datetime
    total_items: int
    average_age_days: float
    location_breakdown: Dict[str, int]
    items: List[AgingItemResponse]


# ============================================================================
# Error Model
# ============================================================================

class ErrorResponse(ApiModel):
    error: str
    detail: str
    status_code: int
    details: Dict[str, Any] = {}
