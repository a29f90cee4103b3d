"""
Reporting API Endpoints.

Read-only projections over the item store: inventory breakdown, sales and
cost-of-goods summaries, monthly figures per financial year, a recent-sales
timeline and the aging-stock list.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_app_settings, get_store
from api.models import (
    AgingItemResponse,
    AgingStockResponse,
    DayCountResponse,
    InventorySummaryResponse,
    MonthCountResponse,
    MonthlySalesResponse,
    RecentSaleResponse,
    RecentSalesResponse,
    SalesSummaryResponse,
)
from config.settings import Settings
from repositories.store import InventoryStore
from services import summary_service

router = APIRouter()


@router.get(
    "/reports/inventory-summary",
    response_model=InventorySummaryResponse,
    summary="Inventory Summary",
    description="Item counts per status and on-hand (STORED + LISTED) counts per location."
)
def inventory_summary(store: InventoryStore = Depends(get_store)):
    summary = summary_service.inventory_summary(store)
    return InventorySummaryResponse(
        total_items=summary.total_items,
        status_breakdown=summary.status_counts,
        location_breakdown=summary.location_counts,
        last_updated=summary.generated_at,
    )


@router.get(
    "/reports/sales-summary",
    response_model=SalesSummaryResponse,
    summary="Sales Summary",
    description="Sold counts and cost of goods for all time, the financial year and the current month, with year-over-year growth."
)
def sales_summary(
    store: InventoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Sales summary for the current financial year.

    Growth is `(current - previous) / previous * 100`; it is 100 when the
    previous year had no sales but this one does, and 0 when both are zero.
    `costYoyGrowthPercent` applies the same rule to cost-of-goods totals.
    Costs and averages are in minor units.
    """
    summary = summary_service.sales_summary(
        store, tz=settings.tz, start_month=settings.financial_year_start_month
    )
    return SalesSummaryResponse(
        all_time_sold=summary.all_time_sold,
        all_time_cost_of_goods=summary.all_time_cost_of_goods,
        all_time_average_cost=summary.all_time_average_cost,
        financial_year=summary.financial_year,
        financial_year_sold=summary.financial_year_sold,
        financial_year_cost_of_goods=summary.financial_year_cost_of_goods,
        financial_year_average_cost=summary.financial_year_average_cost,
        previous_financial_year_sold=summary.previous_financial_year_sold,
        previous_financial_year_cost_of_goods=summary.previous_financial_year_cost_of_goods,
        yoy_growth_percent=summary.yoy_growth_percent,
        cost_yoy_growth_percent=summary.cost_yoy_growth_percent,
        month_name=summary.month_name,
        month_year=summary.month_year,
        current_month_sold=summary.current_month_sold,
    )


@router.get(
    "/reports/sales-monthly",
    response_model=MonthlySalesResponse,
    summary="Monthly Sales",
    description="Sold counts and cost of goods for each month of a financial year."
)
def monthly_sales(
    financial_year: Optional[int] = Query(
        None, alias="financialYear", description="Financial year (named by its ending year); defaults to the current one"
    ),
    store: InventoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    """
    Monthly sales.

    **Example usage:**
    - Current financial year: `GET /api/v1/reports/sales-monthly`
    - FY2025 (July 2024 to June 2025): `GET /api/v1/reports/sales-monthly?financialYear=2025`
    """
    result = summary_service.monthly_sales(
        store, financial_year, tz=settings.tz, start_month=settings.financial_year_start_month
    )
    return MonthlySalesResponse(
        financial_year=result.financial_year,
        months=[
            MonthCountResponse(
                month=month.month,
                month_name=month.month_name,
                total_items_sold=month.total_items_sold,
                cost_of_goods=month.cost_of_goods,
                average_cost=month.average_cost,
            )
            for month in result.months
        ],
        total_items_sold=result.total_items_sold,
        total_cost_of_goods=result.total_cost_of_goods,
    )


@router.get(
    "/reports/sales-recent",
    response_model=RecentSalesResponse,
    summary="Recent Sales",
    description="Sales over the last N days with a per-day timeline."
)
def recent_sales(
    days: int = Query(30, ge=1, le=365, description="Window size in days, today included"),
    limit: int = Query(50, ge=1, le=500, description="Maximum number of sales listed"),
    store: InventoryStore = Depends(get_store),
    settings: Settings = Depends(get_app_settings),
):
    result = summary_service.recent_sales(store, days, limit, tz=settings.tz)
    return RecentSalesResponse(
        days=result.days,
        recent_sales=[
            RecentSaleResponse(
                item_id=sale.item_id,
                catalog_id=sale.catalog_id,
                title=sale.title,
                creator=sale.creator,
                sold_at=sale.sold_at,
            )
            for sale in result.sales
        ],
        timeline=[DayCountResponse(day=entry.day, count=entry.count) for entry in result.timeline],
        total_recent_count=result.total_recent_count,
    )


@router.get(
    "/reports/aging-stock",
    response_model=AgingStockResponse,
    summary="Aging Stock",
    description="STORED items intaken more than N days ago, with average age and per-location counts."
)
def aging_stock(
    days: int = Query(30, ge=0, le=3650, description="Minimum age in days"),
    store: InventoryStore = Depends(get_store),
):
    """
    Stock that has been sitting on the shelf without being listed.

    **Example usage:**
    - Default 30 days: `GET /api/v1/reports/aging-stock`
    - Older than 90 days: `GET /api/v1/reports/aging-stock?days=90`
    """
    result = summary_service.aging_stock(store, days)
    return AgingStockResponse(
        days=result.days,
        cutoff=result.cutoff,
        total_items=result.total_items,
        average_age_days=result.average_age_days,
        location_breakdown=result.location_counts,
        items=[
            AgingItemResponse(
                item_id=item.item_id,
                catalog_id=item.catalog_id,
                title=item.title,
                location=item.location,
                intake_at=item.intake_at,
                age_days=item.age_days,
            )
            for item in result.items
        ],
    )
