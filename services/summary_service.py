"""
Query/summary service.

Read-only projections recomputed on demand by scanning the item store. Calendar
questions (which day, month or financial year a sale belongs to) are answered in
the business timezone.

Cost of goods is the sum of `cost` over the items sold in a period; averages are
per sold item in minor units, rounded half-up.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Tuple
from zoneinfo import ZoneInfo

from domain.errors import InvalidInputError
from domain.item import ItemDetails
from domain.reporting import (
    DEFAULT_FY_START_MONTH,
    average_minor_units,
    financial_year_bounds,
    financial_year_month,
    financial_year_month_names,
    financial_year_of,
    growth_percent,
    month_bounds,
)
from domain.status import ItemStatus
from domain.time import local_date, utc_now
from repositories.store import InventoryStore

_UTC = ZoneInfo("UTC")

# Statuses counted as physically on a shelf for the per-location breakdown.
_ON_HAND = (ItemStatus.STORED, ItemStatus.LISTED)

UNLOCATED = "UNLOCATED"


@dataclass(frozen=True, slots=True)
class InventorySummary:
    total_items: int
    status_counts: Dict[str, int]
    location_counts: Dict[str, int]
    generated_at: datetime


@dataclass(frozen=True, slots=True)
class SalesSummary:
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


@dataclass(frozen=True, slots=True)
class MonthCount:
    month: int
    month_name: str
    total_items_sold: int
    cost_of_goods: int = 0

    @property
    def average_cost(self) -> int:
        return average_minor_units(self.cost_of_goods, self.total_items_sold)


@dataclass(frozen=True, slots=True)
class MonthlySales:
    financial_year: int
    months: Tuple[MonthCount, ...]

    @property
    def total_items_sold(self) -> int:
        return sum(month.total_items_sold for month in self.months)

    @property
    def total_cost_of_goods(self) -> int:
        return sum(month.cost_of_goods for month in self.months)


@dataclass(frozen=True, slots=True)
class DayCount:
    day: date
    count: int


@dataclass(frozen=True, slots=True)
class RecentSale:
    item_id: int
    catalog_id: str
    title: str
    creator: Optional[str]
    sold_at: datetime


@dataclass(frozen=True, slots=True)
class RecentSales:
    days: int
    sales: Tuple[RecentSale, ...]
    timeline: Tuple[DayCount, ...]
    total_recent_count: int


@dataclass(frozen=True, slots=True)
class AgingItem:
    item_id: int
    catalog_id: str
    title: str
    location: Optional[str]
    intake_at: datetime
    age_days: int


@dataclass(frozen=True, slots=True)
class AgingStock:
    """STORED items intaken before `cutoff`, oldest first."""

    days: int
    cutoff: datetime
    items: Tuple[AgingItem, ...]
    average_age_days: float
    location_counts: Dict[str, int]

    @property
    def total_items(self) -> int:
        return len(self.items)


@dataclass(frozen=True, slots=True)
class _Sale:
    day: date
    sold_at: datetime
    row: ItemDetails

    @property
    def cost(self) -> int:
        return self.row.item.cost


def _sales(rows: List[ItemDetails], tz: ZoneInfo) -> List[_Sale]:
    """SOLD rows paired with their sale instant and local sale date."""

    sales: List[_Sale] = []
    for row in rows:
        sold_at = row.item.sold_at
        if row.item.status is ItemStatus.SOLD and sold_at is not None:
            sales.append(_Sale(day=local_date(sold_at, tz), sold_at=sold_at, row=row))
    return sales


def _between(sales: List[_Sale], first: date, last: date) -> List[_Sale]:
    return [sale for sale in sales if first <= sale.day <= last]


def _cost(sales: List[_Sale]) -> int:
    return sum(sale.cost for sale in sales)


def inventory_summary(store: InventoryStore, *, now: Optional[datetime] = None) -> InventorySummary:
    """Status breakdown (every status present, zero-filled) and on-hand counts per location."""

    rows = store.all_items()
    status_counts = {status.value: 0 for status in ItemStatus}
    location_counts: Dict[str, int] = {}
    for row in rows:
        status_counts[row.item.status.value] += 1
        if row.item.status in _ON_HAND and row.item.location:
            location_counts[row.item.location] = location_counts.get(row.item.location, 0) + 1

    return InventorySummary(
        total_items=len(rows),
        status_counts=status_counts,
        location_counts=dict(sorted(location_counts.items())),
        generated_at=now or utc_now(),
    )


def sales_summary(
    store: InventoryStore,
    *,
    tz: ZoneInfo = _UTC,
    start_month: int = DEFAULT_FY_START_MONTH,
    now: Optional[datetime] = None,
) -> SalesSummary:
    """
    Sold counts and cost of goods: all time, this financial year, the previous
    one, and the current calendar month.
    """

    today = local_date(now or utc_now(), tz)
    sold = _sales(store.all_items(), tz)

    fy = financial_year_of(today, start_month)
    fy_sales = _between(sold, *financial_year_bounds(fy, start_month))
    previous_sales = _between(sold, *financial_year_bounds(fy - 1, start_month))
    month_sales = _between(sold, *month_bounds(today))

    all_time_cost = _cost(sold)
    fy_cost = _cost(fy_sales)
    previous_cost = _cost(previous_sales)

    return SalesSummary(
        all_time_sold=len(sold),
        all_time_cost_of_goods=all_time_cost,
        all_time_average_cost=average_minor_units(all_time_cost, len(sold)),
        financial_year=fy,
        financial_year_sold=len(fy_sales),
        financial_year_cost_of_goods=fy_cost,
        financial_year_average_cost=average_minor_units(fy_cost, len(fy_sales)),
        previous_financial_year_sold=len(previous_sales),
        previous_financial_year_cost_of_goods=previous_cost,
        yoy_growth_percent=growth_percent(len(fy_sales), len(previous_sales)),
        cost_yoy_growth_percent=growth_percent(fy_cost, previous_cost),
        month_name=calendar.month_name[today.month],
        month_year=today.year,
        current_month_sold=len(month_sales),
    )


def monthly_sales(
    store: InventoryStore,
    financial_year: Optional[int] = None,
    *,
    tz: ZoneInfo = _UTC,
    start_month: int = DEFAULT_FY_START_MONTH,
    now: Optional[datetime] = None,
) -> MonthlySales:
    """Sold counts and cost of goods per month of a financial year, in financial-year month order."""

    if financial_year is None:
        financial_year = financial_year_of(local_date(now or utc_now(), tz), start_month)

    counts = [0] * 12
    costs = [0] * 12
    first, last = financial_year_bounds(financial_year, start_month)
    for sale in _between(_sales(store.all_items(), tz), first, last):
        index = financial_year_month(sale.day, start_month) - 1
        counts[index] += 1
        costs[index] += sale.cost

    names = financial_year_month_names(start_month)
    return MonthlySales(
        financial_year=financial_year,
        months=tuple(
            MonthCount(
                month=index + 1,
                month_name=names[index],
                total_items_sold=counts[index],
                cost_of_goods=costs[index],
            )
            for index in range(12)
        ),
    )


def recent_sales(
    store: InventoryStore,
    days: int = 30,
    limit: int = 50,
    *,
    tz: ZoneInfo = _UTC,
    now: Optional[datetime] = None,
) -> RecentSales:
    """
    Sales over the last `days` calendar days (today included).

    The timeline has one entry per day, oldest first, including days with no
    sales; `sales` holds the `limit` most recent sold items.
    """

    if days < 1:
        raise InvalidInputError("days must be >= 1", {"days": days})
    if limit < 1:
        raise InvalidInputError("limit must be >= 1", {"limit": limit})

    today = local_date(now or utc_now(), tz)
    first = today - timedelta(days=days - 1)
    in_window = _between(_sales(store.all_items(), tz), first, today)

    per_day = {first + timedelta(days=offset): 0 for offset in range(days)}
    for sale in in_window:
        per_day[sale.day] += 1

    in_window.sort(key=lambda sale: (sale.sold_at, sale.row.item.item_id), reverse=True)
    sales = tuple(
        RecentSale(
            item_id=sale.row.item.item_id,
            catalog_id=sale.row.item.catalog_id,
            title=sale.row.title,
            creator=sale.row.catalog.creator if sale.row.catalog is not None else None,
            sold_at=sale.sold_at,
        )
        for sale in in_window[:limit]
    )
    return RecentSales(
        days=days,
        sales=sales,
        timeline=tuple(DayCount(day=day, count=count) for day, count in per_day.items()),
        total_recent_count=len(in_window),
    )


def aging_stock(store: InventoryStore, days: int = 30, *, now: Optional[datetime] = None) -> AgingStock:
    """
    STORED items that were intaken more than `days` days ago.

    Age is counted in whole days since intake. Items without a location are
    counted under UNLOCATED.
    """

    if days < 0:
        raise InvalidInputError("days must be >= 0", {"days": days})

    now = now or utc_now()
    cutoff = now - timedelta(days=days)
    rows = [
        row
        for row in store.all_items()
        if row.item.status is ItemStatus.STORED and row.item.intake_at < cutoff
    ]
    rows.sort(key=lambda row: (row.item.intake_at, row.item.item_id))

    items = tuple(
        AgingItem(
            item_id=row.item.item_id,
            catalog_id=row.item.catalog_id,
            title=row.title,
            location=row.item.location,
            intake_at=row.item.intake_at,
            age_days=(now - row.item.intake_at).days,
        )
        for row in rows
    )

    location_counts: Dict[str, int] = {}
    for item in items:
        key = item.location or UNLOCATED
        location_counts[key] = location_counts.get(key, 0) + 1

    average_age = round(sum(item.age_days for item in items) / len(items), 1) if items else 0.0
    return AgingStock(
        days=days,
        cutoff=cutoff,
        items=items,
        average_age_days=average_age,
        location_counts=dict(sorted(location_counts.items())),
    )


__all__ = [
    "UNLOCATED",
    "InventorySummary",
    "SalesSummary",
    "MonthCount",
    "MonthlySales",
    "DayCount",
    "RecentSale",
    "RecentSales",
    "AgingItem",
    "AgingStock",
    "inventory_summary",
    "sales_summary",
    "monthly_sales",
    "recent_sales",
    "aging_stock",
]
