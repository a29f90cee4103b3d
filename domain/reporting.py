"""
Domain: calendar arithmetic for sales reporting (pure).

Financial years:
- A financial year starts on the first day of `start_month` and lasts twelve months.
- It is labelled by the calendar year in which it ends; with the default July start,
  FY2025 runs from 2024-07-01 to 2025-06-30.
- Financial-year month 1 is `start_month`, month 12 the month before it.

Year-over-year growth follows the dashboard rule:
    (current - previous) / previous * 100, or 100 when previous is 0 and current is
    not, or 0 when both are 0.
It applies to sold counts and to cost-of-goods totals alike.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Tuple

DEFAULT_FY_START_MONTH = 7


def _require_month(start_month: int) -> None:
    if not 1 <= start_month <= 12:
        raise ValueError("start_month must be in 1..12")


def financial_year_of(day: date, start_month: int = DEFAULT_FY_START_MONTH) -> int:
    _require_month(start_month)
    if start_month == 1:
        return day.year
    return day.year + 1 if day.month >= start_month else day.year


def financial_year_bounds(fy: int, start_month: int = DEFAULT_FY_START_MONTH) -> Tuple[date, date]:
    """Inclusive first and last calendar day of financial year `fy`."""

    _require_month(start_month)
    first_year = fy if start_month == 1 else fy - 1
    first = date(first_year, start_month, 1)
    last = date(first_year + 1, start_month, 1) - timedelta(days=1)
    return first, last


def financial_year_month(day: date, start_month: int = DEFAULT_FY_START_MONTH) -> int:
    """1-based month index within the financial year."""

    _require_month(start_month)
    return (day.month - start_month) % 12 + 1


def financial_year_month_names(start_month: int = DEFAULT_FY_START_MONTH) -> List[str]:
    _require_month(start_month)
    return [calendar.month_name[(start_month - 1 + offset) % 12 + 1] for offset in range(12)]


def month_bounds(day: date) -> Tuple[date, date]:
    last_day = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last_day)


def growth_percent(current: int, previous: int) -> float:
    if previous > 0:
        return round((current - previous) / previous * 100, 1)
    return 100.0 if current > 0 else 0.0


def average_minor_units(total: int, count: int) -> int:
    """Mean of integer minor-unit amounts, rounded half-up; 0 for an empty set."""

    if count <= 0:
        return 0
    return int((Decimal(total) / Decimal(count)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


__all__ = [
    "DEFAULT_FY_START_MONTH",
    "financial_year_of",
    "financial_year_bounds",
    "financial_year_month",
    "financial_year_month_names",
    "month_bounds",
    "growth_percent",
    "average_minor_units",
]
