"""
Domain: Cost of Goods (COG) allocation ledger.

A COG application spreads a bulk purchase amount evenly over every item intaken
within an inclusive calendar-date window:

    average_per_item = round_half_up(total_spent / count)     (minor units)

and writes that average onto each selected item's cost. Applications overwrite
(last write wins); they are not additive. Each application appends a CogRecord.

Deleting a record resets the affected items' cost to zero. The affected set is
either the id snapshot stored on the record (default) or a re-query of the same
window (compatibility mode, which also zeroes later intakes inside the window).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from .errors import EmptySelectionError, InvalidRangeError
from .time import end_of_day, require_utc_timestamp, start_of_day


class CogReversalMode(str, Enum):
    SNAPSHOT = "snapshot"
    WINDOW = "window"


@dataclass(frozen=True, slots=True)
class CogWindow:
    """Inclusive calendar-date window over item intake timestamps."""

    start_date: date
    end_date: date

    def __post_init__(self) -> None:
        if self.start_date > self.end_date:
            raise InvalidRangeError(
                "Start date cannot be after end date",
                {"start_date": self.start_date.isoformat(), "end_date": self.end_date.isoformat()},
            )

    def bounds(self, tz: ZoneInfo) -> Tuple[datetime, datetime]:
        """UTC instants [start of start_date, end of end_date] in `tz`."""

        return start_of_day(self.start_date, tz), end_of_day(self.end_date, tz)

    def contains(self, instant: datetime, tz: ZoneInfo) -> bool:
        require_utc_timestamp("instant", instant)
        lower, upper = self.bounds(tz)
        return lower <= instant <= upper


def require_positive_spend(total_spent: int) -> None:
    if isinstance(total_spent, bool) or not isinstance(total_spent, int):
        raise InvalidRangeError("Total spent must be an integer amount of minor units")
    if total_spent <= 0:
        raise InvalidRangeError("Total spent must be positive", {"total_spent": total_spent})


def average_per_item(total_spent: int, count: int) -> int:
    """Per-item cost in minor units, rounded half-up."""

    if count <= 0:
        raise EmptySelectionError("No items found in the specified date range")
    return int((Decimal(total_spent) / Decimal(count)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class CogRecord:
    """
    Append-only ledger entry for one COG application.

    The window is stored both as calendar dates (for display) and as the UTC
    instants used to select items, so a window-mode reversal re-runs the exact
    same query regardless of later timezone configuration.
    """

    record_id: int
    recorded_at: datetime
    start_date: date
    end_date: date
    window_start_at: datetime
    window_end_at: datetime
    total_spent: int
    items_updated: int
    average_per_item: int
    item_ids: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        require_utc_timestamp("recorded_at", self.recorded_at)
        require_utc_timestamp("window_start_at", self.window_start_at)
        require_utc_timestamp("window_end_at", self.window_end_at)

    @property
    def window(self) -> CogWindow:
        return CogWindow(self.start_date, self.end_date)

    @property
    def exact_average(self) -> Decimal:
        """Unrounded average to two decimal places of a minor unit, for display."""

        if self.items_updated == 0:
            return Decimal("0.00")
        return (Decimal(self.total_spent) / Decimal(self.items_updated)).quantize(
            Decimal("0.01"), rounding=ROUND_HALF_UP
        )


@dataclass(frozen=True, slots=True)
class CogReversal:
    record_id: int
    items_reset: int
    item_ids: Tuple[int, ...]
    mode: CogReversalMode


def select_reversal_targets(
    record: CogRecord,
    mode: CogReversalMode,
    existing_ids: Iterable[int],
    window_ids: Optional[Iterable[int]] = None,
) -> List[int]:
    """
    Ids whose cost a record deletion resets to zero.

    Snapshot mode uses the ids stored at apply time that still exist; window mode
    uses `window_ids`, the current result of re-querying the record's window.
    """

    if mode is CogReversalMode.WINDOW:
        return sorted(set(window_ids or ()))
    existing = set(existing_ids)
    return sorted(item_id for item_id in set(record.item_ids) if item_id in existing)


__all__ = [
    "CogReversalMode",
    "CogWindow",
    "require_positive_spend",
    "average_per_item",
    "CogRecord",
    "CogReversal",
    "select_reversal_targets",
]
