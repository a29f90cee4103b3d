"""
Tests for `domain/cog.py` and `services/cog_service.py`.

Covers contract rules:
- The window is inclusive of both calendar dates, evaluated in the business timezone.
- average_per_item = round_half_up(total_spent / count); applications overwrite cost.
- start_date after end_date and non-positive spend raise INVALID_RANGE.
- An empty window raises EMPTY_SELECTION and writes no record.
- Deleting a record resets affected costs to 0: snapshot mode uses the ids recorded
  at apply time, window mode re-queries the window.
- Allocated costs sum to the spend within N - 1 minor units.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

import pytest

from domain.cog import CogReversalMode, CogWindow, average_per_item
from domain.errors import EmptySelectionError, InvalidRangeError, NotFoundError
from services import cog_service

JAN_5 = datetime(2024, 1, 5, 10, 0, tzinfo=timezone.utc)
JAN_20 = datetime(2024, 1, 20, 10, 0, tzinfo=timezone.utc)
JAN_31_LATE = datetime(2024, 1, 31, 23, 59, 59, tzinfo=timezone.utc)
FEB_1 = datetime(2024, 2, 1, 0, 0, tzinfo=timezone.utc)


def _january(store, make_item) -> list:
    return [make_item(at=at) for at in (JAN_5, JAN_20, JAN_31_LATE)]


def test_average_rounds_half_up() -> None:
    assert average_per_item(30000, 3) == 10000
    assert average_per_item(1000, 3) == 333
    assert average_per_item(5, 2) == 3
    assert average_per_item(1, 2) == 1
    with pytest.raises(EmptySelectionError):
        average_per_item(100, 0)


def test_window_rejects_reversed_dates() -> None:
    with pytest.raises(InvalidRangeError) as exc:
        CogWindow(date(2024, 2, 1), date(2024, 1, 1))
    assert exc.value.code == "INVALID_RANGE"


def test_window_bounds_follow_timezone() -> None:
    window = CogWindow(date(2024, 1, 1), date(2024, 1, 31))
    start, end = window.bounds(ZoneInfo("Australia/Sydney"))
    assert start == datetime(2023, 12, 31, 13, 0, tzinfo=timezone.utc)
    assert end.date() == date(2024, 1, 31)
    assert window.contains(datetime(2024, 1, 31, 12, 59, tzinfo=timezone.utc), ZoneInfo("Australia/Sydney"))
    assert not window.contains(datetime(2024, 1, 31, 13, 0, tzinfo=timezone.utc), ZoneInfo("Australia/Sydney"))


def test_apply_spreads_spend_over_window(store, make_item, now) -> None:
    """30000 over three January items sets each cost to 10000; February items are untouched."""

    january = _january(store, make_item)
    february = make_item(at=FEB_1, cost=777)

    record = cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 31), 30000, now=now)

    assert record.items_updated == 3
    assert record.average_per_item == 10000
    assert record.exact_average == Decimal("10000.00")
    assert record.item_ids == tuple(january)
    assert [store.get_item(item_id).cost for item_id in january] == [10000, 10000, 10000]
    assert store.get_item(february).cost == 777


def test_apply_overwrites_previous_cost(store, make_item, now) -> None:
    january = _january(store, make_item)
    cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 31), 30000, now=now)
    cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 10), 500, now=now)

    assert store.get_item(january[0]).cost == 500
    assert store.get_item(january[1]).cost == 10000


def test_apply_rejects_bad_input_without_writing(store, make_item, now) -> None:
    _january(store, make_item)

    with pytest.raises(InvalidRangeError):
        cog_service.apply_cog(store, date(2024, 2, 1), date(2024, 1, 1), 100, now=now)
    with pytest.raises(InvalidRangeError):
        cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 31), 0, now=now)
    with pytest.raises(EmptySelectionError):
        cog_service.apply_cog(store, date(2023, 1, 1), date(2023, 1, 31), 100, now=now)

    assert cog_service.list_cog_records(store).total == 0


def test_delete_snapshot_resets_only_recorded_items(store, make_item, now) -> None:
    january = _january(store, make_item)
    record = cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 31), 30000, now=now)
    # intaken into the same window after the application
    late = make_item(at=JAN_20, cost=400)

    reversal = cog_service.delete_cog_record(store, record.record_id)

    assert reversal.mode is CogReversalMode.SNAPSHOT
    assert reversal.items_reset == 3
    assert [store.get_item(item_id).cost for item_id in january] == [0, 0, 0]
    assert store.get_item(late).cost == 400
    with pytest.raises(NotFoundError):
        cog_service.get_cog_record(store, record.record_id)


def test_delete_window_mode_requeries_window(store, make_item, now) -> None:
    _january(store, make_item)
    record = cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 31), 30000, now=now)
    late = make_item(at=JAN_20, cost=400)

    reversal = cog_service.delete_cog_record(store, record.record_id, mode=CogReversalMode.WINDOW)

    assert reversal.items_reset == 4
    assert store.get_item(late).cost == 0


def test_delete_missing_record_touches_nothing(store, make_item, now) -> None:
    january = _january(store, make_item)
    cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 31), 30000, now=now)

    with pytest.raises(NotFoundError):
        cog_service.delete_cog_record(store, 99)
    assert store.get_item(january[0]).cost == 10000


def test_list_records_newest_first(store, make_item) -> None:
    _january(store, make_item)
    first = cog_service.apply_cog(
        store, date(2024, 1, 1), date(2024, 1, 31), 300, now=datetime(2025, 1, 1, tzinfo=timezone.utc)
    )
    second = cog_service.apply_cog(
        store, date(2024, 1, 1), date(2024, 1, 31), 600, now=datetime(2025, 2, 1, tzinfo=timezone.utc)
    )

    page = cog_service.list_cog_records(store)
    assert [record.record_id for record in page.items] == [second.record_id, first.record_id]


def test_deleting_overlapped_record_zeroes_its_whole_item_set(store, make_item, now) -> None:
    """Record 2 re-costs part of record 1's set; deleting record 1 still resets every item it recorded."""

    january = _january(store, make_item)
    first = cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 31), 30000, now=now)
    second = cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 10), 500, now=now)
    assert store.get_item(january[0]).cost == 500

    reversal = cog_service.delete_cog_record(store, first.record_id)

    assert reversal.item_ids == tuple(first.item_ids)
    assert [store.get_item(item_id).cost for item_id in first.item_ids] == [0, 0, 0]
    assert cog_service.get_cog_record(store, second.record_id).item_ids == (january[0],)


@pytest.mark.parametrize("total_spent, count", [(1000, 3), (1001, 3), (5, 2), (30000, 7)])
def test_allocated_costs_stay_within_rounding_of_total(store, make_item, now, total_spent, count) -> None:
    ids = [make_item(at=JAN_5) for _ in range(count)]

    cog_service.apply_cog(store, date(2024, 1, 1), date(2024, 1, 31), total_spent, now=now)

    costs = [store.get_item(item_id).cost for item_id in ids]
    assert len(set(costs)) == 1
    assert abs(sum(costs) - total_spent) <= count - 1
