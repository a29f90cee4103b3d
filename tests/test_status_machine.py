"""
Tests for `domain/status.py` and the state methods on `domain/item.py`.

Covers contract rules:
- Transitions follow INTAKE -> STORED -> LISTED -> SOLD, with RETURNED and
  DISCARDED reachable from any non-terminal status.
- SOLD, RETURNED and DISCARDED are terminal.
- listed_at / sold_at are only allowed once the item has reached the status.
- Putaway advances INTAKE to STORED; re-assigning the same location is a no-op.
- Items are immutable values; operations return new instances.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from domain.errors import InvalidInputError, InvalidTransitionError
from domain.item import LOCATION_MAX_LENGTH, Item, normalize_location
from domain.status import (
    ALLOWED_TRANSITIONS,
    ItemStatus,
    can_transition,
    has_reached,
    require_transition,
)

T0 = datetime(2025, 1, 1, 9, 0, 0, tzinfo=timezone.utc)
T1 = datetime(2025, 2, 1, 0, 0, 0, tzinfo=timezone.utc)


def _item(**kwargs) -> Item:
    defaults = dict(item_id=7, catalog_id="9780140283334", intake_at=T0)
    defaults.update(kwargs)
    return Item(**defaults)


def test_main_line_transitions_are_allowed() -> None:
    """Verify each step of the main line is an edge of the DAG."""

    assert can_transition(ItemStatus.INTAKE, ItemStatus.STORED)
    assert can_transition(ItemStatus.STORED, ItemStatus.LISTED)
    assert can_transition(ItemStatus.LISTED, ItemStatus.SOLD)


def test_side_branches_reachable_from_every_non_terminal_status() -> None:
    """Verify RETURNED and DISCARDED are reachable from INTAKE, STORED and LISTED."""

    for status in (ItemStatus.INTAKE, ItemStatus.STORED, ItemStatus.LISTED):
        assert can_transition(status, ItemStatus.RETURNED)
        assert can_transition(status, ItemStatus.DISCARDED)


def test_terminal_statuses_have_no_exits() -> None:
    for status in (ItemStatus.SOLD, ItemStatus.RETURNED, ItemStatus.DISCARDED):
        assert status.is_terminal
        assert ALLOWED_TRANSITIONS[status] == frozenset()


def test_skipping_a_step_is_rejected() -> None:
    """Verify INTAKE -> SOLD and INTAKE -> LISTED fail with INVALID_TRANSITION."""

    with pytest.raises(InvalidTransitionError) as exc:
        require_transition(3, ItemStatus.INTAKE, ItemStatus.SOLD)
    assert exc.value.code == "INVALID_TRANSITION"
    assert exc.value.details["from_status"] == "INTAKE"

    assert not can_transition(ItemStatus.INTAKE, ItemStatus.LISTED)


def test_has_reached_orders_main_line_only() -> None:
    assert has_reached(ItemStatus.SOLD, ItemStatus.LISTED)
    assert not has_reached(ItemStatus.STORED, ItemStatus.LISTED)
    assert not has_reached(ItemStatus.RETURNED, ItemStatus.LISTED)


def test_putaway_advances_intake_to_stored_and_derives_sku() -> None:
    """Verify assign_location sets STORED and the SKU becomes '<location>-<id>'."""

    item = _item()
    assert item.sku is None

    stored = item.assign_location("  A1-03 ")
    assert stored.status is ItemStatus.STORED
    assert stored.location == "A1-03"
    assert stored.sku == "A1-03-7"
    # original unchanged
    assert item.status is ItemStatus.INTAKE
    assert item.location is None


def test_reassigning_same_location_is_noop() -> None:
    stored = _item().assign_location("A1")
    assert stored.assign_location("A1") is stored


def test_moving_a_listed_item_keeps_its_status() -> None:
    listed = _item().assign_location("A1").mark_listed(T1)
    moved = listed.assign_location("B2")
    assert moved.status is ItemStatus.LISTED
    assert moved.location == "B2"


def test_location_cannot_change_on_terminal_item() -> None:
    discarded = _item().mark_discarded()
    with pytest.raises(InvalidTransitionError):
        discarded.assign_location("A1")


def test_location_validation() -> None:
    """Verify empty and over-long location codes are rejected."""

    with pytest.raises(InvalidInputError):
        normalize_location("   ")
    with pytest.raises(InvalidInputError):
        normalize_location("X" * (LOCATION_MAX_LENGTH + 1))
    assert normalize_location("X" * LOCATION_MAX_LENGTH) == "X" * LOCATION_MAX_LENGTH


def test_mark_sold_requires_listed() -> None:
    """Verify markSold on an INTAKE item fails and leaves it untouched."""

    item = _item()
    with pytest.raises(InvalidTransitionError):
        item.mark_sold(T1)
    assert item.status is ItemStatus.INTAKE
    assert item.sold_at is None


def test_mark_sold_on_sold_item_only_redates() -> None:
    sold = _item().assign_location("A1").mark_listed(T0).mark_sold(T1)
    later = T1 + timedelta(days=3)
    redated = sold.mark_sold(later)
    assert redated.status is ItemStatus.SOLD
    assert redated.sold_at == later
    assert redated.listed_at == T0


def test_mark_listed_on_sold_item_is_rejected() -> None:
    sold = _item().assign_location("A1").mark_listed(T0).mark_sold(T1)
    with pytest.raises(InvalidTransitionError):
        sold.mark_listed(T1)


def test_item_timestamp_invariants() -> None:
    """Verify sold_at requires SOLD, listed_at requires LISTED or later, and UTC is enforced."""

    with pytest.raises(ValueError):
        _item(status=ItemStatus.LISTED, sold_at=T1)
    with pytest.raises(ValueError):
        _item(status=ItemStatus.STORED, listed_at=T1)
    with pytest.raises(ValueError):
        _item(intake_at=datetime(2025, 1, 1))
    with pytest.raises(ValueError):
        _item(cost=-1)
    with pytest.raises(ValueError):
        _item().mark_listed(datetime(2025, 1, 1, tzinfo=timezone(timedelta(hours=2))))
