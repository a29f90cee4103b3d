"""
Domain: item status state machine.

States:

    INTAKE -> STORED -> LISTED -> SOLD
       \\         \\         \\
        +---------+---------+--> RETURNED | DISCARDED

- INTAKE is the only initial state.
- SOLD, RETURNED and DISCARDED are terminal.
- RETURNED and DISCARDED are reachable from any non-terminal state.

This module contains only the transition table and audit value objects; item-level
operations (putaway, listing, selling) live on `domain.item.Item`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Mapping, Optional

from .errors import InvalidTransitionError
from .time import require_utc_timestamp


class ItemStatus(str, Enum):
    INTAKE = "INTAKE"
    STORED = "STORED"
    LISTED = "LISTED"
    SOLD = "SOLD"
    RETURNED = "RETURNED"
    DISCARDED = "DISCARDED"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: FrozenSet[ItemStatus] = frozenset(
    {ItemStatus.SOLD, ItemStatus.RETURNED, ItemStatus.DISCARDED}
)

_SIDE_BRANCHES = frozenset({ItemStatus.RETURNED, ItemStatus.DISCARDED})

ALLOWED_TRANSITIONS: Mapping[ItemStatus, FrozenSet[ItemStatus]] = {
    ItemStatus.INTAKE: frozenset({ItemStatus.STORED}) | _SIDE_BRANCHES,
    ItemStatus.STORED: frozenset({ItemStatus.LISTED}) | _SIDE_BRANCHES,
    ItemStatus.LISTED: frozenset({ItemStatus.SOLD}) | _SIDE_BRANCHES,
    ItemStatus.SOLD: frozenset(),
    ItemStatus.RETURNED: frozenset(),
    ItemStatus.DISCARDED: frozenset(),
}

# Order along the main line; side branches are not ranked.
_PROGRESS = {
    ItemStatus.INTAKE: 0,
    ItemStatus.STORED: 1,
    ItemStatus.LISTED: 2,
    ItemStatus.SOLD: 3,
}


def can_transition(current: ItemStatus, target: ItemStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def require_transition(item_id: int, current: ItemStatus, target: ItemStatus) -> None:
    """Raise InvalidTransitionError unless current -> target is an edge of the DAG."""

    if can_transition(current, target):
        return
    if current.is_terminal:
        reason = f"item {item_id} is {current.value} (terminal)"
    else:
        reason = f"item {item_id} cannot move from {current.value} to {target.value}"
    raise InvalidTransitionError(
        reason,
        {"item_id": item_id, "from_status": current.value, "to_status": target.value},
    )


def has_reached(current: ItemStatus, milestone: ItemStatus) -> bool:
    """True if `current` is at or past `milestone` on the main line."""

    if current not in _PROGRESS or milestone not in _PROGRESS:
        return False
    return _PROGRESS[current] >= _PROGRESS[milestone]


class HistoryChannel(str, Enum):
    INTAKE = "INTAKE"
    PUTAWAY = "PUTAWAY"
    BULK_PUTAWAY = "BULK_PUTAWAY"
    LISTING = "LISTING"
    SALE = "SALE"
    DATE_UPDATE = "DATE_UPDATE"
    RETURN = "RETURN"
    DISCARD = "DISCARD"
    LOT_CREATION = "LOT_CREATION"
    LOT_ADD = "LOT_ADD"
    LOT_REMOVAL = "LOT_REMOVAL"
    LOT_DELETION = "LOT_DELETION"
    CONDITION_UPDATE = "CONDITION_UPDATE"


@dataclass(frozen=True, slots=True)
class StatusHistoryEntry:
    """
    Append-only audit record of a status transition or membership change.

    Lot operations and condition edits record from_status == to_status (audit only).
    """

    item_id: int
    from_status: Optional[ItemStatus]
    to_status: ItemStatus
    channel: HistoryChannel
    changed_at: datetime
    note: Optional[str] = None
    entry_id: Optional[int] = None

    def __post_init__(self) -> None:
        require_utc_timestamp("changed_at", self.changed_at)


__all__ = [
    "ItemStatus",
    "TERMINAL_STATUSES",
    "ALLOWED_TRANSITIONS",
    "can_transition",
    "require_transition",
    "has_reached",
    "HistoryChannel",
    "StatusHistoryEntry",
]
