"""
Domain: error taxonomy for the inventory engine.

Every failure the engine reports carries a machine-readable `code`, a human-readable
`message` and an optional `details` mapping. Callers catch by type; the API renders
the code; database functions return the code and `error_for_code` rebuilds the type.

    InventoryError
    +-- NotFoundError                 NOT_FOUND
    +-- InvalidTransitionError        INVALID_TRANSITION
    +-- InvalidRangeError             INVALID_RANGE
    +-- EmptySelectionError           EMPTY_SELECTION
    +-- AlreadyMemberError            ALREADY_MEMBER
    +-- NotAMemberError               NOT_A_MEMBER
    +-- LotNumberInUseError           LOT_NUMBER_IN_USE
    +-- ConcurrentModificationError   CONCURRENT_MODIFICATION
    +-- InvalidInputError             INVALID_INPUT
    +-- StorageError                  STORAGE_ERROR
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type


class InventoryError(Exception):
    """Base class for all inventory engine errors."""

    code: str = "INVENTORY_ERROR"

    def __init__(self, message: str, details: Optional[Mapping[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, "details": self.details}


class NotFoundError(InventoryError):
    """Unknown item, lot, catalog record or COG record."""

    code = "NOT_FOUND"


class InvalidTransitionError(InventoryError):
    """Requested status change violates the status machine."""

    code = "INVALID_TRANSITION"


class InvalidRangeError(InventoryError):
    """COG window start after end, or non-positive spend."""

    code = "INVALID_RANGE"


class EmptySelectionError(InventoryError):
    """Nothing to operate on: empty COG window or empty id list."""

    code = "EMPTY_SELECTION"


class AlreadyMemberError(InventoryError):
    code = "ALREADY_MEMBER"


class NotAMemberError(InventoryError):
    code = "NOT_A_MEMBER"


class LotNumberInUseError(InventoryError):
    """A new lot would take the number of a lot that still exists."""

    code = "LOT_NUMBER_IN_USE"


class ConcurrentModificationError(InventoryError):
    """A conditional write found the row changed since it was read."""

    code = "CONCURRENT_MODIFICATION"


class InvalidInputError(InventoryError):
    code = "INVALID_INPUT"


class StorageError(InventoryError):
    """The storage backend failed; nothing is known about the row state."""

    code = "STORAGE_ERROR"


_BY_CODE: Dict[str, Type[InventoryError]] = {
    cls.code: cls
    for cls in (
        NotFoundError,
        InvalidTransitionError,
        InvalidRangeError,
        EmptySelectionError,
        AlreadyMemberError,
        NotAMemberError,
        LotNumberInUseError,
        ConcurrentModificationError,
        InvalidInputError,
        StorageError,
    )
}


def error_for_code(
    code: Optional[str],
    message: Optional[str],
    details: Optional[Mapping[str, Any]] = None,
) -> InventoryError:
    """Rebuild a typed error from a code reported by the storage layer."""

    cls = _BY_CODE.get(str(code or ""), StorageError)
    return cls(message or f"Operation failed ({code or 'unknown error'})", details)


__all__ = [
    "InventoryError",
    "NotFoundError",
    "InvalidTransitionError",
    "InvalidRangeError",
    "EmptySelectionError",
    "AlreadyMemberError",
    "NotAMemberError",
    "LotNumberInUseError",
    "ConcurrentModificationError",
    "InvalidInputError",
    "StorageError",
    "error_for_code",
]
