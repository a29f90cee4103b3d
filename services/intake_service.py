"""
Intake service.

Handles:
- Resolving the catalog identifier (barcode, or a generated manual id)
- Creating or reusing the CatalogRecord for that identifier
- Creating the Item in status INTAKE
- The duplicate sentinel: an advisory report of earlier items sharing the
  identifier, which never blocks intake
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from domain.catalog import (
    CatalogFields,
    CatalogRecord,
    generate_manual_catalog_id,
    new_catalog_record,
    require_matching_metadata,
    resolve_catalog_identity,
)
from domain.duplicate import DuplicateReport, build_report
from domain.errors import InvalidInputError, StorageError
from domain.item import Item
from domain.time import utc_now
from repositories.store import InventoryStore, ItemDraft

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IntakeRequest:
    """
    One physical unit being intaken.

    catalog_id: barcode / ISBN / UPC; empty for a manual entry
    fields: descriptive fields from a lookup or manual entry
    draft: per-unit fields (condition, cost, format metadata)
    """

    catalog_id: Optional[str] = None
    fields: CatalogFields = field(default_factory=CatalogFields)
    draft: ItemDraft = field(default_factory=ItemDraft)


@dataclass(frozen=True, slots=True)
class IntakeResult:
    item: Item
    catalog: CatalogRecord
    duplicate: DuplicateReport
    new_catalog_record: bool


def check_duplicates(store: InventoryStore, catalog_id: str) -> DuplicateReport:
    """
    Existing items sharing `catalog_id`, newest intake first.

    A storage failure degrades to an "unavailable" report instead of failing the
    caller; intake must not be blocked by the sentinel.
    """

    try:
        items = store.items_by_catalog_id(catalog_id)
    except StorageError:
        logger.warning(
            "Duplicate check unavailable",
            extra={"catalog_id": catalog_id},
            exc_info=True,
        )
        return DuplicateReport.unavailable(catalog_id)
    return build_report(catalog_id, items)


def intake_item(store: InventoryStore, request: IntakeRequest, *, now: Optional[datetime] = None) -> IntakeResult:
    """
    Intake one item.

    Process:
    1. Resolve the identifier; manual entries without one get a generated id
    2. Run the duplicate sentinel against items already stored
    3. Reuse the existing catalog record (overlaying newly supplied fields) or
       create a new one
    4. Insert the item (status INTAKE, no location)

    Raises:
        InvalidInputError: negative cost, a manual entry missing its title, a DVD
            without a barcode, or format metadata for a different format
    """

    now = now or utc_now()
    if request.draft.cost < 0:
        raise InvalidInputError("costMinorUnits must be >= 0", {"cost": request.draft.cost})

    identifier, is_manual = resolve_catalog_identity(request.catalog_id, request.fields)

    if identifier is not None:
        duplicate = check_duplicates(store, identifier)
        existing = store.get_catalog(identifier)
    else:
        duplicate = DuplicateReport(catalog_id=None)
        existing = None

    if existing is not None:
        catalog = existing.overlay(request.fields)
    else:
        catalog = new_catalog_record(
            identifier or generate_manual_catalog_id(request.fields.format),
            request.fields,
            now,
        )

    require_matching_metadata(catalog.format, request.draft.format_metadata)

    item = store.intake_item(catalog, request.draft, now)

    logger.info(
        "Item intaken",
        extra={
            "item_id": item.item_id,
            "catalog_id": catalog.catalog_id,
            "manual_entry": is_manual,
            "new_catalog_record": existing is None,
            "duplicate_count": len(duplicate.matches),
        },
    )
    return IntakeResult(
        item=item,
        catalog=catalog,
        duplicate=duplicate,
        new_catalog_record=existing is None,
    )


__all__ = ["IntakeRequest", "IntakeResult", "check_duplicates", "intake_item"]
