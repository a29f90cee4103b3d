"""
Domain: catalog records and per-format metadata.

A CatalogRecord holds shared descriptive metadata for a product identifier
(ISBN / UPC / barcode) and is reused by every physical unit intaken under that
identifier. Descriptive fields come from an external lookup or manual entry; this
module never performs lookups.

Format-specific metadata attached to an Item is a tagged variant keyed by
ProductFormat, not a bag of optional fields.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from .errors import InvalidInputError
from .time import require_utc_timestamp


class ProductFormat(str, Enum):
    BOOK = "BOOK"
    DVD = "DVD"
    CD = "CD"

    @property
    def manual_prefix(self) -> str:
        return f"M{self.value[0]}"


@dataclass(frozen=True, slots=True)
class BookMetadata:
    categories: Tuple[str, ...] = ()

    @property
    def format(self) -> ProductFormat:
        return ProductFormat.BOOK


@dataclass(frozen=True, slots=True)
class DvdMetadata:
    genre: Optional[str] = None
    rating: Optional[str] = None
    runtime_minutes: Optional[int] = None

    @property
    def format(self) -> ProductFormat:
        return ProductFormat.DVD


@dataclass(frozen=True, slots=True)
class CdMetadata:
    genre: Optional[str] = None
    runtime_minutes: Optional[int] = None
    track_count: Optional[int] = None

    @property
    def format(self) -> ProductFormat:
        return ProductFormat.CD


FormatMetadata = Union[BookMetadata, DvdMetadata, CdMetadata]


def metadata_to_dict(metadata: Optional[FormatMetadata]) -> Optional[Dict[str, Any]]:
    """Serialize format metadata with its tag, for JSON columns."""

    if metadata is None:
        return None
    if isinstance(metadata, BookMetadata):
        return {"format": "BOOK", "categories": list(metadata.categories)}
    if isinstance(metadata, DvdMetadata):
        return {
            "format": "DVD",
            "genre": metadata.genre,
            "rating": metadata.rating,
            "runtime_minutes": metadata.runtime_minutes,
        }
    return {
        "format": "CD",
        "genre": metadata.genre,
        "runtime_minutes": metadata.runtime_minutes,
        "track_count": metadata.track_count,
    }


def metadata_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[FormatMetadata]:
    if not data:
        return None
    tag = ProductFormat(data["format"])
    if tag is ProductFormat.BOOK:
        return BookMetadata(categories=tuple(data.get("categories") or ()))
    if tag is ProductFormat.DVD:
        return DvdMetadata(
            genre=data.get("genre"),
            rating=data.get("rating"),
            runtime_minutes=data.get("runtime_minutes"),
        )
    return CdMetadata(
        genre=data.get("genre"),
        runtime_minutes=data.get("runtime_minutes"),
        track_count=data.get("track_count"),
    )


@dataclass(frozen=True, slots=True)
class CatalogFields:
    """Descriptive fields supplied with an intake (lookup result or manual entry)."""

    format: ProductFormat = ProductFormat.BOOK
    title: Optional[str] = None
    creator: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    sub_format: Optional[str] = None
    image_url: Optional[str] = None
    categories: Tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class CatalogRecord:
    """
    Shared descriptive metadata for a product identifier.

    `creator` is the author, artist or director depending on format; `publisher`
    the publisher, label or studio; `sub_format` the binding or disc format.
    """

    catalog_id: str
    format: ProductFormat
    title: str
    creator: Optional[str] = None
    publisher: Optional[str] = None
    year: Optional[int] = None
    sub_format: Optional[str] = None
    image_url: Optional[str] = None
    categories: Tuple[str, ...] = ()
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if not self.catalog_id:
            raise ValueError("catalog_id must be non-empty")
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)

    @property
    def is_manual(self) -> bool:
        return is_manual_catalog_id(self.catalog_id)

    def overlay(self, fields: CatalogFields) -> "CatalogRecord":
        """Return a copy with every supplied (non-empty) field replacing the stored one."""

        changes: Dict[str, Any] = {}
        for name in ("title", "creator", "publisher", "year", "sub_format", "image_url"):
            value = getattr(fields, name)
            if value not in (None, ""):
                changes[name] = value
        if fields.categories:
            changes["categories"] = tuple(fields.categories)
        return replace(self, **changes) if changes else self


_DEFAULT_TITLES = {
    ProductFormat.BOOK: "Untitled Book",
    ProductFormat.DVD: "Unknown DVD",
    ProductFormat.CD: "Unknown CD",
}


def is_manual_catalog_id(catalog_id: str) -> bool:
    return len(catalog_id) > 2 and catalog_id[0] == "M" and catalog_id[1] in "BDC" and catalog_id[2:].isdigit()


def generate_manual_catalog_id(fmt: ProductFormat) -> str:
    """Identifier for a catalog-less manual entry, e.g. 'MB1703123456789042'."""

    return f"{fmt.manual_prefix}{int(time.time() * 1000)}{random.randint(0, 999):03d}"


def resolve_catalog_identity(catalog_id: Optional[str], fields: CatalogFields) -> Tuple[Optional[str], bool]:
    """
    Normalize the identifier supplied at intake.

    Returns (identifier or None, is_manual). Manual BOOK and CD entries need a title;
    DVDs always need a barcode.
    """

    identifier = (catalog_id or "").strip()
    if identifier:
        return identifier, False
    if fields.format is ProductFormat.DVD:
        raise InvalidInputError("A barcode (UPC) is required for DVD entries")
    if not (fields.title or "").strip():
        raise InvalidInputError(
            f"For manual {fields.format.value.lower()} entries, title is required"
        )
    return None, True


def new_catalog_record(catalog_id: str, fields: CatalogFields, created_at: datetime) -> CatalogRecord:
    return CatalogRecord(
        catalog_id=catalog_id,
        format=fields.format,
        title=(fields.title or "").strip() or _DEFAULT_TITLES[fields.format],
        creator=fields.creator,
        publisher=fields.publisher,
        year=fields.year,
        sub_format=fields.sub_format,
        image_url=fields.image_url,
        categories=tuple(fields.categories),
        created_at=created_at,
    )


def require_matching_metadata(fmt: ProductFormat, metadata: Optional[FormatMetadata]) -> None:
    if metadata is not None and metadata.format is not fmt:
        raise InvalidInputError(
            f"{metadata.format.value} metadata cannot be attached to a {fmt.value} catalog record",
            {"catalog_format": fmt.value, "metadata_format": metadata.format.value},
        )


__all__ = [
    "ProductFormat",
    "BookMetadata",
    "DvdMetadata",
    "CdMetadata",
    "FormatMetadata",
    "metadata_to_dict",
    "metadata_from_dict",
    "CatalogFields",
    "CatalogRecord",
    "is_manual_catalog_id",
    "generate_manual_catalog_id",
    "resolve_catalog_identity",
    "new_catalog_record",
    "require_matching_metadata",
]
