#!/usr/bin/env python3
"""
Demo Inventory Seeding Script

Intakes a batch of sample books, DVDs and CDs into the configured store, puts
them away across a few shelf locations, lists and sells some of them, and
groups a handful into a lot. Useful for trying the API and the reports against
a fresh database.

Usage:
    python scripts/seed_demo_inventory.py
    python scripts/seed_demo_inventory.py --count 60 --sold 15
    python scripts/seed_demo_inventory.py --dry-run
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List
from zoneinfo import ZoneInfo

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.logging_config import configure_logging
from config.settings import load_settings
from domain.catalog import CatalogFields, ProductFormat
from domain.time import local_date
from repositories.factory import build_store
from repositories.store import InventoryStore, ItemDraft
from services import intake_service, lot_service, status_service

SAMPLES = [
    ("9780140283334", ProductFormat.BOOK, "The Great Gatsby", "F. Scott Fitzgerald"),
    ("9780441172719", ProductFormat.BOOK, "Dune", "Frank Herbert"),
    ("9780141439518", ProductFormat.BOOK, "Pride and Prejudice", "Jane Austen"),
    ("9780547928227", ProductFormat.BOOK, "The Hobbit", "J.R.R. Tolkien"),
    ("024543009323", ProductFormat.DVD, "Alien", "Ridley Scott"),
    ("025192051029", ProductFormat.DVD, "Jurassic Park", "Steven Spielberg"),
    ("074646938720", ProductFormat.CD, "Kind of Blue", "Miles Davis"),
    ("077774644129", ProductFormat.CD, "Abbey Road", "The Beatles"),
]

LOCATIONS = ["A1-01", "A1-02", "B2-01", "C3-04"]


def seed(store: InventoryStore, count: int, sold: int, now: datetime, tz: ZoneInfo) -> Dict[str, int]:
    """
    Intake `count` items spread over the last 90 days and advance some of them.

    Returns:
        Dictionary with statistics: {
            'intaken': int,
            'stored': int,
            'listed': int,
            'sold': int,
            'lot_members': int
        }
    """
    stats = {"intaken": 0, "stored": 0, "listed": 0, "sold": 0, "lot_members": 0}
    item_ids: List[int] = []

    for index in range(count):
        catalog_id, fmt, title, creator = SAMPLES[index % len(SAMPLES)]
        intake_at = now - timedelta(days=90 - (index * 90) // max(count, 1))
        result = intake_service.intake_item(
            store,
            intake_service.IntakeRequest(
                catalog_id=catalog_id,
                fields=CatalogFields(format=fmt, title=title, creator=creator),
                draft=ItemDraft(condition_grade="GOOD"),
            ),
            now=intake_at,
        )
        item_ids.append(result.item.item_id)
        stats["intaken"] += 1

    # Leave the newest tenth in INTAKE; put the rest away.
    putaway = item_ids[: count - count // 10]
    for index, item_id in enumerate(putaway):
        status_service.assign_location(store, item_id, LOCATIONS[index % len(LOCATIONS)], now=now)
        stats["stored"] += 1

    listed = putaway[: len(putaway) // 2]
    for item_id in listed:
        status_service.mark_listed(store, item_id, tz=tz, now=now)
        stats["listed"] += 1

    for offset, item_id in enumerate(listed[:sold]):
        sold_on = local_date(now - timedelta(days=offset * 3), tz)
        status_service.mark_sold(store, item_id, sold_on, tz=tz, now=now)
        stats["sold"] += 1

    unlisted = putaway[len(listed) :]
    if len(unlisted) >= 3:
        lot = lot_service.create_lot(store, unlisted[:3], now=now)
        stats["lot_members"] = lot.size

    return stats


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed the configured store with demo inventory")
    parser.add_argument("--count", type=int, default=40, help="Number of items to intake (default 40)")
    parser.add_argument("--sold", type=int, default=10, help="Number of listed items to mark sold (default 10)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be seeded and exit")
    args = parser.parse_args()

    settings = load_settings()
    configure_logging(settings)

    print("=" * 50)
    print("DEMO INVENTORY SEED")
    print("=" * 50)
    print(f"Storage backend:  {settings.storage_backend}")
    print(f"Items to intake:  {args.count}")
    print(f"Items to sell:    {args.sold}")

    if args.dry_run:
        print("\nDry run: nothing written.")
        return

    if settings.storage_backend == "memory":
        print("\nWARNING: the memory backend is not persistent; seeded data is discarded on exit.")

    store = build_store(settings)
    stats = seed(store, args.count, args.sold, datetime.now(timezone.utc), settings.tz)

    print("-" * 50)
    for key, value in stats.items():
        print(f"{key.replace('_', ' ').capitalize():<18}{value}")
    print("=" * 50)


if __name__ == "__main__":
    main()
