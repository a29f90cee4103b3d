"""Store construction from settings."""

from __future__ import annotations

import logging

from config.settings import Settings
from repositories.memory_store import MemoryInventoryStore
from repositories.store import InventoryStore

logger = logging.getLogger(__name__)


def build_store(settings: Settings) -> InventoryStore:
    """Instantiate the backend named by `settings.storage_backend`."""

    if settings.storage_backend == "supabase":
        from repositories.client import create_supabase_client
        from repositories.supabase_store import SupabaseInventoryStore

        logger.info("Using Supabase inventory store", extra={"backend": "supabase"})
        return SupabaseInventoryStore(create_supabase_client(settings))

    logger.info("Using in-memory inventory store", extra={"backend": "memory"})
    return MemoryInventoryStore()


__all__ = ["build_store"]
