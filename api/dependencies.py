"""
FastAPI dependencies.

Routers receive the store and settings through `Depends`, so tests can swap in an
in-memory store with `app.dependency_overrides`.
"""

from functools import lru_cache

from config.settings import Settings, get_settings
from repositories.factory import build_store
from repositories.store import InventoryStore


@lru_cache(maxsize=1)
def _default_store() -> InventoryStore:
    return build_store(get_settings())


def get_store() -> InventoryStore:
    return _default_store()


def get_app_settings() -> Settings:
    return get_settings()
