"""
Application settings.

Values are read from the process environment after loading a `.env` file from
the project root. Settings are validated once at load time; a bad value fails
startup instead of the first request that needs it.

Environment variables:
- INVENTORY_STORAGE_BACKEND: "memory" (default) or "supabase"
- SUPABASE_URL / SUPABASE_KEY: required for the supabase backend only
- BUSINESS_TIMEZONE: IANA zone for calendar-date boundaries (default "UTC")
- FINANCIAL_YEAR_START_MONTH: first month of the financial year (default 7)
- COG_REVERSAL_MODE: "snapshot" (default) or "window"
- LOG_LEVEL / LOG_FORMAT: logging level and "text" or "json"
- CORS_ALLOW_ORIGINS: comma-separated origins (default "*")
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Mapping, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from domain.cog import CogReversalMode

_ENV_PATH = Path(__file__).parent.parent / ".env"

STORAGE_BACKENDS = ("memory", "supabase")
LOG_FORMATS = ("text", "json")


@dataclass(frozen=True, slots=True)
class Settings:
    storage_backend: str = "memory"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    business_timezone: str = "UTC"
    financial_year_start_month: int = 7
    cog_reversal_mode: CogReversalMode = CogReversalMode.SNAPSHOT
    log_level: str = "INFO"
    log_format: str = "text"
    cors_allow_origins: Tuple[str, ...] = ("*",)

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.business_timezone)


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from `env` (defaults to os.environ after loading .env).

    Raises ValueError for unknown backends, zones, modes or out-of-range months.
    """

    if env is None:
        load_dotenv(dotenv_path=_ENV_PATH)
        env = os.environ

    backend = env.get("INVENTORY_STORAGE_BACKEND", "memory").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise ValueError(
            f"INVENTORY_STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}, got {backend!r}"
        )

    zone = env.get("BUSINESS_TIMEZONE", "UTC").strip() or "UTC"
    try:
        ZoneInfo(zone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"BUSINESS_TIMEZONE is not a known IANA zone: {zone!r}") from None

    start_month = _int_setting(env, "FINANCIAL_YEAR_START_MONTH", 7)
    if not 1 <= start_month <= 12:
        raise ValueError(f"FINANCIAL_YEAR_START_MONTH must be in 1..12, got {start_month}")

    mode_raw = env.get("COG_REVERSAL_MODE", CogReversalMode.SNAPSHOT.value).strip().lower()
    try:
        mode = CogReversalMode(mode_raw)
    except ValueError:
        raise ValueError(f"COG_REVERSAL_MODE must be 'snapshot' or 'window', got {mode_raw!r}") from None

    log_format = env.get("LOG_FORMAT", "text").strip().lower()
    if log_format not in LOG_FORMATS:
        raise ValueError(f"LOG_FORMAT must be 'text' or 'json', got {log_format!r}")

    origins = tuple(
        origin.strip() for origin in env.get("CORS_ALLOW_ORIGINS", "*").split(",") if origin.strip()
    )

    return Settings(
        storage_backend=backend,
        supabase_url=env.get("SUPABASE_URL") or None,
        supabase_key=env.get("SUPABASE_KEY") or None,
        business_timezone=zone,
        financial_year_start_month=start_month,
        cog_reversal_mode=mode,
        log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        log_format=log_format,
        cors_allow_origins=origins or ("*",),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded on first use."""

    return load_settings()


__all__ = ["Settings", "STORAGE_BACKENDS", "LOG_FORMATS", "load_settings", "get_settings"]
