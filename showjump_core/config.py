"""
Core configuration.

Loads settings from environment variables with sensible defaults. Settings
are read once into a frozen ``Settings`` and passed explicitly to the store
factory and the service layer.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional


def _get_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes")


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


@dataclass(frozen=True)
class Settings:
    # Store backend: "memory", "sqlite" or "supabase"
    store_backend: str = "sqlite"
    sqlite_path: str = "data/showjump.db"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    # Wall clock used by the lifecycle clock when callers pass naive datetimes
    show_timezone: str = "UTC"

    # Individual scores counted per team in team classes (best N)
    team_counting_scores: int = 3

    # Re-rank the scope after every completed submission
    auto_rank: bool = True

    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build settings from the environment."""
    return Settings(
        store_backend=_get_str("STORE_BACKEND", "sqlite").lower(),
        sqlite_path=_get_str("SQLITE_PATH", os.path.join(_get_str("DATA_DIR", "data"), "showjump.db")),
        supabase_url=os.environ.get("SUPABASE_URL"),
        supabase_key=os.environ.get("SUPABASE_KEY") or os.environ.get("SUPABASE_SERVICE_ROLE_KEY"),
        show_timezone=_get_str("SHOW_TIMEZONE", "UTC"),
        team_counting_scores=max(1, _get_int("TEAM_COUNTING_SCORES", 3)),
        auto_rank=_get_bool("AUTO_RANK", True),
        log_level=_get_str("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Apply LOG_LEVEL to the package logger hierarchy."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger("showjump_core").setLevel(getattr(logging, level.upper(), logging.INFO))
