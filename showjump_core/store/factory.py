"""
Factory function to create the configured store implementation.

Backends:
- "memory": in-process dicts (tests, demos)
- "sqlite" (default): local SQLite file at SQLITE_PATH
- "supabase": Supabase PostgreSQL, needs SUPABASE_URL and SUPABASE_KEY

No module-level singleton: the caller owns the returned handle and passes
it to the service layer and the reconciler.
"""
from __future__ import annotations

import logging
from typing import Optional

from ..config import Settings, load_settings
from ..errors import ConfigurationError
from .base import StoreInterface

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "sqlite", "supabase")


def create_store(settings: Optional[Settings] = None) -> StoreInterface:
    """
    Build and initialize the store named by ``settings.store_backend``.

    Raises:
        ConfigurationError: for an unknown backend or missing credentials
    """
    settings = settings or load_settings()
    backend = settings.store_backend.lower()
    logger.info(f"Store backend: {backend}")

    store: StoreInterface
    if backend == "memory":
        from .memory import MemoryStore

        store = MemoryStore()
    elif backend == "sqlite":
        from .sqlite_store import SQLiteStore

        store = SQLiteStore(db_path=settings.sqlite_path)
    elif backend == "supabase":
        from .supabase_store import SupabaseStore

        store = SupabaseStore(url=settings.supabase_url, key=settings.supabase_key)
    else:
        raise ConfigurationError(
            f"Unknown STORE_BACKEND: {backend}. Valid options: {', '.join(BACKENDS)}"
        )

    store.initialize()
    return store
