"""
Supabase store.

PostgreSQL through Supabase's REST API (supabase-py). Differences from the
SQLite backend:
- tables are real columns; the schema must exist beforehand
- upsert() resolves conflicts on ``id``
- initialize() verifies tables exist (doesn't create them)

Requires: pip install "showjump-core[supabase]"
"""
from __future__ import annotations

import logging
from typing import List, Optional

from ..errors import ConfigurationError, NotFound, StoreFailure
from ..types import SHOWS
from .base import Row, StoreInterface, now_iso

logger = logging.getLogger(__name__)


class SupabaseStore(StoreInterface):
    """
    Supabase cloud store.

    Args:
        url: project URL (e.g. https://your-project.supabase.co)
        key: service-role key; row level security would hide other users' rows
    """

    def __init__(self, url: Optional[str], key: Optional[str]):
        self._url = url
        self._key = key
        self._client = None
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        if self._initialized:
            return
        if not self._url:
            raise ConfigurationError("SUPABASE_URL environment variable is required for Supabase backend")
        if not self._key:
            raise ConfigurationError("SUPABASE_KEY environment variable is required for Supabase backend")

        client = self._get_client()
        try:
            client.table(SHOWS).select("id").limit(1).execute()
        except Exception as e:
            raise StoreFailure(
                f"Failed to connect to Supabase or schema not initialized. Error: {e}"
            ) from e
        logger.info("Supabase store connected")
        self._initialized = True

    def _get_client(self):
        """Get or create Supabase client."""
        if self._client is None:
            try:
                from supabase import create_client
            except ImportError:
                raise ConfigurationError(
                    "supabase package not installed. "
                    'Install with: pip install "showjump-core[supabase]"'
                ) from None
            try:
                self._client = create_client(self._url, self._key)
            except Exception as e:
                raise StoreFailure(f"Failed to create Supabase client: {e}") from e
        return self._client

    def close(self) -> None:
        # REST API doesn't maintain persistent connections
        self._client = None

    def health_check(self) -> bool:
        try:
            self._get_client().table(SHOWS).select("id").limit(1).execute()
            return True
        except Exception:
            return False

    # =========================================================================
    # ROW OPERATIONS
    # =========================================================================

    def select(self, table, filters=None, exclude=None, order_by=None) -> List[Row]:
        self._check_table(table)
        query = self._get_client().table(table).select("*")
        for column, value in (filters or {}).items():
            query = query.is_(column, "null") if value is None else query.eq(column, value)
        for column, value in (exclude or {}).items():
            query = query.not_.is_(column, "null") if value is None else query.neq(column, value)
        if order_by:
            query = query.order(order_by)
        try:
            return list(query.execute().data or [])
        except Exception as e:
            raise StoreFailure(f"Supabase error reading {table}: {e}") from e

    def get(self, table, row_id) -> Optional[Row]:
        self._check_table(table)
        try:
            data = self._get_client().table(table).select("*").eq("id", row_id).limit(1).execute().data
        except Exception as e:
            raise StoreFailure(f"Supabase error reading {table}: {e}") from e
        return data[0] if data else None

    def upsert(self, table, row) -> Row:
        self._check_table(table)
        prepared = self._prepare_row(row)
        # created_at has a column default; don't overwrite it on conflict.
        prepared.pop("created_at", None)
        try:
            data = self._get_client().table(table).upsert(prepared, on_conflict="id").execute().data
        except Exception as e:
            raise StoreFailure(f"Supabase error writing {table}: {e}") from e
        return data[0] if data else prepared

    def update(self, table, row_id, fields) -> Row:
        self._check_table(table)
        payload = {**dict(fields), "updated_at": now_iso()}
        payload.pop("id", None)
        try:
            data = self._get_client().table(table).update(payload).eq("id", row_id).execute().data
        except Exception as e:
            raise StoreFailure(f"Supabase error updating {table}: {e}") from e
        if not data:
            raise NotFound(table, row_id)
        return data[0]

    def delete(self, table, row_id) -> bool:
        self._check_table(table)
        try:
            data = self._get_client().table(table).delete().eq("id", row_id).execute().data
        except Exception as e:
            raise StoreFailure(f"Supabase error deleting {table}: {e}") from e
        return bool(data)
