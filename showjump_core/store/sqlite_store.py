"""
SQLite store.

Local development and self-hosted deployments. Each table keeps the row as a
JSON document next to its primary key; filters go through ``json_extract`` so
the schema does not have to track every column. Thread-safe with one
connection per thread, WAL mode for concurrent readers.
"""
from __future__ import annotations

import json
import logging
import re
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from ..errors import NotFound, StoreFailure
from ..types import TABLES
from .base import Row, StoreInterface, now_iso

logger = logging.getLogger(__name__)

_COLUMN = re.compile(r"^[a-z_][a-z0-9_]*$")


def _json_path(column: str) -> str:
    if not _COLUMN.match(column):
        raise StoreFailure(f"invalid column name {column!r}")
    return f"$.{column}"


def _param(value: Any) -> Any:
    # json_extract returns 1/0 for JSON booleans.
    if isinstance(value, bool):
        return int(value)
    return value


class SQLiteStore(StoreInterface):
    """
    SQLite-backed store. Thread-safe with connection per thread.
    """

    def __init__(self, db_path: str = "data/showjump.db"):
        self.db_path = db_path
        self._local = threading.local()
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        if self._initialized:
            return
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        with self.transaction() as conn:
            for table in TABLES:
                conn.execute(
                    f"""
                    CREATE TABLE IF NOT EXISTS {table} (
                        id TEXT PRIMARY KEY,
                        data JSON NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                    """
                )
        logger.info(f"SQLite store ready at {self.db_path}")
        self._initialized = True

    def close(self) -> None:
        if getattr(self._local, "conn", None) is not None:
            self._local.conn.close()
            self._local.conn = None

    def health_check(self) -> bool:
        try:
            self._get_connection().execute("SELECT 1")
            return True
        except sqlite3.Error:
            return False

    # =========================================================================
    # CONNECTION MANAGEMENT
    # =========================================================================

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if getattr(self._local, "conn", None) is None:
            conn = sqlite3.connect(self.db_path, check_same_thread=False, timeout=30.0)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            self._local.conn = conn
        return self._local.conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"SQLite transaction rolled back: {e}")
            raise StoreFailure(f"SQLite error: {e}") from e
        except Exception:
            conn.rollback()
            raise

    # =========================================================================
    # ROW OPERATIONS
    # =========================================================================

    def select(self, table, filters=None, exclude=None, order_by=None) -> List[Row]:
        self._check_table(table)
        clauses: list[str] = []
        params: list[Any] = []
        for column, value in (filters or {}).items():
            if value is None:
                clauses.append(f"json_extract(data, '{_json_path(column)}') IS NULL")
            else:
                clauses.append(f"json_extract(data, '{_json_path(column)}') = ?")
                params.append(_param(value))
        for column, value in (exclude or {}).items():
            if value is None:
                clauses.append(f"json_extract(data, '{_json_path(column)}') IS NOT NULL")
            else:
                # NULL columns are "not equal" too, as in the in-memory store.
                clauses.append(
                    f"(json_extract(data, '{_json_path(column)}') IS NULL "
                    f"OR json_extract(data, '{_json_path(column)}') != ?)"
                )
                params.append(_param(value))
        sql = f"SELECT data FROM {table}"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        if order_by:
            path = _json_path(order_by)
            sql += f" ORDER BY json_extract(data, '{path}') IS NULL, json_extract(data, '{path}')"
        try:
            rows = self._get_connection().execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StoreFailure(f"SQLite error reading {table}: {e}") from e
        return [json.loads(r["data"]) for r in rows]

    def get(self, table, row_id) -> Optional[Row]:
        self._check_table(table)
        try:
            row = self._get_connection().execute(
                f"SELECT data FROM {table} WHERE id = ?", (row_id,)
            ).fetchone()
        except sqlite3.Error as e:
            raise StoreFailure(f"SQLite error reading {table}: {e}") from e
        return json.loads(row["data"]) if row else None

    def upsert(self, table, row) -> Row:
        self._check_table(table)
        prepared = self._prepare_row(row)
        existing = self.get(table, prepared["id"])
        if existing is not None and "created_at" in existing:
            prepared["created_at"] = existing["created_at"]
        with self.transaction() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {table} (id, data, updated_at) VALUES (?, ?, ?)",
                (prepared["id"], json.dumps(prepared, ensure_ascii=False), prepared["updated_at"]),
            )
        return prepared

    def update(self, table, row_id, fields) -> Row:
        self._check_table(table)
        existing = self.get(table, row_id)
        if existing is None:
            raise NotFound(table, row_id)
        existing.update(dict(fields))
        existing["id"] = row_id
        existing["updated_at"] = now_iso()
        with self.transaction() as conn:
            conn.execute(
                f"UPDATE {table} SET data = ?, updated_at = ? WHERE id = ?",
                (json.dumps(existing, ensure_ascii=False), existing["updated_at"], row_id),
            )
        return existing

    def delete(self, table, row_id) -> bool:
        self._check_table(table)
        with self.transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
        return cursor.rowcount > 0
