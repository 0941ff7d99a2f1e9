"""
In-memory store.

Used by tests and single-process demos. Tables are dicts guarded by one lock;
rows are copied on the way in and out so callers never share state with the
store.
"""
from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Mapping, Optional

from ..errors import NotFound
from ..types import TABLES
from .base import Row, StoreInterface, now_iso


def _matches(row: Row, filters: Optional[Mapping[str, Any]], exclude: Optional[Mapping[str, Any]]) -> bool:
    for key, value in (filters or {}).items():
        if row.get(key) != value:
            return False
    for key, value in (exclude or {}).items():
        if row.get(key) == value:
            return False
    return True


def _sort_value(value: Any) -> tuple:
    # None sorts last, like NULLS LAST.
    return (value is None, value if value is not None else 0)


class MemoryStore(StoreInterface):
    def __init__(self):
        self._tables: Dict[str, Dict[str, Row]] = {table: {} for table in TABLES}
        self._lock = threading.Lock()

    def initialize(self) -> None:
        pass

    def close(self) -> None:
        pass

    def health_check(self) -> bool:
        return True

    def select(self, table, filters=None, exclude=None, order_by=None) -> List[Row]:
        self._check_table(table)
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._tables[table].values() if _matches(r, filters, exclude)]
        if order_by:
            rows.sort(key=lambda r: _sort_value(r.get(order_by)))
        return rows

    def get(self, table, row_id) -> Optional[Row]:
        self._check_table(table)
        with self._lock:
            row = self._tables[table].get(row_id)
            return copy.deepcopy(row) if row is not None else None

    def upsert(self, table, row) -> Row:
        self._check_table(table)
        prepared = self._prepare_row(row)
        with self._lock:
            existing = self._tables[table].get(prepared["id"])
            if existing is not None and "created_at" in existing:
                prepared["created_at"] = existing["created_at"]
            self._tables[table][prepared["id"]] = copy.deepcopy(prepared)
        return prepared

    def update(self, table, row_id, fields) -> Row:
        self._check_table(table)
        with self._lock:
            existing = self._tables[table].get(row_id)
            if existing is None:
                raise NotFound(table, row_id)
            existing.update(copy.deepcopy(dict(fields)))
            existing["id"] = row_id
            existing["updated_at"] = now_iso()
            return copy.deepcopy(existing)

    def delete(self, table, row_id) -> bool:
        self._check_table(table)
        with self._lock:
            return self._tables[table].pop(row_id, None) is not None
