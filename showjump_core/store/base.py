"""
Abstract base class defining the relational store interface.

Every backend stores rows of the four tables (shows, classes, startlist,
scores) as plain dicts keyed by a UUID ``id``. All mutations refresh
``updated_at``. Backend errors surface as ``StoreFailure``.
"""
from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from ..errors import ValidationError
from ..types import TABLES

Row = Dict[str, Any]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class StoreInterface(ABC):
    """
    Abstract interface for show/class/startlist/score storage.

    All methods must be implemented by concrete store classes.
    Methods should be thread-safe where applicable.
    """

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @abstractmethod
    def initialize(self) -> None:
        """
        Prepare connections and schema.

        Should be idempotent (safe to call multiple times).
        """

    @abstractmethod
    def close(self) -> None:
        """Release connections."""

    @abstractmethod
    def health_check(self) -> bool:
        """
        Returns:
            True if the store is reachable, False otherwise
        """

    # =========================================================================
    # ROW OPERATIONS
    # =========================================================================

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Optional[Mapping[str, Any]] = None,
        exclude: Optional[Mapping[str, Any]] = None,
        order_by: Optional[str] = None,
    ) -> List[Row]:
        """
        Read rows from ``table``.

        Args:
            filters: column -> value equality conditions (AND)
            exclude: column -> value inequality conditions (AND)
            order_by: column to sort ascending by

        Returns:
            Matching rows (copies; mutating them does not touch the store)
        """

    @abstractmethod
    def get(self, table: str, row_id: str) -> Optional[Row]:
        """Fetch one row by id, or None."""

    @abstractmethod
    def upsert(self, table: str, row: Row) -> Row:
        """
        Insert or replace a row.

        Assigns a new UUID when ``id`` is missing and refreshes ``updated_at``.

        Returns:
            The stored row
        """

    @abstractmethod
    def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> Row:
        """
        Merge ``fields`` into an existing row and refresh ``updated_at``.

        Raises:
            NotFound: if the row does not exist
        """

    @abstractmethod
    def delete(self, table: str, row_id: str) -> bool:
        """
        Returns:
            True if a row was removed
        """

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _check_table(table: str) -> None:
        if table not in TABLES:
            raise ValidationError(f"unknown table {table}")

    @staticmethod
    def _prepare_row(row: Mapping[str, Any]) -> Row:
        prepared = dict(row)
        stamp = now_iso()
        if not prepared.get("id"):
            prepared["id"] = new_id()
        prepared.setdefault("created_at", stamp)
        prepared["updated_at"] = stamp
        return prepared
