"""
Relational store abstraction layer.

Provides a unified interface for the memory, SQLite and Supabase backends.
"""
from .base import Row, StoreInterface
from .factory import BACKENDS, create_store
from .memory import MemoryStore
from .sqlite_store import SQLiteStore
from .supabase_store import SupabaseStore

__all__ = [
    "Row",
    "StoreInterface",
    "BACKENDS",
    "create_store",
    "MemoryStore",
    "SQLiteStore",
    "SupabaseStore",
]
