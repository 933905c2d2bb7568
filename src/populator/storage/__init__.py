"""
Storage backends.

- base: StorageBackend interface and record -> column mapping
- memory: dict-backed store for dry runs and tests
- postgres: psycopg2-backed store
"""

from .base import StorageBackend, column_values
from .memory import MemoryStore
from .postgres import PostgresStore, get_connection

__all__ = [
    "StorageBackend",
    "column_values",
    "MemoryStore",
    "PostgresStore",
    "get_connection",
]
