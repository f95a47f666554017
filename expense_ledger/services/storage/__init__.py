"""
Storage Services Package

Provides the durable key-value store contract the ledger persists to,
plus in-memory and JSON-file implementations. Hosts may supply their own.
"""

from expense_ledger.services.storage.interface import (
    DurableStore,
    StorageError,
)
from expense_ledger.services.storage.memory import InMemoryStore
from expense_ledger.services.storage.json_file import JsonFileStore

__all__ = [
    # Interface
    "DurableStore",
    # Exceptions
    "StorageError",
    # Implementations
    "InMemoryStore",
    "JsonFileStore",
]
