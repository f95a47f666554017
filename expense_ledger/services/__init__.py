"""Services package."""

from expense_ledger.services.storage import (
    DurableStore,
    InMemoryStore,
    JsonFileStore,
    StorageError,
)

__all__ = [
    "DurableStore",
    "InMemoryStore",
    "JsonFileStore",
    "StorageError",
]
