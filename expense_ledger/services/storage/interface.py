"""
Abstract Durable Store Interface

DESIGN DECISION: The ledger never talks to a concrete storage backend.
The host environment injects a key-value string store. This allows us to:
1. Back the ledger with browser-style local storage, a JSON file, or memory
2. Use in-memory storage for testing
3. Simulate quota failures without touching the filesystem

The contract is intentionally tiny: get a string, set a string.
Encoding of the values is the ledger's business, not the store's.
"""

from abc import ABC, abstractmethod
from typing import Optional


class DurableStore(ABC):
    """
    Abstract interface for a durable key-value string store.

    Any storage implementation (file, browser storage bridge, etc.)
    must implement these methods.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: The storage key

        Returns:
            The stored string, or None if the key is absent

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> bool:
        """
        Store a value under a key, replacing any previous value.

        Args:
            key: The storage key
            value: The string to store

        Returns:
            True if stored, False if the backend refused the write
            (e.g., quota exceeded)

        Raises:
            StorageError: If the backend failed while writing
        """
        pass


class StorageError(Exception):
    """Base exception for durable store operations."""
    pass
