"""
In-Memory Durable Store

Holds values in a dict for the lifetime of the process. Used by tests
and by hosts that do not need durability beyond the session.

An optional quota mimics browser local storage: a write that would push
the total stored size past the quota is refused instead of applied.
"""

from typing import Optional

from expense_ledger.services.storage.interface import DurableStore


class InMemoryStore(DurableStore):
    """Dict-backed implementation of DurableStore."""

    def __init__(
        self,
        initial: Optional[dict[str, str]] = None,
        quota_bytes: Optional[int] = None,
    ):
        """
        Args:
            initial: Values to pre-populate the store with.
            quota_bytes: Maximum total size of keys and values (UTF-8).
                        None means unlimited.
        """
        self._data: dict[str, str] = dict(initial or {})
        self.quota_bytes = quota_bytes
        self.write_count = 0

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> bool:
        if self.quota_bytes is not None:
            projected = self._size_without(key) + _entry_size(key, value)
            if projected > self.quota_bytes:
                return False
        self._data[key] = value
        self.write_count += 1
        return True

    def keys(self) -> list[str]:
        return list(self._data)

    def _size_without(self, key: str) -> int:
        return sum(
            _entry_size(k, v) for k, v in self._data.items() if k != key
        )


def _entry_size(key: str, value: str) -> int:
    return len(key.encode("utf-8")) + len(value.encode("utf-8"))
