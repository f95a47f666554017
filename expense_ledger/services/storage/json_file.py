"""
JSON File Durable Store

DESIGN DECISION: All keys live in a single JSON object file, mirroring how
browser local storage keeps one string per key. The file is small
(a personal expense list) so it is read and rewritten as a whole.

TRADEOFFS:
- Every write rewrites the file (fine for personal use)
- Writes are atomic: a temp file in the same directory replaces the target,
  so a crash mid-write never leaves a truncated file behind
- Transient OS errors are retried; a write that keeps failing raises
  StorageError and the ledger turns it into a warning
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Optional, Union

import structlog
from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from expense_ledger.services.storage.interface import DurableStore, StorageError


logger = structlog.get_logger(__name__)


class JsonFileStore(DurableStore):
    """
    File-backed implementation of DurableStore.

    The file holds a JSON object mapping key -> string value.
    A missing file is an empty store.
    """

    def __init__(
        self,
        path: Union[str, Path],
        write_attempts: int = 3,
        retry_wait_seconds: float = 0.1,
    ):
        self._path = Path(path)
        self._write_attempts = write_attempts
        self._retry_wait_seconds = retry_wait_seconds

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> bool:
        data = self._read_all()
        data[key] = value
        self._write_all(data)
        return True

    def _read_all(self) -> dict[str, str]:
        """Load the whole file. A missing file is an empty store."""
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            raise StorageError(f"Could not read {self._path}: {e}") from e

        if not text.strip():
            return {}

        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise StorageError(f"Corrupt store file {self._path}: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in data.items()
        ):
            raise StorageError(
                f"Corrupt store file {self._path}: expected an object of strings"
            )
        return data

    def _write_all(self, data: dict[str, str]) -> None:
        retrying = Retrying(
            stop=stop_after_attempt(self._write_attempts),
            wait=wait_exponential(multiplier=self._retry_wait_seconds, max=2),
            retry=retry_if_exception_type(OSError),
        )
        try:
            for attempt in retrying:
                with attempt:
                    self._atomic_write(json.dumps(data, ensure_ascii=False, indent=2))
        except RetryError as e:
            error = e.last_attempt.exception()
            logger.error(
                "json_store_write_failed",
                path=str(self._path),
                attempts=self._write_attempts,
                error=str(error),
            )
            raise StorageError(f"Could not write {self._path}: {error}") from error

    def _atomic_write(self, text: str) -> None:
        directory = self._path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=directory,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
