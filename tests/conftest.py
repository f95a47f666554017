"""Shared fixtures for the expense ledger tests."""

import time
from datetime import date
from decimal import Decimal

import pytest

from expense_ledger.config import LedgerSettings
from expense_ledger.services.storage import InMemoryStore
from expense_ledger.store import LedgerStore


TODAY = date(2024, 3, 31)


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings()


@pytest.fixture
def durable() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def ledger(durable, settings) -> LedgerStore:
    return LedgerStore(
        durable_store=durable,
        settings=settings,
        today=lambda: TODAY,
    )


@pytest.fixture
def coffee() -> dict:
    return {
        "name": "Coffee",
        "amount": Decimal("150"),
        "date": date(2024, 3, 5),
        "tag_id": "1",
    }


@pytest.fixture
def set_timezone(monkeypatch):
    """Switch the process-local timezone for the duration of a test."""
    if not hasattr(time, "tzset"):
        pytest.skip("time.tzset is not available on this platform")

    def apply(name: str) -> None:
        monkeypatch.setenv("TZ", name)
        time.tzset()

    yield apply
    monkeypatch.undo()
    time.tzset()
