"""Configuration package."""

from expense_ledger.config.settings import (
    LedgerSettings,
    StorageKeySettings,
    get_settings,
)

__all__ = [
    "LedgerSettings",
    "StorageKeySettings",
    "get_settings",
]
