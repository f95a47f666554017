"""Draft validation package."""

from expense_ledger.validation.validator import LedgerValidator

__all__ = ["LedgerValidator"]
