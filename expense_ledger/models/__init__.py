"""
Data Models Package

This package contains all Pydantic models used by the expense ledger.
Every record the ledger stores or publishes conforms to these schemas.
"""

from expense_ledger.models.ledger import (
    DEFAULT_TAGS,
    MAX_EXPENSE_AMOUNT,
    Expense,
    ExpenseDraft,
    MonthSummary,
    SortDirection,
    SortField,
    Tag,
    TagDraft,
    ValidationIssue,
    parse_day,
)
from expense_ledger.models.audit import (
    LedgerEvent,
    LedgerEventBuilder,
    LedgerEventSeverity,
    LedgerEventType,
)

__all__ = [
    # Ledger models
    "DEFAULT_TAGS",
    "MAX_EXPENSE_AMOUNT",
    "Expense",
    "ExpenseDraft",
    "MonthSummary",
    "SortDirection",
    "SortField",
    "Tag",
    "TagDraft",
    "ValidationIssue",
    "parse_day",
    # Event models
    "LedgerEvent",
    "LedgerEventBuilder",
    "LedgerEventSeverity",
    "LedgerEventType",
]
