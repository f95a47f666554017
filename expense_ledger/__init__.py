"""
Expense Ledger

The state engine of a single-user expense tracker: dated expenses filed
under colored tags, browsed by month, summarised per tag.

DESIGN PRINCIPLES:
1. One store owns the data; views are derived, never stored
2. Fail early, fail visibly: every draft is validated by the store
3. No silent corrections
4. A storage failure never loses the user's edit
5. Storage layer is swappable
"""

from expense_ledger.errors import (
    ConflictError,
    LedgerError,
    NotFoundError,
    PersistenceWarning,
    ValidationError,
)
from expense_ledger.models import (
    Expense,
    ExpenseDraft,
    SortDirection,
    SortField,
    Tag,
    TagDraft,
)
from expense_ledger.store import LedgerStore, create_ledger

__version__ = "1.0.0"

__all__ = [
    "ConflictError",
    "Expense",
    "ExpenseDraft",
    "LedgerError",
    "LedgerStore",
    "NotFoundError",
    "PersistenceWarning",
    "SortDirection",
    "SortField",
    "Tag",
    "TagDraft",
    "ValidationError",
    "create_ledger",
]
