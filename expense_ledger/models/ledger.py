"""
Core Data Models for the Expense Ledger

These models define the strict schemas for every record the ledger holds.
They are designed to:
1. Enforce field constraints wherever a record is built (store, restore, tests)
2. Provide clear validation error messages
3. Be serializable for the durable store

DESIGN DECISION: Stored records (Expense, Tag) are frozen.
An update replaces the whole record, so an id can never change in place.
"""

import datetime as dt
import re
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


MAX_EXPENSE_AMOUNT = Decimal("1000000")

HEX_COLOR_PATTERN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


def parse_day(value: Any) -> Any:
    """
    Reduce a timestamp to the calendar day it names.

    Browsers store local midnight as a UTC ISO string
    ("2024-03-04T18:30:00.000Z" is March 5th in India), so offset-aware
    values are converted to local time before the day is taken.
    Anything that is not a timestamp is returned unchanged.
    """
    if isinstance(value, str) and "T" in value:
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone()
        return value.date()
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SortField(str, Enum):
    """Columns the expense table can be sorted by."""
    DATE = "date"
    TAG = "tag"
    AMOUNT = "amount"


class SortDirection(str, Enum):
    """Sort direction."""
    ASC = "asc"
    DESC = "desc"


# =============================================================================
# TAGS
# =============================================================================

class TagDraft(BaseModel):
    """
    Caller-supplied tag fields.

    The id is never part of a draft: the store assigns it.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name shown in the tag list and charts"
    )
    color: str = Field(
        ...,
        description="Hex color, #rgb or #rrggbb"
    )

    @field_validator('color')
    @classmethod
    def validate_color(cls, v: str) -> str:
        """Only accept hex colors; store them lowercase."""
        if not HEX_COLOR_PATTERN.match(v):
            raise ValueError(f"Invalid color: {v!r}. Expected #rgb or #rrggbb")
        return v.lower()


class Tag(TagDraft):
    """A stored spending category."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique tag ID"
    )


# The six categories every fresh ledger starts with.
DEFAULT_TAGS: tuple[Tag, ...] = (
    Tag(id="1", name="Food", color="#3b5bdb"),
    Tag(id="2", name="Entertainment", color="#94d82d"),
    Tag(id="3", name="Books", color="#38d9a9"),
    Tag(id="4", name="Subscription", color="#e03131"),
    Tag(id="5", name="Investment", color="#cc5de8"),
    Tag(id="6", name="Groceries", color="#495057"),
)


# =============================================================================
# EXPENSES
# =============================================================================

class ExpenseDraft(BaseModel):
    """
    Caller-supplied expense fields.

    Field-level constraints live here. Constraints that need ledger
    state (the tag must exist, the date must not be in the future)
    are checked by LedgerValidator.
    """
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
        extra="ignore",
    )

    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was spent on"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        le=MAX_EXPENSE_AMOUNT,
        description="Amount spent, finite and positive"
    )
    date: dt.date = Field(
        ...,
        description="Calendar day of the expense"
    )
    tag_id: str = Field(
        ...,
        alias="tagId",
        min_length=1,
        description="ID of the tag this expense is filed under"
    )

    @field_validator('date', mode='before')
    @classmethod
    def coerce_timestamp(cls, v: Any) -> Any:
        """
        Accept timestamps as well as dates.

        Browser storage holds full ISO timestamps; only the local
        calendar day is kept.
        """
        return parse_day(v)


class Expense(ExpenseDraft):
    """A stored expense."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique expense ID"
    )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'out_of_range', 'unknown_tag')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    suggested_fix: Optional[str] = None


# =============================================================================
# DERIVED VIEWS
# =============================================================================

class MonthSummary(BaseModel):
    """
    Spending in one calendar month.

    This is what the chart view renders: the total plus one
    entry per tag, zero for tags with no spending.
    """

    month: date = Field(
        ...,
        description="First day of the month"
    )
    start: date
    end: date
    expense_count: int = Field(ge=0)
    total: Decimal = Field(
        ...,
        description="Sum of all expense amounts in the month"
    )
    by_tag: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Tag id -> total amount"
    )

    @property
    def shares(self) -> dict[str, float]:
        """Fraction of the month's total per tag (0.0 when nothing was spent)."""
        if not self.total:
            return {tag_id: 0.0 for tag_id in self.by_tag}
        return {
            tag_id: float(amount / self.total)
            for tag_id, amount in self.by_tag.items()
        }
