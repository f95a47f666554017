"""Derived views package."""

from expense_ledger.queries.views import (
    aggregate_by_tag,
    filter_in_range,
    group_by_day,
    month_bounds,
    shift_month,
    sort_expenses,
    summarize_month,
    total_amount,
)

__all__ = [
    "aggregate_by_tag",
    "filter_in_range",
    "group_by_day",
    "month_bounds",
    "shift_month",
    "sort_expenses",
    "summarize_month",
    "total_amount",
]
