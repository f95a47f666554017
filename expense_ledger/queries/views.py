"""
Derived Ledger Views

DESIGN DECISION: Views are DETERMINISTIC, pure functions over a list of
expenses. They never mutate the ledger and never see the durable store.
The calendar, table and chart collaborators render what these return.

Amounts are Decimal end to end, so totals are exact: the per-tag totals
of an aggregation always add up to the total of its input.
"""

import calendar
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Union

from expense_ledger.errors import ValidationError
from expense_ledger.models.ledger import (
    Expense,
    MonthSummary,
    SortDirection,
    SortField,
    Tag,
    parse_day,
)


DateLike = Union[date, datetime]


def as_date(value: DateLike) -> date:
    """Reduce a datetime bound to its (local) calendar day."""
    return parse_day(value)


def month_bounds(month: DateLike) -> tuple[date, date]:
    """First and last day of the month containing `month`."""
    day = as_date(month)
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def shift_month(month: DateLike, delta: int) -> date:
    """First day of the month `delta` months away (negative goes back)."""
    day = as_date(month)
    index = day.year * 12 + (day.month - 1) + delta
    return date(index // 12, index % 12 + 1, 1)


def filter_in_range(
    expenses: Iterable[Expense],
    start: DateLike,
    end: DateLike,
) -> list[Expense]:
    """
    Expenses dated within [start, end], both ends inclusive.

    Order follows the input. An inverted range matches nothing.
    """
    start_day, end_day = as_date(start), as_date(end)
    return [e for e in expenses if start_day <= e.date <= end_day]


def sort_expenses(
    expenses: Iterable[Expense],
    field: Union[SortField, str],
    direction: Union[SortDirection, str],
    tags: Mapping[str, Tag],
) -> list[Expense]:
    """
    Stable sort for the expense table.

    - date: chronological
    - tag: referenced tag's name, case-insensitive (unknown tags sort as "")
    - amount: numeric

    Records with equal keys keep their input order in both directions.
    """
    sort_field = _coerce(SortField, field, "sort_field")
    sort_direction = _coerce(SortDirection, direction, "sort_direction")

    if sort_field == SortField.DATE:
        def key(expense: Expense):
            return expense.date
    elif sort_field == SortField.TAG:
        def key(expense: Expense):
            tag = tags.get(expense.tag_id)
            return tag.name.casefold() if tag else ""
    else:
        def key(expense: Expense):
            return expense.amount

    # sorted() with reverse=True keeps equal elements in input order.
    return sorted(
        expenses,
        key=key,
        reverse=sort_direction == SortDirection.DESC,
    )


def aggregate_by_tag(
    expenses: Iterable[Expense],
    tag_ids: Iterable[str],
) -> dict[str, Decimal]:
    """
    Total amount per tag.

    Every tag in `tag_ids` appears, with Decimal("0") if unused. An expense
    pointing at a tag outside `tag_ids` is totalled under its own tag id,
    so no amount is ever dropped.
    """
    totals: dict[str, Decimal] = {tag_id: Decimal("0") for tag_id in tag_ids}
    for expense in expenses:
        totals[expense.tag_id] = totals.get(expense.tag_id, Decimal("0")) + expense.amount
    return totals


def total_amount(expenses: Iterable[Expense]) -> Decimal:
    """Exact sum of all amounts."""
    return sum((e.amount for e in expenses), Decimal("0"))


def group_by_day(expenses: Iterable[Expense]) -> dict[date, list[Expense]]:
    """
    Expenses grouped per calendar day, days in chronological order.

    Within a day, input order is kept.
    """
    groups: dict[date, list[Expense]] = {}
    for expense in sorted(expenses, key=lambda e: e.date):
        groups.setdefault(expense.date, []).append(expense)
    return groups


def summarize_month(
    expenses: Iterable[Expense],
    tags: Mapping[str, Tag],
    month: DateLike,
) -> MonthSummary:
    """Total and per-tag spending for the month containing `month`."""
    start, end = month_bounds(month)
    in_month = filter_in_range(expenses, start, end)
    by_tag = aggregate_by_tag(in_month, tags.keys())
    return MonthSummary(
        month=start,
        start=start,
        end=end,
        expense_count=len(in_month),
        total=total_amount(in_month),
        by_tag=by_tag,
    )


def _coerce(enum_type, value, field: str):
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValidationError.for_field(
            field,
            "invalid_choice",
            f"Unknown {field.replace('_', ' ')} {value!r}. Allowed: {allowed}",
        ) from None
