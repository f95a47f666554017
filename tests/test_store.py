"""
Tests for LedgerStore mutations, views and notifications.

Run with: pytest tests/test_store.py -v
"""

import pytest
from datetime import date
from decimal import Decimal

from expense_ledger.errors import ConflictError, NotFoundError, ValidationError
from expense_ledger.models.audit import LedgerEventType
from expense_ledger.models.ledger import ExpenseDraft
from expense_ledger.store import LedgerStore


TODAY = date(2024, 3, 31)


def make_expense(ledger, name="Lunch", amount="10", day=date(2024, 3, 5), tag_id="1"):
    return ledger.add_expense({
        "name": name,
        "amount": Decimal(amount),
        "date": day,
        "tag_id": tag_id,
    })


class TestInitialState:
    """Tests for a fresh ledger."""

    def test_fresh_ledger(self, ledger):
        """Test no expenses, six default tags, current month viewed."""
        assert ledger.expenses == []
        assert [t.name for t in ledger.tags] == [
            "Food", "Entertainment", "Books", "Subscription", "Investment", "Groceries",
        ]
        assert ledger.viewed_month == date(2024, 3, 1)

    def test_default_tags_written_back(self, ledger, durable, settings):
        """Test that the default tags are persisted on first load."""
        assert durable.get(settings.keys.tags) is not None
        assert durable.get(settings.keys.expenses) is None


class TestExpenses:
    """Tests for expense add, update and delete."""

    def test_add_expense(self, ledger, coffee):
        """Test the Coffee scenario end to end."""
        expense = ledger.add_expense(coffee)

        assert expense.id
        assert expense.name == "Coffee"
        assert expense.amount == Decimal("150")

        march = ledger.list_expenses_in_range(date(2024, 3, 1), date(2024, 3, 31))
        assert march == [expense]

        totals = ledger.aggregate_by_tag(march)
        assert totals["1"] == Decimal("150")
        assert all(totals[tag_id] == Decimal("0") for tag_id in ["2", "3", "4", "5", "6"])

    def test_add_accepts_typed_draft(self, ledger, coffee):
        """Test that an ExpenseDraft is accepted as well as a mapping."""
        expense = ledger.add_expense(ExpenseDraft(**coffee))
        assert ledger.get_expense(expense.id) == expense

    def test_add_empty_name(self, ledger, coffee):
        """Test an empty name is rejected and nothing is stored."""
        coffee["name"] = ""
        with pytest.raises(ValidationError) as exc_info:
            ledger.add_expense(coffee)
        assert exc_info.value.field == "name"
        assert ledger.expenses == []

    def test_add_unknown_tag(self, ledger, coffee):
        """Test an expense cannot point at a tag that does not exist."""
        coffee["tag_id"] = "99"
        with pytest.raises(ValidationError) as exc_info:
            ledger.add_expense(coffee)
        assert exc_info.value.field == "tag_id"

    def test_add_future_date(self, ledger, coffee):
        """Test an expense dated after today is rejected."""
        coffee["date"] = date(2024, 4, 1)
        with pytest.raises(ValidationError) as exc_info:
            ledger.add_expense(coffee)
        assert exc_info.value.field == "date"

    def test_ids_are_unique(self, ledger):
        """Test every added expense gets its own id."""
        ids = {make_expense(ledger).id for _ in range(50)}
        assert len(ids) == 50

    def test_colliding_ids_are_regenerated(self, durable, settings, coffee):
        """Test that a repeated id from the factory is skipped."""
        generated = iter(["a", "a", "b"])
        ledger = LedgerStore(
            durable_store=durable,
            settings=settings,
            today=lambda: TODAY,
            id_factory=lambda: next(generated),
        )
        first = ledger.add_expense(coffee)
        second = ledger.add_expense(coffee)
        assert (first.id, second.id) == ("a", "b")

    def test_update_keeps_id(self, ledger, coffee):
        """Test update replaces fields and keeps the id."""
        expense = ledger.add_expense(coffee)
        coffee.update(name="Espresso", amount=Decimal("90"))

        updated = ledger.update_expense(expense.id, coffee)

        assert updated.id == expense.id
        assert updated.name == "Espresso"
        assert ledger.expenses == [updated]

    def test_update_invalid_leaves_record(self, ledger, coffee):
        """Test a rejected update leaves the stored expense untouched."""
        expense = ledger.add_expense(coffee)
        coffee["amount"] = Decimal("0")
        with pytest.raises(ValidationError):
            ledger.update_expense(expense.id, coffee)
        assert ledger.get_expense(expense.id) == expense

    def test_update_missing(self, ledger, coffee):
        """Test updating an unknown id."""
        with pytest.raises(NotFoundError) as exc_info:
            ledger.update_expense("nope", coffee)
        assert exc_info.value.entity_type == "expense"
        assert exc_info.value.entity_id == "nope"

    def test_delete_expense(self, ledger, coffee):
        """Test delete removes and returns the expense."""
        expense = ledger.add_expense(coffee)
        assert ledger.delete_expense(expense.id) == expense
        assert ledger.expenses == []

    def test_delete_missing(self, ledger):
        """Test deleting an unknown id."""
        with pytest.raises(NotFoundError):
            ledger.delete_expense("nope")

    def test_mutations_persist(self, ledger, durable, settings, coffee):
        """Test that each mutation writes the expense collection."""
        expense = ledger.add_expense(coffee)
        assert expense.id in durable.get(settings.keys.expenses)

        ledger.delete_expense(expense.id)
        assert expense.id not in durable.get(settings.keys.expenses)


class TestTags:
    """Tests for tag add, update and delete."""

    def test_add_tag(self, ledger):
        """Test a new tag is stored with a normalized color."""
        tag = ledger.add_tag({"name": "Travel", "color": "#FF8800"})
        assert tag.color == "#ff8800"
        assert ledger.get_tag(tag.id) == tag
        assert len(ledger.tags) == 7

    def test_add_tag_bad_color(self, ledger):
        """Test a malformed color is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            ledger.add_tag({"name": "Travel", "color": "orange"})
        assert exc_info.value.field == "color"
        assert len(ledger.tags) == 6

    def test_update_tag(self, ledger):
        """Test a tag rename keeps its id and its expenses."""
        expense = make_expense(ledger, tag_id="3")
        tag = ledger.update_tag("3", {"name": "Reading", "color": "#38d9a9"})

        assert tag.id == "3"
        assert ledger.get_tag("3").name == "Reading"
        assert ledger.get_expense(expense.id).tag_id == "3"

    def test_update_missing_tag(self, ledger):
        """Test updating an unknown tag."""
        with pytest.raises(NotFoundError) as exc_info:
            ledger.update_tag("99", {"name": "X", "color": "#000"})
        assert exc_info.value.entity_type == "tag"

    def test_delete_unused_tag(self, ledger):
        """Test an unused tag can be deleted."""
        removed = ledger.delete_tag("6")
        assert removed.name == "Groceries"
        assert "6" not in ledger.tags_by_id

    def test_delete_tag_in_use(self, ledger):
        """Test a tag with expenses cannot be deleted until they are gone."""
        first = make_expense(ledger, day=date(2024, 3, 5), tag_id="1")
        second = make_expense(ledger, day=date(2024, 3, 20), tag_id="1")

        with pytest.raises(ConflictError) as exc_info:
            ledger.delete_tag("1")
        assert exc_info.value.tag_id == "1"
        assert sorted(exc_info.value.expense_ids) == sorted([first.id, second.id])
        assert "Food" in str(exc_info.value)
        assert "1" in ledger.tags_by_id

        ledger.delete_expense(first.id)
        ledger.delete_expense(second.id)
        ledger.delete_tag("1")
        assert "1" not in ledger.tags_by_id

    def test_delete_missing_tag(self, ledger):
        """Test deleting an unknown tag."""
        with pytest.raises(NotFoundError):
            ledger.delete_tag("99")

    def test_tag_usage(self, ledger):
        """Test tag_usage lists the expenses under a tag."""
        expense = make_expense(ledger, tag_id="2")
        assert ledger.tag_usage("2") == [expense.id]
        assert ledger.tag_usage("3") == []


class TestViews:
    """Tests for the store's derived views."""

    def test_range_and_sort(self, ledger):
        """Test listing a range and sorting it by amount, descending."""
        small = make_expense(ledger, amount="5", day=date(2024, 3, 2))
        large = make_expense(ledger, amount="500", day=date(2024, 3, 3))
        make_expense(ledger, amount="50", day=date(2024, 2, 28))

        in_range = ledger.list_expenses_in_range(date(2024, 3, 1), date(2024, 3, 31))
        ordered = ledger.sort_expenses(in_range, "amount", "desc")
        assert ordered == [large, small]

    def test_sort_defaults_to_date_ascending(self, ledger):
        """Test the default table order."""
        later = make_expense(ledger, day=date(2024, 3, 20))
        earlier = make_expense(ledger, day=date(2024, 3, 1))
        assert ledger.sort_expenses(ledger.expenses) == [earlier, later]

    def test_month_summary_matches_total(self, ledger):
        """Test per-tag totals add up to the month total."""
        make_expense(ledger, amount="0.10", tag_id="1")
        make_expense(ledger, amount="0.20", tag_id="2")
        make_expense(ledger, amount="0.30", tag_id="2")
        make_expense(ledger, amount="99", day=date(2024, 2, 10), tag_id="1")

        summary = ledger.month_summary()
        assert summary.total == Decimal("0.60")
        assert sum(summary.by_tag.values()) == summary.total
        assert summary.expense_count == 3

    def test_expenses_by_day(self, ledger):
        """Test calendar grouping of the viewed month."""
        a = make_expense(ledger, day=date(2024, 3, 5))
        b = make_expense(ledger, day=date(2024, 3, 5))
        make_expense(ledger, day=date(2024, 2, 5))

        grouped = ledger.expenses_by_day()
        assert grouped == {date(2024, 3, 5): [a, b]}


class TestMonthNavigation:
    """Tests for the viewed-month marker."""

    def test_next_month_blocked_at_current(self, ledger):
        """Test that the view cannot move past the current month."""
        assert ledger.next_month() is False
        assert ledger.viewed_month == date(2024, 3, 1)

    def test_previous_then_next(self, ledger, durable, settings):
        """Test moving back and forward, and persisting the marker."""
        assert ledger.previous_month() == date(2024, 2, 1)
        assert durable.get(settings.keys.current_month) == "2024-02-01"

        assert ledger.next_month() is True
        assert ledger.viewed_month == date(2024, 3, 1)

    def test_show_future_month(self, ledger):
        """Test that a future month is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            ledger.show_month(date(2024, 5, 1))
        assert exc_info.value.field == "month"

    def test_expenses_in_viewed_month(self, ledger):
        """Test that month views follow navigation."""
        february = make_expense(ledger, day=date(2024, 2, 14))
        make_expense(ledger, day=date(2024, 3, 14))

        ledger.previous_month()
        assert ledger.expenses_in_month() == [february]


class TestSubscriptions:
    """Tests for change notification."""

    def test_listener_receives_events(self, ledger, coffee):
        """Test listeners see each mutation in order."""
        received = []
        ledger.subscribe(received.append)

        expense = ledger.add_expense(coffee)
        ledger.delete_expense(expense.id)

        assert [e.event_type for e in received] == [
            LedgerEventType.EXPENSE_ADDED,
            LedgerEventType.EXPENSE_DELETED,
        ]
        assert received[0].entity_id == expense.id

    def test_unsubscribe(self, ledger, coffee):
        """Test that an unsubscribed listener hears nothing more."""
        received = []
        unsubscribe = ledger.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        ledger.add_expense(coffee)
        assert received == []

    def test_rejected_operations_do_not_notify(self, ledger, coffee):
        """Test that failed operations publish no change."""
        received = []
        ledger.subscribe(received.append)
        coffee["name"] = ""

        with pytest.raises(ValidationError):
            ledger.add_expense(coffee)
        assert received == []

    def test_failing_listener_is_isolated(self, ledger, coffee):
        """Test one broken listener does not stop the others or the change."""
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        ledger.subscribe(broken)
        ledger.subscribe(received.append)

        expense = ledger.add_expense(coffee)
        assert ledger.get_expense(expense.id) == expense
        assert len(received) == 1

    def test_update_reports_changed_fields(self, ledger, coffee):
        """Test the update event names the fields that changed."""
        expense = ledger.add_expense(coffee)
        received = []
        ledger.subscribe(received.append)

        coffee["amount"] = Decimal("175")
        ledger.update_expense(expense.id, coffee)

        assert received[0].event_type == LedgerEventType.EXPENSE_UPDATED
        assert received[0].details["changed_fields"] == ["amount"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
