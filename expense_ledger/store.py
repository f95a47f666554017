"""
Ledger Store

This module owns the canonical expense and tag collections and is the
only place they change. It ties together:
1. Validation (every draft, from any caller)
2. Referential integrity (expenses -> tags)
3. Derived views (month range, sorting, per-tag totals)
4. Persistence to the injected durable store
5. Change notification for presentation code

DESIGN DECISION: The store enforces the boundaries:
- No record enters without passing LedgerValidator
- No tag leaves while an expense still points at it
- A storage failure never rolls back or blocks an in-memory change;
  it is reported as a PersistenceWarning instead

Every operation is synchronous and either fully applied or fully
rejected. There is one store per session; consumers share it by reference.
"""

import json
import warnings
from collections.abc import Callable, Iterable, Mapping
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import uuid4

import structlog
from pydantic import TypeAdapter

from expense_ledger.audit import AuditLogger
from expense_ledger.config import LedgerSettings, get_settings
from expense_ledger.errors import (
    ConflictError,
    NotFoundError,
    PersistenceWarning,
)
from expense_ledger.models.audit import LedgerEvent, LedgerEventBuilder
from expense_ledger.models.ledger import (
    DEFAULT_TAGS,
    Expense,
    ExpenseDraft,
    MonthSummary,
    SortDirection,
    SortField,
    Tag,
    TagDraft,
    parse_day,
)
from expense_ledger.queries import views
from expense_ledger.services.storage import (
    DurableStore,
    InMemoryStore,
    JsonFileStore,
    StorageError,
)
from expense_ledger.validation import LedgerValidator


logger = structlog.get_logger(__name__)

DOCUMENT_FORMAT = "expense-ledger"
FORMAT_VERSION = 1

Listener = Callable[[LedgerEvent], None]

_EXPENSE_LIST = TypeAdapter(list[Expense])
_TAG_LIST = TypeAdapter(list[Tag])


class LedgerStore:
    """
    The expense ledger.

    State: expenses by id, tags by id, and the last-viewed month.
    Everything else (month views, sorted tables, chart totals)
    is derived on request.
    """

    def __init__(
        self,
        durable_store: Optional[DurableStore] = None,
        settings: Optional[LedgerSettings] = None,
        today: Callable[[], date] = date.today,
        audit_logger: Optional[AuditLogger] = None,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
        autoload: bool = True,
    ):
        """
        Args:
            durable_store: Where state is persisted. Defaults to memory only.
            settings: Ledger settings. Defaults to get_settings().
            today: Clock used for future-date checks and month navigation.
            audit_logger: Event logger. Defaults to a local AuditLogger.
            id_factory: Generates ids for new records.
            autoload: Restore prior state from the durable store now.
        """
        self._durable = durable_store if durable_store is not None else InMemoryStore()
        self._settings = settings or get_settings()
        self._keys = self._settings.keys
        self._today = today
        self._validator = LedgerValidator(
            today=today,
            future_date_tolerance_days=self._settings.future_date_tolerance_days,
        )
        self._audit = audit_logger or AuditLogger()
        self._new_id = id_factory
        self._listeners: list[Listener] = []

        self._expenses: dict[str, Expense] = {}
        self._tags: dict[str, Tag] = {tag.id: tag for tag in DEFAULT_TAGS}
        self._viewed_month = today().replace(day=1)

        if autoload:
            self.load()

    # =========================================================================
    # READ ACCESS
    # =========================================================================

    @property
    def expenses(self) -> list[Expense]:
        """All expenses, in insertion order. Records are immutable."""
        return list(self._expenses.values())

    @property
    def tags(self) -> list[Tag]:
        """All tags, in insertion order."""
        return list(self._tags.values())

    @property
    def tags_by_id(self) -> dict[str, Tag]:
        return dict(self._tags)

    def get_expense(self, expense_id: str) -> Expense:
        return self._require_expense(expense_id)

    def get_tag(self, tag_id: str) -> Tag:
        return self._require_tag(tag_id)

    def tag_usage(self, tag_id: str) -> list[str]:
        """IDs of the expenses filed under a tag."""
        return [e.id for e in self._expenses.values() if e.tag_id == tag_id]

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def add_expense(self, draft: Union[ExpenseDraft, Mapping[str, Any]]) -> Expense:
        """
        Validate a draft and store it under a fresh id.

        Raises:
            ValidationError: naming the violated field(s)
        """
        parsed = self._validator.validate_expense(draft, self._tags)
        expense = Expense(id=self._fresh_id(self._expenses), **parsed.model_dump())

        self._expenses[expense.id] = expense
        self._persist_expenses()
        self._publish(LedgerEventBuilder.expense_added(
            expense_id=expense.id,
            name=expense.name,
            amount=str(expense.amount),
        ))
        return expense

    def update_expense(
        self,
        expense_id: str,
        draft: Union[ExpenseDraft, Mapping[str, Any]],
    ) -> Expense:
        """
        Replace an expense's fields, keeping its id.

        Raises:
            NotFoundError: if no expense has this id
            ValidationError: naming the violated field(s)
        """
        current = self._require_expense(expense_id)
        parsed = self._validator.validate_expense(draft, self._tags)
        updated = Expense(id=current.id, **parsed.model_dump())

        changed = [
            name for name in ExpenseDraft.model_fields
            if getattr(current, name) != getattr(updated, name)
        ]
        self._expenses[current.id] = updated
        self._persist_expenses()
        self._publish(LedgerEventBuilder.expense_updated(current.id, changed))
        return updated

    def delete_expense(self, expense_id: str) -> Expense:
        """
        Remove an expense and return it.

        Raises:
            NotFoundError: if no expense has this id
        """
        removed = self._require_expense(expense_id)
        del self._expenses[expense_id]
        self._persist_expenses()
        self._publish(LedgerEventBuilder.expense_deleted(expense_id))
        return removed

    # =========================================================================
    # TAGS
    # =========================================================================

    def add_tag(self, draft: Union[TagDraft, Mapping[str, Any]]) -> Tag:
        """
        Validate a tag draft and store it under a fresh id.

        Raises:
            ValidationError: if the name is empty or the color malformed
        """
        parsed = self._validator.validate_tag(draft)
        tag = Tag(id=self._fresh_id(self._tags), **parsed.model_dump())

        self._tags[tag.id] = tag
        self._persist_tags()
        self._publish(LedgerEventBuilder.tag_added(tag.id, tag.name))
        return tag

    def update_tag(
        self,
        tag_id: str,
        draft: Union[TagDraft, Mapping[str, Any]],
    ) -> Tag:
        """
        Replace a tag's name and color, keeping its id.

        Raises:
            NotFoundError: if no tag has this id
            ValidationError: if the name is empty or the color malformed
        """
        current = self._require_tag(tag_id)
        parsed = self._validator.validate_tag(draft)
        updated = Tag(id=current.id, **parsed.model_dump())

        self._tags[current.id] = updated
        self._persist_tags()
        self._publish(LedgerEventBuilder.tag_updated(current.id, updated.name))
        return updated

    def delete_tag(self, tag_id: str) -> Tag:
        """
        Remove a tag that no expense uses.

        Raises:
            NotFoundError: if no tag has this id
            ConflictError: if any expense still references the tag
        """
        tag = self._require_tag(tag_id)

        used_by = self.tag_usage(tag_id)
        if used_by:
            self._audit.log(LedgerEventBuilder.tag_delete_blocked(tag_id, used_by))
            raise ConflictError(
                tag_id,
                used_by,
                f"Tag '{tag.name}' is used in {len(used_by)} expense(s) and cannot be deleted",
            )

        del self._tags[tag_id]
        self._persist_tags()
        self._publish(LedgerEventBuilder.tag_deleted(tag_id))
        return tag

    # =========================================================================
    # DERIVED VIEWS
    # =========================================================================

    def list_expenses_in_range(
        self,
        start: Union[date, datetime],
        end: Union[date, datetime],
    ) -> list[Expense]:
        """Expenses dated within [start, end] inclusive, in no particular order."""
        return views.filter_in_range(self._expenses.values(), start, end)

    def sort_expenses(
        self,
        expenses: Iterable[Expense],
        field: Union[SortField, str] = SortField.DATE,
        direction: Union[SortDirection, str] = SortDirection.ASC,
    ) -> list[Expense]:
        """Stable sort by date, tag name or amount."""
        return views.sort_expenses(expenses, field, direction, self._tags)

    def aggregate_by_tag(self, expenses: Iterable[Expense]) -> dict[str, Decimal]:
        """Total amount per tag, zero for unused tags."""
        return views.aggregate_by_tag(expenses, self._tags)

    def expenses_in_month(self, month: Optional[date] = None) -> list[Expense]:
        """Expenses in `month`, or in the viewed month."""
        start, end = views.month_bounds(month or self._viewed_month)
        return self.list_expenses_in_range(start, end)

    def month_summary(self, month: Optional[date] = None) -> MonthSummary:
        """Chart data for `month`, or for the viewed month."""
        return views.summarize_month(
            self._expenses.values(),
            self._tags,
            month or self._viewed_month,
        )

    def expenses_by_day(
        self,
        expenses: Optional[Iterable[Expense]] = None,
    ) -> dict[date, list[Expense]]:
        """Calendar grouping; defaults to the viewed month."""
        if expenses is None:
            expenses = self.expenses_in_month()
        return views.group_by_day(expenses)

    # =========================================================================
    # MONTH NAVIGATION
    # =========================================================================

    @property
    def viewed_month(self) -> date:
        """First day of the month the user is looking at."""
        return self._viewed_month

    def show_month(self, month: Union[date, datetime]) -> date:
        """
        Switch the viewed month.

        Raises:
            ValidationError: if the month starts after today
        """
        first = self._validator.validate_month(views.as_date(month))
        if first != self._viewed_month:
            self._viewed_month = first
            self._persist_month()
            self._publish(LedgerEventBuilder.month_changed(first.isoformat()))
        return first

    def previous_month(self) -> date:
        return self.show_month(views.shift_month(self._viewed_month, -1))

    def next_month(self) -> bool:
        """
        Move to the following month.

        Returns False (and stays put) if that month has not started yet.
        """
        candidate = views.shift_month(self._viewed_month, 1)
        if candidate > self._today():
            return False
        self.show_month(candidate)
        return True

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback for ledger events.

        Returns a function that removes the callback again.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # =========================================================================
    # SERIALIZATION & PERSISTENCE
    # =========================================================================

    def serialize(self) -> str:
        """Both collections as one self-describing JSON document."""
        return json.dumps({
            "format": DOCUMENT_FORMAT,
            "version": FORMAT_VERSION,
            "expenses": _dump_records(self._expenses.values()),
            "tags": _dump_records(self._tags.values()),
        })

    def restore(self, data: Union[str, bytes, None]) -> bool:
        """
        Replace the ledger contents with a serialized document.

        Never raises. Malformed, truncated or inconsistent input resets
        the ledger to its default state instead.

        Returns:
            True if the document was restored, False if defaults were used
        """
        try:
            expenses, tags = _parse_document(data)
        except (ValueError, TypeError) as e:
            logger.warning("ledger_restore_rejected", error=str(e))
            self._reset_state()
            self.save()
            self._publish(LedgerEventBuilder.state_reset(str(e)))
            return False

        self._replace_state(expenses, tags)
        self._persist_expenses()
        self._persist_tags()
        self._publish(LedgerEventBuilder.state_restored(len(expenses), len(tags)))
        return True

    def load(self) -> bool:
        """
        Restore state from the durable store.

        Absent keys mean a fresh ledger: no expenses, default tags (which
        are written back). Unreadable or malformed content falls back to
        the default state with a PersistenceWarning and is left in place.

        Returns:
            True if stored state was restored, False if defaults were used
        """
        try:
            expenses_text = self._durable.get(self._keys.expenses)
            tags_text = self._durable.get(self._keys.tags)
            month_text = self._durable.get(self._keys.current_month)
        except StorageError as e:
            self._load_failed(str(e))
            return False

        try:
            expenses = (
                _decode_collection(expenses_text, _EXPENSE_LIST, "expenses")
                if expenses_text is not None else []
            )
            tags = (
                _decode_collection(tags_text, _TAG_LIST, "tags")
                if tags_text is not None else list(DEFAULT_TAGS)
            )
            _check_integrity(expenses, tags)
        except (ValueError, TypeError) as e:
            self._load_failed(f"stored ledger is malformed: {e}")
            return False

        self._replace_state(expenses, tags)
        self._viewed_month = self._decode_month(month_text)

        if tags_text is None:
            self._persist_tags()

        self._publish(LedgerEventBuilder.state_restored(len(expenses), len(tags)))
        return expenses_text is not None or tags_text is not None

    def save(self) -> bool:
        """Write all three keys. Returns True if every write succeeded."""
        results = [
            self._persist_expenses(),
            self._persist_tags(),
            self._persist_month(),
        ]
        return all(results)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _require_expense(self, expense_id: str) -> Expense:
        try:
            return self._expenses[expense_id]
        except KeyError:
            raise NotFoundError("expense", expense_id) from None

    def _require_tag(self, tag_id: str) -> Tag:
        try:
            return self._tags[tag_id]
        except KeyError:
            raise NotFoundError("tag", tag_id) from None

    def _fresh_id(self, taken: Mapping[str, Any]) -> str:
        new_id = self._new_id()
        while new_id in taken:
            new_id = self._new_id()
        return new_id

    def _replace_state(self, expenses: list[Expense], tags: list[Tag]) -> None:
        self._expenses = {e.id: e for e in expenses}
        self._tags = {t.id: t for t in tags}

    def _reset_state(self) -> None:
        self._replace_state([], list(DEFAULT_TAGS))
        self._viewed_month = self._today().replace(day=1)

    def _load_failed(self, error: str) -> None:
        self._warn_persistence("load", error)
        self._reset_state()
        self._publish(LedgerEventBuilder.state_reset(error))

    def _decode_month(self, text: Optional[str]) -> date:
        current = self._today().replace(day=1)
        if not text:
            return current
        try:
            month = parse_day(text)
            if isinstance(month, str):
                month = date.fromisoformat(month)
        except ValueError:
            logger.info("ledger_month_marker_ignored", value=text)
            return current

        first = month.replace(day=1)
        return first if first <= current else current

    def _persist_expenses(self) -> bool:
        return self._persist(
            self._keys.expenses,
            _encode_collection(self._expenses.values(), "expenses"),
        )

    def _persist_tags(self) -> bool:
        return self._persist(
            self._keys.tags,
            _encode_collection(self._tags.values(), "tags"),
        )

    def _persist_month(self) -> bool:
        return self._persist(self._keys.current_month, self._viewed_month.isoformat())

    def _persist(self, key: str, value: str) -> bool:
        """
        Fire-and-forget write. Failures become warnings, never exceptions.
        """
        try:
            if self._durable.set(key, value):
                return True
            error = "store refused the write (quota exceeded?)"
        except StorageError as e:
            error = str(e)

        self._warn_persistence(key, error)
        return False

    def _warn_persistence(self, key: str, error: str) -> None:
        warnings.warn(
            f"Ledger storage failure on '{key}': {error}",
            PersistenceWarning,
            stacklevel=4,
        )
        self._publish(LedgerEventBuilder.persistence_failed(key, error))

    def _publish(self, event: LedgerEvent) -> None:
        self._audit.log(event)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "ledger_listener_failed",
                    event_type=event.event_type.value,
                )


# =============================================================================
# ENCODING
# =============================================================================

def _dump_records(records: Iterable[Union[Expense, Tag]]) -> list[dict]:
    return [r.model_dump(mode="json", by_alias=True) for r in records]


def _encode_collection(records: Iterable[Union[Expense, Tag]], kind: str) -> str:
    return json.dumps({
        "format": f"{DOCUMENT_FORMAT}/{kind}",
        "version": FORMAT_VERSION,
        "records": _dump_records(records),
    })


def _decode_collection(text: str, adapter: TypeAdapter, kind: str) -> list:
    """
    Parse one stored collection.

    Accepts the versioned envelope and the bare JSON array browsers store.
    """
    payload = _load_json(text)
    if isinstance(payload, dict):
        if payload.get("format") != f"{DOCUMENT_FORMAT}/{kind}":
            raise ValueError(f"unexpected format for {kind}: {payload.get('format')!r}")
        _check_version(payload)
        payload = payload.get("records")
    if not isinstance(payload, list):
        raise ValueError(f"{kind} must be a list of records")

    records = adapter.validate_python(payload)
    ids = [r.id for r in records]
    if len(ids) != len(set(ids)):
        raise ValueError(f"duplicate ids in {kind}")
    return records


def _parse_document(data: Union[str, bytes, None]) -> tuple[list[Expense], list[Tag]]:
    if data is None:
        raise ValueError("no document")
    if isinstance(data, bytes):
        data = data.decode("utf-8")

    payload = _load_json(data)
    if not isinstance(payload, dict) or payload.get("format") != DOCUMENT_FORMAT:
        raise ValueError("not an expense ledger document")
    _check_version(payload)

    expenses = _EXPENSE_LIST.validate_python(payload.get("expenses"))
    tags = _TAG_LIST.validate_python(payload.get("tags"))
    for kind, records in (("expenses", expenses), ("tags", tags)):
        ids = [r.id for r in records]
        if len(ids) != len(set(ids)):
            raise ValueError(f"duplicate ids in {kind}")

    _check_integrity(expenses, tags)
    return expenses, tags


def _load_json(text: str) -> Any:
    """json.loads, with nesting too deep to decode reported as malformed input."""
    try:
        return json.loads(text)
    except RecursionError:
        raise ValueError("JSON is nested too deeply") from None


def _check_version(payload: dict) -> None:
    version = payload.get("version")
    if version != FORMAT_VERSION:
        raise ValueError(f"unsupported format version: {version!r}")


def _check_integrity(expenses: list[Expense], tags: list[Tag]) -> None:
    tag_ids = {t.id for t in tags}
    dangling = sorted({e.tag_id for e in expenses} - tag_ids)
    if dangling:
        raise ValueError(f"expenses reference unknown tags: {', '.join(dangling)}")


# =============================================================================
# FACTORY
# =============================================================================

def create_ledger(
    use_file_storage: bool = True,
    settings: Optional[LedgerSettings] = None,
) -> LedgerStore:
    """
    Factory function to create the session's ledger.

    Args:
        use_file_storage: Persist to the JSON file at settings.storage_path.
                         Set to False for a memory-only ledger.
        settings: Ledger settings. Defaults to get_settings().
    """
    settings = settings or get_settings()
    if use_file_storage:
        durable: DurableStore = JsonFileStore(
            settings.storage_path,
            write_attempts=settings.write_attempts,
        )
    else:
        durable = InMemoryStore()
    return LedgerStore(durable_store=durable, settings=settings)
