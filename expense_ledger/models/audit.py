"""
Ledger Event Models

Every successful mutation of the ledger produces one LedgerEvent.
Events serve two purposes:
1. Change notification for presentation code subscribed to the store
2. A structured log line for debugging

DESIGN DECISION: Events describe what already happened. They are built
after the in-memory state changed and never drive the change itself.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class LedgerEventType(str, Enum):
    """Types of events the ledger publishes."""
    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Tags
    TAG_ADDED = "tag_added"
    TAG_UPDATED = "tag_updated"
    TAG_DELETED = "tag_deleted"
    TAG_DELETE_BLOCKED = "tag_delete_blocked"

    # Navigation
    MONTH_CHANGED = "month_changed"

    # Persistence
    STATE_RESTORED = "state_restored"
    STATE_RESET = "state_reset"
    PERSISTENCE_FAILED = "persistence_failed"


class LedgerEventSeverity(str, Enum):
    """Severity level for ledger events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEvent(BaseModel):
    """A single ledger event."""

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: LedgerEventType
    severity: LedgerEventSeverity = LedgerEventSeverity.INFO

    # What entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="'expense', 'tag', 'month' or 'ledger'"
    )
    entity_id: Optional[str] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
        }


class LedgerEventBuilder:
    """
    Helper class to build ledger events with common patterns.

    Usage:
        event = LedgerEventBuilder.expense_added(expense)
        event = LedgerEventBuilder.tag_deleted(tag)
    """

    @staticmethod
    def expense_added(expense_id: str, name: str, amount: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_ADDED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense added: {name} - {amount}",
            details={"name": name, "amount": amount},
        )

    @staticmethod
    def expense_updated(expense_id: str, changed_fields: list[str]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_UPDATED,
            entity_type="expense",
            entity_id=expense_id,
            description=f"Expense updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def expense_deleted(expense_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.EXPENSE_DELETED,
            entity_type="expense",
            entity_id=expense_id,
            description="Expense deleted",
        )

    @staticmethod
    def tag_added(tag_id: str, name: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TAG_ADDED,
            entity_type="tag",
            entity_id=tag_id,
            description=f"Tag added: {name}",
            details={"name": name},
        )

    @staticmethod
    def tag_updated(tag_id: str, name: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TAG_UPDATED,
            entity_type="tag",
            entity_id=tag_id,
            description=f"Tag updated: {name}",
            details={"name": name},
        )

    @staticmethod
    def tag_deleted(tag_id: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TAG_DELETED,
            entity_type="tag",
            entity_id=tag_id,
            description="Tag deleted",
        )

    @staticmethod
    def tag_delete_blocked(tag_id: str, expense_ids: list[str]) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.TAG_DELETE_BLOCKED,
            severity=LedgerEventSeverity.WARNING,
            entity_type="tag",
            entity_id=tag_id,
            description=f"Tag delete blocked: used by {len(expense_ids)} expense(s)",
            details={"expense_ids": expense_ids},
        )

    @staticmethod
    def month_changed(month: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.MONTH_CHANGED,
            entity_type="month",
            entity_id=month,
            description=f"Viewing {month}",
        )

    @staticmethod
    def state_restored(expense_count: int, tag_count: int) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.STATE_RESTORED,
            entity_type="ledger",
            description=f"Restored {expense_count} expense(s) and {tag_count} tag(s)",
            details={"expense_count": expense_count, "tag_count": tag_count},
        )

    @staticmethod
    def state_reset(reason: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.STATE_RESET,
            severity=LedgerEventSeverity.WARNING,
            entity_type="ledger",
            description="Ledger reset to default state",
            details={"reason": reason},
        )

    @staticmethod
    def persistence_failed(key: str, error_message: str) -> LedgerEvent:
        return LedgerEvent(
            event_type=LedgerEventType.PERSISTENCE_FAILED,
            severity=LedgerEventSeverity.ERROR,
            entity_type="ledger",
            entity_id=key,
            description=f"Could not persist '{key}'",
            details={"key": key, "error": error_message},
        )
