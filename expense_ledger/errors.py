"""
Ledger Error Taxonomy

DESIGN DECISION: Every failure a caller can act on has its own type.
- ValidationError: a draft was rejected (inline field feedback)
- NotFoundError: the targeted id does not exist
- ConflictError: a delete was blocked by referential integrity
- PersistenceWarning: the durable store failed; in-memory state is kept

None of these is fatal. The worst outcome is losing durability for
the current session.
"""

from typing import Optional

from expense_ledger.models.ledger import ValidationIssue


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError, ValueError):
    """
    A draft failed validation.

    `field` names the first violated field; `issues` lists all of them.
    """

    def __init__(self, issues: list[ValidationIssue]):
        if not issues:
            raise ValueError("ValidationError requires at least one issue")
        self.issues = list(issues)
        self.field = self.issues[0].field
        super().__init__("; ".join(_describe(issue) for issue in self.issues))

    @classmethod
    def for_field(cls, field: str, issue_type: str, message: str) -> "ValidationError":
        return cls([
            ValidationIssue(field=field, issue_type=issue_type, message=message)
        ])

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


def _describe(issue: ValidationIssue) -> str:
    text = f"{issue.field}: {issue.message}"
    if issue.suggested_fix:
        text += f" ({issue.suggested_fix})"
    return text


class NotFoundError(LedgerError, LookupError):
    """The targeted expense or tag does not exist."""

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class ConflictError(LedgerError):
    """A tag cannot be deleted while expenses still reference it."""

    def __init__(
        self,
        tag_id: str,
        expense_ids: list[str],
        message: Optional[str] = None,
    ):
        self.tag_id = tag_id
        self.expense_ids = list(expense_ids)
        super().__init__(
            message
            or f"Tag {tag_id} is used by {len(self.expense_ids)} expense(s) and cannot be deleted"
        )


class PersistenceWarning(UserWarning):
    """The durable store could not be read or written."""
    pass
