"""
Two-Stage Draft Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence
- Types and formats (amount is a finite number, color is hex)
- Ranges (amount in (0, 1,000,000])
- This is the pydantic model of the draft

STAGE 2 - LEDGER VALIDATION:
- The referenced tag exists in the ledger
- The expense date is not in the future
- This needs ledger state, so it cannot live in the model

Forms in the presentation layer validate too, but they are an untrusted
boundary: every draft is re-validated here before it reaches the store.

IMPORTANT: Validation NEVER silently fixes issues beyond whitespace
trimming and color case. It reports them.
"""

from collections.abc import Callable, Container, Mapping
from datetime import date, timedelta
from typing import Any, Union

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from expense_ledger.errors import ValidationError
from expense_ledger.models.ledger import (
    MAX_EXPENSE_AMOUNT,
    ExpenseDraft,
    TagDraft,
    ValidationIssue,
)


ExpenseInput = Union[ExpenseDraft, Mapping[str, Any]]
TagInput = Union[TagDraft, Mapping[str, Any]]

# Wire aliases map back to the field names callers see in errors.
_FIELD_NAMES = {"tagId": "tag_id"}

# Order in which issues are reported, so `ValidationError.field` is stable.
_FIELD_ORDER = ["name", "amount", "date", "tag_id", "color", "month"]

_ISSUE_MESSAGES = {
    "missing": "{field} is required",
    "string_too_short": "{field} must not be empty",
    "greater_than": "{field} must be greater than zero",
    "less_than_equal": f"{{field}} must be at most {MAX_EXPENSE_AMOUNT:,}",
    "finite_number": "{field} must be a finite number",
}


class LedgerValidator:
    """
    Validates expense and tag drafts through a two-stage pipeline.

    Stage 1: Schema validation (no ledger state needed)
    Stage 2: Ledger validation (tag existence, future dates)
    """

    def __init__(
        self,
        today: Callable[[], date] = date.today,
        future_date_tolerance_days: int = 0,
    ):
        """
        Args:
            today: Clock used for the future-date check.
            future_date_tolerance_days: Days past today an expense may be dated.
        """
        self._today = today
        self._future_tolerance = timedelta(days=future_date_tolerance_days)

    def validate_expense(
        self,
        draft: ExpenseInput,
        tag_ids: Container[str],
    ) -> ExpenseDraft:
        """
        Run the full pipeline for an expense draft.

        Args:
            draft: An ExpenseDraft or a mapping of its fields
            tag_ids: IDs of the tags currently in the ledger

        Returns:
            A validated ExpenseDraft

        Raises:
            ValidationError: naming every violated field
        """
        parsed, issues = self._validate_schema(ExpenseDraft, draft)
        if parsed is None:
            raise ValidationError(issues)

        issues = self._validate_expense_semantics(parsed, tag_ids)
        if issues:
            raise ValidationError(issues)
        return parsed

    def validate_tag(self, draft: TagInput) -> TagDraft:
        """
        Validate a tag draft (name non-empty, color well-formed).

        Raises:
            ValidationError: naming every violated field
        """
        parsed, issues = self._validate_schema(TagDraft, draft)
        if parsed is None:
            raise ValidationError(issues)
        return parsed

    def validate_month(self, month: date) -> date:
        """
        Normalize a month marker to the first of its month.

        Months starting after today cannot be viewed.
        """
        first = month.replace(day=1)
        if first > self._today():
            raise ValidationError.for_field(
                "month",
                "future_month",
                f"Cannot navigate to {first:%B %Y}: it has not started yet",
            )
        return first

    def _validate_schema(
        self,
        model: type[BaseModel],
        draft: Union[BaseModel, Mapping[str, Any]],
    ) -> tuple[Any, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (parsed_draft_or_None, list_of_issues)
        """
        if isinstance(draft, BaseModel):
            # Re-validate even typed drafts: model_construct() skips validation.
            draft = draft.model_dump(by_alias=True)
        if not isinstance(draft, Mapping):
            return None, [ValidationIssue(
                field="draft",
                issue_type="invalid_type",
                message=f"Expected a mapping of fields, got {type(draft).__name__}",
            )]

        try:
            return model.model_validate(dict(draft)), []
        except PydanticValidationError as e:
            return None, self._issues_from_pydantic(e)

    def _validate_expense_semantics(
        self,
        draft: ExpenseDraft,
        tag_ids: Container[str],
    ) -> list[ValidationIssue]:
        """
        Stage 2: Ledger validation.

        Checks:
        - Referenced tag exists
        - Date not in the future (with tolerance)
        """
        issues = []

        latest_allowed = self._today() + self._future_tolerance
        if draft.date > latest_allowed:
            issues.append(ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Expense date ({draft.date}) is in the future",
                suggested_fix="Pick today or an earlier day",
            ))

        if draft.tag_id not in tag_ids:
            issues.append(ValidationIssue(
                field="tag_id",
                issue_type="unknown_tag",
                message=f"Tag {draft.tag_id!r} does not exist",
                suggested_fix="Select an existing tag or create one first",
            ))

        return self._ordered(issues)

    def _issues_from_pydantic(
        self,
        error: PydanticValidationError,
    ) -> list[ValidationIssue]:
        issues = []
        seen = set()
        for detail in error.errors():
            loc = detail.get("loc") or ("draft",)
            field = _FIELD_NAMES.get(str(loc[0]), str(loc[0]))
            if field in seen:
                continue
            seen.add(field)

            issue_type = detail.get("type", "invalid")
            template = _ISSUE_MESSAGES.get(issue_type)
            if template:
                message = template.format(field=field.replace("_", " ").capitalize())
            else:
                message = detail.get("msg", "Invalid value")
            issues.append(ValidationIssue(
                field=field,
                issue_type=issue_type,
                message=message,
            ))
        return self._ordered(issues)

    @staticmethod
    def _ordered(issues: list[ValidationIssue]) -> list[ValidationIssue]:
        def rank(issue: ValidationIssue) -> int:
            try:
                return _FIELD_ORDER.index(issue.field)
            except ValueError:
                return len(_FIELD_ORDER)

        return sorted(issues, key=rank)
