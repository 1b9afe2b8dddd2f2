"""
Two-Stage Input Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Type checking and coercion (ids, enums, decimals, datetimes)
- Required field presence
- Length and range limits
- This catches malformed input from collaborators

STAGE 2 - SEMANTIC VALIDATION:
- Policy limits (maximum transaction amount)
- Cross-entity agreement (transaction kind == category kind)
- This catches well-formed but unacceptable input

Pydantic errors never leave this module: they are converted into our own
ValidationError carrying one ValidationIssue per failing field.

IMPORTANT: Validation NEVER silently fixes issues (whitespace stripping
aside). It reports them.
"""

from enum import Enum
from typing import Any, Optional, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from retreat_finance.config import AppSettings, get_settings
from retreat_finance.errors import ValidationError
from retreat_finance.models.category import Category, CategoryDraft
from retreat_finance.models.event import EventDraft
from retreat_finance.models.transaction import TransactionDraft
from retreat_finance.models.validation import ValidationIssue


ModelT = TypeVar("ModelT", bound=BaseModel)
EnumT = TypeVar("EnumT", bound=Enum)


def _issues_from_pydantic(
    exc: PydanticValidationError,
    model_name: str,
) -> list[ValidationIssue]:
    issues = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or model_name
        issues.append(ValidationIssue(
            field=field,
            issue_type=error["type"],
            message=error["msg"],
        ))
    return issues


def parse_model(model_cls: type[ModelT], data: dict[str, Any]) -> ModelT:
    """
    Stage 1 for any input model.

    Raises:
        ValidationError: with one issue per failing field
    """
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError.from_issues(
            _issues_from_pydantic(e, model_cls.__name__)
        ) from e


def merge_changes(
    model_cls: type[ModelT],
    current: BaseModel,
    changes: BaseModel,
) -> ModelT:
    """
    Apply the explicitly-set fields of a partial update to the current
    record and validate the result as a full draft.

    This is how updates get "the same constraints as create".
    """
    merged = current.model_dump(include=set(model_cls.model_fields))
    merged.update(changes.model_dump(exclude_unset=True))
    return parse_model(model_cls, merged)


def parse_id(value: Union[UUID, str], field: str = "id") -> UUID:
    """Accept a UUID or its string form."""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError as e:
        raise ValidationError.from_issues([ValidationIssue(
            field=field,
            issue_type="invalid_id",
            message=f"Not a valid identifier: {value!r}",
        )]) from e


def parse_enum(enum_cls: type[EnumT], value: Union[EnumT, str], field: str) -> EnumT:
    """Accept an enum member or its (case-insensitive) value."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError as e:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError.from_issues([ValidationIssue(
            field=field,
            issue_type="invalid_choice",
            message=f"{value!r} is not one of: {allowed}",
        )]) from e


class EntryValidator:
    """
    Validates user input for categories, events and transactions.

    Stage 1: Schema validation (no storage needed)
    Stage 2: Semantic validation (needs the referenced category, which the
             gateway loads inside its write transaction)
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def validate_category(self, data: dict[str, Any]) -> CategoryDraft:
        return parse_model(CategoryDraft, data)

    def validate_event(self, data: dict[str, Any]) -> EventDraft:
        return parse_model(EventDraft, data)

    def validate_transaction(
        self,
        data: dict[str, Any],
        category: Optional[Category] = None,
    ) -> TransactionDraft:
        """
        Run both stages for a transaction.

        Args:
            data: Raw transaction fields
            category: The category the transaction is filed under. When
                      given, its kind must match the transaction kind.

        Raises:
            ValidationError: with every issue found
        """
        draft = parse_model(TransactionDraft, data)

        issues = self._validate_semantic(draft, category)
        if issues:
            raise ValidationError.from_issues(issues)
        return draft

    def _validate_semantic(
        self,
        draft: TransactionDraft,
        category: Optional[Category],
    ) -> list[ValidationIssue]:
        """
        Stage 2: Semantic validation.

        Checks:
        - Amount does not exceed the policy limit
        - Kind agrees with the category kind
        """
        issues = []

        max_amount = self._settings.max_transaction_amount
        if draft.amount > max_amount:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="above_limit",
                message=f"Amount {draft.amount} exceeds the limit of {max_amount}",
                suggested_fix="Split the movement into several transactions",
            ))

        if category is not None and category.kind != draft.kind:
            issues.append(ValidationIssue(
                field="kind",
                issue_type="kind_mismatch",
                message=(
                    f"Transaction kind '{draft.kind.value}' does not match "
                    f"category '{category.name}' kind '{category.kind.value}'"
                ),
                suggested_fix="Pick a category of the same kind",
            ))

        return issues
