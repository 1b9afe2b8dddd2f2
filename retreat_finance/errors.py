"""
Error Taxonomy

Every core operation either fully succeeds or raises exactly one of these.
Collaborators translate them into user-facing messages; the core's
contract ends at the classification plus a human-readable detail.
"""

from typing import Optional, Union
from uuid import UUID

from retreat_finance.models.validation import ValidationIssue


class RetreatFinanceError(Exception):
    """Base exception for the core."""

    code = "error"

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(RetreatFinanceError):
    """Malformed or out-of-range input. Nothing was persisted."""

    code = "validation_error"

    def __init__(
        self,
        detail: str,
        issues: Optional[list[ValidationIssue]] = None,
    ):
        super().__init__(detail)
        self.issues = issues or []

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> "ValidationError":
        detail = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        return cls(detail or "Invalid input", issues)


class DuplicateError(ValidationError):
    """A category with the same (name, kind) already exists."""

    code = "duplicate"


class NotFoundError(RetreatFinanceError):
    """A referenced id does not exist."""

    code = "not_found"

    def __init__(self, entity: str, entity_id: Union[UUID, str]):
        super().__init__(f"{entity.capitalize()} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class ReferentialConflictError(RetreatFinanceError):
    """A write was refused because other records still reference the target."""

    code = "referential_conflict"


class StorageError(RetreatFinanceError):
    """The durable store failed (connectivity, disk, unclassified constraint)."""

    code = "storage_failure"
