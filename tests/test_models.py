"""
Tests for Retreat Finance models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for stores, aggregation and the gateway against a
   throwaway SQLite file
3. No shared state between tests (fresh database per test)
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from retreat_finance.errors import (
    DuplicateError,
    NotFoundError,
    ValidationError,
)
from retreat_finance.models.category import (
    CategoryDraft,
    CategoryUpdate,
    EntryKind,
    natural_key,
)
from retreat_finance.models.event import EventDraft, EventState, EventUpdate
from retreat_finance.models.transaction import TransactionDraft
from retreat_finance.models.statistics import CategoryTotal, EventBalance
from retreat_finance.models.validation import ValidationIssue
from retreat_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


START = datetime(2025, 6, 1, 10, 0, tzinfo=timezone.utc)


class TestCategoryModels:
    """Tests for category models."""

    def test_category_draft_creation(self):
        """Test CategoryDraft model creation."""
        draft = CategoryDraft(name="Food", kind=EntryKind.EXPENSE, color="#FF8800")
        assert draft.name == "Food"
        assert draft.kind == EntryKind.EXPENSE

    def test_category_draft_strips_whitespace(self):
        """Test that whitespace is stripped from the name."""
        draft = CategoryDraft(name="  Food  ", kind="expense", color="#ff8800")
        assert draft.name == "Food"

    def test_category_draft_rejects_bad_color(self):
        """Test that colors must be #RRGGBB."""
        for color in ("red", "#FFF", "FF8800", "#GG0000"):
            with pytest.raises(ValueError):
                CategoryDraft(name="Food", kind=EntryKind.EXPENSE, color=color)

    def test_category_draft_rejects_empty_name(self):
        """Test that a blank name is rejected after stripping."""
        with pytest.raises(ValueError):
            CategoryDraft(name="   ", kind=EntryKind.INCOME, color="#000000")

    def test_category_draft_rejects_unknown_kind(self):
        """Test that only income and expense are accepted."""
        with pytest.raises(ValueError):
            CategoryDraft(name="Gift", kind="donation", color="#000000")

    def test_category_update_tracks_set_fields(self):
        """Test that partial updates only report explicitly set fields."""
        update = CategoryUpdate(color="#123456")
        assert update.model_fields_set == {"color"}
        assert update.model_dump(exclude_unset=True) == {"color": "#123456"}

    def test_category_update_rejects_unknown_fields(self):
        """Test that misspelled fields are rejected instead of ignored."""
        with pytest.raises(ValueError, match="colour"):
            CategoryUpdate(colour="#123456")

    def test_natural_key_folds_case_beyond_ascii(self):
        """Test the comparison key for category names."""
        assert natural_key("  ALIMENTACIÓN ") == "alimentación"
        assert natural_key("Straße") == natural_key("STRASSE")


class TestEventModels:
    """Tests for event models."""

    def test_event_draft_creation(self):
        """Test EventDraft model creation."""
        draft = EventDraft(
            name="Summer Retreat",
            starts_at=START,
            ends_at=START + timedelta(days=3),
            participant_count=12,
        )
        assert draft.name == "Summer Retreat"
        assert draft.description is None
        assert draft.location is None

    def test_event_draft_end_must_follow_start(self):
        """Test that the end date must be strictly after the start."""
        with pytest.raises(ValueError, match="End date must be after start date"):
            EventDraft(
                name="Backwards",
                starts_at=START,
                ends_at=START,
                participant_count=5,
            )

    def test_event_draft_requires_participants(self):
        """Test that participant_count must be at least 1."""
        with pytest.raises(ValueError):
            EventDraft(
                name="Empty",
                starts_at=START,
                ends_at=START + timedelta(hours=1),
                participant_count=0,
            )

    def test_event_draft_naive_datetimes_are_utc(self):
        """Test that naive datetimes are interpreted as UTC."""
        draft = EventDraft(
            name="Naive",
            starts_at=datetime(2025, 6, 1, 10, 0),
            ends_at="2025-06-02T10:00:00",
            participant_count=3,
        )
        assert draft.starts_at == START
        assert draft.ends_at.tzinfo is not None

    def test_event_draft_converts_offsets_to_utc(self):
        """Test that aware datetimes are converted to UTC."""
        draft = EventDraft(
            name="Offset",
            starts_at="2025-06-01T12:00:00+02:00",
            ends_at="2025-06-01T18:00:00+02:00",
            participant_count=3,
        )
        assert draft.starts_at == START
        assert draft.starts_at.utcoffset() == timedelta(0)

    def test_event_draft_length_limits(self):
        """Test name and description length limits."""
        with pytest.raises(ValueError):
            EventDraft(
                name="x" * 201,
                starts_at=START,
                ends_at=START + timedelta(days=1),
                participant_count=1,
            )
        with pytest.raises(ValueError):
            EventDraft(
                name="Long description",
                description="x" * 501,
                starts_at=START,
                ends_at=START + timedelta(days=1),
                participant_count=1,
            )

    def test_event_update_rejects_unknown_fields(self):
        """Test that unsupported fields (state included) are rejected."""
        for field in ("participants", "state"):
            with pytest.raises(ValueError):
                EventUpdate(**{field: 1})

    def test_event_state_values(self):
        """Test event state string values."""
        assert EventState.PLANNING.value == "planning"
        assert EventState.ACTIVE.value == "active"
        assert EventState.FINISHED.value == "finished"


class TestTransactionModels:
    """Tests for transaction models."""

    def _draft(self, **overrides):
        data = {
            "event_id": uuid4(),
            "category_id": uuid4(),
            "kind": "expense",
            "amount": "42.50",
            "description": "Groceries",
        }
        data.update(overrides)
        return TransactionDraft(**data)

    def test_transaction_draft_creation(self):
        """Test TransactionDraft coerces strings to Decimal and enums."""
        draft = self._draft()
        assert draft.amount == Decimal("42.50")
        assert draft.kind == EntryKind.EXPENSE

    def test_transaction_draft_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        for amount in ("0", "-5.00"):
            with pytest.raises(ValueError):
                self._draft(amount=amount)

    def test_transaction_draft_rejects_sub_cent_amount(self):
        """Test that amounts are limited to two decimal places."""
        with pytest.raises(ValueError):
            self._draft(amount="1.005")

    def test_transaction_draft_requires_description(self):
        """Test that the description can't be blank."""
        with pytest.raises(ValueError):
            self._draft(description="  ")


class TestStatisticsModels:
    """Tests for statistics models."""

    def test_event_balance_defaults_to_zero(self):
        """Test that an empty balance is all zeros."""
        balance = EventBalance(event_id=uuid4())
        assert balance.total_income == Decimal("0.00")
        assert balance.balance == Decimal("0.00")
        assert balance.transaction_count == 0

    def test_category_total_requires_transactions(self):
        """Test that a category total always covers at least one row."""
        with pytest.raises(ValueError):
            CategoryTotal(
                category_id=uuid4(),
                name="Food",
                kind=EntryKind.EXPENSE,
                color="#000000",
                total=Decimal("0.00"),
                transaction_count=0,
            )


class TestErrors:
    """Tests for the error taxonomy."""

    def test_validation_error_from_issues(self):
        """Test that issues are folded into the detail message."""
        error = ValidationError.from_issues([
            ValidationIssue(field="name", issue_type="missing", message="required"),
            ValidationIssue(field="color", issue_type="pattern", message="bad color"),
        ])
        assert error.detail == "name: required; color: bad color"
        assert len(error.issues) == 2
        assert error.code == "validation_error"

    def test_duplicate_is_a_validation_error(self):
        """Test that duplicates are classified as validation errors."""
        error = DuplicateError("taken")
        assert isinstance(error, ValidationError)
        assert error.code == "duplicate"

    def test_not_found_message(self):
        """Test NotFoundError carries the entity and id."""
        entity_id = uuid4()
        error = NotFoundError("event", entity_id)
        assert error.entity == "event"
        assert error.entity_id == entity_id
        assert str(error) == f"Event not found: {entity_id}"


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            description="Category created",
        )
        assert event.event_type == AuditEventType.CATEGORY_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            description="Transaction recorded",
            details={"kind": "expense", "amount": "12.00"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "transaction_created"
        assert log_dict["details"]["amount"] == "12.00"

    def test_audit_event_builder_event_deleted(self):
        """Test AuditEventBuilder.event_deleted."""
        event_id = uuid4()
        correlation_id = uuid4()

        event = AuditEventBuilder.event_deleted(
            event_id=event_id,
            transactions_removed=4,
            correlation_id=correlation_id,
        )

        assert event.event_type == AuditEventType.EVENT_DELETED
        assert event.entity_id == event_id
        assert event.correlation_id == correlation_id
        assert event.details["transactions_removed"] == 4

    def test_audit_event_builder_write_rejected(self):
        """Test AuditEventBuilder.write_rejected."""
        event = AuditEventBuilder.write_rejected(
            operation="delete_category",
            error_code="referential_conflict",
            error_message="still referenced",
        )

        assert event.event_type == AuditEventType.WRITE_REJECTED
        assert event.severity == AuditSeverity.WARNING
        assert event.error_code == "referential_conflict"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
