"""
Audit Models for Retreat Finance

Every write that goes through the gateway is logged for audit purposes.
This provides:
1. Traceability of who changed what, and when
2. Debugging information when a write is refused
3. A record of cascades (how many transactions an event deletion took)

DESIGN DECISION: Audit events are append-only log lines. They are never
stored in the same database as the ledger, so a rolled back write can
still be audited as a failure.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from retreat_finance.models.timestamps import utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"

    # Events
    EVENT_CREATED = "event_created"
    EVENT_UPDATED = "event_updated"
    EVENT_STATE_CHANGED = "event_state_changed"
    EVENT_DELETED = "event_deleted"

    # Ledger
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_DELETED = "transaction_deleted"

    # Failures
    WRITE_REJECTED = "write_rejected"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every gateway write creates at least one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique audit event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Classification
    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity ('category', 'event', 'transaction')"
    )
    entity_id: Optional[UUID] = None

    # Correlation - for tracking the steps of one compound operation
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

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
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.category_created(category_id, name, kind)
        event = AuditEventBuilder.event_deleted(event_id, removed, correlation_id)
    """

    @staticmethod
    def category_created(
        category_id: UUID,
        name: str,
        kind: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category created: {name} ({kind})",
            details={"name": name, "kind": kind},
        )

    @staticmethod
    def category_updated(
        category_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Category updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def category_deleted(
        category_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description="Category deleted",
        )

    @staticmethod
    def event_created(
        event_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EVENT_CREATED,
            entity_type="event",
            entity_id=event_id,
            correlation_id=correlation_id,
            description=f"Event created: {name}",
            details={"name": name},
        )

    @staticmethod
    def event_updated(
        event_id: UUID,
        changed_fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EVENT_UPDATED,
            entity_type="event",
            entity_id=event_id,
            correlation_id=correlation_id,
            description=f"Event updated: {', '.join(changed_fields) or 'no changes'}",
            details={"changed_fields": changed_fields},
        )

    @staticmethod
    def event_state_changed(
        event_id: UUID,
        previous_state: str,
        new_state: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EVENT_STATE_CHANGED,
            entity_type="event",
            entity_id=event_id,
            correlation_id=correlation_id,
            description=f"Event state changed: {previous_state} -> {new_state}",
            details={"previous_state": previous_state, "new_state": new_state},
        )

    @staticmethod
    def event_deleted(
        event_id: UUID,
        transactions_removed: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EVENT_DELETED,
            entity_type="event",
            entity_id=event_id,
            correlation_id=correlation_id,
            description=f"Event deleted with {transactions_removed} transactions",
            details={"transactions_removed": transactions_removed},
        )

    @staticmethod
    def transaction_created(
        transaction_id: UUID,
        event_id: UUID,
        kind: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {kind} {amount}",
            details={"event_id": str(event_id), "kind": kind, "amount": amount},
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
        )

    @staticmethod
    def write_rejected(
        operation: str,
        error_code: str,
        error_message: str,
        entity_id: Optional[UUID] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_id=entity_id,
            correlation_id=correlation_id,
            description=f"Write rejected: {operation}",
            details={"operation": operation},
            error_code=error_code,
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        operation: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error during {operation}",
            details=details or {},
            error_message=error_message,
        )
