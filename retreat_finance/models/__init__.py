"""
Data Models Package

This package contains all Pydantic models used in the Retreat Finance core.
Every value crossing the gateway boundary conforms to one of these schemas.
"""

from retreat_finance.models.category import (
    Category,
    CategoryDraft,
    CategoryUpdate,
    EntryKind,
)
from retreat_finance.models.event import (
    Event,
    EventDraft,
    EventState,
    EventUpdate,
)
from retreat_finance.models.transaction import (
    Transaction,
    TransactionDraft,
)
from retreat_finance.models.statistics import (
    CategoryTotal,
    CrossEventStatistics,
    EventBalance,
    GlobalBalance,
)
from retreat_finance.models.validation import ValidationIssue
from retreat_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Category models
    "Category",
    "CategoryDraft",
    "CategoryUpdate",
    "EntryKind",
    # Event models
    "Event",
    "EventDraft",
    "EventState",
    "EventUpdate",
    # Transaction models
    "Transaction",
    "TransactionDraft",
    # Statistics models
    "CategoryTotal",
    "CrossEventStatistics",
    "EventBalance",
    "GlobalBalance",
    # Validation
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
