"""
Transaction Models

A transaction is a single monetary movement tied to exactly one event and
one category. Transactions are immutable once created; they can only be
deleted (individually or through the owning event).
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from retreat_finance.models.category import EntryKind


class TransactionDraft(BaseModel):
    """
    Fields a user supplies to record a transaction.

    NOTE: kind/category agreement is a cross-entity rule and is checked by
    the gateway, not here.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    event_id: UUID = Field(
        ...,
        description="Owning event"
    )
    category_id: UUID = Field(
        ...,
        description="Category the movement is filed under"
    )
    kind: EntryKind = Field(
        ...,
        description="Income or expense"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        decimal_places=2,
        description="Amount, strictly positive, cents precision"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="What the money was for"
    )


class Transaction(BaseModel):
    """A persisted transaction."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_id: UUID
    category_id: UUID
    kind: EntryKind
    amount: Decimal
    description: str
    created_at: datetime
    updated_at: datetime
