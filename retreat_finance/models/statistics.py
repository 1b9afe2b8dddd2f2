"""
Statistics Models

Read-side results produced by the aggregation engine. These are plain
values: computing them never mutates anything.
"""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from retreat_finance.models.category import EntryKind


ZERO = Decimal("0.00")


class EventBalance(BaseModel):
    """Income, expense and balance for a single event."""

    event_id: UUID
    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    balance: Decimal = Field(
        default=ZERO,
        description="total_income - total_expense"
    )
    transaction_count: int = Field(default=0, ge=0)


class GlobalBalance(BaseModel):
    """Balance summed over every event."""

    total_income: Decimal = ZERO
    total_expense: Decimal = ZERO
    balance: Decimal = ZERO
    transaction_count: int = Field(default=0, ge=0)
    event_count: int = Field(
        default=0,
        ge=0,
        description="Number of events in the store, with or without transactions"
    )


class CategoryTotal(BaseModel):
    """Summed amount of the transactions filed under one category."""

    category_id: UUID
    name: str
    kind: EntryKind
    color: str
    total: Decimal
    transaction_count: int = Field(ge=1)


class CrossEventStatistics(BaseModel):
    """
    Averages across events.

    Only events with at least one transaction take part, so an untouched
    event never drags the averages towards zero.
    """

    events_with_transactions: int = Field(default=0, ge=0)
    average_balance: Decimal = ZERO
    average_income: Decimal = ZERO
    average_expense: Decimal = ZERO
    top_expense_categories: list[CategoryTotal] = Field(default_factory=list)
