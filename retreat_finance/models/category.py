"""
Category Models

A category is a labeled Income or Expense classification with a display
color. Categories are shared across events and referenced (never owned)
by transactions.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


def natural_key(name: str) -> str:
    """
    Comparison key for category names.

    casefold() rather than lower(): "ALIMENTACIÓN" and "alimentación" are
    the same category. The key is computed here, never by the database,
    whose lower() only folds ASCII.
    """
    return name.strip().casefold()


class EntryKind(str, Enum):
    """
    Direction of money.

    Shared by categories and transactions: a transaction's kind must
    always equal the kind of the category it is filed under.
    """
    INCOME = "income"
    EXPENSE = "expense"


class CategoryDraft(BaseModel):
    """Fields a user supplies to create a category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Category name"
    )
    kind: EntryKind = Field(
        ...,
        description="Income or expense"
    )
    color: str = Field(
        ...,
        pattern=HEX_COLOR_PATTERN,
        description="Display color as #RRGGBB"
    )


class CategoryUpdate(BaseModel):
    """
    Partial update for a category.

    Only fields explicitly set are applied; the merged result is validated
    again as a CategoryDraft. Unknown fields are rejected.
    """
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    kind: Optional[EntryKind] = None
    color: Optional[str] = Field(default=None, pattern=HEX_COLOR_PATTERN)


class Category(BaseModel):
    """A persisted category."""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    kind: EntryKind
    color: str
    created_at: datetime
    updated_at: datetime
