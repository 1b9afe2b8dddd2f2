"""
SQLAlchemy schema for the retreat finance store.

Relationships:
    EventRecord    1--* TransactionRecord  (ON DELETE CASCADE)
    CategoryRecord 1--* TransactionRecord  (ON DELETE RESTRICT)

The referential rules live here, in the schema, so they hold even when a
concurrent writer slips in between an application-level check and the
write it guards.
"""

import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    TypeDecorator,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


CENT = Decimal("0.01")


class UTCDateTime(TypeDecorator):
    """
    Stores naive UTC, returns aware UTC.

    SQLite has no timezone support; without this, values written as aware
    datetimes would come back naive.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            value = value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class Money(TypeDecorator):
    """
    Decimal amounts stored as integer cents.

    Sums computed by the database stay exact, which REAL/NUMERIC columns
    on SQLite do not guarantee.
    """

    impl = Integer
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        cents = (Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(cents)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(int(value)) / 100).quantize(CENT)


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models."""

    pass


class CategoryRecord(Base):
    __tablename__ = "categories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    name_key: Mapped[str] = mapped_column(String(200), nullable=False)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    color: Mapped[str] = mapped_column(String(7), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("kind IN ('income', 'expense')", name="ck_categories_kind"),
        CheckConstraint("length(color) = 7 AND color LIKE '#%'", name="ck_categories_color"),
        Index("ix_categories_kind", "kind"),
        Index("ix_categories_name", "name"),
        Index("ix_categories_kind_name_key", "kind", "name_key"),
    )


class EventRecord(Base):
    __tablename__ = "events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    participant_count: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[str] = mapped_column(String(16), nullable=False, default="planning")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("participant_count > 0", name="ck_events_participants"),
        CheckConstraint(
            "state IN ('planning', 'active', 'finished')", name="ck_events_state"
        ),
        CheckConstraint("ends_at > starts_at", name="ck_events_dates"),
        Index("ix_events_state", "state"),
        Index("ix_events_starts_at", "starts_at"),
        Index("ix_events_name", "name"),
    )


class TransactionRecord(Base):
    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    event_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False,
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("kind IN ('income', 'expense')", name="ck_transactions_kind"),
        CheckConstraint("amount > 0", name="ck_transactions_amount"),
        Index("ix_transactions_event_id", "event_id"),
        Index("ix_transactions_category_id", "category_id"),
        Index("ix_transactions_event_kind", "event_id", "kind"),
        Index("ix_transactions_created_at", "created_at"),
    )
