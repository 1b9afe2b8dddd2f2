"""
SQL Storage Implementation

DESIGN DECISION: A relational store is used because the core's hardest
rules (cascade on event deletion, restrict on category deletion while
referenced) are exactly what foreign keys express declaratively. The
application-level checks in the gateway are optimizations and better
error messages; the constraints are the guarantee.

Each store wraps one AsyncSession opened by Database.session() or
Database.transaction(). Stores never commit: the caller's context does.
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from retreat_finance.errors import NotFoundError, ReferentialConflictError
from retreat_finance.models.category import (
    Category,
    CategoryDraft,
    CategoryUpdate,
    EntryKind,
    natural_key,
)
from retreat_finance.models.event import (
    Event,
    EventDraft,
    EventState,
    EventUpdate,
)
from retreat_finance.models.timestamps import utc_now
from retreat_finance.models.transaction import Transaction, TransactionDraft
from retreat_finance.services.storage.interface import (
    CategoryStorageInterface,
    EventStorageInterface,
    TransactionStorageInterface,
)
from retreat_finance.services.storage.records import (
    CategoryRecord,
    EventRecord,
    TransactionRecord,
)
from retreat_finance.validation import merge_changes


logger = structlog.get_logger(__name__)


class SqlCategoryStore(CategoryStorageInterface):
    """SQL implementation of the category store."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_record(self, category_id: UUID) -> CategoryRecord:
        record = await self._session.get(CategoryRecord, category_id)
        if record is None:
            raise NotFoundError("category", category_id)
        return record

    async def create(self, draft: CategoryDraft) -> Category:
        now = utc_now()
        record = CategoryRecord(
            id=uuid4(),
            name=draft.name,
            name_key=natural_key(draft.name),
            kind=draft.kind.value,
            color=draft.color,
            created_at=now,
            updated_at=now,
        )
        self._session.add(record)
        await self._session.flush()
        return Category.model_validate(record)

    async def list(self, kind: Optional[EntryKind] = None) -> list[Category]:
        stmt = select(CategoryRecord).order_by(
            CategoryRecord.name, CategoryRecord.created_at
        )
        if kind is not None:
            stmt = stmt.where(CategoryRecord.kind == kind.value)
        records = (await self._session.scalars(stmt)).all()
        return [Category.model_validate(record) for record in records]

    async def get(self, category_id: UUID) -> Category:
        return Category.model_validate(await self._get_record(category_id))

    async def find_by_natural_key(
        self,
        name: str,
        kind: EntryKind,
    ) -> Optional[Category]:
        stmt = select(CategoryRecord).where(
            CategoryRecord.name_key == natural_key(name),
            CategoryRecord.kind == kind.value,
        )
        record = (await self._session.scalars(stmt)).first()
        return Category.model_validate(record) if record else None

    async def update(self, category_id: UUID, changes: CategoryUpdate) -> Category:
        record = await self._get_record(category_id)
        merged = merge_changes(CategoryDraft, Category.model_validate(record), changes)

        record.name = merged.name
        record.name_key = natural_key(merged.name)
        record.kind = merged.kind.value
        record.color = merged.color
        record.updated_at = utc_now()
        await self._session.flush()
        return Category.model_validate(record)

    async def delete(self, category_id: UUID) -> None:
        await self._get_record(category_id)
        try:
            await self._session.execute(
                delete(CategoryRecord).where(CategoryRecord.id == category_id)
            )
        except IntegrityError as e:
            logger.info("category_delete_restricted", category_id=str(category_id))
            raise ReferentialConflictError(
                f"Category {category_id} is still referenced by transactions"
            ) from e

    async def count(self, kind: Optional[EntryKind] = None) -> int:
        stmt = select(func.count()).select_from(CategoryRecord)
        if kind is not None:
            stmt = stmt.where(CategoryRecord.kind == kind.value)
        return (await self._session.execute(stmt)).scalar_one()


class SqlEventStore(EventStorageInterface):
    """SQL implementation of the event store."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _get_record(self, event_id: UUID) -> EventRecord:
        record = await self._session.get(EventRecord, event_id)
        if record is None:
            raise NotFoundError("event", event_id)
        return record

    async def create(self, draft: EventDraft) -> Event:
        now = utc_now()
        record = EventRecord(
            id=uuid4(),
            name=draft.name,
            description=draft.description,
            starts_at=draft.starts_at,
            ends_at=draft.ends_at,
            location=draft.location,
            participant_count=draft.participant_count,
            state=EventState.PLANNING.value,
            created_at=now,
            updated_at=now,
        )
        self._session.add(record)
        await self._session.flush()
        return Event.model_validate(record)

    async def list(
        self,
        state: Optional[EventState] = None,
        limit: Optional[int] = None,
    ) -> list[Event]:
        stmt = select(EventRecord).order_by(
            EventRecord.starts_at.desc(), EventRecord.created_at.desc()
        )
        if state is not None:
            stmt = stmt.where(EventRecord.state == state.value)
        if limit is not None:
            stmt = stmt.limit(limit)
        records = (await self._session.scalars(stmt)).all()
        return [Event.model_validate(record) for record in records]

    async def get(self, event_id: UUID) -> Event:
        return Event.model_validate(await self._get_record(event_id))

    async def update(self, event_id: UUID, changes: EventUpdate) -> Event:
        record = await self._get_record(event_id)
        merged = merge_changes(EventDraft, Event.model_validate(record), changes)

        record.name = merged.name
        record.description = merged.description
        record.starts_at = merged.starts_at
        record.ends_at = merged.ends_at
        record.location = merged.location
        record.participant_count = merged.participant_count
        record.updated_at = utc_now()
        await self._session.flush()
        return Event.model_validate(record)

    async def set_state(self, event_id: UUID, state: EventState) -> Event:
        record = await self._get_record(event_id)
        record.state = state.value
        record.updated_at = utc_now()
        await self._session.flush()
        return Event.model_validate(record)

    async def _delete_transactions(self, event_id: UUID) -> int:
        result = await self._session.execute(
            delete(TransactionRecord).where(TransactionRecord.event_id == event_id)
        )
        return result.rowcount

    async def delete(self, event_id: UUID) -> int:
        await self._get_record(event_id)
        removed = await self._delete_transactions(event_id)
        await self._session.execute(
            delete(EventRecord).where(EventRecord.id == event_id)
        )
        logger.debug("event_rows_deleted", event_id=str(event_id), transactions=removed)
        return removed


class SqlTransactionStore(TransactionStorageInterface):
    """SQL implementation of the transaction ledger."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, draft: TransactionDraft) -> Transaction:
        if await self._session.get(EventRecord, draft.event_id) is None:
            raise NotFoundError("event", draft.event_id)
        if await self._session.get(CategoryRecord, draft.category_id) is None:
            raise NotFoundError("category", draft.category_id)

        now = utc_now()
        record = TransactionRecord(
            id=uuid4(),
            event_id=draft.event_id,
            category_id=draft.category_id,
            kind=draft.kind.value,
            amount=draft.amount,
            description=draft.description,
            created_at=now,
            updated_at=now,
        )
        self._session.add(record)
        try:
            await self._session.flush()
        except IntegrityError as e:
            # A referenced row vanished between the lookups and the insert.
            raise NotFoundError("event or category", f"{draft.event_id}/{draft.category_id}") from e
        return Transaction.model_validate(record)

    async def list(self, event_id: Optional[UUID] = None) -> list[Transaction]:
        stmt = select(TransactionRecord).order_by(
            TransactionRecord.created_at, TransactionRecord.id
        )
        if event_id is not None:
            stmt = stmt.where(TransactionRecord.event_id == event_id)
        records = (await self._session.scalars(stmt)).all()
        return [Transaction.model_validate(record) for record in records]

    async def get(self, transaction_id: UUID) -> Transaction:
        record = await self._session.get(TransactionRecord, transaction_id)
        if record is None:
            raise NotFoundError("transaction", transaction_id)
        return Transaction.model_validate(record)

    async def delete(self, transaction_id: UUID) -> None:
        result = await self._session.execute(
            delete(TransactionRecord).where(TransactionRecord.id == transaction_id)
        )
        if result.rowcount == 0:
            raise NotFoundError("transaction", transaction_id)

    async def count_for_event(self, event_id: UUID) -> int:
        stmt = select(func.count()).select_from(TransactionRecord).where(
            TransactionRecord.event_id == event_id
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def count_for_category(self, category_id: UUID) -> int:
        stmt = select(func.count()).select_from(TransactionRecord).where(
            TransactionRecord.category_id == category_id
        )
        return (await self._session.execute(stmt)).scalar_one()
