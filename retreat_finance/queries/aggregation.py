"""
Aggregation Engine

DESIGN DECISION: Aggregation is a pure read-side component.
It never mutates anything and never caches: every call recomputes from
the durable store.

Each public method opens ONE read transaction and computes everything it
returns inside it, so a result can never mix data from before and after a
concurrent write (e.g. averages over events that include a half-deleted
one).

Sums are computed by the database over integer cents, so they are exact.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union
from uuid import UUID

from sqlalchemy import case, func, select, type_coerce
from sqlalchemy.ext.asyncio import AsyncSession

from retreat_finance.errors import NotFoundError
from retreat_finance.models.category import EntryKind
from retreat_finance.models.statistics import (
    ZERO,
    CategoryTotal,
    CrossEventStatistics,
    EventBalance,
    GlobalBalance,
)
from retreat_finance.services.storage import Database
from retreat_finance.services.storage.records import (
    CategoryRecord,
    EventRecord,
    Money,
    TransactionRecord,
)


CENT = Decimal("0.01")


def _money(value: Union[Decimal, int, None]) -> Decimal:
    if value is None:
        return ZERO
    return Decimal(value).quantize(CENT)


def _average(total: Decimal, count: int) -> Decimal:
    if count == 0:
        return ZERO
    return (total / count).quantize(CENT, rounding=ROUND_HALF_UP)


def _sum_of(kind: EntryKind):
    """SUM(amount) restricted to one kind, zero when nothing matches."""
    return type_coerce(
        func.coalesce(
            func.sum(
                case(
                    (TransactionRecord.kind == kind.value, TransactionRecord.amount),
                    else_=0,
                )
            ),
            0,
        ),
        Money(),
    )


class AggregationEngine:
    """
    Computes balances and statistics from ledger contents.

    GUARANTEES:
    - Only returns values derived from stored rows
    - One snapshot per call
    - An event with no transactions has a zero balance, not an error
    """

    def __init__(self, database: Database):
        self._database = database

    async def balance(self, event_id: UUID) -> EventBalance:
        """
        Income minus expense for one event.

        Raises:
            NotFoundError: If the event doesn't exist
        """
        async with self._database.session() as session:
            await self._require_event(session, event_id)
            return await self._event_balance(session, event_id)

    async def global_balance(self) -> GlobalBalance:
        """Balance summed over all events."""
        async with self._database.session() as session:
            stmt = select(
                _sum_of(EntryKind.INCOME).label("income"),
                _sum_of(EntryKind.EXPENSE).label("expense"),
                func.count(TransactionRecord.id).label("transactions"),
            )
            row = (await session.execute(stmt)).one()
            event_count = (
                await session.execute(select(func.count()).select_from(EventRecord))
            ).scalar_one()

        income = _money(row.income)
        expense = _money(row.expense)
        return GlobalBalance(
            total_income=income,
            total_expense=expense,
            balance=income - expense,
            transaction_count=row.transactions,
            event_count=event_count,
        )

    async def per_category_totals(
        self,
        event_id: Optional[UUID] = None,
        kind: Optional[EntryKind] = None,
    ) -> list[CategoryTotal]:
        """
        Summed amount per category, in category creation order.

        Only categories with at least one matching transaction appear.

        Args:
            event_id: Restrict to one event's transactions
            kind: Restrict to income or expense categories

        Raises:
            NotFoundError: If event_id is given and the event doesn't exist
        """
        async with self._database.session() as session:
            if event_id is not None:
                await self._require_event(session, event_id)
            return await self._category_totals(session, event_id, kind)

    async def top_expense_categories(
        self,
        limit: int = 5,
        event_id: Optional[UUID] = None,
    ) -> list[CategoryTotal]:
        """
        Expense categories ranked by total, largest first.

        Ties keep category creation order (the sort is stable).
        """
        totals = await self.per_category_totals(event_id=event_id, kind=EntryKind.EXPENSE)
        return self._rank(totals, limit)

    async def cross_event_statistics(self, top_limit: int = 5) -> CrossEventStatistics:
        """
        Averages over events that have at least one transaction.

        Events without transactions are left out entirely: one event at +50
        and one untouched event average to 50, not 25.
        """
        async with self._database.session() as session:
            per_event = await self._per_event_sums(session)
            expense_totals = await self._category_totals(session, None, EntryKind.EXPENSE)

        count = len(per_event)
        total_income = sum((income for income, _ in per_event), ZERO)
        total_expense = sum((expense for _, expense in per_event), ZERO)

        return CrossEventStatistics(
            events_with_transactions=count,
            average_balance=_average(total_income - total_expense, count),
            average_income=_average(total_income, count),
            average_expense=_average(total_expense, count),
            top_expense_categories=self._rank(expense_totals, top_limit),
        )

    async def event_balances(self, limit: Optional[int] = None) -> list[EventBalance]:
        """
        Balances of events ordered by start date, most recent first.

        Used for "recent events" dashboards.
        """
        async with self._database.session() as session:
            stmt = (
                select(
                    EventRecord.id,
                    _sum_of(EntryKind.INCOME).label("income"),
                    _sum_of(EntryKind.EXPENSE).label("expense"),
                    func.count(TransactionRecord.id).label("transactions"),
                )
                .outerjoin(TransactionRecord, TransactionRecord.event_id == EventRecord.id)
                .group_by(EventRecord.id, EventRecord.starts_at, EventRecord.created_at)
                .order_by(EventRecord.starts_at.desc(), EventRecord.created_at.desc())
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = (await session.execute(stmt)).all()

        return [
            self._to_balance(row.id, row.income, row.expense, row.transactions)
            for row in rows
        ]

    # -- helpers ----------------------------------------------------------

    async def _require_event(self, session: AsyncSession, event_id: UUID) -> None:
        if await session.get(EventRecord, event_id) is None:
            raise NotFoundError("event", event_id)

    async def _event_balance(self, session: AsyncSession, event_id: UUID) -> EventBalance:
        stmt = select(
            _sum_of(EntryKind.INCOME).label("income"),
            _sum_of(EntryKind.EXPENSE).label("expense"),
            func.count(TransactionRecord.id).label("transactions"),
        ).where(TransactionRecord.event_id == event_id)
        row = (await session.execute(stmt)).one()
        return self._to_balance(event_id, row.income, row.expense, row.transactions)

    async def _per_event_sums(self, session: AsyncSession) -> list[tuple[Decimal, Decimal]]:
        """(income, expense) for every event that has transactions."""
        stmt = select(
            TransactionRecord.event_id,
            _sum_of(EntryKind.INCOME).label("income"),
            _sum_of(EntryKind.EXPENSE).label("expense"),
        ).group_by(TransactionRecord.event_id)
        rows = (await session.execute(stmt)).all()
        return [(_money(row.income), _money(row.expense)) for row in rows]

    async def _category_totals(
        self,
        session: AsyncSession,
        event_id: Optional[UUID],
        kind: Optional[EntryKind],
    ) -> list[CategoryTotal]:
        stmt = (
            select(
                CategoryRecord.id,
                CategoryRecord.name,
                CategoryRecord.kind,
                CategoryRecord.color,
                type_coerce(func.sum(TransactionRecord.amount), Money()).label("total"),
                func.count(TransactionRecord.id).label("transactions"),
            )
            .join(TransactionRecord, TransactionRecord.category_id == CategoryRecord.id)
            .group_by(
                CategoryRecord.id,
                CategoryRecord.name,
                CategoryRecord.kind,
                CategoryRecord.color,
                CategoryRecord.created_at,
            )
            .order_by(CategoryRecord.created_at, CategoryRecord.id)
        )
        if event_id is not None:
            stmt = stmt.where(TransactionRecord.event_id == event_id)
        if kind is not None:
            stmt = stmt.where(CategoryRecord.kind == kind.value)

        rows = (await session.execute(stmt)).all()
        return [
            CategoryTotal(
                category_id=row.id,
                name=row.name,
                kind=EntryKind(row.kind),
                color=row.color,
                total=_money(row.total),
                transaction_count=row.transactions,
            )
            for row in rows
        ]

    @staticmethod
    def _rank(totals: list[CategoryTotal], limit: int) -> list[CategoryTotal]:
        return sorted(totals, key=lambda item: item.total, reverse=True)[:limit]

    @staticmethod
    def _to_balance(
        event_id: UUID,
        income: Optional[Decimal],
        expense: Optional[Decimal],
        transactions: int,
    ) -> EventBalance:
        income = _money(income)
        expense = _money(expense)
        return EventBalance(
            event_id=event_id,
            total_income=income,
            total_expense=expense,
            balance=income - expense,
            transaction_count=transactions,
        )
