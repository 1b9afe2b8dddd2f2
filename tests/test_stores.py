"""
Tests for the SQL stores and the database layer.

These talk to the stores directly (no gateway) so schema-level guarantees
are checked on their own: cascade, restrict and rollback.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from retreat_finance.errors import (
    NotFoundError,
    ReferentialConflictError,
    StorageError,
    ValidationError,
)
from retreat_finance.models.category import CategoryDraft, CategoryUpdate, EntryKind
from retreat_finance.models.event import EventDraft, EventState, EventUpdate
from retreat_finance.models.transaction import TransactionDraft
from retreat_finance.services.storage import (
    SqlCategoryStore,
    SqlEventStore,
    SqlTransactionStore,
)


START = datetime(2025, 9, 1, 8, 0, tzinfo=timezone.utc)


def _event_draft(name="Retreat", offset_days=0):
    starts_at = START + timedelta(days=offset_days)
    return EventDraft(
        name=name,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(days=2),
        participant_count=10,
    )


async def _seed(database):
    """One event, one expense category, two transactions."""
    async with database.transaction() as session:
        event = await SqlEventStore(session).create(_event_draft())
        category = await SqlCategoryStore(session).create(
            CategoryDraft(name="Food", kind=EntryKind.EXPENSE, color="#AA0000")
        )
        ledger = SqlTransactionStore(session)
        for amount in ("10.00", "15.50"):
            await ledger.create(TransactionDraft(
                event_id=event.id,
                category_id=category.id,
                kind=EntryKind.EXPENSE,
                amount=Decimal(amount),
                description="Snacks",
            ))
    return event, category


class TestDatabase:
    """Tests for the pooled database wrapper."""

    @pytest.mark.asyncio
    async def test_ping(self, database):
        """Test the connectivity check."""
        assert await database.ping() is True

    @pytest.mark.asyncio
    async def test_create_schema_is_idempotent(self, database):
        """Test that creating the schema twice is harmless."""
        await database.create_schema()
        assert await database.ping() is True

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, database):
        """Test that nothing from a failed write block is kept."""
        with pytest.raises(RuntimeError):
            async with database.transaction() as session:
                await SqlEventStore(session).create(_event_draft())
                raise RuntimeError("boom")

        async with database.session() as session:
            assert await SqlEventStore(session).list() == []


class TestSqlCategoryStore:
    """Tests for the category store."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, database):
        """Test that a created category can be read back."""
        async with database.transaction() as session:
            created = await SqlCategoryStore(session).create(
                CategoryDraft(name="Fees", kind=EntryKind.INCOME, color="#00AA00")
            )

        async with database.session() as session:
            fetched = await SqlCategoryStore(session).get(created.id)

        assert fetched.name == "Fees"
        assert fetched.kind == EntryKind.INCOME
        assert fetched.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_get_unknown_raises_not_found(self, database):
        """Test NotFoundError for an unknown id."""
        async with database.session() as session:
            with pytest.raises(NotFoundError):
                await SqlCategoryStore(session).get(uuid4())

    @pytest.mark.asyncio
    async def test_list_filters_and_orders(self, database):
        """Test listing by kind, ordered by name."""
        async with database.transaction() as session:
            store = SqlCategoryStore(session)
            await store.create(CategoryDraft(name="Transport", kind="expense", color="#000001"))
            await store.create(CategoryDraft(name="Donations", kind="income", color="#000002"))
            await store.create(CategoryDraft(name="Food", kind="expense", color="#000003"))

        async with database.session() as session:
            store = SqlCategoryStore(session)
            expenses = await store.list(EntryKind.EXPENSE)
            everything = await store.list()
            count = await store.count(EntryKind.INCOME)

        assert [c.name for c in expenses] == ["Food", "Transport"]
        assert len(everything) == 3
        assert count == 1

    @pytest.mark.asyncio
    async def test_find_by_natural_key_ignores_case(self, database):
        """Test that natural key lookup is case-insensitive and kind-scoped."""
        async with database.transaction() as session:
            await SqlCategoryStore(session).create(
                CategoryDraft(name="Food", kind=EntryKind.EXPENSE, color="#AA0000")
            )

        async with database.session() as session:
            store = SqlCategoryStore(session)
            assert await store.find_by_natural_key("FOOD", EntryKind.EXPENSE) is not None
            assert await store.find_by_natural_key("Food", EntryKind.INCOME) is None

    @pytest.mark.asyncio
    async def test_find_by_natural_key_folds_accents_case(self, database):
        """Test that uppercase non-ASCII letters match their lowercase form."""
        async with database.transaction() as session:
            await SqlCategoryStore(session).create(
                CategoryDraft(name="ALIMENTACIÓN", kind=EntryKind.EXPENSE, color="#AA0000")
            )

        async with database.session() as session:
            store = SqlCategoryStore(session)
            assert await store.find_by_natural_key("ALIMENTACIÓN", EntryKind.EXPENSE)
            assert await store.find_by_natural_key(" alimentación ", EntryKind.EXPENSE)

    @pytest.mark.asyncio
    async def test_rename_updates_natural_key(self, database):
        """Test that lookups follow a rename."""
        async with database.transaction() as session:
            store = SqlCategoryStore(session)
            category = await store.create(
                CategoryDraft(name="Food", kind=EntryKind.EXPENSE, color="#AA0000")
            )
            await store.update(category.id, CategoryUpdate(name="Cocina"))

        async with database.session() as session:
            store = SqlCategoryStore(session)
            assert await store.find_by_natural_key("COCINA", EntryKind.EXPENSE)
            assert await store.find_by_natural_key("food", EntryKind.EXPENSE) is None

    @pytest.mark.asyncio
    async def test_update_applies_only_given_fields(self, database):
        """Test partial update."""
        async with database.transaction() as session:
            store = SqlCategoryStore(session)
            category = await store.create(
                CategoryDraft(name="Food", kind=EntryKind.EXPENSE, color="#AA0000")
            )
            updated = await store.update(category.id, CategoryUpdate(color="#BB0000"))

        assert updated.name == "Food"
        assert updated.color == "#BB0000"
        assert updated.updated_at >= category.updated_at

    @pytest.mark.asyncio
    async def test_delete_referenced_category_is_restricted(self, database):
        """Test that the schema refuses to delete a referenced category."""
        _, category = await _seed(database)

        with pytest.raises(ReferentialConflictError):
            async with database.transaction() as session:
                await SqlCategoryStore(session).delete(category.id)

        async with database.session() as session:
            assert await SqlCategoryStore(session).get(category.id)

    @pytest.mark.asyncio
    async def test_delete_unreferenced_category(self, database):
        """Test that an unused category can be deleted."""
        async with database.transaction() as session:
            store = SqlCategoryStore(session)
            category = await store.create(
                CategoryDraft(name="Spare", kind=EntryKind.INCOME, color="#123456")
            )
            await store.delete(category.id)

        async with database.session() as session:
            with pytest.raises(NotFoundError):
                await SqlCategoryStore(session).get(category.id)


class TestSqlEventStore:
    """Tests for the event store."""

    @pytest.mark.asyncio
    async def test_create_starts_in_planning(self, database):
        """Test that new events are in the planning state."""
        async with database.transaction() as session:
            event = await SqlEventStore(session).create(_event_draft())
        assert event.state == EventState.PLANNING

    @pytest.mark.asyncio
    async def test_list_most_recent_first(self, database):
        """Test ordering by start date and the state filter."""
        async with database.transaction() as session:
            store = SqlEventStore(session)
            await store.create(_event_draft("Old", offset_days=-30))
            newest = await store.create(_event_draft("New", offset_days=30))
            await store.create(_event_draft("Middle"))
            await store.set_state(newest.id, EventState.ACTIVE)

        async with database.session() as session:
            store = SqlEventStore(session)
            names = [e.name for e in await store.list()]
            active = await store.list(state=EventState.ACTIVE)
            limited = await store.list(limit=1)

        assert names == ["New", "Middle", "Old"]
        assert [e.name for e in active] == ["New"]
        assert [e.name for e in limited] == ["New"]

    @pytest.mark.asyncio
    async def test_update_preserves_date_order(self, database):
        """Test that an update can't move the end before the start."""
        async with database.transaction() as session:
            event = await SqlEventStore(session).create(_event_draft())

        with pytest.raises(ValidationError):
            async with database.transaction() as session:
                await SqlEventStore(session).update(
                    event.id, EventUpdate(ends_at=START - timedelta(days=1))
                )

    @pytest.mark.asyncio
    async def test_delete_cascades_to_transactions(self, database):
        """Test that deleting an event removes its transactions."""
        event, category = await _seed(database)

        async with database.transaction() as session:
            removed = await SqlEventStore(session).delete(event.id)

        assert removed == 2
        async with database.session() as session:
            assert await SqlTransactionStore(session).list() == []
            assert await SqlTransactionStore(session).count_for_category(category.id) == 0
            with pytest.raises(NotFoundError):
                await SqlEventStore(session).get(event.id)

    @pytest.mark.asyncio
    async def test_failed_cascade_rolls_back(self, database, monkeypatch):
        """Test that a failure mid-cascade leaves event and transactions intact."""
        event, _ = await _seed(database)
        original = SqlEventStore._delete_transactions

        async def failing_delete(self, event_id):
            await original(self, event_id)
            raise StorageError("disk full")

        monkeypatch.setattr(SqlEventStore, "_delete_transactions", failing_delete)

        with pytest.raises(StorageError):
            async with database.transaction() as session:
                await SqlEventStore(session).delete(event.id)

        async with database.session() as session:
            assert await SqlEventStore(session).get(event.id)
            assert await SqlTransactionStore(session).count_for_event(event.id) == 2


class TestSqlTransactionStore:
    """Tests for the transaction ledger."""

    @pytest.mark.asyncio
    async def test_amounts_round_trip_exactly(self, database):
        """Test that amounts come back as the same Decimal."""
        event, _ = await _seed(database)

        async with database.session() as session:
            amounts = [t.amount for t in await SqlTransactionStore(session).list(event.id)]

        assert sorted(amounts) == [Decimal("10.00"), Decimal("15.50")]

    @pytest.mark.asyncio
    async def test_create_with_unknown_event(self, database):
        """Test NotFoundError for a dangling event reference."""
        _, category = await _seed(database)

        with pytest.raises(NotFoundError):
            async with database.transaction() as session:
                await SqlTransactionStore(session).create(TransactionDraft(
                    event_id=uuid4(),
                    category_id=category.id,
                    kind=EntryKind.EXPENSE,
                    amount=Decimal("1.00"),
                    description="Orphan",
                ))

    @pytest.mark.asyncio
    async def test_delete(self, database):
        """Test deleting one transaction and deleting an unknown one."""
        event, _ = await _seed(database)

        async with database.session() as session:
            first = (await SqlTransactionStore(session).list(event.id))[0]

        async with database.transaction() as session:
            await SqlTransactionStore(session).delete(first.id)

        async with database.session() as session:
            assert await SqlTransactionStore(session).count_for_event(event.id) == 1

        with pytest.raises(NotFoundError):
            async with database.transaction() as session:
                await SqlTransactionStore(session).delete(first.id)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
