"""
Consistency Gateway for Retreat Finance

This module is the single entry point for every collaborator (CLI
commands, desktop command handlers, a future HTTP layer). It ties the
stores, the validator, the aggregation engine and the audit logger
together.

DESIGN DECISION: The gateway enforces the boundaries:
- Every write runs in ONE database transaction: all of it or none of it
- Cross-entity rules (transaction kind == category kind, no duplicate
  category names per kind) are checked here, not inside a store
- Every write is audited, including the ones that are refused
- Inputs are plain values (strings, numbers, datetimes); outputs are
  pydantic models. Transport encoding is the collaborator's business.
"""

from typing import Any, Optional, Union
from uuid import UUID

from retreat_finance.audit import AuditLogger, create_correlation_id
from retreat_finance.config import AppSettings, get_settings
from retreat_finance.errors import DuplicateError, ReferentialConflictError
from retreat_finance.models.audit import AuditEventBuilder
from retreat_finance.models.category import (
    Category,
    CategoryUpdate,
    EntryKind,
    natural_key,
)
from retreat_finance.models.event import Event, EventState, EventUpdate
from retreat_finance.models.statistics import (
    CategoryTotal,
    CrossEventStatistics,
    EventBalance,
    GlobalBalance,
)
from retreat_finance.models.transaction import Transaction
from retreat_finance.models.validation import ValidationIssue
from retreat_finance.queries import AggregationEngine
from retreat_finance.services.storage import (
    Database,
    SqlCategoryStore,
    SqlEventStore,
    SqlTransactionStore,
)
from retreat_finance.validation import (
    EntryValidator,
    parse_enum,
    parse_id,
    parse_model,
)


Identifier = Union[UUID, str]


def _audit_id(value: Identifier) -> Optional[UUID]:
    """The id to put on a failure audit event; None if it never parsed."""
    return value if isinstance(value, UUID) else None


class RetreatFinanceGateway:
    """
    Facade over the data-integrity and aggregation layer.

    Every method is a coroutine and may block on storage I/O.
    """

    def __init__(
        self,
        database: Database,
        settings: Optional[AppSettings] = None,
        validator: Optional[EntryValidator] = None,
        aggregation: Optional[AggregationEngine] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._database = database
        self._settings = settings or get_settings().app
        self._validator = validator or EntryValidator(self._settings)
        self._aggregation = aggregation or AggregationEngine(database)
        self._audit_logger = audit_logger or AuditLogger()

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def create_category(
        self,
        name: str,
        kind: Union[EntryKind, str],
        color: str,
    ) -> Category:
        """
        Create a category.

        Raises:
            ValidationError: Bad name/kind/color
            DuplicateError: A category with this name and kind exists
        """
        try:
            draft = self._validator.validate_category({
                "name": name,
                "kind": parse_enum(EntryKind, kind, "kind"),
                "color": color,
            })
            async with self._database.transaction() as session:
                store = SqlCategoryStore(session)
                await self._ensure_unique_category(store, draft.name, draft.kind)
                category = await store.create(draft)
        except Exception as e:
            self._audit_logger.log_failure("create_category", e)
            raise

        self._audit_logger.log(AuditEventBuilder.category_created(
            category_id=category.id,
            name=category.name,
            kind=category.kind.value,
        ))
        return category

    async def list_categories(
        self,
        kind: Optional[Union[EntryKind, str]] = None,
    ) -> list[Category]:
        """All categories ordered by name, optionally of one kind."""
        kind = parse_enum(EntryKind, kind, "kind") if kind is not None else None
        async with self._database.session() as session:
            return await SqlCategoryStore(session).list(kind)

    async def get_category(self, category_id: Identifier) -> Category:
        category_id = parse_id(category_id, "category_id")
        async with self._database.session() as session:
            return await SqlCategoryStore(session).get(category_id)

    async def count_categories(
        self,
        kind: Optional[Union[EntryKind, str]] = None,
    ) -> int:
        kind = parse_enum(EntryKind, kind, "kind") if kind is not None else None
        async with self._database.session() as session:
            return await SqlCategoryStore(session).count(kind)

    async def update_category(self, category_id: Identifier, **fields: Any) -> Category:
        """
        Rename, recolor or change the kind of a category.

        Only the keyword arguments given are changed.

        Raises:
            NotFoundError: Unknown category
            ValidationError: Bad field values
            DuplicateError: The new (name, kind) pair is taken
            ReferentialConflictError: Kind change while transactions
                                      reference the category
        """
        try:
            category_id = parse_id(category_id, "category_id")
            if fields.get("kind") is not None:
                fields["kind"] = parse_enum(EntryKind, fields["kind"], "kind")
            changes = parse_model(CategoryUpdate, fields)
            async with self._database.transaction() as session:
                store = SqlCategoryStore(session)
                current = await store.get(category_id)

                new_name = changes.name if changes.name is not None else current.name
                new_kind = changes.kind if changes.kind is not None else current.kind
                if (natural_key(new_name), new_kind) != (natural_key(current.name), current.kind):
                    await self._ensure_unique_category(
                        store, new_name, new_kind, exclude_id=category_id
                    )

                if new_kind != current.kind:
                    references = await SqlTransactionStore(session).count_for_category(category_id)
                    if references:
                        raise ReferentialConflictError(
                            f"Cannot change the kind of category {category_id}: "
                            f"{references} transactions reference it"
                        )

                category = await store.update(category_id, changes)
        except Exception as e:
            self._audit_logger.log_failure("update_category", e, entity_id=_audit_id(category_id))
            raise

        self._audit_logger.log(AuditEventBuilder.category_updated(
            category_id=category_id,
            changed_fields=sorted(changes.model_fields_set),
        ))
        return category

    async def delete_category(self, category_id: Identifier) -> None:
        """
        Delete a category nothing references.

        The reference count is checked first for a clear error; the RESTRICT
        constraint in the schema still guards the delete itself.

        Raises:
            NotFoundError: Unknown category
            ReferentialConflictError: Transactions still reference it
        """
        try:
            category_id = parse_id(category_id, "category_id")
            async with self._database.transaction() as session:
                store = SqlCategoryStore(session)
                await store.get(category_id)

                references = await SqlTransactionStore(session).count_for_category(category_id)
                if references:
                    raise ReferentialConflictError(
                        f"Category {category_id} is referenced by {references} transactions"
                    )
                await store.delete(category_id)
        except Exception as e:
            self._audit_logger.log_failure("delete_category", e, entity_id=_audit_id(category_id))
            raise

        self._audit_logger.log(AuditEventBuilder.category_deleted(category_id))

    async def _ensure_unique_category(
        self,
        store: SqlCategoryStore,
        name: str,
        kind: EntryKind,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        existing = await store.find_by_natural_key(name, kind)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateError(
                f"A {kind.value} category named '{existing.name}' already exists",
                [ValidationIssue(
                    field="name",
                    issue_type="duplicate",
                    message=f"'{name}' is already used by another {kind.value} category",
                )],
            )

    # =========================================================================
    # EVENTS
    # =========================================================================

    async def create_event(
        self,
        name: str,
        starts_at: Any,
        ends_at: Any,
        participant_count: int,
        description: Optional[str] = None,
        location: Optional[str] = None,
    ) -> Event:
        """
        Create an event in state PLANNING.

        Datetimes may be datetime objects or ISO 8601 strings; naive values
        are taken as UTC.

        Raises:
            ValidationError: End not after start, participants < 1, or
                             length limits exceeded
        """
        try:
            draft = self._validator.validate_event({
                "name": name,
                "description": description,
                "starts_at": starts_at,
                "ends_at": ends_at,
                "location": location,
                "participant_count": participant_count,
            })
            async with self._database.transaction() as session:
                event = await SqlEventStore(session).create(draft)
        except Exception as e:
            self._audit_logger.log_failure("create_event", e)
            raise

        self._audit_logger.log(AuditEventBuilder.event_created(event.id, event.name))
        return event

    async def list_events(
        self,
        state: Optional[Union[EventState, str]] = None,
        limit: Optional[int] = None,
    ) -> list[Event]:
        """Events ordered by start date, most recent first."""
        state = parse_enum(EventState, state, "state") if state is not None else None
        async with self._database.session() as session:
            return await SqlEventStore(session).list(state=state, limit=limit)

    async def get_event(self, event_id: Identifier) -> Event:
        event_id = parse_id(event_id, "event_id")
        async with self._database.session() as session:
            return await SqlEventStore(session).get(event_id)

    async def update_event(self, event_id: Identifier, **fields: Any) -> Event:
        """
        Update event fields (not the state; see update_event_state).

        Raises:
            NotFoundError: Unknown event
            ValidationError: The updated event breaks a create constraint
        """
        try:
            event_id = parse_id(event_id, "event_id")
            changes = parse_model(EventUpdate, fields)
            async with self._database.transaction() as session:
                event = await SqlEventStore(session).update(event_id, changes)
        except Exception as e:
            self._audit_logger.log_failure("update_event", e, entity_id=_audit_id(event_id))
            raise

        self._audit_logger.log(AuditEventBuilder.event_updated(
            event_id=event_id,
            changed_fields=sorted(changes.model_fields_set),
        ))
        return event

    async def update_event_state(
        self,
        event_id: Identifier,
        state: Union[EventState, str],
    ) -> Event:
        """
        Move an event to another lifecycle state.

        Every state is reachable from every other state; no cascading
        effects on transactions.
        """
        try:
            event_id = parse_id(event_id, "event_id")
            new_state = parse_enum(EventState, state, "state")
            async with self._database.transaction() as session:
                store = SqlEventStore(session)
                previous = await store.get(event_id)
                event = await store.set_state(event_id, new_state)
        except Exception as e:
            self._audit_logger.log_failure("update_event_state", e, entity_id=_audit_id(event_id))
            raise

        self._audit_logger.log(AuditEventBuilder.event_state_changed(
            event_id=event_id,
            previous_state=previous.state.value,
            new_state=event.state.value,
        ))
        return event

    async def delete_event(self, event_id: Identifier) -> int:
        """
        Delete an event and all of its transactions atomically.

        Returns:
            Number of transactions removed with the event

        Raises:
            NotFoundError: Unknown event
        """
        correlation_id = create_correlation_id()
        try:
            event_id = parse_id(event_id, "event_id")
            async with self._database.transaction() as session:
                removed = await SqlEventStore(session).delete(event_id)
        except Exception as e:
            self._audit_logger.log_failure(
                "delete_event", e, entity_id=_audit_id(event_id), correlation_id=correlation_id
            )
            raise

        self._audit_logger.log(AuditEventBuilder.event_deleted(
            event_id=event_id,
            transactions_removed=removed,
            correlation_id=correlation_id,
        ))
        return removed

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    async def create_transaction(
        self,
        event_id: Identifier,
        category_id: Identifier,
        kind: Union[EntryKind, str],
        amount: Any,
        description: str,
    ) -> Transaction:
        """
        Record a transaction.

        Flow (one database transaction, all-or-nothing):
        1. Schema validation of the raw values
        2. Category exists and its kind equals the requested kind
        3. Event exists
        4. Insert

        Raises:
            ValidationError: Bad values, amount over the policy limit, or
                             kind/category mismatch
            NotFoundError: Unknown event or category
        """
        correlation_id = create_correlation_id()
        try:
            data = {
                "event_id": event_id,
                "category_id": category_id,
                "kind": parse_enum(EntryKind, kind, "kind"),
                "amount": amount,
                "description": description,
            }
            draft = self._validator.validate_transaction(data)
            async with self._database.transaction() as session:
                category = await SqlCategoryStore(session).get(draft.category_id)
                self._validator.validate_transaction(data, category=category)
                await SqlEventStore(session).get(draft.event_id)
                transaction = await SqlTransactionStore(session).create(draft)
        except Exception as e:
            self._audit_logger.log_failure(
                "create_transaction", e, correlation_id=correlation_id
            )
            raise

        self._audit_logger.log(AuditEventBuilder.transaction_created(
            transaction_id=transaction.id,
            event_id=transaction.event_id,
            kind=transaction.kind.value,
            amount=str(transaction.amount),
            correlation_id=correlation_id,
        ))
        return transaction

    async def list_transactions(
        self,
        event_id: Optional[Identifier] = None,
    ) -> list[Transaction]:
        """Transactions in creation order, optionally for one event."""
        event_id = parse_id(event_id, "event_id") if event_id is not None else None
        async with self._database.session() as session:
            return await SqlTransactionStore(session).list(event_id)

    async def get_transaction(self, transaction_id: Identifier) -> Transaction:
        transaction_id = parse_id(transaction_id, "transaction_id")
        async with self._database.session() as session:
            return await SqlTransactionStore(session).get(transaction_id)

    async def delete_transaction(self, transaction_id: Identifier) -> None:
        """Delete one transaction. Its event and category are untouched."""
        try:
            transaction_id = parse_id(transaction_id, "transaction_id")
            async with self._database.transaction() as session:
                await SqlTransactionStore(session).delete(transaction_id)
        except Exception as e:
            self._audit_logger.log_failure(
                "delete_transaction", e, entity_id=_audit_id(transaction_id)
            )
            raise

        self._audit_logger.log(AuditEventBuilder.transaction_deleted(transaction_id))

    # =========================================================================
    # STATISTICS
    # =========================================================================

    async def balance(self, event_id: Identifier) -> EventBalance:
        return await self._aggregation.balance(parse_id(event_id, "event_id"))

    async def global_balance(self) -> GlobalBalance:
        return await self._aggregation.global_balance()

    async def per_category_totals(
        self,
        event_id: Optional[Identifier] = None,
        kind: Optional[Union[EntryKind, str]] = None,
    ) -> list[CategoryTotal]:
        event_id = parse_id(event_id, "event_id") if event_id is not None else None
        kind = parse_enum(EntryKind, kind, "kind") if kind is not None else None
        return await self._aggregation.per_category_totals(event_id=event_id, kind=kind)

    async def top_expense_categories(
        self,
        limit: Optional[int] = None,
        event_id: Optional[Identifier] = None,
    ) -> list[CategoryTotal]:
        event_id = parse_id(event_id, "event_id") if event_id is not None else None
        return await self._aggregation.top_expense_categories(
            limit=limit if limit is not None else self._settings.top_categories_limit,
            event_id=event_id,
        )

    async def cross_event_statistics(self) -> CrossEventStatistics:
        return await self._aggregation.cross_event_statistics(
            top_limit=self._settings.top_categories_limit
        )

    async def event_balances(self, limit: Optional[int] = None) -> list[EventBalance]:
        return await self._aggregation.event_balances(limit=limit)
