"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface per store. This allows us
to:
1. Keep each store testable in isolation
2. Keep the stores decoupled from each other (cross-entity rules belong to
   the gateway, not to a store)
3. Swap the relational backend without touching business logic

Implementations are bound to one open session, so several stores used in
the same gateway call share the same database transaction.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

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
from retreat_finance.models.transaction import Transaction, TransactionDraft


class CategoryStorageInterface(ABC):
    """Owns category records. No dependencies on the other stores."""

    @abstractmethod
    async def create(self, draft: CategoryDraft) -> Category:
        """Persist a new category."""
        pass

    @abstractmethod
    async def list(self, kind: Optional[EntryKind] = None) -> list[Category]:
        """
        List categories ordered by name.

        Args:
            kind: Only return categories of this kind
        """
        pass

    @abstractmethod
    async def get(self, category_id: UUID) -> Category:
        """
        Raises:
            NotFoundError: If the category doesn't exist
        """
        pass

    @abstractmethod
    async def find_by_natural_key(
        self,
        name: str,
        kind: EntryKind,
    ) -> Optional[Category]:
        """Find a category by (name, kind), name compared case-insensitively."""
        pass

    @abstractmethod
    async def update(self, category_id: UUID, changes: CategoryUpdate) -> Category:
        """
        Apply a partial update.

        Raises:
            NotFoundError: If the category doesn't exist
            ValidationError: If the merged record is invalid
        """
        pass

    @abstractmethod
    async def delete(self, category_id: UUID) -> None:
        """
        Raises:
            NotFoundError: If the category doesn't exist
            ReferentialConflictError: If transactions still reference it
        """
        pass

    @abstractmethod
    async def count(self, kind: Optional[EntryKind] = None) -> int:
        pass


class EventStorageInterface(ABC):
    """Owns event records and their lifecycle state."""

    @abstractmethod
    async def create(self, draft: EventDraft) -> Event:
        """Persist a new event in state PLANNING."""
        pass

    @abstractmethod
    async def list(
        self,
        state: Optional[EventState] = None,
        limit: Optional[int] = None,
    ) -> list[Event]:
        """
        List events, most recent start date first.

        Args:
            state: Only return events in this state
            limit: Maximum number of results
        """
        pass

    @abstractmethod
    async def get(self, event_id: UUID) -> Event:
        """
        Raises:
            NotFoundError: If the event doesn't exist
        """
        pass

    @abstractmethod
    async def update(self, event_id: UUID, changes: EventUpdate) -> Event:
        """
        Apply a partial update, re-validating the create constraints.

        Raises:
            NotFoundError: If the event doesn't exist
            ValidationError: If the merged record is invalid
        """
        pass

    @abstractmethod
    async def set_state(self, event_id: UUID, state: EventState) -> Event:
        """Unconditional state transition."""
        pass

    @abstractmethod
    async def delete(self, event_id: UUID) -> int:
        """
        Delete the event's transactions, then the event.

        Returns:
            Number of transactions removed

        Raises:
            NotFoundError: If the event doesn't exist
        """
        pass


class TransactionStorageInterface(ABC):
    """
    The ledger. Owns transaction records.

    It checks that the referenced event and category exist, but not that
    their kinds agree: that is the gateway's job.
    """

    @abstractmethod
    async def create(self, draft: TransactionDraft) -> Transaction:
        """
        Raises:
            NotFoundError: If the event or the category doesn't exist
        """
        pass

    @abstractmethod
    async def list(self, event_id: Optional[UUID] = None) -> list[Transaction]:
        """List transactions in creation order, optionally for one event."""
        pass

    @abstractmethod
    async def get(self, transaction_id: UUID) -> Transaction:
        """
        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete(self, transaction_id: UUID) -> None:
        """
        Raises:
            NotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def count_for_event(self, event_id: UUID) -> int:
        pass

    @abstractmethod
    async def count_for_category(self, category_id: UUID) -> int:
        pass
