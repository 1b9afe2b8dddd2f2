"""Services package."""

from retreat_finance.services.storage import (
    CategoryStorageInterface,
    Database,
    EventStorageInterface,
    SqlCategoryStore,
    SqlEventStore,
    SqlTransactionStore,
    TransactionStorageInterface,
)

__all__ = [
    "CategoryStorageInterface",
    "Database",
    "EventStorageInterface",
    "SqlCategoryStore",
    "SqlEventStore",
    "SqlTransactionStore",
    "TransactionStorageInterface",
]
