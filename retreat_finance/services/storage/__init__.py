"""
Storage Services Package

Provides abstract interfaces and the SQL implementation of the three
stores (categories, events, transaction ledger), plus the pooled async
database they share.
"""

from retreat_finance.services.storage.interface import (
    CategoryStorageInterface,
    EventStorageInterface,
    TransactionStorageInterface,
)
from retreat_finance.services.storage.database import Database, create_engine
from retreat_finance.services.storage.records import (
    Base,
    CategoryRecord,
    EventRecord,
    TransactionRecord,
)
from retreat_finance.services.storage.sql import (
    SqlCategoryStore,
    SqlEventStore,
    SqlTransactionStore,
)

__all__ = [
    # Interfaces
    "CategoryStorageInterface",
    "EventStorageInterface",
    "TransactionStorageInterface",
    # Database
    "Database",
    "create_engine",
    # Schema
    "Base",
    "CategoryRecord",
    "EventRecord",
    "TransactionRecord",
    # SQL implementation
    "SqlCategoryStore",
    "SqlEventStore",
    "SqlTransactionStore",
]
