"""
Transaction state management.

The store owns the ordered collection of transactions, keeps it in sync with
a key-value storage slot and derives the dashboard aggregates.

Quick Start:
    >>> from finance_tracker.store import TransactionStore
    >>> from finance_tracker.storage.memory import InMemoryStorage
    >>>
    >>> store = TransactionStore(InMemoryStorage())
    >>> txn_id = store.add(transaction)
    >>> print(store.balance)
"""
from finance_tracker.store.transaction_store import (
    DEFAULT_STORAGE_KEY,
    TransactionStore,
    newest_first,
    percentage_change,
)

__all__ = [
    "DEFAULT_STORAGE_KEY",
    "TransactionStore",
    "newest_first",
    "percentage_change",
]
