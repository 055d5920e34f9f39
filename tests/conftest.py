import random
import pytest
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from finance_tracker.domain.enums import TransactionType
from finance_tracker.domain.models import Transaction
from finance_tracker.storage.memory import InMemoryStorage
from finance_tracker.store.transaction_store import TransactionStore

TODAY = date(2024, 5, 20)

@pytest.fixture
def today() -> date:
    """Frozen 'today' used by every store built in tests"""
    return TODAY

@pytest.fixture
def storage() -> InMemoryStorage:
    """Fresh in-memory key-value storage"""
    return InMemoryStorage()

@pytest.fixture
def make_store(storage, today) -> Callable[..., TransactionStore]:
    """Factory for stores bound to the shared storage and frozen clock"""
    def _make(**kwargs) -> TransactionStore:
        kwargs.setdefault("clock", lambda: today)
        return TransactionStore(storage, **kwargs)
    return _make

@pytest.fixture
def store(make_store) -> TransactionStore:
    return make_store()

def txn(
    type: str,
    amount: str,
    date_str: str,
    category: str = "other",
    id: Optional[str] = None,
    note: Optional[str] = None,
) -> Transaction:
    """Terse Transaction builder for tests"""
    return Transaction(
        id=id,
        amount=Decimal(amount),
        category=category,
        date=date_str,
        type=TransactionType(type),
        note=note,
    )

@pytest.fixture
def sample_transactions() -> List[Transaction]:
    """Sample transactions for tests"""
    return [
        txn("income", "1000", "2024-05-01", "salary", id="t1"),
        txn("expense", "200", "2024-05-15", "food", id="t2", note="groceries"),
    ]

@pytest.fixture
def random_transactions() -> Callable[[int], List[Transaction]]:
    """Reproducible random transaction sets, seeded per call"""
    categories = ["salary", "food", "transport", "health", "other"]

    def _generate(seed: int, count: int = 50) -> List[Transaction]:
        rng = random.Random(seed)
        start = TODAY - timedelta(days=400)
        result = []
        for i in range(count):
            cents = rng.randrange(0, 500_000)
            result.append(Transaction(
                id=f"r{seed}-{i}",
                amount=Decimal(cents) / 100,
                category=rng.choice(categories),
                date=(start + timedelta(days=rng.randrange(430))).isoformat(),
                type=rng.choice(list(TransactionType)),
            ))
        return result

    return _generate

@pytest.fixture
def make_txn() -> Callable[..., Transaction]:
    return txn
