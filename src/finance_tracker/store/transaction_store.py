import json
import uuid
from dataclasses import replace
from datetime import date
from decimal import Decimal, InvalidOperation
from functools import cmp_to_key
from typing import Any, Callable, Iterable, Iterator, List, Optional

from finance_tracker.domain.enums import TransactionType
from finance_tracker.domain.models import Transaction, json_default, to_decimal
from finance_tracker.storage.base import KeyValueStorage
from finance_tracker.store.periods import MonthKey, month_key, parse_date, previous_month
from finance_tracker.logging_setup import get_logger

logger = get_logger(__name__)

Comparator = Callable[[Transaction, Transaction], int]
Listener = Callable[[List[Transaction]], None]

DEFAULT_STORAGE_KEY = "transactions"

_VALID_TYPES = tuple(t.value for t in TransactionType)


def newest_first(a: Transaction, b: Transaction) -> int:
    """Default ordering: descending by ISO date string"""
    if a.date > b.date:
        return -1
    if a.date < b.date:
        return 1
    return 0


def is_valid_record(record: Any) -> bool:
    """Structural check applied to every element of an imported batch"""
    if not isinstance(record, dict):
        return False
    try:
        to_decimal(record.get("amount"))
    except ValueError:
        return False
    return (
        isinstance(record.get("id"), str)
        and isinstance(record.get("category"), str)
        and isinstance(record.get("date"), str)
        and record.get("type") in _VALID_TYPES
    )


def _signed_total(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.signed_amount for t in transactions), Decimal(0))


def _type_total(transactions: Iterable[Transaction], transaction_type: TransactionType) -> Decimal:
    return sum((t.amount for t in transactions if t.type == transaction_type), Decimal(0))


def percentage_change(current: Decimal, previous: Decimal) -> Decimal:
    """
    Month over month change in percent.

    When ``previous`` is zero there is no meaningful ratio; the result is the
    sentinel +100 if ``current`` is positive and -100 otherwise.
    """
    if previous == 0:
        return Decimal(100) if current > 0 else Decimal(-100)
    return (current - previous) / previous * 100


class TransactionStore:
    """
    Owns the ordered transaction collection and mirrors it to one storage slot.

    Every mutation updates memory, re-sorts with the configured comparator and
    writes the whole collection back. Loading (construction and
    ``reload_from_storage``) never writes. Aggregates are properties computed
    from the current collection on each access.

    Instances bound to the same slot are not synchronized with each other;
    the last writer wins.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = DEFAULT_STORAGE_KEY,
        initial: Optional[Iterable[Transaction]] = None,
        sort: Optional[Comparator] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.storage = storage
        self.storage_key = storage_key
        self._initial: List[Transaction] = list(initial or [])
        self._sort_key = cmp_to_key(sort or newest_first)
        self._clock = clock
        self._listeners: List[Listener] = []
        self._transactions: List[Transaction] = self._load()

    # ------------------------------------------------------------------
    # Loading and persistence
    # ------------------------------------------------------------------

    def _sorted(self, transactions: Iterable[Transaction]) -> List[Transaction]:
        return sorted(transactions, key=self._sort_key)

    def _load(self) -> List[Transaction]:
        """Read the slot, falling back to the initial collection when absent or unreadable"""
        raw = self.storage.get_item(self.storage_key)
        if raw is None:
            return self._sorted(self._initial)

        try:
            data = json.loads(raw, parse_float=Decimal)
            if not isinstance(data, list):
                raise ValueError(f"expected a JSON array, got {type(data).__name__}")
            return self._sorted(Transaction.from_dict(record) for record in data)
        except (ValueError, KeyError, TypeError, AttributeError, InvalidOperation) as e:
            logger.debug(
                "Ignoring unreadable data in slot %r (%s); using fallback collection",
                self.storage_key, e,
            )
            return self._sorted(self._initial)

    def _commit(self, transactions: Iterable[Transaction]) -> None:
        """Write the sorted collection to storage, then swap it into memory"""
        ordered = self._sorted(transactions)
        payload = json.dumps([t.to_dict() for t in ordered], default=json_default)
        self.storage.set_item(self.storage_key, payload)
        self._transactions = ordered
        logger.debug(
            "Persisted %d transactions to slot %r",
            len(self._transactions), self.storage_key,
        )
        self._notify()

    def _notify(self) -> None:
        snapshot = self.transactions
        for listener in list(self._listeners):
            listener(snapshot)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a callback fired after every persisted change.

        The hook is in-process only; other store instances on the same slot
        are not notified.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def reload_from_storage(self) -> None:
        """Discard memory and re-read the slot (picks up external writers)"""
        self._transactions = self._load()

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def transactions(self) -> List[Transaction]:
        """The collection in sort order (a copy)"""
        return list(self._transactions)

    def __len__(self) -> int:
        return len(self._transactions)

    def __iter__(self) -> Iterator[Transaction]:
        return iter(list(self._transactions))

    def today(self) -> date:
        """Current date according to the store's clock"""
        return self._clock()

    def get(self, transaction_id: str) -> Optional[Transaction]:
        """First transaction with the given id, or None"""
        for txn in self._transactions:
            if txn.id == transaction_id:
                return txn
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def generate_id(self) -> str:
        return str(uuid.uuid4())

    def add(self, transaction: Transaction) -> str:
        """
        Insert a transaction, assigning an id when it has none.

        No field validation happens here; callers validate user input.

        Returns:
            The id of the stored transaction
        """
        txn_id = transaction.id if transaction.id is not None else self.generate_id()
        self._commit([*self._transactions, replace(transaction, id=txn_id)])
        return txn_id

    def remove(self, transaction_id: str) -> int:
        """
        Remove every transaction with the given id.

        Returns:
            Number of transactions removed (0 when the id is unknown)
        """
        remaining = [t for t in self._transactions if t.id != transaction_id]
        removed = len(self._transactions) - len(remaining)
        if removed:
            self._commit(remaining)
        return removed

    def update(self, transaction_id: str, **changes: Any) -> None:
        """
        Merge ``changes`` into the transaction(s) with the given id.

        An ``id`` in ``changes`` is ignored. The collection is re-sorted since
        a new date can move the entry. Nothing is written when no entry matches.

        Raises:
            TypeError: If ``changes`` names a field Transaction doesn't have
        """
        if self.get(transaction_id) is None:
            return
        self._commit([
            t.with_changes(**changes) if t.id == transaction_id else t
            for t in self._transactions
        ])

    def clear(self) -> None:
        """Empty the collection and delete the slot itself"""
        self._transactions = []
        self.storage.remove_item(self.storage_key)
        logger.debug("Cleared slot %r", self.storage_key)
        self._notify()

    def replace_all(self, transactions: Iterable[Transaction]) -> None:
        """Swap in a whole new collection (bulk import)"""
        self._commit(transactions)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def export_json(self) -> str:
        """Full serialization of the current collection, ids included"""
        return json.dumps(
            [t.to_dict() for t in self._transactions],
            indent=2,
            default=json_default,
            ensure_ascii=False,
        )

    def import_json(self, text: str) -> bool:
        """
        Replace the collection with a serialized batch.

        All or nothing: if the text isn't a JSON array or any element fails
        the structural check, nothing changes.

        Returns:
            True if the batch was imported
        """
        try:
            data = json.loads(text, parse_float=Decimal)
        except (ValueError, TypeError) as e:
            logger.warning("Import rejected: not valid JSON (%s)", e)
            return False

        if not isinstance(data, list):
            logger.warning("Import rejected: expected a JSON array")
            return False

        for index, record in enumerate(data):
            if not is_valid_record(record):
                logger.warning("Import rejected: element %d is malformed", index)
                return False

        self.replace_all(Transaction.from_dict(record) for record in data)
        logger.info("Imported %d transactions into slot %r", len(data), self.storage_key)
        return True

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    @property
    def income_total(self) -> Decimal:
        return _type_total(self._transactions, TransactionType.INCOME)

    @property
    def expense_total(self) -> Decimal:
        """Total spent, as a positive magnitude"""
        return _type_total(self._transactions, TransactionType.EXPENSE)

    @property
    def balance(self) -> Decimal:
        return self.income_total - self.expense_total

    @property
    def total_balance(self) -> Decimal:
        """Signed running sum over all entries (agrees with ``balance``)"""
        total = Decimal(0)
        for txn in self._transactions:
            total += txn.amount if txn.type == TransactionType.INCOME else -txn.amount
        return total

    def _in_month(self, key: MonthKey) -> List[Transaction]:
        matches = []
        for txn in self._transactions:
            day = parse_date(txn.date)
            if day is not None and month_key(day) == key:
                matches.append(txn)
        return matches

    @property
    def current_month_transactions(self) -> List[Transaction]:
        return self._in_month(month_key(self._clock()))

    @property
    def previous_month_transactions(self) -> List[Transaction]:
        return self._in_month(previous_month(self._clock()))

    @property
    def current_year_transactions(self) -> List[Transaction]:
        year = self._clock().year
        matches = []
        for txn in self._transactions:
            day = parse_date(txn.date)
            if day is not None and day.year == year:
                matches.append(txn)
        return matches

    @property
    def current_month_balance(self) -> Decimal:
        return _signed_total(self.current_month_transactions)

    @property
    def previous_month_balance(self) -> Decimal:
        return _signed_total(self.previous_month_transactions)

    def _percentage_change(self, transaction_type: TransactionType) -> Decimal:
        return percentage_change(
            _type_total(self.current_month_transactions, transaction_type),
            _type_total(self.previous_month_transactions, transaction_type),
        )

    @property
    def income_percentage_change(self) -> Decimal:
        return self._percentage_change(TransactionType.INCOME)

    @property
    def expense_percentage_change(self) -> Decimal:
        return self._percentage_change(TransactionType.EXPENSE)

    @property
    def has_income_last_month(self) -> bool:
        return any(t.type == TransactionType.INCOME for t in self.previous_month_transactions)

    @property
    def has_expense_last_month(self) -> bool:
        return any(t.type == TransactionType.EXPENSE for t in self.previous_month_transactions)
