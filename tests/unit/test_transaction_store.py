import json
import pytest
from datetime import date
from decimal import Decimal

from finance_tracker.domain.enums import TransactionType
from finance_tracker.storage.memory import InMemoryStorage
from finance_tracker.store.transaction_store import TransactionStore, percentage_change

KEY = "transactions"

def _is_sorted_newest_first(store: TransactionStore) -> bool:
    dates = [t.date for t in store.transactions]
    return dates == sorted(dates, reverse=True)

@pytest.mark.unit
class TestTransactionStoreConstruction:
    """Test loading from storage"""

    def test_empty_storage_gives_empty_collection(self, store):
        assert store.transactions == []
        assert len(store) == 0

    def test_construction_never_writes(self, storage, make_store, sample_transactions, mocker):
        """Test the initial fallback is not echoed back to storage"""
        # Arrange
        set_item = mocker.spy(storage, "set_item")

        # Act
        store = make_store(initial=sample_transactions)

        # Assert
        set_item.assert_not_called()
        assert KEY not in storage
        assert len(store) == 2

    def test_loads_persisted_collection_sorted(self, storage, make_store):
        # Arrange
        storage.set_item(KEY, json.dumps([
            {"id": "a", "amount": 5, "category": "food", "date": "2024-01-01", "type": "expense"},
            {"id": "b", "amount": 7.25, "category": "salary", "date": "2024-03-01", "type": "income"},
        ]))

        # Act
        store = make_store()

        # Assert
        assert [t.id for t in store.transactions] == ["b", "a"]
        assert store.get("b").amount == Decimal("7.25")
        assert store.get("b").type == TransactionType.INCOME

    def test_persisted_data_wins_over_initial(self, storage, make_store, make_txn):
        storage.set_item(KEY, json.dumps([
            {"id": "a", "amount": 5, "category": "food", "date": "2024-01-01", "type": "expense"},
        ]))

        store = make_store(initial=[make_txn("income", "1", "2024-01-01", id="seed")])

        assert [t.id for t in store.transactions] == ["a"]

    @pytest.mark.parametrize("raw", [
        "{not json",
        '{"id": "a"}',
        '[{"id": "a", "amount": 1}]',
        '[{"id": "a", "amount": 1, "category": "x", "date": "2024-01-01", "type": "gift"}]',
        '[{"id": "a", "amount": "ten", "category": "x", "date": "2024-01-01", "type": "income"}]',
        "[1, 2, 3]",
        '[{"id": "a", "amount": 1, "category": "x", "date": 5, "type": "income"},'
        ' {"id": "b", "amount": 1, "category": "x", "date": "2024-05-01", "type": "income"}]',
        '[{"id": "a", "amount": 1, "category": 7, "date": "2024-05-01", "type": "income"}]',
        '[{"id": "a", "amount": 1, "category": "x", "date": "2024-05-01", "type": []}]',
        '[{"id": "a", "amount": NaN, "category": "x", "date": "2024-05-01", "type": "income"}]',
        '[{"id": "a", "amount": Infinity, "category": "x", "date": "2024-05-01", "type": "income"}]',
        '[{"id": "a", "amount": -Infinity, "category": "x", "date": "2024-05-01", "type": "expense"}]',
    ])
    def test_malformed_persisted_data_falls_back_to_initial(self, storage, make_store, make_txn, raw):
        # Arrange
        storage.set_item(KEY, raw)
        seed = make_txn("income", "10", "2024-02-02", id="seed")

        # Act
        store = make_store(initial=[seed])

        # Assert
        assert store.transactions == [seed]
        # Corrupt data is left alone until the next mutation
        assert storage.get_item(KEY) == raw

    def test_initial_collection_is_sorted(self, make_store, make_txn):
        store = make_store(initial=[
            make_txn("income", "1", "2024-01-01", id="old"),
            make_txn("income", "1", "2024-06-01", id="new"),
        ])

        assert [t.id for t in store.transactions] == ["new", "old"]

    def test_custom_comparator_orders_collection(self, make_store, make_txn):
        """Test an ascending-by-amount comparator is used for every ordering"""
        def by_amount(a, b):
            return (a.amount > b.amount) - (a.amount < b.amount)

        store = make_store(sort=by_amount)
        store.add(make_txn("expense", "30", "2024-01-01", id="c"))
        store.add(make_txn("expense", "10", "2024-03-01", id="a"))
        store.add(make_txn("expense", "20", "2024-02-01", id="b"))

        assert [t.id for t in store.transactions] == ["a", "b", "c"]

@pytest.mark.unit
class TestTransactionStoreMutations:
    """Test CRUD operations and write-through persistence"""

    def test_add_assigns_id_and_persists(self, store, storage, make_txn):
        # Act
        txn_id = store.add(make_txn("expense", "12.50", "2024-05-10", "food"))

        # Assert
        assert txn_id
        assert [t.id for t in store.transactions] == [txn_id]
        persisted = json.loads(storage.get_item(KEY))
        assert persisted == [{
            "id": txn_id,
            "amount": 12.5,
            "category": "food",
            "date": "2024-05-10",
            "type": "expense",
        }]

    def test_add_keeps_caller_supplied_id(self, store, make_txn):
        assert store.add(make_txn("income", "1", "2024-05-10", id="mine")) == "mine"
        assert store.get("mine") is not None

    def test_add_does_not_reject_duplicate_ids(self, store, make_txn):
        store.add(make_txn("income", "1", "2024-05-10", id="dup"))
        store.add(make_txn("income", "2", "2024-05-11", id="dup"))

        assert len(store) == 2

    def test_add_grows_by_one_and_keeps_order(self, store, sample_transactions, make_txn):
        # Arrange
        store.replace_all(sample_transactions)

        # Act
        txn_id = store.add(make_txn("expense", "3", "2024-05-07"))

        # Assert
        assert len(store) == 3
        assert sum(1 for t in store if t.id == txn_id) == 1
        assert _is_sorted_newest_first(store)
        assert [t.date for t in store.transactions] == ["2024-05-15", "2024-05-07", "2024-05-01"]

    def test_generated_ids_are_unique(self, store):
        ids = {store.generate_id() for _ in range(200)}
        assert len(ids) == 200

    def test_remove_existing_id(self, store, storage, sample_transactions):
        store.replace_all(sample_transactions)

        removed = store.remove("t1")

        assert removed == 1
        assert store.get("t1") is None
        assert [r["id"] for r in json.loads(storage.get_item(KEY))] == ["t2"]

    def test_remove_unknown_id_is_noop(self, store, sample_transactions):
        store.replace_all(sample_transactions)

        assert store.remove("missing") == 0
        assert store.transactions == sorted(
            sample_transactions, key=lambda t: t.date, reverse=True
        )

    def test_failed_serialization_leaves_memory_untouched(self, store, storage, sample_transactions, make_txn):
        """Memory only changes once the write has gone through"""
        store.replace_all(sample_transactions)
        persisted_before = storage.get_item(KEY)

        with pytest.raises(OverflowError):
            store.add(make_txn("income", "Infinity", "2024-05-02", id="inf"))

        assert store.get("inf") is None
        assert len(store) == 2
        assert storage.get_item(KEY) == persisted_before

    def test_remove_unknown_id_writes_nothing_and_notifies_nobody(self, store, storage, sample_transactions, mocker):
        # Arrange
        store.replace_all(sample_transactions)
        set_item = mocker.spy(storage, "set_item")
        listener = mocker.Mock()
        store.subscribe(listener)

        # Act
        store.remove("missing")
        store.update("missing", amount=Decimal("1"))

        # Assert
        set_item.assert_not_called()
        listener.assert_not_called()

    def test_remove_drops_every_match(self, store, make_txn):
        store.replace_all([
            make_txn("income", "1", "2024-05-01", id="dup"),
            make_txn("income", "2", "2024-05-02", id="dup"),
            make_txn("income", "3", "2024-05-03", id="keep"),
        ])

        assert store.remove("dup") == 2
        assert [t.id for t in store.transactions] == ["keep"]

    def test_update_changes_only_patched_fields(self, store, sample_transactions):
        # Arrange
        store.replace_all(sample_transactions)
        before = store.get("t2")

        # Act
        store.update("t2", amount=Decimal("250"), note="big shop")

        # Assert
        after = store.get("t2")
        assert after.amount == Decimal("250")
        assert after.note == "big shop"
        assert after.category == before.category
        assert after.date == before.date
        assert after.type == before.type

    def test_update_never_changes_id(self, store, sample_transactions):
        store.replace_all(sample_transactions)

        store.update("t1", id="hijack", category="bonus")

        assert store.get("hijack") is None
        assert store.get("t1").category == "bonus"

    def test_update_date_resorts(self, store, sample_transactions):
        store.replace_all(sample_transactions)
        assert [t.id for t in store.transactions] == ["t2", "t1"]

        store.update("t1", date="2024-05-30")

        assert [t.id for t in store.transactions] == ["t1", "t2"]

    def test_update_coerces_type_and_amount(self, store, sample_transactions):
        store.replace_all(sample_transactions)

        store.update("t2", type="income", amount=3)

        updated = store.get("t2")
        assert updated.type == TransactionType.INCOME
        assert updated.amount == Decimal("3")

    def test_update_unknown_field_raises(self, store, sample_transactions):
        store.replace_all(sample_transactions)

        with pytest.raises(TypeError):
            store.update("t1", colour="blue")

    def test_clear_removes_slot(self, store, storage, sample_transactions):
        # Arrange
        store.replace_all(sample_transactions)
        assert KEY in storage

        # Act
        store.clear()

        # Assert
        assert store.transactions == []
        assert KEY not in storage

    def test_fresh_store_after_clear_is_empty(self, store, make_store, sample_transactions):
        """A cleared slot is absent, so a new store without fallback starts empty"""
        store.replace_all(sample_transactions)
        store.clear()

        assert make_store().transactions == []

    def test_replace_all_sorts_and_persists(self, store, storage, make_txn):
        store.replace_all([
            make_txn("income", "1", "2023-01-01", id="a"),
            make_txn("income", "1", "2025-01-01", id="b"),
        ])

        assert [t.id for t in store.transactions] == ["b", "a"]
        assert [r["id"] for r in json.loads(storage.get_item(KEY))] == ["b", "a"]

    def test_reload_from_storage_picks_up_external_writes(self, store, storage, make_store, make_txn):
        # Arrange
        other = make_store()
        other.add(make_txn("income", "5", "2024-05-01", id="external"))
        assert store.get("external") is None

        # Act
        store.reload_from_storage()

        # Assert
        assert store.get("external") is not None

    def test_two_instances_last_writer_wins(self, make_store, make_txn):
        first = make_store()
        second = make_store()

        first.add(make_txn("income", "1", "2024-05-01", id="from-first"))
        second.add(make_txn("income", "1", "2024-05-01", id="from-second"))

        assert [t.id for t in make_store().transactions] == ["from-second"]

    def test_transactions_property_returns_copy(self, store, sample_transactions):
        store.replace_all(sample_transactions)

        store.transactions.clear()

        assert len(store) == 2

    def test_subscribers_notified_after_persist(self, store, mocker, make_txn):
        # Arrange
        listener = mocker.Mock()
        unsubscribe = store.subscribe(listener)

        # Act
        store.add(make_txn("income", "1", "2024-05-01", id="x"))
        unsubscribe()
        store.remove("x")

        # Assert
        listener.assert_called_once()
        (snapshot,), _ = listener.call_args
        assert [t.id for t in snapshot] == ["x"]

@pytest.mark.unit
class TestTransactionStoreSerialization:
    """Test export/import of the full collection"""

    def test_export_includes_everything(self, store, sample_transactions):
        store.replace_all(sample_transactions)

        exported = json.loads(store.export_json())

        assert exported == [
            {"id": "t2", "amount": 200, "category": "food", "date": "2024-05-15",
             "note": "groceries", "type": "expense"},
            {"id": "t1", "amount": 1000, "category": "salary", "date": "2024-05-01",
             "type": "income"},
        ]

    def test_export_import_round_trip(self, store, random_transactions):
        # Arrange
        original = random_transactions(seed=3)
        store.replace_all(original)
        dump = store.export_json()

        # Act
        target = TransactionStore(InMemoryStorage())
        ok = target.import_json(dump)

        # Assert
        assert ok is True
        assert target.transactions == store.transactions

    def test_import_replaces_collection(self, store, sample_transactions):
        store.replace_all(sample_transactions)

        ok = store.import_json(json.dumps([
            {"id": "n1", "amount": 42.5, "category": "gift", "date": "2024-04-01", "type": "income"},
        ]))

        assert ok is True
        assert [t.id for t in store.transactions] == ["n1"]
        assert store.get("n1").amount == Decimal("42.5")

    @pytest.mark.parametrize("payload", [
        "not json at all",
        '{"id": "x"}',
        '[{"id": 1, "amount": 1, "category": "a", "date": "2024-01-01", "type": "income"}]',
        '[{"id": "x", "amount": "1", "category": "a", "date": "2024-01-01", "type": "income"}]',
        '[{"id": "x", "amount": true, "category": "a", "date": "2024-01-01", "type": "income"}]',
        '[{"id": "x", "amount": 1, "category": null, "date": "2024-01-01", "type": "income"}]',
        '[{"id": "x", "amount": 1, "category": "a", "date": 20240101, "type": "income"}]',
        '[{"id": "x", "amount": 1, "category": "a", "date": "2024-01-01", "type": "refund"}]',
        '[{"id": "x", "amount": 1, "category": "a", "date": "2024-01-01", "type": []}]',
        '[{"id": "x", "amount": 1, "category": "a", "date": "2024-01-01", "type": {"k": 1}}]',
        '[{"id": "x", "amount": NaN, "category": "a", "date": "2024-01-01", "type": "income"}]',
        '[{"id": "x", "amount": Infinity, "category": "a", "date": "2024-01-01", "type": "income"}]',
        '[{"id": "x", "amount": -Infinity, "category": "a", "date": "2024-01-01", "type": "expense"}]',
        '["just a string"]',
    ])
    def test_import_rejects_invalid_payloads(self, store, storage, sample_transactions, payload):
        store.replace_all(sample_transactions)
        before = store.transactions
        persisted_before = storage.get_item(KEY)

        assert store.import_json(payload) is False
        assert store.transactions == before
        assert storage.get_item(KEY) == persisted_before

    def test_import_is_all_or_nothing(self, store, sample_transactions):
        """One bad element rejects the whole batch"""
        store.replace_all(sample_transactions)
        before = store.transactions

        ok = store.import_json(json.dumps([
            {"id": "ok", "amount": 1, "category": "a", "date": "2024-01-01", "type": "income"},
            {"id": "bad", "amount": 1, "category": "a", "date": "2024-01-01"},
        ]))

        assert ok is False
        assert store.transactions == before

    def test_import_of_non_finite_amount_keeps_memory_and_storage(self, store, storage):
        # Arrange
        assert store.import_json(json.dumps([
            {"id": "keep", "amount": 5, "category": "a", "date": "2024-05-01", "type": "income"},
        ])) is True
        persisted_before = storage.get_item(KEY)

        # Act
        ok = store.import_json(
            '[{"id": "z", "amount": Infinity, "category": "a", "date": "2024-05-02", "type": "income"}]'
        )

        # Assert
        assert ok is False
        assert [t.id for t in store.transactions] == ["keep"]
        assert storage.get_item(KEY) == persisted_before

    def test_rejected_nan_import_leaves_aggregates_readable(self, store):
        ok = store.import_json(
            '[{"id": "z", "amount": NaN, "category": "a", "date": "2024-05-02", "type": "income"}]'
        )

        assert ok is False
        assert store.income_percentage_change == Decimal(-100)

    def test_import_empty_array_empties_collection(self, store, storage, sample_transactions):
        store.replace_all(sample_transactions)

        assert store.import_json("[]") is True
        assert store.transactions == []
        assert storage.get_item(KEY) == "[]"

@pytest.mark.unit
class TestTransactionStoreAggregates:
    """Test derived totals, month filters and percentage changes"""

    def test_totals_scenario(self, store, sample_transactions):
        store.replace_all(sample_transactions)

        assert store.income_total == Decimal("1000")
        assert store.expense_total == Decimal("200")
        assert store.balance == Decimal("800")
        assert store.total_balance == Decimal("800")

    @pytest.mark.parametrize("seed", range(10))
    def test_balance_matches_total_balance(self, store, random_transactions, seed):
        store.replace_all(random_transactions(seed))

        assert store.balance == store.total_balance

    def test_empty_store_aggregates(self, store):
        assert store.income_total == 0
        assert store.expense_total == 0
        assert store.balance == 0
        assert store.total_balance == 0
        assert store.current_month_transactions == []
        assert store.has_income_last_month is False
        assert store.has_expense_last_month is False

    def test_month_and_year_filters(self, store, make_txn):
        # Arrange - today is 2024-05-20
        store.replace_all([
            make_txn("income", "100", "2024-05-02", id="may"),
            make_txn("expense", "40", "2024-04-30", id="april"),
            make_txn("income", "10", "2024-01-15", id="january"),
            make_txn("income", "10", "2023-05-10", id="last-year-may"),
            make_txn("income", "10", "not-a-date", id="garbage"),
        ])

        # Assert
        assert [t.id for t in store.current_month_transactions] == ["may"]
        assert [t.id for t in store.previous_month_transactions] == ["april"]
        assert {t.id for t in store.current_year_transactions} == {"may", "april", "january"}

    def test_filters_follow_the_clock_at_access_time(self, storage, make_txn):
        """Filters are evaluated against the clock on every access, not at construction"""
        now = {"today": date(2024, 5, 20)}
        store = TransactionStore(storage, clock=lambda: now["today"])
        store.add(make_txn("income", "1", "2024-05-02", id="may"))

        assert [t.id for t in store.current_month_transactions] == ["may"]

        now["today"] = date(2024, 6, 1)
        assert store.current_month_transactions == []
        assert [t.id for t in store.previous_month_transactions] == ["may"]

    def test_previous_month_in_january_is_december_of_last_year(self, storage, make_txn):
        store = TransactionStore(storage, clock=lambda: date(2025, 1, 10))
        store.replace_all([
            make_txn("expense", "80", "2024-12-24", id="december"),
            make_txn("expense", "80", "2025-12-24", id="wrong-december"),
            make_txn("expense", "5", "2025-01-03", id="january"),
        ])

        assert [t.id for t in store.previous_month_transactions] == ["december"]
        assert store.has_expense_last_month is True
        assert store.previous_month_balance == Decimal("-80")

    def test_month_balances(self, store, make_txn):
        store.replace_all([
            make_txn("income", "1000", "2024-05-01"),
            make_txn("expense", "250", "2024-05-03"),
            make_txn("income", "500", "2024-04-01"),
            make_txn("expense", "700", "2024-04-12"),
        ])

        assert store.current_month_balance == Decimal("750")
        assert store.previous_month_balance == Decimal("-200")

    def test_percentage_change_regular(self, store, make_txn):
        store.replace_all([
            make_txn("income", "1500", "2024-05-01"),
            make_txn("income", "1000", "2024-04-01"),
            make_txn("expense", "50", "2024-05-05"),
            make_txn("expense", "100", "2024-04-05"),
        ])

        assert store.income_percentage_change == Decimal("50")
        assert store.expense_percentage_change == Decimal("-50")

    def test_percentage_change_zero_previous_positive_current(self, store, make_txn):
        store.replace_all([make_txn("income", "300", "2024-05-01")])

        assert store.has_income_last_month is False
        assert store.income_percentage_change == Decimal("100")

    def test_percentage_change_zero_previous_zero_current(self, store, make_txn):
        """Both months empty for a type gives the -100 sentinel, not 0"""
        store.replace_all([make_txn("income", "300", "2024-05-01")])

        assert store.expense_percentage_change == Decimal("-100")

    def test_has_flags(self, store, make_txn):
        store.replace_all([make_txn("income", "1", "2024-04-10")])

        assert store.has_income_last_month is True
        assert store.has_expense_last_month is False

    def test_aggregates_track_mutations(self, store, make_txn):
        store.add(make_txn("income", "100", "2024-05-01", id="a"))
        assert store.balance == Decimal("100")

        store.update("a", type="expense")
        assert store.balance == Decimal("-100")

        store.remove("a")
        assert store.balance == 0

@pytest.mark.unit
class TestPercentageChange:

    @pytest.mark.parametrize("current, previous, expected", [
        ("150", "100", "50"),
        ("0", "100", "-100"),
        ("100", "0", "100"),
        ("0", "0", "-100"),
        ("25", "100", "-75"),
    ])
    def test_percentage_change(self, current, previous, expected):
        assert percentage_change(Decimal(current), Decimal(previous)) == Decimal(expected)
