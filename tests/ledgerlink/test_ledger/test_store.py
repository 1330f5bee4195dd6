# ruff: noqa: S101
"""Tests for the DuckDB-backed ledger store."""

import datetime as dt
from decimal import Decimal
from pathlib import Path

import polars as pl
import pytest

from ledgerlink.ledger.models import (
    AccountRecord,
    AccountType,
    AccountUpdate,
    Flow,
    Provider,
    TransactionRecord,
    TransactionUpdate,
)
from ledgerlink.ledger.store import LedgerStore


def _account(store: LedgerStore, provider_account_id: str = "acc_1"):
    account, _ = store.upsert_account(
        Provider.PLAID,
        provider_account_id,
        AccountRecord(
            user_id="user_1",
            connection_id="conn_1",
            provider=Provider.PLAID,
            name="Checking",
            type=AccountType.CHECKING,
            balance=Decimal("10.00"),
        ),
        AccountUpdate(balance=Decimal("10.00")),
    )
    return account


def _txn_record(account_id: str, category_id: str | None = None) -> TransactionRecord:
    return TransactionRecord(
        account_id=account_id,
        provider=Provider.PLAID,
        description="Coffee",
        amount=Decimal("4.50"),
        date=dt.date(2024, 3, 1),
        flow=Flow.EXPENSE,
        category_id=category_id,
    )


class TestSchema:
    @pytest.mark.unit
    def test_initialize_is_repeatable(self, tmp_path: Path) -> None:
        db_path = tmp_path / "ledger.duckdb"
        with LedgerStore(db_path) as store:
            store.initialize()
            store.initialize()
            assert store.list_connections("nobody") == []
        assert db_path.exists()


class TestUpserts:
    @pytest.mark.unit
    def test_account_upsert_is_keyed_by_provider_id(self, store: LedgerStore) -> None:
        first = _account(store)
        again, created = store.upsert_account(
            Provider.PLAID,
            "acc_1",
            AccountRecord(
                user_id="user_1",
                connection_id="conn_1",
                provider=Provider.PLAID,
                name="Renamed",
                type=AccountType.SAVINGS,
            ),
            AccountUpdate(balance=Decimal("99.00"), available_balance=Decimal("90")),
        )

        assert created is False
        assert again.id == first.id
        assert again.balance == Decimal("99.00")
        assert again.available_balance == Decimal("90")
        # Only update fields change
        assert again.name == "Checking"
        assert again.type is AccountType.CHECKING
        assert len(store.list_accounts("user_1")) == 1

    @pytest.mark.unit
    def test_same_provider_id_on_other_provider_is_distinct(
        self, store: LedgerStore
    ) -> None:
        _account(store)
        _, created = store.upsert_account(
            Provider.TELLER,
            "acc_1",
            AccountRecord(
                user_id="user_1",
                connection_id="conn_2",
                provider=Provider.TELLER,
                name="Teller Checking",
                type=AccountType.CHECKING,
            ),
            AccountUpdate(),
        )
        assert created is True
        assert len(store.list_accounts("user_1")) == 2

    @pytest.mark.unit
    def test_transaction_update_never_touches_category(self, store: LedgerStore) -> None:
        account = _account(store)
        category = store.create_category("Coffee", user_id="user_1")
        txn, created = store.upsert_transaction(
            Provider.PLAID, "T1", _txn_record(account.id), TransactionUpdate(
                description="Coffee", amount=Decimal("4.50"), flow=Flow.EXPENSE
            )
        )
        assert created is True
        store.update_transaction(txn.id, category_id=category.id)

        updated, created = store.upsert_transaction(
            Provider.PLAID,
            "T1",
            _txn_record(account.id, category_id="something_else"),
            TransactionUpdate(
                description="Coffee Shop", amount=Decimal("5.00"), flow=Flow.EXPENSE
            ),
        )

        assert created is False
        assert updated.id == txn.id
        assert updated.description == "Coffee Shop"
        assert updated.amount == Decimal("5.00")
        assert updated.category_id == category.id

    @pytest.mark.unit
    def test_negative_amount_is_rejected(self, store: LedgerStore) -> None:
        with pytest.raises(ValueError):
            TransactionRecord(
                account_id="a",
                provider=Provider.PLAID,
                description="x",
                amount=Decimal("-1"),
                date=dt.date(2024, 1, 1),
                flow=Flow.EXPENSE,
            )


class TestManualEntries:
    @pytest.mark.unit
    def test_manual_account_and_transaction(self, store: LedgerStore) -> None:
        account = store.create_manual_account(user_id="user_1", name="Wallet")
        txn = store.create_manual_transaction(
            account_id=account.id,
            description="Farmers market",
            amount=Decimal("-23.00"),
            txn_date=dt.date(2024, 5, 4),
            flow=Flow.EXPENSE,
        )

        assert account.is_manual
        assert account.connection_id is None
        assert account.provider_account_id.startswith("manual_")
        assert txn.is_manual
        assert txn.amount == Decimal("23.00")
        assert txn.provider_transaction_id.startswith("manual_")

    @pytest.mark.unit
    def test_only_manual_transactions_can_be_deleted(self, store: LedgerStore) -> None:
        account = _account(store)
        synced, _ = store.upsert_transaction(
            Provider.PLAID,
            "T1",
            _txn_record(account.id),
            TransactionUpdate(description="Coffee", amount=Decimal("4.50"), flow=Flow.EXPENSE),
        )
        manual = store.create_manual_transaction(
            account_id=account.id,
            description="Cash tip",
            amount=Decimal("5"),
            txn_date=dt.date(2024, 3, 2),
            flow=Flow.EXPENSE,
        )

        with pytest.raises(ValueError):
            store.delete_transaction(synced.id)
        store.delete_transaction(manual.id)

        assert store.get_transaction(manual.id) is None
        with pytest.raises(KeyError):
            store.delete_transaction(manual.id)

    @pytest.mark.unit
    def test_update_transaction_rejects_non_editable_fields(
        self, store: LedgerStore
    ) -> None:
        account = store.create_manual_account(user_id="user_1", name="Wallet")
        txn = store.create_manual_transaction(
            account_id=account.id,
            description="Lunch",
            amount=Decimal("12"),
            txn_date=dt.date(2024, 3, 2),
            flow=Flow.EXPENSE,
        )

        with pytest.raises(ValueError):
            store.update_transaction(txn.id, amount=Decimal("1"))

        hidden = store.update_transaction(txn.id, is_hidden=True, notes="split")
        assert hidden.is_hidden is True
        assert hidden.notes == "split"

        with pytest.raises(KeyError):
            store.update_transaction("missing", notes="x")

    @pytest.mark.unit
    def test_delete_account_cascades(self, store: LedgerStore) -> None:
        account = store.create_manual_account(user_id="user_1", name="Wallet")
        for i in range(3):
            store.create_manual_transaction(
                account_id=account.id,
                description=f"Item {i}",
                amount=Decimal("1"),
                txn_date=dt.date(2024, 3, 2),
                flow=Flow.EXPENSE,
            )

        assert store.delete_account(account.id) == 3
        assert store.get_account(account.id) is None
        assert store.list_transactions("user_1") == []


class TestCategoriesAndRules:
    @pytest.mark.unit
    def test_scope_lookup(self, store: LedgerStore) -> None:
        store.create_category("Pets", user_id="user_1")
        store.create_category("Boat", user_id="user_2")

        system = {c.name for c in store.find_categories_by_scope(None)}
        user_1 = {c.name for c in store.find_categories_by_scope("user_1")}

        assert "Pets" not in system
        assert "Other" in system
        assert {"Pets", "Other"} <= user_1
        assert "Boat" not in user_1

    @pytest.mark.unit
    def test_seeding_is_idempotent(self, store: LedgerStore) -> None:
        assert store.seed_system_categories(["Other", "Brand New"]) == 1
        assert store.seed_system_categories(["Other", "Brand New"]) == 0

    @pytest.mark.unit
    def test_rules_keep_insertion_order(self, store: LedgerStore) -> None:
        for pattern in ("zeta", "alpha", "mid"):
            store.create_rule(
                user_id="user_1", description_contains=pattern, category_id="c"
            )
        store.create_rule(user_id="user_2", description_contains="x", category_id="c")

        rules = store.find_rules("user_1")
        assert [r.description_contains for r in rules] == ["zeta", "alpha", "mid"]


class TestSyncLock:
    @pytest.mark.unit
    def test_lock_excludes_other_owners(self, store: LedgerStore) -> None:
        assert store.acquire_sync_lock("conn_1", "owner_a", 60) == 1
        assert store.acquire_sync_lock("conn_1", "owner_b", 60) is None
        # Re-entrant for the same owner
        assert store.acquire_sync_lock("conn_1", "owner_a", 60) == 2

        store.release_sync_lock("conn_1", "owner_a")
        assert store.acquire_sync_lock("conn_1", "owner_b", 60) == 1

    @pytest.mark.unit
    def test_expired_lock_can_be_taken_over(self, store: LedgerStore) -> None:
        assert store.acquire_sync_lock("conn_1", "owner_a", -1) == 1
        assert store.acquire_sync_lock("conn_1", "owner_b", 60) == 2


@pytest.mark.unit
def test_transactions_frame(store: LedgerStore) -> None:
    account = store.create_manual_account(user_id="user_1", name="Wallet")
    other = next(c for c in store.find_categories_by_scope(None) if c.name == "Other")
    store.create_manual_transaction(
        account_id=account.id,
        description="Older",
        amount=Decimal("1"),
        txn_date=dt.date(2024, 1, 1),
        flow=Flow.EXPENSE,
        category_id=other.id,
    )
    store.create_manual_transaction(
        account_id=account.id,
        description="Newer",
        amount=Decimal("2"),
        txn_date=dt.date(2024, 2, 1),
        flow=Flow.INCOME,
    )

    frame = store.transactions_frame("user_1")
    assert isinstance(frame, pl.DataFrame)
    assert frame.columns == [
        "date",
        "account",
        "description",
        "amount",
        "flow",
        "category",
        "is_manual",
        "is_hidden",
    ]
    assert frame["description"].to_list() == ["Newer", "Older"]
    assert frame["category"].to_list() == [None, "Other"]
    assert store.transactions_frame("user_1", limit=1).height == 1
