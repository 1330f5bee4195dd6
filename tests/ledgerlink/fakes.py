# ruff: noqa: S101
"""In-memory provider adapters and record builders shared by the test suite."""

from __future__ import annotations

import datetime as dt
from collections.abc import Iterable
from decimal import Decimal
from typing import Any

from ledgerlink.errors import AccountScopedError
from ledgerlink.ledger.models import Provider
from ledgerlink.providers.base import (
    ProviderAdapter,
    RawAccount,
    RawTransaction,
    TransactionPage,
)


def raw_account(
    account_id: str = "acc_1",
    provider_type: str = "depository",
    provider_subtype: str | None = "checking",
    balances: dict[str, Decimal | None] | None = None,
    name: str | None = None,
) -> RawAccount:
    """Build a RawAccount with sensible defaults."""
    return RawAccount(
        provider_account_id=account_id,
        name=name or f"Account {account_id}",
        provider_type=provider_type,
        provider_subtype=provider_subtype,
        mask="0000",
        balances=balances
        if balances is not None
        else {"current": Decimal("100.00"), "available": Decimal("90.00")},
    )


def raw_txn(
    txn_id: str,
    amount: Any,
    account_id: str = "acc_1",
    description: str = "Generic merchant",
    type_hint: str | None = None,
    category_hint: str | None = None,
    date: dt.date = dt.date(2024, 1, 15),
) -> RawTransaction:
    """Build a RawTransaction with sensible defaults."""
    return RawTransaction(
        provider_transaction_id=txn_id,
        provider_account_id=account_id,
        description=description,
        amount=amount,
        date=date,
        type_hint=type_hint,
        category_hint=category_hint,
    )


class FakeIncrementalAdapter(ProviderAdapter):
    """Cursor-paged adapter that replays scripted pages.

    Each entry of ``pages`` is returned (or raised, if it is an exception) by
    successive ``fetch_transactions_page`` calls.
    """

    provider = Provider.PLAID
    incremental = True

    def __init__(
        self,
        accounts: Iterable[RawAccount],
        pages: Iterable[TransactionPage | Exception],
        failing_balances: dict[str, Exception] | None = None,
    ):
        self.accounts = list(accounts)
        self.pages = list(pages)
        self.failing_balances = failing_balances or {}
        self.cursors_seen: list[str | None] = []
        self.refresh_calls = 0

    def fetch_accounts(self, access_token: str) -> list[RawAccount]:
        return list(self.accounts)

    def fetch_balances(
        self, access_token: str, account: RawAccount
    ) -> dict[str, Decimal | None]:
        error = self.failing_balances.get(account.provider_account_id)
        if error is not None:
            raise error
        return dict(account.balances)

    def fetch_transactions_page(
        self,
        access_token: str,
        *,
        cursor: str | None = None,
        account_id: str | None = None,
    ) -> TransactionPage:
        self.cursors_seen.append(cursor)
        item = self.pages.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def refresh(self, access_token: str) -> None:
        self.refresh_calls += 1


class FakeFullRefetchAdapter(ProviderAdapter):
    """Full-history adapter backed by a dict of account id → transactions."""

    provider = Provider.TELLER
    incremental = False

    def __init__(
        self,
        accounts: Iterable[RawAccount],
        transactions: dict[str, list[RawTransaction]],
        failing_accounts: Iterable[str] = (),
    ):
        self.accounts = list(accounts)
        self.transactions = transactions
        self.failing_accounts = set(failing_accounts)
        self.fetched_accounts: list[str] = []

    def fetch_accounts(self, access_token: str) -> list[RawAccount]:
        return list(self.accounts)

    def fetch_transactions_page(
        self,
        access_token: str,
        *,
        cursor: str | None = None,
        account_id: str | None = None,
    ) -> TransactionPage:
        assert account_id is not None
        self.fetched_accounts.append(account_id)
        if account_id in self.failing_accounts:
            raise AccountScopedError(
                "Account closed",
                account_id=account_id,
                provider="teller",
                error_code="account.closed",
                status=410,
            )
        return TransactionPage(added=list(self.transactions.get(account_id, [])))
