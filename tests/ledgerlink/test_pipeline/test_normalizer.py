# ruff: noqa: S101
"""Tests for account type, amount and balance normalization."""

from decimal import Decimal

import pytest

from ledgerlink.config import BalanceFieldMap, SyncConfig
from ledgerlink.errors import InvalidAmountError
from ledgerlink.ledger.models import AccountType, Provider
from ledgerlink.pipeline.normalizer import (
    normalize_account_type,
    normalize_amount,
    parse_amount,
    select_balances,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    ("provider", "provider_type", "subtype", "expected"),
    [
        (Provider.PLAID, "depository", "checking", AccountType.CHECKING),
        (Provider.PLAID, "depository", "savings", AccountType.SAVINGS),
        (Provider.PLAID, "depository", "money market", AccountType.SAVINGS),
        (Provider.PLAID, "depository", "something new", AccountType.CHECKING),
        (Provider.PLAID, "credit", "credit card", AccountType.CREDIT),
        (Provider.PLAID, "investment", "401k", AccountType.INVESTMENT),
        (Provider.PLAID, "loan", "mortgage", AccountType.LOAN),
        (Provider.PLAID, "other", None, AccountType.OTHER),
        (Provider.TELLER, "depository", "checking", AccountType.CHECKING),
        (Provider.TELLER, "depository", "money_market", AccountType.SAVINGS),
        (Provider.TELLER, "credit", "credit_card", AccountType.CREDIT),
        (Provider.TELLER, "Depository", "Savings", AccountType.SAVINGS),
        (Provider.TELLER, "investment", None, AccountType.OTHER),
        (Provider.TELLER, None, None, AccountType.OTHER),
    ],
)
def test_normalize_account_type(
    provider: Provider,
    provider_type: str | None,
    subtype: str | None,
    expected: AccountType,
) -> None:
    assert normalize_account_type(provider, provider_type, subtype) is expected


@pytest.mark.unit
@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("-50.25", Decimal("-50.25")),
        (" 12.00 ", Decimal("12.00")),
        (42, Decimal("42")),
        (-3.5, Decimal("-3.5")),
        (Decimal("7.10"), Decimal("7.10")),
    ],
)
def test_parse_amount_keeps_sign(raw: object, expected: Decimal) -> None:
    assert parse_amount(raw) == expected


@pytest.mark.unit
@pytest.mark.parametrize("raw", [None, "", "abc", "NaN", "Infinity", True, "1,000"])
def test_parse_amount_rejects_garbage(raw: object) -> None:
    with pytest.raises(InvalidAmountError):
        parse_amount(raw)


@pytest.mark.unit
def test_normalize_amount_is_absolute() -> None:
    assert normalize_amount(Decimal("-50")) == Decimal("50")
    assert normalize_amount(Decimal("50")) == Decimal("50")
    assert normalize_amount(Decimal("0")) == Decimal("0")


class TestSelectBalances:
    """Balance field selection per provider defaults."""

    @pytest.mark.unit
    def test_plaid_depository(self) -> None:
        fields = SyncConfig().balance_fields[Provider.PLAID]
        balances = {
            "current": Decimal("120"),
            "available": Decimal("100"),
            "limit": None,
        }
        assert select_balances(fields, AccountType.CHECKING, balances) == (
            Decimal("120"),
            Decimal("100"),
        )

    @pytest.mark.unit
    def test_plaid_credit_uses_limit(self) -> None:
        fields = SyncConfig().balance_fields[Provider.PLAID]
        balances = {
            "current": Decimal("450"),
            "available": Decimal("4550"),
            "limit": Decimal("5000"),
        }
        assert select_balances(fields, AccountType.CREDIT, balances) == (
            Decimal("450"),
            Decimal("5000"),
        )

    @pytest.mark.unit
    def test_teller_uses_ledger_as_balance(self) -> None:
        fields = SyncConfig().balance_fields[Provider.TELLER]
        balances = {"ledger": Decimal("80.10"), "available": Decimal("75.00")}
        assert select_balances(fields, AccountType.CHECKING, balances) == (
            Decimal("80.10"),
            Decimal("75.00"),
        )

    @pytest.mark.unit
    def test_custom_field_map(self) -> None:
        fields = BalanceFieldMap(current="available", available=None)
        balances = {"ledger": Decimal("80"), "available": Decimal("75")}
        assert select_balances(fields, AccountType.SAVINGS, balances) == (
            Decimal("75"),
            None,
        )

    @pytest.mark.unit
    def test_missing_fields_are_none(self) -> None:
        fields = SyncConfig().balance_fields[Provider.PLAID]
        assert select_balances(fields, AccountType.CHECKING, {}) == (None, None)
