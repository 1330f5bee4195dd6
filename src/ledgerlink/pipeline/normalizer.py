"""Map provider-native accounts and amounts onto the canonical ledger shape."""

from decimal import Decimal, InvalidOperation
from typing import Any

from ledgerlink.config import BalanceFieldMap
from ledgerlink.errors import InvalidAmountError
from ledgerlink.ledger.models import AccountType, Provider

# (provider type, provider subtype) -> canonical type. A ``None`` subtype is
# the fallback for any subtype of that type not listed explicitly.
ACCOUNT_TYPE_TABLES: dict[Provider, dict[tuple[str, str | None], AccountType]] = {
    Provider.PLAID: {
        ("depository", "checking"): AccountType.CHECKING,
        ("depository", "savings"): AccountType.SAVINGS,
        ("depository", "money market"): AccountType.SAVINGS,
        ("depository", "cd"): AccountType.SAVINGS,
        ("depository", "hsa"): AccountType.SAVINGS,
        ("depository", "cash management"): AccountType.CHECKING,
        ("depository", "paypal"): AccountType.CHECKING,
        ("depository", "prepaid"): AccountType.CHECKING,
        ("depository", None): AccountType.CHECKING,
        ("credit", None): AccountType.CREDIT,
        ("investment", None): AccountType.INVESTMENT,
        ("brokerage", None): AccountType.INVESTMENT,
        ("loan", None): AccountType.LOAN,
    },
    Provider.TELLER: {
        ("depository", "checking"): AccountType.CHECKING,
        ("depository", "savings"): AccountType.SAVINGS,
        ("depository", "money_market"): AccountType.SAVINGS,
        ("depository", "certificate_of_deposit"): AccountType.SAVINGS,
        ("depository", "treasury"): AccountType.SAVINGS,
        ("depository", "sweep"): AccountType.CHECKING,
        ("depository", None): AccountType.CHECKING,
        ("credit", "credit_card"): AccountType.CREDIT,
        ("credit", None): AccountType.CREDIT,
    },
}


def normalize_account_type(
    provider: Provider, provider_type: str | None, provider_subtype: str | None
) -> AccountType:
    """Translate a provider's type/subtype pair into the canonical vocabulary.

    Unmapped combinations fall back to ``AccountType.OTHER``.
    """
    table = ACCOUNT_TYPE_TABLES.get(provider, {})
    type_key = (provider_type or "").strip().lower()
    subtype_key = (provider_subtype or "").strip().lower() or None

    if subtype_key is not None and (type_key, subtype_key) in table:
        return table[(type_key, subtype_key)]
    return table.get((type_key, None), AccountType.OTHER)


def parse_amount(raw: Any) -> Decimal:
    """Parse a provider amount, keeping its sign.

    Raises:
        InvalidAmountError: If ``raw`` is not a finite number
    """
    if isinstance(raw, bool) or raw is None:
        raise InvalidAmountError(raw)
    try:
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(raw) from e
    if not value.is_finite():
        raise InvalidAmountError(raw)
    return value


def normalize_amount(amount: Decimal) -> Decimal:
    """Stored amounts are the absolute value; the sign is consumed by the flow classifier."""
    return abs(amount)


def select_balances(
    field_map: BalanceFieldMap,
    account_type: AccountType,
    balances: dict[str, Decimal | None],
) -> tuple[Decimal | None, Decimal | None]:
    """Pick the canonical (balance, available_balance) pair from raw balances.

    Which raw field feeds which canonical field is configured per provider.
    Credit accounts use ``credit_available`` when configured.
    """
    current = balances.get(field_map.current)
    available_field = field_map.available
    if account_type is AccountType.CREDIT and field_map.credit_available:
        available_field = field_map.credit_available
    available = balances.get(available_field) if available_field else None
    return current, available
