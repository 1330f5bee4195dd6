"""Classify a transaction's cash-flow direction.

Sign conventions differ by provider and account type, so the sign is never
read on its own. An explicit provider category hint wins outright;
otherwise the decision table below is consulted:

===========  ========  ===========================  ============
account      sign      type hint                    flow
===========  ========  ===========================  ============
credit       > 0       any                          EXPENSE
credit       < 0       payment, transfer            TRANSFER
credit       < 0       other                        INCOME
depository   < 0       bill_payment, transfer       TRANSFER
depository   < 0       other                        EXPENSE
depository   > 0       any                          INCOME
any          0         any                          UNRECOGNIZED
other types  any       any                          UNRECOGNIZED
===========  ========  ===========================  ============

UNRECOGNIZED is a terminal classification surfaced to the user for manual
correction, not an error.
"""

from decimal import Decimal

from ledgerlink.ledger.models import AccountType, Flow

# Explicit provider category labels that decide the flow regardless of sign
CATEGORY_HINT_FLOWS: dict[str, Flow] = {
    "TRANSFER_IN": Flow.INCOME,
    "TRANSFER_OUT": Flow.TRANSFER,
    "LOAN_PAYMENTS": Flow.TRANSFER,
}

CREDIT_TRANSFER_HINTS = frozenset({"payment", "transfer"})
DEPOSITORY_TRANSFER_HINTS = frozenset({"bill_payment", "transfer"})
DEPOSITORY_TYPES = frozenset({AccountType.CHECKING, AccountType.SAVINGS})


def _normalize_hint(hint: str | None) -> str | None:
    if not hint:
        return None
    return hint.strip().lower().replace(" ", "_").replace("-", "_")


def classify(
    signed_amount: Decimal,
    account_type: AccountType,
    type_hint: str | None = None,
    category_hint: str | None = None,
) -> Flow:
    """Derive the flow of one transaction.

    Args:
        signed_amount: Amount with the provider's sign convention intact
        account_type: Canonical type of the owning account
        type_hint: Provider transaction type (e.g. ``payment``, ``bill payment``)
        category_hint: Provider category label (e.g. ``TRANSFER_OUT``)
    """
    if category_hint:
        explicit = CATEGORY_HINT_FLOWS.get(category_hint.strip().upper())
        if explicit is not None:
            return explicit

    if signed_amount == 0:
        return Flow.UNRECOGNIZED

    hint = _normalize_hint(type_hint)

    if account_type is AccountType.CREDIT:
        if signed_amount > 0:
            return Flow.EXPENSE
        if hint in CREDIT_TRANSFER_HINTS:
            return Flow.TRANSFER
        return Flow.INCOME

    if account_type in DEPOSITORY_TYPES:
        if signed_amount > 0:
            return Flow.INCOME
        if hint in DEPOSITORY_TRANSFER_HINTS:
            return Flow.TRANSFER
        return Flow.EXPENSE

    return Flow.UNRECOGNIZED
