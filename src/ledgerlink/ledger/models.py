"""Canonical, provider-agnostic ledger records.

These models are what the Ledger Store persists and returns. Provider-native
shapes live in ``ledgerlink.providers`` and never leak past the normalizer.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Provider(str, Enum):
    """Data-aggregation provider a Connection is linked through."""

    PLAID = "plaid"
    TELLER = "teller"


class AccountType(str, Enum):
    """Canonical account type vocabulary."""

    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    LOAN = "loan"
    CASH = "cash"
    OTHER = "other"


class Flow(str, Enum):
    """Cash-flow direction of a transaction."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    UNRECOGNIZED = "UNRECOGNIZED"


class LedgerRecord(BaseModel):
    """Base configuration shared by stored records."""

    model_config = ConfigDict(
        frozen=True,
        from_attributes=True,
        use_enum_values=False,
    )


class Connection(LedgerRecord):
    """One user's link to one provider."""

    id: str
    user_id: str
    provider: Provider
    institution_name: str
    access_token: str = Field(..., repr=False, description="Encrypted access token")
    cursor: str | None = Field(
        default=None, description="Incremental cursor; None until a sync completes"
    )
    created_at: dt.datetime | None = None


class Account(LedgerRecord):
    """A financial account, either provider-linked or entered manually."""

    id: str
    user_id: str
    connection_id: str | None = None
    provider: Provider | None = None
    provider_account_id: str
    name: str
    mask: str | None = None
    type: AccountType = AccountType.OTHER
    balance: Decimal | None = None
    available_balance: Decimal | None = None
    currency: str = "USD"
    institution_name: str = ""
    is_manual: bool = False


class Transaction(LedgerRecord):
    """One ledger entry. Direction lives in ``flow``; ``amount`` is never negative."""

    id: str
    account_id: str
    provider: Provider | None = None
    provider_transaction_id: str
    description: str
    amount: Decimal
    date: dt.date
    type: str = "unknown"
    flow: Flow = Flow.UNRECOGNIZED
    category_id: str | None = None
    sub_category_id: str | None = None
    is_manual: bool = False
    is_hidden: bool = False
    notes: str | None = None

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: Decimal) -> Decimal:
        """Stored amounts are always non-negative."""
        if v < 0:
            raise ValueError("Transaction amount must be non-negative")
        return v


class Category(LedgerRecord):
    """Category owned by the system (``user_id`` is None) or by one user."""

    id: str
    name: str
    user_id: str | None = None


class SubCategory(LedgerRecord):
    """Sub-category belonging to one user and one parent category."""

    id: str
    name: str
    user_id: str
    category_id: str


class CategorizationRule(LedgerRecord):
    """User-owned description-substring → category rule."""

    id: str
    user_id: str
    description_contains: str
    category_id: str
    sub_category_id: str | None = None


class AccountRecord(BaseModel):
    """Fields written when an account is first created by a sync."""

    user_id: str
    connection_id: str | None
    provider: Provider | None
    name: str
    mask: str | None = None
    type: AccountType
    balance: Decimal | None = None
    available_balance: Decimal | None = None
    currency: str = "USD"
    institution_name: str = ""
    is_manual: bool = False


class AccountUpdate(BaseModel):
    """Fields refreshed on every subsequent sync of an existing account."""

    balance: Decimal | None = None
    available_balance: Decimal | None = None


class TransactionRecord(BaseModel):
    """Fields written when a transaction is first seen."""

    account_id: str
    provider: Provider | None
    description: str
    amount: Decimal = Field(..., ge=0)
    date: dt.date
    type: str = "unknown"
    flow: Flow
    category_id: str | None = None
    sub_category_id: str | None = None
    is_manual: bool = False
    notes: str | None = None


class TransactionUpdate(BaseModel):
    """Fields refreshed on resync.

    Has no category fields: a resync never touches a category the user may
    have edited.
    """

    description: str
    amount: Decimal = Field(..., ge=0)
    flow: Flow


class ConnectionInfo(LedgerRecord):
    """A connection as returned to callers. Never carries the access token."""

    id: str
    user_id: str
    provider: Provider
    institution_name: str
    cursor: str | None = None
    created_at: dt.datetime | None = None

    @classmethod
    def from_connection(cls, connection: Connection) -> "ConnectionInfo":
        return cls.model_validate(connection.model_dump(exclude={"access_token"}))
