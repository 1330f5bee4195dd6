"""Pydantic schemas for Plaid API responses.

These validate the accounts and transactions Plaid returns before they are
turned into raw provider records. Plaid SDK objects and plain dicts are both
accepted; SDK enum wrappers are coerced to their string values.
"""

import datetime as dt
from decimal import Decimal
from enum import Enum
from typing import Any, cast

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _enum_to_str(v: Any) -> Any:
    """Coerce Plaid SDK enum-like values (``.value``) into plain strings."""
    if v is None:
        return None
    if isinstance(v, Enum):
        return v.value
    value = getattr(v, "value", v)
    return str(value)


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(
        extra="ignore",
        str_strip_whitespace=True,
        from_attributes=True,
        populate_by_name=True,
    )


class BalanceSchema(BaseSchema):
    """Schema for account balance information."""

    available: Decimal | None = Field(None, description="Available balance")
    current: Decimal | None = Field(None, description="Current balance")
    limit: Decimal | None = Field(None, description="Credit limit or overdraft limit")
    iso_currency_code: str | None = Field(None, max_length=3)
    unofficial_currency_code: str | None = None


class AccountSchema(BaseSchema):
    """Schema for Plaid account data."""

    account_id: str = Field(..., description="Plaid account ID")
    balances: BalanceSchema
    mask: str | None = Field(None, max_length=4)
    name: str = Field(..., description="Account name")
    official_name: str | None = None
    subtype: str | None = None
    type: str

    @field_validator("type", "subtype", mode="before")
    @classmethod
    def coerce_account_enums(cls, v: Any) -> Any:
        """Accept Plaid SDK enum or string and convert to string."""
        return _enum_to_str(v)


class PersonalFinanceCategorySchema(BaseSchema):
    """Plaid's enriched category (``primary`` is e.g. ``TRANSFER_IN``)."""

    primary: str | None = None
    detailed: str | None = None
    confidence_level: str | None = None


class TransactionSchema(BaseSchema):
    """Schema for Plaid transaction data.

    ``amount`` is kept as Plaid sent it and parsed later, so a malformed
    amount only skips its own transaction and is counted as skipped.
    """

    transaction_id: str = Field(..., description="Plaid transaction ID")
    account_id: str = Field(..., description="Associated account ID")
    amount: Any = Field(None, description="Transaction amount")
    iso_currency_code: str | None = Field(None, max_length=3)

    transaction_date: dt.date = Field(..., description="Transaction date", alias="date")
    authorized_date: dt.date | None = None

    name: str | None = None
    merchant_name: str | None = None
    original_description: str | None = None

    personal_finance_category: PersonalFinanceCategorySchema | None = None

    payment_channel: str | None = None
    transaction_type: str | None = None
    transaction_code: str | None = None

    pending: bool = False
    pending_transaction_id: str | None = None

    @field_validator(
        "payment_channel", "transaction_type", "transaction_code", mode="before"
    )
    @classmethod
    def coerce_transaction_enums(cls, v: Any) -> Any:
        """Coerce Plaid SDK enums for transaction fields into strings."""
        return _enum_to_str(v)

    @field_validator("personal_finance_category", mode="before")
    @classmethod
    def coerce_personal_finance_category(cls, v: Any) -> Any:
        """Convert Plaid SDK PersonalFinanceCategory objects into dicts."""
        if v is None or isinstance(v, dict):
            return v
        to_dict = getattr(v, "to_dict", None)
        if callable(to_dict):
            converted = to_dict()
            return cast(dict[str, Any], converted) if isinstance(converted, dict) else None
        return v

    @property
    def description(self) -> str:
        """Best available human-readable description."""
        return self.name or self.merchant_name or self.original_description or ""
