"""Pydantic schemas for Teller API responses."""

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """Base schema with common configuration."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)


class InstitutionSchema(BaseSchema):
    """Institution an account is held at."""

    id: str | None = None
    name: str = ""


class AccountSchema(BaseSchema):
    """Schema for a Teller account."""

    id: str = Field(..., description="Teller account ID")
    name: str
    type: str
    subtype: str | None = None
    currency: str = "USD"
    last_four: str | None = None
    status: str | None = None
    institution: InstitutionSchema = Field(default_factory=InstitutionSchema)


class BalanceSchema(BaseSchema):
    """Schema for Teller account balances.

    Teller sends balances as decimal strings; they are kept as strings here
    and parsed by the adapter.
    """

    account_id: str | None = None
    available: str | None = None
    ledger: str | None = None


class TransactionDetailsSchema(BaseSchema):
    """Teller's enrichment block."""

    category: str | None = None
    processing_status: str | None = None
    counterparty: dict[str, Any] | None = None


class TransactionSchema(BaseSchema):
    """Schema for a Teller transaction.

    ``amount`` stays a raw string: a malformed amount must only skip its own
    transaction.
    """

    id: str = Field(..., description="Teller transaction ID")
    account_id: str
    amount: Any
    date: dt.date
    description: str = ""
    type: str | None = None
    status: str | None = None
    details: TransactionDetailsSchema | None = None


class ErrorSchema(BaseSchema):
    """Teller error body: ``{"error": {"code": ..., "message": ...}}``."""

    code: str | None = None
    message: str | None = None
