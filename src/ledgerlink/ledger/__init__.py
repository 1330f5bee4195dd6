"""Canonical ledger models and the DuckDB-backed Ledger Store."""

from .models import (
    Account,
    AccountType,
    CategorizationRule,
    Category,
    Connection,
    ConnectionInfo,
    Flow,
    Provider,
    SubCategory,
    Transaction,
)
from .store import LedgerStore

__all__ = [
    "Account",
    "AccountType",
    "CategorizationRule",
    "Category",
    "Connection",
    "ConnectionInfo",
    "Flow",
    "LedgerStore",
    "Provider",
    "SubCategory",
    "Transaction",
]
