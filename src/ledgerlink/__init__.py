"""LedgerLink: linked-account synchronization and categorization.

This package pulls accounts and transactions from external aggregation
providers (Plaid, Teller), normalizes them into a provider-agnostic model,
classifies each transaction's cash-flow direction, assigns a category and
writes everything idempotently into a local DuckDB ledger.
"""

__version__ = "0.1.0"
