"""LedgerLink CLI package.

This package provides the command-line interface for setting up the ledger,
linking connections, running syncs and maintaining transactions.
"""

from .main import app, main

__all__ = ["app", "main"]
