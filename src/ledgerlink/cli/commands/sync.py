"""Data synchronization commands for LedgerLink CLI.

This module provides commands for pulling accounts and transactions from the
providers behind a user's connections into the local ledger.
"""

import logging
from pathlib import Path

import typer

from ledgerlink.errors import LedgerLinkError
from ledgerlink.pipeline.orchestrator import SyncSummary

from . import current_user, open_services

app = typer.Typer(help="Sync linked accounts from providers")
logger = logging.getLogger(__name__)


def _report(summary: SyncSummary) -> None:
    logger.info(
        f"✅ {summary.connection_id}: {summary.added_count} added, "
        f"{summary.modified_count} modified"
    )
    for skipped in summary.skipped_accounts:
        logger.warning(
            f"⚠️  Skipped account {skipped.provider_account_id}: {skipped.reason}"
        )
    if summary.skipped_transactions:
        logger.warning(
            f"⚠️  Skipped {summary.skipped_transactions} unreadable transaction(s)"
        )


@app.command("connection")
def sync_connection(
    ctx: typer.Context,
    connection_id: str = typer.Argument(..., help="Connection to sync"),
    database: Path | None = typer.Option(
        None, "--database", "-d", help="Path to DuckDB database file"
    ),
) -> None:
    """Sync one connection.

    Incremental providers continue from the stored cursor; full-refresh
    providers re-fetch every account's history. Categories you set by hand
    are never overwritten.
    """
    user_id = current_user(ctx)
    logger.info(f"🔄 Syncing connection {connection_id}...")
    try:
        with open_services(database) as services:
            summary = services.connections.trigger_sync(connection_id, user_id)
    except (LedgerLinkError, ValueError) as e:
        logger.error(f"❌ Sync failed: {e}")
        raise typer.Exit(1) from e

    _report(summary)


@app.command("all")
def sync_all(
    ctx: typer.Context,
    database: Path | None = typer.Option(
        None, "--database", "-d", help="Path to DuckDB database file"
    ),
) -> None:
    """Sync every connection of the current user.

    A failing connection does not stop the others; the command exits non-zero
    if any of them failed.
    """
    user_id = current_user(ctx)
    with open_services(database) as services:
        results = services.connections.sync_all(user_id)

    if not results:
        logger.warning("No connections to sync - add one with 'ledgerlink connections add'")
        return

    failed = 0
    for connection_id, result in results.items():
        if isinstance(result, SyncSummary):
            _report(result)
        else:
            failed += 1
            logger.error(f"❌ {connection_id}: {result}")

    if failed:
        raise typer.Exit(1)
