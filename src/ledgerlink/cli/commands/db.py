"""Ledger database commands for LedgerLink CLI."""

import logging
from pathlib import Path

import typer

from ledgerlink.ledger.store import LedgerStore
from ledgerlink.pipeline.categorizer import SYSTEM_CATEGORY_NAMES

from . import resolve_settings

app = typer.Typer(help="Ledger database commands")
logger = logging.getLogger(__name__)


@app.command("init")
def init_database(
    database: Path | None = typer.Option(
        None,
        "--database",
        "-d",
        help="Path to DuckDB database file (default: from config)",
    ),
) -> None:
    """Create the ledger tables and seed the system categories.

    Safe to run repeatedly: existing tables and categories are left alone.

    Examples:
        ledgerlink db init
        ledgerlink db init --database data/duckdb/test.duckdb
    """
    settings = resolve_settings(database)
    db_path = settings.database.path
    if str(db_path) != ":memory:":
        db_path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with LedgerStore(db_path) as store:
            store.initialize()
            created = store.seed_system_categories(SYSTEM_CATEGORY_NAMES)
    except Exception as e:
        logger.error(f"❌ Failed to initialize database: {e}")
        raise typer.Exit(1) from e

    logger.info(f"✅ Ledger database ready: {db_path}")
    logger.info(f"   {created} system categories created")
