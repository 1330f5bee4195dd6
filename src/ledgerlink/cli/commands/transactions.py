"""Transaction listing and categorization commands for LedgerLink CLI."""

import logging
from pathlib import Path

import polars as pl
import typer

from . import current_user, open_services

app = typer.Typer(help="List and recategorize transactions")
logger = logging.getLogger(__name__)


@app.command("list")
def list_transactions(
    ctx: typer.Context,
    limit: int = typer.Option(50, "--limit", "-n", min=1, help="Rows to show"),
    database: Path | None = typer.Option(
        None, "--database", "-d", help="Path to DuckDB database file"
    ),
) -> None:
    """Show the most recent transactions of the current user."""
    user_id = current_user(ctx)
    with open_services(database) as services:
        frame = services.transactions.list_transactions(user_id, limit=limit)

    if frame.is_empty():
        logger.info("No transactions found")
        return

    with pl.Config(tbl_rows=limit, tbl_width_chars=160, fmt_str_lengths=40):
        typer.echo(frame)


@app.command("add-rule")
def add_rule(
    ctx: typer.Context,
    pattern: str = typer.Argument(..., help="Text the description must contain"),
    category: str = typer.Argument(..., help="Name of the category to assign"),
    database: Path | None = typer.Option(
        None, "--database", "-d", help="Path to DuckDB database file"
    ),
) -> None:
    """Add a categorization rule. Rules are checked in the order they were added."""
    user_id = current_user(ctx)
    with open_services(database) as services:
        categories = {
            c.name.lower(): c for c in services.store.find_categories_by_scope(user_id)
        }
        target = categories.get(category.lower())
        if target is None:
            logger.error(f"❌ Unknown category: {category}")
            raise typer.Exit(1)
        services.store.create_rule(
            user_id=user_id, description_contains=pattern, category_id=target.id
        )

    logger.info(f"✅ Descriptions containing '{pattern}' will be filed as {target.name}")


@app.command("recategorize")
def recategorize(
    ctx: typer.Context,
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Do not ask for confirmation"
    ),
    database: Path | None = typer.Option(
        None, "--database", "-d", help="Path to DuckDB database file"
    ),
) -> None:
    """Re-run categorization over all transactions.

    This overwrites categories, including ones you set by hand.
    """
    if not yes:
        typer.confirm("This overwrites every transaction's category. Continue?", abort=True)

    user_id = current_user(ctx)
    with open_services(database) as services:
        changed = services.transactions.recategorize_all(user_id)
    logger.info(f"✅ Recategorized {changed} transaction(s)")


@app.command("backfill-rules")
def backfill_rules(
    ctx: typer.Context,
    database: Path | None = typer.Option(
        None, "--database", "-d", help="Path to DuckDB database file"
    ),
) -> None:
    """Apply your categorization rules to existing transactions."""
    user_id = current_user(ctx)
    with open_services(database) as services:
        changed = services.transactions.backfill_rules(user_id)
    logger.info(f"✅ Updated {changed} transaction(s) from rules")
