"""Main CLI application for LedgerLink.

This module provides the unified entry point for LedgerLink CLI operations,
organizing commands into groups for database setup, connections, syncing and
transaction maintenance.
"""

import logging
import re
from typing import Annotated

import typer

from ..config import get_settings
from ..logging import setup_logging
from .commands import connections, db, sync, transactions

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="ledgerlink",
    help="LedgerLink: sync and categorize linked financial accounts",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    user: Annotated[
        str,
        typer.Option(
            "--user",
            "-u",
            help="User whose ledger to work with",
            envvar="LEDGERLINK_USER",
        ),
    ] = "default",
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose debug logging",
        ),
    ] = False,
) -> None:
    """Global options for LedgerLink CLI.

    Examples:
      ledgerlink db init
      ledgerlink --user alice connections list
      ledgerlink --user alice sync all

    The user can also be set via the LEDGERLINK_USER environment variable.
    """
    try:
        logging_config = get_settings().logging
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    setup_logging(config=logging_config, cli_mode=True, verbose=verbose)

    if not re.match(r"^[a-zA-Z0-9_@.-]+$", user):
        raise typer.BadParameter(
            f"Invalid user id: {user}. "
            "Use only alphanumeric characters, dashes, underscores, dots and @"
        )

    ctx.obj = {"user_id": user}
    logger.debug(f"Using user: {user}")


app.add_typer(db.app, name="db", help="Ledger database commands")
app.add_typer(connections.app, name="connections", help="Manage provider connections")
app.add_typer(sync.app, name="sync", help="Sync linked accounts from providers")
app.add_typer(
    transactions.app, name="transactions", help="List and recategorize transactions"
)


def main() -> None:
    """Entry point for the LedgerLink CLI application."""
    app()


if __name__ == "__main__":
    main()
