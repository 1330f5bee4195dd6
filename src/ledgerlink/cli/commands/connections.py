"""Connection management commands for LedgerLink CLI."""

import logging
from pathlib import Path

import typer

from ledgerlink.errors import LedgerLinkError
from ledgerlink.ledger.models import Provider

from . import current_user, open_services

app = typer.Typer(help="Manage provider connections")
logger = logging.getLogger(__name__)


@app.command("add")
def add_connection(
    ctx: typer.Context,
    provider: Provider = typer.Option(
        ..., "--provider", "-p", help="Provider the access token was issued by"
    ),
    institution: str = typer.Option(
        ..., "--institution", "-i", help="Institution display name"
    ),
    access_token: str = typer.Option(
        ...,
        "--access-token",
        prompt=True,
        hide_input=True,
        help="Provider access token from the linking flow",
    ),
    database: Path | None = typer.Option(
        None, "--database", "-d", help="Path to DuckDB database file"
    ),
) -> None:
    """Store a linked connection and run its first sync.

    The access token is encrypted before it is stored. If the first sync
    fails the connection is still saved; retry with 'ledgerlink sync connection'.
    """
    user_id = current_user(ctx)
    try:
        with open_services(database) as services:
            connection = services.connections.create_connection(
                user_id=user_id,
                provider=provider,
                institution_name=institution,
                access_token=access_token,
            )
    except (LedgerLinkError, ValueError) as e:
        logger.error(f"❌ Failed to add connection: {e}")
        raise typer.Exit(1) from e

    logger.info(f"✅ Added {provider.value} connection for {institution}")
    typer.echo(connection.id)


@app.command("list")
def list_connections(
    ctx: typer.Context,
    database: Path | None = typer.Option(
        None, "--database", "-d", help="Path to DuckDB database file"
    ),
) -> None:
    """List the current user's connections."""
    user_id = current_user(ctx)
    with open_services(database) as services:
        connections = services.connections.list_connections(user_id)

    if not connections:
        logger.info("No connections found")
        return

    for connection in connections:
        synced = "synced" if connection.cursor else "never synced"
        if connection.provider is Provider.TELLER:
            synced = "full refresh"
        typer.echo(
            f"{connection.id}  {connection.provider.value:<7}  "
            f"{connection.institution_name}  ({synced})"
        )
