"""CLI command groups and the helpers they share."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer

from ledgerlink.config import LedgerLinkSettings, get_settings
from ledgerlink.services import Services, build_services


def current_user(ctx: typer.Context) -> str:
    """Return the user id chosen by the global ``--user`` option."""
    obj = ctx.find_root().obj or {}
    return obj.get("user_id", "default")


def resolve_settings(database: Path | None = None) -> LedgerLinkSettings:
    """Load settings, optionally pointing them at another database file."""
    settings = get_settings()
    if database is None:
        return settings
    return settings.model_copy(
        update={"database": settings.database.model_copy(update={"path": database})}
    )


@contextmanager
def open_services(database: Path | None = None) -> Iterator[Services]:
    """Build services for one command and close the store afterwards."""
    services = build_services(resolve_settings(database))
    try:
        yield services
    finally:
        services.close()
