"""Logging configuration management for LedgerLink.

This module provides centralized logging configuration that can be used across
all LedgerLink components, with support for CLI and library use.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from ledgerlink.config import LoggingConfig

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CLI_FORMAT = "%(message)s"


def config_from_environment() -> LoggingConfig:
    """Create logging configuration from environment variables.

    Returns:
        LoggingConfig: Configuration loaded from environment
    """
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        level = "INFO"
    return LoggingConfig(
        level=level,  # type: ignore[arg-type]
        log_to_file=os.getenv("LOG_TO_FILE", "false").lower() == "true",
        log_file_path=Path(os.getenv("LOG_FILE_PATH", "logs/ledgerlink.log")),
        max_file_size_mb=int(os.getenv("LOG_MAX_FILE_SIZE_MB", "50")),
        backup_count=int(os.getenv("LOG_BACKUP_COUNT", "5")),
    )


def setup_logging(
    config: LoggingConfig | None = None,
    cli_mode: bool = False,
    verbose: bool = False,
    force_reconfigure: bool = False,
) -> None:
    """Set up centralized logging configuration for the application.

    Args:
        config: Optional logging configuration. If None, loads from environment.
        cli_mode: If True, use simplified CLI-friendly formatting
        verbose: If True, enable DEBUG level logging (overrides config level)
        force_reconfigure: If True, replace handlers already on the root logger
    """
    if config is None:
        config = config_from_environment()

    level = logging.DEBUG if verbose else getattr(logging, config.level)

    handlers: list[logging.Handler] = []

    # Console output goes to stderr so stdout stays clean for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(
        logging.Formatter(CLI_FORMAT if cli_mode else DEFAULT_FORMAT)
    )
    handlers.append(console_handler)

    if config.log_to_file:
        config.log_file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=force_reconfigure)

    # Quiet third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("plaid").setLevel(logging.INFO)

