"""Centralized configuration management for LedgerLink.

This module provides a Pydantic Settings-based configuration system that
consolidates all application settings with environment variable integration,
type validation, and clear error handling.
"""

import os
from pathlib import Path
from typing import Any, Literal

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .ledger.models import Provider


class DatabaseConfig(BaseModel):
    """Ledger database configuration settings."""

    model_config = ConfigDict(frozen=True)

    path: Path = Field(
        default=Path("data/duckdb/ledgerlink.duckdb"),
        description="Path to DuckDB database file",
    )
    create_dirs: bool = Field(
        default=True, description="Automatically create database directories"
    )

    @field_validator("path")
    @classmethod
    def validate_database_path(cls, v: Path) -> Path:
        """Ensure database path has correct extension."""
        if str(v) == ":memory:":
            return v
        if not str(v).endswith((".db", ".duckdb")):
            raise ValueError("Database path must end with .db or .duckdb")
        return v


class PlaidConfig(BaseModel):
    """Plaid API configuration settings."""

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(default="", description="Plaid client ID")
    secret: str = Field(default="", description="Plaid secret key")
    environment: Literal["sandbox", "development", "production"] = Field(
        default="sandbox", description="Plaid environment"
    )
    page_size: int = Field(
        default=500, ge=1, le=500, description="Transactions per sync page"
    )
    max_pagination_restarts: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Restarts allowed when data mutates during pagination",
    )
    refresh_before_sync: bool = Field(
        default=True,
        description="Ask Plaid to refresh institution data before an explicit sync",
    )


class TellerConfig(BaseModel):
    """Teller API configuration settings."""

    model_config = ConfigDict(frozen=True)

    certificate_path: Path | None = Field(
        default=None, description="Path to the Teller client certificate (PEM)"
    )
    private_key_path: Path | None = Field(
        default=None, description="Path to the Teller client private key (PEM)"
    )
    environment: Literal["sandbox", "development", "production"] = Field(
        default="sandbox", description="Teller environment"
    )
    timeout_seconds: float = Field(
        default=30.0, gt=0, le=300, description="Per-request transport timeout"
    )


class SecurityConfig(BaseModel):
    """Access token encryption settings."""

    model_config = ConfigDict(frozen=True)

    encryption_key: str = Field(
        default="",
        repr=False,
        description="Fernet key used to encrypt provider access tokens at rest",
    )


class BalanceFieldMap(BaseModel):
    """Names of the raw balance fields that feed the canonical balance pair."""

    model_config = ConfigDict(frozen=True)

    current: str = Field(..., description="Raw field stored as the account balance")
    available: str | None = Field(
        default=None, description="Raw field stored as the available balance"
    )
    credit_available: str | None = Field(
        default=None,
        description="Raw field stored as the available balance on credit accounts",
    )


def _default_balance_fields() -> dict[Provider, BalanceFieldMap]:
    return {
        Provider.PLAID: BalanceFieldMap(
            current="current", available="available", credit_available="limit"
        ),
        Provider.TELLER: BalanceFieldMap(
            current="ledger", available="available", credit_available="available"
        ),
    }


class SyncConfig(BaseModel):
    """Synchronization behaviour settings."""

    model_config = ConfigDict(frozen=True)

    lock_ttl_seconds: int = Field(
        default=900,
        ge=10,
        le=86400,
        description="Seconds before an abandoned per-connection sync lock expires",
    )
    balance_fields: dict[Provider, BalanceFieldMap] = Field(
        default_factory=_default_balance_fields,
        description="Per-provider mapping of raw balance fields",
    )


class LoggingConfig(BaseModel):
    """Logging configuration settings."""

    model_config = ConfigDict(frozen=True)

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_to_file: bool = Field(default=False, description="Enable file logging")
    log_file_path: Path = Field(
        default=Path("logs/ledgerlink.log"), description="Path to log file"
    )
    max_file_size_mb: int = Field(
        default=50, ge=1, le=1000, description="Maximum log file size in MB"
    )
    backup_count: int = Field(
        default=5, ge=1, le=50, description="Number of log file backups to keep"
    )


class LedgerLinkSettings(BaseSettings):
    """Main application settings with environment variable integration.

    Environment variables are loaded with the LEDGERLINK_ prefix.
    For nested configs, use double underscores: LEDGERLINK_DATABASE__PATH
    """

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    plaid: PlaidConfig = Field(default_factory=PlaidConfig)
    teller: TellerConfig = Field(default_factory=TellerConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LEDGERLINK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    def __init__(self, **kwargs: Any):
        """Initialize settings, honouring legacy provider environment variables.

        Args:
            **kwargs: Additional configuration overrides
        """
        if "plaid" not in kwargs:
            client_id = os.getenv("PLAID_CLIENT_ID")
            secret = os.getenv("PLAID_SECRET")
            env = os.getenv("PLAID_ENV", "sandbox")
            if client_id and secret and env in ("sandbox", "development", "production"):
                kwargs["plaid"] = PlaidConfig(
                    client_id=client_id, secret=secret, environment=env
                )

        if "teller" not in kwargs:
            cert = os.getenv("TELLER_CERTIFICATE_PATH")
            key = os.getenv("TELLER_PRIVATE_KEY_PATH")
            env = os.getenv("TELLER_ENV", "sandbox")
            if cert and key and env in ("sandbox", "development", "production"):
                kwargs["teller"] = TellerConfig(
                    certificate_path=Path(cert),
                    private_key_path=Path(key),
                    environment=env,
                )

        if "security" not in kwargs:
            encryption_key = os.getenv("ENCRYPTION_KEY")
            if encryption_key:
                kwargs["security"] = SecurityConfig(encryption_key=encryption_key)

        super().__init__(**kwargs)

    def create_directories(self) -> None:
        """Create necessary directories for the application."""
        directories: list[Path] = []
        if self.logging.log_to_file:
            directories.append(self.logging.log_file_path.parent)
        if str(self.database.path) != ":memory:":
            directories.append(self.database.path.parent)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

    def validate_required_credentials(self, provider: Provider) -> None:
        """Validate that credentials for ``provider`` are present.

        Raises:
            ValueError: If a required credential is missing
        """
        errors: list[str] = []

        if provider is Provider.PLAID:
            if not self.plaid.client_id:
                errors.append("PLAID_CLIENT_ID is required")
            if not self.plaid.secret:
                errors.append("PLAID_SECRET is required")
        elif provider is Provider.TELLER:
            if not self.teller.certificate_path:
                errors.append("TELLER_CERTIFICATE_PATH is required")
            if not self.teller.private_key_path:
                errors.append("TELLER_PRIVATE_KEY_PATH is required")

        if errors:
            raise ValueError(f"Missing required configuration: {', '.join(errors)}")


_settings: LedgerLinkSettings | None = None


def get_settings() -> LedgerLinkSettings:
    """Get the process-wide settings instance.

    Settings are loaded once and cached.

    Returns:
        LedgerLinkSettings: The configuration instance

    Raises:
        ValueError: If configuration is invalid
    """
    global _settings

    if _settings is not None:
        return _settings

    # Legacy PLAID_/TELLER_/ENCRYPTION_KEY variables are read with os.getenv
    load_dotenv(find_dotenv(usecwd=True))

    try:
        settings = LedgerLinkSettings()
        if settings.database.create_dirs:
            settings.create_directories()
    except Exception as e:
        raise ValueError(f"Configuration error: {e}") from e

    _settings = settings
    return settings


def reload_settings() -> LedgerLinkSettings:
    """Reload settings from environment variables.

    Returns:
        LedgerLinkSettings: The reloaded configuration instance
    """
    clear_settings_cache()
    return get_settings()


def clear_settings_cache() -> None:
    """Drop the cached settings instance."""
    global _settings
    _settings = None

