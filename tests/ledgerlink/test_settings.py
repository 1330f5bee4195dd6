# ruff: noqa: S101,S105,S106
"""Tests for the centralized configuration system."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ledgerlink.config import (
    DatabaseConfig,
    LedgerLinkSettings,
    PlaidConfig,
    TellerConfig,
    get_settings,
    reload_settings,
)
from ledgerlink.ledger.models import Provider

LEGACY_VARS = (
    "PLAID_CLIENT_ID",
    "PLAID_SECRET",
    "PLAID_ENV",
    "TELLER_CERTIFICATE_PATH",
    "TELLER_PRIVATE_KEY_PATH",
    "TELLER_ENV",
    "ENCRYPTION_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate settings from the developer's shell and any local .env file."""
    for name in LEGACY_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


class TestDatabaseConfig:
    @pytest.mark.unit
    def test_defaults(self) -> None:
        config = DatabaseConfig()
        assert config.path == Path("data/duckdb/ledgerlink.duckdb")
        assert config.create_dirs is True

    @pytest.mark.unit
    @pytest.mark.parametrize("path", ["ledger.db", "ledger.duckdb", ":memory:"])
    def test_accepts_valid_paths(self, path: str) -> None:
        assert str(DatabaseConfig(path=Path(path)).path) == path

    @pytest.mark.unit
    def test_rejects_unknown_extension(self) -> None:
        with pytest.raises(ValidationError, match="must end with"):
            DatabaseConfig(path=Path("ledger.sqlite"))

    @pytest.mark.unit
    def test_is_frozen(self) -> None:
        config = DatabaseConfig()
        with pytest.raises(ValidationError):
            config.path = Path("other.duckdb")  # type: ignore[misc]


class TestProviderConfig:
    @pytest.mark.unit
    def test_plaid_page_size_bounds(self) -> None:
        assert PlaidConfig(page_size=500).page_size == 500
        with pytest.raises(ValidationError):
            PlaidConfig(page_size=501)

    @pytest.mark.unit
    def test_teller_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            TellerConfig(timeout_seconds=0)


class TestSettingsFromEnvironment:
    @pytest.mark.unit
    def test_prefixed_nested_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LEDGERLINK_DATABASE__PATH", "custom/ledger.duckdb")
        monkeypatch.setenv("LEDGERLINK_SYNC__LOCK_TTL_SECONDS", "120")
        monkeypatch.setenv("LEDGERLINK_PLAID__PAGE_SIZE", "250")

        settings = LedgerLinkSettings()

        assert settings.database.path == Path("custom/ledger.duckdb")
        assert settings.sync.lock_ttl_seconds == 120
        assert settings.plaid.page_size == 250

    @pytest.mark.unit
    def test_legacy_provider_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PLAID_CLIENT_ID", "client")
        monkeypatch.setenv("PLAID_SECRET", "shh")
        monkeypatch.setenv("PLAID_ENV", "production")
        monkeypatch.setenv("TELLER_CERTIFICATE_PATH", "certs/teller.pem")
        monkeypatch.setenv("TELLER_PRIVATE_KEY_PATH", "certs/teller-key.pem")
        monkeypatch.setenv("ENCRYPTION_KEY", "a-key")

        settings = LedgerLinkSettings()

        assert settings.plaid.client_id == "client"
        assert settings.plaid.secret == "shh"
        assert settings.plaid.environment == "production"
        assert settings.teller.certificate_path == Path("certs/teller.pem")
        assert settings.security.encryption_key == "a-key"

    @pytest.mark.unit
    def test_invalid_legacy_environment_is_ignored(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("PLAID_CLIENT_ID", "client")
        monkeypatch.setenv("PLAID_SECRET", "shh")
        monkeypatch.setenv("PLAID_ENV", "moon")

        settings = LedgerLinkSettings()

        assert settings.plaid.client_id == ""

    @pytest.mark.unit
    def test_encryption_key_hidden_from_repr(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ENCRYPTION_KEY", "super-secret-key")
        assert "super-secret-key" not in repr(LedgerLinkSettings())

    @pytest.mark.unit
    def test_default_balance_fields(self) -> None:
        fields = LedgerLinkSettings().sync.balance_fields
        assert fields[Provider.PLAID].current == "current"
        assert fields[Provider.PLAID].credit_available == "limit"
        assert fields[Provider.TELLER].current == "ledger"
        assert fields[Provider.TELLER].available == "available"


class TestRequiredCredentials:
    @pytest.mark.unit
    def test_missing_plaid_credentials(self) -> None:
        settings = LedgerLinkSettings()
        with pytest.raises(ValueError, match="PLAID_CLIENT_ID is required"):
            settings.validate_required_credentials(Provider.PLAID)

    @pytest.mark.unit
    def test_missing_teller_certificate(self) -> None:
        settings = LedgerLinkSettings()
        with pytest.raises(ValueError, match="TELLER_CERTIFICATE_PATH is required"):
            settings.validate_required_credentials(Provider.TELLER)

    @pytest.mark.unit
    def test_present_credentials(self) -> None:
        settings = LedgerLinkSettings(
            plaid=PlaidConfig(client_id="id", secret="secret"),
            teller=TellerConfig(
                certificate_path=Path("c.pem"), private_key_path=Path("k.pem")
            ),
        )
        settings.validate_required_credentials(Provider.PLAID)
        settings.validate_required_credentials(Provider.TELLER)


class TestSettingsCache:
    @pytest.mark.unit
    def test_get_settings_is_cached(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("LEDGERLINK_DATABASE__PATH", "first/ledger.duckdb")
        first = get_settings()
        monkeypatch.setenv("LEDGERLINK_DATABASE__PATH", "second/ledger.duckdb")

        assert get_settings() is first
        assert reload_settings().database.path == Path("second/ledger.duckdb")

    @pytest.mark.unit
    def test_get_settings_creates_directories(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        monkeypatch.setenv("LEDGERLINK_DATABASE__PATH", "nested/dir/ledger.duckdb")
        get_settings()
        assert (tmp_path / "nested" / "dir").is_dir()

    @pytest.mark.unit
    def test_invalid_configuration_is_reported(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("LEDGERLINK_DATABASE__PATH", "ledger.txt")
        with pytest.raises(ValueError, match="Configuration error"):
            get_settings()
