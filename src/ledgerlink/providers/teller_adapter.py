"""Teller adapter: full re-fetch synchronization.

Teller has no sync cursor. Every transactions call returns the account's
complete current history, so the orchestrator fetches and upserts
everything on every run. Requests are authenticated with the client
certificate (mutual TLS) and the access token as the basic-auth username.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from pydantic import ValidationError

from ledgerlink.config import TellerConfig
from ledgerlink.errors import AccountScopedError, ProviderError
from ledgerlink.ledger.models import Provider

from .base import ProviderAdapter, RawAccount, RawTransaction, TransactionPage
from .teller_schemas import (
    AccountSchema,
    BalanceSchema,
    ErrorSchema,
    TransactionSchema,
)

logger = logging.getLogger(__name__)

TELLER_HOSTS = {
    "sandbox": "https://api.sandbox.teller.io",
    "development": "https://api.teller.io",
    "production": "https://api.teller.io",
}


def _error_details(response: requests.Response) -> ErrorSchema:
    try:
        body = response.json()
    except ValueError:
        return ErrorSchema(message=response.text[:200] or None)
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        try:
            return ErrorSchema.model_validate(body["error"])
        except ValidationError:
            pass
    return ErrorSchema()


def _balance(value: str | None) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(value)
    except InvalidOperation:
        logger.warning(f"Ignoring unparseable Teller balance: {value!r}")
        return None


class TellerAdapter(ProviderAdapter):
    """Teller REST client built on ``requests``."""

    provider = Provider.TELLER
    incremental = False

    def __init__(self, config: TellerConfig, session: requests.Session | None = None):
        """Initialize the adapter.

        Args:
            config: Teller certificate paths, environment and timeout
            session: Optional pre-built session (used by tests)
        """
        self.config = config
        self.base_url = TELLER_HOSTS[config.environment]
        if session is None:
            session = requests.Session()
            if config.certificate_path and config.private_key_path:
                session.cert = (
                    str(config.certificate_path),
                    str(config.private_key_path),
                )
        self.session = session
        logger.debug(f"Initialized Teller adapter for {self.base_url}")

    def _get(
        self, path: str, access_token: str, account_id: str | None = None
    ) -> Any:
        """GET ``path`` and return decoded JSON.

        When ``account_id`` is given the call is account-scoped: client
        errors (4xx) and timeouts raise AccountScopedError so only that
        account is skipped. Everything else raises ProviderError.
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(
                url,
                auth=(access_token, ""),
                timeout=self.config.timeout_seconds,
            )
        except requests.Timeout as e:
            if account_id is not None:
                raise AccountScopedError(
                    f"Teller GET {path} timed out",
                    account_id=account_id,
                    provider=Provider.TELLER.value,
                ) from e
            raise ProviderError(
                f"Teller GET {path} timed out", provider=Provider.TELLER.value
            ) from e
        except requests.RequestException as e:
            raise ProviderError(
                f"Teller GET {path} failed: {e}", provider=Provider.TELLER.value
            ) from e

        if response.status_code >= 400:
            error = _error_details(response)
            message = f"Teller GET {path} returned {response.status_code}: {error.message}"
            if account_id is not None and response.status_code < 500:
                raise AccountScopedError(
                    message,
                    account_id=account_id,
                    provider=Provider.TELLER.value,
                    error_code=error.code,
                    status=response.status_code,
                )
            raise ProviderError(
                message,
                provider=Provider.TELLER.value,
                error_code=error.code,
                status=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"Teller GET {path} returned invalid JSON",
                provider=Provider.TELLER.value,
                status=response.status_code,
            ) from e

    def fetch_accounts(self, access_token: str) -> list[RawAccount]:
        """Fetch all accounts in the enrollment.

        Raises:
            ProviderError: If the call fails or does not return an account list
        """
        body = self._get("/accounts", access_token)
        if not isinstance(body, list):
            raise ProviderError(
                "Teller /accounts did not return a list of accounts",
                provider=Provider.TELLER.value,
            )

        try:
            schemas = [AccountSchema.model_validate(a) for a in body]
        except ValidationError as e:
            raise ProviderError(
                f"Teller /accounts returned malformed accounts: {e}",
                provider=Provider.TELLER.value,
            ) from e

        return [
            RawAccount(
                provider_account_id=s.id,
                name=s.name,
                provider_type=s.type,
                provider_subtype=s.subtype,
                mask=s.last_four,
                currency=s.currency,
                institution_name=s.institution.name or None,
            )
            for s in schemas
        ]

    def fetch_balances(
        self, access_token: str, account: RawAccount
    ) -> dict[str, Decimal | None]:
        """Fetch ``available`` and ``ledger`` balances for one account.

        Raises:
            AccountScopedError: If the account is closed, revoked or times out
        """
        account_id = account.provider_account_id
        body = self._get(f"/accounts/{account_id}/balances", access_token, account_id)
        try:
            balance = BalanceSchema.model_validate(body)
        except ValidationError as e:
            raise AccountScopedError(
                f"Teller returned malformed balances: {e}",
                account_id=account_id,
                provider=Provider.TELLER.value,
            ) from e
        return {
            "available": _balance(balance.available),
            "ledger": _balance(balance.ledger),
        }

    def fetch_transactions_page(
        self,
        access_token: str,
        *,
        cursor: str | None = None,
        account_id: str | None = None,
    ) -> TransactionPage:
        """Fetch the complete transaction history of one account.

        Raises:
            AccountScopedError: If the account-scoped call fails
        """
        if account_id is None:
            raise ValueError("Teller transactions are fetched per account")

        body = self._get(
            f"/accounts/{account_id}/transactions", access_token, account_id
        )
        if not isinstance(body, list):
            raise AccountScopedError(
                "Teller transactions response was not a list",
                account_id=account_id,
                provider=Provider.TELLER.value,
            )

        transactions: list[RawTransaction] = []
        for item in body:
            try:
                schema = TransactionSchema.model_validate(item)
            except ValidationError as e:
                txn_id = item.get("id") if isinstance(item, dict) else None
                logger.warning(f"Skipping malformed Teller transaction {txn_id}: {e}")
                continue
            transactions.append(
                RawTransaction(
                    provider_transaction_id=schema.id,
                    provider_account_id=schema.account_id,
                    description=schema.description,
                    amount=schema.amount,
                    date=schema.date,
                    type_hint=schema.type,
                    pending=schema.status == "pending",
                )
            )

        return TransactionPage(added=transactions, has_more=False)
