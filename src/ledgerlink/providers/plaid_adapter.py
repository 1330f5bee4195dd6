"""Plaid adapter: cursor-based incremental synchronization.

Plaid's ``/transactions/sync`` endpoint is stateful. Each call returns the
transactions added and modified since ``cursor`` plus a ``next_cursor``; a
``None`` cursor starts from the beginning of the item's history. Paging
covers the whole item (every account), so the orchestrator fetches the
complete page set once per connection.
"""

import json
import logging
from decimal import Decimal
from typing import Any

from plaid.api import plaid_api
from plaid.api_client import ApiClient
from plaid.configuration import Configuration
from plaid.exceptions import ApiException
from plaid.model.accounts_get_request import AccountsGetRequest
from plaid.model.transactions_refresh_request import TransactionsRefreshRequest
from plaid.model.transactions_sync_request import TransactionsSyncRequest
from pydantic import ValidationError

from ledgerlink.config import PlaidConfig
from ledgerlink.errors import PaginationRestartError, ProviderError
from ledgerlink.ledger.models import Provider

from .base import ProviderAdapter, RawAccount, RawTransaction, TransactionPage
from .plaid_schemas import AccountSchema, TransactionSchema

logger = logging.getLogger(__name__)

PLAID_HOSTS = {
    "sandbox": "https://sandbox.plaid.com",
    "development": "https://development.plaid.com",
    "production": "https://production.plaid.com",
}

MUTATION_DURING_PAGINATION = "TRANSACTIONS_SYNC_MUTATION_DURING_PAGINATION"


def _as_dict(obj: Any) -> Any:
    """Plaid SDK models expose ``to_dict``; test doubles may already be dicts."""
    to_dict = getattr(obj, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    return obj


def _hint(value: str | None) -> str | None:
    """Normalize a Plaid code like ``"bill payment"`` into ``"bill_payment"``."""
    if not value:
        return None
    return value.strip().lower().replace(" ", "_")


def to_provider_error(exc: ApiException, operation: str) -> ProviderError:
    """Translate a Plaid SDK exception into a ProviderError.

    The SDK puts Plaid's JSON error document in ``exc.body``.
    """
    error_code: str | None = None
    message = str(exc)
    body = getattr(exc, "body", None)
    if isinstance(body, (str, bytes)):
        try:
            details = json.loads(body)
        except ValueError:
            details = None
        if isinstance(details, dict):
            error_code = details.get("error_code")
            message = details.get("error_message") or message

    status = getattr(exc, "status", None)
    error_cls = (
        PaginationRestartError
        if error_code == MUTATION_DURING_PAGINATION
        else ProviderError
    )
    return error_cls(
        f"Plaid {operation} failed: {message}",
        provider=Provider.PLAID.value,
        error_code=error_code,
        status=status,
    )


class PlaidAdapter(ProviderAdapter):
    """Plaid client using the official SDK."""

    provider = Provider.PLAID
    incremental = True

    def __init__(self, config: PlaidConfig, client: Any | None = None):
        """Initialize the adapter.

        Args:
            config: Plaid credentials and paging settings
            client: Optional pre-built ``PlaidApi`` (used by tests)
        """
        self.config = config
        if client is None:
            configuration = Configuration(
                host=PLAID_HOSTS[config.environment],
                api_key={"clientId": config.client_id, "secret": config.secret},
            )
            # Typed as Any to avoid partial-unknowns from the SDK stubs
            client = plaid_api.PlaidApi(ApiClient(configuration))
        self.client: Any = client
        logger.debug(f"Initialized Plaid adapter for {config.environment} environment")

    def fetch_accounts(self, access_token: str) -> list[RawAccount]:
        """Fetch the item's accounts with balances.

        Raises:
            ProviderError: If the call fails or the response is malformed
        """
        try:
            response: Any = self.client.accounts_get(
                AccountsGetRequest(access_token=access_token)
            )
        except ApiException as e:
            raise to_provider_error(e, "accounts/get") from e

        accounts = getattr(response, "accounts", None)
        if not isinstance(accounts, list):
            raise ProviderError(
                "Plaid accounts/get returned no account list",
                provider=Provider.PLAID.value,
            )

        try:
            schemas = [AccountSchema.model_validate(_as_dict(a)) for a in accounts]
        except ValidationError as e:
            raise ProviderError(
                f"Plaid accounts/get returned malformed accounts: {e}",
                provider=Provider.PLAID.value,
            ) from e

        return [self._to_raw_account(s) for s in schemas]

    @staticmethod
    def _to_raw_account(schema: AccountSchema) -> RawAccount:
        balances: dict[str, Decimal | None] = {
            "current": schema.balances.current,
            "available": schema.balances.available,
            "limit": schema.balances.limit,
        }
        return RawAccount(
            provider_account_id=schema.account_id,
            name=schema.name,
            provider_type=schema.type,
            provider_subtype=schema.subtype,
            mask=schema.mask,
            currency=schema.balances.iso_currency_code or "USD",
            balances=balances,
        )

    def fetch_transactions_page(
        self,
        access_token: str,
        *,
        cursor: str | None = None,
        account_id: str | None = None,
    ) -> TransactionPage:
        """Fetch one ``/transactions/sync`` page starting at ``cursor``.

        ``account_id`` is ignored: Plaid pages over the whole item.

        Raises:
            PaginationRestartError: If Plaid's data changed mid-pagination
            ProviderError: If the call fails
        """
        request_args: dict[str, Any] = {
            "access_token": access_token,
            "count": self.config.page_size,
        }
        if cursor:
            request_args["cursor"] = cursor

        try:
            response: Any = self.client.transactions_sync(
                TransactionsSyncRequest(**request_args)
            )
        except ApiException as e:
            raise to_provider_error(e, "transactions/sync") from e

        removed = [
            _as_dict(r).get("transaction_id")
            for r in getattr(response, "removed", None) or []
        ]
        return TransactionPage(
            added=self._to_raw_transactions(getattr(response, "added", None) or []),
            modified=self._to_raw_transactions(
                getattr(response, "modified", None) or []
            ),
            removed_ids=[r for r in removed if r],
            next_cursor=getattr(response, "next_cursor", None),
            has_more=bool(getattr(response, "has_more", False)),
        )

    def _to_raw_transactions(self, items: list[Any]) -> list[RawTransaction]:
        raw: list[RawTransaction] = []
        for item in items:
            data = _as_dict(item)
            try:
                schema = TransactionSchema.model_validate(data)
            except ValidationError as e:
                txn_id = data.get("transaction_id") if isinstance(data, dict) else None
                logger.warning(f"Skipping malformed Plaid transaction {txn_id}: {e}")
                continue

            pfc = schema.personal_finance_category
            raw.append(
                RawTransaction(
                    provider_transaction_id=schema.transaction_id,
                    provider_account_id=schema.account_id,
                    description=schema.description,
                    amount=schema.amount,
                    date=schema.transaction_date,
                    type_hint=_hint(schema.transaction_code),
                    category_hint=pfc.primary if pfc else None,
                    pending=schema.pending,
                )
            )
        return raw

    def refresh(self, access_token: str) -> None:
        """Ask Plaid to pull fresh transactions from the institution.

        Not available in every environment (e.g. sandbox), so failures are
        logged and ignored.
        """
        try:
            self.client.transactions_refresh(
                TransactionsRefreshRequest(access_token=access_token)
            )
        except ApiException as e:
            logger.warning(f"Plaid transactions/refresh unavailable: {e.status}")
