"""Provider Adapter capability interface.

Every provider is exposed through the same three calls so the orchestrator
never branches on which provider it is talking to:

- ``fetch_accounts`` returns the connection's accounts (connection-scoped).
- ``fetch_balances`` refreshes one account's balances (account-scoped).
- ``fetch_transactions_page`` returns one page of transactions. Incremental
  providers page over the whole connection with a cursor; full-refetch
  providers return an account's complete history with ``has_more=False``.
"""

import datetime as dt
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ledgerlink.ledger.models import Provider


@dataclass(frozen=True)
class RawAccount:
    """An account in provider-native vocabulary."""

    provider_account_id: str
    name: str
    provider_type: str
    provider_subtype: str | None = None
    mask: str | None = None
    currency: str = "USD"
    institution_name: str | None = None
    balances: dict[str, Decimal | None] = field(default_factory=dict)


@dataclass(frozen=True)
class RawTransaction:
    """A transaction in provider-native vocabulary.

    ``amount`` is kept exactly as the provider sent it (string, float or
    Decimal) with the provider's own sign convention; parsing happens in the
    normalizer so a single bad amount only skips its own transaction.
    """

    provider_transaction_id: str
    provider_account_id: str
    description: str
    amount: Any
    date: dt.date
    type_hint: str | None = None
    category_hint: str | None = None
    pending: bool = False


@dataclass(frozen=True)
class TransactionPage:
    """One page of provider transactions."""

    added: list[RawTransaction] = field(default_factory=list)
    modified: list[RawTransaction] = field(default_factory=list)
    removed_ids: list[str] = field(default_factory=list)
    next_cursor: str | None = None
    has_more: bool = False


class ProviderAdapter(ABC):
    """Talks to one external provider and returns raw records."""

    provider: Provider
    #: True when transactions page over the whole connection with a cursor
    incremental: bool = False

    @abstractmethod
    def fetch_accounts(self, access_token: str) -> list[RawAccount]:
        """Fetch every account reachable with ``access_token``.

        Raises:
            ProviderError: If the account list cannot be fetched
        """

    def fetch_balances(
        self, access_token: str, account: RawAccount
    ) -> dict[str, Decimal | None]:
        """Fetch current balances for one account.

        Providers whose account list already carries balances return them as-is.

        Raises:
            AccountScopedError: If the balance call fails for this account
        """
        return dict(account.balances)

    @abstractmethod
    def fetch_transactions_page(
        self,
        access_token: str,
        *,
        cursor: str | None = None,
        account_id: str | None = None,
    ) -> TransactionPage:
        """Fetch one page of transactions.

        Args:
            access_token: Decrypted provider access token
            cursor: Incremental cursor (incremental providers only)
            account_id: Provider account id (full-refetch providers only)

        Raises:
            ProviderError: If the call fails
        """

    def refresh(self, access_token: str) -> None:  # noqa: B027
        """Ask the provider to pull fresh data from the institution.

        Optional; the default does nothing.
        """
