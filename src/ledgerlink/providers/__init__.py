"""Provider adapters for external data-aggregation services.

``get_adapter`` is the single place that branches on a connection's provider
tag; everything downstream works against :class:`ProviderAdapter`.
"""

from ledgerlink.config import LedgerLinkSettings
from ledgerlink.ledger.models import Provider

from .base import ProviderAdapter, RawAccount, RawTransaction, TransactionPage


def get_adapter(provider: Provider, settings: LedgerLinkSettings) -> ProviderAdapter:
    """Build the adapter for ``provider``.

    Raises:
        ValueError: If required provider credentials are missing
    """
    settings.validate_required_credentials(provider)

    if provider is Provider.PLAID:
        from .plaid_adapter import PlaidAdapter

        return PlaidAdapter(settings.plaid)
    if provider is Provider.TELLER:
        from .teller_adapter import TellerAdapter

        return TellerAdapter(settings.teller)
    raise ValueError(f"Unsupported provider: {provider}")


__all__ = [
    "ProviderAdapter",
    "RawAccount",
    "RawTransaction",
    "TransactionPage",
    "get_adapter",
]
