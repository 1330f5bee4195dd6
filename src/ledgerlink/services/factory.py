"""Wire settings into a ready-to-use set of services."""

import logging
from dataclasses import dataclass
from functools import partial

from ledgerlink.config import LedgerLinkSettings, get_settings
from ledgerlink.ledger.store import LedgerStore
from ledgerlink.pipeline.categorizer import (
    SYSTEM_CATEGORY_NAMES,
    CategorizationResolver,
    CategoryCache,
)
from ledgerlink.pipeline.orchestrator import SyncOrchestrator
from ledgerlink.providers import get_adapter
from ledgerlink.security import TokenCipher

from .connections import AdapterFactory, ConnectionService
from .transactions import TransactionService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """The store plus every service built on top of it."""

    store: LedgerStore
    category_cache: CategoryCache
    resolver: CategorizationResolver
    orchestrator: SyncOrchestrator
    connections: ConnectionService
    transactions: TransactionService

    def close(self) -> None:
        self.store.close()


def build_services(
    settings: LedgerLinkSettings | None = None,
    store: LedgerStore | None = None,
    adapter_factory: AdapterFactory | None = None,
) -> Services:
    """Build the service graph.

    Args:
        settings: Configuration to use (defaults to ``get_settings()``)
        store: Existing store to use instead of opening the configured database
        adapter_factory: Adapter builder to use instead of ``get_adapter``

    Returns:
        Services: Initialized services sharing one store and category cache
    """
    settings = settings or get_settings()

    if store is None:
        store = LedgerStore(settings.database.path)
    store.initialize()
    store.seed_system_categories(SYSTEM_CATEGORY_NAMES)

    cache = CategoryCache(partial(store.find_categories_by_scope, None))
    cache.load()
    resolver = CategorizationResolver(cache)

    orchestrator = SyncOrchestrator(
        store,
        resolver,
        balance_fields=settings.sync.balance_fields,
        max_pagination_restarts=settings.plaid.max_pagination_restarts,
    )
    cipher = None
    if settings.security.encryption_key:
        cipher = TokenCipher(settings.security.encryption_key)
    connections = ConnectionService(
        store,
        cipher,
        orchestrator,
        adapter_factory or partial(get_adapter, settings=settings),
        lock_ttl_seconds=settings.sync.lock_ttl_seconds,
        refresh_before_sync=settings.plaid.refresh_before_sync,
    )
    logger.debug(f"Services ready on {settings.database.path}")

    return Services(
        store=store,
        category_cache=cache,
        resolver=resolver,
        orchestrator=orchestrator,
        connections=connections,
        transactions=TransactionService(store, resolver),
    )
