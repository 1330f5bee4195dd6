"""Shared pytest fixtures for ledgerlink tests.

Provides an in-memory ledger store seeded with the system categories, the
categorization and sync components built on it, and settings cache cleanup.
"""

from collections.abc import Generator
from functools import partial

import pytest

from ledgerlink.config import SyncConfig, clear_settings_cache
from ledgerlink.ledger.models import Provider
from ledgerlink.ledger.store import LedgerStore
from ledgerlink.pipeline.categorizer import (
    SYSTEM_CATEGORY_NAMES,
    CategorizationResolver,
    CategoryCache,
)
from ledgerlink.pipeline.orchestrator import SyncOrchestrator
from ledgerlink.security import TokenCipher


@pytest.fixture(autouse=True)
def _reset_settings_cache() -> Generator[None, None, None]:
    """Make every test load settings from its own environment."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def store() -> Generator[LedgerStore, None, None]:
    """In-memory ledger with schema and system categories."""
    ledger = LedgerStore(":memory:")
    ledger.initialize()
    ledger.seed_system_categories(SYSTEM_CATEGORY_NAMES)
    yield ledger
    ledger.close()


@pytest.fixture
def category_cache(store: LedgerStore) -> CategoryCache:
    cache = CategoryCache(partial(store.find_categories_by_scope, None))
    cache.load()
    return cache


@pytest.fixture
def resolver(category_cache: CategoryCache) -> CategorizationResolver:
    return CategorizationResolver(category_cache)


@pytest.fixture
def orchestrator(
    store: LedgerStore, resolver: CategorizationResolver
) -> SyncOrchestrator:
    return SyncOrchestrator(
        store,
        resolver,
        balance_fields=SyncConfig().balance_fields,
        max_pagination_restarts=2,
    )


@pytest.fixture
def cipher() -> TokenCipher:
    return TokenCipher(TokenCipher.generate_key())


@pytest.fixture
def plaid_connection(store: LedgerStore, cipher: TokenCipher):
    """A stored Plaid connection owned by ``user_1`` that has never synced."""
    return store.create_connection(
        user_id="user_1",
        provider=Provider.PLAID,
        institution_name="First Platypus Bank",
        encrypted_token=cipher.encrypt("access-sandbox-123"),
    )


@pytest.fixture
def teller_connection(store: LedgerStore, cipher: TokenCipher):
    """A stored Teller connection owned by ``user_1``."""
    return store.create_connection(
        user_id="user_1",
        provider=Provider.TELLER,
        institution_name="Teller Credit Union",
        encrypted_token=cipher.encrypt("token_abc"),
    )
