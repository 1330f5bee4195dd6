"""Connection lifecycle and the sync entry points exposed to callers.

Two entry points start a sync:

- :meth:`ConnectionService.create_connection` runs a best-effort sync right
  after the connection is stored. Its failure is logged and swallowed.
- :meth:`ConnectionService.trigger_sync` runs an explicit sync. Its failure
  propagates to the caller.

Both take the per-connection advisory lock so two runs never race the
cursor write.
"""

import logging
import os
import socket
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from uuid import uuid4

from ledgerlink.errors import (
    ConnectionNotFoundError,
    ConnectionNotOwnedError,
    CredentialError,
    LedgerLinkError,
    SyncInProgressError,
)
from ledgerlink.ledger.models import Connection, ConnectionInfo, Provider
from ledgerlink.ledger.store import LedgerStore
from ledgerlink.pipeline.orchestrator import SyncOrchestrator, SyncSummary
from ledgerlink.providers.base import ProviderAdapter
from ledgerlink.security import TokenCipher

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Provider], ProviderAdapter]


def _lock_owner() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:8]}"


class ConnectionService:
    """Creates connections and runs syncs for them."""

    def __init__(
        self,
        store: LedgerStore,
        cipher: TokenCipher | None,
        orchestrator: SyncOrchestrator,
        adapter_factory: AdapterFactory,
        lock_ttl_seconds: int = 900,
        refresh_before_sync: bool = True,
    ):
        """Initialize the service.

        Args:
            store: Ledger Store holding connections
            cipher: Encrypts and decrypts access tokens at rest (None if no key)
            orchestrator: Runs a single connection's sync
            adapter_factory: Builds the adapter for a provider tag
            lock_ttl_seconds: Lifetime of the per-connection sync lock
            refresh_before_sync: Ask the provider to refresh before explicit syncs
        """
        self.store = store
        self.cipher = cipher
        self.orchestrator = orchestrator
        self.adapter_factory = adapter_factory
        self.lock_ttl_seconds = lock_ttl_seconds
        self.refresh_before_sync = refresh_before_sync

    def create_connection(
        self,
        *,
        user_id: str,
        provider: Provider,
        institution_name: str,
        access_token: str,
    ) -> ConnectionInfo:
        """Store a newly linked connection and run its first sync.

        The first sync is best-effort: the connection is returned even if the
        sync fails, and the user can retry with :meth:`trigger_sync`.

        Returns:
            ConnectionInfo: The stored connection, without its access token
        """
        connection = self.store.create_connection(
            user_id=user_id,
            provider=provider,
            institution_name=institution_name,
            encrypted_token=self._require_cipher().encrypt(access_token),
        )
        logger.info(
            f"Created {provider.value} connection {connection.id} "
            f"for {institution_name}"
        )

        try:
            self._run_locked(connection, access_token, refresh=False)
        except Exception as e:
            logger.warning(f"Initial sync failed for connection {connection.id}: {e}")

        return ConnectionInfo.from_connection(
            self.store.get_connection(connection.id) or connection
        )

    def get_owned_connection(self, connection_id: str, user_id: str) -> Connection:
        """Load a connection and check that ``user_id`` owns it.

        Raises:
            ConnectionNotFoundError: If the connection does not exist
            ConnectionNotOwnedError: If it belongs to another user
        """
        connection = self.store.get_connection(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)
        if connection.user_id != user_id:
            raise ConnectionNotOwnedError(connection_id, user_id)
        return connection

    def list_connections(self, user_id: str) -> list[ConnectionInfo]:
        """List a user's connections, without access tokens."""
        return [
            ConnectionInfo.from_connection(c)
            for c in self.store.list_connections(user_id)
        ]

    def trigger_sync(self, connection_id: str, user_id: str) -> SyncSummary:
        """Run an explicit sync for one of the user's connections.

        Raises:
            ConnectionNotFoundError: If the connection does not exist
            ConnectionNotOwnedError: If it belongs to another user
            SyncInProgressError: If another sync holds the connection's lock
            CredentialError: If the stored access token cannot be decrypted
            SyncError: If the provider call or a persistence step failed
        """
        connection = self.get_owned_connection(connection_id, user_id)
        access_token = self._require_cipher().decrypt(connection.access_token)
        return self._run_locked(
            connection, access_token, refresh=self.refresh_before_sync
        )

    def sync_all(self, user_id: str) -> dict[str, SyncSummary | Exception]:
        """Explicitly sync every connection of a user.

        One connection failing does not stop the others; its error is
        returned in place of a summary.
        """
        results: dict[str, SyncSummary | Exception] = {}
        for connection in self.store.list_connections(user_id):
            try:
                results[connection.id] = self.trigger_sync(connection.id, user_id)
            except (LedgerLinkError, ValueError) as e:
                logger.error(f"Sync failed for connection {connection.id}: {e}")
                results[connection.id] = e
        return results

    def _require_cipher(self) -> TokenCipher:
        if self.cipher is None:
            raise CredentialError(
                "Encryption key is not configured. Set ENCRYPTION_KEY or "
                "LEDGERLINK_SECURITY__ENCRYPTION_KEY"
            )
        return self.cipher

    def _run_locked(
        self, connection: Connection, access_token: str, *, refresh: bool
    ) -> SyncSummary:
        with self._sync_lock(connection.id):
            adapter = self.adapter_factory(connection.provider)
            return self.orchestrator.run(
                connection, adapter, access_token, refresh=refresh
            )

    @contextmanager
    def _sync_lock(self, connection_id: str) -> Iterator[int]:
        owner = _lock_owner()
        version = self.store.acquire_sync_lock(
            connection_id, owner, self.lock_ttl_seconds
        )
        if version is None:
            raise SyncInProgressError(connection_id)
        logger.debug(f"Acquired sync lock v{version} for {connection_id}")
        try:
            yield version
        finally:
            self.store.release_sync_lock(connection_id, owner)
