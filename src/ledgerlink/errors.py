"""Exception types raised by the synchronization pipeline.

Fatal-to-run errors (``SyncError``) propagate to the caller of an explicit
sync. ``AccountScopedError`` and ``InvalidAmountError`` are recoverable and
are handled inside the orchestrator at the account and transaction boundary.
"""


class LedgerLinkError(Exception):
    """Base class for all LedgerLink errors."""


class ConnectionNotFoundError(LedgerLinkError):
    """The requested connection does not exist."""

    def __init__(self, connection_id: str):
        super().__init__(f"Connection not found: {connection_id}")
        self.connection_id = connection_id


class ConnectionNotOwnedError(LedgerLinkError):
    """The connection exists but belongs to another user."""

    def __init__(self, connection_id: str, user_id: str):
        super().__init__(
            f"Connection {connection_id} does not belong to user {user_id}"
        )
        self.connection_id = connection_id
        self.user_id = user_id


class CredentialError(LedgerLinkError):
    """A stored access token could not be decrypted."""


class ProviderError(LedgerLinkError):
    """A call to an external data provider failed."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        error_code: str | None = None,
        status: int | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.error_code = error_code
        self.status = status


class AccountScopedError(ProviderError):
    """A provider call tied to a single account failed (closed, revoked, timed out)."""

    def __init__(
        self,
        message: str,
        *,
        account_id: str,
        provider: str | None = None,
        error_code: str | None = None,
        status: int | None = None,
    ):
        super().__init__(
            message, provider=provider, error_code=error_code, status=status
        )
        self.account_id = account_id


class PaginationRestartError(ProviderError):
    """The provider's data changed mid-pagination; the page set must be refetched."""


class InvalidAmountError(LedgerLinkError):
    """A transaction amount could not be parsed."""

    def __init__(self, raw_amount: object):
        super().__init__(f"Unparseable transaction amount: {raw_amount!r}")
        self.raw_amount = raw_amount


class SyncInProgressError(LedgerLinkError):
    """Another sync currently holds the lock for this connection."""

    def __init__(self, connection_id: str):
        super().__init__(f"A sync is already running for connection {connection_id}")
        self.connection_id = connection_id


class SyncError(LedgerLinkError):
    """A sync run was aborted. Carries enough context to retry."""

    def __init__(
        self,
        message: str,
        *,
        connection_id: str,
        provider: str,
        step: str,
    ):
        super().__init__(
            f"{message} (connection={connection_id}, provider={provider}, step={step})"
        )
        self.connection_id = connection_id
        self.provider = provider
        self.step = step
