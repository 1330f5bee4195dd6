"""Sync Orchestrator: one connection, one run, start to finish.

A run moves through these states::

    IDLE -> FETCHING_ACCOUNTS -> UPSERTING_ACCOUNTS -> FETCHING_TRANSACTIONS
         -> CLASSIFYING_AND_CATEGORIZING -> UPSERTING_TRANSACTIONS
         -> PERSIST_CURSOR (incremental providers only) -> DONE

Accounts are processed one at a time (balances, account upsert, then its
transactions). A provider failure tied to one account moves that account to
SKIPPED and the loop continues with the next one. Failures that are not tied
to an account abort the run with :class:`SyncError`.

For incremental providers the whole page set is fetched before anything is
written, and the cursor is persisted only after every write has succeeded,
so a run that dies midway is safe to retry from the last stored cursor.
"""

import logging
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from ledgerlink.config import BalanceFieldMap
from ledgerlink.errors import (
    AccountScopedError,
    InvalidAmountError,
    PaginationRestartError,
    SyncError,
)
from ledgerlink.ledger.models import (
    Account,
    AccountRecord,
    AccountUpdate,
    CategorizationRule,
    Connection,
    Provider,
    TransactionRecord,
    TransactionUpdate,
)
from ledgerlink.ledger.store import LedgerStore
from ledgerlink.providers.base import ProviderAdapter, RawAccount, RawTransaction

from .categorizer import CategorizationResolver
from .flow import classify
from .normalizer import (
    normalize_account_type,
    normalize_amount,
    parse_amount,
    select_balances,
)

logger = logging.getLogger(__name__)


class SyncState(str, Enum):
    """States of a single sync run."""

    IDLE = "IDLE"
    FETCHING_ACCOUNTS = "FETCHING_ACCOUNTS"
    UPSERTING_ACCOUNTS = "UPSERTING_ACCOUNTS"
    FETCHING_TRANSACTIONS = "FETCHING_TRANSACTIONS"
    CLASSIFYING_AND_CATEGORIZING = "CLASSIFYING_AND_CATEGORIZING"
    UPSERTING_TRANSACTIONS = "UPSERTING_TRANSACTIONS"
    PERSIST_CURSOR = "PERSIST_CURSOR"
    SKIPPED = "SKIPPED"
    DONE = "DONE"


class SkippedAccount(BaseModel):
    """An account left out of a run, with the provider's reason."""

    provider_account_id: str
    reason: str
    error_code: str | None = None
    status: int | None = None


class SyncSummary(BaseModel):
    """Result of a completed sync run."""

    status: str = "ok"
    connection_id: str
    added_count: int = 0
    modified_count: int = 0
    skipped_accounts: list[SkippedAccount] = Field(default_factory=list)
    skipped_transactions: int = 0
    cursor: str | None = None


@dataclass
class PageSet:
    """Every page returned for one incremental fetch."""

    added: list[RawTransaction] = field(default_factory=list)
    modified: list[RawTransaction] = field(default_factory=list)
    removed_ids: list[str] = field(default_factory=list)
    final_cursor: str | None = None
    pages: int = 0


@dataclass
class _Run:
    """Mutable state of one run; never shared between runs."""

    connection: Connection
    adapter: ProviderAdapter
    access_token: str
    summary: SyncSummary
    rules: list[CategorizationRule] = field(default_factory=list)
    state: SyncState = SyncState.IDLE

    def enter(self, state: SyncState) -> None:
        logger.debug(f"Sync {self.connection.id}: {self.state.value} -> {state.value}")
        self.state = state


class SyncOrchestrator:
    """Drives adapter → normalizer → flow classifier → resolver → ledger."""

    def __init__(
        self,
        store: LedgerStore,
        resolver: CategorizationResolver,
        balance_fields: Mapping[Provider, BalanceFieldMap],
        max_pagination_restarts: int = 3,
    ):
        """Initialize the orchestrator.

        Args:
            store: Ledger Store receiving idempotent writes
            resolver: Categorization policy applied to new transactions
            balance_fields: Per-provider raw balance field mapping
            max_pagination_restarts: Restarts allowed when paging is invalidated
        """
        self.store = store
        self.resolver = resolver
        self.balance_fields = balance_fields
        self.max_pagination_restarts = max_pagination_restarts

    def run(
        self,
        connection: Connection,
        adapter: ProviderAdapter,
        access_token: str,
        *,
        refresh: bool = False,
    ) -> SyncSummary:
        """Synchronize one connection.

        Args:
            connection: Connection being synced (its cursor is the start point)
            adapter: Adapter matching the connection's provider
            access_token: Decrypted provider access token
            refresh: Ask the provider to refresh institution data first

        Returns:
            SyncSummary: Counts of added/modified transactions and skip reasons

        Raises:
            SyncError: If the run had to be aborted
        """
        run = _Run(
            connection=connection,
            adapter=adapter,
            access_token=access_token,
            summary=SyncSummary(connection_id=connection.id),
        )
        logger.info(
            f"Starting {connection.provider.value} sync for connection {connection.id}"
        )

        run.enter(SyncState.FETCHING_ACCOUNTS)
        try:
            if refresh:
                adapter.refresh(access_token)
            raw_accounts = adapter.fetch_accounts(access_token)
            run.rules = self.store.find_rules(connection.user_id)
        except Exception as e:
            raise self._fatal(run, "Failed to fetch accounts", e) from e
        logger.info(f"Fetched {len(raw_accounts)} account(s) for {connection.id}")

        grouped: dict[str, list[RawTransaction]] | None = None
        page_set: PageSet | None = None
        if adapter.incremental:
            run.enter(SyncState.FETCHING_TRANSACTIONS)
            try:
                page_set = self._fetch_page_set(run)
            except Exception as e:
                raise self._fatal(run, "Failed to fetch transactions", e) from e
            grouped = self._group_by_account(page_set)

        for raw_account in raw_accounts:
            account_id = raw_account.provider_account_id
            try:
                self._sync_account(run, raw_account, grouped)
            except AccountScopedError as e:
                run.enter(SyncState.SKIPPED)
                logger.warning(
                    f"Skipping account {account_id} on connection {connection.id}: "
                    f"{e} (code={e.error_code}, status={e.status})"
                )
                run.summary.skipped_accounts.append(
                    SkippedAccount(
                        provider_account_id=account_id,
                        reason=str(e),
                        error_code=e.error_code,
                        status=e.status,
                    )
                )
            except Exception as e:
                raise self._fatal(run, f"Failed to sync account {account_id}", e) from e

        if grouped:
            seen = {a.provider_account_id for a in raw_accounts}
            for account_id, orphans in grouped.items():
                if account_id not in seen:
                    logger.warning(
                        f"Ignoring {len(orphans)} transaction(s) for unknown account "
                        f"{account_id}"
                    )
                    run.summary.skipped_transactions += len(orphans)

        if page_set is not None:
            run.enter(SyncState.PERSIST_CURSOR)
            try:
                self.store.update_cursor(connection.id, page_set.final_cursor)
            except Exception as e:
                raise self._fatal(run, "Failed to persist sync cursor", e) from e
            run.summary.cursor = page_set.final_cursor

        run.enter(SyncState.DONE)
        logger.info(
            f"Sync complete for {connection.id}: {run.summary.added_count} added, "
            f"{run.summary.modified_count} modified, "
            f"{len(run.summary.skipped_accounts)} account(s) skipped"
        )
        return run.summary

    def _fatal(self, run: _Run, message: str, cause: Exception) -> SyncError:
        logger.error(f"{message} for connection {run.connection.id}: {cause}")
        return SyncError(
            f"{message}: {cause}",
            connection_id=run.connection.id,
            provider=run.connection.provider.value,
            step=run.state.value,
        )

    def _fetch_page_set(self, run: _Run) -> PageSet:
        """Fetch every page from the stored cursor, restarting if invalidated."""
        restarts = 0
        while True:
            try:
                return self._fetch_all_pages(run)
            except PaginationRestartError:
                if restarts >= self.max_pagination_restarts:
                    raise
                restarts += 1
                logger.warning(
                    f"Data changed during pagination, restarting fetch "
                    f"(attempt {restarts}/{self.max_pagination_restarts})"
                )

    def _fetch_all_pages(self, run: _Run) -> PageSet:
        page_set = PageSet(final_cursor=run.connection.cursor)
        cursor = run.connection.cursor
        while True:
            page = run.adapter.fetch_transactions_page(run.access_token, cursor=cursor)
            page_set.added.extend(page.added)
            page_set.modified.extend(page.modified)
            page_set.removed_ids.extend(page.removed_ids)
            page_set.pages += 1
            if page.next_cursor is not None:
                cursor = page.next_cursor
            logger.debug(
                f"Page {page_set.pages}: {len(page.added)} added, "
                f"{len(page.modified)} modified, {len(page.removed_ids)} removed"
            )
            if not page.has_more:
                break

        page_set.final_cursor = cursor
        logger.info(
            f"Fetched {len(page_set.added)} added and {len(page_set.modified)} "
            f"modified transaction(s) across {page_set.pages} page(s)"
        )
        if page_set.removed_ids:
            logger.info(
                f"Provider reported {len(page_set.removed_ids)} removed transaction(s); "
                "provider transactions are never deleted"
            )
        return page_set

    @staticmethod
    def _group_by_account(page_set: PageSet) -> dict[str, list[RawTransaction]]:
        grouped: dict[str, list[RawTransaction]] = defaultdict(list)
        for txn in [*page_set.added, *page_set.modified]:
            grouped[txn.provider_account_id].append(txn)
        return grouped

    def _sync_account(
        self,
        run: _Run,
        raw_account: RawAccount,
        grouped: dict[str, list[RawTransaction]] | None,
    ) -> None:
        connection = run.connection
        provider = connection.provider
        balances = run.adapter.fetch_balances(run.access_token, raw_account)

        run.enter(SyncState.UPSERTING_ACCOUNTS)
        account_type = normalize_account_type(
            provider, raw_account.provider_type, raw_account.provider_subtype
        )
        balance, available = select_balances(
            self.balance_fields[provider], account_type, balances
        )
        account, _ = self.store.upsert_account(
            provider,
            raw_account.provider_account_id,
            AccountRecord(
                user_id=connection.user_id,
                connection_id=connection.id,
                provider=provider,
                name=raw_account.name,
                mask=raw_account.mask,
                type=account_type,
                balance=balance,
                available_balance=available,
                currency=raw_account.currency,
                institution_name=raw_account.institution_name
                or connection.institution_name,
            ),
            AccountUpdate(balance=balance, available_balance=available),
        )

        if grouped is not None:
            transactions = grouped.get(raw_account.provider_account_id, [])
        else:
            run.enter(SyncState.FETCHING_TRANSACTIONS)
            transactions = self._fetch_account_transactions(
                run, raw_account.provider_account_id
            )

        for txn in transactions:
            self._sync_transaction(run, account, txn)

    @staticmethod
    def _fetch_account_transactions(run: _Run, account_id: str) -> list[RawTransaction]:
        transactions: list[RawTransaction] = []
        cursor: str | None = None
        while True:
            page = run.adapter.fetch_transactions_page(
                run.access_token, cursor=cursor, account_id=account_id
            )
            transactions.extend(page.added)
            transactions.extend(page.modified)
            if not page.has_more:
                return transactions
            cursor = page.next_cursor

    def _sync_transaction(self, run: _Run, account: Account, txn: RawTransaction) -> None:
        run.enter(SyncState.CLASSIFYING_AND_CATEGORIZING)
        try:
            signed_amount = parse_amount(txn.amount)
        except InvalidAmountError as e:
            logger.warning(f"Skipping transaction {txn.provider_transaction_id}: {e}")
            run.summary.skipped_transactions += 1
            return

        flow = classify(signed_amount, account.type, txn.type_hint, txn.category_hint)
        amount = normalize_amount(signed_amount)
        assignment = self.resolver.assign(txn.description, run.rules)

        run.enter(SyncState.UPSERTING_TRANSACTIONS)
        _, created = self.store.upsert_transaction(
            run.connection.provider,
            txn.provider_transaction_id,
            TransactionRecord(
                account_id=account.id,
                provider=run.connection.provider,
                description=txn.description,
                amount=amount,
                date=txn.date,
                type=txn.type_hint or "unknown",
                flow=flow,
                category_id=assignment.category_id,
                sub_category_id=assignment.sub_category_id,
            ),
            TransactionUpdate(description=txn.description, amount=amount, flow=flow),
        )
        if created:
            run.summary.added_count += 1
        else:
            run.summary.modified_count += 1
