"""DuckDB-backed Ledger Store.

Durable, keyed upsert storage for connections, accounts, transactions,
categories and categorization rules. Upserts are keyed by the provider-native
id and are safe to repeat: the ``update`` half of an upsert only ever touches
the fields named by its update model.
"""

import logging
import threading
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any
from uuid import uuid4

import duckdb
import polars as pl

from .models import (
    Account,
    AccountRecord,
    AccountType,
    AccountUpdate,
    CategorizationRule,
    Category,
    Connection,
    Flow,
    Provider,
    SubCategory,
    Transaction,
    TransactionRecord,
    TransactionUpdate,
)

logger = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).parent / "sql" / "ledger_schema.sql"

# Columns a user may edit directly on a transaction
EDITABLE_TRANSACTION_FIELDS = frozenset({
    "category_id",
    "sub_category_id",
    "notes",
    "is_hidden",
    "description",
})


def _new_id() -> str:
    return str(uuid4())


def manual_id() -> str:
    """Synthetic provider id for manually entered accounts and transactions."""
    return f"manual_{uuid4()}"


def _provider_value(provider: Provider | None) -> str | None:
    return provider.value if provider is not None else None


class LedgerStore:
    """Ledger persistence on a single DuckDB connection.

    All public methods are serialized through an internal lock, so one store
    may be shared by several threads of the same process.
    """

    def __init__(self, database_path: Path | str):
        """Open (and create if needed) the ledger database.

        Args:
            database_path: Path to the DuckDB database file, or ``:memory:``
        """
        self.database_path = database_path
        self._conn = duckdb.connect(str(database_path))
        self._lock = threading.RLock()
        logger.info(f"Opened ledger database: {database_path}")

    def __enter__(self) -> "LedgerStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying database connection."""
        with self._lock:
            self._conn.close()

    def initialize(self) -> None:
        """Create ledger tables if they do not exist."""
        if not SCHEMA_FILE.exists():
            raise FileNotFoundError(f"SQL schema file not found: {SCHEMA_FILE}")

        with self._lock:
            self._conn.execute(SCHEMA_FILE.read_text())
        logger.debug("Ledger schema initialized")

    def _rows(self, sql: str, params: list[Any] | None = None) -> list[dict[str, Any]]:
        cursor = self._conn.execute(sql, params or [])
        columns = [c[0] for c in cursor.description]
        return [dict(zip(columns, row, strict=True)) for row in cursor.fetchall()]

    def _one(self, sql: str, params: list[Any] | None = None) -> dict[str, Any] | None:
        rows = self._rows(sql, params)
        return rows[0] if rows else None

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def create_connection(
        self,
        *,
        user_id: str,
        provider: Provider,
        institution_name: str,
        encrypted_token: str,
    ) -> Connection:
        """Create a new connection holding an already-encrypted access token."""
        connection_id = _new_id()
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO connections
                (id, user_id, provider, institution_name, access_token, cursor, created_at)
                VALUES (?, ?, ?, ?, ?, NULL, ?)
                """,
                [
                    connection_id,
                    user_id,
                    provider.value,
                    institution_name,
                    encrypted_token,
                    datetime.now(),
                ],
            )
            connection = self.get_connection(connection_id)
        if connection is None:
            raise RuntimeError(f"Connection {connection_id} vanished after insert")
        return connection

    def get_connection(self, connection_id: str) -> Connection | None:
        """Fetch a connection by id."""
        with self._lock:
            row = self._one("SELECT * FROM connections WHERE id = ?", [connection_id])
        return Connection.model_validate(row) if row else None

    def list_connections(self, user_id: str) -> list[Connection]:
        """List a user's connections, oldest first."""
        with self._lock:
            rows = self._rows(
                "SELECT * FROM connections WHERE user_id = ? ORDER BY created_at, id",
                [user_id],
            )
        return [Connection.model_validate(r) for r in rows]

    def update_cursor(self, connection_id: str, cursor: str | None) -> None:
        """Persist the incremental sync cursor for a connection."""
        with self._lock:
            self._conn.execute(
                "UPDATE connections SET cursor = ? WHERE id = ?",
                [cursor, connection_id],
            )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def upsert_account(
        self,
        provider: Provider | None,
        provider_account_id: str,
        create: AccountRecord,
        update: AccountUpdate,
    ) -> tuple[Account, bool]:
        """Create or refresh an account keyed by its provider-native id.

        Returns:
            tuple: The stored account and whether it was newly created
        """
        provider_value = _provider_value(provider)
        with self._lock:
            existing = self._one(
                """
                SELECT id FROM accounts
                WHERE provider IS NOT DISTINCT FROM ? AND provider_account_id = ?
                """,
                [provider_value, provider_account_id],
            )
            if existing:
                account_id = existing["id"]
                changes = update.model_dump()
                assignments = ", ".join(f"{column} = ?" for column in changes)
                self._conn.execute(
                    f"UPDATE accounts SET {assignments} WHERE id = ?",  # noqa: S608
                    [*changes.values(), account_id],
                )
                created = False
            else:
                account_id = _new_id()
                self._conn.execute(
                    """
                    INSERT INTO accounts
                    (id, user_id, connection_id, provider, provider_account_id, name,
                     mask, type, balance, available_balance, currency,
                     institution_name, is_manual)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    [
                        account_id,
                        create.user_id,
                        create.connection_id,
                        provider_value,
                        provider_account_id,
                        create.name,
                        create.mask,
                        create.type.value,
                        create.balance,
                        create.available_balance,
                        create.currency,
                        create.institution_name,
                        create.is_manual,
                    ],
                )
                created = True
            account = self.get_account(account_id)
        if account is None:
            raise RuntimeError(f"Account {account_id} vanished after upsert")
        return account, created

    def get_account(self, account_id: str) -> Account | None:
        """Fetch an account by internal id."""
        with self._lock:
            row = self._one("SELECT * FROM accounts WHERE id = ?", [account_id])
        return Account.model_validate(row) if row else None

    def list_accounts(self, user_id: str) -> list[Account]:
        """List all accounts owned by a user."""
        with self._lock:
            rows = self._rows(
                "SELECT * FROM accounts WHERE user_id = ? ORDER BY name, id", [user_id]
            )
        return [Account.model_validate(r) for r in rows]

    def create_manual_account(
        self,
        *,
        user_id: str,
        name: str,
        account_type: AccountType = AccountType.CASH,
        balance: Decimal | None = None,
        currency: str = "USD",
    ) -> Account:
        """Create an account that is not linked to any connection."""
        account, _ = self.upsert_account(
            None,
            manual_id(),
            AccountRecord(
                user_id=user_id,
                connection_id=None,
                provider=None,
                name=name,
                type=account_type,
                balance=balance,
                currency=currency,
                is_manual=True,
            ),
            AccountUpdate(balance=balance),
        )
        return account

    def delete_account(self, account_id: str) -> int:
        """Delete an account and every transaction on it.

        Returns:
            int: Number of transactions removed with the account
        """
        with self._lock:
            row = self._one(
                "SELECT count(*) AS n FROM transactions WHERE account_id = ?",
                [account_id],
            )
            self._conn.execute(
                "DELETE FROM transactions WHERE account_id = ?", [account_id]
            )
            self._conn.execute("DELETE FROM accounts WHERE id = ?", [account_id])
        removed = int(row["n"]) if row else 0
        logger.info(f"Deleted account {account_id} and {removed} transaction(s)")
        return removed

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def upsert_transaction(
        self,
        provider: Provider | None,
        provider_transaction_id: str,
        create: TransactionRecord,
        update: TransactionUpdate,
    ) -> tuple[Transaction, bool]:
        """Create or refresh a transaction keyed by its provider-native id.

        The update half never writes category columns, so a resync leaves any
        category the user assigned untouched.

        Returns:
            tuple: The stored transaction and whether it was newly created
        """
        provider_value = _provider_value(provider)
        with self._lock:
            existing = self._one(
                """
                SELECT id FROM transactions
                WHERE provider IS NOT DISTINCT FROM ? AND provider_transaction_id = ?
                """,
                [provider_value, provider_transaction_id],
            )
            if existing:
                transaction_id = existing["id"]
                self._conn.execute(
                    """
                    UPDATE transactions
                    SET description = ?, amount = ?, flow = ?
                    WHERE id = ?
                    """,
                    [
                        update.description,
                        update.amount,
                        update.flow.value,
                        transaction_id,
                    ],
                )
                created = False
            else:
                transaction_id = _new_id()
                self._conn.execute(
                    """
                    INSERT INTO transactions
                    (id, account_id, provider, provider_transaction_id, description,
                     amount, date, type, flow, category_id, sub_category_id,
                     is_manual, is_hidden, notes)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, false, ?)
                    """,
                    [
                        transaction_id,
                        create.account_id,
                        provider_value,
                        provider_transaction_id,
                        create.description,
                        create.amount,
                        create.date,
                        create.type,
                        create.flow.value,
                        create.category_id,
                        create.sub_category_id,
                        create.is_manual,
                        create.notes,
                    ],
                )
                created = True
            transaction = self.get_transaction(transaction_id)
        if transaction is None:
            raise RuntimeError(f"Transaction {transaction_id} vanished after upsert")
        return transaction, created

    def get_transaction(self, transaction_id: str) -> Transaction | None:
        """Fetch a transaction by internal id."""
        with self._lock:
            row = self._one("SELECT * FROM transactions WHERE id = ?", [transaction_id])
        return Transaction.model_validate(row) if row else None

    def find_transaction(
        self, provider: Provider | None, provider_transaction_id: str
    ) -> Transaction | None:
        """Fetch a transaction by its provider-native id."""
        with self._lock:
            row = self._one(
                """
                SELECT * FROM transactions
                WHERE provider IS NOT DISTINCT FROM ? AND provider_transaction_id = ?
                """,
                [_provider_value(provider), provider_transaction_id],
            )
        return Transaction.model_validate(row) if row else None

    def list_transactions(self, user_id: str) -> list[Transaction]:
        """List every transaction on accounts owned by ``user_id``."""
        with self._lock:
            rows = self._rows(
                """
                SELECT t.* FROM transactions t
                JOIN accounts a ON a.id = t.account_id
                WHERE a.user_id = ?
                ORDER BY t.date DESC, t.id
                """,
                [user_id],
            )
        return [Transaction.model_validate(r) for r in rows]

    def transactions_frame(self, user_id: str, limit: int | None = None) -> pl.DataFrame:
        """Return a user's transactions joined with account and category names."""
        query = """
            SELECT t.date, a.name AS account, t.description, t.amount, t.flow,
                   c.name AS category, t.is_manual, t.is_hidden
            FROM transactions t
            JOIN accounts a ON a.id = t.account_id
            LEFT JOIN categories c ON c.id = t.category_id
            WHERE a.user_id = ?
            ORDER BY t.date DESC, t.id
        """
        params: list[Any] = [user_id]
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._lock:
            return self._conn.execute(query, params).pl()

    def create_manual_transaction(
        self,
        *,
        account_id: str,
        description: str,
        amount: Decimal,
        txn_date: date,
        flow: Flow,
        category_id: str | None = None,
        sub_category_id: str | None = None,
        notes: str | None = None,
    ) -> Transaction:
        """Record a transaction entered by the user."""
        record = TransactionRecord(
            account_id=account_id,
            provider=None,
            description=description,
            amount=abs(amount),
            date=txn_date,
            type="manual",
            flow=flow,
            category_id=category_id,
            sub_category_id=sub_category_id,
            is_manual=True,
            notes=notes,
        )
        transaction, _ = self.upsert_transaction(
            None,
            manual_id(),
            record,
            TransactionUpdate(
                description=record.description, amount=record.amount, flow=flow
            ),
        )
        return transaction

    def update_transaction(self, transaction_id: str, **changes: Any) -> Transaction:
        """Apply a user edit to a transaction.

        Raises:
            ValueError: If a field is not user-editable
            KeyError: If the transaction does not exist
        """
        unknown = set(changes) - EDITABLE_TRANSACTION_FIELDS
        if unknown:
            raise ValueError(f"Fields are not editable: {', '.join(sorted(unknown))}")

        with self._lock:
            if changes:
                assignments = ", ".join(f"{column} = ?" for column in changes)
                self._conn.execute(
                    f"UPDATE transactions SET {assignments} WHERE id = ?",  # noqa: S608
                    [*changes.values(), transaction_id],
                )
            transaction = self.get_transaction(transaction_id)
        if transaction is None:
            raise KeyError(transaction_id)
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a manually entered transaction.

        Raises:
            KeyError: If the transaction does not exist
            ValueError: If the transaction came from a provider
        """
        with self._lock:
            transaction = self.get_transaction(transaction_id)
            if transaction is None:
                raise KeyError(transaction_id)
            if not transaction.is_manual:
                raise ValueError("Only manual transactions can be deleted")
            self._conn.execute(
                "DELETE FROM transactions WHERE id = ?", [transaction_id]
            )

    # ------------------------------------------------------------------
    # Categories and rules
    # ------------------------------------------------------------------

    def create_category(self, name: str, user_id: str | None = None) -> Category:
        """Create a system (``user_id=None``) or user-owned category."""
        category = Category(id=_new_id(), name=name, user_id=user_id)
        with self._lock:
            self._conn.execute(
                "INSERT INTO categories (id, name, user_id) VALUES (?, ?, ?)",
                [category.id, category.name, category.user_id],
            )
        return category

    def create_sub_category(
        self, *, name: str, user_id: str, category_id: str
    ) -> SubCategory:
        """Create a user-owned sub-category under ``category_id``."""
        sub_category = SubCategory(
            id=_new_id(), name=name, user_id=user_id, category_id=category_id
        )
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO sub_categories (id, name, user_id, category_id)
                VALUES (?, ?, ?, ?)
                """,
                [sub_category.id, name, user_id, category_id],
            )
        return sub_category

    def find_categories_by_scope(self, user_id: str | None) -> list[Category]:
        """List categories visible in a scope.

        ``None`` returns system categories only; a user id returns system
        categories plus that user's own.
        """
        with self._lock:
            if user_id is None:
                rows = self._rows(
                    "SELECT * FROM categories WHERE user_id IS NULL ORDER BY name"
                )
            else:
                rows = self._rows(
                    """
                    SELECT * FROM categories
                    WHERE user_id IS NULL OR user_id = ?
                    ORDER BY name
                    """,
                    [user_id],
                )
        return [Category.model_validate(r) for r in rows]

    def seed_system_categories(self, names: list[str]) -> int:
        """Create any missing system categories.

        Returns:
            int: Number of categories created
        """
        existing = {c.name for c in self.find_categories_by_scope(None)}
        created = 0
        for name in names:
            if name in existing:
                logger.debug(f"Category '{name}' already exists")
                continue
            self.create_category(name)
            existing.add(name)
            created += 1
        logger.info(f"Seeded {created} system categor{'y' if created == 1 else 'ies'}")
        return created

    def create_rule(
        self,
        *,
        user_id: str,
        description_contains: str,
        category_id: str,
        sub_category_id: str | None = None,
    ) -> CategorizationRule:
        """Create a categorization rule; new rules sort after existing ones."""
        rule = CategorizationRule(
            id=_new_id(),
            user_id=user_id,
            description_contains=description_contains,
            category_id=category_id,
            sub_category_id=sub_category_id,
        )
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO categorization_rules
                (id, user_id, description_contains, category_id, sub_category_id)
                VALUES (?, ?, ?, ?, ?)
                """,
                [rule.id, user_id, description_contains, category_id, sub_category_id],
            )
        return rule

    def find_rules(self, user_id: str) -> list[CategorizationRule]:
        """List a user's rules in insertion order."""
        with self._lock:
            rows = self._rows(
                """
                SELECT id, user_id, description_contains, category_id, sub_category_id
                FROM categorization_rules
                WHERE user_id = ?
                ORDER BY position
                """,
                [user_id],
            )
        return [CategorizationRule.model_validate(r) for r in rows]

    def set_transaction_category(
        self,
        transaction_id: str,
        category_id: str | None,
        sub_category_id: str | None = None,
    ) -> None:
        """Overwrite a transaction's category. Used by explicit recategorization."""
        with self._lock:
            self._conn.execute(
                """
                UPDATE transactions SET category_id = ?, sub_category_id = ?
                WHERE id = ?
                """,
                [category_id, sub_category_id, transaction_id],
            )

    # ------------------------------------------------------------------
    # Per-connection sync lock
    # ------------------------------------------------------------------

    def acquire_sync_lock(
        self, connection_id: str, owner: str, ttl_seconds: int
    ) -> int | None:
        """Take the advisory sync lock for a connection.

        An expired lock may be taken over. Re-acquiring a lock already held by
        ``owner`` extends it.

        Returns:
            int | None: The new lock version, or None if another owner holds it
        """
        now = datetime.now()
        expires_at = now + timedelta(seconds=ttl_seconds)
        with self._lock:
            row = self._one(
                "SELECT owner, version, expires_at FROM sync_locks WHERE connection_id = ?",
                [connection_id],
            )
            if row is None:
                self._conn.execute(
                    """
                    INSERT INTO sync_locks (connection_id, owner, version, expires_at)
                    VALUES (?, ?, 1, ?)
                    """,
                    [connection_id, owner, expires_at],
                )
                return 1
            if row["owner"] != owner and row["expires_at"] > now:
                return None
            version = int(row["version"]) + 1
            self._conn.execute(
                """
                UPDATE sync_locks SET owner = ?, version = ?, expires_at = ?
                WHERE connection_id = ?
                """,
                [owner, version, expires_at, connection_id],
            )
            return version

    def release_sync_lock(self, connection_id: str, owner: str) -> None:
        """Release the sync lock if ``owner`` still holds it."""
        with self._lock:
            self._conn.execute(
                "DELETE FROM sync_locks WHERE connection_id = ? AND owner = ?",
                [connection_id, owner],
            )
