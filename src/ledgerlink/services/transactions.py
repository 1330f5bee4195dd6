"""User-invoked transaction operations outside the regular sync path.

Unlike a sync, ``recategorize_all`` and ``backfill_rules`` intentionally
overwrite existing categories.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Any

import polars as pl

from ledgerlink.ledger.models import Account, AccountType, Flow, Transaction
from ledgerlink.ledger.store import LedgerStore
from ledgerlink.pipeline.categorizer import CategorizationResolver

logger = logging.getLogger(__name__)


class TransactionService:
    """Recategorization and manual ledger edits for one store."""

    def __init__(self, store: LedgerStore, resolver: CategorizationResolver):
        self.store = store
        self.resolver = resolver

    def recategorize_all(self, user_id: str) -> int:
        """Re-run the full categorization policy over every transaction of a user.

        Returns:
            int: Number of transactions whose category changed
        """
        rules = self.store.find_rules(user_id)
        changed = 0
        for txn in self.store.list_transactions(user_id):
            assignment = self.resolver.assign(txn.description, rules)
            if (assignment.category_id, assignment.sub_category_id) == (
                txn.category_id,
                txn.sub_category_id,
            ):
                continue
            self.store.set_transaction_category(
                txn.id, assignment.category_id, assignment.sub_category_id
            )
            changed += 1

        logger.info(f"Recategorized {changed} transaction(s) for user {user_id}")
        return changed

    def backfill_rules(self, user_id: str) -> int:
        """Apply only the user's rules to existing transactions.

        Transactions that match no rule keep their category.

        Returns:
            int: Number of transactions whose category changed
        """
        rules = self.store.find_rules(user_id)
        if not rules:
            logger.info(f"No categorization rules for user {user_id}")
            return 0

        changed = 0
        for txn in self.store.list_transactions(user_id):
            rule = self.resolver.match_rule(txn.description, rules)
            if rule is None:
                continue
            if (rule.category_id, rule.sub_category_id) == (
                txn.category_id,
                txn.sub_category_id,
            ):
                continue
            self.store.set_transaction_category(
                txn.id, rule.category_id, rule.sub_category_id
            )
            changed += 1

        logger.info(f"Backfilled rules onto {changed} transaction(s) for user {user_id}")
        return changed

    def create_manual_account(
        self,
        user_id: str,
        name: str,
        account_type: AccountType = AccountType.CASH,
        balance: Decimal | None = None,
        currency: str = "USD",
    ) -> Account:
        """Create an account that is not linked to a connection."""
        return self.store.create_manual_account(
            user_id=user_id,
            name=name,
            account_type=account_type,
            balance=balance,
            currency=currency,
        )

    def create_manual_transaction(
        self,
        user_id: str,
        account_id: str,
        description: str,
        amount: Decimal,
        txn_date: date,
        flow: Flow,
        notes: str | None = None,
    ) -> Transaction:
        """Record a manual transaction, categorized by the user's policy.

        Raises:
            KeyError: If the account does not exist or is not the user's
        """
        account = self.store.get_account(account_id)
        if account is None or account.user_id != user_id:
            raise KeyError(account_id)

        assignment = self.resolver.assign(description, self.store.find_rules(user_id))
        return self.store.create_manual_transaction(
            account_id=account_id,
            description=description,
            amount=amount,
            txn_date=txn_date,
            flow=flow,
            category_id=assignment.category_id,
            sub_category_id=assignment.sub_category_id,
            notes=notes,
        )

    def update_transaction(self, transaction_id: str, **changes: Any) -> Transaction:
        """Apply a user edit (category, sub-category, notes, hidden, description)."""
        return self.store.update_transaction(transaction_id, **changes)

    def delete_transaction(self, transaction_id: str) -> None:
        """Delete a manual transaction."""
        self.store.delete_transaction(transaction_id)

    def delete_account(self, account_id: str) -> int:
        """Delete an account and its transactions."""
        return self.store.delete_account(account_id)

    def list_transactions(self, user_id: str, limit: int | None = None) -> pl.DataFrame:
        """Return the user's transactions as a DataFrame, newest first."""
        return self.store.transactions_frame(user_id, limit=limit)
