from __future__ import annotations

import logging
import sqlite3
from typing import Dict, Optional

from domain.errors import BalanceContention
from domain.models import Account
from domain.repositories import AccountRepository


logger = logging.getLogger(__name__)


def _is_contention(exc: sqlite3.OperationalError) -> bool:
    message = str(exc).lower()
    return "locked" in message or "busy" in message


class SqliteAccountRepository(AccountRepository):
    """
    SQLite-backed implementation of `AccountRepository`.

    Owns the `accounts` table (balances) and the `account_resources` table
    (shop holdings). It is self-initialising: tables are created if needed.

    Every balance change is a single guarded `UPDATE`, so concurrent writers
    (threads or processes sharing the file) can never push a balance below
    the requested floor.
    """

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._ensure_tables()

    @classmethod
    def from_settings(cls, settings) -> "SqliteAccountRepository":
        return cls(settings.db_path, timeout=settings.sqlite_timeout)

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path, timeout=self._timeout)

    def _ensure_tables(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS accounts (
                    id TEXT PRIMARY KEY,
                    username TEXT NOT NULL,
                    balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0)
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS account_resources (
                    account_id TEXT NOT NULL REFERENCES accounts (id),
                    resource TEXT NOT NULL,
                    amount INTEGER NOT NULL DEFAULT 0,
                    PRIMARY KEY (account_id, resource)
                )
                """
            )
            conn.commit()

    @staticmethod
    def _to_domain(row: sqlite3.Row) -> Account:
        return Account(
            id=str(row[0]),
            username=row[1],
            balance=int(row[2]),
        )

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT id, username, balance FROM accounts WHERE id = ?",
                (account_id,),
            )
            row = cur.fetchone()
            if not row:
                return None
            return self._to_domain(row)

    def add_account(self, account: Account) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT OR IGNORE INTO accounts (id, username, balance)
                VALUES (?, ?, ?)
                """,
                (account.id, account.username, account.balance),
            )
            conn.commit()

    def get_balance(self, account_id: str) -> Optional[int]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT balance FROM accounts WHERE id = ?", (account_id,))
            row = cur.fetchone()
            if not row:
                return None
            return int(row[0])

    def adjust_balance(
        self,
        account_id: str,
        delta: int,
        min_resulting_balance: int = 0,
    ) -> Optional[int]:
        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    UPDATE accounts
                    SET balance = balance + ?
                    WHERE id = ? AND balance + ? >= ?
                    """,
                    (delta, account_id, delta, min_resulting_balance),
                )
                if cur.rowcount == 0:
                    return None

                # Still inside the write transaction, so this is our own value.
                cur.execute("SELECT balance FROM accounts WHERE id = ?", (account_id,))
                return int(cur.fetchone()[0])
        except sqlite3.OperationalError as exc:
            if _is_contention(exc):
                logger.debug("SQLite contention on account %s: %s", account_id, exc)
                raise BalanceContention(str(exc)) from exc
            raise

    def purchase(
        self,
        account_id: str,
        resource: str,
        quantity: int,
        cost: int,
    ) -> Optional[tuple[int, int]]:
        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    UPDATE accounts
                    SET balance = balance - ?
                    WHERE id = ? AND balance >= ?
                    """,
                    (cost, account_id, cost),
                )
                if cur.rowcount == 0:
                    return None

                cur.execute(
                    """
                    INSERT INTO account_resources (account_id, resource, amount)
                    VALUES (?, ?, ?)
                    ON CONFLICT (account_id, resource)
                    DO UPDATE SET amount = amount + excluded.amount
                    """,
                    (account_id, resource, quantity),
                )
                cur.execute("SELECT balance FROM accounts WHERE id = ?", (account_id,))
                balance = int(cur.fetchone()[0])
                cur.execute(
                    """
                    SELECT amount FROM account_resources
                    WHERE account_id = ? AND resource = ?
                    """,
                    (account_id, resource),
                )
                total = int(cur.fetchone()[0])
                return balance, total
        except sqlite3.OperationalError as exc:
            if _is_contention(exc):
                raise BalanceContention(str(exc)) from exc
            raise

    def get_resources(self, account_id: str) -> Dict[str, int]:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                "SELECT resource, amount FROM account_resources WHERE account_id = ?",
                (account_id,),
            )
            return {str(row[0]): int(row[1]) for row in cur.fetchall()}
