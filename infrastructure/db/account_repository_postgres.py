from __future__ import annotations

import logging
from typing import Dict, Optional

import psycopg2
from psycopg2 import errors

from domain.errors import BalanceContention
from domain.models import Account
from domain.repositories import AccountRepository


logger = logging.getLogger(__name__)

# Errors after which the same statement can simply be retried.
_CONTENTION_ERRORS = (
    errors.SerializationFailure,
    errors.DeadlockDetected,
    errors.LockNotAvailable,
)


class PostgresAccountRepository(AccountRepository):
    """
    Postgres-backed implementation of `AccountRepository`.

    Uses the same `accounts` / `account_resources` layout as the SQLite
    repository. Balance changes are single `UPDATE ... RETURNING` statements
    with the guard in the `WHERE` clause, so the row lock taken by the update
    is all the coordination two concurrent wagers need.
    """

    def __init__(self, db_params: dict) -> None:
        self._db_params = db_params
        self._ensure_tables()

    @classmethod
    def from_settings(cls, settings) -> "PostgresAccountRepository":
        return cls(settings.db_params)

    def _get_connection(self):
        return psycopg2.connect(**self._db_params)

    def _ensure_tables(self) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS accounts (
                        id TEXT PRIMARY KEY,
                        username TEXT NOT NULL,
                        balance BIGINT NOT NULL DEFAULT 0 CHECK (balance >= 0)
                    )
                    """
                )
                cur.execute(
                    """
                    CREATE TABLE IF NOT EXISTS account_resources (
                        account_id TEXT NOT NULL REFERENCES accounts (id),
                        resource TEXT NOT NULL,
                        amount BIGINT NOT NULL DEFAULT 0,
                        PRIMARY KEY (account_id, resource)
                    )
                    """
                )
                conn.commit()

    @staticmethod
    def _to_domain(row: tuple) -> Account:
        return Account(
            id=str(row[0]),
            username=row[1],
            balance=int(row[2]),
        )

    def get_account(self, account_id: str) -> Optional[Account]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT id, username, balance FROM accounts WHERE id = %s",
                    (account_id,),
                )
                row = cur.fetchone()
                if not row:
                    return None
                return self._to_domain(row)

    def add_account(self, account: Account) -> None:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO accounts (id, username, balance)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (id) DO NOTHING
                    """,
                    (account.id, account.username, account.balance),
                )
                conn.commit()

    def get_balance(self, account_id: str) -> Optional[int]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT balance FROM accounts WHERE id = %s", (account_id,))
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
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE accounts
                        SET balance = balance + %s
                        WHERE id = %s AND balance + %s >= %s
                        RETURNING balance
                        """,
                        (delta, account_id, delta, min_resulting_balance),
                    )
                    row = cur.fetchone()
                    conn.commit()
                    if not row:
                        return None
                    return int(row[0])
        except _CONTENTION_ERRORS as exc:
            logger.debug("Postgres contention on account %s: %s", account_id, exc)
            raise BalanceContention(str(exc)) from exc

    def purchase(
        self,
        account_id: str,
        resource: str,
        quantity: int,
        cost: int,
    ) -> Optional[tuple[int, int]]:
        try:
            with self._get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        """
                        UPDATE accounts
                        SET balance = balance - %s
                        WHERE id = %s AND balance >= %s
                        RETURNING balance
                        """,
                        (cost, account_id, cost),
                    )
                    row = cur.fetchone()
                    if not row:
                        conn.rollback()
                        return None
                    balance = int(row[0])

                    cur.execute(
                        """
                        INSERT INTO account_resources (account_id, resource, amount)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (account_id, resource)
                        DO UPDATE SET amount = account_resources.amount + EXCLUDED.amount
                        RETURNING amount
                        """,
                        (account_id, resource, quantity),
                    )
                    total = int(cur.fetchone()[0])
                    conn.commit()
                    return balance, total
        except _CONTENTION_ERRORS as exc:
            raise BalanceContention(str(exc)) from exc

    def get_resources(self, account_id: str) -> Dict[str, int]:
        with self._get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT resource, amount FROM account_resources WHERE account_id = %s",
                    (account_id,),
                )
                return {str(row[0]): int(row[1]) for row in cur.fetchall()}
