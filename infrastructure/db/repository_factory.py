from __future__ import annotations

from config import Settings
from domain.repositories import AccountRepository
from infrastructure.db.account_repository_postgres import PostgresAccountRepository
from infrastructure.db.account_repository_sqlite import SqliteAccountRepository


def build_account_repository(settings: Settings) -> AccountRepository:
    """Create the account repository selected by `settings.db_backend`."""

    if settings.db_backend == "postgres":
        return PostgresAccountRepository.from_settings(settings)
    return SqliteAccountRepository.from_settings(settings)
