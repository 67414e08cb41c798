from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping, Optional

from dotenv import load_dotenv


DEFAULT_SHOP_PRICES: Dict[str, int] = {
    "ram": 5,
    "disk": 2,
    "cpu": 10,
    "allocations": 50,
    "databases": 50,
    "backups": 50,
    "slots": 100,
}


class ConfigError(ValueError):
    """Raised when an environment setting cannot be parsed."""


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration.

    Built once by `load_settings()` at startup and handed explicitly to the
    repositories, the wager engine and the bot factories. Nothing else in the
    code base reads the environment.
    """

    db_backend: str = "sqlite"
    db_path: str = "coinflip.db"
    db_params: Dict[str, str] = field(default_factory=dict)
    sqlite_timeout: float = 5.0
    discord_token: Optional[str] = None
    telegram_token: Optional[str] = None
    max_settle_attempts: int = 3
    starting_balance: int = 0
    shop_prices: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SHOP_PRICES))
    log_level: str = "INFO"
    log_path: Optional[str] = None
    admin_ids: FrozenSet[str] = frozenset()


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}.") from None
    if value < minimum:
        raise ConfigError(f"{name} must be at least {minimum}, got {value}.")
    return value


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}.") from None


def parse_shop_prices(raw: str) -> Dict[str, int]:
    """
    Parse `SHOP_PRICES`.

    Format: comma separated `resource:price` pairs, e.g. `ram:5,disk:2`.
    """

    prices: Dict[str, int] = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        name, sep, price = chunk.partition(":")
        name = name.strip().lower()
        if not sep or not name:
            raise ConfigError(f"Invalid SHOP_PRICES entry: {chunk!r}")
        try:
            value = int(price)
        except ValueError:
            raise ConfigError(f"Invalid price for {name!r}: {price!r}") from None
        if value <= 0:
            raise ConfigError(f"Price for {name!r} must be positive.")
        prices[name] = value
    return prices


def _get_log_level(env: Mapping[str, str]) -> str:
    level = env.get("LOG_LEVEL", "INFO").strip().upper()
    if level not in logging.getLevelNamesMapping():
        raise ConfigError(f"LOG_LEVEL must be a logging level name, got {level!r}.")
    return level


def _get_admin_ids(env: Mapping[str, str]) -> FrozenSet[str]:
    # Account ids, e.g. `discord:1234,telegram:5678`.
    raw = env.get("ADMIN_IDS", "")
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def _postgres_params(env: Mapping[str, str]) -> Dict[str, str]:
    # `psycopg2.connect(dsn=...)` accepts a URL as well as keyword arguments.
    url = env.get("DATABASE_URL")
    if url:
        return {"dsn": url}

    mapping = {
        "PGHOST": "host",
        "PGPORT": "port",
        "PGDATABASE": "dbname",
        "PGUSER": "user",
        "PGPASSWORD": "password",
    }
    return {key: env[name] for name, key in mapping.items() if env.get(name)}


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build `Settings` from the environment.

    When `env` is None the `.env` file (if any) is loaded into the process
    environment first; passing a mapping skips that step, which keeps tests
    hermetic.
    """

    if env is None:
        load_dotenv()
        env = os.environ

    backend = env.get("DB_BACKEND", "sqlite").strip().lower()
    if backend not in ("sqlite", "postgres"):
        raise ConfigError(f"DB_BACKEND must be 'sqlite' or 'postgres', got {backend!r}.")

    raw_prices = env.get("SHOP_PRICES")
    shop_prices = parse_shop_prices(raw_prices) if raw_prices else dict(DEFAULT_SHOP_PRICES)

    return Settings(
        db_backend=backend,
        db_path=env.get("DB_PATH", "coinflip.db"),
        db_params=_postgres_params(env) if backend == "postgres" else {},
        sqlite_timeout=_get_float(env, "SQLITE_TIMEOUT", 5.0),
        discord_token=env.get("DISCORD_TOKEN") or None,
        telegram_token=env.get("TELEGRAM_TOKEN") or None,
        max_settle_attempts=_get_int(env, "MAX_SETTLE_ATTEMPTS", 3, minimum=1),
        starting_balance=_get_int(env, "STARTING_BALANCE", 0, minimum=0),
        shop_prices=shop_prices,
        log_level=_get_log_level(env),
        log_path=env.get("LOG_PATH") or None,
        admin_ids=_get_admin_ids(env),
    )
