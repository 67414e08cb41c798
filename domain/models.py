from dataclasses import dataclass
from enum import Enum


class CoinSide(str, Enum):
    """The two faces a wager can be placed on."""

    HEADS = "heads"
    TAILS = "tails"


@dataclass
class Account:
    """
    Domain representation of a player's coin account.

    This model is intentionally simple and independent of any
    particular transport (Telegram, Discord, web) or database schema.
    """

    id: str
    username: str
    balance: int


@dataclass(frozen=True)
class WagerRequest:
    """A validated single bet against one account."""

    account_id: str
    predicted_outcome: CoinSide
    stake: int


@dataclass(frozen=True)
class WagerResult:
    account_id: str
    predicted_outcome: CoinSide
    actual_outcome: CoinSide
    stake: int
    won: bool
    balance_after: int

    @property
    def delta(self) -> int:
        return self.stake if self.won else -self.stake


@dataclass(frozen=True)
class PurchaseResult:
    """Outcome of spending coins on a shop resource."""

    resource: str
    quantity: int
    cost: int
    balance_after: int
    resource_total: int
