from __future__ import annotations


class CoinflipError(Exception):
    """
    Base class for every failure a caller is expected to present to a player.

    Each subclass carries a stable `code` so interfaces can map failures to
    their own wording without matching on exception text.
    """

    code = "error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__doc__.strip().splitlines()[0])


class InvalidStake(CoinflipError):
    """Stake must be a positive whole number of coins."""

    code = "invalid_stake"


class InvalidPrediction(CoinflipError):
    """Prediction must be heads or tails."""

    code = "invalid_prediction"


class InvalidAmount(CoinflipError):
    """Amount must be a non-zero whole number of coins."""

    code = "invalid_amount"


class InvalidQuantity(CoinflipError):
    """Quantity must be a positive whole number."""

    code = "invalid_quantity"


class UnknownResource(CoinflipError):
    """That resource is not sold in the shop."""

    code = "unknown_resource"


class AccountNotFound(CoinflipError):
    """Account not found."""

    code = "account_not_found"

    def __init__(self, account_id: str) -> None:
        self.account_id = account_id
        super().__init__(f"Account {account_id!r} not found.")


class InsufficientFunds(CoinflipError):
    """Not enough coins."""

    code = "insufficient_funds"

    def __init__(self, account_id: str, required: int, available: int | None = None) -> None:
        self.account_id = account_id
        self.required = required
        self.available = available
        if available is None:
            message = f"Account {account_id!r} cannot cover {required} coins."
        else:
            message = f"Account {account_id!r} has {available} coins, needs {required}."
        super().__init__(message)


class ConcurrentUpdateConflict(CoinflipError):
    """The balance kept changing underneath the update; try again."""

    code = "concurrent_update_conflict"

    def __init__(self, account_id: str, attempts: int) -> None:
        self.account_id = account_id
        self.attempts = attempts
        super().__init__(
            f"Balance of account {account_id!r} could not be settled after {attempts} attempts."
        )


class BalanceContention(Exception):
    """
    Raised by repositories when the store reports transient contention
    (a locked database, a serialization failure) on a balance update.

    Nothing was written; the caller may retry the same update.
    """
