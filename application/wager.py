from __future__ import annotations

import logging
import random
from typing import Any, Callable, Optional

from domain.errors import (
    AccountNotFound,
    BalanceContention,
    ConcurrentUpdateConflict,
    InsufficientFunds,
    InvalidPrediction,
    InvalidStake,
)
from domain.models import CoinSide, WagerRequest, WagerResult
from domain.repositories import AccountRepository


logger = logging.getLogger(__name__)

_SIDES = (CoinSide.HEADS, CoinSide.TAILS)
_system_rng = random.SystemRandom()

# Stakes and quantities typed as text; 18 digits always fits a BIGINT.
MAX_DIGITS = 18

# Legacy clients sent an integer "decision" instead of a side name.
_LEGACY_DECISIONS = {0: CoinSide.HEADS, 1: CoinSide.TAILS}
_SIDE_ALIASES = {
    "heads": CoinSide.HEADS,
    "head": CoinSide.HEADS,
    "h": CoinSide.HEADS,
    "tails": CoinSide.TAILS,
    "tail": CoinSide.TAILS,
    "t": CoinSide.TAILS,
}


def flip_coin(rng: Optional[random.Random] = None) -> CoinSide:
    """Draw HEADS or TAILS with equal probability."""

    return (rng or _system_rng).choice(_SIDES)


def parse_digits(text: str) -> Optional[int]:
    """
    Parse a plain decimal number typed by a player.

    Returns None for anything that is not all digits, or is longer than a
    signed 64-bit column can hold.
    """

    text = text.strip()
    if not text.isdecimal() or len(text) > MAX_DIGITS:
        return None
    return int(text)


def parse_stake(raw: Any) -> int:
    # bool is an int subclass; True is not a stake of 1.
    if isinstance(raw, bool):
        raise InvalidStake()
    if isinstance(raw, int):
        stake = raw
    elif isinstance(raw, str):
        stake = parse_digits(raw)
    else:
        stake = None
    if stake is None or stake <= 0:
        raise InvalidStake()
    return stake


def parse_prediction(raw: Any) -> CoinSide:
    if isinstance(raw, CoinSide):
        return raw
    if isinstance(raw, bool):
        raise InvalidPrediction()
    if isinstance(raw, int):
        side = _LEGACY_DECISIONS.get(raw)
    elif isinstance(raw, str):
        text = raw.strip().lower()
        side = _SIDE_ALIASES.get(text)
        if side is None:
            side = _LEGACY_DECISIONS.get(parse_digits(text))
    else:
        side = None
    if side is None:
        raise InvalidPrediction()
    return side


def parse_wager_request(account_id: str, predicted: Any, stake: Any) -> WagerRequest:
    """
    Turn loosely typed input (chat arguments, JSON bodies) into a `WagerRequest`.

    The stake is checked before the prediction so a bad stake is always
    reported as `InvalidStake`.
    """

    parsed_stake = parse_stake(stake)
    return WagerRequest(
        account_id=str(account_id),
        predicted_outcome=parse_prediction(predicted),
        stake=parsed_stake,
    )


class WagerEngine:
    """
    Resolves single coin-flip wagers against account balances.

    The balance change is applied through `AccountRepository.adjust_balance`,
    whose guard keeps the balance non-negative even when another wager on the
    same account settles between our read and our write. Transient store
    contention is retried up to `max_attempts` times.
    """

    def __init__(
        self,
        account_repo: AccountRepository,
        max_attempts: int = 3,
        draw: Optional[Callable[[], CoinSide]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._accounts = account_repo
        self._max_attempts = max_attempts
        self._draw = draw or flip_coin

    @classmethod
    def from_settings(cls, account_repo: AccountRepository, settings) -> "WagerEngine":
        return cls(account_repo, max_attempts=settings.max_settle_attempts)

    def resolve(self, account_id: str, predicted_outcome: CoinSide, stake: int) -> WagerResult:
        if isinstance(stake, bool) or not isinstance(stake, int) or stake <= 0:
            raise InvalidStake()
        predicted_outcome = parse_prediction(predicted_outcome)

        balance = self._accounts.get_balance(account_id)
        if balance is None:
            raise AccountNotFound(account_id)
        if stake > balance:
            logger.info(
                "Rejected wager of %d on account %s: balance is %d", stake, account_id, balance
            )
            raise InsufficientFunds(account_id, stake, balance)

        actual = self._draw()
        won = actual == predicted_outcome
        delta = stake if won else -stake

        new_balance = self._settle(account_id, stake, delta)
        if new_balance is None:
            # The guard refused the write: the balance dropped after our read.
            if self._accounts.get_balance(account_id) is None:
                raise AccountNotFound(account_id)
            logger.info("Rejected wager of %d on account %s: funds moved", stake, account_id)
            raise InsufficientFunds(account_id, stake)

        logger.info(
            "Wager on account %s: stake=%d predicted=%s drawn=%s balance=%d",
            account_id,
            stake,
            predicted_outcome.value,
            actual.value,
            new_balance,
        )
        return WagerResult(
            account_id=account_id,
            predicted_outcome=predicted_outcome,
            actual_outcome=actual,
            stake=stake,
            won=won,
            balance_after=new_balance,
        )

    def resolve_request(self, request: WagerRequest) -> WagerResult:
        return self.resolve(request.account_id, request.predicted_outcome, request.stake)

    def _settle(self, account_id: str, stake: int, delta: int) -> Optional[int]:
        # A result of at least `stake + delta` means the balance covered the
        # stake at the moment of the write; for a loss the floor is 0.
        floor = stake + delta
        for attempt in range(1, self._max_attempts + 1):
            try:
                return self._accounts.adjust_balance(
                    account_id, delta, min_resulting_balance=floor
                )
            except BalanceContention:
                logger.warning(
                    "Balance update for account %s contended (attempt %d/%d)",
                    account_id,
                    attempt,
                    self._max_attempts,
                )
        raise ConcurrentUpdateConflict(account_id, self._max_attempts)
