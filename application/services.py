from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TypeVar

from application.wager import parse_digits
from domain.errors import (
    AccountNotFound,
    BalanceContention,
    ConcurrentUpdateConflict,
    InsufficientFunds,
    InvalidAmount,
    InvalidQuantity,
    UnknownResource,
)
from domain.models import Account, PurchaseResult
from domain.repositories import AccountRepository


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3


@dataclass
class ShopItem:
    resource: str
    unit_price: int


@dataclass
class ShopCatalog:
    """Resources that can be bought with coins, and their unit prices."""

    prices: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings) -> "ShopCatalog":
        return cls(prices=dict(settings.shop_prices))

    def items(self) -> List[ShopItem]:
        return [ShopItem(resource=name, unit_price=price) for name, price in self.prices.items()]

    def price_of(self, resource: str) -> int:
        try:
            return self.prices[resource]
        except KeyError:
            raise UnknownResource(f"{resource!r} is not sold in the shop.") from None


def _parse_positive_int(raw: Any, error_cls) -> int:
    if isinstance(raw, bool):
        raise error_cls()
    if isinstance(raw, str):
        raw = parse_digits(raw)
    if not isinstance(raw, int) or raw <= 0:
        raise error_cls()
    return raw


def parse_amount(raw: str) -> int:
    """Parse a signed coin amount typed by an admin, e.g. `250` or `-40`."""

    text = raw.strip()
    sign = -1 if text.startswith("-") else 1
    if text[:1] in ("-", "+"):
        text = text[1:]
    value = parse_digits(text)
    if not value:
        raise InvalidAmount()
    return sign * value


def _retry_contended(write: Callable[[], Optional[T]], account_id: str, attempts: int) -> Optional[T]:
    for attempt in range(1, attempts + 1):
        try:
            return write()
        except BalanceContention:
            logger.warning(
                "Write for account %s contended (attempt %d/%d)", account_id, attempt, attempts
            )
    raise ConcurrentUpdateConflict(account_id, attempts)


def open_account(
    account_id: str,
    username: str,
    account_repo: AccountRepository,
    starting_balance: int = 0,
) -> Account:
    """
    Return the account for `account_id`, creating it on first use.

    New accounts start with `starting_balance` coins.
    """

    existing = account_repo.get_account(account_id)
    if existing is not None:
        return existing

    account = Account(id=account_id, username=username, balance=starting_balance)
    account_repo.add_account(account)
    logger.info("Opened account %s (%s) with %d coins", account_id, username, starting_balance)

    # Re-read: a concurrent caller may have created it first.
    return account_repo.get_account(account_id) or account


def get_balance(account_id: str, account_repo: AccountRepository) -> int:
    balance = account_repo.get_balance(account_id)
    if balance is None:
        raise AccountNotFound(account_id)
    return balance


def grant_coins(
    account_id: str,
    amount: Any,
    account_repo: AccountRepository,
    attempts: int = DEFAULT_ATTEMPTS,
) -> int:
    """
    Administrative balance adjustment.

    - A positive `amount` credits the account, a negative one debits it.
    - A debit never takes the balance below zero.
    Returns the new balance.
    """

    if isinstance(amount, bool) or not isinstance(amount, int) or amount == 0:
        raise InvalidAmount()

    new_balance = _retry_contended(
        lambda: account_repo.adjust_balance(account_id, amount, min_resulting_balance=0),
        account_id,
        attempts,
    )
    if new_balance is None:
        balance = account_repo.get_balance(account_id)
        if balance is None:
            raise AccountNotFound(account_id)
        raise InsufficientFunds(account_id, -amount, balance)

    logger.info("Adjusted account %s by %+d coins, balance=%d", account_id, amount, new_balance)
    return new_balance


def purchase_resource(
    account_id: str,
    resource: str,
    quantity: Any,
    account_repo: AccountRepository,
    catalog: ShopCatalog,
    attempts: int = DEFAULT_ATTEMPTS,
) -> PurchaseResult:
    """
    Spend coins on `quantity` units of a shop resource.

    The debit and the resource credit are applied together by the
    repository; a rejected purchase changes nothing.
    """

    quantity = _parse_positive_int(quantity, InvalidQuantity)
    resource = str(resource).strip().lower()
    cost = catalog.price_of(resource) * quantity

    balance = account_repo.get_balance(account_id)
    if balance is None:
        raise AccountNotFound(account_id)
    if cost > balance:
        raise InsufficientFunds(account_id, cost, balance)

    outcome = _retry_contended(
        lambda: account_repo.purchase(account_id, resource, quantity, cost),
        account_id,
        attempts,
    )
    if outcome is None:
        raise InsufficientFunds(account_id, cost)

    new_balance, total = outcome
    logger.info(
        "Account %s bought %d %s for %d coins, balance=%d",
        account_id,
        quantity,
        resource,
        cost,
        new_balance,
    )
    return PurchaseResult(
        resource=resource,
        quantity=quantity,
        cost=cost,
        balance_after=new_balance,
        resource_total=total,
    )


def get_resources(
    account_id: str,
    account_repo: AccountRepository,
    catalog: ShopCatalog,
) -> Dict[str, int]:
    """Holdings for every catalog resource, zero for those never bought."""

    if account_repo.get_account(account_id) is None:
        raise AccountNotFound(account_id)

    held = account_repo.get_resources(account_id)
    resources = {name: held.get(name, 0) for name in catalog.prices}
    for name, amount in held.items():
        resources.setdefault(name, amount)
    return resources
