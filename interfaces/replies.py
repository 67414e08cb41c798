from __future__ import annotations

from typing import Dict, List

from application.services import ShopItem
from domain.errors import CoinflipError
from domain.models import PurchaseResult, WagerResult


# Player-facing wording per error code. Both bots share these.
ERROR_REPLIES: Dict[str, str] = {
    "invalid_stake": "Stake must be a positive whole number of coins.",
    "invalid_prediction": "Pick heads or tails.",
    "invalid_amount": "Amount must be a non-zero whole number of coins.",
    "invalid_quantity": "Quantity must be a positive whole number.",
    "unknown_resource": "That resource is not sold in the shop. Try the shop command.",
    "account_not_found": "You don't have an account yet. Use start first.",
    "insufficient_funds": "You don't have enough coins for that.",
    "concurrent_update_conflict": "Your balance is busy, please try again in a moment.",
}

NOT_ADMIN_REPLY = "Only admins can grant coins."


def describe_error(exc: CoinflipError) -> str:
    return ERROR_REPLIES.get(exc.code, str(exc))


def describe_wager(result: WagerResult) -> str:
    side = result.actual_outcome.value.capitalize()
    if result.won:
        return f"{side}! You won {result.stake} coins. Balance: {result.balance_after}"
    return f"{side}. You lost {result.stake} coins. Balance: {result.balance_after}"


def describe_purchase(result: PurchaseResult) -> str:
    return (
        f"Bought {result.quantity} {result.resource} for {result.cost} coins. "
        f"You now have {result.resource_total} {result.resource}. "
        f"Balance: {result.balance_after}"
    )


def describe_grant(account_id: str, balance: int) -> str:
    return f"Balance of {account_id} is now {balance}."


def describe_shop(items: List[ShopItem]) -> str:
    if not items:
        return "The shop is empty."
    lines = [f"{item.resource}: {item.unit_price} coins" for item in items]
    return "Shop prices (per unit):\n" + "\n".join(lines)


def describe_resources(resources: Dict[str, int]) -> str:
    if not resources:
        return "You don't own any resources yet."
    return "\n".join(f"{name}: {amount}" for name, amount in resources.items())
