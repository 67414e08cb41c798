from __future__ import annotations

from typing import Dict, Optional, Protocol

from .models import Account


class AccountRepository(Protocol):
    """
    Abstraction over account persistence.

    Implementations are responsible for:
    - Mapping between database rows and the `Account` domain model.
    - Hiding any SQL / driver details from the application layer.
    - Applying every balance change as one atomic, guarded statement.
    - Raising `BalanceContention` (never a driver exception) when the store
      reports transient lock contention on a balance update.
    """

    def get_account(self, account_id: str) -> Optional[Account]:
        """Return the account with the given ID, or None if not found."""

        ...

    def add_account(self, account: Account) -> None:
        """Persist a new account. Existing accounts are left untouched."""

        ...

    def get_balance(self, account_id: str) -> Optional[int]:
        """Return the current balance, or None if the account does not exist."""

        ...

    def adjust_balance(
        self,
        account_id: str,
        delta: int,
        min_resulting_balance: int = 0,
    ) -> Optional[int]:
        """
        Add `delta` to the balance only if the result stays at or above
        `min_resulting_balance`, as one indivisible operation.

        Returns the new balance, or None when the guard rejected the change
        or the account does not exist. Nothing is written in that case.
        """

        ...

    def purchase(
        self,
        account_id: str,
        resource: str,
        quantity: int,
        cost: int,
    ) -> Optional[tuple[int, int]]:
        """
        Debit `cost` coins and credit `quantity` units of `resource` in one
        transaction, guarded by `balance >= cost`.

        Returns `(new_balance, resource_total)` or None if rejected.
        """

        ...

    def get_resources(self, account_id: str) -> Dict[str, int]:
        """Return every resource the account holds, keyed by name."""

        ...
