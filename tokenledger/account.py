"""
account.py - Per-(token, account) balance records

An AccountRecord holds a free (transferable) balance and a reserved balance
that some other subsystem has earmarked. Records are created implicitly on
first credit and removed exactly when a decrease would leave a total below
the token's existential deposit.

Key rule (dust floor):
    new_total = (free - amount) + reserved
    new_total == 0 or new_total < existential_deposit  ->  Remove(amount, new_total)
    otherwise                                          ->  Reduce(amount)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Union

from .core import Balance, InsufficientBalance


@dataclass(frozen=True, slots=True)
class Reduce:
    """Apply a plain decrease of `amount`; the account survives."""
    amount: Balance


@dataclass(frozen=True, slots=True)
class Remove:
    """Decrease by `amount`, delete the record and sweep `dust` (the remaining total)."""
    amount: Balance
    dust: Balance


DecreaseOutcome = Union[Reduce, Remove]


@dataclass(slots=True)
class AccountRecord:
    """
    Balance record for one account of one token.

    Attributes:
        free_balance: Freely transferable part of the holding
        reserved_balance: Owned but held aside by another subsystem
    """
    free_balance: Balance = field(default_factory=Balance.zero)
    reserved_balance: Balance = field(default_factory=Balance.zero)

    def __post_init__(self):
        # Accept plain ints for convenience
        if not isinstance(self.free_balance, Balance):
            self.free_balance = Balance(self.free_balance)
        if not isinstance(self.reserved_balance, Balance):
            self.reserved_balance = Balance(self.reserved_balance)

    def total_balance(self) -> Balance:
        return self.free_balance + self.reserved_balance

    def increase_liquidity_by(self, amount: Balance) -> None:
        self.free_balance = self.free_balance.saturating_add(amount)

    def decrease_liquidity_by(self, amount: Balance) -> None:
        """Unconditional saturating decrease; callers pre-validate sufficiency."""
        self.free_balance = self.free_balance.saturating_sub(amount)

    def decrease_with_existential_deposit(
        self,
        amount: Balance,
        existential_deposit: Balance,
    ) -> DecreaseOutcome:
        """
        Decide whether a decrease of `amount` leaves this account alive.

        Does not mutate the record; the caller applies the outcome.

        Returns:
            Reduce(amount) if the remaining total stays at or above the
            existential deposit, else Remove(amount, dust).

        Raises:
            InsufficientBalance: If free_balance < amount
        """
        if self.free_balance < amount:
            raise InsufficientBalance(
                f"free balance {self.free_balance} < requested {amount}"
            )

        new_total = self.free_balance.saturating_sub(amount).saturating_add(self.reserved_balance)

        if new_total.is_zero() or new_total < existential_deposit:
            return Remove(amount, new_total)
        return Reduce(amount)

    def reserve(self, amount: Balance) -> None:
        """Move `amount` from free to reserved."""
        if self.free_balance < amount:
            raise InsufficientBalance(
                f"free balance {self.free_balance} < reserve {amount}"
            )
        self.free_balance = self.free_balance.saturating_sub(amount)
        self.reserved_balance = self.reserved_balance.saturating_add(amount)

    def unreserve(self, amount: Balance) -> None:
        """Move `amount` from reserved back to free."""
        if self.reserved_balance < amount:
            raise InsufficientBalance(
                f"reserved balance {self.reserved_balance} < unreserve {amount}"
            )
        self.reserved_balance = self.reserved_balance.saturating_sub(amount)
        self.free_balance = self.free_balance.saturating_add(amount)
