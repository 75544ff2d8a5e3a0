"""
Core types for the token ledger.

This module provides the foundational pieces shared by every other module:
1. Balance: unsigned, saturating numeric wrapper
2. Identifier aliases and the AccountKey composite storage key
3. Exceptions: LedgerError and domain-specific error types
4. Events: EventType and TokenEvent, handed to the host's event sink

Balance arithmetic never raises. Results that would overflow clamp to
MAX_BALANCE and results that would underflow clamp to zero.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Union


# ============================================================================
# CONSTANTS
# ============================================================================

# Balances are 128-bit unsigned integers.
MAX_BALANCE = 2**128 - 1

# Size in bytes of a commitment / node hash.
HASH_SIZE = 32

# Token ids are allocated sequentially starting here.
FIRST_TOKEN_ID = 1


# ============================================================================
# TYPE ALIASES
# ============================================================================

TokenId = int

# Account ids are encoded into merkle leaves, so they must be ints (u64) or strings.
AccountId = Union[int, str]

BlockNumber = int


# ============================================================================
# BALANCE
# ============================================================================

def _clamp(value: int) -> int:
    if value < 0:
        return 0
    if value > MAX_BALANCE:
        return MAX_BALANCE
    return value


@dataclass(frozen=True, slots=True, order=True)
class Balance:
    """
    Unsigned token amount with saturating arithmetic.

    Every arithmetic site in the ledger goes through this type, so ledger
    code never aborts mid-mutation on an overflow or underflow:

        Balance(5) - Balance(7)            == Balance(0)
        Balance(MAX_BALANCE) + Balance(1)  == Balance(MAX_BALANCE)

    Plain ints are accepted as right-hand operands.
    """
    value: int = 0

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise TypeError(f"Balance must be an int, got {type(self.value).__name__}")
        if self.value < 0:
            raise ValueError(f"Balance cannot be negative, got {self.value}")
        if self.value > MAX_BALANCE:
            raise ValueError(f"Balance exceeds maximum, got {self.value}")

    @classmethod
    def zero(cls) -> Balance:
        return cls(0)

    @classmethod
    def max_value(cls) -> Balance:
        return cls(MAX_BALANCE)

    @classmethod
    def saturating(cls, value: int) -> Balance:
        """Build a Balance from any int, clamping into the representable range."""
        return cls(_clamp(int(value)))

    @staticmethod
    def _operand(other: Any) -> int:
        if isinstance(other, Balance):
            return other.value
        if isinstance(other, int) and not isinstance(other, bool):
            return other
        raise TypeError(f"Unsupported operand for Balance: {type(other).__name__}")

    def saturating_add(self, other: Union[Balance, int]) -> Balance:
        return Balance(_clamp(self.value + self._operand(other)))

    def saturating_sub(self, other: Union[Balance, int]) -> Balance:
        return Balance(_clamp(self.value - self._operand(other)))

    def saturating_mul(self, other: Union[Balance, int]) -> Balance:
        return Balance(_clamp(self.value * self._operand(other)))

    def __add__(self, other):
        try:
            return self.saturating_add(other)
        except TypeError:
            return NotImplemented

    def __radd__(self, other):
        # sum() starts from the int 0
        return self.__add__(other)

    def __sub__(self, other):
        try:
            return self.saturating_sub(other)
        except TypeError:
            return NotImplemented

    def __mul__(self, other):
        try:
            return self.saturating_mul(other)
        except TypeError:
            return NotImplemented

    __rmul__ = __mul__

    def is_zero(self) -> bool:
        return self.value == 0

    def __bool__(self) -> bool:
        return self.value != 0

    def __int__(self) -> int:
        return self.value

    def __repr__(self) -> str:
        return f"Balance({self.value})"

    def __str__(self) -> str:
        return str(self.value)


# ============================================================================
# STORAGE KEYS
# ============================================================================

@dataclass(frozen=True, slots=True)
class AccountKey:
    """Composite storage key for an account record: (token, account)."""
    token_id: TokenId
    account_id: AccountId

    def __repr__(self) -> str:
        return f"AccountKey({self.token_id}:{self.account_id!r})"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all token ledger errors."""
    pass


class InsufficientBalance(LedgerError):
    """Raised when a decrease is requested for more than the available balance."""
    pass


class TokenNotFound(LedgerError):
    """Raised when operating on a token id with no token record."""
    pass


class AccountNotFound(LedgerError):
    """Raised when operating on a (token, account) pair with no account record."""
    pass


class TransferNotPermitted(LedgerError):
    """Raised when a restricted token's transfer lacks a proof verifying against the commitment."""
    pass


class InvalidIssuanceParameters(LedgerError):
    """Raised when token issuance parameters fail validation."""
    pass


class IssuanceOverflow(LedgerError):
    """Raised when a credit would take a token's total issuance above MAX_BALANCE."""
    pass


# ============================================================================
# EVENTS
# ============================================================================

class EventType(Enum):
    """Kinds of notification emitted after a successful mutation."""
    TOKEN_ISSUED = "token_issued"
    TOKENS_MINTED = "tokens_minted"
    TOKENS_BURNED = "tokens_burned"
    TOKENS_TRANSFERRED = "tokens_transferred"
    ACCOUNT_DUSTED = "account_dusted"
    TOKENS_RESERVED = "tokens_reserved"
    TOKENS_UNRESERVED = "tokens_unreserved"
    TRANSFER_POLICY_CHANGED = "transfer_policy_changed"
    PATRONAGE_RATE_CHANGED = "patronage_rate_changed"
    PATRONAGE_CREDIT_CLAIMED = "patronage_credit_claimed"


@dataclass(frozen=True, slots=True)
class TokenEvent:
    """
    Structured before/after facts for a single mutation.

    Attributes:
        event_type: What happened
        token_id: Token the mutation applied to
        block: Block height at which it was applied
        data: Event-specific facts (amounts, accounts, old/new values)
    """
    event_type: EventType
    token_id: TokenId
    block: BlockNumber
    data: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"TokenEvent({self.event_type.value}, token={self.token_id}, block={self.block})"
