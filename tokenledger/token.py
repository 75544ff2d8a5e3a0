"""
token.py - Token-wide records and patronage accrual

ARCHITECTURE:
=============

1. TokenRecord: one per token, holding the issuance counter, existential
   deposit, issuance state, transfer policy and patronage state.

2. PatronageState: a linearly accruing per-block entitlement kept as a
   checkpoint (tally, last_update) plus a rate, so accrual never needs a
   per-block write:

       outstanding_credit(b) = tally + rate * (b - last_update)

   A rate change first snapshots the credit accrued at the old rate.

3. TokenIssuanceParameters: builder that validates creation parameters and
   seeds the patronage checkpoint at the creation block.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

from .core import (
    Balance, BlockNumber, AccountId,
    HASH_SIZE,
    InvalidIssuanceParameters,
)
from .merkle import MerkleProof


class IssuanceState(Enum):
    """Offering state of a token."""
    IDLE = "idle"
    SALE = "sale"
    BONDING_CURVE = "bonding_curve"


# ============================================================================
# TRANSFER POLICY
# ============================================================================

@dataclass(frozen=True, slots=True)
class Open:
    """Anyone holding the token may transfer it."""

    def __repr__(self) -> str:
        return "Open()"


@dataclass(frozen=True, slots=True)
class Restricted:
    """Only senders with a merkle proof against `commitment` may transfer."""
    commitment: bytes

    def __post_init__(self):
        if not isinstance(self.commitment, (bytes, bytearray)):
            raise ValueError("Restricted commitment must be bytes")
        if len(self.commitment) != HASH_SIZE:
            raise ValueError(f"Restricted commitment must be {HASH_SIZE} bytes, got {len(self.commitment)}")
        object.__setattr__(self, 'commitment', bytes(self.commitment))

    def __repr__(self) -> str:
        return f"Restricted({self.commitment.hex()[:16]}...)"


TransferPolicy = Union[Open, Restricted]


def describe_policy(policy: TransferPolicy) -> str:
    match policy:
        case Open():
            return "open"
        case Restricted(commitment=commitment):
            return f"restricted:{commitment.hex()}"
    raise TypeError(f"Unknown transfer policy: {policy!r}")


# ============================================================================
# PATRONAGE
# ============================================================================

@dataclass(slots=True)
class PatronageState:
    """
    Checkpointed linear accrual.

    Attributes:
        rate: Credit accrued per block
        tally: Credit accrued before last_update
        last_update: Block of the last checkpoint
    """
    rate: Balance = field(default_factory=Balance.zero)
    tally: Balance = field(default_factory=Balance.zero)
    last_update: BlockNumber = 0

    def outstanding_credit(self, block: BlockNumber) -> Balance:
        """tally + rate * (block - last_update). Pure; a regressed block accrues nothing."""
        period = Balance.saturating(block - self.last_update)
        return period.saturating_mul(self.rate).saturating_add(self.tally)

    def set_new_rate_at_block(self, new_rate: Balance, block: BlockNumber) -> None:
        # snapshot with the old rate before overwriting it
        self.tally = self.outstanding_credit(block)
        self.last_update = block
        self.rate = new_rate

    def reset_tally_at_block(self, block: BlockNumber) -> None:
        """Zero the tally after a claim; the rate is kept."""
        self.last_update = block
        self.tally = Balance.zero()


# ============================================================================
# TOKEN RECORD
# ============================================================================

@dataclass(slots=True)
class TokenRecord:
    """
    Token-wide bookkeeping.

    total_issuance is maintained by whoever mints and burns; it is never
    re-derived from the account records.
    """
    total_issuance: Balance = field(default_factory=Balance.zero)
    existential_deposit: Balance = field(default_factory=Balance.zero)
    issuance_state: IssuanceState = IssuanceState.IDLE
    transfer_policy: TransferPolicy = field(default_factory=Open)
    patronage: PatronageState = field(default_factory=PatronageState)

    def increase_issuance_by(self, amount: Balance) -> None:
        self.total_issuance = self.total_issuance.saturating_add(amount)

    def decrease_issuance_by(self, amount: Balance) -> None:
        self.total_issuance = self.total_issuance.saturating_sub(amount)

    def is_transfer_permitted(self, sender: AccountId, proof: Optional[MerkleProof]) -> bool:
        """Check the transfer policy for `sender`."""
        match self.transfer_policy:
            case Open():
                return True
            case Restricted(commitment=commitment):
                return proof is not None and proof.verify_for_commit(sender, commitment)
        raise TypeError(f"Unknown transfer policy: {self.transfer_policy!r}")


@dataclass(frozen=True, slots=True)
class TokenIssuanceParameters:
    """
    Creation parameters for a token.

    Attributes:
        symbol: Token symbol (non-empty)
        initial_issuance: Amount credited to the issuer at creation
        existential_deposit: Minimum total an account must hold to stay recorded
        initial_state: Offering state at creation
        transfer_policy: Open or Restricted(commitment)
        patronage_rate: Patronage credit accrued per block
    """
    symbol: str
    initial_issuance: Balance = field(default_factory=Balance.zero)
    existential_deposit: Balance = field(default_factory=Balance.zero)
    initial_state: IssuanceState = IssuanceState.IDLE
    transfer_policy: TransferPolicy = field(default_factory=Open)
    patronage_rate: Balance = field(default_factory=Balance.zero)

    def __post_init__(self):
        for name in ('initial_issuance', 'existential_deposit', 'patronage_rate'):
            value: Any = getattr(self, name)
            if not isinstance(value, Balance):
                object.__setattr__(self, name, Balance(value))
        if not isinstance(self.initial_state, IssuanceState):
            raise TypeError(f"initial_state must be an IssuanceState, got {self.initial_state!r}")
        if not isinstance(self.transfer_policy, (Open, Restricted)):
            raise TypeError(f"transfer_policy must be Open or Restricted, got {self.transfer_policy!r}")

    def try_build(self, block: BlockNumber) -> TokenRecord:
        """
        Validate the parameters and build the TokenRecord created at `block`.

        Raises:
            InvalidIssuanceParameters: If the symbol is empty, or a non-zero
                initial issuance is below the existential deposit
        """
        if not self.symbol or not self.symbol.strip():
            raise InvalidIssuanceParameters("Token symbol cannot be empty")
        if not self.initial_issuance.is_zero() and self.initial_issuance < self.existential_deposit:
            raise InvalidIssuanceParameters(
                f"Initial issuance {self.initial_issuance} below existential deposit "
                f"{self.existential_deposit}"
            )

        patronage = PatronageState(
            rate=self.patronage_rate,
            tally=Balance.zero(),
            last_update=block,
        )
        return TokenRecord(
            total_issuance=self.initial_issuance,
            existential_deposit=self.existential_deposit,
            issuance_state=self.initial_state,
            transfer_policy=self.transfer_policy,
            patronage=patronage,
        )
