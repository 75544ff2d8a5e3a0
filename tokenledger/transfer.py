"""
transfer.py - Multi-output transfers

A TransferBatch groups the outputs of one transfer so that the sender is
debited once, for the aggregate amount, before any beneficiary is credited.

settle_transfer_batch() is a pure function: it takes the sender's current
record and a loader for beneficiary records, and returns every account write
the transfer implies. It never touches storage, so the caller commits the
writes atomically or not at all.
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from .core import AccountId, Balance, InsufficientBalance, MAX_BALANCE
from .account import AccountRecord, DecreaseOutcome, Reduce, Remove


@dataclass(frozen=True, slots=True)
class TransferOutput:
    """One beneficiary and the amount due to it."""
    beneficiary: AccountId
    amount: Balance

    def __post_init__(self):
        if not isinstance(self.amount, Balance):
            object.__setattr__(self, 'amount', Balance(self.amount))
        if self.amount.is_zero():
            raise ValueError("Transfer amount cannot be zero")

    def __repr__(self) -> str:
        return f"TransferOutput({self.amount} -> {self.beneficiary!r})"


@dataclass(frozen=True, slots=True)
class TransferBatch:
    """Ordered outputs of a single transfer. Transient; holds no persistent state."""
    outputs: Tuple[TransferOutput, ...]

    def __post_init__(self):
        outputs = tuple(self.outputs)
        if not outputs:
            raise ValueError("Transfer batch must have at least one output")
        object.__setattr__(self, 'outputs', outputs)

    @classmethod
    def of(cls, outputs: Iterable[Tuple[AccountId, int]]) -> TransferBatch:
        """Build a batch from (beneficiary, amount) pairs."""
        return cls(tuple(TransferOutput(beneficiary, amount) for beneficiary, amount in outputs))

    def total_amount(self) -> Balance:
        """Saturating sum of the output amounts."""
        return sum((out.amount for out in self.outputs), Balance.zero())

    def exact_total(self) -> int:
        """Unclamped sum of the output amounts; may exceed MAX_BALANCE."""
        return sum(out.amount.value for out in self.outputs)

    def beneficiaries(self) -> List[AccountId]:
        return [out.beneficiary for out in self.outputs]

    def __iter__(self) -> Iterator[TransferOutput]:
        return iter(self.outputs)

    def __len__(self) -> int:
        return len(self.outputs)


@dataclass(frozen=True, slots=True)
class BatchSettlement:
    """
    Result of settling a batch against the sender's record.

    Attributes:
        outcome: Reduce or Remove for the sender
        writes: New record per account id; None means delete the record
        dust: Total swept from a removed sender (zero on Reduce)
    """
    outcome: DecreaseOutcome
    writes: Dict[AccountId, Optional[AccountRecord]] = field(default_factory=dict)
    dust: Balance = field(default_factory=Balance.zero)


def settle_transfer_batch(
    batch: TransferBatch,
    sender: AccountId,
    sender_record: AccountRecord,
    existential_deposit: Balance,
    load_account: Callable[[AccountId], Optional[AccountRecord]],
) -> BatchSettlement:
    """
    Compute every account write for applying `batch` from `sender`.

    The aggregate amount is checked against the sender with a single
    decrease_with_existential_deposit call. If that fails nothing is
    computed for the beneficiaries; once it succeeds the credits cannot fail.

    Args:
        batch: Outputs to pay
        sender: Sender account id
        sender_record: Sender's current record (not mutated)
        existential_deposit: Token's dust floor
        load_account: Returns a beneficiary's current record, or None

    Returns:
        BatchSettlement with the sender outcome, writes and swept dust

    Raises:
        InsufficientBalance: If the sender's free balance is below the total
            (always the case when the total exceeds MAX_BALANCE)
    """
    total = batch.exact_total()
    if total > MAX_BALANCE:
        # no free balance can cover a total above MAX_BALANCE
        raise InsufficientBalance(f"batch total {total} exceeds the maximum balance")

    outcome = sender_record.decrease_with_existential_deposit(
        batch.total_amount(), existential_deposit
    )

    writes: Dict[AccountId, Optional[AccountRecord]] = {}
    dust = Balance.zero()
    match outcome:
        case Reduce(amount=amount):
            debited = replace(sender_record)
            debited.decrease_liquidity_by(amount)
            writes[sender] = debited
        case Remove(dust=swept):
            writes[sender] = None
            dust = swept

    for output in batch:
        if output.beneficiary in writes:
            current = writes[output.beneficiary]
        else:
            current = load_account(output.beneficiary)
        credited = AccountRecord() if current is None else replace(current)
        credited.increase_liquidity_by(output.amount)
        writes[output.beneficiary] = credited

    return BatchSettlement(outcome=outcome, writes=writes, dust=dust)
