"""
ledger.py - Stateful token ledger

TokenLedger is the entry point a host's dispatch layer calls into once it has
authenticated a caller. It is the only module that writes to the store.

Key responsibilities:
    - Issues tokens and keeps each token's issuance counter in step with mints,
      burns, burned dust and patronage claims
    - Gates transfers of restricted tokens on a merkle membership proof
    - Applies the dust floor: accounts falling below the existential deposit
      are removed and their remainder is swept according to the dust policy
    - Validates everything before writing; each operation is one atomic commit
    - Emits a TokenEvent to the event sink after every successful commit
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple, Union

from .core import (
    # Types
    Balance, AccountId, AccountKey, TokenId, TokenEvent, EventType,
    # Exceptions
    LedgerError, InsufficientBalance, TokenNotFound, AccountNotFound,
    TransferNotPermitted, InvalidIssuanceParameters, IssuanceOverflow,
    MAX_BALANCE,
)
from .account import AccountRecord, DecreaseOutcome, Reduce, Remove
from .merkle import MerkleProof
from .token import (
    TokenRecord, TokenIssuanceParameters, TransferPolicy, Open, Restricted, describe_policy,
)
from .transfer import TransferBatch, TransferOutput, settle_transfer_batch
from .store import (
    TokenStore, BlockClock, EventSink,
    InMemoryTokenStore, BlockCounter, RecordingEventSink,
)


# ============================================================================
# DUST POLICY
# ============================================================================

@dataclass(frozen=True, slots=True)
class BurnDust:
    """Swept dust leaves circulation: the token's issuance is reduced by it."""

    def __repr__(self) -> str:
        return "BurnDust()"


@dataclass(frozen=True, slots=True)
class RedirectDust:
    """Swept dust is credited to `beneficiary` (e.g. a treasury account)."""
    beneficiary: AccountId


DustPolicy = Union[BurnDust, RedirectDust]


Outputs = Union[TransferBatch, Iterable[Union[TransferOutput, Tuple[AccountId, Any]]]]


def _as_amount(amount: Union[Balance, int]) -> Balance:
    amount = amount if isinstance(amount, Balance) else Balance(amount)
    if amount.is_zero():
        raise ValueError("Amount cannot be zero")
    return amount


def _as_batch(outputs: Outputs) -> TransferBatch:
    if isinstance(outputs, TransferBatch):
        return outputs
    return TransferBatch(tuple(
        out if isinstance(out, TransferOutput) else TransferOutput(*out)
        for out in outputs
    ))


class TokenLedger:
    """
    Token accounting over a host-supplied store, block clock and event sink.

    Thread Safety:
        Not thread-safe. The host serializes calls; each operation runs to
        completion against exclusively held state.

    Example:
        ledger = TokenLedger("main", dust_policy=BurnDust())
        token_id = ledger.issue_token("alice", TokenIssuanceParameters(
            symbol="JOY", initial_issuance=1000, existential_deposit=10,
        ))
        ledger.transfer("alice", token_id, [("bob", 100)])
    """

    def __init__(
        self,
        name: str,
        *,
        dust_policy: DustPolicy,
        store: Optional[TokenStore] = None,
        clock: Optional[BlockClock] = None,
        event_sink: Optional[EventSink] = None,
        verbose: bool = True,
        test_mode: bool = False,
    ):
        """
        Create a token ledger.

        Args:
            name: Ledger identifier (used in log lines)
            dust_policy: BurnDust() or RedirectDust(account); there is no default
            store: Record storage (default: a fresh InMemoryTokenStore)
            clock: Block height source (default: BlockCounter at block 0)
            event_sink: Event receiver (default: RecordingEventSink)
            verbose: Print one line per applied or rejected operation (default: True)
            test_mode: Allow set_account() to write records directly (default: False)
        """
        if not isinstance(dust_policy, (BurnDust, RedirectDust)):
            raise TypeError(f"dust_policy must be BurnDust or RedirectDust, got {dust_policy!r}")
        self.name = name
        self.dust_policy = dust_policy
        self.store = store if store is not None else InMemoryTokenStore()
        self.clock = clock if clock is not None else BlockCounter()
        self.event_sink = event_sink if event_sink is not None else RecordingEventSink()
        self.verbose = verbose
        self._test_mode = test_mode

    # ========================================================================
    # QUERIES
    # ========================================================================

    @property
    def current_block(self) -> int:
        return self.clock.current_block

    def get_token(self, token_id: TokenId) -> TokenRecord:
        """
        Return a copy of the token record.

        Raises:
            TokenNotFound: If the token does not exist
        """
        token = self.store.get_token(token_id)
        if token is None:
            raise TokenNotFound(f"Token {token_id} not found")
        return token

    def get_account(self, token_id: TokenId, account_id: AccountId) -> AccountRecord:
        """
        Return a copy of the account record.

        Raises:
            AccountNotFound: If the account does not exist for this token
        """
        record = self.store.get_account(AccountKey(token_id, account_id))
        if record is None:
            raise AccountNotFound(f"Account {account_id!r} not found for token {token_id}")
        return record

    def account_exists(self, token_id: TokenId, account_id: AccountId) -> bool:
        return self.store.get_account(AccountKey(token_id, account_id)) is not None

    def total_issuance(self, token_id: TokenId) -> Balance:
        return self.get_token(token_id).total_issuance

    def outstanding_patronage_credit(self, token_id: TokenId) -> Balance:
        """Patronage credit accrued up to the current block."""
        return self.get_token(token_id).patronage.outstanding_credit(self.current_block)

    def verify_issuance(self, token_id: TokenId) -> Dict[str, Any]:
        """
        Audit the issuance counter against the account records.

        Returns:
            Dict with keys:
            - 'valid': bool - True if the sum of account totals equals total_issuance
            - 'total_issuance': Balance - Stored counter
            - 'accounts_total': int - Exact (unclamped) sum of free + reserved over all accounts
            - 'accounts': int - Number of account records
        """
        token = self.get_token(token_id)
        accounts_total = 0
        count = 0
        for _, record in self.store.iter_accounts(token_id):
            accounts_total += record.free_balance.value + record.reserved_balance.value
            count += 1
        return {
            'valid': accounts_total == token.total_issuance.value,
            'total_issuance': token.total_issuance,
            'accounts_total': accounts_total,
            'accounts': count,
        }

    # ========================================================================
    # TOKEN LIFECYCLE (Mutating)
    # ========================================================================

    def issue_token(self, owner: AccountId, params: TokenIssuanceParameters) -> TokenId:
        """
        Create a token and credit its initial issuance to `owner`.

        Returns:
            The new token id

        Raises:
            InvalidIssuanceParameters: If the parameters fail validation
        """
        block = self.current_block
        try:
            token = params.try_build(block)
        except InvalidIssuanceParameters as e:
            self._rejected("issue_token", e)
            raise

        token_id = self.store.next_token_id()
        accounts: Dict[AccountKey, Optional[AccountRecord]] = {}
        if not params.initial_issuance.is_zero():
            accounts[AccountKey(token_id, owner)] = AccountRecord(free_balance=params.initial_issuance)

        self.store.commit(accounts=accounts, tokens={token_id: token})
        self._emit(
            EventType.TOKEN_ISSUED, token_id,
            owner=owner,
            symbol=params.symbol,
            initial_issuance=params.initial_issuance,
            existential_deposit=params.existential_deposit,
            transfer_policy=describe_policy(params.transfer_policy),
            patronage_rate=params.patronage_rate,
        )
        self._applied("issue_token", f"token={token_id} symbol={params.symbol} owner={owner!r}")
        return token_id

    def mint(self, token_id: TokenId, account_id: AccountId, amount: Union[Balance, int]) -> None:
        """
        Credit `amount` to an account, creating it if needed, and raise issuance.

        Raises:
            TokenNotFound: If the token does not exist
            ValueError: If amount is zero
            IssuanceOverflow: If issuance would exceed MAX_BALANCE
        """
        amount = _as_amount(amount)
        token = self._require_token(token_id, "mint")
        self._require_headroom(token_id, token, amount, "mint")
        key = AccountKey(token_id, account_id)

        record = self.store.get_account(key)
        created = record is None
        if record is None:
            record = AccountRecord()
        record.increase_liquidity_by(amount)

        issuance_before = token.total_issuance
        token.increase_issuance_by(amount)

        self.store.commit(accounts={key: record}, tokens={token_id: token})
        self._emit(
            EventType.TOKENS_MINTED, token_id,
            account=account_id,
            amount=amount,
            created=created,
            issuance_before=issuance_before,
            issuance_after=token.total_issuance,
        )
        self._applied("mint", f"token={token_id} {amount} -> {account_id!r}")

    def burn(
        self,
        token_id: TokenId,
        account_id: AccountId,
        amount: Union[Balance, int],
    ) -> DecreaseOutcome:
        """
        Destroy `amount` of an account's free balance and reduce issuance.

        If the account falls below the existential deposit it is removed and
        its remainder is swept under the dust policy.

        Returns:
            Reduce(amount) or Remove(amount, dust)

        Raises:
            TokenNotFound, AccountNotFound: If the token or account does not exist
            InsufficientBalance: If the free balance is below amount
        """
        amount = _as_amount(amount)
        token = self._require_token(token_id, "burn")
        key = AccountKey(token_id, account_id)
        record = self._require_account(key, "burn")

        try:
            outcome = record.decrease_with_existential_deposit(amount, token.existential_deposit)
        except InsufficientBalance as e:
            self._rejected("burn", e)
            raise

        issuance_before = token.total_issuance
        accounts: Dict[AccountKey, Optional[AccountRecord]] = {}
        match outcome:
            case Reduce(amount=reduced):
                record.decrease_liquidity_by(reduced)
                accounts[key] = record
            case Remove():
                accounts[key] = None
        token.decrease_issuance_by(amount)
        dust_facts = self._sweep_dust(token_id, token, account_id, outcome, accounts)

        self.store.commit(accounts=accounts, tokens={token_id: token})
        self._emit(
            EventType.TOKENS_BURNED, token_id,
            account=account_id,
            amount=amount,
            issuance_before=issuance_before,
            issuance_after=token.total_issuance,
        )
        if dust_facts is not None:
            self._emit(EventType.ACCOUNT_DUSTED, token_id, **dust_facts)
        self._applied("burn", f"token={token_id} {amount} from {account_id!r} ({outcome!r})")
        return outcome

    # ========================================================================
    # TRANSFERS (Mutating)
    # ========================================================================

    def transfer(
        self,
        sender: AccountId,
        token_id: TokenId,
        outputs: Outputs,
        proof: Optional[MerkleProof] = None,
    ) -> DecreaseOutcome:
        """
        Pay every output of a batch from `sender`, all or nothing.

        Under a Restricted policy the sender's proof must verify against the
        token's commitment before anything else is checked.

        Args:
            sender: Paying account
            token_id: Token being transferred
            outputs: TransferBatch, TransferOutputs or (beneficiary, amount) pairs
            proof: Merkle membership proof of `sender` (Restricted tokens only)

        Returns:
            The sender's outcome: Reduce(total) or Remove(total, dust)

        Raises:
            TokenNotFound, AccountNotFound: If the token or sender does not exist
            TransferNotPermitted: If the policy is Restricted and the proof fails
            InsufficientBalance: If the sender's free balance is below the total
        """
        batch = _as_batch(outputs)
        token = self._require_token(token_id, "transfer")

        if not token.is_transfer_permitted(sender, proof):
            error = TransferNotPermitted(
                f"Sender {sender!r} has no valid membership proof for token {token_id}"
            )
            self._rejected("transfer", error)
            raise error

        sender_key = AccountKey(token_id, sender)
        sender_record = self._require_account(sender_key, "transfer")

        try:
            settlement = settle_transfer_batch(
                batch, sender, sender_record, token.existential_deposit,
                lambda account_id: self.store.get_account(AccountKey(token_id, account_id)),
            )
        except InsufficientBalance as e:
            self._rejected("transfer", e)
            raise

        accounts: Dict[AccountKey, Optional[AccountRecord]] = {
            AccountKey(token_id, account_id): record
            for account_id, record in settlement.writes.items()
        }
        dust_facts = self._sweep_dust(token_id, token, sender, settlement.outcome, accounts)

        self.store.commit(accounts=accounts, tokens={token_id: token})
        self._emit(
            EventType.TOKENS_TRANSFERRED, token_id,
            sender=sender,
            outputs=[(out.beneficiary, out.amount) for out in batch],
            total=batch.total_amount(),
        )
        if dust_facts is not None:
            self._emit(EventType.ACCOUNT_DUSTED, token_id, **dust_facts)
        self._applied(
            "transfer",
            f"token={token_id} {batch.total_amount()} from {sender!r} to {len(batch)} output(s)",
        )
        return settlement.outcome

    def reserve(self, token_id: TokenId, account_id: AccountId, amount: Union[Balance, int]) -> None:
        """
        Move `amount` of an account's free balance to reserved.

        Raises:
            TokenNotFound, AccountNotFound: If the token or account does not exist
            InsufficientBalance: If the free balance is below amount
        """
        self._move_reserve(token_id, account_id, _as_amount(amount), unreserve=False)

    def unreserve(self, token_id: TokenId, account_id: AccountId, amount: Union[Balance, int]) -> None:
        """
        Move `amount` of an account's reserved balance back to free.

        Raises:
            TokenNotFound, AccountNotFound: If the token or account does not exist
            InsufficientBalance: If the reserved balance is below amount
        """
        self._move_reserve(token_id, account_id, _as_amount(amount), unreserve=True)

    def _move_reserve(self, token_id: TokenId, account_id: AccountId, amount: Balance, unreserve: bool) -> None:
        op = "unreserve" if unreserve else "reserve"
        self._require_token(token_id, op)
        key = AccountKey(token_id, account_id)
        record = self._require_account(key, op)
        try:
            if unreserve:
                record.unreserve(amount)
            else:
                record.reserve(amount)
        except InsufficientBalance as e:
            self._rejected(op, e)
            raise

        self.store.commit(accounts={key: record})
        self._emit(
            EventType.TOKENS_UNRESERVED if unreserve else EventType.TOKENS_RESERVED, token_id,
            account=account_id,
            amount=amount,
            free_balance=record.free_balance,
            reserved_balance=record.reserved_balance,
        )
        self._applied(op, f"token={token_id} {amount} for {account_id!r}")

    # ========================================================================
    # POLICY AND PATRONAGE (Mutating)
    # ========================================================================

    def change_transfer_policy(self, token_id: TokenId, policy: TransferPolicy) -> None:
        """
        Replace the token's transfer policy.

        Raises:
            TypeError: If policy is not Open or Restricted
            TokenNotFound: If the token does not exist
        """
        if not isinstance(policy, (Open, Restricted)):
            raise TypeError(f"policy must be Open or Restricted, got {policy!r}")
        token = self._require_token(token_id, "change_transfer_policy")
        old_policy = token.transfer_policy
        token.transfer_policy = policy

        self.store.commit(tokens={token_id: token})
        self._emit(
            EventType.TRANSFER_POLICY_CHANGED, token_id,
            old_policy=describe_policy(old_policy),
            new_policy=describe_policy(policy),
        )
        self._applied("change_transfer_policy", f"token={token_id} -> {describe_policy(policy)}")

    def change_to_open(self, token_id: TokenId) -> None:
        """Drop any allow-list commitment; anyone may transfer."""
        self.change_transfer_policy(token_id, Open())

    def set_patronage_rate(self, token_id: TokenId, new_rate: Union[Balance, int]) -> None:
        """
        Change the patronage rate from the current block on.

        Credit accrued at the old rate up to now is kept in the tally.

        Raises:
            TokenNotFound: If the token does not exist
        """
        new_rate = new_rate if isinstance(new_rate, Balance) else Balance(new_rate)
        token = self._require_token(token_id, "set_patronage_rate")
        block = self.current_block
        old_rate = token.patronage.rate
        token.patronage.set_new_rate_at_block(new_rate, block)

        self.store.commit(tokens={token_id: token})
        self._emit(
            EventType.PATRONAGE_RATE_CHANGED, token_id,
            old_rate=old_rate,
            new_rate=new_rate,
            tally=token.patronage.tally,
        )
        self._applied("set_patronage_rate", f"token={token_id} {old_rate} -> {new_rate} at block {block}")

    def claim_patronage_credit(self, token_id: TokenId, beneficiary: AccountId) -> Balance:
        """
        Mint all outstanding patronage credit to `beneficiary` and restart accrual.

        Returns:
            The amount credited (may be zero)

        Raises:
            TokenNotFound: If the token does not exist
            IssuanceOverflow: If the credit would take issuance above MAX_BALANCE
        """
        token = self._require_token(token_id, "claim_patronage_credit")
        block = self.current_block
        credit = token.patronage.outstanding_credit(block)

        accounts: Dict[AccountKey, Optional[AccountRecord]] = {}
        if not credit.is_zero():
            self._require_headroom(token_id, token, credit, "claim_patronage_credit")
            key = AccountKey(token_id, beneficiary)
            record = self.store.get_account(key)
            if record is None:
                record = AccountRecord()
            record.increase_liquidity_by(credit)
            accounts[key] = record
            token.increase_issuance_by(credit)
        token.patronage.reset_tally_at_block(block)

        self.store.commit(accounts=accounts, tokens={token_id: token})
        self._emit(
            EventType.PATRONAGE_CREDIT_CLAIMED, token_id,
            beneficiary=beneficiary,
            amount=credit,
            issuance_after=token.total_issuance,
        )
        self._applied("claim_patronage_credit", f"token={token_id} {credit} -> {beneficiary!r}")
        return credit

    # ========================================================================
    # TEST SUPPORT
    # ========================================================================

    def set_account(self, token_id: TokenId, account_id: AccountId, record: AccountRecord) -> None:
        """
        Write an account record directly.

        WARNING: Bypasses issuance bookkeeping and is only available in test
        mode. Use mint() and transfer() to change balances otherwise.

        Raises:
            LedgerError: If called when test_mode is False
            TokenNotFound: If the token does not exist
        """
        if not self._test_mode:
            raise LedgerError(
                "set_account() is disabled in production mode. "
                "Use mint() and transfer() to modify balances. "
                "Set test_mode=True when creating TokenLedger for testing."
            )
        self._require_token(token_id, "set_account")
        self.store.set_account(AccountKey(token_id, account_id), record)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _require_token(self, token_id: TokenId, op: str) -> TokenRecord:
        token = self.store.get_token(token_id)
        if token is None:
            error = TokenNotFound(f"Token {token_id} not found")
            self._rejected(op, error)
            raise error
        return token

    def _require_headroom(self, token_id: TokenId, token: TokenRecord, amount: Balance, op: str) -> None:
        if token.total_issuance.value + amount.value > MAX_BALANCE:
            error = IssuanceOverflow(
                f"Crediting {amount} would take token {token_id} issuance above {MAX_BALANCE}"
            )
            self._rejected(op, error)
            raise error

    def _require_account(self, key: AccountKey, op: str) -> AccountRecord:
        record = self.store.get_account(key)
        if record is None:
            error = AccountNotFound(f"Account {key.account_id!r} not found for token {key.token_id}")
            self._rejected(op, error)
            raise error
        return record

    def _sweep_dust(
        self,
        token_id: TokenId,
        token: TokenRecord,
        holder: AccountId,
        outcome: DecreaseOutcome,
        accounts: Dict[AccountKey, Optional[AccountRecord]],
    ) -> Optional[Dict[str, Any]]:
        """
        Dispose of a removed account's remainder under the dust policy.

        Updates `token` and `accounts` in place. Returns the ACCOUNT_DUSTED
        event facts, or None when the holder survived.
        """
        match outcome:
            case Reduce():
                return None
            case Remove(dust=dust):
                pass

        facts: Dict[str, Any] = {'account': holder, 'dust': dust}
        match self.dust_policy:
            case BurnDust():
                token.decrease_issuance_by(dust)
                facts['disposal'] = 'burned'
            case RedirectDust(beneficiary=beneficiary):
                if not dust.is_zero():
                    key = AccountKey(token_id, beneficiary)
                    record = accounts[key] if key in accounts else self.store.get_account(key)
                    if record is None:
                        record = AccountRecord()
                    record.increase_liquidity_by(dust)
                    accounts[key] = record
                facts['disposal'] = 'redirected'
                facts['beneficiary'] = beneficiary
        return facts

    def _emit(self, event_type: EventType, token_id: TokenId, **data: Any) -> None:
        self.event_sink.emit(TokenEvent(
            event_type=event_type,
            token_id=token_id,
            block=self.current_block,
            data=data,
        ))

    def _applied(self, op: str, detail: str) -> None:
        if self.verbose:
            print(f"✓ APPLIED [{self.name}] {op}: {detail}")

    def _rejected(self, op: str, error: LedgerError) -> None:
        if self.verbose:
            print(f"✗ REJECTED [{self.name}] {op}: {error}")

    def __repr__(self) -> str:
        return f"TokenLedger({self.name!r}, block={self.current_block}, store={self.store!r})"
