"""
store.py - Host collaborators for the token ledger

Protocols:
- TokenStore: records keyed by AccountKey / token id, with atomic multi-key commit
- BlockClock: monotonic block height
- EventSink: receives a TokenEvent after each successful mutation

Implementations:
- InMemoryTokenStore, BlockCounter, RecordingEventSink

No module-level state: every record access in the ledger is parameterized
through a TokenStore instance.
"""

from __future__ import annotations
from dataclasses import replace
import copy
from typing import (
    Dict, Iterator, List, Mapping, Optional, Protocol, Tuple, runtime_checkable
)

from .core import (
    AccountId, AccountKey, BlockNumber, EventType, TokenEvent, TokenId,
    FIRST_TOKEN_ID,
)
from .account import AccountRecord
from .token import TokenRecord


@runtime_checkable
class TokenStore(Protocol):
    """
    Key/value persistence for account and token records.

    Records handed out are copies: mutating them has no effect until they
    are written back.
    """

    def get_account(self, key: AccountKey) -> Optional[AccountRecord]:
        """Return the account record, or None if the account does not exist."""
        ...

    def set_account(self, key: AccountKey, record: AccountRecord) -> None:
        ...

    def remove_account(self, key: AccountKey) -> None:
        ...

    def iter_accounts(self, token_id: TokenId) -> Iterator[Tuple[AccountId, AccountRecord]]:
        """Iterate over (account_id, record) for every account of a token."""
        ...

    def get_token(self, token_id: TokenId) -> Optional[TokenRecord]:
        """Return the token record, or None if the token does not exist."""
        ...

    def set_token(self, token_id: TokenId, record: TokenRecord) -> None:
        ...

    def next_token_id(self) -> TokenId:
        """Allocate and return a fresh token id."""
        ...

    def commit(
        self,
        accounts: Optional[Mapping[AccountKey, Optional[AccountRecord]]] = None,
        tokens: Optional[Mapping[TokenId, TokenRecord]] = None,
    ) -> None:
        """Apply all writes together. A None account record means remove."""
        ...


@runtime_checkable
class BlockClock(Protocol):
    """Source of the current block height."""

    @property
    def current_block(self) -> BlockNumber:
        ...


@runtime_checkable
class EventSink(Protocol):
    """Receives notifications after successful mutations."""

    def emit(self, event: TokenEvent) -> None:
        ...


class InMemoryTokenStore:
    """
    Dict-backed TokenStore.

    Accounts are indexed per token so iter_accounts() is proportional to the
    number of holders of that token only.
    """

    def __init__(self, first_token_id: TokenId = FIRST_TOKEN_ID):
        self._accounts: Dict[TokenId, Dict[AccountId, AccountRecord]] = {}
        self._tokens: Dict[TokenId, TokenRecord] = {}
        self._next_token_id = first_token_id

    def get_account(self, key: AccountKey) -> Optional[AccountRecord]:
        record = self._accounts.get(key.token_id, {}).get(key.account_id)
        return replace(record) if record is not None else None

    def set_account(self, key: AccountKey, record: AccountRecord) -> None:
        self._accounts.setdefault(key.token_id, {})[key.account_id] = replace(record)

    def remove_account(self, key: AccountKey) -> None:
        holders = self._accounts.get(key.token_id)
        if holders is not None:
            holders.pop(key.account_id, None)

    def iter_accounts(self, token_id: TokenId) -> Iterator[Tuple[AccountId, AccountRecord]]:
        # Snapshot so callers may write while iterating
        holders = list(self._accounts.get(token_id, {}).items())
        for account_id, record in holders:
            yield account_id, replace(record)

    def get_token(self, token_id: TokenId) -> Optional[TokenRecord]:
        record = self._tokens.get(token_id)
        return copy.deepcopy(record) if record is not None else None

    def set_token(self, token_id: TokenId, record: TokenRecord) -> None:
        self._tokens[token_id] = copy.deepcopy(record)

    def next_token_id(self) -> TokenId:
        token_id = self._next_token_id
        self._next_token_id += 1
        return token_id

    def commit(
        self,
        accounts: Optional[Mapping[AccountKey, Optional[AccountRecord]]] = None,
        tokens: Optional[Mapping[TokenId, TokenRecord]] = None,
    ) -> None:
        # Copy everything first so a bad record cannot leave a partial write
        staged_accounts = {
            key: (replace(record) if record is not None else None)
            for key, record in (accounts or {}).items()
        }
        staged_tokens = {
            token_id: copy.deepcopy(record)
            for token_id, record in (tokens or {}).items()
        }

        for token_id, record in staged_tokens.items():
            self._tokens[token_id] = record
        for key, record in staged_accounts.items():
            if record is None:
                self.remove_account(key)
            else:
                self._accounts.setdefault(key.token_id, {})[key.account_id] = record

    def account_count(self, token_id: TokenId) -> int:
        return len(self._accounts.get(token_id, {}))

    def __repr__(self) -> str:
        holders = sum(len(h) for h in self._accounts.values())
        return f"InMemoryTokenStore({len(self._tokens)} tokens, {holders} accounts)"


class BlockCounter:
    """
    Monotonic block height.

    Height can only move forward, never backward.
    """

    def __init__(self, initial_block: BlockNumber = 0):
        if initial_block < 0:
            raise ValueError(f"Block height cannot be negative: {initial_block}")
        self._block = initial_block

    @property
    def current_block(self) -> BlockNumber:
        return self._block

    def advance_to(self, block: BlockNumber) -> None:
        """
        Raises:
            ValueError: If block is below the current height
        """
        if block < self._block:
            raise ValueError(f"Cannot move block height backwards: {block} < {self._block}")
        self._block = block

    def advance_by(self, blocks: int) -> None:
        self.advance_to(self._block + blocks)

    def __repr__(self) -> str:
        return f"BlockCounter({self._block})"


class RecordingEventSink:
    """EventSink that keeps every event in memory, in emission order."""

    def __init__(self):
        self.events: List[TokenEvent] = []

    def emit(self, event: TokenEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[TokenEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def last(self) -> Optional[TokenEvent]:
        return self.events[-1] if self.events else None

    def clear(self) -> None:
        self.events.clear()

    def __len__(self) -> int:
        return len(self.events)
