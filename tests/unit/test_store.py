"""
test_store.py - Unit tests for the in-memory collaborators

Tests:
- InMemoryTokenStore: copy semantics, iteration, atomic commit, token ids
- BlockCounter: monotonic height
- RecordingEventSink
"""

import pytest

from tokenledger import (
    AccountKey, AccountRecord, Balance, TokenRecord, TokenEvent, EventType,
    InMemoryTokenStore, BlockCounter, RecordingEventSink,
    TokenStore, BlockClock, EventSink, FIRST_TOKEN_ID,
)


class TestInMemoryTokenStore:

    def test_implements_protocol(self):
        assert isinstance(InMemoryTokenStore(), TokenStore)

    def test_missing_records_are_none(self):
        store = InMemoryTokenStore()
        assert store.get_account(AccountKey(1, "alice")) is None
        assert store.get_token(1) is None

    def test_account_round_trip(self):
        store = InMemoryTokenStore()
        key = AccountKey(1, "alice")
        store.set_account(key, AccountRecord(free_balance=Balance(5)))
        assert store.get_account(key) == AccountRecord(free_balance=Balance(5))

    def test_returned_account_is_a_copy(self):
        store = InMemoryTokenStore()
        key = AccountKey(1, "alice")
        store.set_account(key, AccountRecord(free_balance=Balance(5)))
        store.get_account(key).increase_liquidity_by(Balance(100))
        assert store.get_account(key).free_balance == Balance(5)

    def test_returned_token_is_a_copy(self):
        store = InMemoryTokenStore()
        store.set_token(1, TokenRecord())
        store.get_token(1).patronage.rate = Balance(9)
        assert store.get_token(1).patronage.rate == Balance(0)

    def test_keys_are_per_token(self):
        store = InMemoryTokenStore()
        store.set_account(AccountKey(1, "alice"), AccountRecord(free_balance=Balance(5)))
        assert store.get_account(AccountKey(2, "alice")) is None

    def test_remove_account(self):
        store = InMemoryTokenStore()
        key = AccountKey(1, "alice")
        store.set_account(key, AccountRecord(free_balance=Balance(5)))
        store.remove_account(key)
        assert store.get_account(key) is None
        store.remove_account(key)

    def test_iter_accounts(self):
        store = InMemoryTokenStore()
        store.set_account(AccountKey(1, "alice"), AccountRecord(free_balance=Balance(5)))
        store.set_account(AccountKey(1, "bob"), AccountRecord(free_balance=Balance(6)))
        store.set_account(AccountKey(2, "carol"), AccountRecord(free_balance=Balance(7)))
        assert dict(store.iter_accounts(1)) == {
            "alice": AccountRecord(free_balance=Balance(5)),
            "bob": AccountRecord(free_balance=Balance(6)),
        }
        assert store.account_count(2) == 1

    def test_commit_writes_and_removes(self):
        store = InMemoryTokenStore()
        store.set_account(AccountKey(1, "alice"), AccountRecord(free_balance=Balance(5)))
        store.commit(
            accounts={
                AccountKey(1, "alice"): None,
                AccountKey(1, "bob"): AccountRecord(free_balance=Balance(5)),
            },
            tokens={1: TokenRecord(total_issuance=Balance(5))},
        )
        assert store.get_account(AccountKey(1, "alice")) is None
        assert store.get_account(AccountKey(1, "bob")) == AccountRecord(free_balance=Balance(5))
        assert store.get_token(1).total_issuance == Balance(5)

    def test_commit_nothing(self):
        store = InMemoryTokenStore()
        store.commit()
        assert store.get_token(1) is None

    def test_token_ids_are_sequential(self):
        store = InMemoryTokenStore()
        assert store.next_token_id() == FIRST_TOKEN_ID
        assert store.next_token_id() == FIRST_TOKEN_ID + 1


class TestBlockCounter:

    def test_implements_protocol(self):
        assert isinstance(BlockCounter(), BlockClock)

    def test_advance(self):
        clock = BlockCounter(5)
        clock.advance_by(3)
        assert clock.current_block == 8
        clock.advance_to(8)
        assert clock.current_block == 8

    def test_cannot_move_backwards(self):
        clock = BlockCounter(5)
        with pytest.raises(ValueError, match="backwards"):
            clock.advance_to(4)

    def test_negative_start_rejected(self):
        with pytest.raises(ValueError):
            BlockCounter(-1)


class TestRecordingEventSink:

    def test_records_in_order(self):
        sink = RecordingEventSink()
        assert isinstance(sink, EventSink)
        first = TokenEvent(EventType.TOKENS_MINTED, 1, 10)
        second = TokenEvent(EventType.TOKENS_BURNED, 1, 11)
        sink.emit(first)
        sink.emit(second)
        assert sink.events == [first, second]
        assert sink.last() == second
        assert sink.of_type(EventType.TOKENS_BURNED) == [second]
        sink.clear()
        assert len(sink) == 0
        assert sink.last() is None
