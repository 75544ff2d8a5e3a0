"""
conftest.py - Shared pytest fixtures for token ledger tests

Provides common fixtures used across unit and integration tests:
- Collaborators (block clock, event sink, store)
- Ledgers (burn and redirect dust policies)
- An issued open token and an issued restricted token with its allow-list
"""

import pytest

from tokenledger import (
    TokenLedger, TokenIssuanceParameters, BurnDust, RedirectDust,
    Restricted, BlockCounter, RecordingEventSink, InMemoryTokenStore,
    merkle_root,
)


DEFAULT_EXISTENTIAL_DEPOSIT = 10
DEFAULT_INITIAL_ISSUANCE = 100
ALLOW_LIST = ["alice", "bob", "carol", "dave", "erin"]


def make_ledger(dust_policy=None, initial_block: int = 100, **kwargs) -> TokenLedger:
    """Quiet test-mode ledger with fresh collaborators."""
    return TokenLedger(
        "test",
        dust_policy=dust_policy or BurnDust(),
        store=InMemoryTokenStore(),
        clock=BlockCounter(initial_block),
        event_sink=RecordingEventSink(),
        verbose=False,
        test_mode=True,
        **kwargs,
    )


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def ledger():
    """Empty ledger at block 100 that burns dust."""
    return make_ledger()


@pytest.fixture
def redirect_ledger():
    """Empty ledger at block 100 that redirects dust to 'treasury'."""
    return make_ledger(dust_policy=RedirectDust("treasury"))


@pytest.fixture
def open_token(ledger):
    """Open token held entirely by alice: issuance 100, existential deposit 10."""
    return ledger.issue_token("alice", TokenIssuanceParameters(
        symbol="OPEN",
        initial_issuance=DEFAULT_INITIAL_ISSUANCE,
        existential_deposit=DEFAULT_EXISTENTIAL_DEPOSIT,
    ))


@pytest.fixture
def restricted_token(ledger):
    """Restricted token committed to ALLOW_LIST, held by alice."""
    return ledger.issue_token("alice", TokenIssuanceParameters(
        symbol="GATED",
        initial_issuance=DEFAULT_INITIAL_ISSUANCE,
        existential_deposit=DEFAULT_EXISTENTIAL_DEPOSIT,
        transfer_policy=Restricted(merkle_root(ALLOW_LIST)),
    ))
