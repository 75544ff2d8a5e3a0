"""
tokenledger - Project Token Accounting Core

Per-account balances with an existential-deposit dust floor, token-wide
issuance bookkeeping, lazily accrued patronage credit and merkle-proof gated
transfers for restricted tokens.

Usage:
    from tokenledger import (
        TokenLedger, TokenIssuanceParameters, BurnDust, Restricted,
        merkle_root, build_merkle_proof,
    )

    allow_list = ["alice", "bob", "carol"]
    ledger = TokenLedger("main", dust_policy=BurnDust())
    token_id = ledger.issue_token("alice", TokenIssuanceParameters(
        symbol="JOY",
        initial_issuance=1000,
        existential_deposit=10,
        transfer_policy=Restricted(merkle_root(allow_list)),
        patronage_rate=2,
    ))

    # Senders of a restricted token prove allow-list membership
    proof = build_merkle_proof(allow_list, 1)
    ledger.transfer("alice", token_id, [("bob", 100), ("carol", 50)], proof)
"""

# Core types
from .core import (
    Balance,
    AccountKey,
    TokenEvent,
    EventType,
    LedgerError,
    InsufficientBalance,
    TokenNotFound,
    AccountNotFound,
    TransferNotPermitted,
    InvalidIssuanceParameters,
    IssuanceOverflow,
    MAX_BALANCE,
    HASH_SIZE,
    FIRST_TOKEN_ID,
)

# Merkle commitments
from .merkle import (
    MerkleSide,
    MerkleProof,
    IndexItem,
    hash_of,
    encode,
    compact_length,
    build_merkle_tree,
    merkle_root,
    index_path,
    build_merkle_proof,
)

# Account records
from .account import (
    AccountRecord,
    DecreaseOutcome,
    Reduce,
    Remove,
)

# Token records and patronage
from .token import (
    IssuanceState,
    TransferPolicy,
    Open,
    Restricted,
    PatronageState,
    TokenRecord,
    TokenIssuanceParameters,
)

# Transfers
from .transfer import (
    TransferOutput,
    TransferBatch,
    BatchSettlement,
    settle_transfer_batch,
)

# Collaborators
from .store import (
    TokenStore,
    BlockClock,
    EventSink,
    InMemoryTokenStore,
    BlockCounter,
    RecordingEventSink,
)

# Ledger
from .ledger import (
    TokenLedger,
    DustPolicy,
    BurnDust,
    RedirectDust,
)

__all__ = [
    # Core
    'Balance', 'AccountKey', 'TokenEvent', 'EventType',
    'LedgerError', 'InsufficientBalance', 'TokenNotFound', 'AccountNotFound',
    'TransferNotPermitted', 'InvalidIssuanceParameters', 'IssuanceOverflow',
    'MAX_BALANCE', 'HASH_SIZE', 'FIRST_TOKEN_ID',
    # Merkle
    'MerkleSide', 'MerkleProof', 'IndexItem', 'hash_of', 'encode', 'compact_length',
    'build_merkle_tree', 'merkle_root', 'index_path', 'build_merkle_proof',
    # Accounts
    'AccountRecord', 'DecreaseOutcome', 'Reduce', 'Remove',
    # Tokens
    'IssuanceState', 'TransferPolicy', 'Open', 'Restricted',
    'PatronageState', 'TokenRecord', 'TokenIssuanceParameters',
    # Transfers
    'TransferOutput', 'TransferBatch', 'BatchSettlement', 'settle_transfer_batch',
    # Collaborators
    'TokenStore', 'BlockClock', 'EventSink',
    'InMemoryTokenStore', 'BlockCounter', 'RecordingEventSink',
    # Ledger
    'TokenLedger', 'DustPolicy', 'BurnDust', 'RedirectDust',
]

__version__ = '0.1.0'
