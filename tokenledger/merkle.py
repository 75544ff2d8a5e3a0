"""
merkle.py - Merkle commitments for restricted transfer policies

A restricted token stores a single 32-byte commitment: the root of a merkle
tree over its allow-list. A sender proves membership with the ordered list of
sibling hashes from its leaf up to the root.

Commitment rules:
    1. Leaf hashing: H(encode(payload))
    2. Parent hashing: H(left || right) over the raw 32-byte digests
    3. Padding: the unpaired last node of an odd layer is paired with itself
    4. H is BLAKE2b with a 32-byte digest

The tree is kept breadth-first in one flat list (leaves first, root last) so
any node can be referenced by a single index. Proof producers and anyone
re-deriving indices must use index_path(), which follows the same padding rule.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import hashlib
from typing import Any, List, Sequence, Tuple

from .core import HASH_SIZE


# u64 account ids are encoded as 8 little-endian bytes
_U64_MAX = 2**64 - 1

# Leading type tag of every encoded payload; with the length prefixes below no
# two distinct payloads share an encoding.
_TAG_INT = b"\x00"
_TAG_STR = b"\x01"
_TAG_BYTES = b"\x02"
_TAG_SEQ = b"\x03"


def hash_of(data: bytes) -> bytes:
    """H(): 256-bit BLAKE2b digest."""
    return hashlib.blake2b(data, digest_size=HASH_SIZE).digest()


def compact_length(n: int) -> bytes:
    """
    SCALE compact encoding of a length.

    The two low bits of the first byte select the mode: single byte (< 2**6),
    two bytes (< 2**14), four bytes (< 2**30), or a length byte followed by
    the minimal little-endian integer.
    """
    if n < 0:
        raise ValueError(f"Length cannot be negative: {n}")
    if n < 2**6:
        return bytes([n << 2])
    if n < 2**14:
        return ((n << 2) | 0b01).to_bytes(2, "little")
    if n < 2**30:
        return ((n << 2) | 0b10).to_bytes(4, "little")
    size = (n.bit_length() + 7) // 8
    return bytes([((size - 4) << 2) | 0b11]) + n.to_bytes(size, "little")


def encode(value: Any) -> bytes:
    """
    Encode a leaf payload to bytes.

    Every encoding starts with a one-byte type tag. ints are then u64
    little-endian; strings (UTF-8) and bytes carry a compact length prefix;
    tuples and lists carry a compact item count followed by their encoded
    items. A tuple and a list with equal items encode identically; otherwise
    distinct payloads never share an encoding.
    """
    if isinstance(value, bool):
        raise TypeError("Cannot encode bool as a leaf payload")
    if isinstance(value, int):
        if value < 0 or value > _U64_MAX:
            raise ValueError(f"Integer payload out of u64 range: {value}")
        return _TAG_INT + value.to_bytes(8, "little")
    if isinstance(value, str):
        raw = value.encode("utf-8")
        return _TAG_STR + compact_length(len(raw)) + raw
    if isinstance(value, (bytes, bytearray)):
        return _TAG_BYTES + compact_length(len(value)) + bytes(value)
    if isinstance(value, (tuple, list)):
        return _TAG_SEQ + compact_length(len(value)) + b"".join(encode(item) for item in value)
    raise TypeError(f"Cannot encode {type(value).__name__} as a leaf payload")


def hash_leaf(payload: Any) -> bytes:
    return hash_of(encode(payload))


def hash_pair(left: bytes, right: bytes) -> bytes:
    return hash_of(left + right)


class MerkleSide(Enum):
    """Which side of the running hash a proof element is placed on."""
    LEFT = "left"     # H(sibling || acc)
    RIGHT = "right"   # H(acc || sibling)


@dataclass(frozen=True, slots=True)
class IndexItem:
    """A 1-based index into the flattened tree plus the side it joins on."""
    index: int
    side: MerkleSide


@dataclass(frozen=True, slots=True)
class MerkleProof:
    """
    Membership proof: (sibling_hash, side) pairs, read leaf-to-root.

    The path is stored as a tuple so a proof is immutable and hashable.
    """
    path: Tuple[Tuple[bytes, MerkleSide], ...] = ()

    def __post_init__(self):
        path = tuple((bytes(h), side) for h, side in self.path)
        for sibling, side in path:
            if len(sibling) != HASH_SIZE:
                raise ValueError(f"Proof hash must be {HASH_SIZE} bytes, got {len(sibling)}")
            if not isinstance(side, MerkleSide):
                raise ValueError(f"Proof side must be MerkleSide, got {side!r}")
        object.__setattr__(self, 'path', path)

    def verify_for_commit(self, payload: Any, commitment: bytes) -> bool:
        """
        Fold the path over H(encode(payload)) and compare with the commitment.

        Returns False (never raises) for a proof that does not match or a
        payload that cannot be encoded.
        """
        try:
            acc = hash_leaf(payload)
        except (TypeError, ValueError):
            return False
        for sibling, side in self.path:
            match side:
                case MerkleSide.LEFT:
                    acc = hash_pair(sibling, acc)
                case MerkleSide.RIGHT:
                    acc = hash_pair(acc, sibling)
        return acc == commitment

    def __len__(self) -> int:
        return len(self.path)

    def __repr__(self) -> str:
        steps = ", ".join(f"{h.hex()[:8]}:{side.value}" for h, side in self.path)
        return f"MerkleProof([{steps}])"


def build_merkle_tree(collection: Sequence[Any]) -> List[bytes]:
    """
    Build the flattened tree for an ordered collection of leaf payloads.

    Elements [0, n) are the leaf hashes, followed by each parent layer in
    turn; the last element is the root.

    Raises:
        ValueError: If the collection is empty
    """
    if not collection:
        raise ValueError("Cannot build a merkle tree from an empty collection")

    out = [hash_leaf(item) for item in collection]
    start = 0
    layer_len = len(out)
    while layer_len > 1:
        layer = out[start:start + layer_len]
        for j in range(0, layer_len - 1, 2):
            out.append(hash_pair(layer[j], layer[j + 1]))
        if layer_len % 2 == 1:
            out.append(hash_pair(layer[-1], layer[-1]))
        start += layer_len
        layer_len = (layer_len + 1) // 2
    return out


def merkle_root(collection: Sequence[Any]) -> bytes:
    """Commitment for an ordered collection of leaf payloads."""
    return build_merkle_tree(collection)[-1]


def index_path(length: int, index: int) -> List[IndexItem]:
    """
    Indices of the siblings needed to climb from leaf `index` to the root.

    Args:
        length: Number of leaves
        index: 1-based leaf index

    Returns:
        IndexItems with 1-based indices into the flattened tree. An unpaired
        last node of an odd layer references itself on the LEFT.
    """
    if length < 1:
        raise ValueError("Tree must have at least one leaf")
    if index < 1 or index > length:
        raise ValueError(f"Leaf index {index} out of range 1..{length}")

    path: List[IndexItem] = []
    idx = index
    layer_len = length
    offset = 0
    while layer_len != 1:
        if idx % 2 == 1 and idx == layer_len:
            path.append(IndexItem(offset + idx, MerkleSide.LEFT))
        elif idx % 2 == 1:
            path.append(IndexItem(offset + idx + 1, MerkleSide.RIGHT))
        else:
            path.append(IndexItem(offset + idx - 1, MerkleSide.LEFT))
        offset += layer_len
        idx = (idx + 1) // 2
        layer_len = (layer_len + 1) // 2
    return path


def build_merkle_proof(collection: Sequence[Any], index: int) -> MerkleProof:
    """
    Proof that the payload at 1-based `index` is in `collection`.

    Example:
        allow_list = [1, 2, 3]
        root = merkle_root(allow_list)
        proof = build_merkle_proof(allow_list, 2)
        assert proof.verify_for_commit(2, root)
    """
    tree = build_merkle_tree(collection)
    return MerkleProof(tuple(
        (tree[item.index - 1], item.side)
        for item in index_path(len(collection), index)
    ))
