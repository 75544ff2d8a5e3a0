"""
Merkle Proof Conformance Tests

INVARIANT: A proof built for member i of a collection verifies exactly that
member's payload against the collection's root.

    ∀ collection C, 1 <= i <= |C|:
        build_merkle_proof(C, i).verify_for_commit(C[i], merkle_root(C))

A tampered sibling hash, a swapped side tag on a step whose two inputs
differ, or a different payload makes verification fail.
"""

from hypothesis import given, settings, assume
from hypothesis import strategies as st

from tokenledger import (
    MerkleProof, MerkleSide, build_merkle_proof, merkle_root, hash_of,
)


# =============================================================================
# STRATEGIES
# =============================================================================

payload = st.one_of(
    st.integers(min_value=0, max_value=2**64 - 1),
    st.text(min_size=1, max_size=12),
)


@st.composite
def collection_and_index(draw, sizes=st.integers(min_value=1, max_value=40)):
    size = draw(sizes)
    collection = draw(st.lists(st.text(min_size=1, max_size=8), min_size=size, max_size=size, unique=True))
    index = draw(st.integers(min_value=1, max_value=size))
    return collection, index


power_of_two_sizes = st.sampled_from([2, 4, 8, 16, 32])


class TestMerkleProofProperties:
    """Property-based merkle proof tests."""

    @given(collection_and_index())
    @settings(max_examples=200)
    def test_member_proof_verifies(self, case):
        """
        PROPERTY: Every member's proof verifies against the root.
        """
        collection, index = case
        proof = build_merkle_proof(collection, index)
        assert proof.verify_for_commit(collection[index - 1], merkle_root(collection))

    @given(st.lists(payload, min_size=1, max_size=20), st.data())
    @settings(max_examples=100)
    def test_mixed_payloads_verify(self, collection, data):
        """
        PROPERTY: Integer and string leaves both verify.
        """
        index = data.draw(st.integers(min_value=1, max_value=len(collection)))
        proof = build_merkle_proof(collection, index)
        assert proof.verify_for_commit(collection[index - 1], merkle_root(collection))

    @given(collection_and_index(sizes=st.integers(min_value=2, max_value=40)), st.data())
    @settings(max_examples=200)
    def test_other_payload_rejected(self, case, data):
        """
        PROPERTY: A proof does not verify a different member's payload.
        """
        collection, index = case
        other = data.draw(st.integers(min_value=1, max_value=len(collection)))
        assume(other != index)
        proof = build_merkle_proof(collection, index)
        assert not proof.verify_for_commit(collection[other - 1], merkle_root(collection))

    @given(collection_and_index(sizes=st.integers(min_value=2, max_value=40)), st.data())
    @settings(max_examples=200)
    def test_tampered_sibling_rejected(self, case, data):
        """
        PROPERTY: Changing any sibling hash breaks verification.
        """
        collection, index = case
        proof = build_merkle_proof(collection, index)
        step = data.draw(st.integers(min_value=0, max_value=len(proof) - 1))
        path = list(proof.path)
        sibling, side = path[step]
        path[step] = (hash_of(b"tamper" + sibling), side)
        assert not MerkleProof(tuple(path)).verify_for_commit(collection[index - 1], merkle_root(collection))

    @given(collection_and_index(sizes=power_of_two_sizes), st.data())
    @settings(max_examples=200)
    def test_swapped_side_rejected(self, case, data):
        """
        PROPERTY: Flipping a side tag breaks verification when no node in the
        tree is paired with itself.
        """
        collection, index = case
        proof = build_merkle_proof(collection, index)
        step = data.draw(st.integers(min_value=0, max_value=len(proof) - 1))
        path = list(proof.path)
        sibling, side = path[step]
        flipped = MerkleSide.RIGHT if side == MerkleSide.LEFT else MerkleSide.LEFT
        path[step] = (sibling, flipped)
        assert not MerkleProof(tuple(path)).verify_for_commit(collection[index - 1], merkle_root(collection))

    @given(collection_and_index(), st.binary(min_size=32, max_size=32))
    @settings(max_examples=100)
    def test_foreign_commitment_rejected(self, case, commitment):
        """
        PROPERTY: A proof only verifies against its own root.
        """
        collection, index = case
        assume(commitment != merkle_root(collection))
        proof = build_merkle_proof(collection, index)
        assert not proof.verify_for_commit(collection[index - 1], commitment)

    @given(st.integers(min_value=0, max_value=2**64 - 1), st.text(min_size=1, max_size=8))
    @settings(max_examples=100)
    def test_int_member_rejects_raw_bytes_lookalike(self, member, other):
        """
        PROPERTY: A proof for an integer member does not verify the bytes or
        string spelling of that integer.
        """
        collection = [member, other]
        proof = build_merkle_proof(collection, 1)
        root = merkle_root(collection)
        raw = member.to_bytes(8, "little")
        assert not proof.verify_for_commit(raw, root)
        assert not proof.verify_for_commit(raw.decode("latin-1"), root)

    @given(st.lists(st.text(min_size=1, max_size=4), min_size=2, max_size=6, unique=True), st.data())
    @settings(max_examples=100)
    def test_regrouped_tuple_rejected(self, parts, data):
        """
        PROPERTY: Re-splitting a tuple member's strings does not verify.
        """
        member = (parts[0] + parts[1],) + tuple(parts[2:])
        regrouped = (parts[0], parts[1]) + tuple(parts[2:])
        proof = build_merkle_proof([member], 1)
        assert not proof.verify_for_commit(regrouped, merkle_root([member]))


class TestMerkleProofExamples:
    """Explicit verification outcomes."""

    def test_unencodable_payload_is_rejected_not_raised(self):
        proof = build_merkle_proof([1, 2], 1)
        root = merkle_root([1, 2])
        assert proof.verify_for_commit(1.0, root) is False
        assert proof.verify_for_commit(None, root) is False
        assert proof.verify_for_commit(-1, root) is False
        assert proof.verify_for_commit(True, root) is False
