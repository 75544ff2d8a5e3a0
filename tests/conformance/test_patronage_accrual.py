"""
Patronage Accrual Conformance Tests

INVARIANT: Outstanding credit is tally + rate * (block - last_update).

    ∀ b1 <= b2: credit(b1) <= credit(b2)                       (monotone)
    set_new_rate_at_block(r, b) ⟹ credit(b) unchanged           (no loss at boundary)
    reset_tally_at_block(b)     ⟹ credit(b) == 0

Accrual is lazy: nothing is written between checkpoints.
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from tokenledger import PatronageState, Balance, MAX_BALANCE


rates = st.integers(min_value=0, max_value=10**6)
blocks = st.integers(min_value=0, max_value=10**9)


class TestPatronageAccrualProperties:
    """Property-based patronage accrual tests."""

    @given(rates, blocks, blocks, blocks)
    @settings(max_examples=200)
    def test_monotone_in_block(self, rate, start, b1, b2):
        """
        PROPERTY: Credit never decreases as the block advances.
        """
        lo, hi = sorted((b1, b2))
        state = PatronageState(rate=Balance(rate), last_update=start)
        assert state.outstanding_credit(lo) <= state.outstanding_credit(hi)

    @given(rates, rates, st.integers(min_value=0, max_value=1000), st.integers(min_value=0, max_value=1000))
    @settings(max_examples=200)
    def test_rate_change_keeps_accrued_credit(self, old_rate, new_rate, elapsed, later):
        """
        PROPERTY: A rate change preserves credit at the change block and
        accrues only the new rate afterwards.
        """
        state = PatronageState(rate=Balance(old_rate), last_update=0)
        before = state.outstanding_credit(elapsed)
        state.set_new_rate_at_block(Balance(new_rate), elapsed)

        assert state.outstanding_credit(elapsed) == before
        assert state.outstanding_credit(elapsed + later) == Balance(old_rate * elapsed + new_rate * later)

    @given(rates, st.integers(min_value=0, max_value=1000), st.integers(min_value=0, max_value=1000))
    @settings(max_examples=100)
    def test_reset_zeroes_credit(self, rate, elapsed, later):
        """
        PROPERTY: After a reset, credit restarts from zero at the reset block.
        """
        state = PatronageState(rate=Balance(rate), last_update=0)
        state.reset_tally_at_block(elapsed)
        assert state.outstanding_credit(elapsed).is_zero()
        assert state.outstanding_credit(elapsed + later) == Balance(rate * later)

    @given(rates, blocks)
    @settings(max_examples=50)
    def test_pure_query(self, rate, block):
        """
        PROPERTY: Querying credit writes nothing.
        """
        state = PatronageState(rate=Balance(rate), last_update=0)
        state.outstanding_credit(block)
        assert state == PatronageState(rate=Balance(rate), last_update=0)


class TestPatronageAccrualExamples:
    """Explicit accrual examples."""

    def test_saturates_at_max(self):
        state = PatronageState(rate=Balance.max_value(), last_update=0)
        assert state.outstanding_credit(10) == Balance(MAX_BALANCE)

    def test_regressed_block_accrues_nothing(self):
        state = PatronageState(rate=Balance(7), tally=Balance(3), last_update=50)
        assert state.outstanding_credit(40) == Balance(3)
