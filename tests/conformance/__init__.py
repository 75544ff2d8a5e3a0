"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the token ledger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. issuance_conservation.py - Issuance equals the sum of account totals
2. batch_atomicity.py - Transfer batches are all-or-nothing
3. dust_floor.py - No surviving account holds less than the existential deposit
4. patronage_accrual.py - Lazy accrual is monotone and loses nothing on rate change
5. merkle_proofs.py - Proofs verify exactly for committed members

These tests use hypothesis for property-based testing.
"""
