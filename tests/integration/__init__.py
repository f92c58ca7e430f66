"""
Integration Tests Package

End-to-end ledger scenarios across the access and store layers.

TEST AXIOMS:
=============
1. Determinism: same appends + same clock = identical ids
2. Authorization first: no unauthorized call mutates state
3. Explicit failure: no silent fallbacks
"""
