"""
Integration Tests Package

End-to-end tests through the dispatcher and engine.

TEST AXIOMS:
=============
1. Determinism: same calls in the same order = identical state root
2. Atomicity: a failed call leaves no storage change and no event
3. Explicit failure: every error is a typed ErrorCode, never a silent fallback
"""
