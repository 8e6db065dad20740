# tests/property/settings.py
"""Standardized Hypothesis settings profiles for property tests.

Provides consistent test intensity across all property test modules.
Import these instead of using inline @settings(max_examples=...).

Usage:
    from tests.property.settings import STANDARD_SETTINGS

    @given(sizes=batch_sizes)
    @STANDARD_SETTINGS
    def test_something(sizes):
        ...

Tiers:
- DETERMINISM_SETTINGS: 500 examples - handle() and pattern compilation must be pure
- STANDARD_SETTINGS: 100 examples - Regular property tests
- QUICK_SETTINGS: 20 examples - Fast validation tests (simple rejection)
"""

from hypothesis import settings

# Same input must always produce the same plan
DETERMINISM_SETTINGS = settings(max_examples=500)

# Standard property tests - good balance of coverage and speed
STANDARD_SETTINGS = settings(max_examples=100)

# Quick validation tests - simple input rejection
QUICK_SETTINGS = settings(max_examples=20)
