# tests/property/settings.py
"""Standardized Hypothesis settings profiles for property tests.

Usage:
    from tests.property.settings import STANDARD_SETTINGS

    @given(names=span_name_lists)
    @STANDARD_SETTINGS
    def test_something(names):
        ...

Tiers:
- STANDARD_SETTINGS: 100 examples - Regular property tests
- SLOW_SETTINGS: 50 examples - compression-heavy tests
- QUICK_SETTINGS: 20 examples - simple input rejection
"""

from hypothesis import settings

STANDARD_SETTINGS = settings(max_examples=100)

# gzip round trips per example; fewer examples
SLOW_SETTINGS = settings(max_examples=50)

QUICK_SETTINGS = settings(max_examples=20)
