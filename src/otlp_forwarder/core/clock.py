"""Clock abstraction for testable cache expiry.

The collector registry decides whether its snapshot is stale by comparing
clock readings. Production code uses SystemClock (the default). Tests inject
MockClock to move time forward without sleeping.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract monotonic clock.

    Implementations:
    - SystemClock: Uses time.monotonic() (production)
    - MockClock: Returns controllable times (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds."""
        ...


class SystemClock:
    """Production clock using time.monotonic()."""

    def monotonic(self) -> float:
        return time.monotonic()


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        registry = CollectorRegistry(cache_ttl_seconds=300, clock=clock)

        await registry.ensure_fresh(source)  # fetches
        clock.advance(299)
        await registry.ensure_fresh(source)  # cached
        clock.advance(2)
        await registry.ensure_fresh(source)  # fetches again
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start

    def monotonic(self) -> float:
        return self._current

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
