"""Clock abstraction for job timing and status polling.

Job durations and cluster polling go through a Clock so tests can run
polling loops and timeouts without real sleeps.

Production code uses SystemClock (the default).
Tests inject MockClock, whose sleep() just advances its time.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract clock for durations, timeouts and polling delays.

    Implementations:
    - SystemClock: Uses time.monotonic() and time.sleep() (production)
    - MockClock: Returns controllable times (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds.

        Must be monotonic (never goes backwards), suitable for elapsed
        time calculations and timeouts.
        """
        ...

    def sleep(self, seconds: float) -> None:
        """Block for ``seconds`` (or pretend to)."""
        ...


class SystemClock:
    """Production clock using the system monotonic clock."""

    def monotonic(self) -> float:
        return time.monotonic()

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(start=0.0)
        client = ClusterClient(options, clock=clock)
        result = client.await_result(handle, timeout=5.0)
        assert clock.sleeps == [1.0, 1.0]
    """

    def __init__(self, start: float = 0.0) -> None:
        self._current = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self._current

    def sleep(self, seconds: float) -> None:
        """Record the delay and advance time by it, without blocking."""
        self.sleeps.append(seconds)
        self.advance(seconds)

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
