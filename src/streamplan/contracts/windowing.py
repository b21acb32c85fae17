# src/streamplan/contracts/windowing.py
"""Windowing strategies, window functions and triggers.

Event time is measured in integer milliseconds. A collection's
WindowingStrategy is fixed when the collection is created: all types here
are frozen, so a strategy cannot be changed after construction.

Window functions:
- GlobalWindows: a single implicit window spanning all of event time
- FixedWindows: non-overlapping windows of a fixed size
- SlidingWindows: overlapping windows of a fixed size, one starting every period
- Sessions: per-element proto-windows that merge when closer than the gap

Triggers:
- DefaultTrigger: fire once when the watermark passes the end of the window,
  then once per late element that is still within allowed lateness
- AfterCount: fire every ``count`` elements, flushing the remainder when
  the window closes
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, ClassVar

from streamplan.contracts.enums import AccumulationMode, WindowKind

MIN_TIMESTAMP = -(2**63) // 1000
MAX_TIMESTAMP = (2**63 - 1) // 1000

# The global window closes one day before the end of time so that its
# end-of-window firing can still be timestamped.
GLOBAL_WINDOW_MAX_TIMESTAMP = MAX_TIMESTAMP - 86_400_000


def duration_ms(duration: timedelta) -> int:
    """Convert a timedelta to whole milliseconds (truncating)."""
    return duration // timedelta(milliseconds=1)


# =============================================================================
# Windows
# =============================================================================


@dataclass(frozen=True, slots=True, order=True)
class IntervalWindow:
    """Half-open event-time interval ``[start, end)``."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise ValueError(f"IntervalWindow end ({self.end}) must be after start ({self.start})")

    @property
    def max_timestamp(self) -> int:
        """Largest timestamp that still belongs to this window."""
        return self.end - 1

    def intersects(self, other: IntervalWindow) -> bool:
        return self.start < other.end and other.start < self.end

    def span(self, other: IntervalWindow) -> IntervalWindow:
        """Smallest window covering both windows."""
        return IntervalWindow(min(self.start, other.start), max(self.end, other.end))

    def describe(self) -> str:
        return f"[{self.start},{self.end})"


@dataclass(frozen=True, slots=True)
class GlobalWindow:
    """The single window of the GlobalWindows function."""

    @property
    def start(self) -> int:
        return MIN_TIMESTAMP

    @property
    def end(self) -> int:
        return GLOBAL_WINDOW_MAX_TIMESTAMP + 1

    @property
    def max_timestamp(self) -> int:
        return GLOBAL_WINDOW_MAX_TIMESTAMP

    def describe(self) -> str:
        return "global"


GLOBAL_WINDOW = GlobalWindow()

type BoundedWindow = IntervalWindow | GlobalWindow


# =============================================================================
# Window functions
# =============================================================================


@dataclass(frozen=True, slots=True)
class GlobalWindows:
    """Every element belongs to the single global window."""

    kind: ClassVar[WindowKind] = WindowKind.GLOBAL
    is_merging: ClassVar[bool] = False

    def assign(self, timestamp: int) -> tuple[BoundedWindow, ...]:
        return (GLOBAL_WINDOW,)

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind.value}


@dataclass(frozen=True, slots=True)
class FixedWindows:
    """Non-overlapping windows of ``size``, aligned to ``offset``."""

    size: timedelta
    offset: timedelta = timedelta(0)

    kind: ClassVar[WindowKind] = WindowKind.FIXED
    is_merging: ClassVar[bool] = False

    def __post_init__(self) -> None:
        if self.size <= timedelta(0):
            raise ValueError(f"FixedWindows size must be positive, got {self.size}")
        if not timedelta(0) <= self.offset < self.size:
            raise ValueError(f"FixedWindows offset must be in [0, size), got {self.offset}")

    def assign(self, timestamp: int) -> tuple[BoundedWindow, ...]:
        size = duration_ms(self.size)
        start = timestamp - (timestamp - duration_ms(self.offset)) % size
        return (IntervalWindow(start, start + size),)

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "size_ms": duration_ms(self.size),
            "offset_ms": duration_ms(self.offset),
        }


@dataclass(frozen=True, slots=True)
class SlidingWindows:
    """Windows of ``size`` starting every ``period``; an element may fall in several."""

    size: timedelta
    period: timedelta
    offset: timedelta = timedelta(0)

    kind: ClassVar[WindowKind] = WindowKind.SLIDING
    is_merging: ClassVar[bool] = False

    def __post_init__(self) -> None:
        if self.size <= timedelta(0):
            raise ValueError(f"SlidingWindows size must be positive, got {self.size}")
        if self.period <= timedelta(0):
            raise ValueError(f"SlidingWindows period must be positive, got {self.period}")
        if not timedelta(0) <= self.offset < self.period:
            raise ValueError(f"SlidingWindows offset must be in [0, period), got {self.offset}")

    def assign(self, timestamp: int) -> tuple[BoundedWindow, ...]:
        size = duration_ms(self.size)
        period = duration_ms(self.period)
        last_start = timestamp - (timestamp - duration_ms(self.offset)) % period
        windows: list[BoundedWindow] = []
        start = last_start
        while start > timestamp - size:
            windows.append(IntervalWindow(start, start + size))
            start -= period
        windows.reverse()
        return tuple(windows)

    def describe(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "size_ms": duration_ms(self.size),
            "period_ms": duration_ms(self.period),
            "offset_ms": duration_ms(self.offset),
        }


@dataclass(frozen=True, slots=True)
class Sessions:
    """Session windows: activity bursts separated by at least ``gap``.

    Each element starts a proto-session ``[t, t + gap)``; overlapping
    proto-sessions of the same key are merged when grouped.
    """

    gap: timedelta

    kind: ClassVar[WindowKind] = WindowKind.SESSIONS
    is_merging: ClassVar[bool] = True

    def __post_init__(self) -> None:
        if self.gap <= timedelta(0):
            raise ValueError(f"Sessions gap must be positive, got {self.gap}")

    def assign(self, timestamp: int) -> tuple[BoundedWindow, ...]:
        return (IntervalWindow(timestamp, timestamp + duration_ms(self.gap)),)

    def merge(self, windows: Iterable[IntervalWindow]) -> list[tuple[IntervalWindow, list[IntervalWindow]]]:
        """Merge overlapping windows.

        Returns:
            (merged window, windows it absorbed) pairs, ordered by start.
        """
        merged: list[tuple[IntervalWindow, list[IntervalWindow]]] = []
        for window in sorted(set(windows)):
            if merged and merged[-1][0].intersects(window):
                current, members = merged[-1]
                merged[-1] = (current.span(window), [*members, window])
            else:
                merged.append((window, [window]))
        return merged

    def describe(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "gap_ms": duration_ms(self.gap)}


type WindowFn = GlobalWindows | FixedWindows | SlidingWindows | Sessions


# =============================================================================
# Triggers
# =============================================================================


@dataclass(frozen=True, slots=True)
class DefaultTrigger:
    """Fire when the watermark passes the end of the window."""

    def describe(self) -> dict[str, Any]:
        return {"trigger": "default"}


@dataclass(frozen=True, slots=True)
class AfterCount:
    """Fire every ``count`` elements; the remainder fires when the window closes."""

    count: int

    def __post_init__(self) -> None:
        if self.count <= 0:
            raise ValueError(f"AfterCount count must be positive, got {self.count}")

    def describe(self) -> dict[str, Any]:
        return {"trigger": "after_count", "count": self.count}


type Trigger = DefaultTrigger | AfterCount


# =============================================================================
# Strategy
# =============================================================================


@dataclass(frozen=True, slots=True)
class WindowingStrategy:
    """Windowing policy of a collection.

    Frozen after construction: a collection's strategy is set exactly once.
    """

    window_fn: WindowFn = GlobalWindows()
    trigger: Trigger = DefaultTrigger()
    allowed_lateness: timedelta = timedelta(0)
    accumulation_mode: AccumulationMode = AccumulationMode.DISCARDING

    def __post_init__(self) -> None:
        if self.allowed_lateness < timedelta(0):
            raise ValueError(f"allowed_lateness must not be negative, got {self.allowed_lateness}")

    @property
    def kind(self) -> WindowKind:
        return self.window_fn.kind

    @property
    def allowed_lateness_ms(self) -> int:
        return duration_ms(self.allowed_lateness)

    @property
    def is_global_default(self) -> bool:
        """Global window with the default trigger (never fires on unbounded input)."""
        return isinstance(self.window_fn, GlobalWindows) and isinstance(self.trigger, DefaultTrigger)

    def describe(self) -> dict[str, Any]:
        return {
            "window_fn": self.window_fn.describe(),
            "trigger": self.trigger.describe(),
            "allowed_lateness_ms": self.allowed_lateness_ms,
            "accumulation_mode": self.accumulation_mode.value,
        }
