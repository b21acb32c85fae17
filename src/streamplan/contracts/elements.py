# src/streamplan/contracts/elements.py
"""Element wrappers exchanged between engine operators and user functions."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from streamplan.contracts.enums import PaneTiming
from streamplan.contracts.windowing import GLOBAL_WINDOW, MIN_TIMESTAMP, BoundedWindow


@dataclass(frozen=True, slots=True)
class TimestampedValue:
    """A value paired with its event timestamp (milliseconds).

    Sources yield these; a per-element function may also return one to
    re-timestamp its output.
    """

    value: Any
    timestamp: int


@dataclass(frozen=True, slots=True)
class TaggedOutput:
    """Route a per-element function's output to an additional output tag."""

    tag: str
    value: Any


@dataclass(frozen=True, slots=True)
class PaneInfo:
    """Describes which firing of a window produced a grouped element."""

    timing: PaneTiming
    index: int
    is_first: bool
    is_last: bool


NO_FIRING = PaneInfo(timing=PaneTiming.UNKNOWN, index=0, is_first=True, is_last=True)


@dataclass(frozen=True, slots=True)
class WindowedValue:
    """A value in flight inside the engine: timestamp, windows and pane."""

    value: Any
    timestamp: int = MIN_TIMESTAMP
    windows: tuple[BoundedWindow, ...] = (GLOBAL_WINDOW,)
    pane: PaneInfo = NO_FIRING

    def with_value(self, value: Any) -> WindowedValue:
        return replace(self, value=value)

    def explode(self) -> list[WindowedValue]:
        """One WindowedValue per window this value belongs to."""
        return [replace(self, windows=(window,)) for window in self.windows]
