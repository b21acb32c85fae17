# src/streamplan/contracts/io.py
"""Source and sink protocols.

Concrete connectors live outside the translation core. The translator only
carries these objects on graph nodes; the engine is the one that reads from
sources and writes to sinks.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from streamplan.contracts.elements import TimestampedValue
from streamplan.contracts.windowing import BoundedWindow


@runtime_checkable
class SourceProtocol(Protocol):
    """A readable source of timestamped elements.

    Attributes:
        is_bounded: True if the source has a known finite end
    """

    is_bounded: bool

    def read(self) -> Iterator[TimestampedValue]:
        """Yield elements in arrival order. Unbounded sources may never stop."""
        ...

    def describe(self) -> dict[str, Any]:
        """Structural description used in plan fingerprints (no data)."""
        ...


@dataclass(frozen=True, slots=True)
class ShardInfo:
    """Identifies one output shard being finalized.

    Attributes:
        window: Window whose contents are written (global for unwindowed writes)
        pane_index: Firing of the window (0 for the on-time pane, then late panes)
        shard_index: Zero-based shard number
        num_shards: Total number of shards for this window and pane
    """

    window: BoundedWindow
    pane_index: int
    shard_index: int
    num_shards: int


@runtime_checkable
class SinkProtocol(Protocol):
    """A destination that materializes finalized shards."""

    def write_shard(self, shard: ShardInfo, values: list[Any]) -> str:
        """Materialize one shard and return its destination (e.g., file path)."""
        ...

    def describe(self) -> dict[str, Any]:
        """Structural description used in plan fingerprints (no data)."""
        ...
