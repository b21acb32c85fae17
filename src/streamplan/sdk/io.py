# src/streamplan/sdk/io.py
"""Reference connectors: generated sequences, in-memory values and text files."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from pathlib import Path
from typing import Any

from streamplan.contracts.elements import TimestampedValue
from streamplan.contracts.io import ShardInfo
from streamplan.contracts.windowing import MIN_TIMESTAMP, GlobalWindow
from streamplan.core.graph.models import function_name


class SequenceSource:
    """Integers from ``start``, up to ``stop`` (exclusive) or forever.

    Unbounded when ``stop`` is None or a ``rate`` is given. Element i is
    stamped ``i * 1000 / rate`` ms (``i`` ms without a rate) unless
    ``timestamp_fn`` maps the value to a timestamp.
    """

    def __init__(
        self,
        start: int = 0,
        stop: int | None = None,
        *,
        rate: float | None = None,
        timestamp_fn: Callable[[int], int] | None = None,
    ) -> None:
        if stop is not None and stop < start:
            raise ValueError(f"stop ({stop}) must not be smaller than start ({start})")
        if rate is not None and rate <= 0:
            raise ValueError(f"rate must be positive, got {rate}")
        self.start = start
        self.stop = stop
        self.rate = rate
        self.timestamp_fn = timestamp_fn

    @property
    def is_bounded(self) -> bool:
        return self.stop is not None and self.rate is None

    def _timestamp(self, index: int, value: int) -> int:
        if self.timestamp_fn is not None:
            return self.timestamp_fn(value)
        if self.rate is not None:
            return int(index * 1000 / self.rate)
        return index

    def read(self) -> Iterator[TimestampedValue]:
        index = 0
        value = self.start
        while self.stop is None or value < self.stop:
            yield TimestampedValue(value, self._timestamp(index, value))
            index += 1
            value += 1

    def describe(self) -> dict[str, Any]:
        return {
            "source": "sequence",
            "start": self.start,
            "stop": self.stop,
            "rate": self.rate,
            "timestamp_fn": function_name(self.timestamp_fn) if self.timestamp_fn is not None else None,
        }


class CreateSource:
    """A bounded, in-memory list of values.

    Values are stamped MIN_TIMESTAMP unless ``timestamps`` gives one per value.
    """

    is_bounded = True

    def __init__(self, values: Iterable[Any], timestamps: Sequence[int] | None = None) -> None:
        self.values = list(values)
        if timestamps is not None and len(timestamps) != len(self.values):
            raise ValueError(f"Got {len(timestamps)} timestamps for {len(self.values)} values")
        self.timestamps = list(timestamps) if timestamps is not None else [MIN_TIMESTAMP] * len(self.values)

    def read(self) -> Iterator[TimestampedValue]:
        for value, timestamp in zip(self.values, self.timestamps, strict=True):
            yield TimestampedValue(value, timestamp)

    def describe(self) -> dict[str, Any]:
        return {"source": "create", "count": len(self.values)}


def shard_path(prefix: str, shard: ShardInfo, suffix: str = "") -> str:
    """File name of one shard, e.g. ``out-0-3600000-pane0-00000-of-00002.txt``."""
    window = "global" if isinstance(shard.window, GlobalWindow) else f"{shard.window.start}-{shard.window.end}"
    return f"{prefix}-{window}-pane{shard.pane_index}-{shard.shard_index:05d}-of-{shard.num_shards:05d}{suffix}"


class TextSink:
    """Writes one text file per shard, one ``str(value)`` line per element."""

    def __init__(self, path_prefix: str | Path, *, suffix: str = ".txt", encoding: str = "utf-8") -> None:
        self.path_prefix = str(path_prefix)
        self.suffix = suffix
        self.encoding = encoding

    def write_shard(self, shard: ShardInfo, values: list[Any]) -> str:
        path = Path(shard_path(self.path_prefix, shard, self.suffix))
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding=self.encoding) as f:
            for value in values:
                f.write(f"{value}\n")
        return str(path)

    def describe(self) -> dict[str, Any]:
        return {"sink": "text", "path_prefix": self.path_prefix, "suffix": self.suffix}
