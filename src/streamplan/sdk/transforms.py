# src/streamplan/sdk/transforms.py
"""Primitive and composite transforms."""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterable, Sequence
from datetime import timedelta
from pathlib import Path
from typing import Any

from streamplan.contracts.enums import AccumulationMode
from streamplan.contracts.io import SinkProtocol, SourceProtocol
from streamplan.contracts.windowing import DefaultTrigger, Trigger, WindowFn, WindowingStrategy
from streamplan.core.graph.models import (
    MAIN_TAG,
    GroupByKeySpec,
    ParDoSpec,
    ReadSpec,
    TransformSpec,
    WindowIntoSpec,
    WriteSpec,
)
from streamplan.sdk.io import CreateSource, SequenceSource, TextSink
from streamplan.sdk.pipeline import PCollection, PrimitiveTransform, PTransform, PValue


def _require_input(transform: PTransform, pcoll: PCollection | None) -> PCollection:
    if pcoll is None:
        raise TypeError(f"{type(transform).__name__} must be applied to a PCollection")
    return pcoll


# =============================================================================
# Sources
# =============================================================================


class Read(PrimitiveTransform):
    """Read from any SourceProtocol implementation."""

    def __init__(self, source: SourceProtocol, label: str | None = None) -> None:
        super().__init__(label)
        self.source = source

    def to_spec(self) -> TransformSpec:
        return ReadSpec(self.source)

    def output_collections(self, pcoll: PCollection | None) -> list[tuple[str, bool, WindowingStrategy]]:
        if pcoll is not None:
            raise TypeError(f"{type(self).__name__} is a source and takes no input")
        return [(MAIN_TAG, self.source.is_bounded, WindowingStrategy())]


class GenerateSequence(Read):
    """Integers from ``start``; unbounded when ``stop`` is None or a ``rate`` is set."""

    def __init__(
        self,
        start: int = 0,
        stop: int | None = None,
        rate: float | None = None,
        timestamp_fn: Callable[[int], int] | None = None,
        label: str | None = None,
    ) -> None:
        super().__init__(SequenceSource(start, stop, rate=rate, timestamp_fn=timestamp_fn), label)


class Create(Read):
    """A bounded collection of in-memory values."""

    def __init__(self, values: Iterable[Any], timestamps: Sequence[int] | None = None, label: str | None = None) -> None:
        super().__init__(CreateSource(values, timestamps), label)


# =============================================================================
# Per-element
# =============================================================================


class ParDo(PrimitiveTransform):
    """Apply ``fn`` to every element.

    ``fn`` returns an iterable of outputs (or None). Outputs wrapped in
    TaggedOutput go to one of the additional ``output_tags``; applying a
    ParDo with additional tags returns a dict of PCollections by tag.
    """

    def __init__(self, fn: Callable[[Any], Any], output_tags: Sequence[str] = (), label: str | None = None) -> None:
        super().__init__(label)
        if MAIN_TAG in output_tags:
            raise ValueError(f"'{MAIN_TAG}' is the implicit main tag and cannot be declared")
        if len(set(output_tags)) != len(output_tags):
            raise ValueError(f"Duplicate output tags: {list(output_tags)}")
        self.fn = fn
        self.output_tags = (MAIN_TAG, *output_tags)

    def to_spec(self) -> TransformSpec:
        return ParDoSpec(self.fn, self.output_tags)

    def output_collections(self, pcoll: PCollection | None) -> list[tuple[str, bool, WindowingStrategy]]:
        source = _require_input(self, pcoll)
        return [(tag, source.bounded, source.windowing) for tag in self.output_tags]


class _MapFn:
    """Adapts a one-to-one function to ParDo; keeps the wrapped function's name."""

    def __init__(self, fn: Callable[[Any], Any]) -> None:
        self.fn = fn
        functools.update_wrapper(self, fn)

    def __call__(self, element: Any) -> tuple[Any]:
        return (self.fn(element),)


class Map(ParDo):
    def __init__(self, fn: Callable[[Any], Any], label: str | None = None) -> None:
        super().__init__(_MapFn(fn), label=label)


class FlatMap(ParDo):
    def __init__(self, fn: Callable[[Any], Iterable[Any] | None], label: str | None = None) -> None:
        super().__init__(fn, label=label)


# =============================================================================
# Windowing and grouping
# =============================================================================


class WindowInto(PrimitiveTransform):
    def __init__(
        self,
        window_fn: WindowFn,
        trigger: Trigger = DefaultTrigger(),
        allowed_lateness: timedelta = timedelta(0),
        accumulation_mode: AccumulationMode = AccumulationMode.DISCARDING,
        label: str | None = None,
    ) -> None:
        super().__init__(label)
        self.windowing = WindowingStrategy(
            window_fn=window_fn,
            trigger=trigger,
            allowed_lateness=allowed_lateness,
            accumulation_mode=accumulation_mode,
        )

    def to_spec(self) -> TransformSpec:
        return WindowIntoSpec(self.windowing)

    def output_collections(self, pcoll: PCollection | None) -> list[tuple[str, bool, WindowingStrategy]]:
        return [(MAIN_TAG, _require_input(self, pcoll).bounded, self.windowing)]


class GroupByKey(PrimitiveTransform):
    """Group ``(key, value)`` pairs into ``(key, [values])`` per key and window."""

    def to_spec(self) -> TransformSpec:
        return GroupByKeySpec()

    def output_collections(self, pcoll: PCollection | None) -> list[tuple[str, bool, WindowingStrategy]]:
        source = _require_input(self, pcoll)
        return [(MAIN_TAG, source.bounded, source.windowing)]


# =============================================================================
# Sinks
# =============================================================================


class Write(PrimitiveTransform):
    """Write to any SinkProtocol implementation. Produces no collection."""

    def __init__(
        self,
        sink: SinkProtocol,
        num_shards: int | None = None,
        windowed_writes: bool = False,
        label: str | None = None,
    ) -> None:
        super().__init__(label)
        self.sink = sink
        self.num_shards = num_shards
        self.windowed_writes = windowed_writes

    def to_spec(self) -> TransformSpec:
        return WriteSpec(self.sink, num_shards=self.num_shards, windowed_writes=self.windowed_writes)

    def output_collections(self, pcoll: PCollection | None) -> list[tuple[str, bool, WindowingStrategy]]:
        _require_input(self, pcoll)
        return []


class WriteToText(Write):
    def __init__(
        self,
        path: str | Path,
        num_shards: int | None = None,
        windowed_writes: bool = False,
        label: str | None = None,
    ) -> None:
        super().__init__(TextSink(path), num_shards=num_shards, windowed_writes=windowed_writes, label=label)


# =============================================================================
# Composites
# =============================================================================


def _pair_with_one(element: Any) -> tuple[Any, int]:
    return (element, 1)


def _sum_values(group: tuple[Any, list[Any]]) -> tuple[Any, Any]:
    key, values = group
    return (key, sum(values))


class SumPerKey(PTransform):
    """``(key, number)`` pairs to ``(key, total)`` per key and window."""

    def expand(self, pcoll: PCollection | None) -> PValue:
        source = _require_input(self, pcoll)
        return source | ("Group" >> GroupByKey()) | ("Sum" >> Map(_sum_values))


class CountPerElement(PTransform):
    """Elements to ``(element, count)`` per window."""

    def expand(self, pcoll: PCollection | None) -> PValue:
        source = _require_input(self, pcoll)
        return source | ("PairWithOne" >> Map(_pair_with_one)) | ("Count" >> SumPerKey())
