# tests/helpers.py
"""Test doubles and graph builders shared across test modules.

ListSource/ListSink implement the source and sink protocols in memory so
tests can drive the local engine and inspect finalized shards without
touching the file system.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from streamplan.contracts.elements import TimestampedValue
from streamplan.contracts.io import ShardInfo
from streamplan.contracts.windowing import FixedWindows, WindowingStrategy
from streamplan.core.graph import (
    MAIN_TAG,
    CollectionInfo,
    GroupByKeySpec,
    ParDoSpec,
    PipelineGraph,
    ReadSpec,
    WindowIntoSpec,
    WriteSpec,
)


class ListSource:
    """Source over a fixed list of (value, timestamp) pairs.

    ``bounded=False`` makes it an unbounded source that happens to end,
    which is how tests exercise streaming watermark behaviour.
    """

    def __init__(self, items: list[tuple[Any, int]], *, bounded: bool = True, name: str = "list") -> None:
        self.items = items
        self.is_bounded = bounded
        self.name = name
        self.reads = 0

    def read(self) -> Iterator[TimestampedValue]:
        self.reads += 1
        for value, timestamp in self.items:
            yield TimestampedValue(value, timestamp)

    def describe(self) -> dict[str, Any]:
        return {"source": self.name, "bounded": self.is_bounded}


@dataclass
class WrittenShard:
    shard: ShardInfo
    values: list[Any]


@dataclass
class ListSink:
    """Sink recording every finalized shard, in finalization order."""

    name: str = "list"
    shards: list[WrittenShard] = field(default_factory=list)

    def write_shard(self, shard: ShardInfo, values: list[Any]) -> str:
        self.shards.append(WrittenShard(shard, list(values)))
        return f"memory://{self.name}/{len(self.shards) - 1}"

    def describe(self) -> dict[str, Any]:
        return {"sink": self.name}

    @property
    def values(self) -> list[Any]:
        return [v for written in self.shards for v in written.values]


def identity(element: Any) -> list[Any]:
    return [element]


def fail_always(element: Any) -> list[Any]:
    raise RuntimeError("Failing here is ok.")


HOURLY = WindowingStrategy(window_fn=FixedWindows(timedelta(hours=1)))


class GraphBuilder:
    """Builds a PipelineGraph node by node with sequential collection ids.

    Example:
        b = GraphBuilder()
        src = b.read("Read", ListSource([...]))
        out = b.par_do("Double", src, fn)
        b.write("Write", out, ListSink())
        graph = b.graph
    """

    def __init__(self) -> None:
        self.graph = PipelineGraph()

    def _collection(self, node_id: str, tag: str, bounded: bool, windowing: WindowingStrategy) -> str:
        collection_id = f"{node_id}.{tag}"
        self.graph.add_collection(
            CollectionInfo(
                collection_id=collection_id,  # type: ignore[arg-type]
                producer=node_id,  # type: ignore[arg-type]
                tag=tag,
                bounded=bounded,
                windowing=windowing,
            )
        )
        return collection_id

    def info(self, collection_id: str) -> CollectionInfo:
        return self.graph.get_collection(collection_id)

    def read(self, node_id: str, source: Any, *, bounded: bool | None = None) -> str:
        is_bounded = source.is_bounded if bounded is None else bounded
        out = self._collection(node_id, MAIN_TAG, is_bounded, WindowingStrategy())
        self.graph.add_node(node_id, ReadSpec(source), outputs=(out,))
        return out

    def par_do(
        self,
        node_id: str,
        upstream: str,
        fn: Callable[[Any], Any] = identity,
        *,
        tags: tuple[str, ...] = (MAIN_TAG,),
        windowing: WindowingStrategy | None = None,
    ) -> str:
        source = self.info(upstream)
        outputs = tuple(
            self._collection(node_id, tag, source.bounded, windowing or source.windowing) for tag in tags
        )
        self.graph.add_node(node_id, ParDoSpec(fn, tags), inputs=(upstream,), outputs=outputs)
        return outputs[0]

    def window_into(
        self,
        node_id: str,
        upstream: str,
        windowing: WindowingStrategy,
        *,
        declared: WindowingStrategy | None = None,
    ) -> str:
        out = self._collection(node_id, MAIN_TAG, self.info(upstream).bounded, declared or windowing)
        self.graph.add_node(node_id, WindowIntoSpec(windowing), inputs=(upstream,), outputs=(out,))
        return out

    def group(self, node_id: str, upstream: str) -> str:
        source = self.info(upstream)
        out = self._collection(node_id, MAIN_TAG, source.bounded, source.windowing)
        self.graph.add_node(node_id, GroupByKeySpec(), inputs=(upstream,), outputs=(out,))
        return out

    def write(
        self,
        node_id: str,
        upstream: str,
        sink: Any,
        *,
        num_shards: int | None = None,
        windowed_writes: bool = False,
    ) -> None:
        self.graph.add_node(
            node_id,
            WriteSpec(sink, num_shards=num_shards, windowed_writes=windowed_writes),
            inputs=(upstream,),
        )
