# src/streamplan/core/graph/models.py
"""Types for the pipeline graph model.

Leaf module: no intra-package imports beyond contracts.

Each transform node carries exactly one spec variant. The variant IS the
node's kind, so a node's kind and payload can never disagree:

- ReadSpec: source of a collection (bounded or unbounded)
- ParDoSpec: opaque per-element function, never called during translation
- WindowIntoSpec: windowing assignment
- GroupByKeySpec: group by key and window
- WriteSpec: sink
- CompositeSpec: named group of primitive parts, expanded before translation
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, ClassVar

from streamplan.contracts.enums import TransformKind
from streamplan.contracts.errors import GraphValidationError
from streamplan.contracts.io import SinkProtocol, SourceProtocol
from streamplan.contracts.types import CollectionID, NodeID
from streamplan.contracts.windowing import WindowingStrategy

if TYPE_CHECKING:
    from streamplan.core.graph.graph import PipelineGraph

MAIN_TAG = "main"


def function_name(fn: Callable[..., Any]) -> str:
    """Qualified name of a user function, used for descriptions only."""
    module = getattr(fn, "__module__", None) or "<unknown>"
    qualname = getattr(fn, "__qualname__", None) or type(fn).__qualname__
    return f"{module}.{qualname}"


@dataclass(frozen=True, slots=True)
class ReadSpec:
    """Read elements from a source."""

    source: SourceProtocol

    kind: ClassVar[TransformKind] = TransformKind.SOURCE


@dataclass(frozen=True, slots=True)
class ParDoSpec:
    """Apply an opaque per-element function.

    The function is data carried on the node: the translator hands it to the
    engine untouched and never calls it.

    Attributes:
        fn: Callable receiving one element and returning an iterable of outputs
            (or None for no output)
        output_tags: Output tags; the first is the main output
    """

    fn: Callable[[Any], Any]
    output_tags: tuple[str, ...] = (MAIN_TAG,)

    kind: ClassVar[TransformKind] = TransformKind.PAR_DO

    @property
    def fn_name(self) -> str:
        return function_name(self.fn)


@dataclass(frozen=True, slots=True)
class WindowIntoSpec:
    """Assign elements to windows per ``windowing``."""

    windowing: WindowingStrategy

    kind: ClassVar[TransformKind] = TransformKind.WINDOW_INTO


@dataclass(frozen=True, slots=True)
class GroupByKeySpec:
    """Group ``(key, value)`` elements by key and window."""

    kind: ClassVar[TransformKind] = TransformKind.GROUP_BY_KEY


@dataclass(frozen=True, slots=True)
class WriteSpec:
    """Write elements to a sink.

    Attributes:
        sink: Destination
        num_shards: Fixed shard count, or None to let the engine decide
        windowed_writes: Finalize output per window instead of once at the end
    """

    sink: SinkProtocol
    num_shards: int | None = None
    windowed_writes: bool = False

    kind: ClassVar[TransformKind] = TransformKind.SINK

    def __post_init__(self) -> None:
        if self.num_shards is not None and self.num_shards <= 0:
            raise GraphValidationError(f"num_shards must be positive, got {self.num_shards}")


@dataclass(frozen=True, slots=True)
class CompositeSpec:
    """A composite transform and the graph fragment of its parts.

    Parts may consume collections produced outside the fragment (the
    composite's inputs); the composite's outputs are produced by parts.
    """

    parts: PipelineGraph

    kind: ClassVar[TransformKind] = TransformKind.COMPOSITE


type TransformSpec = ReadSpec | ParDoSpec | WindowIntoSpec | GroupByKeySpec | WriteSpec | CompositeSpec


@dataclass(frozen=True, slots=True)
class CollectionInfo:
    """A logical collection flowing between transforms (a graph edge).

    Frozen after construction: boundedness and windowing are set exactly once.
    """

    collection_id: CollectionID
    producer: NodeID
    tag: str
    bounded: bool
    windowing: WindowingStrategy

    def describe(self) -> dict[str, Any]:
        return {
            "collection_id": self.collection_id,
            "producer": self.producer,
            "tag": self.tag,
            "bounded": self.bounded,
            "windowing": self.windowing.describe(),
        }


@dataclass(frozen=True, slots=True)
class NodeInfo:
    """A transform application in the pipeline graph.

    Attributes:
        node_id: Unique full hierarchical name (e.g., 'Counts/Group')
        spec: Kind-specific payload
        inputs: Consumed collections, in order
        outputs: Produced collections, in order of the producer's tags
    """

    node_id: NodeID
    spec: TransformSpec
    inputs: tuple[CollectionID, ...] = ()
    outputs: tuple[CollectionID, ...] = ()

    @property
    def kind(self) -> TransformKind:
        return self.spec.kind

    @property
    def is_primitive(self) -> bool:
        return self.kind != TransformKind.COMPOSITE
