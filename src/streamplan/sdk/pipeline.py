# src/streamplan/sdk/pipeline.py
"""Pipeline construction: Pipeline, PCollection and the PTransform base.

A Pipeline records transform applications into a PipelineGraph. Composite
transforms are recorded as a composite node whose parts live in their own
fragment graph; expansion into primitives happens at translation time.

Labels are full hierarchical names ("Outer/Inner/Map"). Applying two
transforms with the same label in the same scope suffixes the second one
("Map_2").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import structlog

from streamplan.contracts.errors import GraphValidationError
from streamplan.contracts.types import CollectionID, NodeID
from streamplan.contracts.windowing import WindowingStrategy
from streamplan.core.config import PipelineOptions
from streamplan.core.graph import CollectionInfo, CompositeSpec, PipelineGraph, TransformSpec
from streamplan.runner.runner import PipelineRunner

if TYPE_CHECKING:
    from streamplan.core.events import EventBusProtocol
    from streamplan.runner.job import JobResult

logger = structlog.get_logger(__name__)

type PValue = PCollection | tuple[PCollection, ...] | dict[str, PCollection] | None


@dataclass(frozen=True, slots=True, eq=False)
class PCollection:
    """Handle to a collection produced in a pipeline."""

    pipeline: Pipeline
    collection_id: CollectionID
    bounded: bool
    windowing: WindowingStrategy

    def __or__(self, transform: PTransform) -> Any:
        return self.pipeline.apply(transform, self)

    def __repr__(self) -> str:
        return f"PCollection({self.collection_id!r}, bounded={self.bounded})"


class PTransform:
    """Base class for transforms.

    Subclass and implement ``expand`` to build a composite out of other
    transforms. Use ``"Label" >> transform`` to name an application.
    """

    def __init__(self, label: str | None = None) -> None:
        self.label = label

    def default_label(self) -> str:
        return type(self).__name__

    def expand(self, pcoll: PCollection | None) -> PValue:
        raise NotImplementedError(f"{type(self).__name__} must implement expand()")

    def __rrshift__(self, label: str) -> PTransform:
        self.label = label
        return self


class PrimitiveTransform(PTransform):
    """A transform recorded as exactly one graph node."""

    def to_spec(self) -> TransformSpec:
        raise NotImplementedError

    def output_collections(self, pcoll: PCollection | None) -> list[tuple[str, bool, WindowingStrategy]]:
        """(tag, bounded, windowing) of each output, in tag order."""
        raise NotImplementedError

    def expand(self, pcoll: PCollection | None) -> PValue:
        raise TypeError(f"{type(self).__name__} is a primitive and is applied by the pipeline")


def _flatten(result: PValue) -> list[PCollection]:
    if result is None:
        return []
    if isinstance(result, PCollection):
        return [result]
    if isinstance(result, dict):
        return list(result.values())
    return list(result)


@dataclass
class _Scope:
    label: str
    graph: PipelineGraph


class Pipeline:
    """A pipeline under construction.

    Example:
        with Pipeline(PipelineOptions()) as p:
            (
                p
                | GenerateSequence(0, stop=100)
                | Map(lambda x: (x % 3, x))
                | GroupByKey()
                | WriteToText("out/groups")
            )
    """

    def __init__(self, options: PipelineOptions | None = None, *, event_bus: EventBusProtocol | None = None) -> None:
        self.options = options if options is not None else PipelineOptions()
        self.result: JobResult | None = None
        self._event_bus = event_bus
        self._scopes: list[_Scope] = [_Scope(label="", graph=PipelineGraph())]
        self._used_labels: set[str] = set()

    @property
    def _current(self) -> _Scope:
        return self._scopes[-1]

    def _full_label(self, label: str) -> str:
        prefix = "/".join(s.label for s in self._scopes[1:])
        full = f"{prefix}/{label}" if prefix else label
        if full not in self._used_labels:
            self._used_labels.add(full)
            return full
        suffix = 2
        while f"{full}_{suffix}" in self._used_labels:
            suffix += 1
        unique = f"{full}_{suffix}"
        self._used_labels.add(unique)
        return unique

    def __or__(self, transform: PTransform) -> Any:
        return self.apply(transform)

    def apply(self, transform: PTransform, pcoll: PCollection | None = None, label: str | None = None) -> Any:
        """Apply ``transform`` to ``pcoll`` (None for sources) and return its output."""
        if pcoll is not None and pcoll.pipeline is not self:
            raise ValueError(f"{pcoll!r} belongs to another pipeline")
        full_label = self._full_label(label or transform.label or transform.default_label())
        if isinstance(transform, PrimitiveTransform):
            return self._apply_primitive(transform, pcoll, full_label)
        return self._apply_composite(transform, pcoll, full_label)

    def _apply_primitive(self, transform: PrimitiveTransform, pcoll: PCollection | None, full_label: str) -> PValue:
        graph = self._current.graph
        outputs: dict[str, PCollection] = {}
        for tag, bounded, windowing in transform.output_collections(pcoll):
            collection_id = CollectionID(f"{full_label}.{tag}")
            graph.add_collection(
                CollectionInfo(
                    collection_id=collection_id,
                    producer=NodeID(full_label),
                    tag=tag,
                    bounded=bounded,
                    windowing=windowing,
                )
            )
            outputs[tag] = PCollection(self, collection_id, bounded, windowing)
        graph.add_node(
            full_label,
            transform.to_spec(),
            inputs=(pcoll.collection_id,) if pcoll is not None else (),
            outputs=tuple(p.collection_id for p in outputs.values()),
        )
        if not outputs:
            return None
        if len(outputs) == 1:
            return next(iter(outputs.values()))
        return outputs

    def _apply_composite(self, transform: PTransform, pcoll: PCollection | None, full_label: str) -> PValue:
        parts = PipelineGraph()
        self._scopes.append(_Scope(label=full_label.rsplit("/", 1)[-1], graph=parts))
        try:
            result = transform.expand(pcoll)
        finally:
            self._scopes.pop()

        outputs = _flatten(result)
        graph = self._current.graph
        for output in outputs:
            if not parts.has_collection(output.collection_id):
                raise GraphValidationError(
                    f"Composite '{full_label}' returned {output!r}, which none of its parts produce",
                    node_id=full_label,
                )
            inner = parts.get_collection(output.collection_id)
            graph.add_collection(
                CollectionInfo(
                    collection_id=inner.collection_id,
                    producer=NodeID(full_label),
                    tag=inner.tag,
                    bounded=inner.bounded,
                    windowing=inner.windowing,
                )
            )
        graph.add_node(
            full_label,
            CompositeSpec(parts=parts),
            inputs=(pcoll.collection_id,) if pcoll is not None else (),
            outputs=tuple(o.collection_id for o in outputs),
        )
        logger.debug("Recorded composite transform", label=full_label, parts=parts.node_count)
        return result

    def to_graph(self) -> PipelineGraph:
        """The recorded graph, composites not yet expanded."""
        if len(self._scopes) != 1:
            raise RuntimeError("Pipeline is still expanding a composite transform")
        return self._scopes[0].graph

    def run(self, *, timeout: float | None = None) -> JobResult:
        """Translate and run this pipeline with its options."""
        with PipelineRunner(self.options, event_bus=self._event_bus) as runner:
            self.result = runner.run(self, timeout=timeout)
        return self.result

    def __enter__(self) -> Pipeline:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, *exc_info: object) -> None:
        if exc_type is None:
            self.run()
