# src/streamplan/translation/translator.py
"""Transform translation: pipeline graph to native operator graph.

Walks the primitive nodes of an expanded graph in deterministic topological
order and dispatches on each node's spec variant:

    source         -> BOUNDED_READ | UNBOUNDED_READ
    per-element    -> FLAT_MAP
    window_into    -> ASSIGN_WINDOWS
    group_by_key   -> KEY_BY + KEYED_WINDOW            (streaming)
                      EXPLODE_WINDOWS + GROUP_BY_WINDOW_KEY  (batch)
    sink           -> WINDOWED_SINK                    (streaming, windowed writes)
                      BATCH_SINK                       (otherwise)

Translation fails fast: the first unsupported or malformed node raises a
TranslationError and no operator graph is returned. User functions are
carried to the operators untouched and never called here.
"""

from __future__ import annotations

from typing import assert_never

import structlog

from streamplan.contracts.enums import ExecutionMode, OperatorKind
from streamplan.contracts.errors import GraphValidationError, TranslationError, WindowingError
from streamplan.contracts.io import SinkProtocol, SourceProtocol
from streamplan.contracts.types import CollectionID, NodeID, OperatorID
from streamplan.core.graph import PipelineGraph
from streamplan.core.graph.models import (
    MAIN_TAG,
    CollectionInfo,
    CompositeSpec,
    GroupByKeySpec,
    NodeInfo,
    ParDoSpec,
    ReadSpec,
    WindowIntoSpec,
    WriteSpec,
)
from streamplan.translation.operators import (
    FlatMapPayload,
    NoPayload,
    Operator,
    OperatorGraph,
    OperatorInput,
    OperatorPayload,
    ReadPayload,
    SinkPayload,
    WindowPayload,
)

logger = structlog.get_logger(__name__)


def translate_graph(graph: PipelineGraph, mode: ExecutionMode) -> OperatorGraph:
    """Translate an expanded pipeline graph into an operator graph.

    Args:
        graph: Pipeline graph holding primitive nodes only
        mode: Execution mode detected for the graph

    Raises:
        TranslationError: On composite, unsupported or malformed nodes and on
            inconsistent windowing. Nothing is returned in that case.
    """
    return TransformTranslator(graph, mode).translate()


class TransformTranslator:
    """Single-use translator of one graph in one mode."""

    def __init__(self, graph: PipelineGraph, mode: ExecutionMode) -> None:
        self._graph = graph
        self._mode = mode
        self._operators = OperatorGraph()
        # Where each logical collection is produced in the operator graph
        self._produced: dict[CollectionID, OperatorInput] = {}

    def translate(self) -> OperatorGraph:
        for info in self._graph.nodes():
            if isinstance(info.spec, CompositeSpec):
                raise TranslationError(
                    f"Composite node '{info.node_id}' must be expanded before translation",
                    node_id=info.node_id,
                )
        self._graph.validate()

        for node_id in self._graph.topological_order():
            self._translate_node(self._graph.get_node_info(node_id))

        logger.debug(
            "Translated pipeline graph",
            mode=self._mode.value,
            nodes=self._graph.node_count,
            operators=len(self._operators),
        )
        return self._operators

    def _translate_node(self, info: NodeInfo) -> None:
        spec = info.spec
        match spec:
            case ReadSpec():
                self._translate_read(info, spec)
            case ParDoSpec():
                self._translate_par_do(info, spec)
            case WindowIntoSpec():
                self._translate_window_into(info, spec)
            case GroupByKeySpec():
                self._translate_group_by_key(info)
            case WriteSpec():
                self._translate_write(info, spec)
            case CompositeSpec():
                raise TranslationError(
                    f"Composite node '{info.node_id}' must be expanded before translation",
                    node_id=info.node_id,
                )
            case _:
                assert_never(spec)

    # -- per kind ------------------------------------------------------------

    def _translate_read(self, info: NodeInfo, spec: ReadSpec) -> None:
        if not isinstance(spec.source, SourceProtocol):
            raise TranslationError(
                f"Source node '{info.node_id}' carries {type(spec.source).__name__}, which is not a source",
                node_id=info.node_id,
            )
        output = self._output(info)
        if spec.source.is_bounded != output.bounded:
            raise GraphValidationError(
                f"Source node '{info.node_id}' reads {'a bounded' if spec.source.is_bounded else 'an unbounded'} "
                f"source but its output '{output.collection_id}' is marked "
                f"{'bounded' if output.bounded else 'unbounded'}",
                node_id=info.node_id,
                collection_id=output.collection_id,
            )
        kind = OperatorKind.BOUNDED_READ if output.bounded else OperatorKind.UNBOUNDED_READ
        operator = self._add(info, kind, ReadPayload(spec.source), inputs=())
        self._produced[output.collection_id] = OperatorInput(operator.operator_id)

    def _translate_par_do(self, info: NodeInfo, spec: ParDoSpec) -> None:
        if not callable(spec.fn):
            raise TranslationError(
                f"Per-element node '{info.node_id}' carries a non-callable {type(spec.fn).__name__}",
                node_id=info.node_id,
            )
        source = self._input(info)
        outputs = [self._graph.get_collection(c) for c in info.outputs]
        for output in outputs:
            self._check_preserved(info, source, output)

        output_tags = tuple(output.tag for output in outputs)
        if set(output_tags) != set(spec.output_tags):
            raise GraphValidationError(
                f"Per-element node '{info.node_id}' declares tags {list(spec.output_tags)} "
                f"but its outputs carry {list(output_tags)}",
                node_id=info.node_id,
            )
        operator = self._add(
            info,
            OperatorKind.FLAT_MAP,
            FlatMapPayload(spec.fn, spec.output_tags),
            inputs=(self._produced[source.collection_id],),
            output_tags=spec.output_tags,
        )
        for output in outputs:
            self._produced[output.collection_id] = OperatorInput(operator.operator_id, output.tag)

    def _translate_window_into(self, info: NodeInfo, spec: WindowIntoSpec) -> None:
        source = self._input(info)
        output = self._output(info)
        if output.bounded != source.bounded:
            raise GraphValidationError(
                f"Node '{info.node_id}' changes boundedness from '{source.collection_id}' "
                f"to '{output.collection_id}'",
                node_id=info.node_id,
                collection_id=output.collection_id,
            )
        if output.windowing != spec.windowing:
            raise WindowingError(
                f"Window assignment '{info.node_id}' applies {spec.windowing.describe()} but its output "
                f"'{output.collection_id}' is windowed by {output.windowing.describe()}",
                node_id=info.node_id,
                collection_id=output.collection_id,
            )
        operator = self._add(
            info,
            OperatorKind.ASSIGN_WINDOWS,
            WindowPayload(spec.windowing),
            inputs=(self._produced[source.collection_id],),
        )
        self._produced[output.collection_id] = OperatorInput(operator.operator_id)

    def _translate_group_by_key(self, info: NodeInfo) -> None:
        source = self._input(info)
        output = self._output(info)
        self._check_preserved(info, source, output)
        if not source.bounded and source.windowing.is_global_default:
            raise WindowingError(
                f"Grouping node '{info.node_id}' groups the unbounded collection '{source.collection_id}' "
                "in the global window with the default trigger, so no group would ever be emitted. "
                "Apply a non-global window or a trigger first.",
                node_id=info.node_id,
                collection_id=source.collection_id,
            )

        payload = WindowPayload(source.windowing)
        if self._mode == ExecutionMode.STREAMING:
            keyed = self._add(info, OperatorKind.KEY_BY, NoPayload(), inputs=(self._produced[source.collection_id],))
            grouped = self._add(info, OperatorKind.KEYED_WINDOW, payload, inputs=(OperatorInput(keyed.operator_id),))
        else:
            exploded = self._add(
                info, OperatorKind.EXPLODE_WINDOWS, NoPayload(), inputs=(self._produced[source.collection_id],)
            )
            grouped = self._add(
                info, OperatorKind.GROUP_BY_WINDOW_KEY, payload, inputs=(OperatorInput(exploded.operator_id),)
            )
        self._produced[output.collection_id] = OperatorInput(grouped.operator_id)

    def _translate_write(self, info: NodeInfo, spec: WriteSpec) -> None:
        if not isinstance(spec.sink, SinkProtocol):
            raise TranslationError(
                f"Sink node '{info.node_id}' carries {type(spec.sink).__name__}, which is not a sink",
                node_id=info.node_id,
            )
        source = self._input(info)
        if not source.bounded:
            if not spec.windowed_writes:
                raise WindowingError(
                    f"Sink '{info.node_id}' writes the unbounded collection '{source.collection_id}' "
                    "without windowed writes; its output would never be finalized",
                    node_id=info.node_id,
                    collection_id=source.collection_id,
                )
            if spec.num_shards is None:
                raise TranslationError(
                    f"Sink '{info.node_id}' writes the unbounded collection '{source.collection_id}' "
                    "and needs an explicit shard count",
                    node_id=info.node_id,
                    collection_id=source.collection_id,
                )

        windowed = self._mode == ExecutionMode.STREAMING and spec.windowed_writes
        self._add(
            info,
            OperatorKind.WINDOWED_SINK if windowed else OperatorKind.BATCH_SINK,
            SinkPayload(spec.sink, spec.num_shards, spec.windowed_writes),
            inputs=(self._produced[source.collection_id],),
            output_tags=(),
        )

    # -- helpers -------------------------------------------------------------

    def _add(
        self,
        info: NodeInfo,
        kind: OperatorKind,
        payload: OperatorPayload,
        *,
        inputs: tuple[OperatorInput, ...],
        output_tags: tuple[str, ...] = (MAIN_TAG,),
    ) -> Operator:
        operator = Operator(
            operator_id=OperatorID(f"{info.node_id}/{kind.value}"),
            kind=kind,
            node_id=NodeID(info.node_id),
            payload=payload,
            inputs=inputs,
            output_tags=output_tags,
        )
        return self._operators.add_operator(operator)

    def _input(self, info: NodeInfo) -> CollectionInfo:
        return self._graph.get_collection(info.inputs[0])

    def _output(self, info: NodeInfo) -> CollectionInfo:
        return self._graph.get_collection(info.outputs[0])

    @staticmethod
    def _check_preserved(info: NodeInfo, source: CollectionInfo, output: CollectionInfo) -> None:
        """Only window assignment may change windowing; nothing but reads sets boundedness."""
        if output.bounded != source.bounded:
            raise GraphValidationError(
                f"Node '{info.node_id}' changes boundedness from '{source.collection_id}' "
                f"to '{output.collection_id}'",
                node_id=info.node_id,
                collection_id=output.collection_id,
            )
        if output.windowing != source.windowing:
            raise WindowingError(
                f"Node '{info.node_id}' changes windowing from {source.windowing.describe()} on "
                f"'{source.collection_id}' to {output.windowing.describe()} on '{output.collection_id}'; "
                "only window assignment may change windowing",
                node_id=info.node_id,
                collection_id=output.collection_id,
            )
