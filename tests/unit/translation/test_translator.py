# tests/unit/translation/test_translator.py
"""Tests for transform translation into native operators."""

from typing import Any

import pytest

from streamplan.contracts.enums import ExecutionMode, OperatorKind
from streamplan.contracts.errors import GraphValidationError, TranslationError, WindowingError
from streamplan.contracts.windowing import AfterCount, WindowingStrategy
from streamplan.core.graph import MAIN_TAG, CollectionInfo, CompositeSpec, ParDoSpec, PipelineGraph, ReadSpec
from streamplan.translation import OperatorGraph, OperatorInput, detect_execution_mode, translate_graph
from streamplan.translation.operators import FlatMapPayload, SinkPayload, WindowPayload
from tests.helpers import HOURLY, GraphBuilder, ListSink, ListSource, identity


def _streaming_smoke_graph(sink: ListSink) -> PipelineGraph:
    """Unbounded read -> per-element -> hourly windows -> windowed write."""
    b = GraphBuilder()
    src = b.read("GenerateSequence", ListSource([(1, 0)], bounded=False))
    doubled = b.par_do("Double", src, lambda x: [x * 2])
    windowed = b.window_into("Window", doubled, HOURLY)
    b.write("WriteToText", windowed, sink, num_shards=1, windowed_writes=True)
    return b.graph


def _translate(graph: PipelineGraph) -> OperatorGraph:
    return translate_graph(graph, detect_execution_mode(graph))


class TestBatchTranslation:
    def test_bounded_pipeline(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([("a", 0)]))
        pairs = b.par_do("Pair", src)
        grouped = b.group("Group", pairs)
        b.write("Write", grouped, ListSink())

        operators = translate_graph(b.graph, ExecutionMode.BATCH)

        assert operators.kinds() == [
            OperatorKind.BOUNDED_READ,
            OperatorKind.FLAT_MAP,
            OperatorKind.EXPLODE_WINDOWS,
            OperatorKind.GROUP_BY_WINDOW_KEY,
            OperatorKind.BATCH_SINK,
        ]
        assert [op.operator_id for op in operators.operators()] == [
            "Read/bounded_read",
            "Pair/flat_map",
            "Group/explode_windows",
            "Group/group_by_window_key",
            "Write/batch_sink",
        ]

    def test_operators_are_wired_in_order(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([]))
        b.write("Write", b.group("Group", src), ListSink())

        operators = translate_graph(b.graph, ExecutionMode.BATCH)

        assert operators.get("Group/explode_windows").inputs == (OperatorInput("Read/bounded_read"),)  # type: ignore[arg-type]
        assert operators.get("Group/group_by_window_key").inputs == (OperatorInput("Group/explode_windows"),)  # type: ignore[arg-type]
        assert operators.downstream("Group/group_by_window_key") == [("Write/batch_sink", 0)]

    def test_windowed_writes_flag_is_ignored_in_batch(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([]))
        b.write("Write", b.window_into("Window", src, HOURLY), ListSink(), windowed_writes=True)

        operators = translate_graph(b.graph, ExecutionMode.BATCH)

        assert operators.kinds()[-1] == OperatorKind.BATCH_SINK
        assert operators.get("Write/batch_sink").output_tags == ()

    def test_grouping_payload_carries_input_windowing(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([]))
        b.group("Group", b.window_into("Window", src, HOURLY))

        operators = translate_graph(b.graph, ExecutionMode.BATCH)

        assert operators.get("Group/group_by_window_key").payload == WindowPayload(HOURLY)


class TestStreamingTranslation:
    def test_unbounded_windowed_write(self) -> None:
        sink = ListSink()

        operators = _translate(_streaming_smoke_graph(sink))

        assert operators.kinds() == [
            OperatorKind.UNBOUNDED_READ,
            OperatorKind.FLAT_MAP,
            OperatorKind.ASSIGN_WINDOWS,
            OperatorKind.WINDOWED_SINK,
        ]
        sink_op = operators.get("WriteToText/windowed_sink")
        assert sink_op.payload == SinkPayload(sink, num_shards=1, windowed_writes=True)
        assert operators.get("Window/assign_windows").payload == WindowPayload(HOURLY)

    def test_grouping_becomes_key_by_and_keyed_window(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([], bounded=False))
        b.group("Group", b.window_into("Window", src, HOURLY))

        operators = translate_graph(b.graph, ExecutionMode.STREAMING)

        assert operators.kinds() == [
            OperatorKind.UNBOUNDED_READ,
            OperatorKind.ASSIGN_WINDOWS,
            OperatorKind.KEY_BY,
            OperatorKind.KEYED_WINDOW,
        ]
        assert operators.get("Group/keyed_window").payload == WindowPayload(HOURLY)

    def test_bounded_branch_of_streaming_pipeline(self) -> None:
        """Bounded sinks without windowed writes still finalize once."""
        b = GraphBuilder()
        b.read("Stream", ListSource([], bounded=False))
        side = b.read("Side", ListSource([]))
        b.write("WriteSide", side, ListSink())

        operators = _translate(b.graph)

        assert operators.get("Side/bounded_read").kind == OperatorKind.BOUNDED_READ
        assert operators.get("WriteSide/batch_sink").kind == OperatorKind.BATCH_SINK

    def test_global_window_with_trigger_can_be_grouped(self) -> None:
        triggered = WindowingStrategy(trigger=AfterCount(10))
        b = GraphBuilder()
        src = b.read("Read", ListSource([], bounded=False))
        b.group("Group", b.window_into("Window", src, triggered))

        assert OperatorKind.KEYED_WINDOW in _translate(b.graph).kinds()

    def test_global_default_grouping_rejected(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([], bounded=False))
        b.group("Group", src)

        with pytest.raises(WindowingError, match="global window with the default trigger") as exc_info:
            _translate(b.graph)
        assert exc_info.value.node_id == "Group"
        assert exc_info.value.collection_id == "Read.main"

    def test_unbounded_write_requires_windowed_writes(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([], bounded=False))
        b.write("Write", b.window_into("Window", src, HOURLY), ListSink(), num_shards=1)

        with pytest.raises(WindowingError, match="without windowed writes"):
            _translate(b.graph)

    def test_unbounded_write_requires_shard_count(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([], bounded=False))
        b.write("Write", b.window_into("Window", src, HOURLY), ListSink(), windowed_writes=True)

        with pytest.raises(TranslationError, match="explicit shard count") as exc_info:
            _translate(b.graph)
        assert type(exc_info.value) is TranslationError


class TestPerElementTranslation:
    def test_function_is_carried_not_called(self) -> None:
        calls: list[Any] = []

        def record(element: Any) -> list[Any]:
            calls.append(element)
            return [element]

        b = GraphBuilder()
        b.par_do("Record", b.read("Read", ListSource([("a", 0)])), record)

        operators = translate_graph(b.graph, ExecutionMode.BATCH)

        assert operators.get("Record/flat_map").payload == FlatMapPayload(record, (MAIN_TAG,))
        assert calls == []

    def test_tagged_outputs_are_routed(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([]))
        b.par_do("Split", src, tags=(MAIN_TAG, "errors"))
        b.write("WriteErrors", "Split.errors", ListSink())

        operators = translate_graph(b.graph, ExecutionMode.BATCH)

        assert operators.get("Split/flat_map").output_tags == (MAIN_TAG, "errors")
        assert operators.get("WriteErrors/batch_sink").inputs == (OperatorInput("Split/flat_map", "errors"),)  # type: ignore[arg-type]
        assert operators.downstream("Split/flat_map", "errors") == [("WriteErrors/batch_sink", 0)]
        assert operators.downstream("Split/flat_map") == []

    def test_non_callable_rejected(self) -> None:
        b = GraphBuilder()
        b.par_do("Broken", b.read("Read", ListSource([])), "not a function")  # type: ignore[arg-type]

        with pytest.raises(TranslationError, match="non-callable str") as exc_info:
            translate_graph(b.graph, ExecutionMode.BATCH)
        assert exc_info.value.node_id == "Broken"

    def test_windowing_change_outside_window_into_rejected(self) -> None:
        b = GraphBuilder()
        b.par_do("Sneaky", b.read("Read", ListSource([])), windowing=HOURLY)

        with pytest.raises(WindowingError, match="only window assignment may change windowing"):
            translate_graph(b.graph, ExecutionMode.BATCH)

    def test_output_tags_must_match_collections(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([]))
        b.graph.add_collection(
            CollectionInfo(
                collection_id="Map.other",  # type: ignore[arg-type]
                producer="Map",  # type: ignore[arg-type]
                tag="other",
                bounded=True,
                windowing=WindowingStrategy(),
            )
        )
        b.graph.add_node("Map", ParDoSpec(identity), inputs=(src,), outputs=("Map.other",))

        with pytest.raises(GraphValidationError, match="declares tags"):
            translate_graph(b.graph, ExecutionMode.BATCH)


class TestWindowIntoTranslation:
    def test_declared_windowing_must_match(self) -> None:
        b = GraphBuilder()
        b.window_into("Window", b.read("Read", ListSource([])), HOURLY, declared=WindowingStrategy())

        with pytest.raises(WindowingError, match="Window assignment 'Window'"):
            translate_graph(b.graph, ExecutionMode.BATCH)


class TestRejectedGraphs:
    def test_composite_rejected(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([]))
        b.graph.add_node("Counts", CompositeSpec(PipelineGraph()), inputs=(src,))

        with pytest.raises(TranslationError, match="must be expanded before translation"):
            translate_graph(b.graph, ExecutionMode.BATCH)

    def test_non_source_rejected(self) -> None:
        b = GraphBuilder()
        b.read("Read", object(), bounded=True)

        with pytest.raises(TranslationError, match="which is not a source"):
            translate_graph(b.graph, ExecutionMode.BATCH)

    def test_non_sink_rejected(self) -> None:
        b = GraphBuilder()
        b.write("Write", b.read("Read", ListSource([])), object())

        with pytest.raises(TranslationError, match="which is not a sink"):
            translate_graph(b.graph, ExecutionMode.BATCH)

    def test_source_boundedness_must_match_collection(self) -> None:
        b = GraphBuilder()
        b.read("Read", ListSource([], bounded=False), bounded=True)

        with pytest.raises(GraphValidationError, match="reads an unbounded source"):
            translate_graph(b.graph, ExecutionMode.BATCH)

    def test_malformed_graph_rejected(self) -> None:
        graph = PipelineGraph()
        graph.add_node("Read", ReadSpec(ListSource([])), outputs=("Read.main",))

        with pytest.raises(GraphValidationError):
            translate_graph(graph, ExecutionMode.BATCH)


class TestDeterminism:
    def test_same_graph_translates_identically(self) -> None:
        graph = _streaming_smoke_graph(ListSink())

        first = _translate(graph)
        second = _translate(graph)

        assert first.describe() == second.describe()
        assert first.fingerprint() == second.fingerprint()

    def test_equal_graphs_share_fingerprint(self) -> None:
        assert _translate(_streaming_smoke_graph(ListSink())).fingerprint() == (
            _translate(_streaming_smoke_graph(ListSink())).fingerprint()
        )

    def test_mode_changes_fingerprint(self) -> None:
        b = GraphBuilder()
        b.group("Group", b.read("Read", ListSource([])))

        batch = translate_graph(b.graph, ExecutionMode.BATCH)
        streaming = translate_graph(b.graph, ExecutionMode.STREAMING)

        assert batch.fingerprint() != streaming.fingerprint()
