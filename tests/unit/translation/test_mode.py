# tests/unit/translation/test_mode.py
"""Tests for execution mode detection."""

from streamplan.contracts.enums import ExecutionMode
from streamplan.core.graph import PipelineGraph
from streamplan.translation import detect_execution_mode
from tests.helpers import HOURLY, GraphBuilder, ListSink, ListSource


class TestDetectExecutionMode:
    def test_empty_graph_is_batch(self) -> None:
        assert detect_execution_mode(PipelineGraph()) == ExecutionMode.BATCH

    def test_bounded_pipeline_is_batch(self) -> None:
        b = GraphBuilder()
        src = b.read("Read", ListSource([("a", 0)]))
        grouped = b.group("Group", b.par_do("Pair", src))
        b.write("Write", grouped, ListSink())

        assert detect_execution_mode(b.graph) == ExecutionMode.BATCH

    def test_single_unbounded_source_makes_pipeline_streaming(self) -> None:
        b = GraphBuilder()
        b.read("Bounded", ListSource([]))
        unbounded = b.read("Unbounded", ListSource([], bounded=False))
        b.window_into("Window", unbounded, HOURLY)

        assert detect_execution_mode(b.graph) == ExecutionMode.STREAMING

    def test_unbounded_collection_anywhere_counts(self) -> None:
        """Only the collections' flags matter, not which node produced them."""
        b = GraphBuilder()
        src = b.read("Read", ListSource([]), bounded=False)

        assert not b.info(src).bounded
        assert detect_execution_mode(b.graph) == ExecutionMode.STREAMING

    def test_detection_does_not_touch_sources(self) -> None:
        source = ListSource([("a", 0)], bounded=False)
        b = GraphBuilder()
        b.read("Read", source)

        detect_execution_mode(b.graph)

        assert source.reads == 0
