# tests/property/test_engine_properties.py
"""Property-based tests for local engine output completeness.

Sharding and window finalization may reorder elements, but they must never
lose or duplicate one: every element read reaches exactly one shard.
"""

from __future__ import annotations

from collections import Counter

import pytest
from hypothesis import given
from hypothesis import strategies as st

from streamplan.core.config import PipelineOptions
from streamplan.runner.local import LocalEngine
from streamplan.translation import build_execution_plan, detect_execution_mode, translate_graph
from tests.helpers import HOURLY, GraphBuilder, ListSink, ListSource
from tests.property.settings import SLOW_SETTINGS

# (value, timestamp) pairs within a day, in milliseconds
elements = st.lists(
    st.tuples(st.integers(min_value=-1000, max_value=1000), st.integers(min_value=0, max_value=86_400_000)),
    max_size=50,
)


def _run(items: list[tuple[int, int]], *, bounded: bool, num_shards: int | None, parallelism: int) -> ListSink:
    sink = ListSink()
    b = GraphBuilder()
    windowed = b.window_into("Window", b.read("Read", ListSource(items, bounded=bounded)), HOURLY)
    b.write("Write", windowed, sink, num_shards=num_shards, windowed_writes=True)
    mode = detect_execution_mode(b.graph)
    plan = build_execution_plan(translate_graph(b.graph, mode), PipelineOptions(parallelism=parallelism), mode)
    with LocalEngine(max_workers=1) as engine:
        result = engine.await_result(engine.submit(plan), timeout=30)
    assert result.succeeded
    return sink


@pytest.mark.slow
class TestOutputCompleteness:
    @given(items=elements, parallelism=st.integers(min_value=1, max_value=8))
    @SLOW_SETTINGS
    def test_batch_shards_hold_every_element_once(self, items: list[tuple[int, int]], parallelism: int) -> None:
        """Property: a bounded run writes each element read exactly once."""
        sink = _run(items, bounded=True, num_shards=None, parallelism=parallelism)

        assert Counter(sink.values) == Counter(v for v, _ in items)

    @given(items=elements, num_shards=st.integers(min_value=1, max_value=4))
    @SLOW_SETTINGS
    def test_streaming_windows_hold_every_on_time_element_once(
        self, items: list[tuple[int, int]], num_shards: int
    ) -> None:
        """Property: with timestamps in arrival order nothing is late, so nothing is lost."""
        in_order = sorted(items, key=lambda item: item[1])

        sink = _run(in_order, bounded=False, num_shards=num_shards, parallelism=1)

        assert Counter(sink.values) == Counter(v for v, _ in in_order)
        for written in sink.shards:
            assert written.shard.num_shards == num_shards
            assert written.shard.pane_index == 0
