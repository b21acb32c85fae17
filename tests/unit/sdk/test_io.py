# tests/unit/sdk/test_io.py
"""Tests for the reference sources and sinks."""

from itertools import islice
from pathlib import Path

import pytest

from streamplan.contracts.elements import TimestampedValue
from streamplan.contracts.io import ShardInfo, SinkProtocol, SourceProtocol
from streamplan.contracts.windowing import GLOBAL_WINDOW, MIN_TIMESTAMP, IntervalWindow
from streamplan.sdk import CreateSource, SequenceSource, TextSink, shard_path


class TestSequenceSource:
    def test_bounded_range(self) -> None:
        source = SequenceSource(3, 6)

        assert source.is_bounded
        assert list(source.read()) == [
            TimestampedValue(3, 0),
            TimestampedValue(4, 1),
            TimestampedValue(5, 2),
        ]

    def test_without_stop_is_endless(self) -> None:
        source = SequenceSource(10)

        assert not source.is_bounded
        assert [v.value for v in islice(source.read(), 1000)] == list(range(10, 1010))

    def test_rate_makes_it_unbounded_and_spaces_timestamps(self) -> None:
        source = SequenceSource(0, 3, rate=4)

        assert not source.is_bounded
        assert [v.timestamp for v in source.read()] == [0, 250, 500]

    def test_timestamp_fn(self) -> None:
        source = SequenceSource(1, 3, timestamp_fn=lambda v: v * 60_000)
        assert [v.timestamp for v in source.read()] == [60_000, 120_000]

    @pytest.mark.parametrize(
        ("kwargs", "message"),
        [
            ({"start": 5, "stop": 2}, "must not be smaller"),
            ({"start": 0, "rate": 0}, "rate must be positive"),
        ],
    )
    def test_invalid_arguments(self, kwargs: dict[str, int], message: str) -> None:
        with pytest.raises(ValueError, match=message):
            SequenceSource(**kwargs)

    def test_describe_names_timestamp_fn(self) -> None:
        def minute_of(value: int) -> int:
            return value * 60_000

        described = SequenceSource(0, 10, timestamp_fn=minute_of).describe()

        assert described["source"] == "sequence"
        assert described["timestamp_fn"].endswith("minute_of")

    def test_is_a_source(self) -> None:
        assert isinstance(SequenceSource(), SourceProtocol)


class TestCreateSource:
    def test_values_without_timestamps(self) -> None:
        source = CreateSource(["a", "b"])

        assert source.is_bounded
        assert list(source.read()) == [TimestampedValue("a", MIN_TIMESTAMP), TimestampedValue("b", MIN_TIMESTAMP)]

    def test_explicit_timestamps(self) -> None:
        assert [v.timestamp for v in CreateSource(["a", "b"], [10, 20]).read()] == [10, 20]

    def test_timestamp_count_must_match(self) -> None:
        with pytest.raises(ValueError, match="Got 1 timestamps for 2 values"):
            CreateSource(["a", "b"], [10])

    def test_can_be_read_twice(self) -> None:
        source = CreateSource(x for x in range(3))
        assert list(source.read()) == list(source.read())


class TestTextSink:
    def test_shard_path_global_window(self) -> None:
        shard = ShardInfo(window=GLOBAL_WINDOW, pane_index=0, shard_index=1, num_shards=2)
        assert shard_path("out/words", shard, ".txt") == "out/words-global-pane0-00001-of-00002.txt"

    def test_shard_path_interval_window(self) -> None:
        shard = ShardInfo(window=IntervalWindow(0, 3_600_000), pane_index=2, shard_index=0, num_shards=1)
        assert shard_path("counts", shard) == "counts-0-3600000-pane2-00000-of-00001"

    def test_writes_one_line_per_value(self, tmp_path: Path) -> None:
        sink = TextSink(tmp_path / "nested" / "out")
        shard = ShardInfo(window=GLOBAL_WINDOW, pane_index=0, shard_index=0, num_shards=1)

        path = sink.write_shard(shard, [1, ("a", 2)])

        assert Path(path) == tmp_path / "nested" / "out-global-pane0-00000-of-00001.txt"
        assert Path(path).read_text() == "1\n('a', 2)\n"

    def test_empty_shard_creates_empty_file(self, tmp_path: Path) -> None:
        shard = ShardInfo(window=GLOBAL_WINDOW, pane_index=0, shard_index=0, num_shards=1)
        path = TextSink(tmp_path / "empty", suffix=".csv").write_shard(shard, [])
        assert Path(path).read_text() == ""
        assert path.endswith(".csv")

    def test_is_a_sink(self, tmp_path: Path) -> None:
        sink = TextSink(tmp_path / "out")
        assert isinstance(sink, SinkProtocol)
        assert sink.describe() == {"sink": "text", "path_prefix": str(tmp_path / "out"), "suffix": ".txt"}
