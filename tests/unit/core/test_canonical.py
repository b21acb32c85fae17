# tests/unit/core/test_canonical.py
"""Tests for canonical JSON and stable hashing."""

import math
from datetime import timedelta

import pytest

from streamplan.contracts.enums import ExecutionMode
from streamplan.core.canonical import CANONICAL_VERSION, canonical_json, stable_hash


class TestCanonicalJson:
    def test_keys_are_sorted_without_whitespace(self) -> None:
        assert canonical_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_enums_become_values(self) -> None:
        assert canonical_json({"mode": ExecutionMode.STREAMING}) == '{"mode":"streaming"}'

    def test_timedelta_becomes_milliseconds(self) -> None:
        assert canonical_json(timedelta(seconds=1.5)) == "1500"

    def test_tuples_become_lists(self) -> None:
        assert canonical_json(("a", 1)) == '["a",1]'

    def test_sets_are_order_independent(self) -> None:
        assert canonical_json({"b", "a", "c"}) == canonical_json(frozenset(["c", "a", "b"]))

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_rejects_non_finite_floats(self, value: float) -> None:
        with pytest.raises(ValueError, match="non-finite"):
            canonical_json({"x": value})


class TestStableHash:
    def test_deterministic_across_key_order(self) -> None:
        assert stable_hash({"a": 1, "b": 2}) == stable_hash({"b": 2, "a": 1})

    def test_sensitive_to_values(self) -> None:
        assert stable_hash({"a": 1}) != stable_hash({"a": 2})

    def test_version_is_part_of_the_hash(self) -> None:
        assert stable_hash({"a": 1}) != stable_hash({"a": 1}, version="other")
        assert stable_hash({"a": 1}) == stable_hash({"a": 1}, version=CANONICAL_VERSION)

    def test_is_sha256_hex(self) -> None:
        digest = stable_hash([])
        assert len(digest) == 64
        int(digest, 16)
