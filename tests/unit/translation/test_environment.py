# tests/unit/translation/test_environment.py
"""Tests for the execution environment builder."""

from datetime import timedelta

import pytest

from streamplan.contracts.enums import ExecutionMode, TargetKind
from streamplan.contracts.events import ConfigurationWarning
from streamplan.core.config import CheckpointConfig, PipelineOptions
from streamplan.translation import ExecutionTarget, build_execution_plan
from streamplan.translation.environment import DEFAULT_JOB_NAME, default_parallelism
from streamplan.translation.operators import OperatorGraph


class TestExecutionTarget:
    @pytest.mark.parametrize("address", ["[auto]", "[local]"])
    def test_local_sentinels(self, address: str) -> None:
        target = ExecutionTarget.from_options(PipelineOptions(master_address=address))
        assert target == ExecutionTarget(TargetKind.LOCAL, address)

    @pytest.mark.parametrize(
        ("address", "expected"),
        [
            ("jobmanager:8081", "http://jobmanager:8081"),
            ("http://jobmanager:8081/", "http://jobmanager:8081"),
            ("https://cluster.internal:443", "https://cluster.internal:443"),
        ],
    )
    def test_cluster_addresses_become_base_urls(self, address: str, expected: str) -> None:
        target = ExecutionTarget.from_options(PipelineOptions(master_address=address))
        assert target == ExecutionTarget(TargetKind.CLUSTER, expected)


class TestBuildExecutionPlan:
    def test_options_are_applied(self) -> None:
        options = PipelineOptions(
            job_name="counts",
            parallelism=3,
            master_address="jobmanager:8081",
            checkpointing_enabled=True,
            checkpoint_interval=timedelta(seconds=10),
        )
        operators = OperatorGraph()

        plan = build_execution_plan(operators, options, ExecutionMode.STREAMING)

        assert plan.job_name == "counts"
        assert plan.parallelism == 3
        assert plan.mode == ExecutionMode.STREAMING
        assert plan.operators is operators
        assert plan.target.kind == TargetKind.CLUSTER
        assert plan.checkpoint == CheckpointConfig(enabled=True, interval=timedelta(seconds=10))
        assert plan.warnings == ()

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("os.cpu_count", lambda: 6)

        plan = build_execution_plan(OperatorGraph(), PipelineOptions(), ExecutionMode.BATCH)

        assert plan.job_name == DEFAULT_JOB_NAME
        assert plan.parallelism == 6
        assert plan.target.kind == TargetKind.LOCAL
        assert not plan.checkpoint.enabled

    def test_default_parallelism_without_cpu_count(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("os.cpu_count", lambda: None)
        assert default_parallelism() == 1

    def test_checkpoint_config_is_attached_verbatim(self) -> None:
        """A disabled configuration stays disabled, even for streaming plans."""
        plan = build_execution_plan(OperatorGraph(), PipelineOptions(), ExecutionMode.STREAMING)
        assert plan.checkpoint == CheckpointConfig(enabled=False)

    def test_warnings_are_carried(self) -> None:
        warning = ConfigurationWarning(code="c", message="m")
        plan = build_execution_plan(OperatorGraph(), PipelineOptions(), ExecutionMode.STREAMING, (warning,))
        assert plan.warnings == (warning,)
        assert plan.describe()["warnings"] == ["c"]

    def test_fingerprint_is_deterministic(self) -> None:
        options = PipelineOptions(parallelism=2, checkpointing_enabled=True, checkpoint_interval=timedelta(minutes=1))
        first = build_execution_plan(OperatorGraph(), options, ExecutionMode.STREAMING)
        second = build_execution_plan(OperatorGraph(), options, ExecutionMode.STREAMING)

        assert first.fingerprint() == second.fingerprint()

    def test_fingerprint_covers_configuration(self) -> None:
        base = build_execution_plan(OperatorGraph(), PipelineOptions(parallelism=2), ExecutionMode.BATCH)
        wider = build_execution_plan(OperatorGraph(), PipelineOptions(parallelism=4), ExecutionMode.BATCH)

        assert base.fingerprint() != wider.fingerprint()

    def test_describe_serializes_checkpoint(self) -> None:
        options = PipelineOptions(parallelism=1, checkpointing_enabled=True, checkpoint_interval=timedelta(seconds=90))
        described = build_execution_plan(OperatorGraph(), options, ExecutionMode.STREAMING).describe()

        assert described["checkpoint"]["enabled"] is True
        assert described["target"] == {"kind": "local", "address": "[auto]"}
        assert described["operators"] == []
