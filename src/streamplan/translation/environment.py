# src/streamplan/translation/environment.py
"""Execution environment builder.

Assembles the engine-level configuration around a translated operator
graph: execution target, parallelism and checkpointing. The checkpoint
configuration is attached verbatim; this module never changes it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

import structlog

from streamplan.contracts.enums import ExecutionMode, TargetKind
from streamplan.contracts.events import ConfigurationWarning
from streamplan.core.canonical import stable_hash
from streamplan.core.config import CheckpointConfig, PipelineOptions
from streamplan.translation.operators import OperatorGraph

logger = structlog.get_logger(__name__)

DEFAULT_JOB_NAME = "streamplan-job"


@dataclass(frozen=True, slots=True)
class ExecutionTarget:
    """Where a plan runs.

    Attributes:
        kind: LOCAL (in-process engine) or CLUSTER
        address: Cluster base URL, or the local sentinel the options named
    """

    kind: TargetKind
    address: str

    @classmethod
    def from_options(cls, options: PipelineOptions) -> ExecutionTarget:
        if options.uses_local_engine:
            return cls(kind=TargetKind.LOCAL, address=options.master_address)
        address = options.master_address.rstrip("/")
        if not address.startswith(("http://", "https://")):
            address = f"http://{address}"
        return cls(kind=TargetKind.CLUSTER, address=address)


@dataclass(frozen=True, slots=True)
class ExecutionPlan:
    """A translated pipeline ready for submission.

    Immutable and produced once per translation. The operator graph holds
    the user functions, so a plan is only as portable as they are.
    """

    job_name: str
    mode: ExecutionMode
    operators: OperatorGraph
    parallelism: int
    target: ExecutionTarget
    checkpoint: CheckpointConfig
    warnings: tuple[ConfigurationWarning, ...] = field(default=())

    def describe(self) -> dict[str, Any]:
        return {
            "job_name": self.job_name,
            "mode": self.mode.value,
            "parallelism": self.parallelism,
            "target": {"kind": self.target.kind.value, "address": self.target.address},
            "checkpoint": self.checkpoint.model_dump(mode="json"),
            "warnings": [w.code for w in self.warnings],
            "operators": self.operators.describe(),
        }

    def fingerprint(self) -> str:
        """Stable hash of the plan structure and its configuration."""
        return stable_hash(self.describe())


def default_parallelism() -> int:
    """Number of available CPUs, at least 1."""
    return os.cpu_count() or 1


def build_execution_plan(
    operators: OperatorGraph,
    options: PipelineOptions,
    mode: ExecutionMode,
    warnings: tuple[ConfigurationWarning, ...] = (),
) -> ExecutionPlan:
    """Wrap an operator graph with the runtime configuration from ``options``.

    Deterministic: the same operators, mode and options always produce a plan
    with the same fingerprint. The only environment input is the CPU count,
    consulted when ``options.parallelism`` is unset.
    """
    plan = ExecutionPlan(
        job_name=options.job_name or DEFAULT_JOB_NAME,
        mode=mode,
        operators=operators,
        parallelism=options.parallelism if options.parallelism is not None else default_parallelism(),
        target=ExecutionTarget.from_options(options),
        checkpoint=options.checkpoint_config,
        warnings=warnings,
    )
    logger.debug(
        "Built execution plan",
        job_name=plan.job_name,
        target=plan.target.kind.value,
        parallelism=plan.parallelism,
        checkpointing=plan.checkpoint.enabled,
    )
    return plan
