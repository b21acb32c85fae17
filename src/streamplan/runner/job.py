# src/streamplan/runner/job.py
"""Job handles, job results and the engine protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from streamplan.contracts.enums import JobState, TargetKind
from streamplan.contracts.errors import ExecutionFailure
from streamplan.contracts.types import JobID

if TYPE_CHECKING:
    from streamplan.translation.environment import ExecutionPlan

# Metric counter names reported by engines
ELEMENTS_READ = "elements_read"
DROPPED_LATE_ELEMENTS = "dropped_late_elements"
SHARDS_WRITTEN = "shards_written"


@dataclass(frozen=True, slots=True)
class JobHandle:
    """Reference to a submitted job. Owned by the engine that returned it."""

    job_id: JobID
    job_name: str
    target: TargetKind


@dataclass(frozen=True, slots=True)
class JobResult:
    """Terminal outcome of a job.

    Attributes:
        job_id: Engine job id
        state: DONE, FAILED or CANCELLED
        failure: Set when state is FAILED; wraps the original cause
        metrics: Engine counters (elements read, late elements dropped, shards written)
        duration_seconds: Wall time between submission and completion
    """

    job_id: JobID
    state: JobState
    failure: ExecutionFailure | None = None
    metrics: dict[str, int] = field(default_factory=dict)
    duration_seconds: float = 0.0

    def __post_init__(self) -> None:
        if not self.state.is_terminal:
            raise ValueError(f"JobResult requires a terminal state, got {self.state}")
        if (self.state == JobState.FAILED) != (self.failure is not None):
            raise ValueError("JobResult.failure must be set exactly when state is FAILED")

    @property
    def succeeded(self) -> bool:
        return self.state == JobState.DONE

    def raise_for_failure(self) -> None:
        """Raise the ExecutionFailure of a failed job; no-op otherwise."""
        if self.failure is not None:
            raise self.failure


class Engine(Protocol):
    """An execution environment able to run ExecutionPlans.

    Engines forward failures as reported; they never retry a submission or
    a failed job.
    """

    def submit(self, plan: ExecutionPlan) -> JobHandle:
        """Hand a plan to the engine.

        Raises:
            SubmissionError: If the engine is unreachable or rejects the plan
        """
        ...

    def await_result(self, handle: JobHandle, timeout: float | None = None) -> JobResult:
        """Block until the job reaches a terminal state.

        The engine forgets the job once its result is returned; the handle
        cannot be awaited or cancelled again.

        Raises:
            TimeoutError: If ``timeout`` seconds pass first
        """
        ...

    def cancel(self, handle: JobHandle) -> None:
        """Ask the engine to cancel a running job."""
        ...
