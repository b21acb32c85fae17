# src/streamplan/contracts/events.py
"""Observability events for translation and job execution.

These domain events provide visibility into translation phases, advisory
configuration warnings and job lifecycle. They are emitted on an EventBus
so callers (and tests) can subscribe to them instead of scraping stderr.
"""

from dataclasses import dataclass
from enum import StrEnum

from streamplan.contracts.enums import ExecutionMode, JobState, TargetKind


class PipelinePhase(StrEnum):
    """Translation and run phases for observability events."""

    EXPANSION = "expansion"
    MODE_DETECTION = "mode_detection"
    CHECKPOINT_POLICY = "checkpoint_policy"
    TRANSLATION = "translation"
    ENVIRONMENT = "environment"
    SUBMISSION = "submission"
    EXECUTION = "execution"


@dataclass(frozen=True, slots=True)
class PhaseStarted:
    """Emitted when a phase begins.

    Attributes:
        phase: The phase starting
        target: Optional target (e.g., job name, master address)
    """

    phase: PipelinePhase
    target: str | None = None


@dataclass(frozen=True, slots=True)
class PhaseCompleted:
    """Emitted when a phase completes successfully."""

    phase: PipelinePhase
    duration_seconds: float


@dataclass(frozen=True, slots=True)
class PhaseError:
    """Emitted when a phase fails.

    Stores the full exception object to preserve traceback, exception type,
    and chained causes.
    """

    phase: PipelinePhase
    error: BaseException
    target: str | None = None

    @property
    def error_message(self) -> str:
        """Human-readable error message for formatting."""
        return str(self.error)


@dataclass(frozen=True, slots=True)
class ConfigurationWarning:
    """Non-fatal, advisory warning about the run configuration.

    Unlike TranslationError, warnings never stop translation or execution.
    The message is stable so external tooling can match on it.
    """

    code: str
    message: str


@dataclass(frozen=True, slots=True)
class ModeDetected:
    """Emitted once per translation with the derived execution mode."""

    mode: ExecutionMode


@dataclass(frozen=True, slots=True)
class JobSubmitted:
    """Emitted when the engine accepted a plan."""

    job_id: str
    job_name: str
    target: TargetKind


@dataclass(frozen=True, slots=True)
class JobFinished:
    """Emitted when a job reaches a terminal state."""

    job_id: str
    state: JobState
    duration_seconds: float
    error: BaseException | None = None
