# src/streamplan/contracts/__init__.py
"""Shared contracts: enums, semantic types, windowing, elements, errors and events.

Leaf package: nothing here imports from core, translation or runner.
"""

from streamplan.contracts.elements import (
    NO_FIRING,
    PaneInfo,
    TaggedOutput,
    TimestampedValue,
    WindowedValue,
)
from streamplan.contracts.enums import (
    AccumulationMode,
    ExecutionMode,
    JobState,
    OperatorKind,
    PaneTiming,
    RunnerTarget,
    TargetKind,
    TransformKind,
    WindowKind,
)
from streamplan.contracts.errors import (
    ExecutionFailure,
    FailurePayload,
    GraphValidationError,
    RemoteExecutionError,
    StreamPlanError,
    SubmissionError,
    TranslationError,
    WindowingError,
)
from streamplan.contracts.events import (
    ConfigurationWarning,
    JobFinished,
    JobSubmitted,
    ModeDetected,
    PhaseCompleted,
    PhaseError,
    PhaseStarted,
    PipelinePhase,
)
from streamplan.contracts.types import CollectionID, JobID, NodeID, OperatorID
from streamplan.contracts.windowing import (
    GLOBAL_WINDOW,
    MAX_TIMESTAMP,
    MIN_TIMESTAMP,
    AfterCount,
    DefaultTrigger,
    FixedWindows,
    GlobalWindow,
    GlobalWindows,
    IntervalWindow,
    Sessions,
    SlidingWindows,
    WindowingStrategy,
)

__all__ = [
    "GLOBAL_WINDOW",
    "MAX_TIMESTAMP",
    "MIN_TIMESTAMP",
    "NO_FIRING",
    "AccumulationMode",
    "AfterCount",
    "CollectionID",
    "ConfigurationWarning",
    "DefaultTrigger",
    "ExecutionFailure",
    "ExecutionMode",
    "FailurePayload",
    "FixedWindows",
    "GlobalWindow",
    "GlobalWindows",
    "GraphValidationError",
    "IntervalWindow",
    "JobFinished",
    "JobID",
    "JobState",
    "JobSubmitted",
    "ModeDetected",
    "NodeID",
    "OperatorID",
    "OperatorKind",
    "PaneInfo",
    "PaneTiming",
    "PhaseCompleted",
    "PhaseError",
    "PhaseStarted",
    "PipelinePhase",
    "RemoteExecutionError",
    "RunnerTarget",
    "Sessions",
    "SlidingWindows",
    "StreamPlanError",
    "SubmissionError",
    "TaggedOutput",
    "TargetKind",
    "TimestampedValue",
    "TransformKind",
    "TranslationError",
    "WindowKind",
    "WindowedValue",
    "WindowingError",
    "WindowingStrategy",
]
