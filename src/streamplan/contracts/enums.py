# src/streamplan/contracts/enums.py
"""All status codes, modes, and kinds used across subsystem boundaries."""

from enum import StrEnum


class ExecutionMode(StrEnum):
    """Execution mode derived from the pipeline graph.

    STREAMING when any collection in the graph is unbounded, BATCH otherwise.
    Computed once per translation and never reconsidered.
    """

    STREAMING = "streaming"
    BATCH = "batch"


class TransformKind(StrEnum):
    """Kind of transform node in the pipeline graph.

    COMPOSITE nodes never reach the translator; they are expanded into
    their primitive parts first.
    """

    SOURCE = "source"
    PAR_DO = "par_do"
    WINDOW_INTO = "window_into"
    GROUP_BY_KEY = "group_by_key"
    SINK = "sink"
    COMPOSITE = "composite"


class WindowKind(StrEnum):
    """Kind of window function attached to a collection."""

    GLOBAL = "global"
    FIXED = "fixed"
    SLIDING = "sliding"
    SESSIONS = "sessions"


class AccumulationMode(StrEnum):
    """What happens to a pane's contents after a trigger fires.

    DISCARDING: Each firing only contains elements since the last firing
    ACCUMULATING: Each firing contains every element seen so far
    """

    DISCARDING = "discarding"
    ACCUMULATING = "accumulating"


class PaneTiming(StrEnum):
    """Position of a fired pane relative to the watermark."""

    EARLY = "early"
    ON_TIME = "on_time"
    LATE = "late"
    UNKNOWN = "unknown"


class OperatorKind(StrEnum):
    """Native engine operator produced by the translator.

    Streaming and batch translations differ for grouping and sinks:
    - KEY_BY + KEYED_WINDOW: continuous, trigger-driven grouping (streaming)
    - EXPLODE_WINDOWS + GROUP_BY_WINDOW_KEY: one closing pass (batch)
    - WINDOWED_SINK: finalizes output each time a window closes (streaming)
    - BATCH_SINK: finalizes output once the bounded input is done
    """

    BOUNDED_READ = "bounded_read"
    UNBOUNDED_READ = "unbounded_read"
    FLAT_MAP = "flat_map"
    ASSIGN_WINDOWS = "assign_windows"
    KEY_BY = "key_by"
    KEYED_WINDOW = "keyed_window"
    EXPLODE_WINDOWS = "explode_windows"
    GROUP_BY_WINDOW_KEY = "group_by_window_key"
    WINDOWED_SINK = "windowed_sink"
    BATCH_SINK = "batch_sink"


class TargetKind(StrEnum):
    """Where an execution plan runs."""

    LOCAL = "local"
    CLUSTER = "cluster"


class RunnerTarget(StrEnum):
    """Runner flavour selected through options.

    STANDARD: run() returns the JobResult, failed or not
    TEST: run() raises the ExecutionFailure of a failed job
    """

    STANDARD = "standard"
    TEST = "test"


class JobState(StrEnum):
    """Lifecycle state of a submitted job."""

    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if the job will not change state anymore."""
        return self != JobState.RUNNING
