# src/streamplan/contracts/errors.py
"""Error contracts.

Exception taxonomy for translation, submission and execution, plus the
TypedDict shape in which an engine reports a job failure.
"""

from typing import NotRequired, TypedDict


class FailurePayload(TypedDict):
    """Schema for failure payloads reported by a remote engine.

    Used by the cluster client when a job ends in the FAILED state.
    """

    exception: str  # String representation of the exception
    type: str  # Exception class name (e.g., "ValueError")
    traceback: NotRequired[str]  # Optional full traceback


class StreamPlanError(Exception):
    """Base class for all errors raised by StreamPlan."""

    pass


# =============================================================================
# Translation (fatal, local)
# =============================================================================


class TranslationError(StreamPlanError):
    """Raised when a pipeline cannot be translated into an execution plan.

    Translation aborts before any plan is built, so a partial plan is never
    submitted. The message names the offending node or collection.

    Attributes:
        node_id: Offending transform node, when known
        collection_id: Offending collection, when known
    """

    def __init__(
        self,
        message: str,
        *,
        node_id: str | None = None,
        collection_id: str | None = None,
    ) -> None:
        self.node_id = node_id
        self.collection_id = collection_id
        super().__init__(message)


class GraphValidationError(TranslationError):
    """Raised when the pipeline graph is structurally malformed."""

    pass


class WindowingError(TranslationError):
    """Raised when windowing on a collection is inconsistent or unusable."""

    pass


# =============================================================================
# Submission and execution (fatal, external)
# =============================================================================


class SubmissionError(StreamPlanError):
    """Raised when the engine is unreachable or rejects a plan.

    Propagated to the caller unmodified. Never retried by StreamPlan.
    """

    def __init__(self, message: str, *, target: str | None = None) -> None:
        self.target = target
        super().__init__(message)


class ExecutionFailure(StreamPlanError):
    """A job failed inside the engine after submission.

    The original error is kept as ``cause`` and chained as ``__cause__``
    so tracebacks show where the per-element logic raised.
    """

    def __init__(self, job_id: str, cause: BaseException) -> None:
        self.job_id = job_id
        self.cause = cause
        super().__init__(f"Job {job_id} failed: {type(cause).__name__}: {cause}")
        self.__cause__ = cause


class RemoteExecutionError(StreamPlanError):
    """Failure cause reported by a remote cluster.

    The remote exception object cannot be transported, only its class name,
    message and (optionally) formatted traceback.
    """

    def __init__(self, payload: FailurePayload) -> None:
        self.exception_type = payload["type"]
        self.remote_traceback = payload.get("traceback")
        super().__init__(f"{payload['type']}: {payload['exception']}")
