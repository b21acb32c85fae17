# src/streamplan/runner/submitter.py
"""Submitter/observer: hands plans to an engine and reports their outcome.

The engine is picked from the plan's target. Engine failures are forwarded
as reported, never re-interpreted, and nothing is retried here.
"""

from __future__ import annotations

import threading

import structlog

from streamplan.contracts.enums import TargetKind
from streamplan.contracts.events import JobFinished, JobSubmitted
from streamplan.core.config import PipelineOptions
from streamplan.core.events import EventBusProtocol, NullEventBus
from streamplan.runner.cluster import ClusterClient
from streamplan.runner.job import Engine, JobHandle, JobResult
from streamplan.runner.local import LocalEngine
from streamplan.translation.environment import ExecutionPlan

logger = structlog.get_logger(__name__)


class Submitter:
    """Routes plans to the local engine or a cluster.

    Engines are created on first use and reused for later submissions.
    Pass ``engines`` to substitute an engine per target kind.
    """

    def __init__(
        self,
        options: PipelineOptions,
        *,
        event_bus: EventBusProtocol | None = None,
        engines: dict[TargetKind, Engine] | None = None,
    ) -> None:
        self._options = options
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()
        self._engines: dict[TargetKind, Engine] = dict(engines or {})
        self._jobs: dict[str, Engine] = {}
        # Engines created here rather than injected; close() releases them
        self._owned: list[LocalEngine | ClusterClient] = []
        self._lock = threading.Lock()

    def engine_for(self, plan: ExecutionPlan) -> Engine:
        with self._lock:
            engine = self._engines.get(plan.target.kind)
            if engine is None:
                owned: LocalEngine | ClusterClient
                if plan.target.kind == TargetKind.LOCAL:
                    owned = LocalEngine()
                else:
                    owned = ClusterClient(
                        plan.target.address,
                        timeout=self._options.request_timeout_seconds,
                        poll_interval=self._options.poll_interval_seconds,
                    )
                self._owned.append(owned)
                self._engines[plan.target.kind] = engine = owned
            return engine

    def close(self) -> None:
        """Release the engines this submitter created. Injected engines are left alone."""
        with self._lock:
            owned, self._owned = self._owned, []
            self._engines = {k: v for k, v in self._engines.items() if not any(v is e for e in owned)}
        for engine in owned:
            if isinstance(engine, LocalEngine):
                engine.shutdown()
            else:
                engine.close()

    def submit(self, plan: ExecutionPlan) -> JobHandle:
        """Hand a plan to its engine.

        Raises:
            SubmissionError: If the engine is unreachable or rejects the plan
        """
        engine = self.engine_for(plan)
        handle = engine.submit(plan)
        with self._lock:
            self._jobs[handle.job_id] = engine
        self._events.emit(JobSubmitted(job_id=handle.job_id, job_name=handle.job_name, target=handle.target))
        return handle

    def await_result(self, handle: JobHandle, timeout: float | None = None) -> JobResult:
        """Block until the job is terminal and return its result unmodified.

        The handle is forgotten once the result is returned.
        """
        result = self._engine(handle).await_result(handle, timeout=timeout)
        with self._lock:
            self._jobs.pop(handle.job_id, None)
        if result.failure is not None:
            logger.error(
                "Job failed",
                job_id=handle.job_id,
                job_name=handle.job_name,
                error_type=type(result.failure.cause).__name__,
                error=str(result.failure.cause),
            )
        else:
            logger.info("Job finished", job_id=handle.job_id, state=result.state.value, **result.metrics)
        self._events.emit(
            JobFinished(
                job_id=result.job_id,
                state=result.state,
                duration_seconds=result.duration_seconds,
                error=result.failure,
            )
        )
        return result

    def cancel(self, handle: JobHandle) -> None:
        self._engine(handle).cancel(handle)

    def _engine(self, handle: JobHandle) -> Engine:
        with self._lock:
            engine = self._jobs.get(handle.job_id)
        if engine is None:
            raise KeyError(f"Job {handle.job_id} was not submitted through this submitter")
        return engine
