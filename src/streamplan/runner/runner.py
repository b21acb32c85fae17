# src/streamplan/runner/runner.py
"""Translate and run entry points.

PipelineRunner composes the translation steps, strictly in order:

    expansion -> mode detection -> checkpoint policy -> translation -> environment

and, for run(), submission and result observation. Each step is reported
on the event bus as a phase. Translation has no side effects beyond log
lines and events, and never calls user functions.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

import structlog

from streamplan.contracts.enums import RunnerTarget
from streamplan.contracts.errors import TranslationError
from streamplan.contracts.events import ModeDetected, PhaseCompleted, PhaseError, PhaseStarted, PipelinePhase
from streamplan.core.config import PipelineOptions
from streamplan.core.events import EventBusProtocol, NullEventBus
from streamplan.core.graph import PipelineGraph, expand_composites
from streamplan.core.logging import apply_logging_options, job_log_context
from streamplan.runner.job import JobResult
from streamplan.runner.submitter import Submitter
from streamplan.translation.checkpoint_policy import validate_checkpointing
from streamplan.translation.environment import DEFAULT_JOB_NAME, ExecutionPlan, build_execution_plan
from streamplan.translation.mode import detect_execution_mode
from streamplan.translation.translator import translate_graph

logger = structlog.get_logger(__name__)


class GraphProvider(Protocol):
    """Anything that can hand over a finished pipeline graph (e.g., sdk.Pipeline)."""

    def to_graph(self) -> PipelineGraph: ...


class PipelineRunner:
    """Translates pipelines into execution plans and runs them.

    When ``options.log_level`` is set, the runner configures logging on
    construction. Lines logged during run() carry the job name, and the job
    id once the job is submitted.

    Example:
        bus = EventBus()
        bus.subscribe(ConfigurationWarning, warnings.append)
        runner = PipelineRunner(PipelineOptions(), event_bus=bus)
        plan = runner.translate(pipeline)
        result = runner.run(pipeline)
    """

    def __init__(
        self,
        options: PipelineOptions | None = None,
        *,
        event_bus: EventBusProtocol | None = None,
        submitter: Submitter | None = None,
    ) -> None:
        self.options = options if options is not None else PipelineOptions()
        apply_logging_options(self.options)
        self._events: EventBusProtocol = event_bus if event_bus is not None else NullEventBus()
        self._owns_submitter = submitter is None
        self._submitter = submitter if submitter is not None else Submitter(self.options, event_bus=self._events)

    def close(self) -> None:
        """Release engines started by this runner's own submitter."""
        if self._owns_submitter:
            self._submitter.close()

    def __enter__(self) -> PipelineRunner:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _phase(self, phase: PipelinePhase, target: str | None = None) -> Iterator[None]:
        self._events.emit(PhaseStarted(phase=phase, target=target))
        phase_start = time.perf_counter()
        try:
            yield
        except Exception as e:
            self._events.emit(PhaseError(phase=phase, error=e, target=target))
            raise
        self._events.emit(PhaseCompleted(phase=phase, duration_seconds=time.perf_counter() - phase_start))

    def translate(self, pipeline: GraphProvider | PipelineGraph) -> ExecutionPlan:
        """Translate a pipeline into an execution plan.

        Raises:
            TranslationError: If the graph is malformed or unsupported; no plan is built
        """
        graph = pipeline if isinstance(pipeline, PipelineGraph) else pipeline.to_graph()
        try:
            with self._phase(PipelinePhase.EXPANSION):
                expanded = expand_composites(graph)

            with self._phase(PipelinePhase.MODE_DETECTION):
                mode = detect_execution_mode(expanded)
                self._events.emit(ModeDetected(mode=mode))

            with self._phase(PipelinePhase.CHECKPOINT_POLICY):
                warning = validate_checkpointing(mode, self.options.checkpoint_config, event_bus=self._events)

            with self._phase(PipelinePhase.TRANSLATION):
                operators = translate_graph(expanded, mode)

            with self._phase(PipelinePhase.ENVIRONMENT):
                plan = build_execution_plan(
                    operators,
                    self.options,
                    mode,
                    warnings=(warning,) if warning is not None else (),
                )
        except TranslationError as e:
            logger.error(
                "Translation failed",
                error=str(e),
                error_type=type(e).__name__,
                node_id=e.node_id,
                collection_id=e.collection_id,
            )
            raise

        logger.info(
            "Translated pipeline",
            job_name=plan.job_name,
            mode=mode.value,
            operators=len(operators),
            target=plan.target.kind.value,
            fingerprint=plan.fingerprint(),
        )
        return plan

    def run(self, pipeline: GraphProvider | PipelineGraph, *, timeout: float | None = None) -> JobResult:
        """Translate, submit and wait for the job.

        With the 'test' runner target a failed job raises its ExecutionFailure;
        with 'standard' the failed JobResult is returned.

        Raises:
            TranslationError: Before anything is submitted
            SubmissionError: If the engine is unreachable or rejects the plan
            ExecutionFailure: On job failure, 'test' runner target only
        """
        with job_log_context(job_name=self.options.job_name or DEFAULT_JOB_NAME):
            plan = self.translate(pipeline)

            with self._phase(PipelinePhase.SUBMISSION, target=plan.target.address):
                handle = self._submitter.submit(plan)

            with job_log_context(job_id=handle.job_id), self._phase(PipelinePhase.EXECUTION, target=handle.job_id):
                result = self._submitter.await_result(handle, timeout=timeout)
                if self.options.runner_target == RunnerTarget.TEST:
                    result.raise_for_failure()
        return result
