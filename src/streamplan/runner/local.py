# src/streamplan/runner/local.py
"""In-process execution engine.

Runs an ExecutionPlan on a worker thread with event-time semantics:

- Each operator has an input watermark: the minimum of its upstream output
  watermarks. An operator's output watermark follows its input watermark
  once the operator has reacted to it.
- Bounded sources hold their watermark at MIN_TIMESTAMP until exhausted,
  then jump to MAX_TIMESTAMP. Unbounded sources advance theirs to the
  largest timestamp read so far, and to MAX_TIMESTAMP if they ever end.
- Sources are read round-robin, one element at a time, so the run order is
  a function of the plan and the source contents.
- Grouping drops elements whose window expired (end of window plus allowed
  lateness is behind the watermark) and counts them.
- Windowed sinks finalize a window's shards once the watermark passes its
  end; batch sinks finalize once, at end of input.

A user function raising fails the job: the exception becomes the cause of
the job's ExecutionFailure. Cancellation is checked between elements.
"""

from __future__ import annotations

import contextvars
import itertools
import threading
import uuid
from collections import Counter
from collections.abc import Callable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any

import structlog

from streamplan.contracts.elements import PaneInfo, TaggedOutput, TimestampedValue, WindowedValue
from streamplan.contracts.enums import AccumulationMode, JobState, OperatorKind, PaneTiming, TargetKind
from streamplan.contracts.errors import ExecutionFailure, SubmissionError
from streamplan.contracts.io import ShardInfo
from streamplan.contracts.types import JobID, OperatorID
from streamplan.contracts.windowing import (
    GLOBAL_WINDOW,
    MAX_TIMESTAMP,
    MIN_TIMESTAMP,
    AfterCount,
    BoundedWindow,
    IntervalWindow,
    Sessions,
    WindowingStrategy,
)
from streamplan.core.graph.models import MAIN_TAG
from streamplan.runner.clock import DEFAULT_CLOCK, Clock
from streamplan.runner.job import (
    DROPPED_LATE_ELEMENTS,
    ELEMENTS_READ,
    SHARDS_WRITTEN,
    JobHandle,
    JobResult,
)
from streamplan.translation.environment import ExecutionPlan
from streamplan.translation.operators import (
    FlatMapPayload,
    Operator,
    ReadPayload,
    SinkPayload,
    WindowPayload,
)

logger = structlog.get_logger(__name__)

type EmitFn = Callable[[OperatorID, str, WindowedValue], None]

_EXHAUSTED = object()


def _window_order(window: BoundedWindow) -> tuple[int, int]:
    return (window.max_timestamp, window.start)


def _as_pair(value: Any, operator_id: str) -> tuple[Any, Any]:
    if not isinstance(value, tuple | list) or len(value) != 2:
        raise TypeError(f"Operator '{operator_id}' expects (key, value) pairs, got {type(value).__name__}")
    return value[0], value[1]


# =============================================================================
# Runtime operators
# =============================================================================


class _RuntimeOperator:
    """Runtime counterpart of a non-source Operator."""

    def __init__(self, operator: Operator, emit: EmitFn, metrics: Counter[str]) -> None:
        self.operator = operator
        self.watermark = MIN_TIMESTAMP
        self._emit = emit
        self._metrics = metrics

    def emit(self, value: WindowedValue, tag: str = MAIN_TAG) -> None:
        self._emit(self.operator.operator_id, tag, value)

    def process(self, value: WindowedValue) -> None:
        raise NotImplementedError

    def advance(self, watermark: int) -> None:
        """Move the input watermark forward and react to it."""
        self.watermark = watermark
        self.on_watermark()

    def on_watermark(self) -> None:
        pass


class _FlatMapRuntime(_RuntimeOperator):
    def __init__(self, operator: Operator, payload: FlatMapPayload, emit: EmitFn, metrics: Counter[str]) -> None:
        super().__init__(operator, emit, metrics)
        self._fn = payload.fn
        self._main_tag = payload.output_tags[0]
        self._tags = frozenset(payload.output_tags)

    def process(self, value: WindowedValue) -> None:
        results = self._fn(value.value)
        if results is None:
            return
        for result in results:
            tag = self._main_tag
            if isinstance(result, TaggedOutput):
                if result.tag not in self._tags:
                    raise ValueError(
                        f"Operator '{self.operator.operator_id}' emitted undeclared tag '{result.tag}'"
                    )
                tag, result = result.tag, result.value
            if isinstance(result, TimestampedValue):
                self.emit(replace(value, value=result.value, timestamp=result.timestamp), tag)
            else:
                self.emit(value.with_value(result), tag)


class _AssignWindowsRuntime(_RuntimeOperator):
    def __init__(self, operator: Operator, payload: WindowPayload, emit: EmitFn, metrics: Counter[str]) -> None:
        super().__init__(operator, emit, metrics)
        self._window_fn = payload.windowing.window_fn

    def process(self, value: WindowedValue) -> None:
        self.emit(WindowedValue(value.value, value.timestamp, self._window_fn.assign(value.timestamp)))


class _KeyByRuntime(_RuntimeOperator):
    """Checks elements are (key, value) pairs. All keys share the single local worker."""

    def process(self, value: WindowedValue) -> None:
        _as_pair(value.value, self.operator.operator_id)
        self.emit(value)


class _ExplodeWindowsRuntime(_RuntimeOperator):
    def process(self, value: WindowedValue) -> None:
        _as_pair(value.value, self.operator.operator_id)
        for exploded in value.explode():
            self.emit(exploded)


@dataclass
class _PaneState:
    """Buffered values of one (key, window) pair."""

    key: Any
    window: BoundedWindow
    seq: int
    values: list[Any] = field(default_factory=list)
    pending: int = 0
    panes_fired: int = 0
    on_time_fired: bool = False


class _GroupRuntime(_RuntimeOperator):
    """Group by key and window.

    Trigger-driven (streaming): fires per the windowing trigger, including
    early and late panes. Otherwise (batch): fires exactly one on-time pane
    per (key, window) when the watermark passes the end of the window.
    """

    def __init__(
        self,
        operator: Operator,
        payload: WindowPayload,
        emit: EmitFn,
        metrics: Counter[str],
        *,
        trigger_driven: bool,
    ) -> None:
        super().__init__(operator, emit, metrics)
        self._windowing: WindowingStrategy = payload.windowing
        self._trigger_driven = trigger_driven
        self._states: dict[tuple[Any, BoundedWindow], _PaneState] = {}
        self._seq = itertools.count()

    def process(self, value: WindowedValue) -> None:
        key, item = _as_pair(value.value, self.operator.operator_id)
        for window in value.windows:
            if self._is_expired(window):
                self._metrics[DROPPED_LATE_ELEMENTS] += 1
                continue
            state = self._state_for(key, window)
            state.values.append(item)
            state.pending += 1
            if self._trigger_driven:
                self._on_element(state)

    def on_watermark(self) -> None:
        for state in sorted(self._states.values(), key=lambda s: (*_window_order(s.window), s.seq)):
            if state.window.max_timestamp >= self.watermark:
                continue
            expired = self._is_expired(state.window)
            if not state.on_time_fired:
                state.on_time_fired = True
                if state.pending:
                    self._fire(state, PaneTiming.ON_TIME, is_last=expired)
            elif state.pending and expired:
                self._fire(state, PaneTiming.LATE, is_last=True)
            if expired:
                del self._states[(state.key, state.window)]

    def _on_element(self, state: _PaneState) -> None:
        closed = self.watermark > state.window.max_timestamp
        trigger = self._windowing.trigger
        if isinstance(trigger, AfterCount):
            if state.pending >= trigger.count:
                self._fire(state, PaneTiming.LATE if closed else PaneTiming.EARLY)
        elif closed:
            self._fire(state, PaneTiming.LATE)

    def _is_expired(self, window: BoundedWindow) -> bool:
        return window.max_timestamp + self._windowing.allowed_lateness_ms < self.watermark

    def _state_for(self, key: Any, window: BoundedWindow) -> _PaneState:
        window_fn = self._windowing.window_fn
        if not isinstance(window_fn, Sessions) or not isinstance(window, IntervalWindow):
            state = self._states.get((key, window))
            if state is None:
                state = _PaneState(key=key, window=window, seq=next(self._seq))
                self._states[(key, window)] = state
            return state

        active = [w for (k, w) in self._states if k == key and isinstance(w, IntervalWindow)]
        for merged, members in window_fn.merge([window, *active]):
            if window not in members:
                continue
            absorbed = [self._states.pop((key, m)) for m in members if (key, m) in self._states]
            state = _PaneState(
                key=key,
                window=merged,
                seq=min((s.seq for s in absorbed), default=next(self._seq)),
                values=[v for s in absorbed for v in s.values],
                pending=sum(s.pending for s in absorbed),
                panes_fired=max((s.panes_fired for s in absorbed), default=0),
                # A session extended past the watermark fires on time again at its new end
                on_time_fired=merged.max_timestamp < self.watermark and any(s.on_time_fired for s in absorbed),
            )
            self._states[(key, merged)] = state
            return state
        raise AssertionError(f"Session merge lost window {window.describe()}")

    def _fire(self, state: _PaneState, timing: PaneTiming, *, is_last: bool = False) -> None:
        index = state.panes_fired
        pane = PaneInfo(timing=timing, index=index, is_first=index == 0, is_last=is_last)
        self.emit(
            WindowedValue(
                value=(state.key, list(state.values)),
                timestamp=state.window.max_timestamp,
                windows=(state.window,),
                pane=pane,
            )
        )
        state.panes_fired += 1
        state.pending = 0
        if self._windowing.accumulation_mode == AccumulationMode.DISCARDING:
            state.values.clear()


class _SinkRuntime(_RuntimeOperator):
    """Buffers values and hands finalized shards to the sink.

    Values are buffered per window when windowed writes are requested, and
    in the global window otherwise. Shards are filled round-robin.
    """

    def __init__(
        self,
        operator: Operator,
        payload: SinkPayload,
        emit: EmitFn,
        metrics: Counter[str],
        *,
        default_shards: int,
    ) -> None:
        super().__init__(operator, emit, metrics)
        self._payload = payload
        self._per_window_close = operator.kind == OperatorKind.WINDOWED_SINK
        self._default_shards = default_shards
        self._buffers: dict[BoundedWindow, list[Any]] = {}
        self._panes_written: Counter[BoundedWindow] = Counter()
        self._finished = False

    def process(self, value: WindowedValue) -> None:
        windows = value.windows if self._payload.windowed_writes else (GLOBAL_WINDOW,)
        for window in windows:
            self._buffers.setdefault(window, []).append(value.value)

    def on_watermark(self) -> None:
        if self._per_window_close:
            closed = [w for w in self._buffers if w.max_timestamp < self.watermark]
        elif self.watermark >= MAX_TIMESTAMP and not self._finished:
            self._finished = True
            if not self._payload.windowed_writes:
                self._buffers.setdefault(GLOBAL_WINDOW, [])
            closed = list(self._buffers)
        else:
            return
        for window in sorted(closed, key=_window_order):
            self._finalize(window, self._buffers.pop(window))

    def _finalize(self, window: BoundedWindow, values: list[Any]) -> None:
        num_shards = self._payload.num_shards or max(1, min(self._default_shards, len(values)))
        pane_index = self._panes_written[window]
        self._panes_written[window] += 1
        for shard_index in range(num_shards):
            shard = ShardInfo(window=window, pane_index=pane_index, shard_index=shard_index, num_shards=num_shards)
            destination = self._payload.sink.write_shard(shard, values[shard_index::num_shards])
            self._metrics[SHARDS_WRITTEN] += 1
            logger.debug(
                "Finalized shard",
                operator_id=self.operator.operator_id,
                window=window.describe(),
                pane=pane_index,
                shard=shard_index,
                destination=destination,
            )


# =============================================================================
# Job execution
# =============================================================================


@dataclass
class _SourceState:
    operator_id: OperatorID
    bounded: bool
    elements: Iterator[TimestampedValue]


class _JobExecution:
    """Runs one plan to completion on the calling thread."""

    def __init__(self, job_id: JobID, plan: ExecutionPlan, cancelled: threading.Event) -> None:
        self.job_id = job_id
        self.plan = plan
        self.metrics: Counter[str] = Counter()
        self._cancelled = cancelled
        self._graph = plan.operators
        self._output_watermarks: dict[OperatorID, int] = {}
        self._runtimes: dict[OperatorID, _RuntimeOperator] = {}
        self._consumers: dict[tuple[OperatorID, str], list[OperatorID]] = {}
        self._downstream: dict[OperatorID, list[OperatorID]] = {}
        self._reads: list[tuple[Operator, ReadPayload]] = []

        for operator in self._graph.operators():
            self._output_watermarks[operator.operator_id] = MIN_TIMESTAMP
            all_consumers: set[OperatorID] = set()
            for tag in operator.output_tags:
                consumers = [op_id for op_id, _ in self._graph.downstream(operator.operator_id, tag)]
                self._consumers[(operator.operator_id, tag)] = consumers
                all_consumers.update(consumers)
            self._downstream[operator.operator_id] = sorted(all_consumers)
            if isinstance(operator.payload, ReadPayload):
                self._reads.append((operator, operator.payload))
            else:
                self._runtimes[operator.operator_id] = self._build_runtime(operator)

    def _build_runtime(self, operator: Operator) -> _RuntimeOperator:
        payload = operator.payload
        match operator.kind:
            case OperatorKind.FLAT_MAP:
                assert isinstance(payload, FlatMapPayload)
                return _FlatMapRuntime(operator, payload, self._deliver, self.metrics)
            case OperatorKind.ASSIGN_WINDOWS:
                assert isinstance(payload, WindowPayload)
                return _AssignWindowsRuntime(operator, payload, self._deliver, self.metrics)
            case OperatorKind.KEY_BY:
                return _KeyByRuntime(operator, self._deliver, self.metrics)
            case OperatorKind.EXPLODE_WINDOWS:
                return _ExplodeWindowsRuntime(operator, self._deliver, self.metrics)
            case OperatorKind.KEYED_WINDOW | OperatorKind.GROUP_BY_WINDOW_KEY:
                assert isinstance(payload, WindowPayload)
                return _GroupRuntime(
                    operator,
                    payload,
                    self._deliver,
                    self.metrics,
                    trigger_driven=operator.kind == OperatorKind.KEYED_WINDOW,
                )
            case OperatorKind.WINDOWED_SINK | OperatorKind.BATCH_SINK:
                assert isinstance(payload, SinkPayload)
                return _SinkRuntime(
                    operator, payload, self._deliver, self.metrics, default_shards=self.plan.parallelism
                )
            case _:
                raise ValueError(f"Operator '{operator.operator_id}' of kind {operator.kind} cannot be executed")

    def run(self) -> JobState:
        """Read all sources to completion (or cancellation).

        Exceptions raised by user functions, sources or sinks propagate.
        """
        active = [
            _SourceState(
                operator_id=read.operator_id,
                bounded=read.kind == OperatorKind.BOUNDED_READ,
                elements=iter(payload.source.read()),
            )
            for read, payload in self._reads
        ]
        while active:
            for source in list(active):
                if self._cancelled.is_set():
                    return JobState.CANCELLED
                element = next(source.elements, _EXHAUSTED)
                if element is _EXHAUSTED:
                    active.remove(source)
                    self._set_output_watermark(source.operator_id, MAX_TIMESTAMP)
                    continue
                if not isinstance(element, TimestampedValue):
                    raise TypeError(
                        f"Source '{source.operator_id}' yielded {type(element).__name__}, expected TimestampedValue"
                    )
                self.metrics[ELEMENTS_READ] += 1
                self._deliver(source.operator_id, MAIN_TAG, WindowedValue(element.value, element.timestamp))
                if not source.bounded:
                    self._set_output_watermark(source.operator_id, element.timestamp)
        return JobState.DONE

    def _deliver(self, operator_id: OperatorID, tag: str, value: WindowedValue) -> None:
        for consumer in self._consumers.get((operator_id, tag), ()):
            self._runtimes[consumer].process(value)

    def _set_output_watermark(self, operator_id: OperatorID, watermark: int) -> None:
        if watermark <= self._output_watermarks[operator_id]:
            return
        self._output_watermarks[operator_id] = watermark
        for consumer in self._downstream[operator_id]:
            runtime = self._runtimes[consumer]
            input_watermark = min(self._output_watermarks[i.operator_id] for i in runtime.operator.inputs)
            if input_watermark > runtime.watermark:
                runtime.advance(input_watermark)
                self._set_output_watermark(consumer, input_watermark)


# =============================================================================
# Engine
# =============================================================================


@dataclass
class _LocalJob:
    handle: JobHandle
    future: Future[JobResult]
    cancelled: threading.Event


class LocalEngine:
    """Runs plans in-process, one worker thread per job.

    Example:
        with LocalEngine() as engine:
            handle = engine.submit(plan)
            result = engine.await_result(handle)
    """

    def __init__(self, *, max_workers: int = 4, clock: Clock = DEFAULT_CLOCK) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="streamplan-local")
        self._clock = clock
        self._jobs: dict[JobID, _LocalJob] = {}
        self._lock = threading.Lock()

    def submit(self, plan: ExecutionPlan) -> JobHandle:
        if plan.target.kind != TargetKind.LOCAL:
            raise SubmissionError(
                f"Local engine cannot run a plan targeting {plan.target.address}",
                target=plan.target.address,
            )
        job_id = JobID(f"local-{uuid.uuid4().hex[:12]}")
        handle = JobHandle(job_id=job_id, job_name=plan.job_name, target=TargetKind.LOCAL)
        cancelled = threading.Event()
        execution = _JobExecution(job_id, plan, cancelled)
        try:
            # Worker threads log with the submitter's bound job context
            future = self._executor.submit(contextvars.copy_context().run, self._run, execution)
        except RuntimeError as e:
            raise SubmissionError("Local engine has been shut down", target=plan.target.address) from e
        with self._lock:
            self._jobs[job_id] = _LocalJob(handle=handle, future=future, cancelled=cancelled)
        logger.info("Submitted local job", job_id=job_id, job_name=plan.job_name, operators=len(plan.operators))
        return handle

    def await_result(self, handle: JobHandle, timeout: float | None = None) -> JobResult:
        result = self._job(handle).future.result(timeout=timeout)
        with self._lock:
            self._jobs.pop(handle.job_id, None)
        return result

    def cancel(self, handle: JobHandle) -> None:
        self._job(handle).cancelled.set()
        logger.info("Cancellation requested", job_id=handle.job_id)

    def shutdown(self, *, wait: bool = True) -> None:
        """Cancel running jobs and stop the worker threads."""
        with self._lock:
            jobs = list(self._jobs.values())
        for job in jobs:
            job.cancelled.set()
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> LocalEngine:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    def _job(self, handle: JobHandle) -> _LocalJob:
        with self._lock:
            job = self._jobs.get(handle.job_id)
        if job is None:
            raise KeyError(f"Unknown job: {handle.job_id}")
        return job

    def _run(self, execution: _JobExecution) -> JobResult:
        start = self._clock.monotonic()
        try:
            state = execution.run()
        except Exception as e:
            logger.debug("Local job raised", job_id=execution.job_id, error_type=type(e).__name__)
            return JobResult(
                job_id=execution.job_id,
                state=JobState.FAILED,
                failure=ExecutionFailure(execution.job_id, e),
                metrics=dict(execution.metrics),
                duration_seconds=self._clock.monotonic() - start,
            )
        return JobResult(
            job_id=execution.job_id,
            state=state,
            metrics=dict(execution.metrics),
            duration_seconds=self._clock.monotonic() - start,
        )
