# src/streamplan/runner/cluster.py
"""HTTP client for a remote cluster engine.

Protocol:
    POST  /jobs                  submit a plan, answers {"job_id": ...}
    GET   /jobs/{id}             job status, answers {"state": ..., "metrics": {...}, "failure": {...}}
    PATCH /jobs/{id}?mode=cancel request cancellation

The submitted body carries the canonical plan description (inspectable by
the cluster without unpickling) and the pickled plan, base64 encoded.

Nothing here retries. A transport error, a non-2xx answer or a malformed
answer raises SubmissionError and is left to the caller.
"""

from __future__ import annotations

import base64
import pickle
import threading
from typing import Any

import httpx
import structlog

from streamplan.contracts.enums import JobState, TargetKind
from streamplan.contracts.errors import (
    ExecutionFailure,
    FailurePayload,
    RemoteExecutionError,
    SubmissionError,
)
from streamplan.contracts.types import JobID
from streamplan.runner.clock import DEFAULT_CLOCK, Clock
from streamplan.runner.job import JobHandle, JobResult
from streamplan.translation.environment import ExecutionPlan

logger = structlog.get_logger(__name__)


def encode_plan(plan: ExecutionPlan) -> str:
    """Pickle and base64-encode a plan.

    Raises:
        SubmissionError: If the plan (usually a user function) cannot be pickled
    """
    try:
        return base64.b64encode(pickle.dumps(plan)).decode("ascii")
    except (pickle.PicklingError, TypeError, AttributeError) as e:
        raise SubmissionError(
            f"Plan '{plan.job_name}' cannot be serialized for cluster submission: {e}",
            target=plan.target.address,
        ) from e


class ClusterClient:
    """Submits plans to a cluster and polls their status.

    Example:
        client = ClusterClient("http://jobmanager:8081", poll_interval=2.0)
        handle = client.submit(plan)
        result = client.await_result(handle, timeout=600)
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        poll_interval: float = 1.0,
        clock: Clock = DEFAULT_CLOCK,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval
        self._clock = clock
        # httpx.Client is thread-safe; one pool serves all jobs of this client
        self._client = httpx.Client(base_url=self._base_url, timeout=timeout)
        self._submitted_at: dict[JobID, float] = {}
        self._lock = threading.Lock()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ClusterClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def submit(self, plan: ExecutionPlan) -> JobHandle:
        if plan.target.kind != TargetKind.CLUSTER:
            raise SubmissionError(
                f"Cluster client cannot run a plan targeting {plan.target.address}",
                target=plan.target.address,
            )
        body = {
            "job_name": plan.job_name,
            "fingerprint": plan.fingerprint(),
            "plan": plan.describe(),
            "payload": encode_plan(plan),
        }
        answer = self._request("POST", "/jobs", json=body)
        job_id = answer.get("job_id")
        if not isinstance(job_id, str) or not job_id:
            raise SubmissionError(f"Cluster at {self._base_url} accepted the plan without a job id", target=self._base_url)

        with self._lock:
            self._submitted_at[JobID(job_id)] = self._clock.monotonic()
        logger.info("Submitted cluster job", job_id=job_id, job_name=plan.job_name, target=self._base_url)
        return JobHandle(job_id=JobID(job_id), job_name=plan.job_name, target=TargetKind.CLUSTER)

    def await_result(self, handle: JobHandle, timeout: float | None = None) -> JobResult:
        """Poll until the job is terminal.

        Raises:
            TimeoutError: If ``timeout`` seconds pass first
            SubmissionError: If the cluster cannot be reached or answers nonsense
        """
        start = self._clock.monotonic()
        while True:
            status = self._request("GET", f"/jobs/{handle.job_id}")
            state = self._parse_state(status)
            if state.is_terminal:
                return self._to_result(handle, state, status)
            if timeout is not None and self._clock.monotonic() - start >= timeout:
                raise TimeoutError(f"Job {handle.job_id} still running after {timeout}s")
            self._clock.sleep(self._poll_interval)

    def cancel(self, handle: JobHandle) -> None:
        self._request("PATCH", f"/jobs/{handle.job_id}", params={"mode": "cancel"})
        logger.info("Cancellation requested", job_id=handle.job_id, target=self._base_url)

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise SubmissionError(
                f"Cluster at {self._base_url} answered {method} {path} with HTTP {e.response.status_code}: "
                f"{e.response.text[:200]}",
                target=self._base_url,
            ) from e
        except httpx.HTTPError as e:
            raise SubmissionError(f"Cluster at {self._base_url} is unreachable: {e}", target=self._base_url) from e

        if not response.content:
            return {}
        try:
            answer = response.json()
        except ValueError as e:
            raise SubmissionError(f"Cluster at {self._base_url} answered with invalid JSON", target=self._base_url) from e
        if not isinstance(answer, dict):
            raise SubmissionError(
                f"Cluster at {self._base_url} answered with {type(answer).__name__}, expected an object",
                target=self._base_url,
            )
        return answer

    def _parse_state(self, status: dict[str, Any]) -> JobState:
        try:
            return JobState(status.get("state"))
        except ValueError as e:
            raise SubmissionError(
                f"Cluster at {self._base_url} reported unknown job state {status.get('state')!r}",
                target=self._base_url,
            ) from e

    def _to_result(self, handle: JobHandle, state: JobState, status: dict[str, Any]) -> JobResult:
        try:
            metrics = {str(k): int(v) for k, v in (status.get("metrics") or {}).items()}
        except (AttributeError, TypeError, ValueError) as e:
            raise SubmissionError(
                f"Cluster at {self._base_url} reported malformed metrics {status.get('metrics')!r}",
                target=self._base_url,
            ) from e

        failure = None
        if state == JobState.FAILED:
            raw = status.get("failure") or {}
            if not isinstance(raw, dict):
                raise SubmissionError(
                    f"Cluster at {self._base_url} reported malformed failure details {raw!r}",
                    target=self._base_url,
                )
            payload: FailurePayload = {
                "type": str(raw.get("type", "UnknownError")),
                "exception": str(raw.get("exception", "no failure details reported")),
            }
            if "traceback" in raw:
                payload["traceback"] = str(raw["traceback"])
            failure = ExecutionFailure(handle.job_id, RemoteExecutionError(payload))

        with self._lock:
            submitted_at = self._submitted_at.pop(handle.job_id, None)
        duration = self._clock.monotonic() - submitted_at if submitted_at is not None else 0.0
        return JobResult(
            job_id=handle.job_id,
            state=state,
            failure=failure,
            metrics=metrics,
            duration_seconds=duration,
        )
