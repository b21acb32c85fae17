# src/streamplan/runner/__init__.py
"""Submission, engines and the translate/run entry points."""

from streamplan.runner.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from streamplan.runner.cluster import ClusterClient
from streamplan.runner.job import Engine, JobHandle, JobResult
from streamplan.runner.local import LocalEngine
from streamplan.runner.runner import PipelineRunner
from streamplan.runner.submitter import Submitter

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "ClusterClient",
    "Engine",
    "JobHandle",
    "JobResult",
    "LocalEngine",
    "MockClock",
    "PipelineRunner",
    "Submitter",
    "SystemClock",
]
