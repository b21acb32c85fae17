# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator

import pytest
import structlog
from hypothesis import Verbosity, settings

from streamplan.contracts.events import ConfigurationWarning
from streamplan.core.config import PipelineOptions
from streamplan.core.events import EventBus
from streamplan.runner.local import LocalEngine
from tests.helpers import ListSink

settings.register_profile("ci", max_examples=100, deadline=None)
settings.register_profile("nightly", max_examples=1000, deadline=None)
settings.register_profile("debug", max_examples=10, verbosity=Verbosity.verbose, deadline=None)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    """Undo configure_logging() calls so tests never leak logging config."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def list_sink() -> ListSink:
    return ListSink()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def captured_warnings(event_bus: EventBus) -> list[ConfigurationWarning]:
    """ConfigurationWarning events emitted on ``event_bus``."""
    received: list[ConfigurationWarning] = []
    event_bus.subscribe(ConfigurationWarning, received.append)
    return received


@pytest.fixture
def local_options() -> PipelineOptions:
    return PipelineOptions(parallelism=2, job_name="test-job")


@pytest.fixture
def local_engine() -> Iterator[LocalEngine]:
    with LocalEngine(max_workers=2) as engine:
        yield engine
