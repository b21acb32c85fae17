# src/streamplan/core/__init__.py
"""Core infrastructure: Graph model, Canonical hashing, Configuration, Events, Logging."""

from streamplan.core.canonical import (
    CANONICAL_VERSION,
    canonical_json,
    stable_hash,
)
from streamplan.core.config import (
    MASTER_AUTO,
    MASTER_LOCAL,
    CheckpointConfig,
    PipelineOptions,
    load_options,
)
from streamplan.core.events import (
    EventBus,
    EventBusProtocol,
    NullEventBus,
)
from streamplan.core.graph import (
    CollectionInfo,
    GraphValidationError,
    NodeInfo,
    PipelineGraph,
    expand_composites,
)
from streamplan.core.logging import (
    apply_logging_options,
    configure_logging,
    job_log_context,
)

__all__ = [
    "CANONICAL_VERSION",
    "MASTER_AUTO",
    "MASTER_LOCAL",
    "CheckpointConfig",
    "CollectionInfo",
    "EventBus",
    "EventBusProtocol",
    "GraphValidationError",
    "NodeInfo",
    "NullEventBus",
    "PipelineGraph",
    "PipelineOptions",
    "apply_logging_options",
    "canonical_json",
    "configure_logging",
    "expand_composites",
    "job_log_context",
    "load_options",
    "stable_hash",
]
