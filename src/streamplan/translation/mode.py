# src/streamplan/translation/mode.py
"""Execution mode detection.

The mode is decided once, before any other translation step, because the
translation of grouping and sink nodes depends on it. It is exactly the OR
of the collections' unboundedness: one unbounded collection anywhere makes
the whole pipeline STREAMING. An empty graph is BATCH.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from streamplan.contracts.enums import ExecutionMode

if TYPE_CHECKING:
    from streamplan.core.graph import PipelineGraph

logger = structlog.get_logger(__name__)


def detect_execution_mode(graph: PipelineGraph) -> ExecutionMode:
    """Return STREAMING iff at least one collection in the graph is unbounded.

    Single pass over the collections, no side effects beyond a debug log line.
    """
    unbounded = [c.collection_id for c in graph.collections() if not c.bounded]
    mode = ExecutionMode.STREAMING if unbounded else ExecutionMode.BATCH
    logger.debug("Detected execution mode", mode=mode.value, unbounded_collections=len(unbounded))
    return mode
