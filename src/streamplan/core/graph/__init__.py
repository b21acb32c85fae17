# src/streamplan/core/graph/__init__.py
"""Pipeline graph model: transform nodes, collections and composite expansion."""

from streamplan.contracts.errors import GraphValidationError
from streamplan.core.graph.expansion import expand_composites
from streamplan.core.graph.graph import PipelineGraph
from streamplan.core.graph.models import (
    MAIN_TAG,
    CollectionInfo,
    CompositeSpec,
    GroupByKeySpec,
    NodeInfo,
    ParDoSpec,
    ReadSpec,
    TransformSpec,
    WindowIntoSpec,
    WriteSpec,
)

__all__ = [
    "MAIN_TAG",
    "CollectionInfo",
    "CompositeSpec",
    "GraphValidationError",
    "GroupByKeySpec",
    "NodeInfo",
    "ParDoSpec",
    "PipelineGraph",
    "ReadSpec",
    "TransformSpec",
    "WindowIntoSpec",
    "WriteSpec",
    "expand_composites",
]
