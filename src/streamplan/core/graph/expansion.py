# src/streamplan/core/graph/expansion.py
"""Composite expansion.

A composite node stands for a fragment of primitive parts. In the outer
graph the composite is recorded as the producer of its output collections;
inside the fragment the same collection ids are produced by the parts. Since
collection ids are unique across the whole pipeline, expansion only has to
swap the composite for its parts: consumers on both sides keep referring
to the same ids and are rewired automatically.
"""

from __future__ import annotations

import structlog

from streamplan.contracts.errors import GraphValidationError
from streamplan.core.graph.graph import PipelineGraph
from streamplan.core.graph.models import CompositeSpec, NodeInfo

logger = structlog.get_logger(__name__)


def expand_composites(graph: PipelineGraph) -> PipelineGraph:
    """Return a new graph where every composite is replaced by its parts.

    Nested composites are expanded recursively. The input graph is not
    mutated. An already-primitive graph expands to a structurally equal copy.

    Raises:
        GraphValidationError: If a composite's fragment does not produce its
            declared outputs, consumes collections that are not its inputs,
            or disagrees with the outer graph on a collection's boundedness
            or windowing
    """
    graph.validate()
    expanded = PipelineGraph()
    composites = _expand_into(graph, expanded)
    expanded.validate()
    if composites:
        logger.debug(
            "Expanded composite transforms",
            composites=composites,
            primitive_nodes=expanded.node_count,
        )
    return expanded


def _expand_into(source: PipelineGraph, target: PipelineGraph) -> int:
    composites = 0
    for node_id in source.topological_order():
        info = source.get_node_info(node_id)
        if isinstance(info.spec, CompositeSpec):
            _check_fragment(source, info, info.spec.parts)
            composites += 1 + _expand_into(info.spec.parts, target)
            continue
        for collection_id in info.outputs:
            target.add_collection(source.get_collection(collection_id))
        target.add_node(info.node_id, info.spec, inputs=info.inputs, outputs=info.outputs)
    return composites


def _check_fragment(outer: PipelineGraph, composite: NodeInfo, parts: PipelineGraph) -> None:
    parts.validate(allow_external_inputs=True)

    stray_inputs = [c for c in parts.external_inputs() if c not in composite.inputs]
    if stray_inputs:
        raise GraphValidationError(
            f"Composite '{composite.node_id}' has parts consuming {stray_inputs}, which are not inputs of the composite",
            node_id=composite.node_id,
        )

    for collection_id in composite.outputs:
        if not parts.has_collection(collection_id):
            raise GraphValidationError(
                f"Composite '{composite.node_id}' declares output '{collection_id}' that none of its parts produce",
                node_id=composite.node_id,
                collection_id=collection_id,
            )
        declared = outer.get_collection(collection_id)
        produced = parts.get_collection(collection_id)
        if declared.bounded != produced.bounded or declared.windowing != produced.windowing:
            raise GraphValidationError(
                f"Composite '{composite.node_id}' output '{collection_id}' is declared as "
                f"bounded={declared.bounded}, windowing={declared.windowing.describe()} but its parts produce "
                f"bounded={produced.bounded}, windowing={produced.windowing.describe()}",
                node_id=composite.node_id,
                collection_id=collection_id,
            )
