# src/streamplan/core/graph/graph.py
"""PipelineGraph: the in-memory pipeline DAG.

Nodes are transform applications; edges are the logical collections
flowing from a producer to each of its consumers. The graph is built by
the construction API and handed to translation read-only.
"""

from __future__ import annotations

from typing import Any, cast

import networkx as nx
from networkx import MultiDiGraph

from streamplan.contracts.enums import TransformKind
from streamplan.contracts.errors import GraphValidationError
from streamplan.contracts.types import CollectionID, NodeID
from streamplan.core.graph.models import CollectionInfo, NodeInfo, ParDoSpec, TransformSpec

# (min inputs, max inputs, exact outputs); None = unconstrained
_ARITY: dict[TransformKind, tuple[int, int | None, int | None]] = {
    TransformKind.SOURCE: (0, 0, 1),
    TransformKind.PAR_DO: (1, 1, None),
    TransformKind.WINDOW_INTO: (1, 1, 1),
    TransformKind.GROUP_BY_KEY: (1, 1, 1),
    TransformKind.SINK: (1, 1, 0),
    TransformKind.COMPOSITE: (0, None, None),
}


class PipelineGraph:
    """Pipeline graph of transforms and collections.

    Wraps NetworkX MultiDiGraph with domain-specific operations.
    Uses MultiDiGraph because one node may consume several collections of
    the same producer (e.g., two tagged outputs of a per-element transform).
    Edge keys are ``"<collection_id>@<input index>"``.
    """

    def __init__(self) -> None:
        self._graph: MultiDiGraph[str] = nx.MultiDiGraph()
        self._collections: dict[CollectionID, CollectionInfo] = {}
        self._consumers: dict[CollectionID, list[tuple[NodeID, int]]] = {}

    @property
    def node_count(self) -> int:
        """Number of transform nodes in the graph."""
        return self._graph.number_of_nodes()

    @property
    def collection_count(self) -> int:
        """Number of collections produced inside the graph."""
        return len(self._collections)

    def has_node(self, node_id: str) -> bool:
        return self._graph.has_node(node_id)

    def has_collection(self, collection_id: str) -> bool:
        return collection_id in self._collections

    def get_nx_graph(self) -> MultiDiGraph[str]:
        """Return a frozen copy of the underlying NetworkX graph."""
        return nx.freeze(self._graph.copy())  # type: ignore[no-any-return]

    def add_collection(self, info: CollectionInfo) -> None:
        """Register a collection produced by ``info.producer``.

        Raises:
            GraphValidationError: If the collection id is already taken
        """
        if info.collection_id in self._collections:
            raise GraphValidationError(
                f"Collection '{info.collection_id}' is already defined",
                collection_id=info.collection_id,
            )
        self._collections[info.collection_id] = info
        self._connect(info.collection_id)

    def add_node(
        self,
        node_id: str,
        spec: TransformSpec,
        *,
        inputs: tuple[str, ...] = (),
        outputs: tuple[str, ...] = (),
    ) -> NodeInfo:
        """Add a transform node.

        Edges are created as soon as both the producer of a consumed
        collection and the consumer are present, whatever the insertion order.

        Raises:
            GraphValidationError: If the node id is already taken
        """
        if self._graph.has_node(node_id):
            raise GraphValidationError(f"Duplicate transform node '{node_id}'", node_id=node_id)
        info = NodeInfo(
            node_id=NodeID(node_id),
            spec=spec,
            inputs=tuple(CollectionID(c) for c in inputs),
            outputs=tuple(CollectionID(c) for c in outputs),
        )
        self._graph.add_node(node_id, info=info)
        for index, collection_id in enumerate(info.inputs):
            self._consumers.setdefault(collection_id, []).append((info.node_id, index))
        for collection_id in {*info.inputs, *info.outputs}:
            self._connect(collection_id)
        return info

    def _connect(self, collection_id: CollectionID) -> None:
        collection = self._collections.get(collection_id)
        if collection is None or not self._graph.has_node(collection.producer):
            return
        for consumer, index in self._consumers.get(collection_id, []):
            key = f"{collection_id}@{index}"
            if not self._graph.has_edge(collection.producer, consumer, key):
                self._graph.add_edge(collection.producer, consumer, key=key, collection=collection_id, index=index)

    def get_node_info(self, node_id: str) -> NodeInfo:
        """Get NodeInfo for a node.

        Raises:
            KeyError: If node doesn't exist
        """
        if not self._graph.has_node(node_id):
            raise KeyError(f"Node not found: {node_id}")
        return cast(NodeInfo, self._graph.nodes[node_id]["info"])

    def get_collection(self, collection_id: str) -> CollectionInfo:
        """Get CollectionInfo for a collection.

        Raises:
            KeyError: If the collection is not produced inside this graph
        """
        if collection_id not in self._collections:
            raise KeyError(f"Collection not found: {collection_id}")
        return self._collections[CollectionID(collection_id)]

    def nodes(self) -> list[NodeInfo]:
        """All nodes, in insertion order."""
        return [cast(NodeInfo, data["info"]) for _, data in self._graph.nodes(data=True)]

    def collections(self) -> list[CollectionInfo]:
        """All collections produced inside the graph, in insertion order."""
        return list(self._collections.values())

    def consumers(self, collection_id: str) -> list[NodeID]:
        """Nodes consuming a collection, in insertion order."""
        return [node_id for node_id, _ in self._consumers.get(CollectionID(collection_id), [])]

    def external_inputs(self) -> list[CollectionID]:
        """Consumed collections that are produced outside this graph, sorted."""
        return sorted(c for c in self._consumers if c not in self._collections)

    def is_primitive(self) -> bool:
        """True when no composite node is left."""
        return all(info.is_primitive for info in self.nodes())

    def is_acyclic(self) -> bool:
        return nx.is_directed_acyclic_graph(self._graph)

    def topological_order(self) -> list[NodeID]:
        """Return node ids in topological order.

        Ties are broken lexicographically, so the order is a pure function
        of the graph's structure.

        Raises:
            GraphValidationError: If graph has cycles
        """
        try:
            return [NodeID(n) for n in nx.lexicographical_topological_sort(self._graph)]
        except nx.NetworkXUnfeasible as e:
            raise GraphValidationError(f"Cannot sort graph: {e}") from e

    def validate(self, *, allow_external_inputs: bool = False) -> None:
        """Validate the graph structure.

        Validates:
        1. Graph is acyclic
        2. Every node has the input/output arity of its kind
        3. Every output collection exists and names the node as its producer
        4. Every consumed collection exists (unless ``allow_external_inputs``,
           used for composite fragments)
        5. Every collection's producer exists and lists it as an output

        Raises:
            GraphValidationError: If validation fails
        """
        if not self.is_acyclic():
            try:
                cycle = nx.find_cycle(self._graph)
                cycle_str = " -> ".join(f"{edge[0]}" for edge in cycle)
                raise GraphValidationError(f"Graph contains a cycle: {cycle_str}")
            except nx.NetworkXNoCycle:
                raise GraphValidationError("Graph contains a cycle") from None

        for info in self.nodes():
            self._validate_arity(info)
            for collection_id in info.outputs:
                collection = self._collections.get(collection_id)
                if collection is None:
                    raise GraphValidationError(
                        f"Node '{info.node_id}' declares output '{collection_id}' which is not defined",
                        node_id=info.node_id,
                        collection_id=collection_id,
                    )
                if collection.producer != info.node_id:
                    raise GraphValidationError(
                        f"Collection '{collection_id}' is declared as output of '{info.node_id}' "
                        f"but records '{collection.producer}' as its producer",
                        node_id=info.node_id,
                        collection_id=collection_id,
                    )
            if not allow_external_inputs:
                for collection_id in info.inputs:
                    if collection_id not in self._collections:
                        raise GraphValidationError(
                            f"Node '{info.node_id}' consumes unknown collection '{collection_id}'",
                            node_id=info.node_id,
                            collection_id=collection_id,
                        )

        for collection in self._collections.values():
            if not self._graph.has_node(collection.producer):
                raise GraphValidationError(
                    f"Collection '{collection.collection_id}' has no producer '{collection.producer}' in the graph",
                    collection_id=collection.collection_id,
                )
            if collection.collection_id not in self.get_node_info(collection.producer).outputs:
                raise GraphValidationError(
                    f"Producer '{collection.producer}' does not list '{collection.collection_id}' as an output",
                    node_id=collection.producer,
                    collection_id=collection.collection_id,
                )

    @staticmethod
    def _validate_arity(info: NodeInfo) -> None:
        min_inputs, max_inputs, outputs = _ARITY[info.kind]
        if len(info.inputs) < min_inputs or (max_inputs is not None and len(info.inputs) > max_inputs):
            expected = f"{min_inputs}" if min_inputs == max_inputs else f"at least {min_inputs}"
            raise GraphValidationError(
                f"{info.kind} node '{info.node_id}' must have {expected} input(s), found {len(info.inputs)}",
                node_id=info.node_id,
            )
        if isinstance(info.spec, ParDoSpec):
            outputs = len(info.spec.output_tags)
            if outputs == 0:
                raise GraphValidationError(f"par_do node '{info.node_id}' declares no output tags", node_id=info.node_id)
        if outputs is not None and len(info.outputs) != outputs:
            raise GraphValidationError(
                f"{info.kind} node '{info.node_id}' must have {outputs} output(s), found {len(info.outputs)}",
                node_id=info.node_id,
            )

    def describe(self) -> dict[str, Any]:
        """Structural description (kinds and wiring, no user functions)."""
        return {
            "nodes": [
                {
                    "node_id": node_id,
                    "kind": self.get_node_info(node_id).kind.value,
                    "inputs": list(self.get_node_info(node_id).inputs),
                    "outputs": list(self.get_node_info(node_id).outputs),
                }
                for node_id in self.topological_order()
            ],
            "collections": sorted(
                (collection.describe() for collection in self._collections.values()),
                key=lambda c: c["collection_id"],
            ),
        }
