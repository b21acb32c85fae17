# src/streamplan/translation/operators.py
"""Native operator graph produced by translation.

Each operator records the transform node it came from, an operator kind,
a kind-specific payload and its ordered inputs. The graph is append-only
and operators can only be added after their upstreams, so insertion order
is always a valid topological order.

User functions, sources and sinks travel inside payloads untouched. They
appear in descriptions by qualified name or by their own describe() output,
which keeps fingerprints free of runtime data.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import networkx as nx
from networkx import MultiDiGraph

from streamplan.contracts.enums import OperatorKind
from streamplan.contracts.errors import TranslationError
from streamplan.contracts.io import SinkProtocol, SourceProtocol
from streamplan.contracts.types import NodeID, OperatorID
from streamplan.contracts.windowing import WindowingStrategy
from streamplan.core.canonical import stable_hash
from streamplan.core.graph.models import MAIN_TAG, function_name


@dataclass(frozen=True, slots=True)
class ReadPayload:
    source: SourceProtocol

    def describe(self) -> dict[str, Any]:
        return {"source": self.source.describe()}


@dataclass(frozen=True, slots=True)
class FlatMapPayload:
    fn: Callable[[Any], Any]
    output_tags: tuple[str, ...]

    def describe(self) -> dict[str, Any]:
        return {"fn": function_name(self.fn), "output_tags": list(self.output_tags)}


@dataclass(frozen=True, slots=True)
class WindowPayload:
    """Windowing carried by ASSIGN_WINDOWS, KEYED_WINDOW and GROUP_BY_WINDOW_KEY."""

    windowing: WindowingStrategy

    def describe(self) -> dict[str, Any]:
        return {"windowing": self.windowing.describe()}


@dataclass(frozen=True, slots=True)
class SinkPayload:
    sink: SinkProtocol
    num_shards: int | None
    windowed_writes: bool

    def describe(self) -> dict[str, Any]:
        return {
            "sink": self.sink.describe(),
            "num_shards": self.num_shards,
            "windowed_writes": self.windowed_writes,
        }


@dataclass(frozen=True, slots=True)
class NoPayload:
    """KEY_BY and EXPLODE_WINDOWS need no parameters."""

    def describe(self) -> dict[str, Any]:
        return {}


type OperatorPayload = ReadPayload | FlatMapPayload | WindowPayload | SinkPayload | NoPayload


@dataclass(frozen=True, slots=True)
class OperatorInput:
    """One ordered input of an operator: an upstream operator's tagged output."""

    operator_id: OperatorID
    tag: str = MAIN_TAG


@dataclass(frozen=True, slots=True)
class Operator:
    """A native engine operator.

    Attributes:
        operator_id: Unique id, ``<node_id>/<kind>``
        kind: Operator kind
        node_id: Transform node this operator was translated from
        payload: Kind-specific parameters
        inputs: Upstream outputs, in the order of the node's logical inputs
        output_tags: Tags this operator emits on (empty for sinks)
    """

    operator_id: OperatorID
    kind: OperatorKind
    node_id: NodeID
    payload: OperatorPayload
    inputs: tuple[OperatorInput, ...] = ()
    output_tags: tuple[str, ...] = (MAIN_TAG,)

    def describe(self) -> dict[str, Any]:
        return {
            "operator_id": self.operator_id,
            "kind": self.kind.value,
            "node_id": self.node_id,
            "inputs": [[i.operator_id, i.tag] for i in self.inputs],
            "output_tags": list(self.output_tags),
            "payload": self.payload.describe(),
        }


class OperatorGraph:
    """Engine-native operator DAG.

    Wraps NetworkX MultiDiGraph: an edge runs from an upstream operator to
    each consumer of one of its tags, keyed ``"<tag>@<input index>"``.
    """

    def __init__(self) -> None:
        self._graph: MultiDiGraph[str] = nx.MultiDiGraph()
        self._order: list[OperatorID] = []

    def __len__(self) -> int:
        return len(self._order)

    def __contains__(self, operator_id: object) -> bool:
        return isinstance(operator_id, str) and self._graph.has_node(operator_id)

    def add_operator(self, operator: Operator) -> Operator:
        """Append an operator; its upstreams must already be present.

        Raises:
            TranslationError: On duplicate ids, unknown upstreams or unknown tags
        """
        if self._graph.has_node(operator.operator_id):
            raise TranslationError(f"Duplicate operator '{operator.operator_id}'", node_id=operator.node_id)
        for upstream in operator.inputs:
            if not self._graph.has_node(upstream.operator_id):
                raise TranslationError(
                    f"Operator '{operator.operator_id}' reads from unknown operator '{upstream.operator_id}'",
                    node_id=operator.node_id,
                )
            if upstream.tag not in self.get(upstream.operator_id).output_tags:
                raise TranslationError(
                    f"Operator '{operator.operator_id}' reads unknown tag '{upstream.tag}' of '{upstream.operator_id}'",
                    node_id=operator.node_id,
                )
        self._graph.add_node(operator.operator_id, operator=operator)
        for index, upstream in enumerate(operator.inputs):
            self._graph.add_edge(
                upstream.operator_id,
                operator.operator_id,
                key=f"{upstream.tag}@{index}",
                tag=upstream.tag,
                index=index,
            )
        self._order.append(operator.operator_id)
        return operator

    def get(self, operator_id: str) -> Operator:
        """Get an operator by id.

        Raises:
            KeyError: If operator doesn't exist
        """
        if not self._graph.has_node(operator_id):
            raise KeyError(f"Operator not found: {operator_id}")
        return cast(Operator, self._graph.nodes[operator_id]["operator"])

    def operators(self) -> list[Operator]:
        """All operators in insertion (topological) order."""
        return [self.get(operator_id) for operator_id in self._order]

    def downstream(self, operator_id: str, tag: str = MAIN_TAG) -> list[tuple[OperatorID, int]]:
        """Consumers of one tag of an operator as (operator id, input index), sorted."""
        return sorted(
            (OperatorID(to_id), data["index"])
            for _, to_id, data in self._graph.out_edges(operator_id, data=True)
            if data["tag"] == tag
        )

    def get_nx_graph(self) -> MultiDiGraph[str]:
        """Return a frozen copy of the underlying NetworkX graph."""
        return nx.freeze(self._graph.copy())  # type: ignore[no-any-return]

    def kinds(self) -> list[OperatorKind]:
        return [operator.kind for operator in self.operators()]

    def describe(self) -> list[dict[str, Any]]:
        return [operator.describe() for operator in self.operators()]

    def fingerprint(self) -> str:
        """Stable hash of the operator structure.

        Equal for two translations of the same graph and options, whatever
        the identity of the Python objects involved.
        """
        return stable_hash(self.describe())
