"""Persisted workflow graph format.

    {"nodes": [{id, type, data, position}], "edges": [{id, source, target}]}

The authoring model is a strict linear chain, so the edges are always the
consecutive pairs of the node list. ``position`` is cosmetic.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

# Layout of the synthesized chain
NODE_X = 250
NODE_Y_SPACING = 100


@dataclass(frozen=True)
class GraphNode:
    """One persisted node."""

    id: str
    type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    position: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "data": dict(self.data),
            "position": dict(self.position),
        }


@dataclass(frozen=True)
class GraphEdge:
    """One persisted edge between consecutive nodes."""

    id: str
    source: str
    target: str

    @classmethod
    def between(cls, source: str, target: str) -> GraphEdge:
        return cls(id=f"{source}-{target}", source=source, target=target)

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}


@dataclass(frozen=True)
class WorkflowGraph:
    """Nodes plus the edges between them, as stored by the backend."""

    nodes: tuple[GraphNode, ...] = ()
    edges: tuple[GraphEdge, ...] = ()

    @classmethod
    def chain(cls, nodes: list[GraphNode]) -> WorkflowGraph:
        """Build a graph whose edges link each node to the next."""
        edges = tuple(GraphEdge.between(a.id, b.id) for a, b in zip(nodes, nodes[1:]))
        return cls(nodes=tuple(nodes), edges=edges)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> WorkflowGraph:
        """Parse a persisted graph.

        Raw node dicts are kept as-is (including missing fields); hydration
        into steps fills the defaults. Edges that are not objects with a
        source and target are dropped.

        Raises:
            ValueError: If ``data`` is not a mapping or ``nodes`` is not a list.
        """
        if not isinstance(data, Mapping):
            raise ValueError(f"Workflow graph must be an object, got {type(data).__name__}")

        raw_nodes = data.get("nodes", [])
        if not isinstance(raw_nodes, list):
            raise ValueError("Workflow graph 'nodes' must be a list")

        nodes = []
        for raw in raw_nodes:
            if not isinstance(raw, Mapping):
                continue
            node_data = raw.get("data")
            position = raw.get("position")
            nodes.append(
                GraphNode(
                    id=str(raw["id"]) if raw.get("id") else "",
                    type=str(raw["type"]) if raw.get("type") else "",
                    data=dict(node_data) if isinstance(node_data, Mapping) else {},
                    position=dict(position) if isinstance(position, Mapping) else {},
                )
            )

        edges = []
        raw_edges = data.get("edges", [])
        for raw in raw_edges if isinstance(raw_edges, list) else []:
            if not isinstance(raw, Mapping) or "source" not in raw or "target" not in raw:
                continue
            source, target = str(raw["source"]), str(raw["target"])
            edge_id = str(raw.get("id") or f"{source}-{target}")
            edges.append(GraphEdge(id=edge_id, source=source, target=target))

        return cls(nodes=tuple(nodes), edges=tuple(edges))

    def to_dict(self) -> dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
        }

    def is_chain(self) -> bool:
        """True if the edges are exactly the consecutive pairs of the nodes."""
        return self.edges == WorkflowGraph.chain(list(self.nodes)).edges


def chain_position(index: int) -> dict[str, int]:
    """Cosmetic position of the node at ``index`` in the chain."""
    return {"x": NODE_X, "y": index * NODE_Y_SPACING}
