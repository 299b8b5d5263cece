"""
Flow Graph Model

In-memory representation of one flow being edited: nodes keyed by id in
insertion order, edges keyed by id in insertion order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from flowdesk.graph.canonical import CanonicalType, NodeType
from flowdesk.graph.payloads import (
    CallFlowPayload,
    DecisionPayload,
    NodePayload,
)

TRUE_HANDLE = "true"
FALSE_HANDLE = "false"
BRANCH_HANDLES = (TRUE_HANDLE, FALSE_HANDLE)


@dataclass
class Position:
    """Node position in the editor canvas."""
    x: float = 0.0
    y: float = 0.0


@dataclass
class EdgePresentation:
    """Rendering attributes of an edge. Not part of the graph structure."""
    edge_type: str = "smoothstep"
    animated: bool = True
    style: Dict[str, Any] = field(default_factory=lambda: {"strokeWidth": 1.5})
    path_options: Dict[str, Any] = field(
        default_factory=lambda: {"offset": 12, "borderRadius": 8}
    )
    marker_start: Optional[str] = None
    marker_end: Optional[str] = "arrowclosed"
    data: Optional[Dict[str, Any]] = None


@dataclass
class Node:
    """A node of the flow graph."""
    node_id: str
    canonical: CanonicalType
    payload: NodePayload
    label: Optional[str] = None
    description: Optional[str] = None
    position: Position = field(default_factory=Position)

    @property
    def node_type(self) -> NodeType:
        return self.canonical.node_type

    @property
    def kind(self) -> Optional[str]:
        return self.canonical.kind

    @property
    def is_decision(self) -> bool:
        return self.canonical.node_type is NodeType.DECISION

    @property
    def is_call_flow(self) -> bool:
        return self.canonical.node_type is NodeType.CALL_FLOW

    @property
    def decision(self) -> Optional[DecisionPayload]:
        if isinstance(self.payload, DecisionPayload):
            return self.payload
        return None

    @property
    def call_flow(self) -> Optional[CallFlowPayload]:
        if isinstance(self.payload, CallFlowPayload):
            return self.payload
        return None


@dataclass
class Edge:
    """A directed edge between two nodes."""
    edge_id: str
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    label: Optional[str] = None
    presentation: EdgePresentation = field(default_factory=EdgePresentation)


@dataclass
class FlowGraph:
    """Complete flow graph owned by one editing session."""
    flow_id: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    company_id: Optional[str] = None
    app_id: Optional[str] = None

    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: Dict[str, Edge] = field(default_factory=dict)

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        return self.edges.get(edge_id)

    def iter_nodes(self) -> Iterator[Node]:
        return iter(list(self.nodes.values()))

    def iter_edges(self) -> Iterator[Edge]:
        return iter(list(self.edges.values()))

    def get_outgoing_edges(self, node_id: str) -> List[Edge]:
        """Get edges leaving a node."""
        return [e for e in self.edges.values() if e.source == node_id]

    def get_incident_edges(self, node_id: str) -> List[Edge]:
        return [
            e for e in self.edges.values()
            if e.source == node_id or e.target == node_id
        ]

    def validate(self) -> List[str]:
        """Return a list of structural problems; empty when consistent."""
        errors = []

        for edge in self.edges.values():
            if edge.source not in self.nodes:
                errors.append(f"Edge {edge.edge_id} references missing source {edge.source}")
            if edge.target not in self.nodes:
                errors.append(f"Edge {edge.edge_id} references missing target {edge.target}")

        for node in self.nodes.values():
            call = node.call_flow
            if call and self.flow_id and call.target_flow_id == self.flow_id:
                errors.append(f"Node {node.node_id} calls its own flow")

        return errors


__all__ = [
    "TRUE_HANDLE",
    "FALSE_HANDLE",
    "BRANCH_HANDLES",
    "Position",
    "EdgePresentation",
    "Node",
    "Edge",
    "FlowGraph",
]
