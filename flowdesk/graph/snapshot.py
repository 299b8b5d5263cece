"""
Snapshot Codec

Converts a flow graph to the backend's version-sync body and parses the
version snapshot returned when a flow is fetched. Every sync carries the
full graph; optional fields are explicit nulls, never omitted and never
blank strings.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field

from flowdesk.exceptions import MissingScopeError
from flowdesk.graph.canonical import canonicalize_payload
from flowdesk.graph.models import Edge, EdgePresentation, FlowGraph, Node, Position
from flowdesk.graph.payloads import build_payload

logger = structlog.get_logger(__name__)

# Render-only keys the canvas leaves inside node data
TRANSIENT_NODE_KEYS = frozenset({
    "__rf",
    "measured",
    "dragging",
    "selected",
    "zIndex",
    "position",
    "positionAbsolute",
    "width",
    "height",
})


# =============================================================================
# Value normalization
# =============================================================================


def clean_str(value: Any) -> Optional[str]:
    """Strip strings; blank and missing values become None."""
    if value is None:
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return str(value)


def clean_num(value: Any, default: float = 0.0) -> float:
    """Coerce to a finite float, falling back to ``default``."""
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def normalize_marker(marker: Any) -> Optional[str]:
    """Reduce a marker (string or ``{"type": ...}``) to its type name."""
    if not marker:
        return None
    if isinstance(marker, str):
        return marker
    if isinstance(marker, Mapping) and marker.get("type"):
        return str(marker["type"])
    return None


def sanitize_node_data(data: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """Drop render-only keys from raw node data."""
    return {k: v for k, v in (data or {}).items() if k not in TRANSIENT_NODE_KEYS}


# =============================================================================
# Wire models
# =============================================================================


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class NodeSnapshot(_WireModel):
    """One node as written to the version store."""

    key: str
    type: str
    label: Optional[str] = None
    description: Optional[str] = None
    x: float = 0.0
    y: float = 0.0
    order: int = 0
    data: Dict[str, Any] = Field(default_factory=dict)


class EdgeSnapshot(_WireModel):
    """One edge as written to the version store."""

    key: str
    source_key: str = Field(alias="sourceKey")
    target_key: str = Field(alias="targetKey")
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")
    edge_type: str = Field(default="smoothstep", alias="edgeType")
    label: Optional[str] = None
    animated: bool = True
    style: Dict[str, Any] = Field(default_factory=lambda: {"strokeWidth": 1.5})
    path_options: Dict[str, Any] = Field(
        default_factory=lambda: {"offset": 12, "borderRadius": 8},
        alias="pathOptions",
    )
    marker_start: Optional[str] = Field(default=None, alias="markerStart")
    marker_end: Optional[str] = Field(default="arrowclosed", alias="markerEnd")
    data: Optional[Dict[str, Any]] = None


class SyncRequest(_WireModel):
    """Body of ``PUT /flows/{flow_id}/version/sync``."""

    company_id: str = Field(alias="empresaId")
    nodes: List[NodeSnapshot] = Field(default_factory=list)
    edges: List[EdgeSnapshot] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# =============================================================================
# Outbound
# =============================================================================


def node_to_snapshot(node: Node, order: int) -> NodeSnapshot:
    return NodeSnapshot(
        key=node.node_id,
        type=node.node_type.value,
        label=clean_str(node.label),
        description=clean_str(node.description),
        x=clean_num(node.position.x),
        y=clean_num(node.position.y),
        order=order,
        data=node.payload.to_wire(),
    )


def edge_to_snapshot(edge: Edge) -> EdgeSnapshot:
    pres = edge.presentation
    return EdgeSnapshot(
        key=edge.edge_id,
        source_key=edge.source,
        target_key=edge.target,
        source_handle=edge.source_handle or None,
        target_handle=edge.target_handle or None,
        edge_type=pres.edge_type or "smoothstep",
        label=clean_str(edge.label),
        animated=bool(pres.animated),
        style=dict(pres.style) if pres.style else {"strokeWidth": 1.5},
        path_options=dict(pres.path_options) if pres.path_options else {"offset": 12, "borderRadius": 8},
        marker_start=normalize_marker(pres.marker_start),
        marker_end=normalize_marker(pres.marker_end) or "arrowclosed",
        data=pres.data,
    )


def build_sync_request(graph: FlowGraph, company_id: Optional[str] = None) -> SyncRequest:
    """
    Serialize the whole graph into a sync body.

    Raises:
        MissingScopeError: If the graph has no flow id or no company id
    """
    company_id = company_id or graph.company_id
    if not graph.flow_id or not company_id:
        raise MissingScopeError(flow_id=graph.flow_id, company_id=company_id)

    return SyncRequest(
        company_id=company_id,
        nodes=[node_to_snapshot(n, i) for i, n in enumerate(graph.iter_nodes())],
        edges=[edge_to_snapshot(e) for e in graph.iter_edges()],
    )


# =============================================================================
# Inbound
# =============================================================================


def parse_node(raw: Mapping[str, Any]) -> Node:
    """Build a node from a persisted node record, canonicalizing its type."""
    raw_data = raw.get("data") or {}
    data = sanitize_node_data(raw_data)
    canonical, data = canonicalize_payload(raw.get("type") or "step", data)

    label = raw.get("label")
    if label is None:
        label = data.get("label")
    description = raw.get("description")
    if description is None:
        description = data.get("description")
    data.pop("label", None)
    data.pop("description", None)

    position = raw.get("position") or {}
    x = raw.get("x", position.get("x"))
    y = raw.get("y", position.get("y"))

    return Node(
        node_id=str(raw.get("key") or raw.get("id")),
        canonical=canonical,
        payload=build_payload(canonical, data),
        label=label if label is not None else "",
        description=description,
        position=Position(clean_num(x), clean_num(y)),
    )


def parse_edge(raw: Mapping[str, Any], index: int) -> Edge:
    """Build an edge from a persisted edge record."""
    data = raw.get("data") or None
    handles = (data or {}).get("handles") or {}
    source = raw.get("sourceKey") or raw.get("source")
    target = raw.get("targetKey") or raw.get("target")
    edge_id = raw.get("key") or raw.get("id") or f"{source}-{target}-{index}"

    return Edge(
        edge_id=str(edge_id),
        source=str(source),
        target=str(target),
        source_handle=raw.get("sourceHandle") or handles.get("source") or None,
        target_handle=raw.get("targetHandle") or handles.get("target") or None,
        label=raw.get("label"),
        presentation=EdgePresentation(
            edge_type=raw.get("edgeType") or raw.get("type") or "smoothstep",
            animated=bool(raw.get("animated", True)),
            style=raw.get("style") or {"strokeWidth": 1.5},
            path_options=(
                raw.get("pathOptions")
                or (data or {}).get("pathOptions")
                or {"offset": 12, "borderRadius": 8}
            ),
            marker_start=normalize_marker(raw.get("markerStart")),
            marker_end=normalize_marker(raw.get("markerEnd")) or "arrowclosed",
            data=data,
        ),
    )


def parse_version(graph: FlowGraph, version: Optional[Mapping[str, Any]]) -> FlowGraph:
    """
    Fill ``graph`` with the nodes and edges of a version snapshot.

    Edges whose endpoints are missing from the snapshot are dropped with a
    warning so the graph always satisfies the referential invariant.
    Nodes are ordered by their persisted ``order`` when present.
    """
    version = version or {}
    raw_nodes = list(version.get("nodes") or [])
    raw_nodes.sort(key=lambda n: clean_num(n.get("order"), default=math.inf))

    for raw in raw_nodes:
        node = parse_node(raw)
        if node.node_id in graph.nodes:
            logger.warning("duplicate_node_dropped", flow_id=graph.flow_id, node_id=node.node_id)
            continue
        graph.nodes[node.node_id] = node

    for index, raw in enumerate(version.get("edges") or []):
        edge = parse_edge(raw, index)
        if edge.source not in graph.nodes or edge.target not in graph.nodes:
            logger.warning(
                "orphan_edge_dropped",
                flow_id=graph.flow_id,
                edge_id=edge.edge_id,
                source=edge.source,
                target=edge.target,
            )
            continue
        if edge.edge_id in graph.edges:
            logger.warning("duplicate_edge_dropped", flow_id=graph.flow_id, edge_id=edge.edge_id)
            continue
        graph.edges[edge.edge_id] = edge

    return graph


__all__ = [
    "TRANSIENT_NODE_KEYS",
    "clean_str",
    "clean_num",
    "normalize_marker",
    "sanitize_node_data",
    "NodeSnapshot",
    "EdgeSnapshot",
    "SyncRequest",
    "node_to_snapshot",
    "edge_to_snapshot",
    "build_sync_request",
    "parse_node",
    "parse_edge",
    "parse_version",
]
