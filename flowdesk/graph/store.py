"""
Graph Store

Owns the in-memory flow graph of one editing session and exposes its
mutation operations. Every mutation is validated in full before anything
is written, so a rejected mutation leaves the graph untouched. Listeners
run after the whole mutation (including decision edge relabelling) has
been applied.
"""

from __future__ import annotations

import math
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Union

import structlog
from pydantic import ValidationError

from flowdesk.exceptions import (
    DuplicateIdError,
    InvalidConnection,
    InvalidNodePatch,
    SelfReferenceError,
    UnknownNodeReference,
)
from flowdesk.graph.canonical import (
    CanonicalType,
    NodeType,
    canonicalize_payload,
    default_label,
    editor_type,
)
from flowdesk.graph.connections import Connection, build_edge
from flowdesk.graph.labels import branch_label, relabel_edges_from
from flowdesk.graph.models import (
    BRANCH_HANDLES,
    Edge,
    EdgePresentation,
    FlowGraph,
    Node,
    Position,
)
from flowdesk.graph.payloads import NodePayload, build_payload, merge_payload

logger = structlog.get_logger(__name__)

DEFAULT_NODE_POSITION = (300.0, 300.0)

# Patch keys that address the node itself rather than its payload
_NODE_FIELDS = frozenset({"label", "description", "position"})
_IMMUTABLE_FIELDS = frozenset({"id", "node_id", "type", "node_type", "kind"})


class MutationKind(str, Enum):
    """Kinds of store mutations."""
    NODE_ADDED = "node_added"
    NODE_UPDATED = "node_updated"
    NODE_REMOVED = "node_removed"
    EDGE_ADDED = "edge_added"
    EDGE_REMOVED = "edge_removed"


@dataclass(frozen=True)
class MutationEvent:
    """Notification sent to listeners after a successful mutation."""
    kind: MutationKind
    target_id: str
    revision: int


MutationListener = Callable[[MutationEvent], None]


def _field_errors(exc: ValidationError) -> dict:
    return {
        ".".join(str(part) for part in err["loc"]) or "payload": err["msg"]
        for err in exc.errors()
    }


def _coerce_position(
    value: Union[Position, Mapping[str, Any], tuple, None],
    node_id: Optional[str] = None,
) -> Optional[Position]:
    if value is None:
        return None
    try:
        if isinstance(value, Position):
            x, y = value.x, value.y
        elif isinstance(value, Mapping):
            x, y = value.get("x", 0.0), value.get("y", 0.0)
        else:
            x, y = value
        position = Position(float(x), float(y))
    except (TypeError, ValueError) as e:
        raise InvalidNodePatch(
            "Position must be a pair of numbers",
            node_id=node_id,
            field_errors={"position": str(e)},
        ) from e
    if not (math.isfinite(position.x) and math.isfinite(position.y)):
        raise InvalidNodePatch(
            "Position must be finite",
            node_id=node_id,
            field_errors={"position": f"({position.x}, {position.y})"},
        )
    return position


class GraphStore:
    """
    In-memory node/edge collection with validated mutations.

    Example:
        >>> store = GraphStore(FlowGraph(flow_id="flow_1"))
        >>> decision = store.add_node("decision")
        >>> target = store.add_node("step")
        >>> edge = store.add_edge(Connection(decision.node_id, target.node_id, "false"))
        >>> _ = store.update_node(decision.node_id, {"falseLabel": "ERRO"})
        >>> store.graph.get_edge(edge.edge_id).label
        'ERRO'
    """

    def __init__(self, graph: Optional[FlowGraph] = None) -> None:
        self._graph = graph or FlowGraph()
        self._listeners: List[MutationListener] = []
        self._revision = 0
        self._dirty = False

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def graph(self) -> FlowGraph:
        return self._graph

    @property
    def revision(self) -> int:
        return self._revision

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    def mark_clean(self) -> None:
        self._dirty = False

    def hydrate(self, graph: FlowGraph) -> None:
        """Replace the graph wholesale without notifying listeners."""
        self._graph = graph
        self._dirty = False
        logger.debug(
            "store_hydrated",
            flow_id=graph.flow_id,
            nodes=len(graph.nodes),
            edges=len(graph.edges),
        )

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def subscribe(self, listener: MutationListener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, kind: MutationKind, target_id: str) -> None:
        self._revision += 1
        self._dirty = True
        event = MutationEvent(kind=kind, target_id=target_id, revision=self._revision)
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception("mutation_listener_failed", kind=kind.value, target_id=target_id)

    # -------------------------------------------------------------------------
    # Nodes
    # -------------------------------------------------------------------------

    def _check_self_reference(self, node_id: str, payload: NodePayload) -> None:
        target = getattr(payload, "target_flow_id", None)
        flow_id = self._graph.flow_id
        if flow_id and target and str(target) == str(flow_id):
            raise SelfReferenceError(node_id, flow_id)

    def add_node(
        self,
        node_type: Union[str, NodeType, CanonicalType],
        position: Union[Position, Mapping[str, Any], tuple, None] = None,
        payload: Optional[Mapping[str, Any]] = None,
        kind: Optional[str] = None,
        label: Optional[str] = None,
        description: Optional[str] = None,
        node_id: Optional[str] = None,
    ) -> Node:
        """
        Create a node with the canonical defaults of its type.

        Args:
            node_type: Any spelling accepted by the canonicalizer
            position: Canvas position, defaults to (300, 300)
            payload: Initial payload values merged over the defaults
            kind: Step kind, when not already encoded in ``node_type``
            label: Node label, defaults to the palette label of the type
            description: Optional description
            node_id: Explicit id, generated when omitted

        Raises:
            DuplicateIdError: If ``node_id`` is already taken
            InvalidNodePatch: If the payload fails validation
        """
        data = dict(payload or {})
        if kind and "kind" not in data:
            data["kind"] = kind
        canonical, data = canonicalize_payload(node_type, data)

        node_id = node_id or f"{editor_type(canonical)}-{uuid.uuid4().hex[:8]}"
        if node_id in self._graph.nodes:
            raise DuplicateIdError("Node", node_id)

        try:
            built = build_payload(canonical, data)
        except ValidationError as e:
            raise InvalidNodePatch(
                f"Invalid payload for new {editor_type(canonical)} node",
                node_id=node_id,
                field_errors=_field_errors(e),
            ) from e
        self._check_self_reference(node_id, built)

        x, y = DEFAULT_NODE_POSITION
        node = Node(
            node_id=node_id,
            canonical=canonical,
            payload=built,
            label=label if label is not None else default_label(canonical),
            description=description,
            position=_coerce_position(position, node_id) or Position(x, y),
        )
        self._graph.nodes[node_id] = node
        logger.debug("node_added", node_id=node_id, node_type=editor_type(canonical))
        self._commit(MutationKind.NODE_ADDED, node_id)
        return node

    def update_node(self, node_id: str, patch: Mapping[str, Any]) -> Optional[Node]:
        """
        Merge a field-level patch into a node.

        ``label``, ``description`` and ``position`` address the node; every
        other key is a payload field. Id, type and kind cannot change.
        Patching a decision node's branch labels relabels its edges in the
        same mutation.

        Returns:
            The updated node, or None if ``node_id`` does not exist

        Raises:
            InvalidNodePatch: If the payload patch fails validation
            SelfReferenceError: If a callFlow target would be its own flow
        """
        node = self._graph.get_node(node_id)
        if node is None:
            logger.warning("update_unknown_node_ignored", node_id=node_id)
            return None

        ignored = sorted(k for k in patch if k in _IMMUTABLE_FIELDS)
        if ignored:
            logger.warning("immutable_node_fields_ignored", node_id=node_id, fields=ignored)

        payload_patch = {
            k: v for k, v in patch.items()
            if k not in _NODE_FIELDS and k not in _IMMUTABLE_FIELDS
        }

        new_payload = node.payload
        if payload_patch:
            try:
                new_payload = merge_payload(node.payload, payload_patch)
            except ValidationError as e:
                raise InvalidNodePatch(
                    f"Invalid patch for node '{node_id}'",
                    node_id=node_id,
                    field_errors=_field_errors(e),
                ) from e
            self._check_self_reference(node_id, new_payload)

        new_position = node.position
        if "position" in patch:
            new_position = _coerce_position(patch["position"], node_id) or node.position

        # Everything validated; apply.
        node.payload = new_payload
        node.position = new_position
        if "label" in patch:
            node.label = patch["label"]
        if "description" in patch:
            node.description = patch["description"]

        relabelled = relabel_edges_from(self._graph, node_id) if node.is_decision else []
        logger.debug(
            "node_updated",
            node_id=node_id,
            fields=sorted(patch.keys()),
            relabelled_edges=len(relabelled),
        )
        self._commit(MutationKind.NODE_UPDATED, node_id)
        return node

    def move_node(self, node_id: str, x: float, y: float) -> Optional[Node]:
        """Position-only patch."""
        return self.update_node(node_id, {"position": Position(x, y)})

    def remove_node(self, node_id: str) -> bool:
        """
        Delete a node and every edge whose source or target it is.

        Returns:
            False if the node did not exist
        """
        if node_id not in self._graph.nodes:
            logger.warning("remove_unknown_node_ignored", node_id=node_id)
            return False

        incident = self._graph.get_incident_edges(node_id)
        for edge in incident:
            del self._graph.edges[edge.edge_id]
        del self._graph.nodes[node_id]

        logger.debug("node_removed", node_id=node_id, cascaded_edges=len(incident))
        self._commit(MutationKind.NODE_REMOVED, node_id)
        return True

    # -------------------------------------------------------------------------
    # Edges
    # -------------------------------------------------------------------------

    def add_edge(
        self,
        connection: Connection,
        presentation: Optional[EdgePresentation] = None,
    ) -> Edge:
        """
        Connect two existing nodes.

        A connection leaving a decision must use its "true" or "false"
        handle and is labelled from the decision's current branch labels.

        Raises:
            InvalidConnection: If source or target is missing, or a decision
                source is left through a non-branch handle
            UnknownNodeReference: If source or target is not in the graph
        """
        edge = build_edge(connection, presentation=presentation)

        for endpoint in (edge.source, edge.target):
            if endpoint not in self._graph.nodes:
                logger.warning(
                    "connection_rejected",
                    source=edge.source,
                    target=edge.target,
                    missing=endpoint,
                )
                raise UnknownNodeReference(node_id=endpoint)

        source = self._graph.get_node(edge.source)
        if source.is_decision and edge.source_handle not in BRANCH_HANDLES:
            logger.warning(
                "connection_rejected",
                source=edge.source,
                target=edge.target,
                source_handle=edge.source_handle,
            )
            raise InvalidConnection(
                "Decision connections must leave through the 'true' or 'false' handle",
                source=edge.source,
                target=edge.target,
            )

        if edge.edge_id in self._graph.edges:
            raise DuplicateIdError("Edge", edge.edge_id)

        edge.label = branch_label(source, edge.source_handle)
        self._graph.edges[edge.edge_id] = edge

        logger.debug("edge_added", edge_id=edge.edge_id, source=edge.source, target=edge.target)
        self._commit(MutationKind.EDGE_ADDED, edge.edge_id)
        return edge

    def remove_edge(self, edge_id: str) -> bool:
        """Delete an edge; returns False if it did not exist."""
        if edge_id not in self._graph.edges:
            logger.warning("remove_unknown_edge_ignored", edge_id=edge_id)
            return False

        del self._graph.edges[edge_id]
        logger.debug("edge_removed", edge_id=edge_id)
        self._commit(MutationKind.EDGE_REMOVED, edge_id)
        return True


__all__ = [
    "DEFAULT_NODE_POSITION",
    "MutationKind",
    "MutationEvent",
    "MutationListener",
    "GraphStore",
]
