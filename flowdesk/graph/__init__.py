"""
Flow Graph Module

Graph model and editing primitives:
- Node type canonicalization
- Typed node payloads
- Validated store mutations
- Decision label propagation
- Snapshot encoding
"""

from flowdesk.graph.canonical import (
    CanonicalType,
    NodeType,
    StepKind,
    canonicalize_payload,
    default_label,
    editor_type,
    normalize,
)
from flowdesk.graph.payloads import (
    DEFAULT_FALSE_LABEL,
    DEFAULT_TRUE_LABEL,
    CallFlowPayload,
    DatabaseStepPayload,
    DecisionPayload,
    EntryPayload,
    ExternalStepPayload,
    NodePayload,
    NotePayload,
    RequestStepPayload,
    StepPayload,
    build_payload,
)
from flowdesk.graph.models import (
    FALSE_HANDLE,
    TRUE_HANDLE,
    Edge,
    EdgePresentation,
    FlowGraph,
    Node,
    Position,
)
from flowdesk.graph.connections import Connection, build_edge
from flowdesk.graph.labels import branch_label, relabel_all, relabel_edges_from
from flowdesk.graph.store import GraphStore, MutationEvent, MutationKind
from flowdesk.graph.snapshot import SyncRequest, build_sync_request, parse_version
from flowdesk.graph.viewport import Viewport, ViewportGuardedStore

__all__ = [
    # Canonical types
    "CanonicalType",
    "NodeType",
    "StepKind",
    "normalize",
    "canonicalize_payload",
    "editor_type",
    "default_label",
    # Payloads
    "DEFAULT_TRUE_LABEL",
    "DEFAULT_FALSE_LABEL",
    "NodePayload",
    "StepPayload",
    "DatabaseStepPayload",
    "RequestStepPayload",
    "ExternalStepPayload",
    "DecisionPayload",
    "NotePayload",
    "EntryPayload",
    "CallFlowPayload",
    "build_payload",
    # Model
    "TRUE_HANDLE",
    "FALSE_HANDLE",
    "Position",
    "EdgePresentation",
    "Node",
    "Edge",
    "FlowGraph",
    # Editing
    "Connection",
    "build_edge",
    "branch_label",
    "relabel_edges_from",
    "relabel_all",
    "GraphStore",
    "MutationEvent",
    "MutationKind",
    # Snapshots
    "SyncRequest",
    "build_sync_request",
    "parse_version",
    # Viewport
    "Viewport",
    "ViewportGuardedStore",
]
