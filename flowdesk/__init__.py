"""
flowdesk

Client-side engine for a visual workflow editor: a canonical flow graph
model with validated mutations, and a debounced single-flight sync of the
whole graph to the dashboard backend.

Example:
    >>> from flowdesk import EditorSession, FlowApiClient
    >>> async with FlowApiClient() as client:
    ...     session = EditorSession(client, company_id="emp_1")
    ...     await session.open("flow_123")
    ...     step = session.add_node("step:database")
    ...     session.update_node(step.node_id, {"db": {"table": "clientes"}})
    ...     await session.save_now()
"""

__version__ = "1.0.0"

from flowdesk.client import FlowApiClient
from flowdesk.config import Endpoints, FlowDeskSettings, get_settings
from flowdesk.exceptions import (
    ApiError,
    DuplicateIdError,
    FlowDeskError,
    InvalidConnection,
    InvalidNodePatch,
    LoadAborted,
    LoadError,
    LoadNotFound,
    MissingScopeError,
    SelfReferenceError,
    SyncTransportError,
    UnknownNodeReference,
)
from flowdesk.graph import (
    CanonicalType,
    Connection,
    Edge,
    FlowGraph,
    GraphStore,
    Node,
    NodeType,
    Position,
    StepKind,
    normalize,
)
from flowdesk.loader import FlowLoader
from flowdesk.logging import setup_logging
from flowdesk.resolver import FlowOption, SubflowCandidates, SubflowResolver
from flowdesk.session import EditorSession
from flowdesk.sync import SyncResult, SyncScheduler, SyncState

__all__ = [
    # Session
    "EditorSession",
    "FlowApiClient",
    "FlowLoader",
    "SubflowResolver",
    "FlowOption",
    "SubflowCandidates",
    "SyncScheduler",
    "SyncResult",
    "SyncState",

    # Graph
    "CanonicalType",
    "NodeType",
    "StepKind",
    "normalize",
    "Connection",
    "Edge",
    "Node",
    "Position",
    "FlowGraph",
    "GraphStore",

    # Config
    "FlowDeskSettings",
    "get_settings",
    "Endpoints",
    "setup_logging",

    # Exceptions
    "FlowDeskError",
    "InvalidConnection",
    "UnknownNodeReference",
    "DuplicateIdError",
    "InvalidNodePatch",
    "SelfReferenceError",
    "ApiError",
    "SyncTransportError",
    "MissingScopeError",
    "LoadError",
    "LoadAborted",
    "LoadNotFound",
]
