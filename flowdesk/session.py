"""
flowdesk - Editor Session

Public entry point of the engine. A session owns one graph store, loads or
creates the flow being edited, and keeps the backend in sync with every
mutation through a debounced single-flight scheduler.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping, Optional, Union

import structlog

from flowdesk.client import FlowApiClient
from flowdesk.config import FlowDeskSettings
from flowdesk.exceptions import InvalidNodePatch, LoadNotFound
from flowdesk.graph.canonical import CanonicalType, NodeType
from flowdesk.graph.connections import Connection
from flowdesk.graph.models import Edge, EdgePresentation, FlowGraph, Node, Position
from flowdesk.graph.snapshot import build_sync_request
from flowdesk.graph.store import GraphStore, MutationEvent
from flowdesk.graph.viewport import ViewportGuardedStore, ViewportHost
from flowdesk.loader import FlowLoader
from flowdesk.resolver import SubflowCandidates, SubflowResolver
from flowdesk.sync.scheduler import SyncResult, SyncScheduler

logger = structlog.get_logger(__name__)

NEW_FLOW = "new"


class EditorSession:
    """
    One user editing one flow.

    Args:
        client: Backend client
        company_id: Company scope of every request
        settings: Engine settings; defaults to the client's
        on_sync_complete: Receives each SyncResult while the session is open
        viewport_host: Canvas whose camera structural edits must not move

    Example:
        >>> async with FlowApiClient() as client:
        ...     session = EditorSession(client, company_id="emp_1")
        ...     await session.open("flow_123")
        ...     decision = session.add_node("decision")
        ...     result = await session.save_now()
    """

    def __init__(
        self,
        client: FlowApiClient,
        company_id: Optional[str],
        settings: Optional[FlowDeskSettings] = None,
        on_sync_complete: Optional[Callable[[SyncResult], None]] = None,
        viewport_host: Optional[ViewportHost] = None,
    ) -> None:
        self._client = client
        self.company_id = company_id
        self.settings = settings or client.settings
        self._on_sync_complete = on_sync_complete

        self.store = GraphStore()
        self._editor: Union[GraphStore, ViewportGuardedStore] = (
            ViewportGuardedStore(self.store, viewport_host) if viewport_host else self.store
        )
        self.loader = FlowLoader(client)
        self.resolver = SubflowResolver(client)
        self.scheduler = SyncScheduler(
            self._send_snapshot,
            debounce_seconds=self.settings.sync_debounce_seconds,
            on_complete=self._handle_sync_complete,
            revision_provider=lambda: self.store.revision,
            flow_provider=lambda: self.flow_id,
        )
        self._unsubscribe = self.store.subscribe(self._on_mutation)
        self._not_found = False
        self._closed = False
        self._opening = False
        self._last_sync: Optional[SyncResult] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def graph(self) -> FlowGraph:
        return self.store.graph

    @property
    def flow_id(self) -> Optional[str]:
        return self.store.graph.flow_id

    @property
    def app_id(self) -> Optional[str]:
        return self.store.graph.app_id

    @property
    def not_found(self) -> bool:
        return self._not_found

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def last_sync(self) -> Optional[SyncResult]:
        """Latest sync result that belonged to the flow being edited."""
        return self._last_sync

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self, flow_id: Optional[str] = None) -> FlowGraph:
        """
        Load ``flow_id``, or create a new flow when it is None or "new".

        The loaded graph replaces the store's graph without triggering a
        sync. A sync still in flight for the previous flow completes
        silently.

        Raises:
            LoadNotFound: If the flow does not exist
            LoadAborted: If the session navigated away meanwhile
            LoadError: If the flow could not be loaded
        """
        self.scheduler.cancel_pending()
        self.scheduler.pause()
        self._not_found = False
        self._opening = True
        try:
            if not flow_id or flow_id == NEW_FLOW:
                graph = await self.loader.create(self.company_id)
            else:
                graph = await self.loader.load(flow_id, self.company_id)
        except LoadNotFound:
            self._not_found = True
            raise
        finally:
            self._opening = False
            self.scheduler.resume()

        self.store.hydrate(graph)
        logger.info("session_opened", flow_id=graph.flow_id, company_id=self.company_id)
        return graph

    def close(self) -> None:
        """Abort loads and pending syncs; an in-flight sync finishes silently."""
        if self._closed:
            return
        self._closed = True
        self.loader.cancel()
        self.scheduler.close()
        self._unsubscribe()
        logger.info(
            "session_closed",
            flow_id=self.flow_id,
            **self.scheduler.metrics.to_dict(),
        )

    async def __aenter__(self) -> "EditorSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def add_node(
        self,
        node_type: Union[str, NodeType, CanonicalType],
        position: Union[Position, Mapping[str, Any], tuple, None] = None,
        payload: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> Node:
        return self._editor.add_node(node_type, position, payload, **kwargs)

    def update_node(self, node_id: str, patch: Mapping[str, Any]) -> Optional[Node]:
        return self._editor.update_node(node_id, patch)

    def move_node(self, node_id: str, x: float, y: float) -> Optional[Node]:
        return self._editor.move_node(node_id, x, y)

    def remove_node(self, node_id: str) -> bool:
        return self._editor.remove_node(node_id)

    def connect(
        self,
        source: Optional[str],
        target: Optional[str],
        source_handle: Optional[str] = None,
        target_handle: Optional[str] = None,
        presentation: Optional[EdgePresentation] = None,
    ) -> Edge:
        connection = Connection(source, target, source_handle, target_handle)
        return self._editor.add_edge(connection, presentation)

    def remove_edge(self, edge_id: str) -> bool:
        return self._editor.remove_edge(edge_id)

    # -------------------------------------------------------------------------
    # Subflows
    # -------------------------------------------------------------------------

    async def subflow_candidates(self) -> SubflowCandidates:
        """Flows of this flow's app that a callFlow node may target."""
        return await self.resolver.resolve(self.app_id, self.flow_id)

    def set_subflow_target(
        self,
        node_id: str,
        flow_id: Optional[str],
        candidates: Optional[SubflowCandidates] = None,
    ) -> Optional[Node]:
        """
        Point a callFlow node at another flow, or clear it with None.

        Raises:
            InvalidNodePatch: If the node is not a callFlow node
            SelfReferenceError: If ``flow_id`` is this session's flow
        """
        node = self.store.graph.get_node(node_id)
        if node is not None and not node.is_call_flow:
            raise InvalidNodePatch(
                f"Node '{node_id}' is not a callFlow node",
                node_id=node_id,
                field_errors={"targetFlowId": "only callFlow nodes have a target"},
            )
        title = candidates.title_for(flow_id) if candidates else None
        return self._editor.update_node(
            node_id,
            {"targetFlowId": flow_id or None, "targetFlowTitle": title if flow_id else None},
        )

    # -------------------------------------------------------------------------
    # Sync
    # -------------------------------------------------------------------------

    async def save_now(self) -> SyncResult:
        """Sync immediately, waiting for any in-flight request first."""
        return await self.scheduler.flush()

    def _on_mutation(self, event: MutationEvent) -> None:
        self.scheduler.notify()

    def _is_current(self, flow_id: Optional[str]) -> bool:
        return not self._opening and flow_id == self.flow_id

    async def _send_snapshot(self) -> None:
        graph = self.store.graph
        revision = self.store.revision
        request = build_sync_request(graph, self.company_id)
        await self._client.sync_version(graph.flow_id, request.to_wire())
        # The revision counter survives hydrate, so check the flow as well
        if self._is_current(graph.flow_id) and self.store.revision == revision:
            self.store.mark_clean()

    def _handle_sync_complete(self, result: SyncResult) -> None:
        if not self._is_current(result.flow_id):
            logger.info(
                "stale_sync_result_dropped",
                sync_flow_id=result.flow_id,
                flow_id=self.flow_id,
                ok=result.ok,
            )
            return
        self._last_sync = result
        if self._on_sync_complete is not None:
            self._on_sync_complete(result)


__all__ = ["NEW_FLOW", "EditorSession"]
