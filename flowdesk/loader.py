"""
flowdesk - Flow Loader

Fetches a flow's version snapshot and turns it into a canonical in-memory
graph. Loads are shared between concurrent callers and can be aborted
when the user navigates away.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, Mapping, Optional

import structlog
from pydantic import ValidationError

from flowdesk.client import FlowApiClient
from flowdesk.exceptions import ApiError, LoadAborted, LoadError, LoadNotFound
from flowdesk.graph.labels import relabel_all
from flowdesk.graph.models import FlowGraph
from flowdesk.graph.snapshot import clean_str, parse_version

logger = structlog.get_logger(__name__)

NEW_FLOW_TITLE = "Novo Fluxo"
NEW_FLOW_DESCRIPTION = "Criado automaticamente"


def app_flow_ids(app: Mapping[str, Any]) -> set:
    """Collect every flow id an app record references."""
    ids = set()
    if isinstance(app.get("flowIds"), list):
        ids.update(str(i) for i in app["flowIds"] if i)
    if isinstance(app.get("flows"), list):
        ids.update(
            str(f["id"]) for f in app["flows"]
            if isinstance(f, Mapping) and f.get("id")
        )
    if app.get("flowId"):
        ids.add(str(app["flowId"]))
    return ids


def find_linked_app(apps: Iterable[Mapping[str, Any]], flow_id: str) -> Optional[str]:
    for app in apps:
        if flow_id in app_flow_ids(app):
            return str(app.get("id")) if app.get("id") else None
    return None


def graph_from_flow(flow: Mapping[str, Any], flow_id: str, company_id: Optional[str]) -> FlowGraph:
    """Build a canonical graph from a ``GET /flows/{id}`` body."""
    graph = FlowGraph(
        flow_id=str(flow.get("id") or flow_id),
        title=flow.get("name") or flow.get("titulo") or "",
        description=clean_str(flow.get("description") or flow.get("descricao")),
        company_id=flow.get("empresaId") or company_id,
        app_id=flow.get("appId") or None,
    )
    version = flow.get("version") or flow.get("currentVersion") or {}
    try:
        parse_version(graph, version)
    except (ValidationError, TypeError, ValueError, AttributeError) as e:
        raise LoadError(f"Malformed flow snapshot: {e}", flow_id=flow_id) from e
    relabel_all(graph)
    return graph


class FlowLoader:
    """
    Loads flows for one editing session.

    A second ``load`` of a flow that is still loading awaits the same
    fetch; a flow that is already loaded is returned from cache. Loading a
    different flow aborts the previous load.
    """

    def __init__(self, client: FlowApiClient) -> None:
        self._client = client
        self._tasks: Dict[str, asyncio.Task] = {}
        self._loaded: Optional[FlowGraph] = None
        self._create_task: Optional[asyncio.Task] = None

    @property
    def loaded(self) -> Optional[FlowGraph]:
        return self._loaded

    def is_loading(self, flow_id: Optional[str] = None) -> bool:
        if flow_id is None:
            return bool(self._tasks)
        return flow_id in self._tasks

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    async def load(self, flow_id: str, company_id: Optional[str] = None) -> FlowGraph:
        """
        Load a flow's current version.

        Raises:
            LoadNotFound: If the flow does not exist
            LoadAborted: If the load was cancelled or superseded
            LoadError: If the snapshot could not be fetched or parsed
        """
        if self._loaded is not None and self._loaded.flow_id == flow_id:
            logger.debug("flow_load_cached", flow_id=flow_id)
            return self._loaded

        task = self._tasks.get(flow_id)
        if task is None:
            self._cancel_tasks(keep=flow_id)
            task = asyncio.ensure_future(self._fetch(flow_id, company_id))
            self._tasks[flow_id] = task
            task.add_done_callback(lambda t, fid=flow_id: self._forget(fid, t))
        else:
            logger.debug("flow_load_joined", flow_id=flow_id)

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise LoadAborted(flow_id) from None
            raise

    def cancel(self) -> None:
        """Abort every running load; waiters receive LoadAborted."""
        self._cancel_tasks()
        if self._create_task is not None and not self._create_task.done():
            self._create_task.cancel()

    def invalidate(self) -> None:
        """Forget the cached graph so the next load fetches again."""
        self._loaded = None

    def _cancel_tasks(self, keep: Optional[str] = None) -> None:
        for flow_id, task in list(self._tasks.items()):
            if flow_id == keep:
                continue
            task.cancel()
            self._tasks.pop(flow_id, None)
            logger.info("flow_load_aborted", flow_id=flow_id)

    def _forget(self, flow_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(flow_id) is task:
            del self._tasks[flow_id]

    async def _fetch(self, flow_id: str, company_id: Optional[str]) -> FlowGraph:
        logger.info("flow_load_started", flow_id=flow_id, company_id=company_id)
        try:
            body = await self._client.get_flow(flow_id, company_id)
        except LoadNotFound:
            logger.warning("flow_not_found", flow_id=flow_id)
            raise
        except ApiError as e:
            raise LoadError(e.message, flow_id=flow_id) from e

        flow = body["flow"] if isinstance(body.get("flow"), Mapping) else body
        graph = graph_from_flow(flow, flow_id, company_id)

        if not graph.app_id and graph.company_id:
            graph.app_id = await self._lookup_app(flow_id, graph.company_id)

        self._loaded = graph
        logger.info(
            "flow_loaded",
            flow_id=graph.flow_id,
            app_id=graph.app_id,
            nodes=len(graph.nodes),
            edges=len(graph.edges),
        )
        return graph

    async def _lookup_app(self, flow_id: str, company_id: str) -> Optional[str]:
        try:
            apps = await self._client.list_apps(company_id)
        except ApiError as e:
            logger.warning("linked_app_lookup_failed", flow_id=flow_id, error=str(e))
            return None
        return find_linked_app(apps, flow_id)

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create(self, company_id: str, title: str = NEW_FLOW_TITLE) -> FlowGraph:
        """
        Create an empty flow on the backend and return its graph.

        Only one flow is created per loader; later calls return the same
        result.
        """
        if self._create_task is None or self._create_task.cancelled():
            self._create_task = asyncio.ensure_future(self._create(company_id, title))
        try:
            return await asyncio.shield(self._create_task)
        except asyncio.CancelledError:
            if self._create_task.cancelled():
                raise LoadAborted() from None
            raise

    async def _create(self, company_id: str, title: str) -> FlowGraph:
        try:
            flow = await self._client.create_flow(company_id, title, NEW_FLOW_DESCRIPTION)
        except ApiError as e:
            raise LoadError(f"Could not create flow: {e.message}", code="CREATE_FAILED") from e

        flow_id = flow.get("id")
        if not flow_id:
            raise LoadError("Backend returned a flow without an id", code="CREATE_FAILED")

        graph = FlowGraph(
            flow_id=str(flow_id),
            title=flow.get("titulo") or flow.get("name") or title,
            description=clean_str(flow.get("descricao") or flow.get("description")),
            company_id=flow.get("empresaId") or company_id,
            app_id=flow.get("appId") or None,
        )
        self._loaded = graph
        logger.info("flow_created", flow_id=graph.flow_id, company_id=graph.company_id)
        return graph


__all__ = [
    "NEW_FLOW_TITLE",
    "NEW_FLOW_DESCRIPTION",
    "app_flow_ids",
    "find_linked_app",
    "graph_from_flow",
    "FlowLoader",
]
