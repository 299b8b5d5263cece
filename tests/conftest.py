"""Shared pytest fixtures for testing."""

import asyncio
import json
from typing import Any, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from flowdesk.client import FlowApiClient
from flowdesk.config import FlowDeskSettings
from flowdesk.graph.models import FlowGraph
from flowdesk.graph.store import GraphStore


# =============================================================================
# Fake Backend
# =============================================================================


class FakeBackend:
    """In-memory stand-in for the dashboard backend."""

    def __init__(self) -> None:
        self.flows: Dict[str, Dict[str, Any]] = {}
        self.apps: List[Dict[str, Any]] = []
        self.app_flows: Dict[str, List[Dict[str, Any]]] = {}
        self.requests: List[httpx.Request] = []
        self.sync_bodies: List[Dict[str, Any]] = []
        self.created: List[Dict[str, Any]] = []

        self.sync_status = 200
        self.sync_delay = 0.0
        self.get_delay = 0.0
        self.apps_status = 200
        self.app_flows_route_status = 200
        self.in_flight = 0
        self.max_in_flight = 0

    def count(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.requests
            if r.method == method and r.url.path == path
        )

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        method = request.method
        parts = [p for p in request.url.path.split("/") if p]
        params = request.url.params

        if method == "PUT" and len(parts) == 4 and parts[0] == "flows" and parts[2:] == ["version", "sync"]:
            return await self._sync(request, parts[1])

        if method == "GET" and len(parts) == 2 and parts[0] == "flows":
            if self.get_delay:
                await asyncio.sleep(self.get_delay)
            flow = self.flows.get(parts[1])
            if flow is None:
                return httpx.Response(404, json={"message": "Flow not found"})
            return httpx.Response(200, json=flow)

        if method == "GET" and parts == ["flows"]:
            app_id = params.get("appId")
            return httpx.Response(200, json=self.app_flows.get(app_id, []))

        if method == "POST" and parts == ["flows"]:
            body = json.loads(request.content)
            flow = {"id": f"flow_new_{len(self.created) + 1}", **body}
            self.created.append(flow)
            return httpx.Response(201, json={"flow": flow})

        if method == "GET" and parts == ["apps"]:
            if self.apps_status != 200:
                return httpx.Response(self.apps_status, json={"message": "apps unavailable"})
            return httpx.Response(200, json={"items": self.apps})

        if method == "GET" and len(parts) == 3 and parts[0] == "apps" and parts[2] == "flows":
            if self.app_flows_route_status != 200:
                return httpx.Response(self.app_flows_route_status, json={"message": "no route"})
            return httpx.Response(200, json={"flows": self.app_flows.get(parts[1], [])})

        return httpx.Response(404, json={"message": "unknown route"})

    async def _sync(self, request: httpx.Request, flow_id: str) -> httpx.Response:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.sync_delay:
                await asyncio.sleep(self.sync_delay)
            body = json.loads(request.content)
            self.sync_bodies.append(body)
            if self.sync_status >= 300:
                return httpx.Response(self.sync_status, json={"message": "sync rejected"})
            return httpx.Response(200, json={"ok": True, "flowId": flow_id})
        finally:
            self.in_flight -= 1


def make_flow(
    flow_id: str = "flow_1",
    company_id: str = "emp_1",
    nodes: Optional[List[Dict[str, Any]]] = None,
    edges: Optional[List[Dict[str, Any]]] = None,
    **extra: Any,
) -> Dict[str, Any]:
    """Body of a ``GET /flows/{id}`` response."""
    return {
        "id": flow_id,
        "empresaId": company_id,
        "name": "Atendimento",
        "description": "Fluxo principal",
        "version": {"nodes": nodes or [], "edges": edges or []},
        **extra,
    }


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def settings() -> FlowDeskSettings:
    """Settings with a short debounce window."""
    return FlowDeskSettings(
        api_url="http://backend.test/",
        access_token="test_token",
        timeout=5.0,
        sync_debounce_ms=50,
    )


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def client(settings, backend):
    """API client wired to the fake backend."""
    api = FlowApiClient(settings, transport=httpx.MockTransport(backend.handle))
    yield api
    await api.close()


@pytest.fixture
def store() -> GraphStore:
    return GraphStore(FlowGraph(flow_id="flow_1", company_id="emp_1"))


@pytest.fixture
def sample_flow() -> Dict[str, Any]:
    """A persisted flow with a decision and two branches."""
    return make_flow(
        nodes=[
            {"key": "entry-1", "type": "entry", "label": "Início", "x": 0, "y": 0, "order": 0, "data": {}},
            {
                "key": "decision-1",
                "type": "decision",
                "label": "Cliente ativo?",
                "x": 200,
                "y": 0,
                "order": 1,
                "data": {"question": "Ativo?", "trueLabel": "Ativo", "falseLabel": ""},
            },
            {
                "key": "db-1",
                "type": "step",
                "label": "Buscar cliente",
                "x": 400,
                "y": -100,
                "order": 2,
                "data": {"kind": "database", "db": {"operation": "select", "table": "clientes", "connection": "main"}},
            },
            {
                "key": "sub-1",
                "type": "SubFlow",
                "label": "Cobrança",
                "x": 400,
                "y": 100,
                "order": 3,
                "data": {"targetFlowId": "flow_2", "targetFlowTitle": "Cobrança", "__rf": {"w": 1}},
            },
        ],
        edges=[
            {"key": "e1", "sourceKey": "entry-1", "targetKey": "decision-1", "edgeType": "smoothstep"},
            {"key": "e2", "sourceKey": "decision-1", "targetKey": "db-1", "sourceHandle": "true", "label": "stale"},
            {"key": "e3", "sourceKey": "decision-1", "targetKey": "sub-1", "sourceHandle": "false"},
            {"key": "e4", "sourceKey": "decision-1", "targetKey": "ghost"},
        ],
    )


@pytest.fixture
def flow_factory():
    """Builds ``GET /flows/{id}`` bodies."""
    return make_flow
