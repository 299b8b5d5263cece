"""
flowdesk - Backend Client

Asynchronous HTTP client for the dashboard backend endpoints the flow
editor consumes: flow snapshots, app listings, flow creation and version
synchronization.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import structlog

from flowdesk.config import Endpoints, FlowDeskSettings, get_settings
from flowdesk.exceptions import (
    ApiError,
    LoadNotFound,
    MissingScopeError,
    SyncTransportError,
)

logger = structlog.get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    try:
        error_data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(error_data, dict):
        return str(
            error_data.get("message")
            or error_data.get("error")
            or error_data.get("detail")
            or error_data
        )
    return str(error_data)


class FlowApiClient:
    """
    Client for the flow editor's backend.

    Args:
        settings: Engine settings; defaults to ``get_settings()``
        transport: Optional httpx transport (tests pass a MockTransport)

    Example:
        >>> async with FlowApiClient() as client:
        ...     flow = await client.get_flow("flow_123", "emp_1")
    """

    def __init__(
        self,
        settings: Optional[FlowDeskSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._http_client = self._create_http_client(transport)

    def _create_http_client(
        self,
        transport: Optional[httpx.AsyncBaseTransport],
    ) -> httpx.AsyncClient:
        """Create and configure the HTTP client."""
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._settings.access_token:
            headers["Authorization"] = f"Bearer {self._settings.access_token}"

        return httpx.AsyncClient(
            base_url=self._settings.api_url,
            headers=headers,
            timeout=httpx.Timeout(self._settings.timeout),
            transport=transport,
            follow_redirects=True,
        )

    @property
    def settings(self) -> FlowDeskSettings:
        return self._settings

    # -------------------------------------------------------------------------
    # Low level
    # -------------------------------------------------------------------------

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send a request and return the raw response.

        Raises:
            ApiError: If the request could not be sent
        """
        logger.debug("api_request", method=method, path=path)
        try:
            response = await self._http_client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise ApiError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise ApiError(f"Request failed: {e}") from e
        logger.debug("api_response", method=method, path=path, status=response.status_code)
        return response

    def _handle_response(self, response: httpx.Response) -> Any:
        """Return the decoded body of a successful response or raise ApiError."""
        if response.status_code == 204:
            return {}
        if response.status_code < 300:
            if not response.content:
                return {}
            return response.json()
        raise ApiError(_error_message(response), status_code=response.status_code)

    # -------------------------------------------------------------------------
    # Flows
    # -------------------------------------------------------------------------

    async def get_flow(self, flow_id: str, company_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch a flow with its current version snapshot.

        Raises:
            LoadNotFound: If the flow does not exist
            ApiError: For any other failure
        """
        params = {"empresaId": company_id} if company_id else None
        response = await self.request("GET", Endpoints.FLOW.format(flow_id=flow_id), params=params)
        if response.status_code == 404:
            raise LoadNotFound(flow_id)
        data = self._handle_response(response)
        if not isinstance(data, dict) or data.get("ok") is False:
            raise LoadNotFound(flow_id)
        return data

    async def create_flow(
        self,
        company_id: str,
        title: str = "Novo Fluxo",
        description: Optional[str] = "Criado automaticamente",
    ) -> Dict[str, Any]:
        """Create an empty flow and return it."""
        if not company_id:
            raise MissingScopeError(company_id=company_id)
        body = {
            "titulo": title,
            "descricao": description,
            "empresaId": company_id,
            "isTemplate": False,
        }
        data = self._handle_response(await self.request("POST", Endpoints.FLOWS, json=body))
        if isinstance(data, dict) and isinstance(data.get("flow"), dict):
            return data["flow"]
        return data

    async def list_flows(self, app_id: str) -> List[Dict[str, Any]]:
        """List flows of an app, trying the app route before the filtered list."""
        try:
            data = self._handle_response(
                await self.request("GET", Endpoints.APP_FLOWS.format(app_id=app_id))
            )
        except ApiError as e:
            logger.debug("app_flows_route_failed", app_id=app_id, error=str(e))
            data = self._handle_response(
                await self.request("GET", Endpoints.FLOWS, params={"appId": app_id})
            )
        if isinstance(data, dict):
            data = data.get("flows") or data.get("items") or []
        return list(data or [])

    async def sync_version(self, flow_id: Optional[str], body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Write a full version snapshot.

        Raises:
            MissingScopeError: If flow id or company id is missing (no request is sent)
            SyncTransportError: If the request fails or the server rejects it
        """
        if not flow_id or not body.get("empresaId"):
            raise MissingScopeError(flow_id=flow_id, company_id=body.get("empresaId"))

        path = Endpoints.FLOW_VERSION_SYNC.format(flow_id=flow_id)
        try:
            response = await self.request("PUT", path, json=body)
        except ApiError as e:
            raise SyncTransportError(e.message, flow_id=flow_id) from e

        if response.status_code >= 300:
            raise SyncTransportError(
                _error_message(response),
                status_code=response.status_code,
                flow_id=flow_id,
            )
        if not response.content:
            return {}
        return response.json()

    # -------------------------------------------------------------------------
    # Apps
    # -------------------------------------------------------------------------

    async def list_apps(self, company_id: str) -> List[Dict[str, Any]]:
        """List the apps of a company."""
        data = self._handle_response(
            await self.request("GET", Endpoints.APPS, params={"empresaId": company_id})
        )
        if isinstance(data, dict):
            return list(data.get("items") or [])
        return list(data or [])

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        await self._http_client.aclose()
        logger.debug("api_client_closed")

    async def __aenter__(self) -> "FlowApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


__all__ = ["FlowApiClient"]
