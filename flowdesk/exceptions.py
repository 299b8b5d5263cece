"""
flowdesk - Exceptions

This module contains all custom exceptions raised by the graph engine,
the synchronization scheduler and the backend client.
"""

from typing import Any, Dict, Optional


class FlowDeskError(Exception):
    """
    Base exception for all flowdesk errors.

    Attributes:
        message: Human-readable error message
        code: Error code if available
        details: Additional error details
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', code='{self.code}')"


# =============================================================================
# Graph mutation errors
# =============================================================================


class InvalidConnection(FlowDeskError):
    """
    Raised when a user-drawn connection cannot become an edge.

    This occurs when the connection is missing its source or target
    node id, or leaves a decision node through a handle other than
    "true" or "false". The store is never touched.
    """

    def __init__(
        self,
        message: str = "Connection requires both source and target",
        source: Optional[str] = None,
        target: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="INVALID_CONNECTION",
            details={"source": source, "target": target},
        )
        self.source = source
        self.target = target


class UnknownNodeReference(FlowDeskError):
    """
    Raised when an edge references a node that is not in the graph.

    Attributes:
        node_id: The missing node id
    """

    def __init__(
        self,
        message: str = "Unknown node reference",
        node_id: Optional[str] = None,
    ) -> None:
        super().__init__(message, code="UNKNOWN_NODE", details={"node_id": node_id})
        self.node_id = node_id

    def __str__(self) -> str:
        if self.node_id:
            return f"[{self.code}] Node '{self.node_id}' does not exist"
        return super().__str__()


class DuplicateIdError(FlowDeskError):
    """Raised when a node or edge id is already present in the graph."""

    def __init__(self, kind: str, item_id: str) -> None:
        super().__init__(
            f"{kind} id '{item_id}' already exists",
            code="DUPLICATE_ID",
            details={"kind": kind, "id": item_id},
        )
        self.kind = kind
        self.item_id = item_id


class InvalidNodePatch(FlowDeskError):
    """
    Raised when a node patch fails payload validation.

    Attributes:
        node_id: The node the patch targeted
        field_errors: Mapping of payload field to validation message
    """

    def __init__(
        self,
        message: str = "Invalid node patch",
        node_id: Optional[str] = None,
        field_errors: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message, code="INVALID_PATCH", details=field_errors)
        self.node_id = node_id
        self.field_errors = field_errors or {}

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_errors:
            errors = ", ".join(f"{k}: {v}" for k, v in self.field_errors.items())
            return f"{base} ({errors})"
        return base


class SelfReferenceError(InvalidNodePatch):
    """Raised when a callFlow node would point at the flow that contains it."""

    def __init__(self, node_id: str, flow_id: str) -> None:
        super().__init__(
            f"Node '{node_id}' cannot call its own flow '{flow_id}'",
            node_id=node_id,
            field_errors={"targetFlowId": "must not reference the owning flow"},
        )
        self.code = "SELF_REFERENCE"
        self.flow_id = flow_id


# =============================================================================
# Transport errors
# =============================================================================


class ApiError(FlowDeskError):
    """
    Raised when the backend answers with an unexpected status.

    Attributes:
        status_code: HTTP status code, if a response was received
    """

    def __init__(
        self,
        message: str = "API request failed",
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code="API_ERROR", details=details)
        self.status_code = status_code

    def __str__(self) -> str:
        base = super().__str__()
        if self.status_code:
            return f"{base} (HTTP {self.status_code})"
        return base


class SyncTransportError(ApiError):
    """
    Raised when a synchronization request fails on the network or server.

    The in-memory graph stays authoritative; the next sync re-sends the
    full snapshot.
    """

    def __init__(
        self,
        message: str = "Synchronization failed",
        status_code: Optional[int] = None,
        flow_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, details=details)
        self.code = "SYNC_TRANSPORT_ERROR"
        self.flow_id = flow_id


class MissingScopeError(FlowDeskError):
    """Raised when a request lacks a resolved flow id or company scope id."""

    def __init__(
        self,
        flow_id: Optional[str] = None,
        company_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            "Synchronization requires a flow id and a company id",
            code="MISSING_SCOPE",
            details={"flow_id": flow_id, "company_id": company_id},
        )
        self.flow_id = flow_id
        self.company_id = company_id


# =============================================================================
# Load errors
# =============================================================================


class LoadError(FlowDeskError):
    """
    Raised when a flow snapshot cannot be loaded.

    Attributes:
        flow_id: The flow that was being loaded
    """

    def __init__(
        self,
        message: str = "Failed to load flow",
        flow_id: Optional[str] = None,
        code: str = "LOAD_ERROR",
    ) -> None:
        super().__init__(message, code=code, details={"flow_id": flow_id})
        self.flow_id = flow_id


class LoadAborted(LoadError):
    """Raised to waiters of a load that was superseded by navigation."""

    def __init__(self, flow_id: Optional[str] = None) -> None:
        super().__init__("Flow load aborted", flow_id=flow_id, code="LOAD_ABORTED")


class LoadNotFound(LoadError):
    """Raised when the requested flow does not exist on the backend."""

    def __init__(self, flow_id: Optional[str] = None) -> None:
        super().__init__("Flow not found", flow_id=flow_id, code="LOAD_NOT_FOUND")

    def __str__(self) -> str:
        if self.flow_id:
            return f"Flow with ID '{self.flow_id}' not found"
        return super().__str__()
