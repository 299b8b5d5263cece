"""
Connection Builder

Turns a user-drawn connection into an edge. Only id, endpoints, handles
and label are structural; presentation attributes get editor defaults.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional

from flowdesk.exceptions import InvalidConnection
from flowdesk.graph.models import Edge, EdgePresentation


@dataclass(frozen=True)
class Connection:
    """A connection attempt between two node handles."""
    source: Optional[str]
    target: Optional[str]
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def make_edge_id(connection: Connection, token: Optional[str] = None) -> str:
    """
    Build an edge id from the endpoints, both handles and a random token.

    Two edges between the same nodes through different handles never
    share an id; the token separates repeated identical connections.
    """
    token = token or uuid.uuid4().hex[:8]
    return "-".join([
        "edge",
        _clean(connection.source),
        _clean(connection.source_handle),
        _clean(connection.target),
        _clean(connection.target_handle),
        token,
    ])


def build_edge(
    connection: Connection,
    label: Optional[str] = None,
    presentation: Optional[EdgePresentation] = None,
) -> Edge:
    """
    Build an edge from a connection.

    Raises:
        InvalidConnection: If source or target is empty or missing
    """
    source = _clean(connection.source)
    target = _clean(connection.target)
    if not source or not target:
        raise InvalidConnection(source=connection.source, target=connection.target)

    return Edge(
        edge_id=make_edge_id(connection),
        source=source,
        target=target,
        source_handle=connection.source_handle or None,
        target_handle=connection.target_handle or None,
        label=label,
        presentation=presentation or EdgePresentation(),
    )


__all__ = ["Connection", "make_edge_id", "build_edge"]
