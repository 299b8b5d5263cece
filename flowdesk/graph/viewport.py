"""
Viewport Preservation

Structural mutations make some canvases re-fit their camera. The guard
wraps a store's structural entry points, captures the host viewport before
the mutation and restores it afterwards. The store itself knows nothing
about rendering.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Protocol

import structlog

from flowdesk.graph.store import GraphStore

logger = structlog.get_logger(__name__)

STRUCTURAL_OPERATIONS = ("add_node", "remove_node", "add_edge", "remove_edge")


@dataclass(frozen=True)
class Viewport:
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class ViewportHost(Protocol):
    """Anything that can report and restore a camera position."""

    def get_viewport(self) -> Viewport:
        ...

    def set_viewport(self, viewport: Viewport) -> None:
        ...


def preserve_viewport(host: ViewportHost) -> Callable:
    """Decorator restoring ``host``'s viewport after the wrapped call."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            viewport = host.get_viewport()
            try:
                return func(*args, **kwargs)
            finally:
                host.set_viewport(viewport)

        return wrapper

    return decorator


class ViewportGuardedStore:
    """
    Store proxy whose structural operations keep the viewport still.

    Every other attribute is forwarded to the wrapped store unchanged.
    """

    def __init__(self, store: GraphStore, host: ViewportHost) -> None:
        self._store = store
        self._host = host
        guard = preserve_viewport(host)
        for name in STRUCTURAL_OPERATIONS:
            setattr(self, name, guard(getattr(store, name)))

    @property
    def store(self) -> GraphStore:
        return self._store

    def __getattr__(self, name: str) -> Any:
        return getattr(self._store, name)


__all__ = [
    "STRUCTURAL_OPERATIONS",
    "Viewport",
    "ViewportHost",
    "preserve_viewport",
    "ViewportGuardedStore",
]
