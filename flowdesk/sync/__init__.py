"""
Sync Module

Debounced single-flight synchronization of the flow graph.
"""

from flowdesk.sync.scheduler import (
    DEFAULT_DEBOUNCE_SECONDS,
    SyncMetrics,
    SyncResult,
    SyncScheduler,
    SyncState,
)

__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "SyncMetrics",
    "SyncResult",
    "SyncScheduler",
    "SyncState",
]
