"""
Sync Scheduler
==============

Debounced, single-flight synchronization of an editing session's graph.

Mutations call ``notify()``. Once the session has been quiet for the
debounce window the scheduler performs one synchronization carrying the
snapshot taken at fire time. At most one request is outstanding; edits
made while it is in flight re-arm the timer when it completes.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional

import structlog

from flowdesk.exceptions import FlowDeskError

logger = structlog.get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.6


class SyncState(str, Enum):
    """Scheduler states"""

    IDLE = "idle"
    PENDING_DEBOUNCE = "pending_debounce"  # Timer armed
    IN_FLIGHT = "in_flight"  # Request outstanding


@dataclass
class SyncResult:
    """Outcome of one synchronization attempt."""

    ok: bool
    revision: Optional[int] = None
    flow_id: Optional[str] = None
    status_code: Optional[int] = None
    error: Optional[Exception] = None
    completed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ok": self.ok,
            "revision": self.revision,
            "flow_id": self.flow_id,
            "status_code": self.status_code,
            "error": str(self.error) if self.error else None,
            "completed_at": self.completed_at.isoformat(),
        }


@dataclass
class SyncMetrics:
    """Counters for a scheduler"""

    syncs_started: int = 0
    syncs_succeeded: int = 0
    syncs_failed: int = 0
    notifications: int = 0
    coalesced: int = 0  # Notifications absorbed by an armed timer

    def to_dict(self) -> Dict[str, int]:
        return {
            "syncs_started": self.syncs_started,
            "syncs_succeeded": self.syncs_succeeded,
            "syncs_failed": self.syncs_failed,
            "notifications": self.notifications,
            "coalesced": self.coalesced,
        }


SendFunc = Callable[[], Awaitable[Any]]
CompletionCallback = Callable[[SyncResult], None]


class SyncScheduler:
    """
    Debounce timer plus single-flight guard around a send coroutine.

    Args:
        send: Coroutine function performing one full-snapshot sync
        debounce_seconds: Quiescence window before an automatic sync
        on_complete: Called with each result while the scheduler is open
        revision_provider: Returns the store revision captured at fire time
        flow_provider: Returns the flow id captured at fire time
        name: Used in log context

    Usage:
        scheduler = SyncScheduler(session.send_snapshot, debounce_seconds=0.6)
        store.subscribe(lambda event: scheduler.notify())
        ...
        result = await scheduler.flush()
    """

    def __init__(
        self,
        send: SendFunc,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_complete: Optional[CompletionCallback] = None,
        revision_provider: Optional[Callable[[], int]] = None,
        flow_provider: Optional[Callable[[], Optional[str]]] = None,
        name: str = "flow",
    ) -> None:
        self._send = send
        self.debounce_seconds = max(0.0, debounce_seconds)
        self._on_complete = on_complete
        self._revision_provider = revision_provider
        self._flow_provider = flow_provider
        self.name = name

        self._state = SyncState.IDLE
        self._metrics = SyncMetrics()
        self._lock = asyncio.Lock()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._dirty = False
        self._paused = False
        self._closed = False
        self._last_result: Optional[SyncResult] = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def metrics(self) -> SyncMetrics:
        return self._metrics

    @property
    def last_result(self) -> Optional[SyncResult]:
        return self._last_result

    @property
    def is_closed(self) -> bool:
        return self._closed

    @property
    def is_paused(self) -> bool:
        return self._paused

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    def notify(self) -> None:
        """Record a mutation and (re)start the debounce timer."""
        self._metrics.notifications += 1
        if self._closed:
            return
        if self._state == SyncState.IN_FLIGHT or self._paused:
            self._dirty = True
            return
        self._arm()

    async def flush(self) -> SyncResult:
        """
        Sync immediately.

        Cancels a pending timer, waits for any in-flight request and then
        performs one synchronization.
        """
        self._cancel_timer()
        async with self._lock:
            # A completing flight may have re-armed the timer meanwhile
            self._cancel_timer()
            return await self._sync_once(trigger="flush")

    async def join(self) -> Optional[SyncResult]:
        """Wait for the running automatic sync, if any, and return the latest result."""
        task = self._task
        if task is None:
            return self._last_result
        return await asyncio.shield(task)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def pause(self) -> None:
        """Stop arming the timer; notifications are remembered."""
        self._paused = True
        if self._cancel_timer():
            self._dirty = True

    def cancel_pending(self) -> None:
        """Drop the armed timer and any remembered notifications."""
        self._cancel_timer()
        self._dirty = False

    def resume(self) -> None:
        self._paused = False
        if self._dirty and not self._closed and self._state == SyncState.IDLE:
            self._arm()

    def close(self) -> None:
        """
        Cancel the pending timer and stop reporting results.

        An in-flight request is left to finish; its completion callback is
        not run.
        """
        self._closed = True
        self._cancel_timer()
        logger.debug("sync_scheduler_closed", flow=self.name, state=self._state.value)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _arm(self) -> None:
        loop = asyncio.get_running_loop()
        if self._cancel_timer():
            self._metrics.coalesced += 1
        self._timer = loop.call_later(self.debounce_seconds, self._fire)
        self._state = SyncState.PENDING_DEBOUNCE

    def _cancel_timer(self) -> bool:
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        if self._state == SyncState.PENDING_DEBOUNCE:
            self._state = SyncState.IDLE
        return True

    def _fire(self) -> None:
        self._timer = None
        if self._closed:
            return
        self._state = SyncState.IN_FLIGHT
        self._task = asyncio.ensure_future(self._run_scheduled())

    async def _run_scheduled(self) -> SyncResult:
        async with self._lock:
            return await self._sync_once(trigger="debounce")

    async def _sync_once(self, trigger: str) -> SyncResult:
        self._state = SyncState.IN_FLIGHT
        self._dirty = False
        revision = self._revision_provider() if self._revision_provider else None
        flow_id = self._flow_provider() if self._flow_provider else None
        self._metrics.syncs_started += 1
        logger.debug(
            "sync_started",
            flow=self.name,
            flow_id=flow_id,
            trigger=trigger,
            revision=revision,
        )

        try:
            await self._send()
        except FlowDeskError as e:
            result = SyncResult(
                ok=False,
                revision=revision,
                flow_id=flow_id,
                status_code=getattr(e, "status_code", None),
                error=e,
            )
            logger.warning(
                "sync_failed",
                flow=self.name,
                revision=revision,
                status_code=result.status_code,
                error_code=e.code,
                error=e.message,
            )
        except Exception as e:
            result = SyncResult(ok=False, revision=revision, flow_id=flow_id, error=e)
            logger.exception("sync_crashed", flow=self.name, revision=revision)
        else:
            result = SyncResult(ok=True, revision=revision, flow_id=flow_id)
            logger.info("sync_succeeded", flow=self.name, revision=revision)
        finally:
            self._state = SyncState.IDLE

        if result.ok:
            self._metrics.syncs_succeeded += 1
        else:
            self._metrics.syncs_failed += 1
        self._last_result = result

        if self._closed:
            return result

        if self._on_complete is not None:
            try:
                self._on_complete(result)
            except Exception:
                logger.exception("sync_callback_failed", flow=self.name)

        if self._dirty and not self._paused:
            self._arm()
        return result


__all__ = [
    "DEFAULT_DEBOUNCE_SECONDS",
    "SyncState",
    "SyncResult",
    "SyncMetrics",
    "SyncScheduler",
]
