"""
flowdesk - Subflow Resolver

Lists the flows a callFlow node may target: every flow of the same app
except the one being edited.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

import structlog

from flowdesk.client import FlowApiClient
from flowdesk.exceptions import ApiError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FlowOption:
    """A selectable subflow target."""
    id: str
    title: str


@dataclass
class SubflowCandidates:
    """Result of a resolution; ``available`` is False when nothing could be listed."""
    options: List[FlowOption] = field(default_factory=list)
    available: bool = False
    error: Optional[str] = None

    def title_for(self, flow_id: Optional[str]) -> Optional[str]:
        if not flow_id:
            return None
        for option in self.options:
            if option.id == flow_id:
                return option.title
        return None

    def __contains__(self, flow_id: object) -> bool:
        return any(option.id == flow_id for option in self.options)


def to_option(raw: Mapping[str, Any]) -> Optional[FlowOption]:
    flow_id = raw.get("id")
    if not flow_id:
        return None
    title = raw.get("titulo") or raw.get("title") or raw.get("name") or str(flow_id)
    return FlowOption(id=str(flow_id), title=str(title))


class SubflowResolver:
    """Resolves candidate subflows through the backend client."""

    def __init__(self, client: FlowApiClient) -> None:
        self._client = client

    async def resolve(
        self,
        app_id: Optional[str],
        current_flow_id: Optional[str] = None,
    ) -> SubflowCandidates:
        """
        List the flows of ``app_id`` other than ``current_flow_id``.

        Never raises for backend failures; the result is marked unavailable
        instead.
        """
        if not app_id:
            logger.debug("subflow_resolution_skipped", reason="no_app")
            return SubflowCandidates(error="Flow is not linked to an app")

        try:
            raw_flows = await self._client.list_flows(app_id)
        except ApiError as e:
            logger.warning("subflow_resolution_failed", app_id=app_id, error=str(e))
            return SubflowCandidates(error=e.message)

        options = []
        seen = set()
        for raw in raw_flows:
            if not isinstance(raw, Mapping):
                continue
            option = to_option(raw)
            if option is None or option.id == current_flow_id or option.id in seen:
                continue
            seen.add(option.id)
            options.append(option)

        logger.debug("subflows_resolved", app_id=app_id, count=len(options))
        return SubflowCandidates(options=options, available=True)


__all__ = ["FlowOption", "SubflowCandidates", "SubflowResolver", "to_option"]
