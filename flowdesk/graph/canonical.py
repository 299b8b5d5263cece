"""
Node Type Canonicalization

Collapses every surface spelling of a node type into the closed canonical
set. Specialized steps are never stored as their own type: the variant
lives in the payload ``kind`` discriminator.

    "SubFlow"      -> callFlow
    "step:request" -> step (kind="request")
    "decision"     -> decision
    "whatever"     -> step (logged fallback)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import structlog

logger = structlog.get_logger(__name__)


class NodeType(str, Enum):
    """Canonical, persisted node types."""

    STEP = "step"
    DECISION = "decision"
    NOTE = "note"
    ENTRY = "entry"
    CALL_FLOW = "callFlow"


class StepKind(str, Enum):
    """Known specialized step variants."""

    DATABASE = "database"
    REQUEST = "request"
    EXTERNAL = "external"


CALL_FLOW_ALIASES = frozenset({"subflow", "callflow", "call_flow", "flow:call"})
STEP_PREFIX = "step:"

_PASS_THROUGH = {
    "step": NodeType.STEP,
    "decision": NodeType.DECISION,
    "note": NodeType.NOTE,
    "entry": NodeType.ENTRY,
}

_DEFAULT_LABELS = {
    NodeType.STEP: "Novo passo",
    NodeType.DECISION: "Decisão",
    NodeType.NOTE: "Nota",
    NodeType.ENTRY: "Início",
    NodeType.CALL_FLOW: "Chamar Fluxo",
}

_KIND_LABELS = {
    StepKind.DATABASE.value: "DB Step",
    StepKind.REQUEST.value: "Request Step",
    StepKind.EXTERNAL.value: "External Step",
}


@dataclass(frozen=True)
class CanonicalType:
    """A canonical node type plus its optional step kind."""

    node_type: NodeType
    kind: Optional[str] = None

    @property
    def is_step(self) -> bool:
        return self.node_type is NodeType.STEP

    @property
    def step_kind(self) -> Optional[StepKind]:
        """The kind as a known ``StepKind``, or None for plain/unknown kinds."""
        if not self.is_step or not self.kind:
            return None
        try:
            return StepKind(self.kind)
        except ValueError:
            return None


def _payload_kind(payload: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not payload:
        return None
    kind = payload.get("kind")
    if isinstance(kind, str) and kind.strip():
        return kind.strip()
    return None


def normalize(
    raw_type: Union[str, NodeType, CanonicalType, None],
    raw_payload: Optional[Mapping[str, Any]] = None,
) -> CanonicalType:
    """
    Map a raw node type spelling to its canonical type.

    Args:
        raw_type: Type as received from the backend or the editor palette
        raw_payload: Node payload, consulted for an existing ``kind``

    Returns:
        The canonical type and optional step kind
    """
    if isinstance(raw_type, CanonicalType):
        return raw_type
    if isinstance(raw_type, NodeType):
        kind = _payload_kind(raw_payload) if raw_type is NodeType.STEP else None
        return CanonicalType(raw_type, kind)

    raw = (raw_type or "").strip()
    lowered = raw.lower()

    if lowered in CALL_FLOW_ALIASES:
        return CanonicalType(NodeType.CALL_FLOW)

    if lowered.startswith(STEP_PREFIX):
        kind = raw[len(STEP_PREFIX):].strip()
        return CanonicalType(NodeType.STEP, kind or _payload_kind(raw_payload))

    if lowered in _PASS_THROUGH:
        node_type = _PASS_THROUGH[lowered]
        if node_type is NodeType.STEP:
            return CanonicalType(node_type, _payload_kind(raw_payload))
        return CanonicalType(node_type)

    logger.warning("unknown_node_type_fallback", raw_type=raw_type, fallback=NodeType.STEP.value)
    return CanonicalType(NodeType.STEP, _payload_kind(raw_payload))


def canonicalize_payload(
    raw_type: Union[str, NodeType, CanonicalType, None],
    raw_payload: Optional[Mapping[str, Any]] = None,
) -> Tuple[CanonicalType, Dict[str, Any]]:
    """
    Normalize a type and inject its step kind into the payload if absent.

    Returns a new payload dict; the input mapping is not modified.
    """
    canonical = normalize(raw_type, raw_payload)
    payload = dict(raw_payload or {})
    if canonical.is_step and canonical.kind and not payload.get("kind"):
        payload["kind"] = canonical.kind
    return canonical, payload


def editor_type(canonical: CanonicalType) -> str:
    """Palette spelling of a canonical type, e.g. ``step:database``."""
    if canonical.is_step and canonical.kind:
        return f"{STEP_PREFIX}{canonical.kind}"
    return canonical.node_type.value


def default_label(canonical: CanonicalType) -> str:
    """Label given to a freshly created node of this type."""
    if canonical.is_step and canonical.kind:
        return _KIND_LABELS.get(canonical.kind, canonical.kind.capitalize())
    return _DEFAULT_LABELS[canonical.node_type]


__all__ = [
    "NodeType",
    "StepKind",
    "CanonicalType",
    "CALL_FLOW_ALIASES",
    "normalize",
    "canonicalize_payload",
    "editor_type",
    "default_label",
]
