"""
Node Payload Variants

One validated payload model per (canonical type, kind). Field names are
snake_case in Python and camelCase on the wire. Keys a variant does not
know are kept as-is so a full-snapshot sync never drops them.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from flowdesk.graph.canonical import CanonicalType, NodeType, StepKind

DEFAULT_TRUE_LABEL = "SIM"
DEFAULT_FALSE_LABEL = "NÃO"


class NodePayload(BaseModel):
    """Base payload shared by every variant."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


# =============================================================================
# Step variants
# =============================================================================


class StepPayload(NodePayload):
    """Plain step, or a step whose kind has no dedicated variant."""

    kind: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None


class DatabaseConfig(NodePayload):
    operation: str = "select"
    table: str = ""
    connection: str = ""


class DatabaseStepPayload(StepPayload):
    kind: Optional[str] = StepKind.DATABASE.value
    db: DatabaseConfig = Field(default_factory=DatabaseConfig)


class RequestConfig(NodePayload):
    method: str = "GET"
    url: str = ""
    timeout_ms: int = Field(default=10000, ge=0)
    headers_json: str = ""
    body_json: str = ""

    @field_validator("method")
    @classmethod
    def upper_method(cls, v: str) -> str:
        return v.upper()


class RequestStepPayload(StepPayload):
    kind: Optional[str] = StepKind.REQUEST.value
    req: RequestConfig = Field(default_factory=RequestConfig)


class ExternalConfig(NodePayload):
    channel: str = "webhook"
    target: str = ""
    template: str = ""


class ExternalStepPayload(StepPayload):
    kind: Optional[str] = StepKind.EXTERNAL.value
    external: ExternalConfig = Field(default_factory=ExternalConfig)


# =============================================================================
# Other variants
# =============================================================================


class DecisionPayload(NodePayload):
    """Two-branch decision. Blank labels fall back to SIM/NÃO on edges."""

    question: Optional[str] = ""
    true_label: Optional[str] = DEFAULT_TRUE_LABEL
    false_label: Optional[str] = DEFAULT_FALSE_LABEL

    @property
    def effective_true_label(self) -> str:
        return (self.true_label or "").strip() or DEFAULT_TRUE_LABEL

    @property
    def effective_false_label(self) -> str:
        return (self.false_label or "").strip() or DEFAULT_FALSE_LABEL


class NotePayload(NodePayload):
    text: Optional[str] = ""


class EntryPayload(NodePayload):
    pass


class CallFlowPayload(NodePayload):
    """Reference to another flow of the same app."""

    target_flow_id: Optional[str] = None
    target_flow_title: Optional[str] = None
    pass_context: bool = True
    icon: Optional[str] = None
    color: Optional[str] = None

    @field_validator("target_flow_id", mode="before")
    @classmethod
    def blank_target_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


_STEP_VARIANTS: Dict[StepKind, Type[StepPayload]] = {
    StepKind.DATABASE: DatabaseStepPayload,
    StepKind.REQUEST: RequestStepPayload,
    StepKind.EXTERNAL: ExternalStepPayload,
}


def payload_class(canonical: CanonicalType) -> Type[NodePayload]:
    """Return the payload model for a canonical type."""
    node_type = canonical.node_type
    if node_type is NodeType.STEP:
        step_kind = canonical.step_kind
        if step_kind is None:
            return StepPayload
        return _STEP_VARIANTS[step_kind]
    if node_type is NodeType.DECISION:
        return DecisionPayload
    if node_type is NodeType.NOTE:
        return NotePayload
    if node_type is NodeType.ENTRY:
        return EntryPayload
    if node_type is NodeType.CALL_FLOW:
        return CallFlowPayload
    raise AssertionError(f"Unhandled node type: {node_type!r}")


def build_payload(
    canonical: CanonicalType,
    data: Optional[Mapping[str, Any]] = None,
) -> NodePayload:
    """
    Validate raw payload data against the variant for ``canonical``.

    Raises:
        pydantic.ValidationError: If a known field has an invalid value
    """
    values = dict(data or {})
    if canonical.is_step and canonical.kind:
        values.setdefault("kind", canonical.kind)
    return payload_class(canonical).model_validate(values)


def merge_payload(payload: NodePayload, patch: Mapping[str, Any]) -> NodePayload:
    """Return a new payload with ``patch`` merged over the current values.

    Patch keys may use either the Python field name or the wire alias.
    Nested config objects (``db``, ``req``, ``external``) merge key by key.
    """
    merged = payload.to_wire()
    fields = type(payload).model_fields
    by_alias = {field.alias or to_camel(name): name for name, field in fields.items()}
    for key, value in patch.items():
        name = key if key in fields else by_alias.get(key)
        if name is None:
            merged[key] = value
            continue
        alias = fields[name].alias or to_camel(name)
        current = getattr(payload, name)
        if isinstance(current, NodePayload) and isinstance(value, Mapping):
            merged[alias] = merge_payload(current, value).to_wire()
        else:
            merged[alias] = value
    return type(payload).model_validate(merged)


__all__ = [
    "DEFAULT_TRUE_LABEL",
    "DEFAULT_FALSE_LABEL",
    "NodePayload",
    "StepPayload",
    "DatabaseConfig",
    "DatabaseStepPayload",
    "RequestConfig",
    "RequestStepPayload",
    "ExternalConfig",
    "ExternalStepPayload",
    "DecisionPayload",
    "NotePayload",
    "EntryPayload",
    "CallFlowPayload",
    "payload_class",
    "build_payload",
    "merge_payload",
]
