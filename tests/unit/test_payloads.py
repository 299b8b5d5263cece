"""Unit tests for node payload variants."""

import pytest
from pydantic import ValidationError

from flowdesk.graph.canonical import normalize
from flowdesk.graph.payloads import (
    CallFlowPayload,
    DatabaseStepPayload,
    DecisionPayload,
    RequestStepPayload,
    StepPayload,
    build_payload,
    merge_payload,
    payload_class,
)


class TestPayloadClass:
    """Tests for variant dispatch."""

    @pytest.mark.parametrize("raw,cls", [
        ("step", StepPayload),
        ("step:queue", StepPayload),
        ("step:database", DatabaseStepPayload),
        ("step:request", RequestStepPayload),
        ("decision", DecisionPayload),
        ("subflow", CallFlowPayload),
    ])
    def test_dispatch(self, raw, cls):
        assert payload_class(normalize(raw)) is cls


class TestBuildPayload:
    """Tests for build_payload()."""

    def test_database_defaults(self):
        """Test a new database step gets its default config."""
        payload = build_payload(normalize("step:database"))

        assert payload.to_wire()["db"] == {"operation": "select", "table": "", "connection": ""}
        assert payload.to_wire()["kind"] == "database"

    def test_request_defaults_use_camel_case(self):
        """Test request config is serialized with wire names."""
        wire = build_payload(normalize("step:request")).to_wire()

        assert wire["req"] == {
            "method": "GET",
            "url": "",
            "timeoutMs": 10000,
            "headersJson": "",
            "bodyJson": "",
        }

    def test_call_flow_defaults(self):
        wire = build_payload(normalize("callFlow")).to_wire()

        assert wire["passContext"] is True
        assert wire["targetFlowId"] is None
        assert wire["targetFlowTitle"] is None

    def test_unknown_keys_survive(self):
        """Test keys a variant does not declare are carried through."""
        payload = build_payload(normalize("decision"), {"question": "Q", "customHint": 3})

        assert payload.to_wire()["customHint"] == 3

    def test_invalid_value_rejected(self):
        """Test a negative timeout fails validation."""
        with pytest.raises(ValidationError):
            build_payload(normalize("step:request"), {"req": {"timeoutMs": -1}})

    def test_blank_target_flow_is_none(self):
        payload = build_payload(normalize("callFlow"), {"targetFlowId": "  "})

        assert payload.target_flow_id is None


class TestDecisionLabels:
    """Tests for decision branch label fallbacks."""

    def test_defaults(self):
        payload = DecisionPayload()

        assert payload.effective_true_label == "SIM"
        assert payload.effective_false_label == "NÃO"

    def test_blank_labels_fall_back(self):
        payload = DecisionPayload(true_label="  ", false_label=None)

        assert payload.effective_true_label == "SIM"
        assert payload.effective_false_label == "NÃO"


class TestMergePayload:
    """Tests for merge_payload()."""

    def test_merge_by_alias_and_field_name(self):
        """Test camelCase and snake_case keys address the same field."""
        payload = DecisionPayload()

        merged = merge_payload(payload, {"trueLabel": "OK", "false_label": "ERRO"})

        assert merged.true_label == "OK"
        assert merged.false_label == "ERRO"
        assert payload.true_label == "SIM"

    def test_nested_config_merges_key_by_key(self):
        """Test patching one nested key keeps the others."""
        payload = build_payload(normalize("step:request"), {"req": {"url": "https://a.test"}})

        merged = merge_payload(payload, {"req": {"method": "post"}})

        assert merged.req.method == "POST"
        assert merged.req.url == "https://a.test"
        assert merged.req.timeout_ms == 10000

    def test_merge_validates(self):
        payload = build_payload(normalize("step:request"))

        with pytest.raises(ValidationError):
            merge_payload(payload, {"req": {"timeoutMs": "soon"}})
