"""Unit tests for configuration, logging and the exception hierarchy."""

import io
import json
import logging

import pytest
import structlog

from flowdesk.config import Endpoints, FlowDeskSettings
from flowdesk.exceptions import (
    FlowDeskError,
    InvalidNodePatch,
    LoadNotFound,
    SelfReferenceError,
    SyncTransportError,
    UnknownNodeReference,
)
from flowdesk.logging import setup_logging


class TestSettings:
    """Tests for FlowDeskSettings."""

    def test_defaults(self, monkeypatch):
        for name in ("FLOWDESK_API_URL", "FLOWDESK_SYNC_DEBOUNCE_MS", "FLOWDESK_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

        settings = FlowDeskSettings(_env_file=None)

        assert settings.api_url == "http://localhost:3333"
        assert settings.timeout == 12.0
        assert settings.sync_debounce_ms == 600
        assert settings.sync_debounce_seconds == pytest.approx(0.6)

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FLOWDESK_API_URL", "https://api.example.com/")
        monkeypatch.setenv("FLOWDESK_SYNC_DEBOUNCE_MS", "250")

        settings = FlowDeskSettings(_env_file=None)

        assert settings.api_url == "https://api.example.com"
        assert settings.sync_debounce_seconds == pytest.approx(0.25)

    def test_endpoints(self):
        assert Endpoints.FLOW_VERSION_SYNC.format(flow_id="f1") == "/flows/f1/version/sync"
        assert Endpoints.APP_FLOWS.format(app_id="a1") == "/apps/a1/flows"


class TestLogging:
    """Tests for setup_logging()."""

    def test_json_output(self):
        stream = io.StringIO()
        setup_logging("INFO", "json", stream=stream)

        structlog.get_logger("flowdesk.test").info("sync_succeeded", flow="flow_1")

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        event = lines[-1]
        assert event["event"] == "sync_succeeded"
        assert event["flow"] == "flow_1"
        assert event["level"] == "info"
        structlog.reset_defaults()

    def test_defaults_come_from_settings(self, monkeypatch):
        monkeypatch.setenv("FLOWDESK_LOG_LEVEL", "warning")
        monkeypatch.setenv("FLOWDESK_LOG_FORMAT", "json")
        stream = io.StringIO()
        setup_logging(stream=stream, settings=FlowDeskSettings(_env_file=None))

        logger = structlog.get_logger("flowdesk.test")
        logger.info("sync_succeeded", flow="flow_1")
        logger.warning("sync_failed", flow="flow_1")

        lines = [json.loads(line) for line in stream.getvalue().splitlines()]
        assert [line["event"] for line in lines] == ["sync_failed"]
        assert logging.getLogger().level == logging.WARNING
        structlog.reset_defaults()


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_str_includes_code(self):
        error = FlowDeskError("Something failed", code="X")

        assert str(error) == "[X] Something failed"
        assert "FlowDeskError" in repr(error)

    def test_sync_transport_error(self):
        error = SyncTransportError("down", status_code=503, flow_id="f1")

        assert error.code == "SYNC_TRANSPORT_ERROR"
        assert str(error) == "[SYNC_TRANSPORT_ERROR] down (HTTP 503)"

    def test_patch_errors(self):
        error = SelfReferenceError("n1", "f1")

        assert isinstance(error, InvalidNodePatch)
        assert error.code == "SELF_REFERENCE"
        assert "targetFlowId" in str(error)

    def test_messages(self):
        assert str(UnknownNodeReference(node_id="n9")) == "[UNKNOWN_NODE] Node 'n9' does not exist"
        assert str(LoadNotFound("f1")) == "Flow with ID 'f1' not found"
