"""Unit tests for the snapshot codec."""

import math

import pytest

from flowdesk.exceptions import MissingScopeError
from flowdesk.graph.canonical import NodeType
from flowdesk.graph.connections import Connection
from flowdesk.graph.labels import relabel_all
from flowdesk.graph.models import FlowGraph
from flowdesk.graph.snapshot import (
    build_sync_request,
    clean_num,
    clean_str,
    normalize_marker,
    parse_node,
    parse_version,
    sanitize_node_data,
)


class TestValueCleaning:
    """Tests for the value normalization helpers."""

    @pytest.mark.parametrize("value,expected", [
        ("  hello ", "hello"),
        ("   ", None),
        ("", None),
        (None, None),
        (12, "12"),
    ])
    def test_clean_str(self, value, expected):
        assert clean_str(value) == expected

    @pytest.mark.parametrize("value,expected", [
        (10, 10.0),
        ("3.5", 3.5),
        (None, 0.0),
        ("abc", 0.0),
        (math.nan, 0.0),
        (math.inf, 0.0),
    ])
    def test_clean_num(self, value, expected):
        assert clean_num(value) == expected

    def test_normalize_marker(self):
        assert normalize_marker({"type": "arrowclosed", "width": 10}) == "arrowclosed"
        assert normalize_marker("arrow") == "arrow"
        assert normalize_marker(None) is None
        assert normalize_marker({}) is None

    def test_sanitize_node_data(self):
        data = {"kind": "request", "__rf": {}, "measured": {"w": 1}, "selected": True, "zIndex": 3}

        assert sanitize_node_data(data) == {"kind": "request"}


class TestBuildSyncRequest:
    """Tests for outbound snapshots."""

    def test_requires_scope(self):
        with pytest.raises(MissingScopeError):
            build_sync_request(FlowGraph(flow_id=None, company_id="emp_1"))
        with pytest.raises(MissingScopeError):
            build_sync_request(FlowGraph(flow_id="flow_1"))

    def test_full_snapshot(self, store):
        """Test nodes and edges are written with wire names and explicit nulls."""
        decision = store.add_node("decision", node_id="d", position=(10, 20), description="   ")
        store.add_node("step:database", node_id="s")
        store.add_edge(Connection("d", "s", "true"))

        body = build_sync_request(store.graph).to_wire()

        assert body["empresaId"] == "emp_1"
        assert [n["key"] for n in body["nodes"]] == ["d", "s"]
        node = body["nodes"][0]
        assert node["type"] == "decision"
        assert node["label"] == decision.label
        assert node["description"] is None
        assert (node["x"], node["y"], node["order"]) == (10.0, 20.0, 0)
        assert node["data"]["trueLabel"] == "SIM"
        assert body["nodes"][1]["data"]["kind"] == "database"

        edge = body["edges"][0]
        assert edge["sourceKey"] == "d"
        assert edge["targetKey"] == "s"
        assert edge["sourceHandle"] == "true"
        assert edge["targetHandle"] is None
        assert edge["label"] == "SIM"
        assert edge["edgeType"] == "smoothstep"
        assert edge["markerEnd"] == "arrowclosed"
        assert edge["markerStart"] is None
        assert edge["pathOptions"] == {"offset": 12, "borderRadius": 8}

    def test_non_finite_coordinates_become_zero(self, store):
        node = store.add_node("note")
        node.position.x = math.nan

        body = build_sync_request(store.graph).to_wire()

        assert body["nodes"][0]["x"] == 0.0

    def test_company_id_override(self, store):
        body = build_sync_request(store.graph, company_id="emp_2").to_wire()

        assert body["empresaId"] == "emp_2"


class TestParseVersion:
    """Tests for inbound snapshots."""

    def test_parse_sample_flow(self, sample_flow):
        graph = parse_version(FlowGraph(flow_id="flow_1"), sample_flow["version"])

        assert list(graph.nodes) == ["entry-1", "decision-1", "db-1", "sub-1"]
        assert graph.nodes["sub-1"].node_type is NodeType.CALL_FLOW
        assert graph.nodes["db-1"].payload.db.table == "clientes"
        assert "__rf" not in graph.nodes["sub-1"].payload.to_wire()
        # Orphan edge to "ghost" is dropped
        assert set(graph.edges) == {"e1", "e2", "e3"}
        assert graph.validate() == []

    def test_decision_labels_rederived(self, sample_flow):
        graph = parse_version(FlowGraph(flow_id="flow_1"), sample_flow["version"])

        relabel_all(graph)

        assert graph.edges["e2"].label == "Ativo"
        assert graph.edges["e3"].label == "NÃO"

    def test_nodes_sorted_by_order(self):
        version = {
            "nodes": [
                {"key": "b", "type": "note", "order": 2},
                {"key": "a", "type": "note", "order": 1},
                {"key": "c", "type": "note"},
            ],
            "edges": [],
        }

        graph = parse_version(FlowGraph(), version)

        assert list(graph.nodes) == ["a", "b", "c"]

    def test_label_and_position_fallbacks(self):
        node = parse_node({
            "id": "n1",
            "type": "step:request",
            "position": {"x": 5, "y": "7"},
            "data": {"label": "Chamar API", "description": "desc", "req": {"url": "https://x.test"}},
        })

        assert node.label == "Chamar API"
        assert node.description == "desc"
        assert (node.position.x, node.position.y) == (5.0, 7.0)
        assert node.kind == "request"
        assert "label" not in node.payload.to_wire()

    def test_edge_handles_from_data(self):
        version = {
            "nodes": [{"key": "a", "type": "decision"}, {"key": "b", "type": "step"}],
            "edges": [{"sourceKey": "a", "targetKey": "b", "data": {"handles": {"source": "false"}}}],
        }

        graph = parse_version(FlowGraph(), version)
        edge = next(graph.iter_edges())

        assert edge.edge_id == "a-b-0"
        assert edge.source_handle == "false"

    def test_load_then_sync_round_trip(self, sample_flow):
        """Test an unmodified load re-serializes to the same structure."""
        graph = parse_version(FlowGraph(flow_id="flow_1", company_id="emp_1"), sample_flow["version"])
        relabel_all(graph)

        body = build_sync_request(graph).to_wire()

        assert [n["key"] for n in body["nodes"]] == ["entry-1", "decision-1", "db-1", "sub-1"]
        assert [n["type"] for n in body["nodes"]] == ["entry", "decision", "step", "callFlow"]
        assert [(e["key"], e["sourceKey"], e["targetKey"]) for e in body["edges"]] == [
            ("e1", "entry-1", "decision-1"),
            ("e2", "decision-1", "db-1"),
            ("e3", "decision-1", "sub-1"),
        ]
        assert body["nodes"][3]["data"]["targetFlowId"] == "flow_2"
