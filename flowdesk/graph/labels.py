"""
Decision Label Propagation

Edges leaving a decision node through its "true"/"false" handles carry the
node's branch labels. These helpers compute and re-apply those labels;
the store calls them inside the same mutation that patches the node.
"""

from __future__ import annotations

from typing import List, Optional

from flowdesk.graph.models import FALSE_HANDLE, TRUE_HANDLE, Edge, FlowGraph, Node


def branch_label(node: Optional[Node], source_handle: Optional[str]) -> Optional[str]:
    """
    Label for an edge leaving ``node`` through ``source_handle``.

    Returns None when the node is not a decision or the handle is not a
    branch handle, meaning the edge keeps whatever label it was given.
    """
    if node is None:
        return None
    decision = node.decision
    if decision is None:
        return None
    if source_handle == TRUE_HANDLE:
        return decision.effective_true_label
    if source_handle == FALSE_HANDLE:
        return decision.effective_false_label
    return None


def relabel_edges_from(graph: FlowGraph, node_id: str) -> List[Edge]:
    """
    Re-derive the label of every branch edge leaving ``node_id``.

    Returns:
        The edges whose label changed
    """
    node = graph.get_node(node_id)
    if node is None or not node.is_decision:
        return []

    changed = []
    for edge in graph.get_outgoing_edges(node_id):
        label = branch_label(node, edge.source_handle)
        if label is not None and edge.label != label:
            edge.label = label
            changed.append(edge)
    return changed


def relabel_all(graph: FlowGraph) -> List[Edge]:
    """Re-derive branch labels for every decision node in the graph."""
    changed: List[Edge] = []
    for node in graph.iter_nodes():
        if node.is_decision:
            changed.extend(relabel_edges_from(graph, node.node_id))
    return changed


__all__ = ["branch_label", "relabel_edges_from", "relabel_all"]
