"""
formatter.py – Produce the rendered network-graph payload.

JSON contract
-------------
{
  "nodes": [{id, account, display_name, is_compromised, threat_level, tier,
             transactions, suspicious_transactions, total_amount,
             is_source, is_destination, position: {x, y}}],
  "edges": [{id, source, target, count, total_amount, is_suspicious,
             is_high_volume, visual_state, label}],
  "compromised_account_id": str | null,
  "events_considered": int
}

Nodes are emitted in layout order (center account first).  Edges keep
first-insertion order and are numbered edge-0, edge-1, ...
Suspicious edges outrank high-volume ones in visual_state.
"""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import networkx as nx

from .config import EDGE_LABEL_UNIT, HIGH_VOLUME_EDGE_COUNT
from .models import GraphEdge, GraphNode, NetworkGraph, Position
from .scoring import threat_tier

log = logging.getLogger(__name__)

EDGE_SUSPICIOUS = "suspicious"
EDGE_HIGH_VOLUME = "high_volume"
EDGE_NORMAL = "normal"


def is_high_volume(count: int) -> bool:
    return count > HIGH_VOLUME_EDGE_COUNT


def edge_visual_state(count: int, suspicious: bool) -> str:
    if suspicious:
        return EDGE_SUSPICIOUS
    if is_high_volume(count):
        return EDGE_HIGH_VOLUME
    return EDGE_NORMAL


def edge_label(count: int) -> str:
    """Dollar label with thousands separators: 12 → '$12,000'."""
    return f"${count * EDGE_LABEL_UNIT:,}"


def format_network_graph(
    G: nx.DiGraph,
    positions: Dict[str, Tuple[float, float]],
    compromised: Optional[str],
    events_considered: int,
) -> NetworkGraph:
    """
    Build the NetworkGraph model.

    Parameters
    ----------
    G                 : account graph from graph_builder.accumulate_accounts()
    positions         : output of layout.radial_layout()
    compromised       : account id chosen over the full event sequence
    events_considered : size of the event window the graph was built from
    """
    nodes: List[GraphNode] = []
    for account_id, (x, y) in positions.items():
        attrs = G.nodes[account_id]
        nodes.append(GraphNode(
            id=account_id,
            account=account_id,
            display_name=attrs["display_name"],
            is_compromised=attrs["is_compromised"],
            threat_level=attrs["threat_level"],
            tier=threat_tier(attrs["threat_level"], attrs["is_compromised"]),
            transactions=attrs["tx_count"],
            suspicious_transactions=attrs["suspicious_tx_count"],
            total_amount=round(attrs["total_amount"], 2),
            is_source=attrs["is_source"],
            is_destination=attrs["is_destination"],
            position=Position(x=x, y=y),
        ))

    edges: List[GraphEdge] = []
    for index, (u, v, attrs) in enumerate(
        sorted(G.edges(data=True), key=lambda e: e[2]["seq"])
    ):
        edges.append(GraphEdge(
            id=f"edge-{index}",
            source=u,
            target=v,
            count=attrs["count"],
            total_amount=round(attrs["total_amount"], 2),
            is_suspicious=attrs["is_suspicious"],
            is_high_volume=is_high_volume(attrs["count"]),
            visual_state=edge_visual_state(attrs["count"], attrs["is_suspicious"]),
            label=edge_label(attrs["count"]),
        ))

    log.debug("Formatted %d nodes, %d edges", len(nodes), len(edges))
    return NetworkGraph(
        nodes=nodes,
        edges=edges,
        compromised_account_id=compromised,
        events_considered=events_considered,
    )
