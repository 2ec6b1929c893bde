"""
graph_builder.py – Fold threat events into a labelled directed account graph.

A single left-to-right pass creates accounts lazily and upserts one edge per
ordered (source, destination) pair.  networkx keeps node insertion order, so
node iteration follows account discovery order; edges carry a ``seq``
attribute recording first-insertion order (DiGraph iterates edges grouped by
source node, not globally by insertion).

Node attributes
---------------
display_name                       : str
is_compromised                     : bool
threat_level                       : int   (0..THREAT_LEVEL_MAX)
tx_count, suspicious_tx_count      : int
total_amount                       : float
is_source, is_destination          : bool
location                           : GeoLocation | None (first-seen)

Edge attributes
---------------
count         : int
total_amount  : float
is_suspicious : bool
seq           : int
"""
from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

import networkx as nx

from .config import ACCOUNT_PREFIX, GRAPH_EVENT_CAP
from .detector import find_compromised_account
from .formatter import format_network_graph
from .layout import radial_layout
from .models import NetworkGraph, ThreatEvent
from .parser import validate_events
from .scoring import accumulate_threat, severity_weight

log = logging.getLogger(__name__)

_WORD_START = re.compile(r"\b\w")


def display_name(account_id: str) -> str:
    """ACC_JOHN_DOE → 'John Doe'."""
    name = account_id.replace(ACCOUNT_PREFIX, "", 1).replace("_", " ").lower()
    return _WORD_START.sub(lambda m: m.group(0).upper(), name)


def _ensure_account(G: nx.DiGraph, account_id: str, location) -> dict:
    if account_id not in G:
        G.add_node(
            account_id,
            display_name=display_name(account_id),
            is_compromised=False,
            threat_level=0,
            tx_count=0,
            suspicious_tx_count=0,
            total_amount=0.0,
            is_source=False,
            is_destination=False,
            location=location,
        )
    return G.nodes[account_id]


def accumulate_accounts(events: Iterable[ThreatEvent]) -> nx.DiGraph:
    """
    Build the account graph from already-validated events.

    Events missing either account id are skipped; the number skipped is
    stored in ``G.graph["skipped_events"]``.
    """
    G = nx.DiGraph()
    skipped = 0

    for event in events:
        if not event.source_account or not event.dest_account:
            skipped += 1
            log.debug("Skipping event %s: missing account id", event.id)
            continue

        src = _ensure_account(G, event.source_account, event.source_geo)
        dst = _ensure_account(G, event.dest_account, event.dest_geo)

        src["is_source"] = True
        dst["is_destination"] = True
        amount = event.amount or 0.0
        for node in (src, dst):
            node["tx_count"] += 1
            node["total_amount"] += amount

        if event.suspicious:
            weight = severity_weight(event.severity, event.suspicious)
            for node in (src, dst):
                node["suspicious_tx_count"] += 1
                node["threat_level"] = accumulate_threat(node["threat_level"], weight)

        # ── Directed edge upsert ───────────────────────────────────────────────
        if not G.has_edge(event.source_account, event.dest_account):
            G.add_edge(
                event.source_account,
                event.dest_account,
                count=0,
                total_amount=0.0,
                is_suspicious=False,
                seq=G.number_of_edges(),
            )
        edge = G[event.source_account][event.dest_account]
        edge["count"] += 1
        edge["total_amount"] += amount
        if event.suspicious:
            edge["is_suspicious"] = True

    G.graph["skipped_events"] = skipped
    return G


def mark_compromised(G: nx.DiGraph, account_id: Optional[str]) -> bool:
    """Flag ``account_id`` as compromised if it is in the graph."""
    if account_id is None or account_id not in G:
        return False
    G.nodes[account_id]["is_compromised"] = True
    return True


def build_network_graph(events: Iterable, max_events: int = GRAPH_EVENT_CAP) -> NetworkGraph:
    """
    Build the rendered account network.

    The compromised account is chosen over the FULL event sequence; nodes and
    edges come from the first ``max_events`` events only.
    """
    raw = list(events)
    all_events = validate_events(raw)
    compromised = find_compromised_account(all_events)

    # The cap applies to the input sequence, invalid records included.
    window_size = min(len(raw), max_events)
    window = validate_events(raw[:window_size])
    G = accumulate_accounts(window)
    centered = compromised if mark_compromised(G, compromised) else None

    positions = radial_layout(list(G.nodes), centered)
    graph = format_network_graph(G, positions, compromised, window_size)

    log.info(
        "Network graph built: %d nodes, %d edges from %d/%d events (compromised=%s)",
        G.number_of_nodes(),
        G.number_of_edges(),
        window_size,
        len(raw),
        compromised,
    )
    return graph
