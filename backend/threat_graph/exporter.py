"""
exporter.py – Build the normalized threat-data export document.

Unlike the rendered network graph, the export covers EVERY event (no window
cap).  Accounts come from the shared account accumulation pass; the export
graph's edges are folded from the transaction records with a pandas
group-by that keeps first-appearance order.

Document contract (camelCase on the wire)
-----------------------------------------
{
  "timestamp": epoch-ms, "totalEvents": int, "suspiciousEvents": int,
  "accounts":     [{id, name, isCompromised, threatLevel, totalTransactions,
                    suspiciousTransactions, totalAmount, location}],
  "transactions": [{id, from, to, amount, timestamp, status, suspicious,
                    severity, attackType}],
  "networkGraph": {nodes: [{id, label, isCompromised, threatLevel,
                            totalTransactions}],
                   edges: [{from, to, weight, isSuspicious, transactions}],
                   compromisedAccount}
}
"""
from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Iterable, List, Optional

import networkx as nx
import pandas as pd

from .config import EXPORT_FILENAME_PREFIX
from .detector import find_compromised_account
from .graph_builder import accumulate_accounts, mark_compromised
from .models import (
    AccountRecord,
    ExportEdge,
    ExportGraph,
    ExportNode,
    ThreatDataDocument,
    ThreatEvent,
    TransactionRecord,
)
from .parser import validate_events

log = logging.getLogger(__name__)


def _transaction_records(events: List[ThreatEvent]) -> List[TransactionRecord]:
    return [
        TransactionRecord(
            id=e.id,
            source=e.source_account,
            target=e.dest_account,
            amount=e.amount or 0.0,
            timestamp=e.timestamp,
            status=e.status,
            suspicious=e.suspicious,
            severity=e.severity,
            attack_type=e.attack_type,
        )
        for e in events
        if e.source_account and e.dest_account
    ]


def _account_records(G: nx.DiGraph) -> List[AccountRecord]:
    return [
        AccountRecord(
            id=account_id,
            name=attrs["display_name"],
            is_compromised=attrs["is_compromised"],
            threat_level=attrs["threat_level"],
            total_transactions=attrs["tx_count"],
            suspicious_transactions=attrs["suspicious_tx_count"],
            total_amount=round(attrs["total_amount"], 2),
            location=attrs["location"],
        )
        for account_id, attrs in G.nodes(data=True)
    ]


def _fold_edges(transactions: List[TransactionRecord]) -> List[ExportEdge]:
    """
    One edge per ordered (from, to) pair: summed weight, transaction count
    and suspicious flag (any contributing record suspicious).
    """
    if not transactions:
        return []

    df = pd.DataFrame({
        "source":     [t.source for t in transactions],
        "target":     [t.target for t in transactions],
        "amount":     [t.amount for t in transactions],
        "suspicious": [t.suspicious for t in transactions],
    })
    edge_stats = df.groupby(["source", "target"], sort=False).agg(
        weight=("amount", "sum"),
        transactions=("amount", "count"),
        is_suspicious=("suspicious", "any"),
    ).reset_index()

    return [
        ExportEdge(
            source=row.source,
            target=row.target,
            weight=round(float(row.weight), 2),
            is_suspicious=bool(row.is_suspicious),
            transactions=int(row.transactions),
        )
        for row in edge_stats.itertuples(index=False)
    ]


def build_threat_document(events: Iterable) -> ThreatDataDocument:
    """Aggregate the full event sequence into a ThreatDataDocument."""
    all_events = validate_events(events)

    G = accumulate_accounts(all_events)
    compromised = find_compromised_account(all_events)
    mark_compromised(G, compromised)

    accounts = _account_records(G)
    transactions = _transaction_records(all_events)

    network_graph = ExportGraph(
        nodes=[
            ExportNode(
                id=a.id,
                label=a.name,
                is_compromised=a.is_compromised,
                threat_level=a.threat_level,
                total_transactions=a.total_transactions,
            )
            for a in accounts
        ],
        edges=_fold_edges(transactions),
        compromised_account=compromised,
    )

    document = ThreatDataDocument(
        timestamp=int(time.time() * 1000),
        total_events=len(all_events),
        suspicious_events=sum(1 for e in all_events if e.suspicious),
        accounts=accounts,
        transactions=transactions,
        network_graph=network_graph,
    )
    log.info(
        "Export built: %d events, %d accounts, %d transactions, %d edges (compromised=%s)",
        document.total_events,
        len(accounts),
        len(transactions),
        len(network_graph.edges),
        compromised,
    )
    return document


def export_filename(now: Optional[datetime] = None) -> str:
    """threat-data-<YYYY-MM-DD>.json (UTC date)."""
    now = now or datetime.now(timezone.utc)
    return f"{EXPORT_FILENAME_PREFIX}-{now.date().isoformat()}.json"


def document_filename(document: ThreatDataDocument) -> str:
    """File name dated by the document's own export timestamp."""
    exported_at = datetime.fromtimestamp(document.timestamp / 1000, tz=timezone.utc)
    return export_filename(exported_at)


def serialize_document(document: ThreatDataDocument) -> bytes:
    """Indented JSON with camelCase keys; absent optional fields are omitted."""
    return document.model_dump_json(by_alias=True, exclude_none=True, indent=2).encode("utf-8")


class ThreatDataExporter:
    """
    Holds the most recent export for one caller (e.g. one app instance).
    Each export() replaces the current document.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Optional[ThreatDataDocument] = None

    def export(self, events: Iterable) -> ThreatDataDocument:
        document = build_threat_document(events)
        with self._lock:
            self._current = document
        return document

    def current(self) -> Optional[ThreatDataDocument]:
        with self._lock:
            return self._current

    def to_json(self) -> Optional[bytes]:
        document = self.current()
        if document is None:
            return None
        return serialize_document(document)

    def filename(self) -> str:
        """Dated by the current document; today's date before the first export."""
        document = self.current()
        if document is None:
            return export_filename()
        return document_filename(document)
