"""
parser.py – Threat-event decoding and validation.

Accepts:
  • JSON array of events, or an object {"events": [...]}
  • NDJSON (one event object per line)
  • CSV with at least id, source_account, dest_account columns.  Geo data may
    be given as flattened columns source_country, source_city, source_lat,
    source_lng (and the dest_* equivalents); they are folded into
    source_geo / dest_geo.

Validation:
  • Encoding auto-detection (UTF-8 / latin-1 fallback)
  • Only records that are not JSON objects are dropped (with a warning);
    malformed optional fields are coerced by ThreatEvent instead
  • Records missing source_account or dest_account are counted; they are kept
    so the aggregators can apply their own skip rule and event-window cap
  • Row limit MAX_EVENTS
"""
from __future__ import annotations

import io
import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import pandas as pd
from pydantic import ValidationError

from .config import MAX_EVENTS
from .models import ThreatEvent

log = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".json", ".ndjson", ".jsonl", ".csv")

_CSV_REQUIRED_COLUMNS = frozenset({"id", "source_account", "dest_account"})
# Flattened CSV geo columns: <prefix>_<field> → <target>[field]
_CSV_GEO_PREFIXES = {"source": "source_geo", "dest": "dest_geo"}
_CSV_GEO_FIELDS = ("country", "city", "lat", "lng")


def validate_events(records: Iterable[Any]) -> List[ThreatEvent]:
    """
    Coerce mappings / models into ThreatEvent instances.
    Records that are not mappings are skipped, never raised.
    """
    events: List[ThreatEvent] = []
    for idx, record in enumerate(records):
        if isinstance(record, ThreatEvent):
            events.append(record)
            continue
        if not isinstance(record, Mapping):
            log.warning("Skipping non-object event at position %d: %s", idx, type(record).__name__)
            continue
        try:
            events.append(ThreatEvent.model_validate(record))
        except ValidationError as exc:
            log.warning("Skipping invalid event at position %d: %s", idx, exc.error_count())
    return events


def _decode_bytes(raw: bytes) -> str:
    """Try UTF-8, then latin-1 fallback."""
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        return raw.decode("latin-1", errors="replace")


def _load_json_records(text: str) -> List[Dict[str, Any]]:
    """JSON array, {"events": [...]} wrapper, or NDJSON."""
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        records = []
        for lineno, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise ValueError(f"JSON parse error on line {lineno}: {exc.msg}") from exc
        return records

    if isinstance(payload, dict):
        payload = payload.get("events", [payload] if "id" in payload else None)
    if not isinstance(payload, list):
        raise ValueError("JSON payload must be a list of events or an object with an 'events' list.")
    return payload


def _fold_geo_columns(row: Dict[str, Any]) -> Dict[str, Any]:
    for prefix, target in _CSV_GEO_PREFIXES.items():
        geo = {
            field: row.pop(f"{prefix}_{field}")
            for field in _CSV_GEO_FIELDS
            if f"{prefix}_{field}" in row
        }
        if geo:
            row[target] = geo
    return row


def _load_csv_records(text: str) -> List[Dict[str, Any]]:
    # Comment lines ('#') and blank lines are annotations, not rows.
    cleaned_lines = [
        line for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
    try:
        df = pd.read_csv(io.StringIO("\n".join(cleaned_lines)), dtype=str, keep_default_na=False)
    except Exception as exc:
        raise ValueError(f"CSV parse error: {exc}") from exc

    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    missing = _CSV_REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(
            f"Missing required columns: {sorted(missing)}. "
            f"Found: {sorted(df.columns.tolist())}"
        )

    for col in df.columns:
        df[col] = df[col].str.strip()

    if "amount" in df.columns:
        df["amount"] = pd.to_numeric(df["amount"], errors="coerce")
    if "timestamp" in df.columns:
        numeric_ts = pd.to_numeric(df["timestamp"], errors="coerce")
        df["timestamp"] = df["timestamp"].where(numeric_ts.isna(), numeric_ts)
    for prefix in _CSV_GEO_PREFIXES:
        for axis in ("lat", "lng"):
            col = f"{prefix}_{axis}"
            if col in df.columns:
                df[col] = pd.to_numeric(df[col], errors="coerce")

    records: List[Dict[str, Any]] = []
    for row in df.to_dict(orient="records"):
        # Empty cells mean "absent", matching JSON events with missing keys.
        records.append(_fold_geo_columns({
            k: v for k, v in row.items()
            if not (isinstance(v, str) and v == "") and not (isinstance(v, float) and pd.isna(v))
        }))
    return records


def parse_events(file_bytes: bytes, filename: str = "events.json") -> Tuple[List[ThreatEvent], dict]:
    """
    Decode and validate an uploaded event file.

    Returns
    -------
    events : list[ThreatEvent] – validated, input order preserved
    stats  : dict              – parse statistics and warnings

    Raises
    ------
    ValueError on fatal errors (unparseable content, zero events).
    """
    stats: dict = {
        "total_rows": 0,
        "valid_rows": 0,
        "dropped_rows": 0,
        "missing_accounts": 0,
        "invalid_records": 0,
        "warnings": [],
    }

    # 1. Decode & load ─────────────────────────────────────────────────────────
    text = _decode_bytes(file_bytes)
    if not text.strip():
        raise ValueError("Event file is empty – no events found.")

    if filename.lower().endswith(".csv"):
        records = _load_csv_records(text)
    else:
        records = _load_json_records(text)

    stats["total_rows"] = len(records)
    log.info("Event file %s loaded: %d raw records", filename, len(records))
    if not records:
        raise ValueError("Event file is empty – no events found.")

    # 2. Row limit ─────────────────────────────────────────────────────────────
    if len(records) > MAX_EVENTS:
        stats["warnings"].append(
            f"Dataset truncated from {len(records)} to {MAX_EVENTS} events."
        )
        records = records[:MAX_EVENTS]

    # 3. Schema validation ─────────────────────────────────────────────────────
    events = validate_events(records)
    stats["invalid_records"] = len(records) - len(events)
    if stats["invalid_records"]:
        stats["warnings"].append(
            f"Dropped {stats['invalid_records']} records that are not event objects."
        )

    # 4. Account presence (reported, skipped later by the aggregators) ─────────
    stats["missing_accounts"] = sum(
        1 for e in events if not e.source_account or not e.dest_account
    )
    if stats["missing_accounts"]:
        stats["warnings"].append(
            f"{stats['missing_accounts']} events lack a source or destination account "
            "and will be ignored by graph construction."
        )

    if not events:
        raise ValueError(
            "No valid events remain after validation. "
            f"Issues: {'; '.join(stats['warnings']) or 'unknown'}"
        )

    stats["valid_rows"] = len(events)
    stats["dropped_rows"] = stats["total_rows"] - len(events)
    log.info("Parse complete: %d valid / %d total events", stats["valid_rows"], stats["total_rows"])
    return events, stats
