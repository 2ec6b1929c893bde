"""
config.py – Centralised configuration via environment variables.
All tunable thresholds live here so nothing is scattered across modules.
"""
import os


# ── Upload limits ──────────────────────────────────────────────────────────────
MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", "20"))
MAX_FILE_SIZE_BYTES: int = MAX_FILE_SIZE_MB * 1024 * 1024
MAX_EVENTS: int = int(os.getenv("MAX_EVENTS", "10000"))

# ── Graph construction ─────────────────────────────────────────────────────────
# Only the first GRAPH_EVENT_CAP events feed nodes/edges of the rendered graph.
# Compromised-account detection always sees the full sequence.
GRAPH_EVENT_CAP: int = int(os.getenv("GRAPH_EVENT_CAP", "30"))

# Display names strip this prefix from account ids (ACC_JOHN_DOE → John Doe)
ACCOUNT_PREFIX: str = os.getenv("ACCOUNT_PREFIX", "ACC_")

# ── Radial layout ──────────────────────────────────────────────────────────────
LAYOUT_CENTER_X: float = float(os.getenv("LAYOUT_CENTER_X", "400"))
LAYOUT_CENTER_Y: float = float(os.getenv("LAYOUT_CENTER_Y", "300"))
LAYOUT_RADIUS: float = float(os.getenv("LAYOUT_RADIUS", "200"))

# ── Threat scoring ─────────────────────────────────────────────────────────────
SEVERITY_WEIGHTS: dict = {
    "low": 1,
    "medium": 3,
    "high": 7,
    "critical": 10,
}
DEFAULT_SEVERITY: str = "medium"
THREAT_LEVEL_MAX: int = 10

# Node tiers: threat_level > HIGH → "high", > MEDIUM → "medium", else "normal"
THREAT_TIER_HIGH: int = 7
THREAT_TIER_MEDIUM: int = 3

# ── Edge visual state ──────────────────────────────────────────────────────────
# An edge with more than this many contributing events is "high volume".
HIGH_VOLUME_EDGE_COUNT: int = int(os.getenv("HIGH_VOLUME_EDGE_COUNT", "5"))
# Dollar label shown on an edge = count * EDGE_LABEL_UNIT
EDGE_LABEL_UNIT: int = int(os.getenv("EDGE_LABEL_UNIT", "1000"))

# ── Export ─────────────────────────────────────────────────────────────────────
EXPORT_FILENAME_PREFIX: str = "threat-data"
