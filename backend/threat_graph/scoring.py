"""
scoring.py – Threat scoring for accounts touched by suspicious events.

Scoring model
-------------
1. Severity weight   – low=1, medium=3, high=7, critical=10 (config.SEVERITY_WEIGHTS).
                       Missing or unknown severity scores as DEFAULT_SEVERITY.
                       Non-suspicious events weigh 0.
2. Accumulation      – threat_level = min(THREAT_LEVEL_MAX, threat_level + weight),
                       applied with the FULL weight to both source and destination.
                       Saturating: nothing ever lowers a threat level.
3. Tier              – compromised > high (>7) > medium (>3) > normal, consumed
                       by the graph renderer.
"""
from __future__ import annotations

from typing import Optional

from .config import (
    SEVERITY_WEIGHTS,
    DEFAULT_SEVERITY,
    THREAT_LEVEL_MAX,
    THREAT_TIER_HIGH,
    THREAT_TIER_MEDIUM,
)

TIER_COMPROMISED = "compromised"
TIER_HIGH = "high"
TIER_MEDIUM = "medium"
TIER_NORMAL = "normal"


def severity_weight(severity: Optional[str], suspicious: bool) -> int:
    """Return the threat weight contributed by one event."""
    if not suspicious:
        return 0
    key = (severity or DEFAULT_SEVERITY).strip().lower()
    return SEVERITY_WEIGHTS.get(key, SEVERITY_WEIGHTS[DEFAULT_SEVERITY])


def accumulate_threat(threat_level: int, weight: int) -> int:
    return min(THREAT_LEVEL_MAX, threat_level + weight)


def threat_tier(threat_level: int, is_compromised: bool = False) -> str:
    if is_compromised:
        return TIER_COMPROMISED
    if threat_level > THREAT_TIER_HIGH:
        return TIER_HIGH
    if threat_level > THREAT_TIER_MEDIUM:
        return TIER_MEDIUM
    return TIER_NORMAL
