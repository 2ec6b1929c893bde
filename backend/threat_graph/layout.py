"""
layout.py – Deterministic radial layout.

The compromised account (when present) sits at the fixed center point.
Every other account is spaced evenly on a circle of LAYOUT_RADIUS around it,
at angle ``index * 2π / n`` in discovery order.  Without a center account all
accounts go on the circle; nothing is promoted to the center.
"""
from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

from .config import LAYOUT_CENTER_X, LAYOUT_CENTER_Y, LAYOUT_RADIUS


def radial_layout(
    account_ids: List[str],
    center_id: Optional[str] = None,
    center: Tuple[float, float] = (LAYOUT_CENTER_X, LAYOUT_CENTER_Y),
    radius: float = LAYOUT_RADIUS,
) -> Dict[str, Tuple[float, float]]:
    """
    Return ``{account_id: (x, y)}``.  Dict order is emission order: the center
    account first (if any), then the circle in discovery order.
    """
    cx, cy = center
    positions: Dict[str, Tuple[float, float]] = {}

    if center_id is not None and center_id in account_ids:
        positions[center_id] = (cx, cy)

    others = [acc for acc in account_ids if acc not in positions]
    if not others:
        return positions

    angle_step = (2 * math.pi) / len(others)
    for index, account_id in enumerate(others):
        angle = index * angle_step
        positions[account_id] = (
            cx + math.cos(angle) * radius,
            cy + math.sin(angle) * radius,
        )
    return positions
