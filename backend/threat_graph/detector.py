"""
detector.py – Identify the compromised (most-targeted) account.

The compromised account is the destination named by the largest number of
suspicious events.  Ties go to the account that reached the winning count
first while scanning the sequence left to right: a later account that only
equals the leader never replaces it.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

from .models import ThreatEvent

log = logging.getLogger(__name__)


def find_compromised_account(events: Iterable[ThreatEvent]) -> Optional[str]:
    """
    Return the most-targeted destination account id, or None when the
    sequence contains no suspicious event with a destination.
    """
    target_counts: Dict[str, int] = {}
    leader: Optional[str] = None
    leader_count = 0

    for event in events:
        if not event.suspicious or not event.dest_account:
            continue
        count = target_counts.get(event.dest_account, 0) + 1
        target_counts[event.dest_account] = count
        if count > leader_count:
            leader, leader_count = event.dest_account, count

    if leader is not None:
        log.info(
            "Compromised account: %s (%d suspicious events across %d targets)",
            leader, leader_count, len(target_counts),
        )
    return leader
