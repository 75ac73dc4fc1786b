"""
Queue ranking.

Consumers: referral points (desc), then signup time (asc).
Vendors: admin override first (asc), then priority score (desc), then signup
time (asc). Entry id breaks any remaining tie so the order is strict.

Positions must be computed over the whole population of a role, never over
a page of results.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, TypeVar

from pp_app.core.entries import RankKey

E = TypeVar("E", bound=RankKey)


def rank(entries: Iterable[E], role: str) -> List[E]:
    return sorted((e for e in entries if e.role == role), key=lambda e: e.rank_key())


def position(entries: Iterable[E], target_id: str) -> Optional[int]:
    """1-based queue position of ``target_id`` within its role, or None."""
    pool = list(entries)
    target = next((e for e in pool if e.id == target_id), None)
    if target is None:
        return None
    for idx, entry in enumerate(rank(pool, target.role), start=1):
        if entry.id == target_id:
            return idx
    return None
