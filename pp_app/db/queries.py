# pp_app/db/queries.py
from __future__ import annotations

import logging
from typing import Callable, List, Sequence, Tuple

from sqlalchemy import Select, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from pp_app.core.entries import Entry, entry_from_record
from pp_app.db.models import WaitlistEntry

logger = logging.getLogger(__name__)

OVERRIDE_COLUMN = "vendor_queue_override"

RANK_COLUMNS = (
    WaitlistEntry.id,
    WaitlistEntry.role,
    WaitlistEntry.created_at,
    WaitlistEntry.review_status,
    WaitlistEntry.referral_code,
    WaitlistEntry.referral_points,
    WaitlistEntry.referrals_count,
    WaitlistEntry.vendor_priority_score,
    WaitlistEntry.vendor_queue_override,
)

# what a status lookup needs about the entry itself
STATUS_COLUMNS = (
    WaitlistEntry.id,
    WaitlistEntry.email,
    WaitlistEntry.role,
    WaitlistEntry.review_status,
    WaitlistEntry.created_at,
    WaitlistEntry.referral_code,
    WaitlistEntry.referral_points,
    WaitlistEntry.vendor_priority_score,
)


def without_override(columns: Sequence) -> list:
    return [c for c in columns if c.key != OVERRIDE_COLUMN]


def is_missing_column(exc: DBAPIError, column: str) -> bool:
    msg = str(exc.orig if exc.orig is not None else exc).lower()
    if column not in msg:
        return False
    # sqlite: "no such column", postgres: "column ... does not exist"
    return "no such column" in msg or "does not exist" in msg or "undefinedcolumn" in msg


async def execute_with_override_fallback(
    s: AsyncSession, build: Callable[[bool], Select]
) -> Tuple[list, bool]:
    """Run ``build(True)``; if the override column isn't queryable yet, run
    ``build(False)`` instead. Returns (row mappings, degraded)."""
    try:
        rows = (await s.execute(build(True))).mappings().all()
        return [dict(r) for r in rows], False
    except DBAPIError as exc:
        if not is_missing_column(exc, OVERRIDE_COLUMN):
            raise
        await s.rollback()
        logger.warning("vendor_queue_override not queryable, using automatic vendor ordering")
    rows = (await s.execute(build(False))).mappings().all()
    return [dict(r) for r in rows], True


async def fetch_rank_population(s: AsyncSession, role: str) -> Tuple[List[Entry], bool]:
    """Every entry of ``role`` with the fields the queue comparator needs."""

    def build(with_override: bool) -> Select:
        cols = RANK_COLUMNS if with_override else without_override(RANK_COLUMNS)
        return select(*cols).where(WaitlistEntry.role == role)

    rows, degraded = await execute_with_override_fallback(s, build)
    return [entry_from_record(r) for r in rows], degraded
