from __future__ import annotations

import csv
import io
import json
import logging
from typing import Any, Dict, Iterator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy import Select, String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from pp_app.api.deps import get_session
from pp_app.core.entries import ROLES, entry_from_record
from pp_app.core.review import REVIEW_STATUSES, InvalidUpdate, parse_review_change
from pp_app.core.scoring import score_breakdown
from pp_app.core.security import require_admin
from pp_app.core.signup_rules import to_bool
from pp_app.db.models import WaitlistEntry, utcnow
from pp_app.db.queries import execute_with_override_fallback, without_override
from pp_app.schemas.admin import AdminListOut, AdminRow, AdminUpdateIn, AdminUpdateOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

ROW_COLUMNS = tuple(getattr(WaitlistEntry, c.key) for c in WaitlistEntry.__table__.columns)

MAX_PAGE = 200

EXPORT_HEADERS = [
    "id",
    "role",
    "created_at",
    "full_name",
    "email",
    "phone",
    "referral_code",
    "referred_by",
    "referrals_count",
    "referral_points",
    "vendor_priority_score",
    "capacity_points",
    "delivery_points",
    "compliance_points",
    "professionalism_points",
    "vendor_queue_override",
    "review_status",
    "admin_notes",
    "reviewed_at",
    "reviewed_by",
    "certificate_url",
    "city",
    "top_cuisines",
    "instagram_handle",
    "bus_minutes",
    "compliance_readiness",
    "marketing_consent",
    "answers_json",
]


def _admin_row(record: Dict[str, Any]) -> AdminRow:
    queue_score = (
        record.get("vendor_priority_score") if record.get("role") == "vendor" else record.get("referral_points")
    )
    return AdminRow.model_validate({**record, "score": queue_score or 0})


def _orm_record(row: WaitlistEntry) -> Dict[str, Any]:
    return {c.key: getattr(row, c.key) for c in ROW_COLUMNS}


def _to_number(raw: Optional[str]) -> Optional[float]:
    try:
        return float(raw) if raw not in (None, "") else None
    except ValueError:
        return None


def _ordering(role: str, with_override: bool) -> list:
    if role != "vendor":
        return [WaitlistEntry.created_at.desc(), WaitlistEntry.id.desc()]
    automatic = [
        WaitlistEntry.vendor_priority_score.desc(),
        WaitlistEntry.created_at.asc(),
        WaitlistEntry.id.asc(),
    ]
    if not with_override:
        return automatic
    return [WaitlistEntry.vendor_queue_override.asc().nulls_last(), *automatic]


@router.get("/list", response_model=AdminListOut)
async def list_entries(
    limit: int = Query(50),
    offset: int = Query(0),
    role: str = Query("all"),
    review_status: str = Query("all", alias="status"),
    q: str = Query(""),
    city: str = Query(""),
    max_bus_minutes: Optional[str] = Query(None),
    has_instagram: Optional[str] = Query(None),
    compliance: str = Query(""),
    s: AsyncSession = Depends(get_session),
):
    limit = min(max(limit, 1), MAX_PAGE)
    offset = max(offset, 0)
    role = role.strip().lower()
    review_status = review_status.strip().lower()
    if review_status != "all" and review_status not in REVIEW_STATUSES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid status")

    conditions = []
    if role in ROLES:
        conditions.append(WaitlistEntry.role == role)
    if review_status != "all":
        conditions.append(WaitlistEntry.review_status == review_status)
    if q.strip():
        needle = q.strip().lower()
        conditions.append(
            or_(
                func.lower(WaitlistEntry.full_name).contains(needle, autoescape=True),
                func.lower(WaitlistEntry.email).contains(needle, autoescape=True),
            )
        )
    if city.strip():
        conditions.append(func.lower(WaitlistEntry.city).contains(city.strip().lower(), autoescape=True))
    max_minutes = _to_number(max_bus_minutes)
    if max_minutes is not None:
        conditions.append(WaitlistEntry.bus_minutes <= max_minutes)
    instagram = to_bool(has_instagram)
    if instagram is True:
        conditions.append(WaitlistEntry.instagram_handle.is_not(None))
        conditions.append(WaitlistEntry.instagram_handle != "")
    elif instagram is False:
        conditions.append(or_(WaitlistEntry.instagram_handle.is_(None), WaitlistEntry.instagram_handle == ""))
    if compliance.strip():
        conditions.append(
            cast(WaitlistEntry.compliance_readiness, String).contains(
                json.dumps(compliance.strip()), autoescape=True
            )
        )

    total = (
        await s.execute(select(func.count()).select_from(WaitlistEntry).where(*conditions))
    ).scalar_one()

    def build(with_override: bool) -> Select:
        cols = ROW_COLUMNS if with_override else without_override(ROW_COLUMNS)
        return (
            select(*cols)
            .where(*conditions)
            .order_by(*_ordering(role, with_override))
            .offset(offset)
            .limit(limit)
        )

    rows, degraded = await execute_with_override_fallback(s, build)
    return AdminListOut(
        rows=[_admin_row(r) for r in rows],
        total=total,
        limit=limit,
        offset=offset,
        degraded=degraded,
    )


@router.patch("/update", response_model=AdminUpdateOut)
async def update_entry(payload: AdminUpdateIn, s: AsyncSession = Depends(get_session)):
    entry_id = payload.id.strip()
    if not entry_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing id")
    try:
        change = parse_review_change(payload)
    except InvalidUpdate as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    row = await s.get(WaitlistEntry, entry_id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    patch = change.patch_for(entry_from_record(row), now=utcnow())
    for key, value in patch.items():
        setattr(row, key, value)
    await s.commit()
    logger.info("admin update id=%s fields=%s", entry_id, sorted(patch))

    return AdminUpdateOut(row=_admin_row(_orm_record(row)))


def _joined(v: Any) -> str:
    if not v:
        return ""
    if isinstance(v, list):
        return " | ".join(str(x) for x in v)
    return str(v)


def _csv_line(values: List[Any]) -> str:
    buf = io.StringIO()
    csv.writer(buf, lineterminator="\n").writerow(["" if v is None else v for v in values])
    return buf.getvalue()


def _export_values(r: Dict[str, Any]) -> List[Any]:
    vendor = r.get("role") == "vendor"
    parts = score_breakdown(r.get("answers") or {}) if vendor else None
    return [
        r["id"],
        r["role"],
        r["created_at"].isoformat() if r.get("created_at") else "",
        r.get("full_name"),
        r.get("email"),
        r.get("phone"),
        r.get("referral_code"),
        r.get("referred_by"),
        r.get("referrals_count") or 0,
        r.get("referral_points") or 0,
        r.get("vendor_priority_score") or 0,
        parts.capacity if parts else "",
        parts.delivery if parts else "",
        parts.compliance if parts else "",
        parts.professionalism if parts else "",
        r.get("vendor_queue_override"),
        r.get("review_status"),
        r.get("admin_notes"),
        r["reviewed_at"].isoformat() if r.get("reviewed_at") else "",
        r.get("reviewed_by"),
        r.get("certificate_url"),
        r.get("city"),
        _joined(r.get("top_cuisines")),
        r.get("instagram_handle"),
        r.get("bus_minutes"),
        _joined(r.get("compliance_readiness")),
        bool(r.get("marketing_consent")),
        json.dumps(r.get("answers") or {}, ensure_ascii=False),
    ]


@router.get("/export")
async def export_entries(role: str = Query(""), s: AsyncSession = Depends(get_session)):
    role = role.strip().lower()

    def build(with_override: bool) -> Select:
        cols = ROW_COLUMNS if with_override else without_override(ROW_COLUMNS)
        stmt = select(*cols).order_by(WaitlistEntry.created_at.desc(), WaitlistEntry.id.desc())
        if role in ROLES:
            stmt = stmt.where(WaitlistEntry.role == role)
        return stmt

    rows, _ = await execute_with_override_fallback(s, build)

    def lines() -> Iterator[str]:
        yield _csv_line(EXPORT_HEADERS)
        for r in rows:
            yield _csv_line(_export_values(r))

    filename = f"peerplates_waitlist_{role if role in ROLES else 'all'}.csv"
    return StreamingResponse(
        lines(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
