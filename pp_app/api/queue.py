from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pp_app.api.deps import get_session, rate_limit
from pp_app.core.config import settings
from pp_app.core.entries import entry_from_record
from pp_app.core.mailer import send_queue_code
from pp_app.core.otp import CodeRejected, clean_code, consume_code, issue_code
from pp_app.core.ranking import position
from pp_app.core.security import create_queue_token, get_queue_email
from pp_app.core.signup_rules import is_valid_email
from pp_app.db.models import WaitlistEntry
from pp_app.db.queries import STATUS_COLUMNS, fetch_rank_population
from pp_app.schemas.queue import QueueStatusOut, SendCodeIn, VerifiedStatusOut, VerifyCodeIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/queue", tags=["queue"])


def referral_link(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    return f"{settings.site_url}/join?ref={quote(code)}"


async def queue_status(s: AsyncSession, row: Mapping[str, Any]) -> QueueStatusOut:
    entry = entry_from_record(dict(row))
    population, _ = await fetch_rank_population(s, entry.role)
    return QueueStatusOut(
        id=entry.id,
        email=row["email"],
        role=entry.role,
        review_status=entry.review_status,
        position=position(population, entry.id),
        score=entry.queue_score,
        created_at=entry.created_at,
        referral_code=entry.referral_code,
        referral_link=referral_link(entry.referral_code),
    )


async def _find_by_email(s: AsyncSession, email: str) -> Mapping[str, Any]:
    row = (
        await s.execute(
            select(*STATUS_COLUMNS)
            .where(WaitlistEntry.email == email)
            .order_by(WaitlistEntry.created_at.asc())
            .limit(1)
        )
    ).mappings().first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found on waitlist")
    return row


@router.get("/status", response_model=QueueStatusOut)
async def status_lookup(
    code: Optional[str] = Query(None),
    id: Optional[str] = Query(None),
    s: AsyncSession = Depends(get_session),
):
    code = (code or "").strip()
    entry_id = (id or "").strip()
    if not code and not entry_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing code or id")

    stmt = select(*STATUS_COLUMNS)
    if code:
        stmt = stmt.where(WaitlistEntry.referral_code == code)
    else:
        stmt = stmt.where(WaitlistEntry.id == entry_id)
    row = (await s.execute(stmt)).mappings().first()
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")
    return await queue_status(s, row)


@router.post("/send-code")
async def send_code(
    payload: SendCodeIn,
    s: AsyncSession = Depends(get_session),
    _: None = Depends(rate_limit(5, 60)),
):
    email = payload.email.strip().lower()
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    if not is_valid_email(email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid email address")

    code = await issue_code(s, email)
    sent = await send_queue_code(email, code)
    if not sent.success:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Could not send code")
    return {"ok": True}


@router.post("/verify-code", response_model=VerifiedStatusOut)
async def verify_code(
    payload: VerifyCodeIn,
    s: AsyncSession = Depends(get_session),
    _: None = Depends(rate_limit(10, 60)),
):
    email = payload.email.strip().lower()
    token = clean_code(payload.token)
    if not email:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email is required")
    if not token:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Code is required")

    try:
        await consume_code(s, email, token)
    except CodeRejected as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    row = await _find_by_email(s, email)
    current = await queue_status(s, row)
    return VerifiedStatusOut(**current.model_dump(), access_token=create_queue_token(email))


@router.get("/me", response_model=QueueStatusOut)
async def my_status(
    email: str = Depends(get_queue_email),
    s: AsyncSession = Depends(get_session),
):
    row = await _find_by_email(s, email)
    return await queue_status(s, row)
