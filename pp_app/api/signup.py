from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.datastructures import UploadFile

from pp_app.api.deps import get_session, rate_limit
from pp_app.core.certificates import check_certificate, remove_certificate, store_certificate
from pp_app.core.entries import ROLES
from pp_app.core.referrals import (
    credit_referrer_best_effort,
    generate_unique_referral_code,
    resolve_referrer,
)
from pp_app.core.scoring import score
from pp_app.core.signup_rules import (
    InvalidSignup,
    check_selection_limits,
    is_valid_email,
    review_columns,
    to_bool,
)
from pp_app.db.models import WaitlistEntry
from pp_app.schemas.signup import SignupIn, SignupOut

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["signup"])

DUPLICATE_MESSAGE = "This email is already on the waitlist."
ROLE_EMAIL_CONSTRAINT = "uq_waitlist_role_email"


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def is_duplicate_signup(exc: IntegrityError) -> bool:
    """True when the insert hit the one-entry-per-role-and-email constraint."""
    msg = str(exc.orig if exc.orig is not None else exc).lower()
    # postgres names the constraint, sqlite lists the columns
    return ROLE_EMAIL_CONSTRAINT in msg or "waitlist_entries.role, waitlist_entries.email" in msg


async def _read_signup(request: Request) -> Tuple[SignupIn, Optional[UploadFile]]:
    """Accept the join form either as JSON or as multipart with a certificate."""
    upload: Optional[UploadFile] = None
    if "multipart/form-data" in request.headers.get("content-type", ""):
        form = await request.form()
        data = {k: v for k, v in form.multi_items() if isinstance(v, str)}
        try:
            answers = json.loads(data.get("answers") or "{}")
        except ValueError:
            answers = {}
        maybe_file = form.get("certificate_upload")
        if isinstance(maybe_file, UploadFile):
            upload = maybe_file
    else:
        try:
            data = await request.json()
        except ValueError:
            raise _bad_request("Invalid JSON body.")
        if not isinstance(data, dict):
            raise _bad_request("Invalid JSON body.")
        answers = data.get("answers") or {}

    data["answers"] = answers if isinstance(answers, dict) else {}
    try:
        return SignupIn.model_validate(data), upload
    except ValidationError:
        raise _bad_request("Invalid signup payload.")


@router.post("/signup", response_model=SignupOut)
async def signup(
    request: Request,
    s: AsyncSession = Depends(get_session),
    _: None = Depends(rate_limit(20, 60)),
):
    body, upload = await _read_signup(request)

    role = body.role.strip().lower()
    full_name = body.full_name.strip()
    email = body.email.strip().lower()
    phone = (body.phone or "").strip() or None
    ref = (body.ref or "").strip() or None

    if role not in ROLES:
        raise _bad_request("Invalid role.")
    if not full_name:
        raise _bad_request("Full name is required.")
    if not email:
        raise _bad_request("Email is required.")
    if not is_valid_email(email):
        raise _bad_request("Invalid email address.")
    if to_bool(body.accepted_privacy) is not True:
        raise _bad_request("Please accept the Privacy Policy and Terms.")
    try:
        check_selection_limits(body.answers)
    except InvalidSignup as e:
        raise _bad_request(str(e))

    certificate: Optional[Tuple[str, bytes]] = None
    if role == "vendor" and upload is not None and upload.filename:
        raw = await upload.read()
        try:
            certificate = (check_certificate(upload.content_type or "", len(raw)), raw)
        except InvalidSignup as e:
            raise _bad_request(str(e))

    existing = (
        await s.execute(
            select(WaitlistEntry.id).where(WaitlistEntry.role == role, WaitlistEntry.email == email)
        )
    ).scalar_one_or_none()
    if existing is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_MESSAGE)

    referrer_id = await resolve_referrer(s, ref, email)
    referral_code = await generate_unique_referral_code(s)

    certificate_url = None
    if certificate is not None:
        ext, raw = certificate
        try:
            certificate_url = await asyncio.to_thread(store_certificate, email, ext, raw)
        except OSError:
            logger.exception("certificate upload failed for %s", email)
            raise HTTPException(status_code=500, detail="Upload failed.")

    entry = WaitlistEntry(
        role=role,
        full_name=full_name,
        email=email,
        phone=phone,
        answers=dict(body.answers),
        accepted_privacy=True,
        marketing_consent=bool(to_bool(body.marketing_consent)),
        referral_code=referral_code,
        referred_by=ref if referrer_id else None,
        vendor_priority_score=score(body.answers) if role == "vendor" else 0,
        certificate_url=certificate_url,
        **review_columns(body.answers),
    )
    s.add(entry)
    try:
        await s.commit()
    except IntegrityError as e:
        await s.rollback()
        if certificate_url:
            await asyncio.to_thread(remove_certificate, certificate_url)
        if is_duplicate_signup(e):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_MESSAGE)
        logger.exception("signup insert failed for %s", email)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Could not save signup, please retry.")

    out = SignupOut(id=entry.id, referral_code=entry.referral_code)
    logger.info("new %s signup id=%s referred=%s", role, out.id, bool(referrer_id))

    # points follow the referrer whatever their role; only the consumer queue uses them
    if referrer_id:
        await credit_referrer_best_effort(s, referrer_id)

    return out
