# pp_app/core/otp.py
from __future__ import annotations

import logging
import secrets
from datetime import timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pp_app.core.config import settings
from pp_app.core.security import hash_code, verify_code
from pp_app.db.models import EmailCode, as_utc, utcnow

logger = logging.getLogger(__name__)


class CodeRejected(ValueError):
    pass


def new_code() -> str:
    return f"{secrets.randbelow(1_000_000):06d}"


def clean_code(raw: str) -> str:
    return "".join((raw or "").split())


async def issue_code(s: AsyncSession, email: str) -> str:
    code = new_code()
    s.add(
        EmailCode(
            email=email,
            code_hash=hash_code(code),
            expires_at=utcnow() + timedelta(minutes=settings.otp_ttl_minutes),
        )
    )
    await s.commit()
    logger.info("issued queue code for %s", email)
    return code


async def consume_code(s: AsyncSession, email: str, code: str) -> None:
    """Accept ``code`` for ``email`` once, or raise CodeRejected."""
    row = (
        await s.execute(
            select(EmailCode)
            .where(EmailCode.email == email, EmailCode.consumed_at.is_(None))
            .order_by(EmailCode.id.desc())
            .limit(1)
        )
    ).scalar_one_or_none()
    if row is None:
        raise CodeRejected("Invalid code")

    now = utcnow()
    if as_utc(row.expires_at) < now:
        raise CodeRejected("Code expired")
    if row.attempts >= settings.otp_max_attempts:
        raise CodeRejected("Too many attempts, request a new code")

    if not verify_code(code, row.code_hash):
        row.attempts += 1
        await s.commit()
        raise CodeRejected("Invalid code")

    row.consumed_at = now
    await s.commit()
