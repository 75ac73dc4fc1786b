# pp_app/core/referrals.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pp_app.core.config import settings
from pp_app.core.signup_rules import fallback_referral_code, random_code
from pp_app.db.models import WaitlistEntry

logger = logging.getLogger(__name__)

CODE_ATTEMPTS = 8


async def generate_unique_referral_code(s: AsyncSession) -> str:
    for _ in range(CODE_ATTEMPTS):
        code = random_code()
        taken = (
            await s.execute(select(WaitlistEntry.id).where(WaitlistEntry.referral_code == code))
        ).scalar_one_or_none()
        if taken is None:
            return code
    logger.warning("referral code attempts exhausted, using timestamp fallback")
    return fallback_referral_code()


async def resolve_referrer(s: AsyncSession, code: Optional[str], email: str) -> Optional[str]:
    """Id of the entry owning ``code``, unless missing or it's the signer's own."""
    if not code:
        return None
    row = (
        await s.execute(
            select(WaitlistEntry.id, WaitlistEntry.email).where(WaitlistEntry.referral_code == code)
        )
    ).first()
    if row is None or (row.email or "").lower() == email:
        return None
    return row.id


async def credit_referrer(s: AsyncSession, referrer_id: str) -> None:
    await s.execute(
        update(WaitlistEntry)
        .where(WaitlistEntry.id == referrer_id)
        .values(
            referral_points=WaitlistEntry.referral_points + settings.referral_points_per_signup,
            referrals_count=WaitlistEntry.referrals_count + 1,
        )
    )
    await s.commit()


async def credit_referrer_best_effort(s: AsyncSession, referrer_id: str) -> bool:
    """Credit the referrer; a failure is logged and never reaches the signup."""
    try:
        await credit_referrer(s, referrer_id)
    except SQLAlchemyError:
        logger.warning("referral credit failed for %s", referrer_id, exc_info=True)
        await s.rollback()
        return False
    return True
