import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from pp_app.db.base import Base


def _uuid() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    # sqlite hands back naive datetimes even for timezone=True columns
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)


class WaitlistEntry(Base):
    __tablename__ = "waitlist_entries"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_uuid)
    role: Mapped[str] = mapped_column(String(16), index=True)
    full_name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str] = mapped_column(String(320), index=True)  # stored lower-cased
    phone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    answers: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)

    accepted_privacy: Mapped[bool] = mapped_column(Boolean, default=False)
    marketing_consent: Mapped[bool] = mapped_column(Boolean, default=False)

    # referrals
    referral_code: Mapped[str] = mapped_column(String(16), unique=True, index=True)
    referred_by: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    referral_points: Mapped[int] = mapped_column(Integer, default=0)
    referrals_count: Mapped[int] = mapped_column(Integer, default=0)

    # vendor queue
    vendor_priority_score: Mapped[int] = mapped_column(Integer, default=0)
    vendor_queue_override: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    certificate_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    # admin review
    review_status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    admin_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # review-friendly columns derived from answers at signup
    is_student: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    university: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    instagram_handle: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    bus_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    compliance_readiness: Mapped[list] = mapped_column(JSON, default=list)
    top_cuisines: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (UniqueConstraint("role", "email", name="uq_waitlist_role_email"),)


class EmailCode(Base):
    __tablename__ = "email_codes"
    id: Mapped[int] = mapped_column(primary_key=True)
    email: Mapped[str] = mapped_column(String(320), index=True)
    code_hash: Mapped[str] = mapped_column(String(255))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    consumed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
