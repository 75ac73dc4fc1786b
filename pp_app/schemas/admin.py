from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

from pp_app.core.review import ReviewUpdate


class AdminRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    role: str
    full_name: str
    email: str
    phone: Optional[str] = None
    answers: Dict[str, Any] = {}

    referral_code: Optional[str] = None
    referred_by: Optional[str] = None
    referrals_count: int = 0
    referral_points: int = 0

    vendor_priority_score: int = 0
    vendor_queue_override: Optional[int] = None
    certificate_url: Optional[str] = None

    review_status: str = "pending"
    admin_notes: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None

    is_student: Optional[bool] = None
    university: Optional[str] = None
    city: Optional[str] = None
    instagram_handle: Optional[str] = None
    bus_minutes: Optional[int] = None
    compliance_readiness: List[str] = []
    top_cuisines: List[str] = []

    created_at: datetime
    updated_at: Optional[datetime] = None

    # referral points for consumers, priority score for vendors
    score: int = 0


class AdminListOut(BaseModel):
    rows: List[AdminRow]
    total: int
    limit: int
    offset: int
    degraded: bool = False


class AdminUpdateIn(ReviewUpdate):
    id: str = ""


class AdminUpdateOut(BaseModel):
    ok: bool = True
    row: AdminRow
