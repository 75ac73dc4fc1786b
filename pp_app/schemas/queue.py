from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field


class QueueStatusOut(BaseModel):
    id: str
    email: str
    role: str
    review_status: str
    position: Optional[int] = None
    score: int = 0
    created_at: datetime
    referral_code: Optional[str] = None
    referral_link: Optional[str] = None


class VerifiedStatusOut(QueueStatusOut):
    access_token: str
    token_type: str = "bearer"


class SendCodeIn(BaseModel):
    email: str = ""


class VerifyCodeIn(BaseModel):
    email: str = ""
    token: str = Field("", validation_alias=AliasChoices("token", "code"))
