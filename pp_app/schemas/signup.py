from typing import Any, Dict, Optional

from pydantic import AliasChoices, BaseModel, Field

from pp_app.core.entries import AnswerValue


class SignupIn(BaseModel):
    role: str = ""
    full_name: str = Field("", validation_alias=AliasChoices("fullName", "full_name"))
    email: str = ""
    phone: Optional[str] = None
    ref: Optional[str] = Field(None, validation_alias=AliasChoices("ref", "referred_by", "referredBy"))
    answers: Dict[str, AnswerValue] = {}
    accepted_privacy: Any = False
    marketing_consent: Any = False


class SignupOut(BaseModel):
    id: str
    referral_code: str
