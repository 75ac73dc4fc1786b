# pp_app/core/entries.py
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Literal, Optional, Protocol, Tuple, Union

from pydantic import BaseModel, ConfigDict, field_validator

ROLES = ("consumer", "vendor")
Role = Literal["consumer", "vendor"]

# JSON-like values a questionnaire answer may hold
AnswerValue = Union[str, int, float, bool, list[str], None]


class RankKey(Protocol):
    """What the queue comparator needs from an entry."""

    id: str
    role: str

    def rank_key(self) -> Tuple[Any, ...]: ...


class BaseEntry(BaseModel, ABC):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: str
    role: Role
    created_at: datetime
    review_status: str = "pending"
    referral_code: Optional[str] = None

    @abstractmethod
    def rank_key(self) -> Tuple[Any, ...]: ...

    @property
    @abstractmethod
    def queue_score(self) -> int: ...


class ConsumerEntry(BaseEntry):
    role: Literal["consumer"] = "consumer"
    referral_points: int = 0
    referrals_count: int = 0

    @field_validator("referral_points", "referrals_count", mode="before")
    @classmethod
    def _null_is_zero(cls, v):
        return 0 if v is None else v

    def rank_key(self) -> Tuple[Any, ...]:
        # more points first, then first come first served
        return (-self.referral_points, self.created_at, self.id)

    @property
    def queue_score(self) -> int:
        return self.referral_points


class VendorEntry(BaseEntry):
    role: Literal["vendor"] = "vendor"
    vendor_priority_score: int = 0
    vendor_queue_override: Optional[int] = None

    @field_validator("vendor_priority_score", mode="before")
    @classmethod
    def _null_is_zero(cls, v):
        return 0 if v is None else v

    def rank_key(self) -> Tuple[Any, ...]:
        override = self.vendor_queue_override
        if override is not None:
            return (0, override, -self.vendor_priority_score, self.created_at, self.id)
        return (1, 0, -self.vendor_priority_score, self.created_at, self.id)

    @property
    def queue_score(self) -> int:
        return self.vendor_priority_score


Entry = Union[ConsumerEntry, VendorEntry]


def entry_from_record(record: Any) -> Entry:
    """Build the role-specific entry from an ORM row or a column mapping."""
    role = record.get("role") if isinstance(record, dict) else getattr(record, "role", None)
    if role == "vendor":
        return VendorEntry.model_validate(record)
    if role == "consumer":
        return ConsumerEntry.model_validate(record)
    raise ValueError(f"unknown role: {role!r}")
