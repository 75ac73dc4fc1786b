# pp_app/core/review.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel

from pp_app.core.entries import BaseEntry, VendorEntry

REVIEW_STATUSES = ("pending", "reviewed", "approved", "rejected")
DEFAULT_REVIEWER = "admin"

# vendor_queue_override is a 32-bit INTEGER column
OVERRIDE_MIN = -(2**31)
OVERRIDE_MAX = 2**31 - 1


class InvalidUpdate(ValueError):
    pass


class ReviewUpdate(BaseModel):
    """Admin-editable fields. Omitted fields are left untouched."""

    review_status: Optional[str] = None
    admin_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    vendor_queue_override: Optional[Union[int, float, str]] = None


@dataclass(frozen=True)
class ReviewChange:
    review_status: Optional[str] = None
    reviewed_by: str = DEFAULT_REVIEWER
    notes_given: bool = False
    admin_notes: Optional[str] = None
    override_given: bool = False
    vendor_queue_override: Optional[int] = None

    def patch_for(self, entry: BaseEntry, now: datetime) -> Dict[str, Any]:
        """Column values to write for ``entry``.

        Any status may follow any other. A non-pending status stamps the
        reviewer and time; going back to pending clears the time. The queue
        override only ever lands on vendor entries.
        """
        patch: Dict[str, Any] = {}
        if self.notes_given:
            patch["admin_notes"] = self.admin_notes
        if self.review_status is not None:
            patch["review_status"] = self.review_status
            patch["reviewed_by"] = self.reviewed_by
            patch["reviewed_at"] = None if self.review_status == "pending" else now
        if self.override_given and isinstance(entry, VendorEntry):
            patch["vendor_queue_override"] = self.vendor_queue_override
        return patch


def parse_status(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    status = raw.strip().lower()
    if status not in REVIEW_STATUSES:
        raise InvalidUpdate("Invalid review_status. Use pending|reviewed|approved|rejected")
    return status


def parse_override(raw: Union[int, float, str, None]) -> Optional[int]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        raise InvalidUpdate("vendor_queue_override must be a number or null")
    if not math.isfinite(value) or not value.is_integer():
        raise InvalidUpdate("vendor_queue_override must be a whole number or null")
    if not OVERRIDE_MIN <= value <= OVERRIDE_MAX:
        raise InvalidUpdate("vendor_queue_override is out of range")
    return int(value)


def parse_review_change(update: ReviewUpdate) -> ReviewChange:
    given = update.model_fields_set
    reviewer = (update.reviewed_by or "").strip() or DEFAULT_REVIEWER
    return ReviewChange(
        review_status=parse_status(update.review_status),
        reviewed_by=reviewer,
        notes_given="admin_notes" in given,
        admin_notes=update.admin_notes,
        override_given="vendor_queue_override" in given,
        vendor_queue_override=parse_override(update.vendor_queue_override),
    )
