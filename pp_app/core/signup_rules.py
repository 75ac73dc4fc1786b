# pp_app/core/signup_rules.py
"""
Pure signup-time rules: input normalization, multi-select limits, referral
code shapes and the review columns derived from questionnaire answers.
"""
from __future__ import annotations

import re
import secrets
import time
from typing import Any, List, Mapping, Optional

REFERRAL_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8

# multi-select answers capped at a number of picks
MAX_SELECTIONS = {
    "top_cuisines": 3,
    "cuisines": 3,
}

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_MINUTES_RE = re.compile(r"(\d{1,3})\s*(minutes|minute|mins|min)\b")
_NUMBER_RE = re.compile(r"\b(\d{1,3})\b")

_NO_INSTAGRAM_HINTS = ("dont have", "don't have", "don’t have", "do not have", "no instagram", "none", "n/a")
_INSTAGRAM_KEYS = ("instagram_handle", "instagram", "ig", "ig_handle", "instagramHandle", "social_instagram")
_COMMUTE_NUMBER_KEYS = ("bus_minutes", "bus_time_minutes", "minutes_to_campus", "campus_bus_minutes")
_COMMUTE_TEXT_KEYS = ("bus_travel_time", "campus_bus", "bus_time", "distance_to_campus")
_COMPLIANCE_KEYS = ("compliance_readiness", "compliance_docs")
_CUISINE_KEYS = ("top_cuisines", "cuisines", "sell_categories")


class InvalidSignup(ValueError):
    pass


def random_code(length: int = REFERRAL_CODE_LENGTH) -> str:
    return "".join(secrets.choice(REFERRAL_ALPHABET) for _ in range(length))


def fallback_referral_code() -> str:
    # used only when every random attempt collided
    return f"{random_code(6)}{str(int(time.time() * 1000))[-2:]}"


def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email))


def to_bool(v: Any) -> Optional[bool]:
    if isinstance(v, bool):
        return v
    if v is None:
        return None
    s = str(v).strip().lower()
    if s in {"true", "1", "yes", "on"}:
        return True
    if s in {"false", "0", "no", "off"}:
        return False
    return None


def check_selection_limits(answers: Mapping[str, Any]) -> None:
    for key, limit in MAX_SELECTIONS.items():
        picks = answers.get(key)
        if isinstance(picks, list) and len([p for p in picks if p]) > limit:
            raise InvalidSignup(f"Please select up to {limit}: {key}")


# ---------- derived review columns ----------

def _first_text(answers: Mapping[str, Any], keys) -> str:
    for k in keys:
        v = answers.get(k)
        if isinstance(v, str) and v.strip():
            return v.strip()
    return ""


def _first_list(answers: Mapping[str, Any], keys) -> List[str]:
    for k in keys:
        v = answers.get(k)
        if isinstance(v, list):
            items = [str(x).strip() for x in v if isinstance(x, str) and x.strip()]
            if items:
                return items
    return []


def parse_minutes(raw: str) -> Optional[int]:
    s = raw.strip().lower()
    if not s:
        return None
    m = _MINUTES_RE.search(s) or _NUMBER_RE.search(s)
    return int(m.group(1)) if m else None


def commute_minutes(answers: Mapping[str, Any]) -> Optional[int]:
    for k in _COMMUTE_NUMBER_KEYS:
        v = answers.get(k)
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return int(v)
        if isinstance(v, str) and v.strip().isdigit():
            return int(v.strip())
    return parse_minutes(_first_text(answers, _COMMUTE_TEXT_KEYS))


def instagram_handle(answers: Mapping[str, Any]) -> Optional[str]:
    raw = _first_text(answers, _INSTAGRAM_KEYS)
    low = raw.lower()
    if len(low) < 2 or low in {"na", "no"} or any(h in low for h in _NO_INSTAGRAM_HINTS):
        return None
    return raw


def review_columns(answers: Mapping[str, Any]) -> dict:
    """Columns the admin console filters on, pulled out of the answers."""
    return {
        "is_student": to_bool(answers.get("is_student")),
        "university": _first_text(answers, ("university",)) or None,
        "city": _first_text(answers, ("city", "neighborhood")) or None,
        "instagram_handle": instagram_handle(answers),
        "bus_minutes": commute_minutes(answers),
        "compliance_readiness": _first_list(answers, _COMPLIANCE_KEYS),
        "top_cuisines": _first_list(answers, _CUISINE_KEYS),
    }
