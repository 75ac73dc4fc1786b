"""
Vendor priority scoring (0-10).

The score is a snapshot taken at signup from the vendor questionnaire and is
used to order the vendor queue when no admin override applies. Answers come
from an evolving form, so every lookup tolerates missing keys and unexpected
value shapes: anything that isn't the expected string counts as empty.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

CAPACITY_POINTS = {
    "1–10": 1,
    "11–30": 2,
    "31–60": 3,
    "60+": 3,
}

COMPLIANCE_POINTS = {
    "Yes": 3,
    "In progress": 2,
}

MIN_FOOD_TYPE_LENGTH = 12


@dataclass(frozen=True)
class PriorityBreakdown:
    capacity: int = 0
    delivery: int = 0
    compliance: int = 0
    professionalism: int = 0

    @property
    def total(self) -> int:
        return self.capacity + self.delivery + self.compliance + self.professionalism


def _text(answers: Mapping[str, Any], key: str) -> str:
    value = answers.get(key)
    return value.strip() if isinstance(value, str) else ""


def capacity_score(answers: Mapping[str, Any]) -> int:
    return CAPACITY_POINTS.get(_text(answers, "daily_capacity"), 0)


def delivery_score(answers: Mapping[str, Any]) -> int:
    delivery = _text(answers, "delivery")
    if delivery == "Yes":
        return 2
    if delivery.startswith("Partner only"):
        return 1
    return 0


def compliance_score(answers: Mapping[str, Any]) -> int:
    return COMPLIANCE_POINTS.get(_text(answers, "compliance"), 0)


def professionalism_score(answers: Mapping[str, Any]) -> int:
    described = len(_text(answers, "food_type")) >= MIN_FOOD_TYPE_LENGTH
    linked = _text(answers, "link").startswith("http")
    return int(described) + int(linked)


def score_breakdown(answers: Any) -> PriorityBreakdown:
    if not isinstance(answers, Mapping):
        return PriorityBreakdown()
    return PriorityBreakdown(
        capacity=capacity_score(answers),
        delivery=delivery_score(answers),
        compliance=compliance_score(answers),
        professionalism=professionalism_score(answers),
    )


def score(answers: Any) -> int:
    """Return the vendor priority score in [0, 10]. Never raises."""
    return score_breakdown(answers).total
