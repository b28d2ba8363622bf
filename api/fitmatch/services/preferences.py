from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any

from fitmatch.config import (
    DEFAULT_MAX_AGE,
    DEFAULT_MAX_DISTANCE_KM,
    DEFAULT_MIN_AGE,
    DEFAULT_MIN_COMPATIBILITY_SCORE,
)
from fitmatch.errors import ValidationError

logger = logging.getLogger(__name__)

AGE_BOUNDS = (18, 100)
DISTANCE_BOUNDS_KM = (1.0, 1000.0)
SCORE_BOUNDS = (0, 100)

EDITABLE_FIELDS = ("min_age", "max_age", "max_distance_km", "preferred_activities", "min_compatibility_score")


@dataclass
class Preferences:
    user_id: str
    min_age: int = DEFAULT_MIN_AGE
    max_age: int = DEFAULT_MAX_AGE
    max_distance_km: float = DEFAULT_MAX_DISTANCE_KM
    preferred_activities: list[str] = field(default_factory=list)
    min_compatibility_score: int = DEFAULT_MIN_COMPATIBILITY_SCORE
    persisted: bool = False

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Preferences":
        activities = row.get("preferred_activities")
        return cls(
            user_id=str(row["user_id"]),
            min_age=int(row["min_age"]),
            max_age=int(row["max_age"]),
            max_distance_km=float(row["max_distance_km"]),
            preferred_activities=[str(a) for a in activities] if isinstance(activities, list) else [],
            min_compatibility_score=int(row["min_compatibility_score"]),
            persisted=True,
        )

    def values(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if k in EDITABLE_FIELDS}

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or int(value) != value:
        raise ValidationError(f"{name} must be an integer", field=name)
    return int(value)


def _as_number(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number", field=name)
    return float(value)


def _clean_activities(value: Any) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise ValidationError("preferred_activities must be a list of activity labels", field="preferred_activities")
    out: list[str] = []
    for item in value:
        label = str(item or "").strip()
        if label and label not in out:
            out.append(label)
    return out


def validate_preferences(values: dict[str, Any]) -> dict[str, Any]:
    """Check a complete preference set; raises ValidationError naming the first bad field."""
    min_age = _as_int("min_age", values["min_age"])
    max_age = _as_int("max_age", values["max_age"])
    lo, hi = AGE_BOUNDS
    if not lo <= min_age <= hi:
        raise ValidationError(f"min_age must be between {lo} and {hi}", field="min_age")
    if not lo <= max_age <= hi:
        raise ValidationError(f"max_age must be between {lo} and {hi}", field="max_age")
    if min_age > max_age:
        raise ValidationError("min_age must not exceed max_age", field="min_age")

    distance = _as_number("max_distance_km", values["max_distance_km"])
    lo_d, hi_d = DISTANCE_BOUNDS_KM
    if not lo_d <= distance <= hi_d:
        raise ValidationError(f"max_distance_km must be between {lo_d:g} and {hi_d:g}", field="max_distance_km")

    score = _as_int("min_compatibility_score", values["min_compatibility_score"])
    lo_s, hi_s = SCORE_BOUNDS
    if not lo_s <= score <= hi_s:
        raise ValidationError(f"min_compatibility_score must be between {lo_s} and {hi_s}", field="min_compatibility_score")

    return {
        "min_age": min_age,
        "max_age": max_age,
        "max_distance_km": distance,
        "preferred_activities": _clean_activities(values["preferred_activities"]),
        "min_compatibility_score": score,
    }


class PreferencesStore:
    """Per-user match filters.

    Reads of a user without a stored row return the defaults without writing
    them; the row is created on the first update.
    """

    def __init__(self, repo) -> None:
        self._repo = repo

    def get(self, user_id: str) -> Preferences:
        row = self._repo.get_preferences(user_id)
        if row:
            return Preferences.from_row(row)
        return Preferences(user_id=str(user_id))

    def update(self, user_id: str, partial: dict[str, Any]) -> Preferences:
        unknown = sorted(set(partial) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Unknown preference field: {unknown[0]}", field=unknown[0])

        merged = self.get(user_id).values()
        merged.update({k: v for k, v in partial.items() if v is not None})
        cleaned = validate_preferences(merged)

        row = self._repo.save_preferences(user_id, cleaned)
        logger.info("[preferences] updated user_id=%s fields=%s", user_id, sorted(partial))
        return Preferences.from_row(row)
