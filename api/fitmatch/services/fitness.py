"""
Fitness metrics snapshot and the registration threshold gate.

The snapshot is rebuilt from scratch on every sync from the activities inside
the trailing window; nothing is patched incrementally.
"""

from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable

from fitmatch.config import METRICS_WINDOW_DAYS
from fitmatch.errors import ValidationError

logger = logging.getLogger(__name__)

PACE_ACTIVITY_TYPES = {"Run", "Walk", "Hike"}
MIN_PACE_DISTANCE_M = 500.0
CONSISTENCY_WEEKS = 13


@dataclass
class Activity:
    type: str
    distance: float
    start_date: datetime
    moving_time: int = 0
    average_speed: float = 0.0


@dataclass
class FitnessMetrics:
    weekly_distance: float = 0.0
    weekly_activities: float = 0.0
    average_pace: float | None = None
    favorite_activities: list[str] = field(default_factory=list)
    total_distance: float = 0.0
    longest_activity: float = 0.0
    consistency_score: int = 0

    @classmethod
    def from_row(cls, row: dict[str, Any] | None) -> "FitnessMetrics":
        if not row:
            return cls()
        favorites = row.get("favorite_activities")
        pace = row.get("average_pace")
        return cls(
            weekly_distance=_non_negative(row.get("weekly_distance")),
            weekly_activities=_non_negative(row.get("weekly_activities")),
            average_pace=float(pace) if pace is not None else None,
            favorite_activities=[str(f) for f in favorites] if isinstance(favorites, list) else [],
            total_distance=_non_negative(row.get("total_distance")),
            longest_activity=_non_negative(row.get("longest_activity")),
            consistency_score=int(row.get("consistency_score") or 0),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ThresholdEvaluation:
    meets: bool
    score: int
    reasons: list[str]


def _non_negative(value: Any) -> float:
    try:
        return max(0.0, float(value or 0.0))
    except (TypeError, ValueError):
        return 0.0


def _pace_label(minutes_per_km: float) -> str:
    total_seconds = int(round(minutes_per_km * 60))
    return f"{total_seconds // 60}:{total_seconds % 60:02d}/km"


def _consistency_score(activities: list[Activity]) -> int:
    if not activities:
        return 0
    per_week: Counter[str] = Counter()
    for a in activities:
        week_start = (a.start_date - timedelta(days=a.start_date.weekday())).date()
        per_week[week_start.isoformat()] += 1

    weekly_consistency = min(100.0, len(per_week) / CONSISTENCY_WEEKS * 100.0)
    counts = list(per_week.values())
    mean = sum(counts) / len(counts)
    std_dev = math.sqrt(sum((c - mean) ** 2 for c in counts) / len(counts))
    distribution_consistency = max(0.0, 100.0 - std_dev * 20.0)
    return int(round(weekly_consistency * 0.6 + distribution_consistency * 0.4))


def compute_fitness_metrics(
    activities: Iterable[Activity],
    now: datetime,
    window_days: int = METRICS_WINDOW_DAYS,
) -> FitnessMetrics:
    cutoff = now - timedelta(days=window_days)
    in_window = [a for a in activities if cutoff <= a.start_date <= now]
    if not in_window:
        return FitnessMetrics()

    weeks = window_days / 7.0
    total_distance = sum(max(0.0, a.distance) for a in in_window)

    pace_samples = [
        1000.0 / a.average_speed / 60.0
        for a in in_window
        if a.type in PACE_ACTIVITY_TYPES and a.average_speed > 0 and a.distance > MIN_PACE_DISTANCE_M
    ]
    average_pace = sum(pace_samples) / len(pace_samples) if pace_samples else None

    type_counts = Counter(a.type for a in in_window)
    favorites = [t for t, _ in sorted(type_counts.items(), key=lambda kv: (-kv[1], kv[0]))]

    return FitnessMetrics(
        weekly_distance=total_distance / weeks,
        weekly_activities=len(in_window) / weeks,
        average_pace=average_pace,
        favorite_activities=favorites,
        total_distance=total_distance,
        longest_activity=max(max(0.0, a.distance) for a in in_window),
        consistency_score=_consistency_score(in_window),
    )


def evaluate_against_threshold(metrics: FitnessMetrics, threshold: dict[str, Any] | None) -> ThresholdEvaluation:
    if not threshold:
        return ThresholdEvaluation(meets=True, score=100, reasons=["No fitness threshold configured"])

    reasons: list[str] = []
    required: list[bool] = []
    points = 0
    checks = 0

    req_distance = float(threshold.get("weekly_distance") or 0.0)
    checks += 1
    ok = metrics.weekly_distance >= req_distance
    required.append(ok)
    if ok:
        points += 25
        reasons.append(f"Weekly distance {round(metrics.weekly_distance)}m meets {round(req_distance)}m")
    else:
        reasons.append(f"Weekly distance {round(metrics.weekly_distance)}m below {round(req_distance)}m")

    req_activities = float(threshold.get("weekly_activities") or 0.0)
    checks += 1
    ok = metrics.weekly_activities >= req_activities
    required.append(ok)
    if ok:
        points += 25
        reasons.append(f"Weekly activities {metrics.weekly_activities:.1f} meets {req_activities:g}")
    else:
        reasons.append(f"Weekly activities {metrics.weekly_activities:.1f} below {req_activities:g}")

    req_pace = threshold.get("average_pace")
    if req_pace and metrics.average_pace:
        checks += 1
        ok = metrics.average_pace <= float(req_pace)
        required.append(ok)
        if ok:
            points += 25
            reasons.append(f"Average pace {_pace_label(metrics.average_pace)} meets {_pace_label(float(req_pace))}")
        else:
            reasons.append(f"Average pace {_pace_label(metrics.average_pace)} slower than {_pace_label(float(req_pace))}")

    allowed = [str(t) for t in (threshold.get("allowed_activity_types") or [])]
    if allowed:
        checks += 1
        matching = [t for t in metrics.favorite_activities if t in allowed]
        ok = bool(matching)
        required.append(ok)
        if ok:
            points += 25
            reasons.append(f"Activity types {', '.join(matching)} are allowed")
        else:
            reasons.append(f"No activities match allowed types: {', '.join(allowed)}")

    bonus = int(round(metrics.consistency_score * 0.1))
    points += bonus
    reasons.append(f"Consistency score {metrics.consistency_score}/100 (+{bonus})")

    score = int(round(points / (checks * 25 + 10) * 100))
    return ThresholdEvaluation(meets=all(required), score=min(100, score), reasons=reasons)


def validate_threshold_values(values: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key in ("weekly_distance", "weekly_activities"):
        if values.get(key) is None:
            continue
        try:
            number = float(values[key])
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{key} must be a number", field=key) from exc
        if number < 0:
            raise ValidationError(f"{key} must be non-negative", field=key)
        cleaned[key] = number
    if "average_pace" in values:
        pace = values["average_pace"]
        if pace is not None:
            try:
                pace = float(pace)
            except (TypeError, ValueError) as exc:
                raise ValidationError("average_pace must be a number", field="average_pace") from exc
            if pace <= 0:
                raise ValidationError("average_pace must be positive", field="average_pace")
        cleaned["average_pace"] = pace
    if values.get("allowed_activity_types") is not None:
        types = values["allowed_activity_types"]
        if not isinstance(types, list):
            raise ValidationError("allowed_activity_types must be a list", field="allowed_activity_types")
        cleaned["allowed_activity_types"] = [str(t).strip() for t in types if str(t).strip()]
    return cleaned


class FitnessSync:
    """Stores recomputed snapshots and owns the admin threshold history."""

    def __init__(self, repo, window_days: int = METRICS_WINDOW_DAYS) -> None:
        self._repo = repo
        self._window_days = window_days

    def sync_user(self, user_id: str, activities: Iterable[Activity], now: datetime) -> tuple[FitnessMetrics, ThresholdEvaluation]:
        metrics = compute_fitness_metrics(activities, now, self._window_days)
        self._repo.replace_fitness_stats(user_id, metrics.to_dict(), synced_at=now)
        evaluation = evaluate_against_threshold(metrics, self._repo.get_current_threshold())
        logger.info(
            "[fitness] synced user_id=%s weekly_distance=%.0f meets_threshold=%s",
            user_id,
            metrics.weekly_distance,
            evaluation.meets,
        )
        return metrics, evaluation

    def evaluate_user(self, user_id: str) -> ThresholdEvaluation:
        metrics = FitnessMetrics.from_row(self._repo.get_fitness_stats(user_id))
        return evaluate_against_threshold(metrics, self._repo.get_current_threshold())

    def current_threshold(self) -> dict[str, Any] | None:
        return self._repo.get_current_threshold()

    def update_threshold(self, values: dict[str, Any], updated_by: str, now: datetime | None = None) -> dict[str, Any]:
        cleaned = validate_threshold_values(values)
        current = self._repo.get_current_threshold() or {}
        merged = {
            "weekly_distance": cleaned.get("weekly_distance", current.get("weekly_distance", 0.0)),
            "weekly_activities": cleaned.get("weekly_activities", current.get("weekly_activities", 0.0)),
            "average_pace": cleaned["average_pace"] if "average_pace" in cleaned else current.get("average_pace"),
            "allowed_activity_types": cleaned.get("allowed_activity_types", current.get("allowed_activity_types") or []),
        }
        row = self._repo.insert_threshold(merged, updated_by=updated_by, now=now)
        logger.info("[fitness] threshold updated by=%s values=%s", updated_by, merged)
        return row
