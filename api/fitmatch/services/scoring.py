from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Any

from fitmatch.config import DEFAULT_MAX_DISTANCE_KM, DEFAULT_SCORING_WEIGHTS
from fitmatch.services.fitness import FitnessMetrics

EARTH_RADIUS_KM = 6371.0


@dataclass
class UserWithMetrics:
    user_id: str
    age: int | None
    latitude: float | None
    longitude: float | None
    metrics: FitnessMetrics = field(default_factory=FitnessMetrics)

    @classmethod
    def from_row(cls, row: dict[str, Any], stats: dict[str, Any] | None = None) -> "UserWithMetrics":
        """Build from a user row; fitness columns are read from ``stats`` or from the row itself."""
        source = stats if stats is not None else row
        has_stats = stats is not None or row.get("weekly_distance") is not None
        return cls(
            user_id=str(row["id"]),
            age=row.get("age"),
            latitude=row.get("latitude"),
            longitude=row.get("longitude"),
            metrics=FitnessMetrics.from_row(source if has_stats else None),
        )


@dataclass
class CompatibilityFactors:
    activity_overlap: int
    performance_similarity: int
    location_proximity: int
    age_compatibility: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class CompatibilityResult:
    score: int
    factors: CompatibilityFactors
    distance_km: float | None = None


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))


def _to_float(value: Any) -> float | None:
    try:
        if value is None:
            return None
        return float(value)
    except (TypeError, ValueError):
        return None


def _closeness(x: float, y: float) -> float:
    return 100.0 - min(100.0, abs(x - y) / max(x, y, 1.0) * 100.0)


def activity_overlap(a: list[str], b: list[str]) -> float:
    sa, sb = set(a or []), set(b or [])
    if not sa or not sb:
        return 0.0
    return len(sa & sb) / len(sa | sb) * 100.0


def performance_similarity(a: FitnessMetrics, b: FitnessMetrics) -> float:
    distance_term = _closeness(max(0.0, a.weekly_distance), max(0.0, b.weekly_distance))
    pace_a, pace_b = _to_float(a.average_pace), _to_float(b.average_pace)
    if pace_a is None or pace_b is None:
        return distance_term
    return (distance_term + _closeness(pace_a, pace_b)) / 2.0


def location_proximity(distance_km: float | None, max_distance_km: float) -> float:
    if distance_km is None:
        return 0.0
    radius = max_distance_km if max_distance_km and max_distance_km > 0 else DEFAULT_MAX_DISTANCE_KM
    return max(0.0, 100.0 - distance_km / radius * 100.0)


def age_compatibility(age_a: Any, age_b: Any) -> float:
    a, b = _to_float(age_a), _to_float(age_b)
    if a is None or b is None:
        return 0.0
    return max(0.0, 100.0 - abs(a - b) * 5.0)


def _distance(a: UserWithMetrics, b: UserWithMetrics) -> float | None:
    coords = [_to_float(v) for v in (a.latitude, a.longitude, b.latitude, b.longitude)]
    if any(c is None for c in coords):
        return None
    return haversine_km(*coords)


def _normalized_weights(weights: dict[str, float] | None) -> dict[str, float]:
    w = dict(DEFAULT_SCORING_WEIGHTS)
    if weights:
        w.update({k: float(v) for k, v in weights.items() if k in w})
    total = sum(max(0.0, v) for v in w.values())
    if total <= 0:
        return dict(DEFAULT_SCORING_WEIGHTS)
    return {k: max(0.0, v) / total for k, v in w.items()}


def compute_compatibility(
    requester: UserWithMetrics,
    candidate: UserWithMetrics,
    *,
    max_distance_km: float | None = None,
    weights: dict[str, float] | None = None,
) -> CompatibilityResult:
    """Score two users on a 0-100 scale.

    Every factor except location proximity is symmetric. Proximity is measured
    against the requester's ``max_distance_km``, so swapping the arguments
    changes the result only when the two users prefer different radii.
    Missing metrics or coordinates lower the score; they never raise.
    """
    w = _normalized_weights(weights)
    distance = _distance(requester, candidate)

    overlap = activity_overlap(requester.metrics.favorite_activities, candidate.metrics.favorite_activities)
    performance = performance_similarity(requester.metrics, candidate.metrics)
    proximity = location_proximity(distance, max_distance_km or DEFAULT_MAX_DISTANCE_KM)
    age = age_compatibility(requester.age, candidate.age)

    total = (
        overlap * w["activity_overlap"]
        + performance * w["performance_similarity"]
        + proximity * w["location_proximity"]
        + age * w["age_compatibility"]
    )
    return CompatibilityResult(
        score=int(round(max(0.0, min(100.0, total)))),
        factors=CompatibilityFactors(
            activity_overlap=int(round(overlap)),
            performance_similarity=int(round(performance)),
            location_proximity=int(round(proximity)),
            age_compatibility=int(round(age)),
        ),
        distance_km=distance,
    )
