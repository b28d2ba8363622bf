from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator

from fitmatch.config import CANDIDATE_POOL_CAP
from fitmatch.errors import NotFoundError, ValidationError
from fitmatch.services.preferences import Preferences, PreferencesStore
from fitmatch.services.scoring import UserWithMetrics, compute_compatibility

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 100

PROFILE_FIELDS = ("id", "first_name", "last_name", "age", "city", "state", "bio", "photo_urls")


@dataclass
class PotentialMatch:
    user: dict[str, Any]
    compatibility_score: int
    compatibility_factors: dict[str, int]
    fitness_stats: dict[str, Any] | None
    distance_km: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "user": self.user,
            "compatibility_score": self.compatibility_score,
            "compatibility_factors": self.compatibility_factors,
            "fitness_stats": self.fitness_stats,
            "distance_km": round(self.distance_km, 2),
        }


def clamp_limit(limit: int) -> int:
    return max(MIN_LIMIT, min(MAX_LIMIT, int(limit)))


def _public_profile(row: dict[str, Any]) -> dict[str, Any]:
    out = {k: row.get(k) for k in PROFILE_FIELDS}
    out["id"] = str(out["id"])
    if not isinstance(out.get("photo_urls"), list):
        out["photo_urls"] = []
    return out


def _passes_preferences(row: dict[str, Any], candidate: UserWithMetrics, prefs: Preferences) -> bool:
    age = row.get("age")
    if age is None or not prefs.min_age <= int(age) <= prefs.max_age:
        return False
    if prefs.preferred_activities:
        if not set(prefs.preferred_activities) & set(candidate.metrics.favorite_activities):
            return False
    return True


class CandidateFilter:
    """Ranks nearby users the requester has never been matched with.

    The pool is read once per call, capped at ``pool_cap`` in-radius users, filtered by
    the requester's preferences and scored. Ordering is score descending,
    then distance ascending, then user id, so pages are stable across calls
    while the underlying data is unchanged.
    """

    def __init__(
        self,
        repo,
        preferences: PreferencesStore | None = None,
        *,
        pool_cap: int = CANDIDATE_POOL_CAP,
        weights: dict[str, float] | None = None,
    ) -> None:
        self._repo = repo
        self._preferences = preferences or PreferencesStore(repo)
        self._pool_cap = pool_cap
        self._weights = weights

    def _ranked(self, user_id: str) -> list[PotentialMatch]:
        requester_row = self._repo.get_user(user_id)
        if not requester_row:
            raise NotFoundError("user", str(user_id))
        if requester_row.get("latitude") is None or requester_row.get("longitude") is None:
            raise ValidationError("Location is required to find potential matches", field="location")

        prefs = self._preferences.get(user_id)
        requester = UserWithMetrics.from_row(requester_row, self._repo.get_fitness_stats(user_id))

        pool = self._repo.find_users_within_radius(
            float(requester_row["latitude"]),
            float(requester_row["longitude"]),
            prefs.max_distance_km,
            str(user_id),
            limit=self._pool_cap,
        )
        if len(pool) >= self._pool_cap:
            logger.info("[candidates] pool capped at %s for user_id=%s", self._pool_cap, user_id)

        ranked: list[PotentialMatch] = []
        for row in pool:
            candidate = UserWithMetrics.from_row(row)
            if not _passes_preferences(row, candidate, prefs):
                continue
            result = compute_compatibility(
                requester,
                candidate,
                max_distance_km=prefs.max_distance_km,
                weights=self._weights,
            )
            if result.score < prefs.min_compatibility_score:
                continue
            has_stats = row.get("weekly_distance") is not None
            ranked.append(
                PotentialMatch(
                    user=_public_profile(row),
                    compatibility_score=result.score,
                    compatibility_factors=result.factors.to_dict(),
                    fitness_stats=candidate.metrics.to_dict() if has_stats else None,
                    distance_km=float(row["distance_km"]),
                )
            )

        ranked.sort(key=lambda m: (-m.compatibility_score, m.distance_km, m.user["id"]))
        logger.debug("[candidates] user_id=%s pool=%s ranked=%s", user_id, len(pool), len(ranked))
        return ranked

    def get_potential_matches(self, user_id: str, limit: int = 20, offset: int = 0) -> list[PotentialMatch]:
        if offset < 0:
            raise ValidationError("offset must not be negative", field="offset")
        limit = clamp_limit(limit)
        return self._ranked(user_id)[offset : offset + limit]

    def iter_potential_matches(self, user_id: str, page_size: int = 20, offset: int = 0) -> Iterator[list[PotentialMatch]]:
        """Yield ranked pages starting at ``offset``; resume later by passing the consumed count."""
        if offset < 0:
            raise ValidationError("offset must not be negative", field="offset")
        page_size = clamp_limit(page_size)
        ranked = self._ranked(user_id)
        for start in range(offset, len(ranked), page_size):
            yield ranked[start : start + page_size]
