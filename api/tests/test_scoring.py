import pytest

from fitmatch.services.fitness import FitnessMetrics
from fitmatch.services.scoring import (
    UserWithMetrics,
    activity_overlap,
    age_compatibility,
    compute_compatibility,
    haversine_km,
    location_proximity,
    performance_similarity,
)


def _user(
    user_id: str,
    age: int | None = 30,
    lat: float | None = 40.0,
    lon: float | None = -105.0,
    weekly_distance: float = 0.0,
    pace: float | None = None,
    favorites: list[str] | None = None,
) -> UserWithMetrics:
    return UserWithMetrics(
        user_id=user_id,
        age=age,
        latitude=lat,
        longitude=lon,
        metrics=FitnessMetrics(
            weekly_distance=weekly_distance,
            average_pace=pace,
            favorite_activities=favorites or [],
        ),
    )


def test_haversine_one_degree_latitude():
    assert haversine_km(40.0, -105.0, 41.0, -105.0) == pytest.approx(111.19, abs=0.05)
    assert haversine_km(40.0, -105.0, 40.0, -105.0) == 0.0


def test_activity_overlap_bounds():
    assert activity_overlap(["Run"], ["Swim"]) == 0.0
    assert activity_overlap(["Run", "Ride"], ["Ride", "Run"]) == 100.0
    assert activity_overlap([], ["Run"]) == 0.0
    assert round(activity_overlap(["Run", "Ride"], ["Run", "Swim"])) == 33


def test_performance_similarity_uses_pace_when_both_present():
    a = FitnessMetrics(weekly_distance=50000, average_pace=5.0)
    b = FitnessMetrics(weekly_distance=45000, average_pace=None)
    assert performance_similarity(a, b) == pytest.approx(90.0)

    b.average_pace = 6.0
    # distance term 90, pace term 100 - 1/6*100
    assert performance_similarity(a, b) == pytest.approx((90.0 + 100.0 - 100.0 / 6.0) / 2.0)


def test_location_and_age_factors_degrade_to_zero():
    assert location_proximity(None, 50) == 0.0
    assert location_proximity(60, 50) == 0.0
    assert location_proximity(25, 50) == 50.0
    assert age_compatibility(30, 28) == 90.0
    assert age_compatibility(30, 55) == 0.0
    assert age_compatibility(None, 28) == 0.0


def test_self_score_is_100_with_favorites_and_pace():
    a = _user("a", weekly_distance=30000, pace=5.5, favorites=["Run", "Ride"])
    result = compute_compatibility(a, a)
    assert result.score == 100


def test_symmetric_when_radius_is_shared():
    a = _user("a", age=30, weekly_distance=50000, favorites=["Run", "Ride"])
    b = _user("b", age=28, lat=40.045, weekly_distance=45000, favorites=["Run", "Swim"])
    ab = compute_compatibility(a, b, max_distance_km=50)
    ba = compute_compatibility(b, a, max_distance_km=50)
    assert ab.score == ba.score
    assert ab.factors == ba.factors


def test_proximity_follows_requester_radius():
    a = _user("a", favorites=["Run"])
    b = _user("b", lat=40.045, favorites=["Run"])
    wide = compute_compatibility(a, b, max_distance_km=50)
    narrow = compute_compatibility(b, a, max_distance_km=10)
    assert wide.factors.location_proximity == 90
    assert narrow.factors.location_proximity == 50
    assert wide.factors.activity_overlap == narrow.factors.activity_overlap
    assert wide.score > narrow.score


def test_missing_inputs_never_raise():
    a = _user("a", age=None, lat=None, lon=None)
    b = _user("b")
    result = compute_compatibility(a, b)
    assert result.distance_km is None
    assert result.factors.location_proximity == 0
    assert result.factors.age_compatibility == 0
    assert result.factors.activity_overlap == 0
    assert 0 <= result.score <= 100


def test_custom_weights_are_normalised():
    a = _user("a", favorites=["Run"])
    b = _user("b", favorites=["Run"])
    result = compute_compatibility(
        a,
        b,
        weights={"activity_overlap": 2, "performance_similarity": 0, "location_proximity": 0, "age_compatibility": 0},
    )
    assert result.score == 100
