from datetime import datetime, timedelta, timezone

import pytest

from fitmatch.errors import ValidationError
from fitmatch.services.fitness import (
    Activity,
    FitnessMetrics,
    FitnessSync,
    compute_fitness_metrics,
    evaluate_against_threshold,
)

NOW = datetime(2026, 6, 1, 8, 0, tzinfo=timezone.utc)


def _run(days_ago: float, distance: float = 10000.0, speed: float = 3.3333, type: str = "Run") -> Activity:
    return Activity(
        type=type,
        distance=distance,
        start_date=NOW - timedelta(days=days_ago),
        moving_time=int(distance / speed) if speed else 0,
        average_speed=speed,
    )


def test_no_activities_gives_empty_snapshot():
    metrics = compute_fitness_metrics([], NOW)
    assert metrics == FitnessMetrics()


def test_weekly_values_are_window_averages():
    activities = [_run(d) for d in range(0, 90, 7)]  # 13 runs, one per week
    metrics = compute_fitness_metrics(activities, NOW, window_days=91)

    assert metrics.weekly_activities == pytest.approx(1.0)
    assert metrics.weekly_distance == pytest.approx(10000.0)
    assert metrics.total_distance == pytest.approx(130000.0)
    assert metrics.longest_activity == pytest.approx(10000.0)
    assert metrics.average_pace == pytest.approx(5.0, abs=0.01)
    assert metrics.consistency_score == 100


def test_activities_outside_window_are_ignored():
    metrics = compute_fitness_metrics([_run(1), _run(200, distance=99999)], NOW, window_days=90)
    assert metrics.total_distance == pytest.approx(10000.0)
    assert metrics.longest_activity == pytest.approx(10000.0)


def test_pace_ignores_short_and_non_foot_activities():
    activities = [
        _run(1, distance=400, speed=5.0),
        _run(2, distance=30000, speed=8.0, type="Ride"),
        _run(3, distance=5000, speed=2.7778, type="Walk"),
    ]
    metrics = compute_fitness_metrics(activities, NOW)
    assert metrics.average_pace == pytest.approx(6.0, abs=0.01)

    rides_only = compute_fitness_metrics([_run(1, type="Ride", speed=8.0)], NOW)
    assert rides_only.average_pace is None


def test_favorites_ordered_by_frequency_then_label():
    activities = [
        _run(1, type="Swim"),
        _run(2, type="Ride"),
        _run(3, type="Ride"),
        _run(4, type="Hike"),
        _run(5, type="Swim"),
        _run(6, type="Run"),
    ]
    metrics = compute_fitness_metrics(activities, NOW)
    assert metrics.favorite_activities == ["Ride", "Swim", "Hike", "Run"]


def test_threshold_absent_always_meets():
    result = evaluate_against_threshold(FitnessMetrics(), None)
    assert result.meets is True
    assert result.score == 100


def test_threshold_checks_distance_activities_pace_and_types():
    metrics = FitnessMetrics(
        weekly_distance=20000,
        weekly_activities=3,
        average_pace=5.5,
        favorite_activities=["Run", "Ride"],
        consistency_score=80,
    )
    passing = evaluate_against_threshold(
        metrics,
        {"weekly_distance": 15000, "weekly_activities": 2, "average_pace": 6.0, "allowed_activity_types": ["Run"]},
    )
    assert passing.meets is True
    assert passing.score == round((100 + 8) / 110 * 100)

    slow = evaluate_against_threshold(metrics, {"weekly_distance": 15000, "weekly_activities": 2, "average_pace": 5.0})
    assert slow.meets is False
    assert any("slower" in r for r in slow.reasons)

    wrong_type = evaluate_against_threshold(metrics, {"allowed_activity_types": ["Swim"]})
    assert wrong_type.meets is False


def test_sync_user_replaces_snapshot_and_evaluates(repo, make_user):
    uid = make_user(weekly_distance=999999, favorites=["Swim"])
    sync = FitnessSync(repo)
    sync.update_threshold({"weekly_distance": 5000}, updated_by="admin-1", now=NOW)

    metrics, evaluation = sync.sync_user(uid, [_run(d) for d in range(0, 28, 2)], NOW)

    stored = repo.get_fitness_stats(uid)
    assert stored["favorite_activities"] == ["Run"]
    assert stored["weekly_distance"] == pytest.approx(metrics.weekly_distance)
    assert evaluation.meets is True
    assert sync.evaluate_user(uid).meets is True


def test_threshold_updates_merge_and_keep_history(repo):
    sync = FitnessSync(repo)
    sync.update_threshold({"weekly_distance": 5000, "allowed_activity_types": ["Run", " "]}, updated_by="a", now=NOW)
    sync.update_threshold({"weekly_activities": 3}, updated_by="b", now=NOW + timedelta(hours=1))

    current = sync.current_threshold()
    assert current["weekly_distance"] == 5000
    assert current["weekly_activities"] == 3
    assert current["allowed_activity_types"] == ["Run"]
    assert current["updated_by"] == "b"
    assert [t["updated_by"] for t in repo.list_thresholds()] == ["b", "a"]


@pytest.mark.parametrize(
    "values, field",
    [
        ({"weekly_distance": -1}, "weekly_distance"),
        ({"weekly_activities": "many"}, "weekly_activities"),
        ({"average_pace": 0}, "average_pace"),
        ({"allowed_activity_types": "Run"}, "allowed_activity_types"),
    ],
)
def test_threshold_validation(repo, values, field):
    with pytest.raises(ValidationError) as exc:
        FitnessSync(repo).update_threshold(values, updated_by="admin")
    assert exc.value.field == field
    assert repo.get_current_threshold() is None
