import pytest

from fitmatch.errors import NotFoundError, ValidationError
from fitmatch.services.candidates import CandidateFilter
from fitmatch.services.ledger import MatchLedger
from fitmatch.services.preferences import PreferencesStore

from conftest import BASE_LAT, BASE_LON, north_of


def _open_filter(repo, *user_ids):
    store = PreferencesStore(repo)
    for uid in user_ids:
        store.update(uid, {"min_compatibility_score": 0})
    return CandidateFilter(repo, store)


def test_end_to_end_scenario_scores_nearby_athlete(repo, make_user):
    a = make_user("user-a", age=30, weekly_distance=50000, favorites=["Run", "Ride"])
    b = make_user("user-b", age=28, latitude=north_of(5), weekly_distance=45000, favorites=["Run", "Swim"])

    results = CandidateFilter(repo).get_potential_matches(a)

    assert [r.user["id"] for r in results] == [b]
    top = results[0]
    assert top.compatibility_factors == {
        "activity_overlap": 33,
        "performance_similarity": 90,
        "location_proximity": 90,
        "age_compatibility": 90,
    }
    assert 70 <= top.compatibility_score <= 80
    assert top.distance_km == pytest.approx(5.0, abs=0.05)
    assert top.fitness_stats["favorite_activities"] == ["Run", "Swim"]
    assert "email" not in top.user


def test_excludes_self_and_any_existing_match(repo, make_user):
    a = make_user("a")
    b = make_user("b")
    c = make_user("c")
    d = make_user("d")
    ledger = MatchLedger(repo)
    ledger.create_match(a, b, 80)
    ledger.create_match(a, c, 80)
    ledger.archive_match(repo.get_match_for_pair(a, c)["id"], a)

    results = _open_filter(repo, a).get_potential_matches(a)

    assert [r.user["id"] for r in results] == [d]


def test_respects_radius_age_window_and_activity_preferences(repo, make_user):
    a = make_user("a", age=30, favorites=["Run"])
    make_user("far", latitude=north_of(60), favorites=["Run"])
    make_user("old", age=60, favorites=["Run"])
    make_user("swimmer", favorites=["Swim"])
    make_user("runner", favorites=["Run", "Swim"])
    make_user("no-stats")

    store = PreferencesStore(repo)
    store.update(a, {"max_age": 45, "preferred_activities": ["Run"], "min_compatibility_score": 0})

    results = CandidateFilter(repo, store).get_potential_matches(a)

    assert [r.user["id"] for r in results] == ["runner"]


def test_min_compatibility_score_drops_weak_candidates(repo, make_user):
    a = make_user("a", age=30, weekly_distance=40000, favorites=["Run"])
    make_user("close", age=31, weekly_distance=40000, favorites=["Run"])
    make_user("distant-age", age=55, latitude=north_of(40), weekly_distance=5000, favorites=["Swim"])

    store = PreferencesStore(repo)
    store.update(a, {"min_compatibility_score": 60})

    results = CandidateFilter(repo, store).get_potential_matches(a)

    assert [r.user["id"] for r in results] == ["close"]
    assert all(r.compatibility_score >= 60 for r in results)


def test_ordering_breaks_ties_by_distance_then_id(repo, make_user):
    a = make_user("a")
    make_user("u-far", latitude=north_of(10))
    make_user("u-2")
    make_user("u-1")

    results = _open_filter(repo, a).get_potential_matches(a)

    assert [r.user["id"] for r in results] == ["u-1", "u-2", "u-far"]
    scores = [r.compatibility_score for r in results]
    assert scores == sorted(scores, reverse=True)


def test_pagination_limit_clamp_and_offset(repo, make_user):
    a = make_user("a")
    for i in range(5):
        make_user(f"u-{i}", latitude=north_of(i + 1))
    cf = _open_filter(repo, a)

    assert [r.user["id"] for r in cf.get_potential_matches(a, limit=2, offset=1)] == ["u-1", "u-2"]
    assert len(cf.get_potential_matches(a, limit=0)) == 1
    assert len(cf.get_potential_matches(a, limit=1000)) == 5
    assert cf.get_potential_matches(a, offset=10) == []

    with pytest.raises(ValidationError):
        cf.get_potential_matches(a, offset=-1)


def test_iter_potential_matches_pages_and_resumes(repo, make_user):
    a = make_user("a")
    for i in range(5):
        make_user(f"u-{i}", latitude=north_of(i + 1))
    cf = _open_filter(repo, a)

    pages = list(cf.iter_potential_matches(a, page_size=2))
    assert [[r.user["id"] for r in p] for p in pages] == [["u-0", "u-1"], ["u-2", "u-3"], ["u-4"]]

    resumed = next(cf.iter_potential_matches(a, page_size=2, offset=3))
    assert [r.user["id"] for r in resumed] == ["u-3", "u-4"]


def test_pool_cap_bounds_evaluated_candidates(repo, make_user):
    a = make_user("a")
    for i in range(4):
        make_user(f"u-{i}")
    store = PreferencesStore(repo)
    store.update(a, {"min_compatibility_score": 0})

    results = CandidateFilter(repo, store, pool_cap=2).get_potential_matches(a)

    assert len(results) == 2


def test_requester_without_location_is_rejected(repo, make_user):
    a = make_user("a", latitude=None, longitude=None)
    make_user("b")

    with pytest.raises(ValidationError) as exc:
        CandidateFilter(repo).get_potential_matches(a)
    assert exc.value.field == "location"


def test_unknown_requester_and_empty_pool(repo, make_user):
    with pytest.raises(NotFoundError):
        CandidateFilter(repo).get_potential_matches("missing")

    lonely = make_user("lonely", latitude=BASE_LAT - 10)
    assert CandidateFilter(repo).get_potential_matches(lonely) == []


def test_radius_search_wraps_across_the_antimeridian(repo, make_user):
    a = make_user("a", latitude=-17.0, longitude=179.95)
    b = make_user("b", latitude=-17.0, longitude=-179.95)
    make_user("c", latitude=-17.0, longitude=-179.0)

    results = _open_filter(repo, a).get_potential_matches(a)

    assert [r.user["id"] for r in results] == [b]
    assert results[0].distance_km == pytest.approx(10.63, abs=0.05)


def test_pool_cap_counts_only_users_inside_the_radius(repo, make_user):
    a = make_user("a")
    # inside the bounding box, outside the circle
    make_user("c1", latitude=north_of(9), longitude=BASE_LON + 0.11)
    make_user("c2", latitude=north_of(9), longitude=BASE_LON - 0.11)
    near = make_user("z-near", latitude=north_of(1.1))
    store = PreferencesStore(repo)
    store.update(a, {"min_compatibility_score": 0, "max_distance_km": 10})

    results = CandidateFilter(repo, store, pool_cap=2).get_potential_matches(a)

    assert [r.user["id"] for r in results] == [near]
