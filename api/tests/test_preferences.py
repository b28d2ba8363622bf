import pytest

from fitmatch.errors import ValidationError
from fitmatch.services.preferences import PreferencesStore


def test_defaults_returned_without_persisting(repo, make_user):
    uid = make_user()
    store = PreferencesStore(repo)

    prefs = store.get(uid)

    assert (prefs.min_age, prefs.max_age, prefs.max_distance_km) == (18, 100, 50.0)
    assert prefs.preferred_activities == []
    assert prefs.min_compatibility_score == 50
    assert prefs.persisted is False
    assert repo.get_preferences(uid) is None


def test_partial_update_merges_onto_current_values(repo, make_user):
    uid = make_user()
    store = PreferencesStore(repo)

    store.update(uid, {"max_distance_km": 25})
    prefs = store.update(uid, {"min_age": 25, "preferred_activities": [" Run", "Ride", "Run", ""]})

    assert prefs.persisted is True
    assert prefs.min_age == 25
    assert prefs.max_age == 100
    assert prefs.max_distance_km == 25.0
    assert prefs.preferred_activities == ["Run", "Ride"]
    assert store.get(uid).to_dict() == prefs.to_dict()


def test_inverted_age_range_rejected_and_not_applied(repo, make_user):
    uid = make_user()
    store = PreferencesStore(repo)
    store.update(uid, {"min_age": 25, "max_age": 35})

    with pytest.raises(ValidationError) as exc:
        store.update(uid, {"min_age": 40, "max_age": 30})

    assert exc.value.field == "min_age"
    prefs = store.get(uid)
    assert (prefs.min_age, prefs.max_age) == (25, 35)


@pytest.mark.parametrize(
    "partial, field",
    [
        ({"min_age": 17}, "min_age"),
        ({"max_age": 101}, "max_age"),
        ({"max_distance_km": 0}, "max_distance_km"),
        ({"max_distance_km": 1001}, "max_distance_km"),
        ({"min_compatibility_score": -1}, "min_compatibility_score"),
        ({"min_compatibility_score": 101}, "min_compatibility_score"),
        ({"preferred_activities": "Run"}, "preferred_activities"),
        ({"max_age": "old"}, "max_age"),
        ({"favorite_color": "blue"}, "favorite_color"),
    ],
)
def test_out_of_range_values_name_the_field(repo, make_user, partial, field):
    uid = make_user()
    store = PreferencesStore(repo)

    with pytest.raises(ValidationError) as exc:
        store.update(uid, partial)

    assert exc.value.details["field"] == field
    assert repo.get_preferences(uid) is None


def test_none_values_leave_fields_unchanged(repo, make_user):
    uid = make_user()
    store = PreferencesStore(repo)
    store.update(uid, {"min_compatibility_score": 70})

    prefs = store.update(uid, {"min_compatibility_score": None, "max_age": 60})

    assert prefs.min_compatibility_score == 70
    assert prefs.max_age == 60
