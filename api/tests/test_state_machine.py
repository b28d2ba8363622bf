from fitmatch.services.state_machine import is_active, transition_status


def test_archive_moves_active_to_archived():
    assert transition_status("active", "archive") == "archived"


def test_archived_is_terminal():
    assert transition_status("archived", "archive") == "archived"
    assert transition_status("archived", "activate") == "archived"


def test_unknown_action_keeps_state():
    assert transition_status("active", "accept") == "active"
    assert is_active("active") and not is_active("archived") and not is_active(None)
