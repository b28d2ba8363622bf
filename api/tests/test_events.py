import logging

from fitmatch.services.events import (
    PushEvent,
    RecordingPushChannel,
    dispatch_events,
    log_match_event,
    to_match_room,
    to_user,
)


class FakeDB:
    def __init__(self):
        self.calls = []

    def execute(self, stmt, params=None):
        self.calls.append((stmt, params))


def test_log_match_event_inserts_expected_payload_shape():
    db = FakeDB()
    log_match_event(
        db=db,
        user_id="00000000-0000-0000-0000-000000000123",
        match_id="00000000-0000-0000-0000-000000000456",
        event_type="match_archived",
        payload={"from": "active", "to": "archived"},
    )
    assert len(db.calls) == 1
    stmt, _ = db.calls[0]
    assert "INSERT INTO match_event" in str(stmt)
    params = stmt.compile().params
    assert params["event_type"] == "match_archived"
    assert params["user_id"] == "00000000-0000-0000-0000-000000000123"
    assert params["payload"] == {"from": "active", "to": "archived"}


class FlakyChannel(RecordingPushChannel):
    def emit_to_user(self, user_id, event_name, payload):
        if user_id == "offline":
            raise ConnectionError("socket closed")
        super().emit_to_user(user_id, event_name, payload)


def test_dispatch_delivers_in_order_and_drops_failures(caplog):
    channel = FlakyChannel()
    events = [
        to_user("online", "new-message", {"id": 1}),
        to_user("offline", "new-message", {"id": 1}),
        to_match_room("m-1", "message-sent", {"id": 1}),
        PushEvent(target="broadcast", target_id="*", name="ignored"),
    ]

    with caplog.at_level(logging.WARNING, logger="fitmatch.services.events"):
        delivered = dispatch_events(channel, events)

    assert delivered == 2
    assert [(e.target_id, e.name) for e in channel.sent] == [("online", "new-message"), ("m-1", "message-sent")]
    assert "delivery failed" in caplog.text
    assert "unknown target" in caplog.text
