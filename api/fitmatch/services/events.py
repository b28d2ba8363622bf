import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from sqlalchemy import insert

from fitmatch.models import MatchEvent

logger = logging.getLogger(__name__)

USER_TARGET = "user"
MATCH_ROOM_TARGET = "match_room"


def log_match_event(
    db,
    *,
    user_id: str,
    event_type: str,
    match_id: str | None = None,
    payload: dict[str, Any] | None = None,
) -> None:
    payload = payload or {}
    db.execute(
        insert(MatchEvent.__table__).values(
            id=str(uuid.uuid4()),
            user_id=user_id,
            match_id=match_id,
            event_type=event_type,
            payload=payload,
            created_at=datetime.now(timezone.utc),
        )
    )


@dataclass(frozen=True)
class PushEvent:
    target: str
    target_id: str
    name: str
    payload: dict[str, Any] = field(default_factory=dict)


def to_user(user_id: str, name: str, payload: dict[str, Any]) -> PushEvent:
    return PushEvent(target=USER_TARGET, target_id=str(user_id), name=name, payload=payload)


def to_match_room(match_id: str, name: str, payload: dict[str, Any]) -> PushEvent:
    return PushEvent(target=MATCH_ROOM_TARGET, target_id=str(match_id), name=name, payload=payload)


class PushChannel(Protocol):
    def emit_to_user(self, user_id: str, event_name: str, payload: dict[str, Any]) -> None: ...

    def emit_to_match_room(self, match_id: str, event_name: str, payload: dict[str, Any]) -> None: ...


class LoggingPushChannel:
    """Used when no socket layer is attached; events are only logged."""

    def emit_to_user(self, user_id: str, event_name: str, payload: dict[str, Any]) -> None:
        logger.debug("[push] user=%s event=%s", user_id, event_name)

    def emit_to_match_room(self, match_id: str, event_name: str, payload: dict[str, Any]) -> None:
        logger.debug("[push] match_room=%s event=%s", match_id, event_name)


class RecordingPushChannel:
    def __init__(self) -> None:
        self.sent: list[PushEvent] = []

    def emit_to_user(self, user_id: str, event_name: str, payload: dict[str, Any]) -> None:
        self.sent.append(to_user(user_id, event_name, payload))

    def emit_to_match_room(self, match_id: str, event_name: str, payload: dict[str, Any]) -> None:
        self.sent.append(to_match_room(match_id, event_name, payload))

    def names(self) -> list[str]:
        return [e.name for e in self.sent]


def dispatch_events(channel: PushChannel, events: Iterable[PushEvent]) -> int:
    """Deliver events at most once; returns how many were handed off without error.

    Delivery failures are logged and dropped. The state behind each event is
    already persisted, so nothing is retried here.
    """
    delivered = 0
    for event in events:
        try:
            if event.target == USER_TARGET:
                channel.emit_to_user(event.target_id, event.name, event.payload)
            elif event.target == MATCH_ROOM_TARGET:
                channel.emit_to_match_room(event.target_id, event.name, event.payload)
            else:
                logger.warning("[push] unknown target %s for event %s", event.target, event.name)
                continue
            delivered += 1
        except Exception:
            logger.warning("[push] delivery failed target=%s:%s event=%s", event.target, event.target_id, event.name, exc_info=True)
    return delivered
