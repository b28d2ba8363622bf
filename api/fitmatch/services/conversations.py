from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fitmatch.config import MAX_MESSAGE_LENGTH
from fitmatch.errors import AuthorizationError, NotFoundError, ValidationError
from fitmatch.services.events import PushEvent, to_match_room, to_user
from fitmatch.services.ledger import MatchLedger, other_participant, validate_pagination
from fitmatch.services.state_machine import is_active

logger = logging.getLogger(__name__)

DELETED_MARKER = "[Message deleted]"


@dataclass
class GateResult:
    value: Any
    events: list[PushEvent] = field(default_factory=list)


@dataclass
class MessagePage:
    items: list[dict[str, Any]]
    page: int
    limit: int
    total: int


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def serialize_message(message: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": str(message["id"]),
        "match_id": str(message["match_id"]),
        "sender_id": str(message["sender_id"]),
        "content": message["content"],
        "sent_at": _iso(message.get("sent_at")),
        "is_read": bool(message.get("is_read")),
        "read_at": _iso(message.get("read_at")),
        "is_deleted": bool(message.get("is_deleted")),
    }


def _clean_content(content: Any, max_length: int) -> str:
    if not isinstance(content, str):
        raise ValidationError("Message content must be text", field="content")
    body = content.strip()
    if not body:
        raise ValidationError("Message content is required", field="content")
    if len(body) > max_length:
        raise ValidationError(f"Message content must be at most {max_length} characters", field="content")
    return body


class ConversationGate:
    """Message operations, each authorized against the match ledger.

    Sending requires an active match joining exactly the sender and the
    recipient. Reading history only requires being a participant, so an
    archived conversation stays readable but can no longer grow.
    """

    def __init__(self, repo, ledger: MatchLedger | None = None, *, max_length: int = MAX_MESSAGE_LENGTH) -> None:
        self._repo = repo
        self._ledger = ledger or MatchLedger(repo)
        self._max_length = max_length

    def _get_message(self, message_id: str) -> dict[str, Any]:
        message = self._repo.get_message(message_id)
        if not message:
            raise NotFoundError("message", str(message_id))
        return message

    def send_message(
        self,
        sender_id: str,
        recipient_id: str,
        match_id: str,
        content: Any,
        now: datetime | None = None,
    ) -> GateResult:
        body = _clean_content(content, self._max_length)

        match = self._repo.get_match(match_id)
        participants = {str(match["user1_id"]), str(match["user2_id"])} if match else set()
        if (
            not match
            or not is_active(match["status"])
            or str(sender_id) == str(recipient_id)
            or participants != {str(sender_id), str(recipient_id)}
        ):
            raise AuthorizationError("not matched", reason="not_matched", details={"match_id": str(match_id)})

        message = self._repo.insert_message(str(match_id), str(sender_id), body, now=now)
        self._repo.touch_last_active(str(sender_id), now=now)
        logger.info("[chat] message sent match_id=%s sender=%s", match_id, sender_id)

        payload = serialize_message(message)
        return GateResult(
            value=message,
            events=[
                to_user(recipient_id, "new-message", payload),
                to_match_room(match_id, "message-sent", payload),
            ],
        )

    def get_messages(self, match_id: str, requester_id: str, page: int = 1, limit: int = 50) -> MessagePage:
        validate_pagination(page, limit)
        self._ledger.get_participant_match(match_id, requester_id)
        rows, total = self._repo.list_messages(str(match_id), offset=(page - 1) * limit, limit=limit)
        return MessagePage(items=rows, page=page, limit=limit, total=total)

    def mark_as_read(self, message_id: str, user_id: str, now: datetime | None = None) -> GateResult:
        message = self._get_message(message_id)
        self._ledger.get_participant_match(message["match_id"], user_id)
        if str(message["sender_id"]) == str(user_id):
            raise AuthorizationError(
                "Only the recipient can mark a message as read",
                reason="not_recipient",
                details={"message_id": str(message_id)},
            )

        flipped = self._repo.mark_message_read(str(message_id), now=now)
        message = self._get_message(message_id)
        if not flipped:
            return GateResult(value=message)

        return GateResult(
            value=message,
            events=[
                to_user(
                    message["sender_id"],
                    "message-read",
                    {
                        "message_id": str(message["id"]),
                        "match_id": str(message["match_id"]),
                        "read_by": str(user_id),
                        "read_at": _iso(message.get("read_at")),
                    },
                )
            ],
        )

    def mark_conversation_as_read(self, match_id: str, user_id: str, now: datetime | None = None) -> GateResult:
        self._ledger.get_participant_match(match_id, user_id)
        count = self._repo.mark_match_read(str(match_id), str(user_id), now=now)
        if not count:
            return GateResult(value=0)

        logger.debug("[chat] conversation read match_id=%s user=%s count=%s", match_id, user_id, count)
        return GateResult(
            value=count,
            events=[
                to_match_room(
                    match_id,
                    "conversation-read",
                    {"match_id": str(match_id), "read_by": str(user_id), "count": count},
                )
            ],
        )

    def get_unread_count(self, user_id: str) -> int:
        return self._repo.count_unread(str(user_id))

    def delete_message(self, message_id: str, requester_id: str) -> GateResult:
        message = self._get_message(message_id)
        if str(message["sender_id"]) != str(requester_id):
            raise AuthorizationError("not sender", reason="not_sender", details={"message_id": str(message_id)})

        changed = self._repo.soft_delete_message(str(message_id), DELETED_MARKER)
        message = self._get_message(message_id)
        if not changed:
            return GateResult(value=message)

        logger.info("[chat] message deleted id=%s by=%s", message_id, requester_id)
        return GateResult(
            value=message,
            events=[
                to_match_room(
                    message["match_id"],
                    "message-deleted",
                    {"message_id": str(message["id"]), "match_id": str(message["match_id"])},
                )
            ],
        )

    def get_conversations(self, user_id: str) -> list[dict[str, Any]]:
        uid = str(user_id)
        conversations = []
        for match in self._ledger.active_matches(uid):
            other_id = other_participant(match, uid)
            last = self._repo.last_message(str(match["id"]))
            conversations.append(
                {
                    "match_id": str(match["id"]),
                    "other_user": self._repo.get_user_public_profile(other_id) or {"id": other_id},
                    "last_message": last,
                    "unread_count": self._repo.count_unread(uid, str(match["id"])),
                    "compatibility_score": match["compatibility_score"],
                    "last_activity_at": last["sent_at"] if last else match["matched_at"],
                }
            )
        conversations.sort(key=lambda c: (c["last_activity_at"], c["match_id"]), reverse=True)
        return conversations

    def search_messages(self, user_id: str, term: str, page: int = 1, limit: int = 20) -> MessagePage:
        validate_pagination(page, limit)
        needle = (term or "").strip().casefold()
        if not needle:
            raise ValidationError("Search term is required", field="q")

        match_ids = [str(m["id"]) for m in self._ledger.active_matches(str(user_id))]
        hits = [m for m in self._repo.list_messages_for_matches(match_ids) if needle in m["content"].casefold()]
        start = (page - 1) * limit
        return MessagePage(items=hits[start : start + limit], page=page, limit=limit, total=len(hits))

    def typing_event(self, match_id: str, user_id: str, is_typing: bool = True) -> GateResult:
        match = self._ledger.get_participant_match(match_id, user_id)
        if not is_active(match["status"]):
            return GateResult(value=False)
        return GateResult(
            value=True,
            events=[
                to_match_room(
                    match_id,
                    "user-typing",
                    {"match_id": str(match_id), "user_id": str(user_id), "is_typing": bool(is_typing)},
                )
            ],
        )
