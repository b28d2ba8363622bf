from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from fitmatch.errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from fitmatch.services.events import PushEvent, to_match_room, to_user
from fitmatch.services.state_machine import ACTIVE, ARCHIVED, transition_status

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


@dataclass
class LedgerResult:
    match: dict[str, Any]
    created: bool = False
    changed: bool = False
    events: list[PushEvent] = field(default_factory=list)

    def __iter__(self):
        return iter((self.match, self.created, self.events))


@dataclass
class MatchPage:
    items: list[dict[str, Any]]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


def serialize_match(match: dict[str, Any]) -> dict[str, Any]:
    def _iso(value: Any) -> Any:
        return value.isoformat() if isinstance(value, datetime) else value

    return {
        "id": str(match["id"]),
        "user1_id": str(match["user1_id"]),
        "user2_id": str(match["user2_id"]),
        "compatibility_score": int(match["compatibility_score"]),
        "status": match["status"],
        "matched_at": _iso(match.get("matched_at")),
        "archived_at": _iso(match.get("archived_at")),
    }


def other_participant(match: dict[str, Any], user_id: str) -> str | None:
    a, b = str(match["user1_id"]), str(match["user2_id"])
    if user_id == a:
        return b
    if user_id == b:
        return a
    return None


def validate_pagination(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationError("page must be at least 1", field="page")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}", field="limit")


def _validate_score(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 <= value <= 100:
        raise ValidationError("compatibility_score must be a number between 0 and 100", field="compatibility_score")
    return int(round(value))


class MatchLedger:
    """Owns match records and their active/archived lifecycle.

    At most one match row exists per normalized pair. A retried create for a
    pair that is already active returns the existing row; a pair whose match
    was archived cannot be matched again.
    """

    def __init__(self, repo) -> None:
        self._repo = repo

    def _resolve_existing(self, existing: dict[str, Any]) -> LedgerResult:
        if existing["status"] == ACTIVE:
            return LedgerResult(match=existing, created=False)
        raise ConflictError(
            "Match already exists between these users",
            {"match_id": str(existing["id"]), "status": existing["status"]},
        )

    def create_match(
        self,
        user1_id: str,
        user2_id: str,
        compatibility_score: Any,
        now: datetime | None = None,
    ) -> LedgerResult:
        if not user1_id or not user2_id:
            raise ValidationError("Both user ids are required", field="target_user_id")
        if str(user1_id) == str(user2_id):
            raise ValidationError("Cannot match with yourself", field="target_user_id")
        score = _validate_score(compatibility_score)
        for uid in (user1_id, user2_id):
            if not self._repo.get_user(uid):
                raise NotFoundError("user", str(uid))

        existing = self._repo.get_match_for_pair(user1_id, user2_id)
        if existing:
            return self._resolve_existing(existing)

        match = self._repo.insert_match(user1_id, user2_id, score, now=now)
        if match is None:
            # Lost a concurrent insert for the same pair; the winner's row is authoritative.
            existing = self._repo.get_match_for_pair(user1_id, user2_id)
            if not existing:
                raise ConflictError("Match creation raced with a concurrent change; retry")
            return self._resolve_existing(existing)

        logger.info("[match] created id=%s users=%s,%s score=%s", match["id"], user1_id, user2_id, score)
        payload = serialize_match(match)
        return LedgerResult(
            match=match,
            created=True,
            changed=True,
            events=[
                to_user(user1_id, "match-created", payload),
                to_user(user2_id, "match-created", payload),
            ],
        )

    def get_match(self, match_id: str) -> dict[str, Any]:
        match = self._repo.get_match(match_id)
        if not match:
            raise NotFoundError("match", str(match_id))
        return match

    def get_participant_match(self, match_id: str, user_id: str) -> dict[str, Any]:
        match = self.get_match(match_id)
        if other_participant(match, str(user_id)) is None:
            raise AuthorizationError("Not a participant of this match", reason="not_participant", details={"match_id": str(match_id)})
        return match

    def archive_match(self, match_id: str, acting_user_id: str, now: datetime | None = None) -> LedgerResult:
        match = self.get_participant_match(match_id, acting_user_id)
        target = transition_status(match["status"], "archive")
        if target == match["status"]:
            return LedgerResult(match=match)

        changed = self._repo.transition_match(
            match_id,
            from_status=match["status"],
            to_status=target,
            acting_user_id=str(acting_user_id),
            now=now,
        )
        match = self.get_match(match_id)
        if not changed:
            return LedgerResult(match=match)

        logger.info("[match] archived id=%s by=%s", match_id, acting_user_id)
        return LedgerResult(
            match=match,
            changed=True,
            events=[to_match_room(match_id, "match-archived", {"match_id": str(match_id), "archived_by": str(acting_user_id)})],
        )

    def get_user_matches(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        include_archived: bool = False,
    ) -> MatchPage:
        validate_pagination(page, limit)
        statuses = (ACTIVE, ARCHIVED) if include_archived else (ACTIVE,)
        rows, total = self._repo.list_user_matches(
            user_id,
            statuses=statuses,
            offset=(page - 1) * limit,
            limit=limit,
        )
        return MatchPage(items=rows, page=page, limit=limit, total=total)

    def active_matches(self, user_id: str) -> list[dict[str, Any]]:
        rows, _ = self._repo.list_user_matches(user_id, statuses=(ACTIVE,))
        return rows

    def are_matched(self, user_a: str, user_b: str) -> bool:
        if not user_a or not user_b or str(user_a) == str(user_b):
            return False
        match = self._repo.get_match_for_pair(user_a, user_b)
        return bool(match) and match["status"] == ACTIVE

    def get_match_stats(self, user_id: str) -> dict[str, Any]:
        return self._repo.user_match_stats(user_id)
