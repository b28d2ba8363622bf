from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from sqlalchemy import func, select

from fitmatch.errors import AuthorizationError
from fitmatch.models import FitnessStats, Match, Message, UserAccount

logger = logging.getLogger(__name__)

ACTIVE_WINDOW_DAYS = 7
SIGNUP_WINDOW_DAYS = 7


class AdminPolicy:
    """Explicit allowlist of admin principals; built from config by the caller."""

    def __init__(self, admin_user_ids: Iterable[str]) -> None:
        self._admin_user_ids = frozenset(str(u) for u in admin_user_ids if u)

    def is_admin(self, user_id: str | None) -> bool:
        return bool(user_id) and str(user_id) in self._admin_user_ids

    def require_admin(self, user_id: str | None) -> str:
        if not self.is_admin(user_id):
            logger.warning("[admin] denied user_id=%s", user_id)
            raise AuthorizationError("Admin access required", reason="not_admin")
        return str(user_id)


def _ratio(num: int, den: int) -> float:
    if den <= 0:
        return 0.0
    return round(num / den, 4)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compute_admin_stats(db, *, now: datetime | None = None) -> dict[str, Any]:
    now = _utc(now or datetime.now(timezone.utc))
    users = UserAccount.__table__
    matches = Match.__table__
    messages = Message.__table__
    stats = FitnessStats.__table__

    total_users = db.execute(select(func.count()).select_from(users)).scalar_one()
    active_users = db.execute(
        select(func.count()).select_from(users).where(users.c.last_active >= now - timedelta(days=ACTIVE_WINDOW_DAYS))
    ).scalar_one()

    signup_start = (now - timedelta(days=SIGNUP_WINDOW_DAYS - 1)).replace(hour=0, minute=0, second=0, microsecond=0)
    signup_rows = db.execute(select(users.c.created_at).where(users.c.created_at >= signup_start)).scalars().all()
    by_day = Counter(_utc(ts).date().isoformat() for ts in signup_rows)
    daily_signups = [
        {"date": (signup_start + timedelta(days=i)).date().isoformat(), "count": by_day.get((signup_start + timedelta(days=i)).date().isoformat(), 0)}
        for i in range(SIGNUP_WINDOW_DAYS)
    ]

    match_rows = db.execute(
        select(matches.c.status, func.count().label("c"), func.avg(matches.c.compatibility_score).label("avg_score")).group_by(
            matches.c.status
        )
    ).mappings().all()
    match_counts = {str(r["status"]): int(r["c"]) for r in match_rows}
    total_matches = sum(match_counts.values())
    score_sum = sum(float(r["avg_score"] or 0.0) * int(r["c"]) for r in match_rows)

    message_rows = db.execute(
        select(messages.c.is_read, messages.c.is_deleted, func.count().label("c")).group_by(messages.c.is_read, messages.c.is_deleted)
    ).mappings().all()
    total_messages = sum(int(r["c"]) for r in message_rows)
    read_messages = sum(int(r["c"]) for r in message_rows if r["is_read"])
    deleted_messages = sum(int(r["c"]) for r in message_rows if r["is_deleted"])

    fitness = db.execute(
        select(func.count().label("c"), func.avg(stats.c.consistency_score).label("avg_consistency")).select_from(stats)
    ).mappings().first()

    return {
        "generated_at": now.isoformat(),
        "users": {
            "total": int(total_users),
            "active_last_7_days": int(active_users),
            "daily_signups": daily_signups,
            "with_fitness_stats": int(fitness["c"] or 0),
            "average_consistency_score": round(float(fitness["avg_consistency"] or 0.0), 2),
        },
        "matches": {
            "total": total_matches,
            "active": match_counts.get("active", 0),
            "archived": match_counts.get("archived", 0),
            "average_compatibility_score": round(score_sum / total_matches, 2) if total_matches else 0.0,
            "archive_rate": _ratio(match_counts.get("archived", 0), total_matches),
            "matches_per_user": round(2 * total_matches / total_users, 2) if total_users else 0.0,
        },
        "messages": {
            "total": total_messages,
            "read_rate": _ratio(read_messages, total_messages),
            "deleted": deleted_messages,
        },
    }
