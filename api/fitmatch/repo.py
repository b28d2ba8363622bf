import logging
import math
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Protocol

from sqlalchemy import and_, delete, exists, func, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from fitmatch.models import FitnessStats, FitnessThreshold, Match, MatchingPreferences, Message, UserAccount
from fitmatch.services.events import log_match_event
from fitmatch.services.scoring import haversine_km

logger = logging.getLogger(__name__)

user_t = UserAccount.__table__
stats_t = FitnessStats.__table__
prefs_t = MatchingPreferences.__table__
match_t = Match.__table__
message_t = Message.__table__
threshold_t = FitnessThreshold.__table__

KM_PER_DEGREE_LAT = 111.32


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row(row: Any) -> dict[str, Any]:
    return {k: _as_utc(v) for k, v in dict(row).items()}


def _longitude_window(low: float, high: float) -> Any:
    col = user_t.c.longitude
    if low < -180.0:
        return or_(col >= low + 360.0, col <= high)
    if high > 180.0:
        return or_(col >= low, col <= high - 360.0)
    return col.between(low, high)


def normalized_pair(user_a: str, user_b: str) -> tuple[str, str]:
    a, b = sorted((str(user_a), str(user_b)))
    return a, b


class ContentCodec(Protocol):
    def encode(self, content: str) -> str: ...

    def decode(self, stored: str) -> str: ...


class PlainTextCodec:
    def encode(self, content: str) -> str:
        return content

    def decode(self, stored: str) -> str:
        return stored


class Repository:
    """Persistence adapter for users, fitness snapshots, preferences, matches and messages.

    Every public method is one unit of work: it opens a session, commits what
    it wrote and returns plain dicts. Message content passes through ``codec``
    on the way in and out so at-rest encoding stays out of the services.
    """

    def __init__(self, session_factory: sessionmaker, codec: ContentCodec | None = None) -> None:
        self._session_factory = session_factory
        self._codec = codec or PlainTextCodec()

    @contextmanager
    def session(self) -> Iterator[Session]:
        with self._session_factory() as db:
            yield db

    # users

    def create_user(
        self,
        *,
        email: str,
        age: int,
        latitude: float | None,
        longitude: float | None,
        first_name: str = "",
        last_name: str = "",
        city: str | None = None,
        state: str | None = None,
        bio: str | None = None,
        user_id: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any] | None:
        user_id = user_id or str(uuid.uuid4())
        now = now or _now_utc()
        try:
            with self.session() as db:
                db.execute(
                    insert(user_t).values(
                        id=user_id,
                        email=email.strip().lower(),
                        first_name=first_name,
                        last_name=last_name,
                        age=int(age),
                        city=city,
                        state=state,
                        latitude=latitude,
                        longitude=longitude,
                        bio=bio,
                        photo_urls=[],
                        created_at=now,
                        last_active=now,
                    )
                )
                db.commit()
        except IntegrityError:
            return None
        return self.get_user(user_id)

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        with self.session() as db:
            row = db.execute(select(user_t).where(user_t.c.id == user_id)).mappings().first()
        return _row(row) if row else None

    def get_user_public_profile(self, user_id: str) -> dict[str, Any] | None:
        with self.session() as db:
            row = db.execute(
                select(
                    user_t.c.id,
                    user_t.c.first_name,
                    user_t.c.last_name,
                    user_t.c.age,
                    user_t.c.city,
                    user_t.c.state,
                    user_t.c.bio,
                    user_t.c.photo_urls,
                ).where(user_t.c.id == user_id)
            ).mappings().first()
        if not row:
            return None
        out = _row(row)
        out["photo_urls"] = out.get("photo_urls") if isinstance(out.get("photo_urls"), list) else []
        return out

    def touch_last_active(self, user_id: str, now: datetime | None = None) -> None:
        with self.session() as db:
            db.execute(update(user_t).where(user_t.c.id == user_id).values(last_active=now or _now_utc()))
            db.commit()

    def find_users_within_radius(
        self,
        lat: float,
        lon: float,
        radius_km: float,
        exclude_user_id: str,
        *,
        exclude_matched: bool = True,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Return users within ``radius_km`` with their fitness snapshot and ``distance_km``.

        A bounding box narrows the scan in SQL; the exact great-circle check
        runs on the survivors. ``limit`` caps the users returned after the
        exact check, in id order.
        """
        dlat = radius_km / KM_PER_DEGREE_LAT
        conditions = [
            user_t.c.id != exclude_user_id,
            user_t.c.latitude.is_not(None),
            user_t.c.longitude.is_not(None),
            user_t.c.latitude.between(lat - dlat, lat + dlat),
        ]
        cos_lat = math.cos(math.radians(lat))
        if cos_lat > 0.01:
            dlon = radius_km / (KM_PER_DEGREE_LAT * cos_lat)
            if dlon < 180.0:
                conditions.append(_longitude_window(lon - dlon, lon + dlon))
        if exclude_matched:
            conditions.append(
                ~exists().where(
                    or_(
                        and_(match_t.c.user1_id == exclude_user_id, match_t.c.user2_id == user_t.c.id),
                        and_(match_t.c.user2_id == exclude_user_id, match_t.c.user1_id == user_t.c.id),
                    )
                )
            )

        stmt = (
            select(
                user_t.c.id,
                user_t.c.first_name,
                user_t.c.last_name,
                user_t.c.age,
                user_t.c.city,
                user_t.c.state,
                user_t.c.bio,
                user_t.c.photo_urls,
                user_t.c.latitude,
                user_t.c.longitude,
                stats_t.c.weekly_distance,
                stats_t.c.weekly_activities,
                stats_t.c.average_pace,
                stats_t.c.favorite_activities,
                stats_t.c.total_distance,
            )
            .select_from(user_t.outerjoin(stats_t, stats_t.c.user_id == user_t.c.id))
            .where(*conditions)
            .order_by(user_t.c.id)
        )

        out: list[dict[str, Any]] = []
        with self.session() as db:
            for r in db.execute(stmt).mappings():
                distance = haversine_km(lat, lon, float(r["latitude"]), float(r["longitude"]))
                if distance > radius_km:
                    continue
                item = _row(r)
                item["distance_km"] = distance
                out.append(item)
                if limit and len(out) >= limit:
                    break
        return out

    # fitness snapshots

    def replace_fitness_stats(self, user_id: str, values: dict[str, Any], synced_at: datetime | None = None) -> dict[str, Any]:
        synced_at = synced_at or _now_utc()
        with self.session() as db:
            db.execute(delete(stats_t).where(stats_t.c.user_id == user_id))
            db.execute(
                insert(stats_t).values(
                    id=str(uuid.uuid4()),
                    user_id=user_id,
                    weekly_distance=float(values.get("weekly_distance") or 0.0),
                    weekly_activities=float(values.get("weekly_activities") or 0.0),
                    average_pace=values.get("average_pace"),
                    favorite_activities=list(values.get("favorite_activities") or []),
                    total_distance=float(values.get("total_distance") or 0.0),
                    longest_activity=float(values.get("longest_activity") or 0.0),
                    consistency_score=int(values.get("consistency_score") or 0),
                    last_sync_at=synced_at,
                )
            )
            db.commit()
        return self.get_fitness_stats(user_id) or {}

    def get_fitness_stats(self, user_id: str) -> dict[str, Any] | None:
        with self.session() as db:
            row = db.execute(select(stats_t).where(stats_t.c.user_id == user_id)).mappings().first()
        return _row(row) if row else None

    # preferences

    def get_preferences(self, user_id: str) -> dict[str, Any] | None:
        with self.session() as db:
            row = db.execute(select(prefs_t).where(prefs_t.c.user_id == user_id)).mappings().first()
        return _row(row) if row else None

    def save_preferences(self, user_id: str, values: dict[str, Any], now: datetime | None = None) -> dict[str, Any]:
        now = now or _now_utc()
        payload = {
            "min_age": int(values["min_age"]),
            "max_age": int(values["max_age"]),
            "max_distance_km": float(values["max_distance_km"]),
            "preferred_activities": list(values["preferred_activities"]),
            "min_compatibility_score": int(values["min_compatibility_score"]),
            "updated_at": now,
        }
        with self.session() as db:
            res = db.execute(update(prefs_t).where(prefs_t.c.user_id == user_id).values(**payload))
            if not res.rowcount:
                db.execute(insert(prefs_t).values(id=str(uuid.uuid4()), user_id=user_id, **payload))
            db.commit()
        return self.get_preferences(user_id) or {"user_id": user_id, **payload}

    # matches

    def get_match(self, match_id: str) -> dict[str, Any] | None:
        with self.session() as db:
            row = db.execute(select(match_t).where(match_t.c.id == match_id)).mappings().first()
        return _row(row) if row else None

    def get_match_for_pair(self, user_a: str, user_b: str) -> dict[str, Any] | None:
        low, high = normalized_pair(user_a, user_b)
        with self.session() as db:
            row = db.execute(
                select(match_t).where(match_t.c.user_low_id == low, match_t.c.user_high_id == high)
            ).mappings().first()
        return _row(row) if row else None

    def insert_match(
        self,
        user1_id: str,
        user2_id: str,
        compatibility_score: int,
        now: datetime | None = None,
    ) -> dict[str, Any] | None:
        """Insert an active match; returns None when the normalized pair already has a row."""
        now = now or _now_utc()
        match_id = str(uuid.uuid4())
        low, high = normalized_pair(user1_id, user2_id)
        try:
            with self.session() as db:
                db.execute(
                    insert(match_t).values(
                        id=match_id,
                        user1_id=user1_id,
                        user2_id=user2_id,
                        user_low_id=low,
                        user_high_id=high,
                        compatibility_score=int(compatibility_score),
                        status="active",
                        matched_at=now,
                    )
                )
                log_match_event(
                    db,
                    user_id=user1_id,
                    match_id=match_id,
                    event_type="match_created",
                    payload={"other_user_id": user2_id, "compatibility_score": int(compatibility_score)},
                )
                db.commit()
        except IntegrityError:
            logger.info("[match] pair %s/%s already present; insert skipped", low, high)
            return None
        return self.get_match(match_id)

    def transition_match(
        self,
        match_id: str,
        *,
        from_status: str,
        to_status: str,
        acting_user_id: str,
        now: datetime | None = None,
    ) -> bool:
        now = now or _now_utc()
        values: dict[str, Any] = {"status": to_status}
        if to_status == "archived":
            values["archived_at"] = now
        with self.session() as db:
            res = db.execute(
                update(match_t).where(match_t.c.id == match_id, match_t.c.status == from_status).values(**values)
            )
            changed = bool(res.rowcount)
            if changed:
                log_match_event(
                    db,
                    user_id=acting_user_id,
                    match_id=match_id,
                    event_type=f"match_{to_status}",
                    payload={"from": from_status, "to": to_status},
                )
            db.commit()
        return changed

    def list_user_matches(
        self,
        user_id: str,
        *,
        statuses: Iterable[str] = ("active",),
        offset: int = 0,
        limit: int | None = None,
    ) -> tuple[list[dict[str, Any]], int]:
        where = and_(
            or_(match_t.c.user1_id == user_id, match_t.c.user2_id == user_id),
            match_t.c.status.in_(list(statuses)),
        )
        stmt = select(match_t).where(where).order_by(match_t.c.matched_at.desc(), match_t.c.id.desc()).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        with self.session() as db:
            rows = db.execute(stmt).mappings().all()
            total = db.execute(select(func.count()).select_from(match_t).where(where)).scalar_one()
        return [_row(r) for r in rows], int(total)

    def user_match_stats(self, user_id: str) -> dict[str, Any]:
        participant = or_(match_t.c.user1_id == user_id, match_t.c.user2_id == user_id)
        with self.session() as db:
            rows = db.execute(
                select(match_t.c.status, func.count().label("c"), func.avg(match_t.c.compatibility_score).label("avg_score"))
                .where(participant)
                .group_by(match_t.c.status)
            ).mappings().all()
        counts = {str(r["status"]): int(r["c"]) for r in rows}
        total = sum(counts.values())
        score_sum = sum(float(r["avg_score"] or 0.0) * int(r["c"]) for r in rows)
        return {
            "total_matches": total,
            "active_matches": counts.get("active", 0),
            "archived_matches": counts.get("archived", 0),
            "average_compatibility_score": round(score_sum / total, 2) if total else 0.0,
        }

    # messages

    def _decode_message(self, row: Any) -> dict[str, Any]:
        out = _row(row)
        out["content"] = self._codec.decode(out["content"])
        return out

    def insert_message(self, match_id: str, sender_id: str, content: str, now: datetime | None = None) -> dict[str, Any]:
        message_id = str(uuid.uuid4())
        with self.session() as db:
            db.execute(
                insert(message_t).values(
                    id=message_id,
                    match_id=match_id,
                    sender_id=sender_id,
                    content=self._codec.encode(content),
                    sent_at=now or _now_utc(),
                    is_read=False,
                    is_deleted=False,
                )
            )
            db.commit()
        return self.get_message(message_id) or {}

    def get_message(self, message_id: str) -> dict[str, Any] | None:
        with self.session() as db:
            row = db.execute(select(message_t).where(message_t.c.id == message_id)).mappings().first()
        return self._decode_message(row) if row else None

    def list_messages(self, match_id: str, *, offset: int = 0, limit: int = 50) -> tuple[list[dict[str, Any]], int]:
        with self.session() as db:
            rows = db.execute(
                select(message_t)
                .where(message_t.c.match_id == match_id)
                .order_by(message_t.c.sent_at.desc(), message_t.c.seq.desc())
                .offset(offset)
                .limit(limit)
            ).mappings().all()
            total = db.execute(
                select(func.count()).select_from(message_t).where(message_t.c.match_id == match_id)
            ).scalar_one()
        return [self._decode_message(r) for r in rows], int(total)

    def last_message(self, match_id: str) -> dict[str, Any] | None:
        rows, _ = self.list_messages(match_id, offset=0, limit=1)
        return rows[0] if rows else None

    def mark_message_read(self, message_id: str, now: datetime | None = None) -> bool:
        with self.session() as db:
            res = db.execute(
                update(message_t)
                .where(message_t.c.id == message_id, message_t.c.is_read.is_(False))
                .values(is_read=True, read_at=now or _now_utc())
            )
            db.commit()
        return bool(res.rowcount)

    def mark_match_read(self, match_id: str, reader_id: str, now: datetime | None = None) -> int:
        with self.session() as db:
            res = db.execute(
                update(message_t)
                .where(
                    message_t.c.match_id == match_id,
                    message_t.c.sender_id != reader_id,
                    message_t.c.is_read.is_(False),
                )
                .values(is_read=True, read_at=now or _now_utc())
            )
            db.commit()
        return int(res.rowcount or 0)

    def count_unread(self, user_id: str, match_id: str | None = None) -> int:
        conditions = [
            message_t.c.sender_id != user_id,
            message_t.c.is_read.is_(False),
            match_t.c.status == "active",
            or_(match_t.c.user1_id == user_id, match_t.c.user2_id == user_id),
        ]
        if match_id is not None:
            conditions.append(message_t.c.match_id == match_id)
        with self.session() as db:
            total = db.execute(
                select(func.count())
                .select_from(message_t.join(match_t, match_t.c.id == message_t.c.match_id))
                .where(*conditions)
            ).scalar_one()
        return int(total)

    def soft_delete_message(self, message_id: str, marker: str) -> bool:
        with self.session() as db:
            res = db.execute(
                update(message_t)
                .where(message_t.c.id == message_id, message_t.c.is_deleted.is_(False))
                .values(content=self._codec.encode(marker), is_deleted=True)
            )
            db.commit()
        return bool(res.rowcount)

    def list_messages_for_matches(self, match_ids: list[str], *, include_deleted: bool = False) -> list[dict[str, Any]]:
        if not match_ids:
            return []
        stmt = select(message_t).where(message_t.c.match_id.in_(match_ids))
        if not include_deleted:
            stmt = stmt.where(message_t.c.is_deleted.is_(False))
        stmt = stmt.order_by(message_t.c.sent_at.desc(), message_t.c.seq.desc())
        with self.session() as db:
            rows = db.execute(stmt).mappings().all()
        return [self._decode_message(r) for r in rows]

    # fitness thresholds

    def get_current_threshold(self) -> dict[str, Any] | None:
        with self.session() as db:
            row = db.execute(
                select(threshold_t).order_by(threshold_t.c.updated_at.desc(), threshold_t.c.id.desc()).limit(1)
            ).mappings().first()
        return _row(row) if row else None

    def insert_threshold(self, values: dict[str, Any], updated_by: str, now: datetime | None = None) -> dict[str, Any]:
        threshold_id = str(uuid.uuid4())
        with self.session() as db:
            db.execute(
                insert(threshold_t).values(
                    id=threshold_id,
                    weekly_distance=float(values.get("weekly_distance") or 0.0),
                    weekly_activities=float(values.get("weekly_activities") or 0.0),
                    average_pace=values.get("average_pace"),
                    allowed_activity_types=list(values.get("allowed_activity_types") or []),
                    updated_at=now or _now_utc(),
                    updated_by=updated_by,
                )
            )
            db.commit()
            row = db.execute(select(threshold_t).where(threshold_t.c.id == threshold_id)).mappings().first()
        return _row(row)

    def list_thresholds(self, limit: int = 10) -> list[dict[str, Any]]:
        with self.session() as db:
            rows = db.execute(
                select(threshold_t).order_by(threshold_t.c.updated_at.desc(), threshold_t.c.id.desc()).limit(limit)
            ).mappings().all()
        return [_row(r) for r in rows]
