import uuid

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB

from .database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


class UserAccount(Base):
    __tablename__ = "user_account"

    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String, nullable=False, unique=True)
    first_name = Column(String, nullable=False, default="")
    last_name = Column(String, nullable=False, default="")
    age = Column(Integer, nullable=False)
    city = Column(String, nullable=True)
    state = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    bio = Column(Text, nullable=True)
    photo_urls = Column(JSONType, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_active = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_user_account_lat_lon", "latitude", "longitude"),
        Index("idx_user_account_age", "age"),
    )


class FitnessStats(Base):
    __tablename__ = "fitness_stats"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, unique=True)
    weekly_distance = Column(Float, nullable=False, default=0.0)
    weekly_activities = Column(Float, nullable=False, default=0.0)
    average_pace = Column(Float, nullable=True)
    favorite_activities = Column(JSONType, nullable=False, default=list)
    total_distance = Column(Float, nullable=False, default=0.0)
    longest_activity = Column(Float, nullable=False, default=0.0)
    consistency_score = Column(Integer, nullable=False, default=0)
    last_sync_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MatchingPreferences(Base):
    __tablename__ = "matching_preferences"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False, unique=True)
    min_age = Column(Integer, nullable=False, default=18)
    max_age = Column(Integer, nullable=False, default=100)
    max_distance_km = Column(Float, nullable=False, default=50.0)
    preferred_activities = Column(JSONType, nullable=False, default=list)
    min_compatibility_score = Column(Integer, nullable=False, default=50)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Match(Base):
    __tablename__ = "match"

    id = Column(String(36), primary_key=True, default=_uuid)
    user1_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    user2_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    user_low_id = Column(String(36), nullable=False)
    user_high_id = Column(String(36), nullable=False)
    compatibility_score = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default="active")
    matched_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    archived_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_low_id", "user_high_id", name="uq_match_pair"),
        CheckConstraint("user_low_id < user_high_id", name="ck_match_pair_ordered"),
        Index("idx_match_user1_id", "user1_id"),
        Index("idx_match_user2_id", "user2_id"),
        Index("idx_match_status", "status"),
    )


class Message(Base):
    __tablename__ = "message"

    # store-assigned insertion order; breaks sent_at ties
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(36), nullable=False, unique=True, default=_uuid)
    match_id = Column(String(36), ForeignKey("match.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(String(36), ForeignKey("user_account.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        Index("idx_message_match_sent_at", "match_id", "sent_at"),
        Index("idx_message_unread", "match_id", "is_read"),
    )


class FitnessThreshold(Base):
    __tablename__ = "fitness_threshold"

    id = Column(String(36), primary_key=True, default=_uuid)
    weekly_distance = Column(Float, nullable=False, default=0.0)
    weekly_activities = Column(Float, nullable=False, default=0.0)
    average_pace = Column(Float, nullable=True)
    allowed_activity_types = Column(JSONType, nullable=False, default=list)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_by = Column(String, nullable=False, default="system")


class MatchEvent(Base):
    __tablename__ = "match_event"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    match_id = Column(String(36), nullable=True)
    event_type = Column(String, nullable=False)
    payload = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("idx_match_event_match_id", "match_id"),)
