"""Pytest configuration and fixtures."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")

import uuid
from datetime import datetime, timezone

import pytest

from fitmatch.database import create_schema, make_session_factory
from fitmatch.repo import Repository

BASE_LAT = 40.0
BASE_LON = -105.0
KM_PER_DEGREE = 111.195


def north_of(km: float, lat: float = BASE_LAT) -> float:
    return lat + km / KM_PER_DEGREE


@pytest.fixture
def repo():
    """Repository over a private in-memory SQLite database."""
    factory = make_session_factory("sqlite+pysqlite:///:memory:")
    create_schema(factory)
    return Repository(factory)


@pytest.fixture
def make_user(repo):
    def _make(
        user_id: str | None = None,
        *,
        age: int = 30,
        latitude: float | None = BASE_LAT,
        longitude: float | None = BASE_LON,
        weekly_distance: float | None = None,
        favorites: list[str] | None = None,
        average_pace: float | None = None,
        first_name: str = "Test",
        now: datetime | None = None,
    ) -> str:
        user_id = user_id or str(uuid.uuid4())
        user = repo.create_user(
            email=f"{user_id}@example.com",
            age=age,
            latitude=latitude,
            longitude=longitude,
            first_name=first_name,
            user_id=user_id,
            now=now,
        )
        assert user is not None
        if weekly_distance is not None or favorites is not None or average_pace is not None:
            repo.replace_fitness_stats(
                user_id,
                {
                    "weekly_distance": weekly_distance or 0.0,
                    "weekly_activities": 3,
                    "average_pace": average_pace,
                    "favorite_activities": favorites or [],
                },
                synced_at=datetime.now(timezone.utc),
            )
        return user_id

    return _make
