import logging
import math
import random
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from fitmatch.services.fitness import Activity, FitnessSync
from fitmatch.services.scoring import EARTH_RADIUS_KM

logger = logging.getLogger(__name__)

ARCHETYPES = {
    "runner": {
        "weight": 0.35,
        "types": {"Run": 0.8, "Walk": 0.1, "Ride": 0.1},
        "sessions_per_week": 4.0,
        "distance_m": 9000.0,
        "speed_mps": 3.0,
    },
    "cyclist": {
        "weight": 0.25,
        "types": {"Ride": 0.85, "Run": 0.15},
        "sessions_per_week": 3.0,
        "distance_m": 40000.0,
        "speed_mps": 7.5,
    },
    "triathlete": {
        "weight": 0.15,
        "types": {"Run": 0.35, "Ride": 0.35, "Swim": 0.3},
        "sessions_per_week": 6.0,
        "distance_m": 15000.0,
        "speed_mps": 3.4,
    },
    "hiker": {
        "weight": 0.25,
        "types": {"Hike": 0.6, "Walk": 0.3, "Run": 0.1},
        "sessions_per_week": 2.0,
        "distance_m": 11000.0,
        "speed_mps": 1.4,
    },
}

FIRST_NAMES = ["Alex", "Sam", "Jordan", "Taylor", "Riley", "Casey", "Morgan", "Jamie", "Avery", "Quinn", "Drew", "Reese"]
CITIES = [("Boulder", "CO"), ("Denver", "CO"), ("Golden", "CO"), ("Louisville", "CO")]


def _pick_archetype(rng: random.Random) -> str:
    names = list(ARCHETYPES.keys())
    weights = [ARCHETYPES[n]["weight"] for n in names]
    return rng.choices(names, weights=weights, k=1)[0]


def _offset_point(lat: float, lon: float, distance_km: float, bearing_deg: float) -> tuple[float, float]:
    d = distance_km / EARTH_RADIUS_KM
    bearing = math.radians(bearing_deg)
    phi1 = math.radians(lat)
    lambda1 = math.radians(lon)
    phi2 = math.asin(math.sin(phi1) * math.cos(d) + math.cos(phi1) * math.sin(d) * math.cos(bearing))
    lambda2 = lambda1 + math.atan2(math.sin(bearing) * math.sin(d) * math.cos(phi1), math.cos(d) - math.sin(phi1) * math.sin(phi2))
    return math.degrees(phi2), (math.degrees(lambda2) + 540.0) % 360.0 - 180.0


def generate_activities(rng: random.Random, archetype: str, now: datetime, days: int = 90) -> list[Activity]:
    profile = ARCHETYPES[archetype]
    types = list(profile["types"].keys())
    type_weights = list(profile["types"].values())
    out: list[Activity] = []
    for day in range(days):
        if rng.random() > profile["sessions_per_week"] / 7.0:
            continue
        activity_type = rng.choices(types, weights=type_weights, k=1)[0]
        distance = max(500.0, rng.gauss(profile["distance_m"], profile["distance_m"] * 0.3))
        speed = max(0.5, rng.gauss(profile["speed_mps"], profile["speed_mps"] * 0.1))
        out.append(
            Activity(
                type=activity_type,
                distance=distance,
                start_date=now - timedelta(days=day, hours=rng.randint(5, 19)),
                moving_time=int(distance / speed),
                average_speed=speed,
            )
        )
    return out


def seed_demo_athletes(
    repo,
    *,
    n_users: int = 50,
    seed: int = 42,
    center: tuple[float, float] = (40.015, -105.2705),
    radius_km: float = 40.0,
    now: datetime | None = None,
) -> dict[str, Any]:
    rng = random.Random(seed)
    now = now or datetime.now(timezone.utc)
    sync = FitnessSync(repo)
    archetypes: Counter[str] = Counter()
    created = 0
    skipped = 0

    for i in range(n_users):
        archetype = _pick_archetype(rng)
        lat, lon = _offset_point(center[0], center[1], rng.uniform(0.0, radius_km), rng.uniform(0.0, 360.0))
        city, state = rng.choice(CITIES)
        user = repo.create_user(
            email=f"athlete{seed}_{i}@example.com",
            age=rng.randint(21, 55),
            latitude=lat,
            longitude=lon,
            first_name=rng.choice(FIRST_NAMES),
            last_name=f"Demo{i}",
            city=city,
            state=state,
            bio=f"Seeded {archetype}",
            now=now,
        )
        if not user:
            skipped += 1
            continue
        sync.sync_user(str(user["id"]), generate_activities(rng, archetype, now), now)
        archetypes[archetype] += 1
        created += 1

    logger.info("[seed] created=%s skipped=%s", created, skipped)
    return {"created": created, "skipped_existing": skipped, "archetypes": dict(archetypes)}
