import json
import logging
import os
from typing import Any

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "postgresql+psycopg2://postgres:postgres@db:5432/fitmatch")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

JWT_SECRET = os.getenv("JWT_SECRET", "")
ACCESS_TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_TTL_MINUTES", "15"))
DEV_MODE = os.getenv("DEV_MODE", "false").lower() == "true"

# Admin principals are resolved here and passed into AdminPolicy; services never read env.
ADMIN_USER_IDS = frozenset(
    part.strip() for part in os.getenv("ADMIN_USER_IDS", "").split(",") if part.strip()
)

DEFAULT_MIN_AGE = int(os.getenv("DEFAULT_MIN_AGE", "18"))
DEFAULT_MAX_AGE = int(os.getenv("DEFAULT_MAX_AGE", "100"))
DEFAULT_MAX_DISTANCE_KM = float(os.getenv("DEFAULT_MAX_DISTANCE_KM", "50"))
DEFAULT_MIN_COMPATIBILITY_SCORE = int(os.getenv("DEFAULT_MIN_COMPATIBILITY_SCORE", "50"))

CANDIDATE_POOL_CAP = int(os.getenv("CANDIDATE_POOL_CAP", "2000"))
MAX_MESSAGE_LENGTH = int(os.getenv("MAX_MESSAGE_LENGTH", "5000"))
METRICS_WINDOW_DAYS = int(os.getenv("METRICS_WINDOW_DAYS", "90"))

DEFAULT_SCORING_WEIGHTS: dict[str, float] = {
    "activity_overlap": 0.30,
    "performance_similarity": 0.25,
    "location_proximity": 0.25,
    "age_compatibility": 0.20,
}

if os.getenv("SCORING_WEIGHTS_JSON"):
    try:
        override: dict[str, Any] = json.loads(os.getenv("SCORING_WEIGHTS_JSON", "{}"))
        DEFAULT_SCORING_WEIGHTS.update(
            {k: float(v) for k, v in override.items() if k in DEFAULT_SCORING_WEIGHTS}
        )
    except (json.JSONDecodeError, TypeError, ValueError):
        logger.warning("Ignoring malformed SCORING_WEIGHTS_JSON; using default weights.")
