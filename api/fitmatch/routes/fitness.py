from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user_id
from ..deps import get_fitness_sync
from ..schemas import FitnessSyncRequest
from ..services.fitness import Activity, FitnessSync

router = APIRouter()


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


@router.post("/fitness/sync")
def sync_fitness(
    payload: FitnessSyncRequest,
    user_id: str = Depends(get_current_user_id),
    fitness: FitnessSync = Depends(get_fitness_sync),
) -> dict[str, Any]:
    activities = [
        Activity(
            type=a.type,
            distance=a.distance,
            start_date=_aware(a.start_date),
            moving_time=a.moving_time,
            average_speed=a.average_speed,
        )
        for a in payload.activities
    ]
    metrics, evaluation = fitness.sync_user(user_id, activities, now=datetime.now(timezone.utc))
    return {
        "fitness_stats": metrics.to_dict(),
        "threshold": {"meets": evaluation.meets, "score": evaluation.score, "reasons": evaluation.reasons},
    }


@router.get("/fitness/evaluation")
def get_fitness_evaluation(
    user_id: str = Depends(get_current_user_id),
    fitness: FitnessSync = Depends(get_fitness_sync),
) -> dict[str, Any]:
    evaluation = fitness.evaluate_user(user_id)
    return {"meets": evaluation.meets, "score": evaluation.score, "reasons": evaluation.reasons}
