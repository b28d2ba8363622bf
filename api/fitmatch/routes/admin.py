from typing import Any

from fastapi import APIRouter, Depends

from ..auth.deps import get_current_user_id
from ..deps import get_admin_policy, get_fitness_sync, get_repository
from ..repo import Repository
from ..services.fitness import FitnessSync
from ..services.stats import AdminPolicy, compute_admin_stats

router = APIRouter()


def require_admin(
    user_id: str = Depends(get_current_user_id),
    policy: AdminPolicy = Depends(get_admin_policy),
) -> str:
    return policy.require_admin(user_id)


@router.get("/admin/stats")
def admin_stats(
    admin_id: str = Depends(require_admin),
    repo: Repository = Depends(get_repository),
) -> dict[str, Any]:
    with repo.session() as db:
        return {"stats": compute_admin_stats(db)}


@router.get("/admin/fitness-threshold")
def get_fitness_threshold(
    admin_id: str = Depends(require_admin),
    repo: Repository = Depends(get_repository),
) -> dict[str, Any]:
    history = repo.list_thresholds(limit=10)
    return {
        "threshold": history[0] if history else None,
        "history": history,
    }


@router.put("/admin/fitness-threshold")
def update_fitness_threshold(
    payload: dict[str, Any],
    admin_id: str = Depends(require_admin),
    fitness: FitnessSync = Depends(get_fitness_sync),
) -> dict[str, Any]:
    return {"threshold": fitness.update_threshold(payload, updated_by=admin_id)}
