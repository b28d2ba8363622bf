from typing import Any

from fastapi import APIRouter, Depends, Response

from ..auth.deps import get_current_user_id
from ..deps import get_candidate_filter, get_ledger, get_preferences_store, get_push_channel, get_repository
from ..repo import Repository
from ..schemas import CreateMatchRequest, MatchPageResponse
from ..services.candidates import CandidateFilter, clamp_limit
from ..services.events import PushChannel, dispatch_events
from ..services.ledger import MatchLedger, other_participant, serialize_match
from ..services.preferences import PreferencesStore

router = APIRouter()


@router.get("/matching/potential")
def get_potential_matches(
    limit: int = 20,
    offset: int = 0,
    user_id: str = Depends(get_current_user_id),
    candidates: CandidateFilter = Depends(get_candidate_filter),
) -> dict[str, Any]:
    items = candidates.get_potential_matches(user_id, limit=limit, offset=offset)
    return {
        "matches": [i.to_dict() for i in items],
        "limit": clamp_limit(limit),
        "offset": offset,
    }


@router.post("/matching/match")
def create_match(
    payload: CreateMatchRequest,
    response: Response,
    user_id: str = Depends(get_current_user_id),
    ledger: MatchLedger = Depends(get_ledger),
    channel: PushChannel = Depends(get_push_channel),
) -> dict[str, Any]:
    result = ledger.create_match(user_id, payload.target_user_id, payload.compatibility_score)
    dispatch_events(channel, result.events)
    response.status_code = 201 if result.created else 200
    return {"match": serialize_match(result.match), "created": result.created}


@router.get("/matching/matches", response_model=MatchPageResponse)
def get_user_matches(
    page: int = 1,
    limit: int = 20,
    include_archived: bool = False,
    user_id: str = Depends(get_current_user_id),
    ledger: MatchLedger = Depends(get_ledger),
    repo: Repository = Depends(get_repository),
) -> dict[str, Any]:
    result = ledger.get_user_matches(user_id, page=page, limit=limit, include_archived=include_archived)
    matches = []
    for row in result.items:
        other_id = other_participant(row, user_id)
        matches.append(
            {
                **serialize_match(row),
                "other_user": repo.get_user_public_profile(other_id) or {"id": other_id},
            }
        )
    return {
        "matches": matches,
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "total_pages": result.total_pages,
        },
    }


@router.get("/matching/stats")
def get_match_stats(
    user_id: str = Depends(get_current_user_id),
    ledger: MatchLedger = Depends(get_ledger),
) -> dict[str, Any]:
    return {"stats": ledger.get_match_stats(user_id)}


@router.put("/matching/matches/{match_id}/archive")
def archive_match(
    match_id: str,
    user_id: str = Depends(get_current_user_id),
    ledger: MatchLedger = Depends(get_ledger),
    channel: PushChannel = Depends(get_push_channel),
) -> dict[str, Any]:
    result = ledger.archive_match(match_id, user_id)
    dispatch_events(channel, result.events)
    return {"match": serialize_match(result.match), "changed": result.changed}


@router.get("/matching/preferences")
def get_preferences(
    user_id: str = Depends(get_current_user_id),
    store: PreferencesStore = Depends(get_preferences_store),
) -> dict[str, Any]:
    return {"preferences": store.get(user_id).to_dict()}


@router.put("/matching/preferences")
def update_preferences(
    payload: dict[str, Any],
    user_id: str = Depends(get_current_user_id),
    store: PreferencesStore = Depends(get_preferences_store),
) -> dict[str, Any]:
    return {"preferences": store.update(user_id, payload).to_dict()}
