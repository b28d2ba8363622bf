from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class CreateMatchRequest(BaseModel):
    target_user_id: str
    compatibility_score: float


class SendMessageRequest(BaseModel):
    recipient_id: str
    match_id: str
    content: str


class TypingRequest(BaseModel):
    is_typing: bool = True


class ActivityInput(BaseModel):
    type: str
    distance: float = Field(ge=0)
    start_date: datetime
    moving_time: int = 0
    average_speed: float = 0.0


class FitnessSyncRequest(BaseModel):
    activities: list[ActivityInput] = Field(default_factory=list)


class MatchPageResponse(BaseModel):
    matches: list[dict[str, Any]]
    pagination: dict[str, int]
