"""Schemas for the public activity listings and time tracking."""

from datetime import datetime

from pydantic import BaseModel, Field


class AchievementResponse(BaseModel):
    """An unlocked achievement."""

    id: str
    game_id: int
    session_id: str | None
    external_key: str
    name: str
    description: str | None
    unlocked_at: datetime | None

    model_config = {"from_attributes": True}


class GameSessionResponse(BaseModel):
    """A merged play session with the achievements unlocked during it."""

    id: str
    game_id: int
    game_name: str
    game_url: str | None
    playtime_mins: int
    device_id: str
    created_at: datetime
    updated_at: datetime
    achievements: list[AchievementResponse] = Field(default_factory=list)


class TimeTrackingCreate(BaseModel):
    """Request body for switching the current time-tracking category."""

    category: str = Field(min_length=1, max_length=64)
    started_at: datetime | None = None
    ended_at: datetime | None = None
    device_id: str | None = Field(default=None, max_length=64)


class TimeTrackingResponse(BaseModel):
    """A time-tracking block."""

    id: str
    category: str
    created_at: datetime
    ended_at: datetime | None
    device_id: str

    model_config = {"from_attributes": True}


class TimeTrackingSwitchResponse(BaseModel):
    """Result of a category switch; ``block`` is null after a stop."""

    block: TimeTrackingResponse | None
    stopped: bool
