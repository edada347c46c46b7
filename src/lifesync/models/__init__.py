"""SQLAlchemy ORM models."""

from lifesync.models.base import Base
from lifesync.models.game import Game, GameAchievement, GameSession
from lifesync.models.time_tracking import TimeTracking
from lifesync.models.activity import Film, Note, YouTubeLike

__all__ = [
    "Base",
    "Game",
    "GameSession",
    "GameAchievement",
    "TimeTracking",
    "YouTubeLike",
    "Film",
    "Note",
]
