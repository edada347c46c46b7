"""RetroAchievements - recently played games and recent achievements."""

import logging
from datetime import datetime, timezone

import httpx
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.adapters.base import PollingAdapter
from lifesync.services.achievements import (
    AchievementReconciler,
    RemoteAchievement,
    get_unlocked_state,
    record_unlocked,
)
from lifesync.services.delta import DeltaDetector, parse_items
from lifesync.services.sessions import floor_minutes, merge_or_create
from lifesync.services.snapshot_store import Credentials

logger = logging.getLogger(__name__)

API_URL = "https://retroachievements.org/API/{endpoint}.php"
GAME_URL = "https://retroachievements.org/game/{game_id}"

# eg. 2024-10-13 11:47:54, always UTC
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def parse_ra_datetime(value):
    """Parse the API's naive UTC timestamps; other values pass through."""
    if isinstance(value, str):
        try:
            return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=timezone.utc)
        except ValueError:
            return value
    return value


class RecentlyPlayedGame(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    game_id: int = Field(alias="GameID")
    title: str = Field(alias="Title")
    console_name: str | None = Field(default=None, alias="ConsoleName")
    last_played: datetime = Field(alias="LastPlayed")

    @field_validator("last_played", mode="before")
    @classmethod
    def parse_last_played(cls, value):
        return parse_ra_datetime(value)


class RecentAchievement(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    achievement_id: int = Field(alias="AchievementID")
    game_id: int = Field(alias="GameID")
    title: str = Field(alias="Title")
    description: str | None = Field(default=None, alias="Description")
    date: datetime = Field(alias="Date")

    @field_validator("date", mode="before")
    @classmethod
    def parse_date(cls, value):
        return parse_ra_datetime(value)

    def to_remote(self) -> RemoteAchievement:
        return RemoteAchievement(
            key=str(self.achievement_id),
            earned=True,
            unlocked_at=self.date,
            name=self.title,
            description=self.description,
        )


def _played_again(
    previous: RecentlyPlayedGame | None, current: RecentlyPlayedGame
) -> bool:
    return previous is None or current.last_played > previous.last_played


class RetroAchievementsAdapter(PollingAdapter):
    name = "retroachievements"

    def __init__(self, settings, session_factory, **kwargs) -> None:
        kwargs.setdefault(
            "interval_minutes", settings.retroachievements_poll_interval_minutes
        )
        kwargs.setdefault("device_id", settings.retroachievements_device_id)
        super().__init__(settings, session_factory, **kwargs)
        self.detector: DeltaDetector[RecentlyPlayedGame, int] = DeltaDetector(
            identity=lambda game: game.game_id,
            is_newly_true=_played_again,
            order_key=lambda game: game.last_played,
        )
        self.reconciler = AchievementReconciler()

    def is_configured(self) -> bool:
        return bool(
            self.settings.retroachievements_username
            and self.settings.retroachievements_api_key
        )

    async def request(self, client: httpx.AsyncClient, endpoint: str, **params):
        params["u"] = self.settings.retroachievements_username
        params["y"] = self.settings.retroachievements_api_key
        data = await self.get_json(client, API_URL.format(endpoint=endpoint), params=params)
        return data if isinstance(data, list) else []

    async def fetch_recently_played(
        self, client: httpx.AsyncClient
    ) -> list[RecentlyPlayedGame]:
        raw = await self.request(client, "API_GetUserRecentlyPlayedGames")
        return parse_items(RecentlyPlayedGame, raw, self.name)

    async def fetch_recent_achievements(
        self, client: httpx.AsyncClient
    ) -> list[RecentAchievement]:
        raw = await self.request(
            client, "API_GetUserRecentAchievements", m=self.interval_minutes
        )
        return parse_items(RecentAchievement, raw, self.name)

    async def sync(
        self,
        db: AsyncSession,
        client: httpx.AsyncClient,
        credentials: Credentials | None,
        now: datetime | None = None,
    ) -> list[dict]:
        now = now or datetime.now(timezone.utc)
        games = await self.fetch_recently_played(client)
        previous = self.previous_items(RecentlyPlayedGame)

        sessions = {}
        for game in self.detector.detect_new(previous, games):
            since_played_ms = (now - game.last_played).total_seconds() * 1000
            if since_played_ms > self.interval_ms:
                continue

            minutes = floor_minutes(self.interval_ms - since_played_ms)
            logger.info("Logging '%s' for %d minutes", game.title, minutes)
            sessions[game.game_id] = await merge_or_create(
                db,
                game.title,
                minutes,
                self.interval_ms,
                device_id=self.device_id,
                url=GAME_URL.format(game_id=game.game_id),
                now=now,
            )

        if sessions:
            logger.debug("New games detected, fetching achievements")
            recent = await self.fetch_recent_achievements(client)
            for game_id, session in sessions.items():
                remote = [a.to_remote() for a in recent if a.game_id == game_id]
                if not remote:
                    continue
                local = await get_unlocked_state(db, session.game_id)
                unlocked = await self.reconciler.reconcile(str(game_id), remote, local)
                await record_unlocked(db, session.game_id, session.id, unlocked, now=now)

        return [game.model_dump(mode="json") for game in games]
