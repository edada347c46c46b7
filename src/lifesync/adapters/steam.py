"""Steam - recently played games and their achievements."""

import logging
from datetime import datetime, timezone

import httpx
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.adapters.base import PollingAdapter, read_json
from lifesync.services.achievements import (
    AchievementReconciler,
    RemoteAchievement,
    get_unlocked_state,
    record_unlocked,
)
from lifesync.services.delta import DeltaDetector, parse_items
from lifesync.services.sessions import merge_or_create
from lifesync.services.snapshot_store import Credentials

logger = logging.getLogger(__name__)

RECENTLY_PLAYED_URL = (
    "https://api.steampowered.com/IPlayerService/GetRecentlyPlayedGames/v0001/"
)
PLAYER_ACHIEVEMENTS_URL = (
    "https://api.steampowered.com/ISteamUserStats/GetPlayerAchievements/v0001/"
)
STORE_URL = "https://store.steampowered.com/app/{appid}/"

# Tools that show up as "played" but are not games
IGNORED_APP_IDS = frozenset(
    {
        250820,  # SteamVR
        755540,  # LIV
        1173510,  # XSOverlay
        1009850,  # OVR Advanced Settings
    }
)


class SteamGame(BaseModel):
    appid: int
    name: str
    playtime_2weeks: int = 0
    playtime_forever: int = 0


class SteamAchievement(BaseModel):
    apiname: str
    achieved: int = 0
    unlocktime: int = 0
    name: str | None = None
    description: str | None = None

    def to_remote(self) -> RemoteAchievement:
        return RemoteAchievement(
            key=self.apiname,
            earned=self.achieved == 1,
            unlocked_at=(
                datetime.fromtimestamp(self.unlocktime, tz=timezone.utc)
                if self.unlocktime
                else None
            ),
            name=self.name,
            description=self.description,
        )


def _played_since(previous: SteamGame | None, current: SteamGame) -> bool:
    return previous is None or current.playtime_forever > previous.playtime_forever


def new_playtime(previous: SteamGame | None, current: SteamGame) -> int:
    """Minutes played since the previous observation of ``current``."""
    if previous is None:
        return current.playtime_2weeks
    return current.playtime_forever - previous.playtime_forever


class SteamAdapter(PollingAdapter):
    name = "steam"

    def __init__(self, settings, session_factory, **kwargs) -> None:
        kwargs.setdefault("interval_minutes", settings.steam_poll_interval_minutes)
        kwargs.setdefault("device_id", settings.steam_device_id)
        super().__init__(settings, session_factory, **kwargs)
        self.detector: DeltaDetector[SteamGame, int] = DeltaDetector(
            identity=lambda game: game.appid,
            is_newly_true=_played_since,
        )
        # Names come with every response, so they are not persisted
        self.reconciler = AchievementReconciler()

    def is_configured(self) -> bool:
        return bool(self.settings.steam_api_key and self.settings.steam_user_id)

    def _params(self, **extra) -> dict:
        return {
            "key": self.settings.steam_api_key,
            "steamid": self.settings.steam_user_id,
            "format": "json",
            **extra,
        }

    async def fetch_recent_games(self, client: httpx.AsyncClient) -> list[SteamGame]:
        data = await self.get_json(client, RECENTLY_PLAYED_URL, params=self._params())
        raw = (data.get("response") or {}).get("games") or []
        games = parse_items(SteamGame, raw, self.name)
        return [game for game in games if game.appid not in IGNORED_APP_IDS]

    async def fetch_achievements(
        self, client: httpx.AsyncClient, appid: int
    ) -> list[RemoteAchievement]:
        response = await client.get(
            PLAYER_ACHIEVEMENTS_URL, params=self._params(appid=appid, l="en")
        )
        # Games without stats answer 400 "Requested app has no stats"
        if response.status_code == 400:
            logger.debug("App %d has no achievements", appid)
            return []
        data = read_json(response)
        raw = (data.get("playerstats") or {}).get("achievements") or []
        return [a.to_remote() for a in parse_items(SteamAchievement, raw, self.name)]

    async def sync(
        self,
        db: AsyncSession,
        client: httpx.AsyncClient,
        credentials: Credentials | None,
    ) -> list[dict]:
        games = await self.fetch_recent_games(client)
        previous = self.previous_items(SteamGame)
        lookup = self.detector.index(previous or [])

        for game in self.detector.detect_new(previous, games):
            minutes = new_playtime(lookup.get(game.appid), game)
            if minutes <= 0:
                continue

            logger.info("Logging '%s' for %d minutes", game.name, minutes)
            session = await merge_or_create(
                db,
                game.name,
                minutes,
                self.interval_ms,
                device_id=self.device_id,
                url=STORE_URL.format(appid=game.appid),
            )

            remote = await self.fetch_achievements(client, game.appid)
            if not remote:
                continue
            local = await get_unlocked_state(db, session.game_id)
            unlocked = await self.reconciler.reconcile(str(game.appid), remote, local)
            await record_unlocked(db, session.game_id, session.id, unlocked)

        return [game.model_dump() for game in games]
