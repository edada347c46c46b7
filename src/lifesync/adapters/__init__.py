"""Polling adapters, one per remote source."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from lifesync.adapters.base import PollingAdapter
from lifesync.adapters.bluesky import BlueskyAdapter
from lifesync.adapters.letterboxd import LetterboxdAdapter
from lifesync.adapters.psn import PsnAdapter
from lifesync.adapters.retroachievements import RetroAchievementsAdapter
from lifesync.adapters.steam import SteamAdapter
from lifesync.adapters.youtube import YouTubeAdapter
from lifesync.config import Settings

ADAPTER_CLASSES: tuple[type[PollingAdapter], ...] = (
    SteamAdapter,
    PsnAdapter,
    RetroAchievementsAdapter,
    YouTubeAdapter,
    LetterboxdAdapter,
    BlueskyAdapter,
)


def build_adapters(
    settings: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> list[PollingAdapter]:
    """Instantiate every adapter. Unconfigured ones report an interval of 0."""
    return [cls(settings, session_factory) for cls in ADAPTER_CLASSES]


__all__ = [
    "ADAPTER_CLASSES",
    "BlueskyAdapter",
    "LetterboxdAdapter",
    "PollingAdapter",
    "PsnAdapter",
    "RetroAchievementsAdapter",
    "SteamAdapter",
    "YouTubeAdapter",
    "build_adapters",
]
