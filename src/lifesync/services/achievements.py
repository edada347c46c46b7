"""Achievement reconciliation - detect newly unlocked achievements.

Reconciliation runs in two phases:

1. A DeltaDetector over the ``earned`` flag finds achievements that flipped
   to earned since the locally stored state.
2. Only for those, human-readable metadata (name/description) is taken from
   the remote record, the adapter's metadata cache, or - once per namespace
   and only when something is missing - a second remote call. Failing that
   second call never drops an unlock; a fallback name is used instead.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.exceptions import AuthenticationError, RemoteFetchError
from lifesync.models.game import GameAchievement
from lifesync.services.delta import DeltaDetector

logger = logging.getLogger(__name__)


class RemoteAchievement(BaseModel):
    """Minimal achievement shape every adapter maps its API response onto."""

    key: str
    earned: bool = False
    unlocked_at: datetime | None = None
    name: str | None = None
    description: str | None = None


class AchievementMetadata(BaseModel):
    name: str
    description: str | None = None


@dataclass
class NewlyUnlocked:
    key: str
    name: str
    description: str | None
    unlocked_at: datetime | None


MetadataResolver = Callable[[], Awaitable[Mapping[str, AchievementMetadata]]]

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _flipped_to_earned(
    previous: RemoteAchievement | None, current: RemoteAchievement
) -> bool:
    return current.earned and not (previous is not None and previous.earned)


class AchievementReconciler:
    """Reconcile remote achievement lists against local unlock state.

    ``metadata_cache`` maps namespace -> achievement key -> metadata dict. It
    is normally a dict inside the adapter's snapshot so resolved names
    survive restarts.
    """

    def __init__(self, metadata_cache: dict[str, dict[str, dict]] | None = None) -> None:
        self.metadata_cache = metadata_cache if metadata_cache is not None else {}
        self.detector: DeltaDetector[RemoteAchievement, str] = DeltaDetector(
            identity=lambda achievement: achievement.key,
            is_newly_true=_flipped_to_earned,
            order_key=lambda achievement: achievement.unlocked_at or _EPOCH,
        )

    def cached(self, namespace: str, key: str) -> AchievementMetadata | None:
        entry = self.metadata_cache.get(namespace, {}).get(key)
        if entry is None:
            return None
        return AchievementMetadata.model_validate(entry)

    def remember(self, namespace: str, key: str, metadata: AchievementMetadata) -> None:
        self.metadata_cache.setdefault(namespace, {})[key] = metadata.model_dump()

    async def reconcile(
        self,
        namespace: str,
        remote: Sequence[RemoteAchievement],
        local_unlocked: Mapping[str, bool],
        *,
        resolve_metadata: MetadataResolver | None = None,
        first_poll: bool = False,
    ) -> list[NewlyUnlocked]:
        """Return the achievements unlocked since ``local_unlocked``, oldest first."""
        previous = [
            RemoteAchievement(key=key, earned=earned)
            for key, earned in local_unlocked.items()
        ]
        flipped = self.detector.detect_new(previous, remote, first_poll=first_poll)
        if not flipped:
            return []

        for achievement in flipped:
            if achievement.name:
                self.remember(
                    namespace,
                    achievement.key,
                    AchievementMetadata(
                        name=achievement.name, description=achievement.description
                    ),
                )

        missing = [a.key for a in flipped if self.cached(namespace, a.key) is None]
        if missing and resolve_metadata is not None:
            logger.debug(
                "Resolving metadata for %d achievements in %s", len(missing), namespace
            )
            try:
                resolved = await resolve_metadata()
            except (httpx.HTTPError, RemoteFetchError, AuthenticationError) as exc:
                logger.warning(
                    "Could not resolve achievement metadata for %s: %s", namespace, exc
                )
            else:
                for key, metadata in resolved.items():
                    self.remember(namespace, key, metadata)

        unlocked = []
        for achievement in flipped:
            metadata = self.cached(namespace, achievement.key)
            if metadata is None:
                metadata = AchievementMetadata(
                    name=f"{namespace} - {achievement.key}", description=""
                )
            unlocked.append(
                NewlyUnlocked(
                    key=achievement.key,
                    name=metadata.name,
                    description=metadata.description,
                    unlocked_at=achievement.unlocked_at,
                )
            )
        return unlocked


async def get_unlocked_state(db: AsyncSession, game_id: int) -> dict[str, bool]:
    """Return ``{external_key: True}`` for every achievement unlocked locally."""
    stmt = (
        select(GameAchievement.external_key)
        .where(GameAchievement.game_id == game_id)
        .where(GameAchievement.unlocked_at.isnot(None))
    )
    result = await db.execute(stmt)
    return {key: True for key in result.scalars().all()}


async def record_unlocked(
    db: AsyncSession,
    game_id: int,
    session_id: str | None,
    unlocked: Sequence[NewlyUnlocked],
    now: datetime | None = None,
) -> int:
    """Insert or update achievement rows for newly unlocked achievements."""
    if not unlocked:
        return 0

    now = now or datetime.now(timezone.utc)
    stmt = select(GameAchievement).where(GameAchievement.game_id == game_id)
    result = await db.execute(stmt)
    existing = {row.external_key: row for row in result.scalars().all()}

    count = 0
    for achievement in unlocked:
        row = existing.get(achievement.key)
        if row is None:
            row = GameAchievement(
                game_id=game_id,
                external_key=achievement.key,
                name=achievement.name,
                description=achievement.description,
                session_id=session_id,
                unlocked_at=achievement.unlocked_at or now,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            existing[achievement.key] = row
        elif row.unlocked_at is None:
            row.session_id = session_id
            row.unlocked_at = achievement.unlocked_at or now
            row.updated_at = now
        else:
            continue
        count += 1
        logger.info("Unlocked '%s'", achievement.name)

    await db.flush()
    return count
