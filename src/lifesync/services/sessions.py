"""Session merging - extend an open play session or start a new one.

A poll only tells us "this game was played for N minutes recently". Rows
are merged into the latest session for the game while observations keep
arriving within one poll interval (plus the observed duration and a minute
of slack); after a longer gap a new, disjoint session is started.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.models.game import Game, GameSession

logger = logging.getLogger(__name__)

MINUTE_MS = 60_000
SESSION_SLACK_MS = MINUTE_MS


def floor_minutes(duration_ms: float) -> int:
    """Whole minutes in a millisecond duration (sub-minute remainder dropped)."""
    return max(int(duration_ms // MINUTE_MS), 0)


async def select_or_insert_game(
    db: AsyncSession, name: str, url: str | None = None
) -> Game:
    """Return the game with this name, creating it if needed."""
    result = await db.execute(select(Game).where(Game.name == name))
    game = result.scalar_one_or_none()
    if game is not None:
        if url and not game.url:
            game.url = url
        return game

    game = Game(name=name, url=url)
    db.add(game)
    await db.flush()
    logger.info("New game '%s' added", name)
    return game


async def get_most_recent_session(
    db: AsyncSession, game_id: int
) -> GameSession | None:
    stmt = (
        select(GameSession)
        .where(GameSession.game_id == game_id)
        .order_by(GameSession.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


def is_continuation(
    updated_at: datetime,
    now: datetime,
    poll_interval_ms: int,
    observed_duration_mins: int,
) -> bool:
    """True if an observation at ``now`` continues a session last updated at ``updated_at``."""
    stale_cutoff = now - timedelta(
        milliseconds=poll_interval_ms + observed_duration_mins * MINUTE_MS + SESSION_SLACK_MS
    )
    return updated_at >= stale_cutoff


async def merge_or_create(
    db: AsyncSession,
    subject_key: str,
    observed_duration_mins: int,
    poll_interval_ms: int,
    *,
    device_id: str,
    url: str | None = None,
    now: datetime | None = None,
) -> GameSession:
    """Record ``observed_duration_mins`` of play for ``subject_key``.

    Extends the most recent session when it is still open, otherwise inserts
    a new session that started ``observed_duration_mins`` ago.
    """
    now = now or datetime.now(timezone.utc)
    observed = max(int(observed_duration_mins), 0)
    game = await select_or_insert_game(db, subject_key, url)
    latest = await get_most_recent_session(db, game.id)

    if latest is not None and is_continuation(
        latest.updated_at, now, poll_interval_ms, observed
    ):
        latest.playtime_mins += observed
        latest.updated_at = now
        await db.flush()
        logger.debug(
            "Extended session %s for '%s' to %d minutes",
            latest.id,
            subject_key,
            latest.playtime_mins,
        )
        return latest

    session = GameSession(
        game_id=game.id,
        playtime_mins=observed,
        device_id=device_id,
        created_at=now - timedelta(minutes=observed),
        updated_at=now,
    )
    db.add(session)
    await db.flush()
    logger.info("Started new session for '%s' (%d minutes)", subject_key, observed)
    return session
