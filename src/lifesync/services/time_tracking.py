"""Time tracking - switch between category blocks."""

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.models.time_tracking import TimeTracking

CATEGORIES = {
    "STOP": "Stop Current",
    "TOILET": "Toilet",
    "COOKING": "Cooking/Eating",
    "WORK": "Work",
    "LEISURE": "Leisure",
    "PRODUCTIVE": "Productive",
    "DISTRACTION": "Distraction",
    "SOCIAL": "Social",
    "HYGIENE": "Hygiene",
    "HOUSEWORK": "Housework",
    "EXERCISE": "Exercise",
    "TRAVEL": "Travel",
    "MEETING": "Meeting",
    "SLEEP": "Sleep",
    "NAP": "Nap",
}


def is_stop_category(category: str) -> bool:
    return category.strip().lower().startswith("stop")


async def get_open_block(db: AsyncSession) -> TimeTracking | None:
    """Return the most recent block without an end time, if any."""
    stmt = (
        select(TimeTracking)
        .where(TimeTracking.ended_at.is_(None))
        .order_by(TimeTracking.created_at.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def switch_category(
    db: AsyncSession,
    category: str,
    *,
    device_id: str,
    started_at: datetime | None = None,
    ended_at: datetime | None = None,
) -> TimeTracking | None:
    """Close the open block and start ``category``.

    A stop category only closes the open block. A block submitted with its
    own end time is a complete record and leaves the open block untouched.
    Returns the new block, or None for a stop.
    """
    started_at = started_at or datetime.now(timezone.utc)

    open_block = await get_open_block(db)
    if open_block is not None and ended_at is None:
        open_block.ended_at = started_at

    if is_stop_category(category):
        await db.flush()
        return None

    block = TimeTracking(
        category=category,
        created_at=started_at,
        ended_at=ended_at,
        device_id=device_id,
    )
    db.add(block)
    await db.flush()
    return block
