"""Public read-only activity listings.

Responses are served through the page cache middleware.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.dependencies import get_db
from lifesync.models.game import Game, GameAchievement, GameSession
from lifesync.models.time_tracking import TimeTracking
from lifesync.schemas.activity import (
    AchievementResponse,
    GameSessionResponse,
    TimeTrackingResponse,
)

router = APIRouter(prefix="/v1/activity", tags=["activity"])


@router.get("/games", response_model=list[GameSessionResponse])
async def list_game_sessions(
    limit: int = Query(default=20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> list[GameSessionResponse]:
    """List the most recently active play sessions with their achievements."""
    stmt = (
        select(GameSession, Game)
        .join(Game, GameSession.game_id == Game.id)
        .order_by(GameSession.updated_at.desc())
        .limit(limit)
    )
    rows = (await db.execute(stmt)).all()

    session_ids = [session.id for session, _ in rows]
    achievements: dict[str, list[AchievementResponse]] = {}
    if session_ids:
        ach_stmt = (
            select(GameAchievement)
            .where(GameAchievement.session_id.in_(session_ids))
            .order_by(GameAchievement.unlocked_at)
        )
        for achievement in (await db.execute(ach_stmt)).scalars().all():
            achievements.setdefault(achievement.session_id, []).append(
                AchievementResponse.model_validate(achievement)
            )

    return [
        GameSessionResponse(
            id=session.id,
            game_id=game.id,
            game_name=game.name,
            game_url=game.url,
            playtime_mins=session.playtime_mins,
            device_id=session.device_id,
            created_at=session.created_at,
            updated_at=session.updated_at,
            achievements=achievements.get(session.id, []),
        )
        for session, game in rows
    ]


@router.get("/achievements", response_model=list[AchievementResponse])
async def list_achievements(
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> list[AchievementResponse]:
    """List recently unlocked achievements, newest first."""
    stmt = (
        select(GameAchievement)
        .where(GameAchievement.unlocked_at.isnot(None))
        .order_by(GameAchievement.unlocked_at.desc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [AchievementResponse.model_validate(a) for a in result.scalars().all()]


@router.get("/timetracking", response_model=list[TimeTrackingResponse])
async def list_time_tracking(
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> list[TimeTrackingResponse]:
    """List time-tracking blocks, newest first."""
    stmt = select(TimeTracking).order_by(TimeTracking.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return [TimeTrackingResponse.model_validate(t) for t in result.scalars().all()]
