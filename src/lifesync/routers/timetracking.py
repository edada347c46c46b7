"""Time-tracking category switches (admin only)."""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from lifesync.config import Settings
from lifesync.dependencies import (
    get_app_settings,
    get_db,
    get_page_cache,
    verify_admin_key,
)
from lifesync.schemas.activity import (
    TimeTrackingCreate,
    TimeTrackingResponse,
    TimeTrackingSwitchResponse,
)
from lifesync.services.page_cache import PageCache
from lifesync.services.time_tracking import switch_category

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/timetracking", tags=["timetracking"])

LISTING_PATH = "/v1/activity/timetracking"


@router.post(
    "",
    response_model=TimeTrackingSwitchResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(verify_admin_key)],
)
async def create_time_tracking(
    body: TimeTrackingCreate,
    db: AsyncSession = Depends(get_db),
    cache: PageCache = Depends(get_page_cache),
    settings: Settings = Depends(get_app_settings),
) -> TimeTrackingSwitchResponse:
    """Close the open block and start a new one in ``category``."""
    if body.ended_at is not None and body.started_at is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="started_at is required when ended_at is given",
        )
    if body.ended_at is not None and body.ended_at < body.started_at:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="ended_at must not be before started_at",
        )

    block = await switch_category(
        db,
        body.category,
        device_id=settings.device_id_for(body.device_id),
        started_at=body.started_at,
        ended_at=body.ended_at,
    )
    await db.commit()
    cache.invalidate_prefix(LISTING_PATH)

    if block is None:
        logger.info("Stopped current time tracking")
        return TimeTrackingSwitchResponse(block=None, stopped=True)
    logger.info("Tracking time for '%s'", block.category)
    return TimeTrackingSwitchResponse(
        block=TimeTrackingResponse.model_validate(block), stopped=False
    )
