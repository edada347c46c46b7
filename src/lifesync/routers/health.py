"""Health check endpoint."""

from fastapi import APIRouter, Depends

from lifesync import __version__
from lifesync.dependencies import get_scheduler
from lifesync.services.scheduler import PollScheduler

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(scheduler: PollScheduler = Depends(get_scheduler)) -> dict:
    """Return API health status, version and scheduled polling jobs."""
    return {
        "status": "ok",
        "version": __version__,
        "jobs": [job.name for job in scheduler.jobs],
    }
