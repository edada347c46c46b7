"""Admin endpoints for the polling jobs."""

from fastapi import APIRouter, Depends, HTTPException, status

from lifesync.dependencies import get_scheduler, verify_admin_key
from lifesync.schemas.jobs import JobResponse, JobTriggerResponse
from lifesync.services.scheduler import PollScheduler, ScheduledJob

router = APIRouter(
    prefix="/v1/admin", tags=["admin"], dependencies=[Depends(verify_admin_key)]
)


def _job_to_response(job: ScheduledJob) -> JobResponse:
    return JobResponse(
        name=job.name,
        interval_secs=job.interval_ms // 1000,
        running=job.running,
        runs=job.runs,
        failures=job.failures,
        skipped=job.skipped,
        last_error=job.last_error,
        last_run_at=job.last_run_at,
    )


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/jobs", response_model=list[JobResponse])
async def list_jobs(
    scheduler: PollScheduler = Depends(get_scheduler),
) -> list[JobResponse]:
    """List scheduled jobs with their run counters."""
    return [_job_to_response(job) for job in scheduler.jobs]


@router.post(
    "/jobs/{name}/run",
    response_model=JobTriggerResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def run_job(
    name: str,
    scheduler: PollScheduler = Depends(get_scheduler),
) -> JobTriggerResponse:
    """Start a run of a job now. A run already in flight is not duplicated."""
    try:
        task = scheduler.trigger(name)
    except KeyError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Job '{name}' is not scheduled",
        )
    return JobTriggerResponse(name=name, started=task is not None)
