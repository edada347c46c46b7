"""Schemas for scheduled polling jobs."""

from datetime import datetime

from pydantic import BaseModel


class JobResponse(BaseModel):
    """State of one scheduled job."""

    name: str
    interval_secs: int
    running: bool
    runs: int
    failures: int
    skipped: int
    last_error: str | None
    last_run_at: datetime | None


class JobTriggerResponse(BaseModel):
    name: str
    started: bool
