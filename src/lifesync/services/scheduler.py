"""Poll scheduler - run each adapter job on its own fixed interval."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[object]]


@dataclass
class ScheduledJob:
    name: str
    interval_ms: int
    job: Job
    runs: int = 0
    failures: int = 0
    skipped: int = 0
    last_error: str | None = None
    last_run_at: datetime | None = None
    ticker: asyncio.Task | None = field(default=None, repr=False)
    current: asyncio.Task | None = field(default=None, repr=False)

    @property
    def running(self) -> bool:
        return self.current is not None and not self.current.done()


class PollScheduler:
    """Fixed-rate timers, one per job, on the running event loop.

    A tick that finds the previous run of the same job still in flight is
    skipped rather than started alongside it. A failing run is logged and
    counted; it never cancels its own timer or any other job's.
    """

    def __init__(self) -> None:
        self._jobs: dict[str, ScheduledJob] = {}

    @property
    def jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    def get(self, name: str) -> ScheduledJob | None:
        return self._jobs.get(name)

    def schedule(self, name: str, interval_ms: int, job: Job) -> ScheduledJob | None:
        """Start calling ``job`` every ``interval_ms``. Zero disables the job."""
        if interval_ms <= 0:
            logger.warning("Polling for %s is disabled", name)
            return None
        if name in self._jobs:
            raise ValueError(f"Job '{name}' is already scheduled")

        entry = ScheduledJob(name=name, interval_ms=interval_ms, job=job)
        entry.ticker = asyncio.create_task(self._tick(entry), name=f"poll:{name}")
        self._jobs[name] = entry
        logger.info("Scheduled %s every %d seconds", name, interval_ms // 1000)
        return entry

    def trigger(self, name: str) -> asyncio.Task | None:
        """Start a run of ``name`` now. Returns None if a run is in flight.

        Raises KeyError for an unknown job.
        """
        return self._fire(self._jobs[name])

    async def stop(self) -> None:
        """Cancel every timer and in-flight run."""
        tasks = []
        for entry in self._jobs.values():
            for task in (entry.ticker, entry.current):
                if task is not None and not task.done():
                    task.cancel()
                    tasks.append(task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._jobs.clear()

    async def _tick(self, entry: ScheduledJob) -> None:
        while True:
            await asyncio.sleep(entry.interval_ms / 1000)
            self._fire(entry)

    def _fire(self, entry: ScheduledJob) -> asyncio.Task | None:
        if entry.running:
            entry.skipped += 1
            logger.warning("Previous %s run still in progress, skipping", entry.name)
            return None
        entry.current = asyncio.create_task(self._run(entry), name=f"run:{entry.name}")
        return entry.current

    async def _run(self, entry: ScheduledJob) -> None:
        entry.last_run_at = datetime.now(timezone.utc)
        try:
            await entry.job()
        except Exception as exc:
            entry.failures += 1
            entry.last_error = str(exc) or exc.__class__.__name__
            logger.exception("Job %s failed", entry.name)
        else:
            entry.runs += 1
            entry.last_error = None
