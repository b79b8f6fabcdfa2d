"""In-process cron scheduler on asyncio.

Each registered job gets its own loop that sleeps until the next matching
minute in the configured timezone and then launches the job as a separate
task without awaiting it. Cron fields match wall-clock time, but sleeps are
measured between UTC instants. Every wall-clock slot fires at most once: an
ambiguous time (DST fall-back) fires at its first occurrence, a skipped time
(DST spring-forward) fires right after the gap.

A failing run is logged and counted; it never stops its own loop or any
other job's. Runs are not serialized, so a slow run may overlap with the
next tick of the same job.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone as dt_timezone
from typing import Any, Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from bizabode_automation.services.cron_expression import CronExpression

logger = logging.getLogger(__name__)

JobFn = Callable[[], Awaitable[Any]]


def _utc(value: datetime) -> datetime:
    return value.astimezone(dt_timezone.utc)


@dataclass
class ScheduledJob:
    """Registration handle for one job, with its run history."""

    name: str
    cron: CronExpression
    fn: JobFn
    next_run_at: Optional[datetime] = None
    last_run_at: Optional[datetime] = None
    last_result: Any = None
    run_count: int = 0
    failure_count: int = 0
    _loop_task: Optional[asyncio.Task] = field(default=None, repr=False)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "cron": str(self.cron),
            "next_run_at": self.next_run_at.isoformat() if self.next_run_at else None,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_result": self.last_result,
            "run_count": self.run_count,
            "failure_count": self.failure_count,
        }


class Scheduler:
    def __init__(
        self,
        timezone: str = "UTC",
        clock: Callable[[ZoneInfo], datetime] | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ):
        self.tz = ZoneInfo(timezone)
        self._clock = clock or (lambda tz: datetime.now(tz))
        self._sleep = sleep or asyncio.sleep
        self.jobs: dict[str, ScheduledJob] = {}
        self._in_flight: set[asyncio.Task] = set()
        self._running = False

    def now(self) -> datetime:
        return self._clock(self.tz)

    def schedule(self, name: str, cron_expression: str, fn: JobFn) -> ScheduledJob:
        """Register ``fn`` under ``name``. Raises CronParseError for a bad expression."""
        if name in self.jobs:
            raise ValueError(f"Job already scheduled: {name}")
        job = ScheduledJob(name=name, cron=CronExpression.parse(cron_expression), fn=fn)
        self.jobs[name] = job
        if self._running:
            self._start_loop(job)
        logger.info("Scheduled job %s (%s, %s)", name, cron_expression, self.tz.key)
        return job

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        for job in self.jobs.values():
            self._start_loop(job)
        logger.info("Scheduler started with %d jobs", len(self.jobs))

    async def stop_all(self) -> None:
        """Cancel every job loop and any run still in flight."""
        self._running = False
        tasks = [job._loop_task for job in self.jobs.values() if job._loop_task] + list(self._in_flight)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        for job in self.jobs.values():
            job._loop_task = None
            job.next_run_at = None
        self._in_flight.clear()
        logger.info("Scheduler stopped")

    def _start_loop(self, job: ScheduledJob) -> None:
        job._loop_task = asyncio.create_task(self._job_loop(job), name=f"cron:{job.name}")

    def next_slot(self, job: ScheduledJob, after: datetime, last_fired: datetime | None = None) -> datetime:
        """Next fire instant of ``job`` after the wall time ``after``, in the scheduler's zone.

        The matching wall time is resolved through UTC, which moves a skipped
        time past the gap. Instants at or before ``after`` or ``last_fired``
        are passed over.
        """
        floor = _utc(after) if last_fired is None else max(_utc(after), _utc(last_fired))
        candidate = after.astimezone(self.tz)
        while True:
            candidate = job.cron.next_after(candidate)
            slot = _utc(candidate).astimezone(self.tz)
            if _utc(slot) > floor:
                return slot

    async def _job_loop(self, job: ScheduledJob) -> None:
        last_fired = None
        while self._running:
            job.next_run_at = self.next_slot(job, self.now(), last_fired)
            # Re-check after waking: timers can fire early and clocks can step back
            while True:
                delay = (_utc(job.next_run_at) - _utc(self.now())).total_seconds()
                if delay <= 0:
                    break
                await self._sleep(delay)
            last_fired = job.next_run_at
            self.fire(job)

    def fire(self, job: ScheduledJob) -> asyncio.Task:
        """Launch one run of ``job`` without waiting for it."""
        task = asyncio.create_task(self._run(job), name=f"run:{job.name}")
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return task

    async def run_now(self, name: str) -> Any:
        """Run a registered job immediately and return its result."""
        return await self._run(self.jobs[name])

    async def _run(self, job: ScheduledJob) -> Any:
        job.last_run_at = self.now()
        job.run_count += 1
        logger.info("Running job %s", job.name)
        try:
            result = await job.fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            job.failure_count += 1
            job.last_result = {"success": False, "error": str(e)}
            logger.exception("Job %s failed", job.name)
            return job.last_result

        job.last_result = result
        if isinstance(result, dict) and result.get("success") is False:
            job.failure_count += 1
            logger.error("Job %s reported failure: %s", job.name, result.get("error"))
        return result
