"""Pydantic v2 schemas for the internal automation API."""

from typing import Any

from pydantic import BaseModel


class JobInfo(BaseModel):
    """One registered job; run history is present only while the scheduler runs."""

    name: str
    cron: str
    next_run_at: str | None = None
    last_run_at: str | None = None
    last_result: Any = None
    run_count: int | None = None
    failure_count: int | None = None


class JobListResponse(BaseModel):
    ok: bool = True
    scheduler_running: bool
    timezone: str
    jobs: list[JobInfo]


class JobRunResponse(BaseModel):
    """Outcome summary of a manual job run."""

    ok: bool = True
    job: str
    results: dict[str, Any]
