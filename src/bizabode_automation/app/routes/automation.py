"""Internal automation endpoints: list scheduled jobs, run one on demand."""
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.app.config import get_settings
from bizabode_automation.domain.schemas import JobListResponse, JobRunResponse
from bizabode_automation.infra.database import get_db
from bizabode_automation.services.jobs import JOBS, UnknownJobError, run_job

logger = logging.getLogger(__name__)


async def verify_internal_token(x_internal_token: str = Header(...)):
    """Verify that the request includes a valid internal auth token."""
    settings = get_settings()
    if x_internal_token != settings.internal_token:
        raise HTTPException(status_code=401, detail="Invalid internal token")


router = APIRouter(
    prefix="/api/internal/automation",
    tags=["automation"],
    dependencies=[Depends(verify_internal_token)],
)


@router.get("/jobs", response_model=JobListResponse, response_model_exclude_unset=True)
async def list_jobs(request: Request):
    """Registered jobs with their cron and, when the scheduler runs, their history."""
    scheduler = getattr(request.app.state, "scheduler", None)
    settings = get_settings()
    crons = settings.job_crons

    jobs = []
    for name in JOBS:
        if scheduler is not None and name in scheduler.jobs:
            jobs.append(scheduler.jobs[name].to_dict())
        else:
            jobs.append({"name": name, "cron": crons[name]})
    return {
        "ok": True,
        "scheduler_running": scheduler is not None,
        "timezone": settings.cron_timezone,
        "jobs": jobs,
    }


@router.post("/jobs/{name}/run", response_model=JobRunResponse)
async def run_job_now(name: str, db: AsyncSession = Depends(get_db)):
    """Run one job to completion and return its outcome summary."""
    try:
        results = await run_job(name, db=db)
    except UnknownJobError:
        raise HTTPException(status_code=404, detail=f"Unknown job: {name}")

    logger.info("Manual run of %s: %s", name, results)
    return {"ok": True, "job": name, "results": results}
