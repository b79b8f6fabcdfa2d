"""FastAPI application entry point for the Bizabode automation service."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from bizabode_automation.app.config import get_settings
from bizabode_automation.infra.database import init_db
from bizabode_automation.services.jobs import build_scheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize the database and run the job scheduler for the app's lifetime."""
    await init_db()

    settings = get_settings()
    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler(settings)
        scheduler.start()
    else:
        logger.warning("Scheduler disabled; jobs run only via the internal endpoint")
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        await scheduler.stop_all()


settings = get_settings()

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.debug else logging.WARNING,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)

app = FastAPI(
    title="Bizabode Automation API",
    lifespan=lifespan,
    debug=settings.debug,
)

# ---------------------------------------------------------------------------
# Route includes
# ---------------------------------------------------------------------------
from bizabode_automation.app.routes.automation import router as automation_router  # noqa: E402

app.include_router(automation_router)


@app.get("/health", tags=["health"])
async def health_check():
    """Return service health status."""
    return {"status": "ok", "service": "bizabode-automation"}


def run() -> None:
    """Run the application with uvicorn (used by project.scripts entry point)."""
    uvicorn.run(
        "bizabode_automation.app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )


if __name__ == "__main__":
    run()
