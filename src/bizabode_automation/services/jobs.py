"""Job registry: name -> evaluator, run-once entry point, scheduler wiring."""

import logging
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.app.config import Settings, get_settings
from bizabode_automation.infra.database import async_session
from bizabode_automation.services.follow_up_reminders import check_follow_up_reminders
from bizabode_automation.services.inactive_clients import check_inactive_clients
from bizabode_automation.services.license_check import check_licenses
from bizabode_automation.services.low_stock import check_low_stock
from bizabode_automation.services.notification_service import NotificationService, run_notification_cleanup
from bizabode_automation.services.overdue_invoices import check_overdue_invoices
from bizabode_automation.services.scheduler import Scheduler
from bizabode_automation.services.workflow_automation import run_all_automations

logger = logging.getLogger(__name__)

Evaluator = Callable[..., Awaitable[dict]]

JOBS: dict[str, Evaluator] = {
    "follow-up-reminders": check_follow_up_reminders,
    "workflow-automation": run_all_automations,
    "inactive-clients": check_inactive_clients,
    "low-stock": check_low_stock,
    "overdue-invoices": check_overdue_invoices,
    "license-check": check_licenses,
    "notification-cleanup": run_notification_cleanup,
}


class UnknownJobError(KeyError):
    pass


async def run_job(name: str, db: AsyncSession | None = None) -> dict:
    """Run one evaluator to completion and return its outcome summary.

    Opens its own session unless one is given. Never raises for evaluator
    failures; they come back as ``{"success": False, "error": ...}``.
    """
    try:
        evaluator = JOBS[name]
    except KeyError:
        raise UnknownJobError(name) from None

    try:
        if db is not None:
            return await _evaluate(evaluator, db)
        async with async_session() as session:
            return await _evaluate(evaluator, session)
    except Exception as e:
        logger.exception("Error in %s job", name)
        return {"success": False, "error": str(e)}


async def _evaluate(evaluator: Evaluator, db: AsyncSession) -> dict:
    notifier = NotificationService(db)
    result = await evaluator(db, notifier=notifier)
    if notifier.emails_sent or notifier.emails_failed:
        result.setdefault("emails_sent", notifier.emails_sent)
        result.setdefault("emails_failed", notifier.emails_failed)
    return result


def _job_runner(name: str):
    async def _run() -> dict:
        return await run_job(name)

    return _run


def build_scheduler(settings: Settings | None = None) -> Scheduler:
    """Scheduler with every registered job on its configured cron."""
    settings = settings or get_settings()
    scheduler = Scheduler(timezone=settings.cron_timezone)
    crons = settings.job_crons
    for name in JOBS:
        scheduler.schedule(name, crons[name], _job_runner(name))
    return scheduler
