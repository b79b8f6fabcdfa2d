"""Daily license expiry warning for companies whose license lapses within 30 days."""

import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.domain.enums import NotificationType, Priority
from bizabode_automation.domain.models import Company
from bizabode_automation.services.notification_service import NotificationService, Recipient, company_managers
from bizabode_automation.services.timeutils import days_until, start_of_day, utcnow

logger = logging.getLogger(__name__)

WARNING_WINDOW = timedelta(days=30)

URGENCY_PRIORITY = {
    "critical": Priority.URGENT.value,
    "high": Priority.HIGH.value,
    "medium": Priority.MEDIUM.value,
    "low": Priority.LOW.value,
}


def urgency_level(days_until_expiry: int) -> str:
    if days_until_expiry <= 7:
        return "critical"
    if days_until_expiry <= 14:
        return "high"
    if days_until_expiry <= 21:
        return "medium"
    return "low"


async def check_licenses(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    now = now or utcnow()
    notifier = notifier or NotificationService(db)
    today = start_of_day(now)

    result = await db.execute(
        select(
            Company.id,
            Company.name,
            Company.license_key,
            Company.license_plan,
            Company.license_expiry,
        ).where(
            Company.license_expiry >= today,
            Company.license_expiry <= today + WARNING_WINDOW,
        )
    )
    companies = result.all()
    if not companies:
        logger.info("No expiring licenses found")
        return {"success": True, "expiring_licenses": 0, "notifications_sent": 0}

    sent = 0
    for company in companies:
        managers = await company_managers(db, company.id)
        if not managers:
            continue

        days = days_until(company.license_expiry, today)
        urgency = urgency_level(days)
        plural = "s" if days != 1 else ""
        payload = {
            "company_name": company.name,
            "license_plan": company.license_plan,
            "license_key": company.license_key,
            "expiry_date": company.license_expiry.date().isoformat(),
            "days_until_expiry": days,
            "urgency": urgency,
        }

        for manager in managers:
            try:
                await notifier.send_notification(
                    user_id=manager.id,
                    company_id=company.id,
                    title=f"License Expiry Alert - {company.name}",
                    message=f"Your {company.license_plan} license expires in {days} day{plural}",
                    type=NotificationType.LICENSE_EXPIRY.value,
                    priority=URGENCY_PRIORITY[urgency],
                    data=payload,
                    send_email=True,
                    recipient=Recipient(email=manager.email, name=manager.name or ""),
                )
                await db.commit()
                sent += 1
                logger.info("License expiry warning sent to %s (%d days)", manager.email, days)
            except Exception:
                await db.rollback()
                logger.exception("Failed to send license expiry warning to %s", manager.email)

    logger.info("License check completed. Warnings sent for %d companies.", len(companies))
    return {"success": True, "expiring_licenses": len(companies), "notifications_sent": sent}
