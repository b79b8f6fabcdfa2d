"""Daily low-stock alert: one emailed notification per admin/manager per company."""

import logging
from collections import defaultdict
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.domain.enums import NotificationType, Priority
from bizabode_automation.domain.models import Company, Item
from bizabode_automation.services.notification_service import NotificationService, Recipient, company_managers

logger = logging.getLogger(__name__)


async def check_low_stock(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    """Alert managers of every company with active items at or below reorder level."""
    notifier = notifier or NotificationService(db)

    result = await db.execute(
        select(
            Item.id,
            Item.company_id,
            Item.name,
            Item.sku,
            Item.quantity,
            Item.reorder_level,
            Item.critical,
            Company.name.label("company_name"),
        )
        .join(Company, Company.id == Item.company_id)
        .where(
            Item.is_active == True,  # noqa: E712
            Item.quantity <= Item.reorder_level,
        )
        .order_by(Item.company_id, Item.quantity)
    )
    rows = result.all()
    if not rows:
        logger.info("No low stock items found")
        return {"success": True, "low_stock_items": 0, "companies_alerted": 0, "notifications_sent": 0}

    by_company: dict[str, list] = defaultdict(list)
    for row in rows:
        by_company[row.company_id].append(row)

    companies_alerted = 0
    sent = 0
    for company_id, items in by_company.items():
        managers = await company_managers(db, company_id)
        if not managers:
            logger.info("Company %s has low stock but no admins or managers", company_id)
            continue

        company_name = items[0].company_name
        payload = {
            "company_name": company_name,
            "items": [
                {"name": i.name, "sku": i.sku, "quantity": i.quantity, "reorder_level": i.reorder_level}
                for i in items
            ],
            "critical_items": [
                {"name": i.name, "sku": i.sku, "quantity": i.quantity, "reorder_level": i.reorder_level}
                for i in items
                if i.critical and i.quantity == 0
            ],
        }
        priority = Priority.URGENT.value if payload["critical_items"] else Priority.HIGH.value

        for manager in managers:
            try:
                await notifier.send_notification(
                    user_id=manager.id,
                    company_id=company_id,
                    title=f"Low Stock Alert - {company_name}",
                    message=f"{len(items)} items are at or below their reorder level",
                    type=NotificationType.LOW_STOCK.value,
                    priority=priority,
                    data=payload,
                    send_email=True,
                    recipient=Recipient(email=manager.email, name=manager.name or ""),
                )
                await db.commit()
                sent += 1
            except Exception:
                await db.rollback()
                logger.exception("Failed to send low stock alert to %s", manager.email)

        companies_alerted += 1

    logger.info("Low stock check completed. Alerts sent for %d companies.", companies_alerted)
    return {
        "success": True,
        "low_stock_items": len(rows),
        "companies_alerted": companies_alerted,
        "notifications_sent": sent,
    }
