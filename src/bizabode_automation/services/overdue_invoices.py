"""Daily overdue invoice check.

Per company with invoices past due (status sent/overdue, due before today):

1. Email each admin/manager a summary with the total outstanding
2. Escalate invoices 30+ days overdue with an Urgent follow-up task and an
   activity log entry (once per open task)
3. Move invoices 7+ days overdue from ``sent`` to ``overdue``
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.domain.enums import (
    ActivityStatus,
    ActivityType,
    AutomationKind,
    InvoiceStatus,
    NotificationType,
    Priority,
    RelatedTo,
    TaskStatus,
    TaskType,
)
from bizabode_automation.domain.models import Activity, Company, Invoice, Task
from bizabode_automation.services.idempotence import already_handled
from bizabode_automation.services.notification_service import NotificationService, Recipient, company_managers
from bizabode_automation.services.timeutils import start_of_day, utcnow, whole_days_between

logger = logging.getLogger(__name__)

ESCALATE_AFTER_DAYS = 30
MARK_OVERDUE_AFTER_DAYS = 7


def escalation_tier(days_overdue: int) -> str:
    if days_overdue >= 30:
        return "critical"
    if days_overdue >= 14:
        return "high"
    if days_overdue >= 7:
        return "medium"
    return "low"


async def _escalate_invoice(db: AsyncSession, row, days_overdue: int, now: datetime, owner_id: str | None) -> bool:
    """Create the Urgent collection task and activity for one invoice.

    Returns False when an open escalation task already exists.
    """
    if await already_handled(db, RelatedTo.INVOICE, row.id, AutomationKind.OVERDUE_INVOICE):
        return False

    assignee = row.created_by or owner_id
    db.add(
        Task(
            id=str(uuid.uuid4()),
            company_id=row.company_id,
            title=f"URGENT: Invoice {row.invoice_number} is {days_overdue} days overdue",
            description=(
                f"Invoice {row.invoice_number} for {row.customer_name or 'customer'} "
                f"(${row.total:,.2f}) is {days_overdue} days past due. Contact the customer "
                "to collect payment."
            ),
            type=TaskType.FOLLOW_UP.value,
            related_to=RelatedTo.INVOICE.value,
            related_id=row.id,
            assigned_to=assignee,
            created_by=assignee,
            due_date=now + timedelta(days=1),
            priority=Priority.URGENT.value,
            status=TaskStatus.PENDING.value,
            notes="Auto-generated by overdue invoice escalation",
            automation_kind=AutomationKind.OVERDUE_INVOICE.value,
        )
    )
    db.add(
        Activity(
            id=str(uuid.uuid4()),
            company_id=row.company_id,
            type=ActivityType.NOTE.value,
            subject=f"Invoice {row.invoice_number} escalated",
            description=f"Invoice escalated after {days_overdue} days overdue",
            assigned_to=assignee,
            status=ActivityStatus.COMPLETED.value,
            completed_date=now,
            related_invoice_id=row.id,
            related_customer_id=row.customer_id,
        )
    )
    return True


async def check_overdue_invoices(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    now = now or utcnow()
    notifier = notifier or NotificationService(db)
    today = start_of_day(now)

    result = await db.execute(
        select(
            Invoice.id,
            Invoice.company_id,
            Invoice.invoice_number,
            Invoice.customer_id,
            Invoice.customer_name,
            Invoice.status,
            Invoice.due_date,
            Invoice.total,
            Invoice.created_by,
            Company.name.label("company_name"),
        )
        .join(Company, Company.id == Invoice.company_id)
        .where(
            Invoice.status.in_((InvoiceStatus.SENT.value, InvoiceStatus.OVERDUE.value)),
            Invoice.due_date < today,
        )
        .order_by(Invoice.company_id, Invoice.due_date)
    )
    rows = result.all()
    if not rows:
        logger.info("No overdue invoices found")
        return {
            "success": True,
            "overdue_invoices": 0,
            "companies_alerted": 0,
            "notifications_sent": 0,
            "tasks_created": 0,
            "invoices_marked_overdue": 0,
        }

    by_company: dict[str, list] = defaultdict(list)
    for row in rows:
        by_company[row.company_id].append(row)

    companies_alerted = 0
    sent = 0
    tasks_created = 0
    marked = 0

    for company_id, invoices in by_company.items():
        managers = await company_managers(db, company_id)
        company_name = invoices[0].company_name
        days = {inv.id: whole_days_between(inv.due_date, today) for inv in invoices}
        total_overdue = sum(inv.total for inv in invoices)

        if managers:
            payload = {
                "company_name": company_name,
                "total_overdue": round(total_overdue, 2),
                "invoices": [
                    {
                        "invoice_id": inv.id,
                        "invoice_number": inv.invoice_number,
                        "customer_name": inv.customer_name,
                        "total": inv.total,
                        "days_overdue": days[inv.id],
                        "tier": escalation_tier(days[inv.id]),
                    }
                    for inv in invoices
                ],
            }
            for manager in managers:
                try:
                    await notifier.send_notification(
                        user_id=manager.id,
                        company_id=company_id,
                        title=f"Overdue Invoices - {company_name}",
                        message=f"{len(invoices)} overdue invoices totalling ${total_overdue:,.2f}",
                        type=NotificationType.OVERDUE_INVOICES.value,
                        priority=Priority.HIGH.value,
                        data=payload,
                        send_email=True,
                        recipient=Recipient(email=manager.email, name=manager.name or ""),
                    )
                    await db.commit()
                    sent += 1
                except Exception:
                    await db.rollback()
                    logger.exception("Failed to send overdue invoice alert to %s", manager.email)
            companies_alerted += 1

        owner_id = managers[0].id if managers else None
        for inv in invoices:
            if days[inv.id] < ESCALATE_AFTER_DAYS:
                continue
            try:
                if await _escalate_invoice(db, inv, days[inv.id], now, owner_id):
                    await db.commit()
                    tasks_created += 1
                    logger.info("Escalated invoice %s (%d days overdue)", inv.invoice_number, days[inv.id])
            except Exception:
                await db.rollback()
                logger.exception("Failed to escalate invoice %s", inv.id)

        stale_ids = [inv.id for inv in invoices if days[inv.id] >= MARK_OVERDUE_AFTER_DAYS]
        if stale_ids:
            try:
                # sent -> overdue only; already-overdue rows are untouched
                updated = await db.execute(
                    update(Invoice)
                    .where(Invoice.id.in_(stale_ids), Invoice.status == InvoiceStatus.SENT.value)
                    .values(status=InvoiceStatus.OVERDUE.value)
                )
                await db.commit()
                marked += updated.rowcount or 0
            except Exception:
                await db.rollback()
                logger.exception("Failed to mark invoices overdue for company %s", company_id)

    logger.info(
        "Overdue invoice check completed. Alerts sent for %d companies, %d escalations, %d marked overdue.",
        companies_alerted, tasks_created, marked,
    )
    return {
        "success": True,
        "overdue_invoices": len(rows),
        "companies_alerted": companies_alerted,
        "notifications_sent": sent,
        "tasks_created": tasks_created,
        "invoices_marked_overdue": marked,
    }
