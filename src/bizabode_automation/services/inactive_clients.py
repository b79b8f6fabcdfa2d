"""Inactive client re-engagement job (daily).

Three independent tiers per active customer, each with its own task kind so a
customer can have all three open at once:

    stale_order    no order in 30+ days     Medium task due in 2 days
    stale_contact  no contact in 60+ days   High task due in 1 day
    high_risk      no contact in 90+ days   Urgent task due in 4 hours

Followed by a customer-health digest to admins and managers.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.app.config import get_settings
from bizabode_automation.domain.enums import (
    MANAGER_ROLES,
    AutomationKind,
    CustomerStatus,
    NotificationType,
    Priority,
    RelatedTo,
    TaskStatus,
    TaskType,
)
from bizabode_automation.domain.models import Customer, Task, User
from bizabode_automation.services.idempotence import already_handled
from bizabode_automation.services.notification_service import NotificationService, Recipient
from bizabode_automation.services.timeutils import utcnow, whole_days_between

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InactivityTier:
    kind: AutomationKind
    date_field: str
    threshold: timedelta
    task_type: TaskType
    priority: Priority
    due_in: timedelta
    title: str
    description: str
    notification_type: NotificationType
    notification_title: str
    notification_message: str
    notification_priority: Priority
    send_email: bool


TIERS = (
    InactivityTier(
        kind=AutomationKind.STALE_ORDER,
        date_field="last_order_date",
        threshold=timedelta(days=30),
        task_type=TaskType.FOLLOW_UP,
        priority=Priority.MEDIUM,
        due_in=timedelta(days=2),
        title="Follow up: {name} - No recent orders",
        description=(
            "{name} hasn't placed an order in 30+ days. Reach out to check on their "
            "needs and offer assistance."
        ),
        notification_type=NotificationType.CUSTOMER_REENGAGEMENT,
        notification_title="Customer Re-engagement Task",
        notification_message="{name} hasn't ordered in 30+ days. A follow-up task has been created.",
        notification_priority=Priority.HIGH,
        send_email=True,
    ),
    InactivityTier(
        kind=AutomationKind.STALE_CONTACT,
        date_field="last_contact_date",
        threshold=timedelta(days=60),
        task_type=TaskType.CALL,
        priority=Priority.HIGH,
        due_in=timedelta(days=1),
        title="Contact: {name} - No recent contact",
        description=(
            "{name} hasn't been contacted in 60+ days. Make a call or visit to "
            "maintain the relationship."
        ),
        notification_type=NotificationType.CUSTOMER_CONTACT,
        notification_title="Customer Contact Task",
        notification_message="{name} hasn't been contacted in 60+ days. A contact task has been created.",
        notification_priority=Priority.MEDIUM,
        send_email=False,
    ),
    InactivityTier(
        kind=AutomationKind.HIGH_RISK,
        date_field="last_contact_date",
        threshold=timedelta(days=90),
        task_type=TaskType.FOLLOW_UP,
        priority=Priority.URGENT,
        due_in=timedelta(hours=4),
        title="URGENT: {name} - High risk of churn",
        description=(
            "{name} hasn't been contacted in 90+ days. This customer is at high risk "
            "of churning. Immediate action required."
        ),
        notification_type=NotificationType.CUSTOMER_HIGH_RISK,
        notification_title="URGENT: High Risk Customer",
        notification_message="{name} is at high risk of churning. No contact in 90+ days.",
        notification_priority=Priority.URGENT,
        send_email=False,
    ),
)


def _stale_condition(field: str, cutoff: datetime):
    column = getattr(Customer, field)
    return or_(column < cutoff, column.is_(None))


async def process_tier(
    db: AsyncSession,
    tier: InactivityTier,
    now: datetime,
    notifier: NotificationService,
) -> tuple[int, int]:
    """Create tasks for one inactivity tier.

    Returns (customers matched, tasks created).
    """
    cutoff = now - tier.threshold
    last_seen = getattr(Customer, tier.date_field)

    result = await db.execute(
        select(
            Customer.id,
            Customer.company_id,
            Customer.company_name,
            Customer.assigned_to,
            last_seen.label("last_seen"),
            User.email,
            User.name,
        )
        .outerjoin(User, User.id == Customer.assigned_to)
        .where(
            Customer.status == CustomerStatus.ACTIVE.value,
            _stale_condition(tier.date_field, cutoff),
        )
    )
    rows = result.all()
    logger.info("Found %d customers for tier %s", len(rows), tier.kind.value)

    created = 0
    for row in rows:
        if not row.assigned_to:
            continue
        try:
            if await already_handled(db, RelatedTo.CUSTOMER, row.id, tier.kind):
                continue

            last_seen_label = row.last_seen.date().isoformat() if row.last_seen else "Never"
            days_since = whole_days_between(row.last_seen, now) if row.last_seen else None

            task = Task(
                id=str(uuid.uuid4()),
                company_id=row.company_id,
                title=tier.title.format(name=row.company_name),
                description=tier.description.format(name=row.company_name),
                type=tier.task_type.value,
                related_to=RelatedTo.CUSTOMER.value,
                related_id=row.id,
                assigned_to=row.assigned_to,
                created_by=row.assigned_to,
                due_date=now + tier.due_in,
                priority=tier.priority.value,
                status=TaskStatus.PENDING.value,
                notes=f"Auto-generated ({tier.kind.value}). Last seen: {last_seen_label}",
                automation_kind=tier.kind.value,
            )
            db.add(task)
            await db.flush()

            await notifier.send_notification(
                user_id=row.assigned_to,
                company_id=row.company_id,
                title=tier.notification_title,
                message=tier.notification_message.format(name=row.company_name),
                type=tier.notification_type.value,
                priority=tier.notification_priority.value,
                data={
                    "taskId": task.id,
                    "customerId": row.id,
                    "customerName": row.company_name,
                    "daysSinceLastSeen": days_since if days_since is not None else "Unknown",
                },
                send_email=tier.send_email,
                recipient=Recipient(email=row.email, name=row.name or ""),
                related_customer_id=row.id,
                related_task_id=task.id,
            )
            await db.commit()
            created += 1
            logger.info("Created %s task for customer: %s", tier.kind.value, row.company_name)
        except Exception:
            await db.rollback()
            logger.exception("Failed to create %s task for customer %s", tier.kind.value, row.id)

    return len(rows), created


async def send_customer_health_digest(db: AsyncSession, now: datetime, notifier: NotificationService) -> int:
    """Send each admin/manager counts of inactive (60d) and high-risk (90d) customers.

    Returns the number of digests sent.
    """
    sixty_days_ago = now - timedelta(days=60)
    ninety_days_ago = now - timedelta(days=90)

    managers = (
        await db.execute(
            select(User.id, User.company_id).where(
                User.role.in_(MANAGER_ROLES),
                User.company_id.isnot(None),
            )
        )
    ).all()

    sent = 0
    for manager in managers:
        try:
            async def _count(cutoff: datetime) -> int:
                return (
                    await db.execute(
                        select(func.count(Customer.id)).where(
                            Customer.company_id == manager.company_id,
                            Customer.status == CustomerStatus.ACTIVE.value,
                            _stale_condition("last_contact_date", cutoff),
                        )
                    )
                ).scalar_one()

            inactive_count = await _count(sixty_days_ago)
            high_risk_count = await _count(ninety_days_ago)

            if inactive_count > 0 or high_risk_count > 0:
                await notifier.send_notification(
                    user_id=manager.id,
                    company_id=manager.company_id,
                    title="Weekly Customer Health Report",
                    message=(
                        f"Customer health summary: {inactive_count} inactive customers, "
                        f"{high_risk_count} high-risk customers"
                    ),
                    type=NotificationType.WEEKLY_DIGEST.value,
                    data={
                        "inactiveCustomersCount": inactive_count,
                        "highRiskCount": high_risk_count,
                        "companyId": manager.company_id,
                    },
                )
                await db.commit()
                sent += 1
        except Exception:
            await db.rollback()
            logger.exception("Failed to send customer health digest to manager %s", manager.id)

    return sent


async def check_inactive_clients(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    """Run every inactivity tier, plus the manager digest on the configured weekday."""
    now = now or utcnow()
    notifier = notifier or NotificationService(db)

    summary: dict = {"success": True, "tasks_created": 0}
    for tier in TIERS:
        matched, created = await process_tier(db, tier, now, notifier)
        summary[f"{tier.kind.value}_customers"] = matched
        summary["tasks_created"] += created

    summary["digests_sent"] = 0
    if now.weekday() == get_settings().customer_health_digest_weekday:
        summary["digests_sent"] = await send_customer_health_digest(db, now, notifier)
    logger.info("Inactive client check completed: %s", summary)
    return summary
