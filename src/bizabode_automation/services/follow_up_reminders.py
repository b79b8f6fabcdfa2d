"""Follow-up reminder jobs (hourly).

1. Send reminders for tasks whose reminder_date falls within the next hour
2. Create follow-up tasks for activities marked "Follow-up Required"
3. Mark past-due tasks as Overdue
4. Send managers a digest of their company's overdue tasks

Every step processes candidates one at a time and commits per entity, so a
failure on one record is logged and the batch continues.
"""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.domain.enums import (
    FOLLOW_UP_REQUIRED,
    MANAGER_ROLES,
    OPEN_TASK_STATUSES,
    ActivityStatus,
    AutomationKind,
    NotificationType,
    Priority,
    RelatedTo,
    TaskStatus,
    TaskType,
)
from bizabode_automation.domain.models import Activity, Task, User
from bizabode_automation.services.idempotence import already_handled, claim_flag
from bizabode_automation.services.notification_service import NotificationService, Recipient
from bizabode_automation.services.timeutils import utcnow

logger = logging.getLogger(__name__)

REMINDER_LOOKAHEAD = timedelta(hours=1)
FOLLOW_UP_LOOKAHEAD = timedelta(hours=24)


# ---------------------------------------------------------------------------
# 1. Task reminders
# ---------------------------------------------------------------------------


async def send_task_reminders(db: AsyncSession, now: datetime, notifier: NotificationService) -> int:
    """Notify assignees of tasks whose reminder is due within the hour.

    ``reminder_sent`` is claimed with a conditional update in the same commit
    as the notification row, so a reminder goes out at most once per task.
    Returns the number of reminders sent.
    """
    cutoff = now + REMINDER_LOOKAHEAD

    result = await db.execute(
        select(
            Task.id,
            Task.company_id,
            Task.title,
            Task.priority,
            Task.due_date,
            Task.assigned_to,
            User.email,
            User.name,
        )
        .outerjoin(User, User.id == Task.assigned_to)
        .where(
            and_(
                Task.reminder_date.isnot(None),
                Task.reminder_date <= cutoff,
                Task.reminder_sent == False,  # noqa: E712
                Task.status.in_(OPEN_TASK_STATUSES),
                Task.assigned_to.isnot(None),
            )
        )
    )
    rows = result.all()
    logger.info("Found %d tasks needing reminders", len(rows))

    count = 0
    for row in rows:
        try:
            if not await claim_flag(db, Task, row.id, "reminder_sent"):
                continue

            await notifier.send_notification(
                user_id=row.assigned_to,
                company_id=row.company_id,
                title="Task Reminder",
                message=f"Reminder: {row.title} is due soon",
                type=NotificationType.TASK_REMINDER.value,
                priority=Priority.URGENT.value if row.priority == Priority.URGENT.value else Priority.HIGH.value,
                data={
                    "taskId": row.id,
                    "dueDate": row.due_date.isoformat() if row.due_date else None,
                    "priority": row.priority,
                },
                send_email=True,
                recipient=Recipient(email=row.email, name=row.name or ""),
                related_task_id=row.id,
            )
            await db.commit()
            count += 1
            logger.info("Sent reminder for task: %s", row.title)
        except Exception:
            await db.rollback()
            logger.exception("Failed to send reminder for task %s", row.id)

    return count


# ---------------------------------------------------------------------------
# 2. Follow-up tasks from activities
# ---------------------------------------------------------------------------


async def create_follow_up_tasks(db: AsyncSession, now: datetime, notifier: NotificationService) -> int:
    """Create one follow-up task per completed activity that asked for one.

    Skips activities that already have an open task. Returns tasks created.
    """
    cutoff = now + FOLLOW_UP_LOOKAHEAD

    result = await db.execute(
        select(
            Activity.id,
            Activity.company_id,
            Activity.subject,
            Activity.description,
            Activity.assigned_to,
            Activity.next_follow_up_date,
        ).where(
            and_(
                Activity.outcome == FOLLOW_UP_REQUIRED,
                Activity.status == ActivityStatus.COMPLETED.value,
                Activity.next_follow_up_date <= cutoff,
            )
        )
    )
    rows = result.all()
    logger.info("Found %d activities needing follow-up", len(rows))

    count = 0
    for row in rows:
        try:
            if await already_handled(db, RelatedTo.ACTIVITY, row.id):
                continue

            task = Task(
                id=str(uuid.uuid4()),
                company_id=row.company_id,
                title=f"Follow-up: {row.subject}",
                description=f"Follow up on: {row.description or row.subject}",
                type=TaskType.FOLLOW_UP.value,
                related_to=RelatedTo.ACTIVITY.value,
                related_id=row.id,
                assigned_to=row.assigned_to,
                created_by=row.assigned_to,
                due_date=row.next_follow_up_date or now + FOLLOW_UP_LOOKAHEAD,
                priority=Priority.MEDIUM.value,
                status=TaskStatus.PENDING.value,
                notes=f"Auto-generated follow-up for activity: {row.subject}",
                automation_kind=AutomationKind.ACTIVITY_FOLLOW_UP.value,
            )
            db.add(task)
            await db.flush()

            if row.assigned_to:
                await notifier.send_notification(
                    user_id=row.assigned_to,
                    company_id=row.company_id,
                    title="Follow-up Task Created",
                    message=f"A follow-up task has been created for: {row.subject}",
                    type=NotificationType.TASK_CREATED.value,
                    data={"taskId": task.id, "relatedActivityId": row.id},
                    related_task_id=task.id,
                    related_activity_id=row.id,
                )
            await db.commit()
            count += 1
            logger.info("Created follow-up task for activity: %s", row.subject)
        except Exception:
            await db.rollback()
            logger.exception("Failed to create follow-up task for activity %s", row.id)

    return count


# ---------------------------------------------------------------------------
# 3. Overdue task marking
# ---------------------------------------------------------------------------


async def mark_overdue_tasks(db: AsyncSession, now: datetime, notifier: NotificationService) -> int:
    """Move open tasks past their due date to Overdue. Returns tasks marked."""
    result = await db.execute(
        select(Task.id, Task.company_id, Task.title, Task.due_date, Task.assigned_to).where(
            and_(
                Task.due_date.isnot(None),
                Task.due_date < now,
                Task.status.in_(OPEN_TASK_STATUSES),
            )
        )
    )
    rows = result.all()
    logger.info("Found %d overdue tasks", len(rows))

    count = 0
    for row in rows:
        try:
            # Only open tasks move; an Overdue task never goes back.
            updated = await db.execute(
                update(Task)
                .where(Task.id == row.id, Task.status.in_(OPEN_TASK_STATUSES))
                .values(status=TaskStatus.OVERDUE.value)
            )
            if updated.rowcount != 1:
                continue

            if row.assigned_to:
                await notifier.send_notification(
                    user_id=row.assigned_to,
                    company_id=row.company_id,
                    title="Task Overdue",
                    message=f'Task "{row.title}" is now overdue',
                    type=NotificationType.TASK_OVERDUE.value,
                    data={"taskId": row.id, "dueDate": row.due_date.isoformat()},
                    related_task_id=row.id,
                )
            await db.commit()
            count += 1
            logger.info("Marked task as overdue: %s", row.title)
        except Exception:
            await db.rollback()
            logger.exception("Failed to mark task %s as overdue", row.id)

    return count


# ---------------------------------------------------------------------------
# 4. Manager daily digest
# ---------------------------------------------------------------------------


async def send_overdue_digest(db: AsyncSession, notifier: NotificationService) -> int:
    """Send each admin/manager a count of their company's overdue tasks.

    Returns the number of digests sent.
    """
    managers = (
        await db.execute(
            select(User.id, User.company_id).where(
                User.role.in_(MANAGER_ROLES),
                User.company_id.isnot(None),
            )
        )
    ).all()

    count = 0
    for manager in managers:
        try:
            overdue_count = (
                await db.execute(
                    select(func.count(Task.id)).where(
                        Task.company_id == manager.company_id,
                        Task.status == TaskStatus.OVERDUE.value,
                    )
                )
            ).scalar_one()

            if overdue_count > 0:
                await notifier.send_notification(
                    user_id=manager.id,
                    company_id=manager.company_id,
                    title="Daily Task Summary",
                    message=f"You have {overdue_count} overdue tasks in your company",
                    type=NotificationType.DAILY_DIGEST.value,
                    data={"overdueCount": overdue_count, "companyId": manager.company_id},
                )
                await db.commit()
                count += 1
        except Exception:
            await db.rollback()
            logger.exception("Failed to send daily digest to manager %s", manager.id)

    return count


# ---------------------------------------------------------------------------
# Job entry point
# ---------------------------------------------------------------------------


async def check_follow_up_reminders(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    """Run all four follow-up steps and return the outcome summary."""
    now = now or utcnow()
    notifier = notifier or NotificationService(db)

    reminders = await send_task_reminders(db, now, notifier)
    follow_ups = await create_follow_up_tasks(db, now, notifier)
    overdue = await mark_overdue_tasks(db, now, notifier)
    digests = await send_overdue_digest(db, notifier)

    logger.info(
        "Follow-up reminders: reminders=%d follow_ups=%d overdue=%d digests=%d",
        reminders, follow_ups, overdue, digests,
    )
    return {
        "success": True,
        "reminders_sent": reminders,
        "follow_up_tasks_created": follow_ups,
        "overdue_tasks_marked": overdue,
        "digests_sent": digests,
    }
