"""Notification sink: in-app notification records plus optional email."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.app.config import get_settings
from bizabode_automation.domain.enums import MANAGER_ROLES
from bizabode_automation.domain.models import Notification, User
from bizabode_automation.services.email_service import send_mail
from bizabode_automation.services.email_templates import build_email
from bizabode_automation.services.timeutils import utcnow

logger = logging.getLogger(__name__)

Mailer = Callable[[str, str, str], Awaitable[bool]]

RELATED_FIELDS = frozenset({
    "related_task_id",
    "related_activity_id",
    "related_customer_id",
    "related_order_id",
    "related_invoice_id",
    "related_quote_id",
})


async def company_managers(db: AsyncSession, company_id: str):
    """Admin and manager rows (id, email, name) of a company."""
    result = await db.execute(
        select(User.id, User.email, User.name).where(
            User.company_id == company_id,
            User.role.in_(MANAGER_ROLES),
        )
    )
    return result.all()


@dataclass
class Recipient:
    """Display fields of the notified user, already joined by the caller."""

    email: Optional[str]
    name: str = ""


class NotificationService:
    """Creates Notification rows and dispatches the matching email.

    The caller owns the transaction: rows are flushed here and committed by the
    job together with the state change that triggered them.
    """

    def __init__(self, db: AsyncSession, mailer: Optional[Mailer] = None):
        self.db = db
        self.mailer = mailer or send_mail
        self.emails_sent = 0
        self.emails_failed = 0

    async def send_notification(
        self,
        user_id: str,
        company_id: str,
        title: str,
        message: str,
        type: str,
        priority: str = "Medium",
        data: dict | None = None,
        send_email: bool = False,
        recipient: Recipient | None = None,
        **related_ids: str,
    ) -> Notification:
        """Create an in-app notification and optionally email it.

        ``related_ids`` accepts the ``related_*_id`` columns of Notification.
        Email failures are logged and never raised.
        """
        unknown = set(related_ids) - RELATED_FIELDS
        if unknown:
            raise TypeError(f"Unknown related fields: {sorted(unknown)}")

        settings = get_settings()
        notification = Notification(
            id=str(uuid.uuid4()),
            user_id=user_id,
            company_id=company_id,
            title=title,
            message=message,
            type=type,
            priority=priority,
            data=data,
            expires_at=utcnow() + timedelta(days=settings.notification_ttl_days),
            **related_ids,
        )
        self.db.add(notification)
        await self.db.flush()

        if send_email:
            await self._send_email(notification, recipient)

        return notification

    async def _send_email(self, notification: Notification, recipient: Recipient | None) -> bool:
        if recipient is None:
            row = (
                await self.db.execute(select(User.email, User.name).where(User.id == notification.user_id))
            ).first()
            recipient = Recipient(email=row.email, name=row.name) if row else Recipient(email=None)

        if not recipient.email:
            logger.warning("No email address for user %s, skipping %s email", notification.user_id, notification.type)
            return False

        subject, html = build_email(
            notification.type,
            recipient.name or "there",
            notification.title,
            notification.message,
            notification.data,
            notification.priority,
            get_settings().frontend_url,
        )
        try:
            ok = await self.mailer(recipient.email, subject, html)
        except Exception:
            logger.exception("Mailer failed for %s (%s)", recipient.email, notification.type)
            ok = False

        if ok:
            self.emails_sent += 1
        else:
            self.emails_failed += 1
        return ok

    async def cleanup_expired_notifications(self, now: datetime | None = None) -> int:
        """Delete notifications past their ``expires_at``. Returns rows deleted."""
        now = now or utcnow()
        result = await self.db.execute(
            delete(Notification).where(
                Notification.expires_at.isnot(None),
                Notification.expires_at < now,
            )
        )
        await self.db.commit()
        return result.rowcount or 0


async def run_notification_cleanup(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    """Daily job: remove expired notifications."""
    notifier = notifier or NotificationService(db)
    deleted = await notifier.cleanup_expired_notifications(now)
    if deleted:
        logger.info("Notification cleanup: deleted %d expired notifications", deleted)
    return {"success": True, "deleted": deleted}
