"""Tests for the notification sink, the cleanup job and email templates."""

from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select

from bizabode_automation.domain.models import Notification
from bizabode_automation.services import email_service
from bizabode_automation.services.email_templates import TIER_COLORS, build_email
from bizabode_automation.services.notification_service import (
    NotificationService,
    Recipient,
    run_notification_cleanup,
)
from bizabode_automation.services.timeutils import utcnow


@pytest.fixture
async def member(make_company, make_user):
    company = await make_company()
    user = await make_user(company.id, name="Dana", email="dana@example.com")
    return company, user


class TestSendNotification:
    @pytest.mark.asyncio
    async def test_creates_row_with_expiry(self, db_session, member, notifier, mailer):
        company, user = member

        notification = await notifier.send_notification(
            user_id=user.id,
            company_id=company.id,
            title="Hello",
            message="World",
            type="general",
            data={"k": 1},
            related_task_id="t-1",
        )
        await db_session.commit()

        stored = (await db_session.execute(select(Notification))).scalar_one()
        assert stored.id == notification.id
        assert stored.is_read is False
        assert stored.related_task_id == "t-1"
        assert stored.data == {"k": 1}
        assert timedelta(days=29) < stored.expires_at - utcnow() <= timedelta(days=30)
        mailer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_email_looks_up_recipient(self, db_session, member, notifier, mailer):
        company, user = member

        await notifier.send_notification(
            user_id=user.id,
            company_id=company.id,
            title="Task Reminder",
            message="Reminder: call Bob is due soon",
            type="task_reminder",
            priority="High",
            send_email=True,
        )

        to, subject, html = mailer.await_args.args
        assert to == "dana@example.com"
        assert subject == "Task Reminder"
        assert "Hi Dana" in html
        assert notifier.emails_sent == 1

    @pytest.mark.asyncio
    async def test_missing_email_is_skipped(self, db_session, member, notifier, mailer):
        company, user = member

        await notifier.send_notification(
            user_id=user.id,
            company_id=company.id,
            title="t",
            message="m",
            type="general",
            send_email=True,
            recipient=Recipient(email=None),
        )

        mailer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_mailer_returning_false_counts_failure(self, db_session, member, mailer):
        company, user = member
        mailer.return_value = False
        notifier = NotificationService(db_session, mailer=mailer)

        await notifier.send_notification(
            user_id=user.id, company_id=company.id, title="t", message="m", type="general", send_email=True
        )

        assert notifier.emails_failed == 1
        assert notifier.emails_sent == 0

    @pytest.mark.asyncio
    async def test_unknown_related_field_rejected(self, db_session, member, notifier):
        company, user = member
        with pytest.raises(TypeError):
            await notifier.send_notification(
                user_id=user.id, company_id=company.id, title="t", message="m", type="general", related_lead_id="x"
            )


class TestCleanup:
    @pytest.mark.asyncio
    async def test_deletes_only_expired(self, db_session, add, member, notifier):
        company, user = member
        now = utcnow()
        base = dict(user_id=user.id, company_id=company.id, title="t", message="m")
        await add(
            Notification(id="expired", expires_at=now - timedelta(minutes=1), **base),
            Notification(id="fresh", expires_at=now + timedelta(days=1), **base),
            Notification(id="forever", expires_at=None, **base),
        )

        result = await run_notification_cleanup(db_session, now=now, notifier=notifier)

        assert result == {"success": True, "deleted": 1}
        remaining = (await db_session.execute(select(Notification.id))).scalars().all()
        assert sorted(remaining) == ["forever", "fresh"]


class TestEmailTemplates:
    def test_low_stock_subject_and_critical_block(self):
        subject, html = build_email(
            "low_stock",
            "Mona",
            "Low Stock Alert",
            "",
            {
                "company_name": "Acme",
                "items": [{"name": "Nails", "sku": "N-1", "quantity": 0, "reorder_level": 10}],
                "critical_items": [{"name": "Nails", "sku": "N-1"}],
            },
            "Urgent",
            "https://crm.example.com/",
        )
        assert subject == "Low Stock Alert - 1 items need attention"
        assert "CRITICAL ITEM OUT OF STOCK" in html
        assert "https://crm.example.com/inventory" in html

    def test_license_color_follows_urgency(self):
        subject, html = build_email(
            "license_expiry",
            "Mona",
            "License",
            "",
            {"company_name": "Acme", "days_until_expiry": 12, "urgency": "high", "license_plan": "basic"},
            "High",
            "http://localhost:3000",
        )
        assert subject == "License Expires in 12 Days - Acme"
        assert TIER_COLORS["high"] in html
        assert "Urgent action required" not in html

    def test_generic_template_escapes_html(self):
        subject, html = build_email(
            "task_created", "<b>Eve</b>", "Follow-up Task Created", "<script>x</script>", None, "Medium", "http://x"
        )
        assert subject == "Follow-up Task Created"
        assert "<script>" not in html
        assert "&lt;b&gt;Eve&lt;/b&gt;" in html


class TestSendgridMailer:
    @pytest.mark.asyncio
    async def test_skips_without_api_key(self):
        with patch.object(email_service, "_get_config", return_value=("", "noreply@x.com", "X")):
            assert await email_service.send_mail("a@b.com", "s", "<p>h</p>") is False

    @pytest.mark.asyncio
    async def test_sends_through_client(self):
        client = MagicMock()
        client.send.return_value = MagicMock(status_code=202)
        with patch.object(email_service, "_get_config", return_value=("key", "noreply@x.com", "X")), \
                patch.object(email_service, "_get_client", return_value=client):
            assert await email_service.send_mail("a@b.com", "s", "<p>h</p>") is True
        client.send.assert_called_once()

    @pytest.mark.asyncio
    async def test_client_error_returns_false(self):
        client = MagicMock()
        client.send.side_effect = RuntimeError("network")
        with patch.object(email_service, "_get_config", return_value=("key", "noreply@x.com", "X")), \
                patch.object(email_service, "_get_client", return_value=client):
            assert await email_service.send_mail("a@b.com", "s", "<p>h</p>") is False
