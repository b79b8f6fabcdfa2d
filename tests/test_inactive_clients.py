"""Tests for the inactive client re-engagement job."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from bizabode_automation.domain.models import Customer, Notification, Task
from bizabode_automation.services.inactive_clients import check_inactive_clients


def _customer(company_id, assigned_to, now, **kwargs):
    defaults = dict(
        id=str(uuid.uuid4()),
        company_id=company_id,
        company_name="Kingston Hardware",
        status="Active",
        assigned_to=assigned_to,
        last_order_date=now - timedelta(days=5),
        last_contact_date=now - timedelta(days=5),
    )
    defaults.update(kwargs)
    return Customer(**defaults)


async def _tasks_for(db, customer_id):
    result = await db.execute(select(Task).where(Task.related_id == customer_id).order_by(Task.priority))
    return result.scalars().all()


@pytest.fixture
async def tenant(make_company, make_user):
    company = await make_company()
    rep = await make_user(company.id, role="sales", email="rep@example.com")
    return company, rep


class TestInactivityTiers:
    @pytest.mark.asyncio
    async def test_stale_order_and_contact_create_independent_tasks(self, db_session, add, tenant, notifier, mailer, now):
        company, rep = tenant
        customer = await add(
            _customer(
                company.id,
                rep.id,
                now,
                last_order_date=now - timedelta(days=31),
                last_contact_date=now - timedelta(days=61),
            )
        )

        summary = await check_inactive_clients(db_session, now=now, notifier=notifier)

        assert summary["success"] is True
        assert summary["tasks_created"] == 2
        tasks = {t.automation_kind: t for t in await _tasks_for(db_session, customer.id)}
        assert set(tasks) == {"stale_order", "stale_contact"}

        stale_order = tasks["stale_order"]
        assert stale_order.priority == "Medium"
        assert stale_order.type == "Follow-up"
        assert "No recent orders" in stale_order.title
        assert stale_order.due_date == now + timedelta(days=2)
        assert stale_order.assigned_to == rep.id
        assert stale_order.related_to == "Customer"

        stale_contact = tasks["stale_contact"]
        assert stale_contact.priority == "High"
        assert stale_contact.type == "Call"
        assert "No recent contact" in stale_contact.title
        assert stale_contact.due_date == now + timedelta(days=1)

        # Only the re-engagement notification is emailed
        mailer.assert_awaited_once()
        assert mailer.await_args.args[0] == "rep@example.com"

    @pytest.mark.asyncio
    async def test_never_contacted_customer_hits_every_tier(self, db_session, add, tenant, notifier, now):
        company, rep = tenant
        customer = await add(_customer(company.id, rep.id, now, last_order_date=None, last_contact_date=None))

        await check_inactive_clients(db_session, now=now, notifier=notifier)

        tasks = await _tasks_for(db_session, customer.id)
        kinds = sorted(t.automation_kind for t in tasks)
        assert kinds == ["high_risk", "stale_contact", "stale_order"]
        high_risk = next(t for t in tasks if t.automation_kind == "high_risk")
        assert high_risk.priority == "Urgent"
        assert high_risk.title.startswith("URGENT:")
        assert high_risk.due_date == now + timedelta(hours=4)

    @pytest.mark.asyncio
    async def test_second_run_creates_nothing(self, db_session, add, tenant, notifier, now):
        company, rep = tenant
        customer = await add(_customer(company.id, rep.id, now, last_order_date=None, last_contact_date=None))

        await check_inactive_clients(db_session, now=now, notifier=notifier)
        summary = await check_inactive_clients(db_session, now=now + timedelta(hours=1), notifier=notifier)

        assert summary["tasks_created"] == 0
        assert len(await _tasks_for(db_session, customer.id)) == 3

    @pytest.mark.asyncio
    async def test_closed_task_allows_a_new_one(self, db_session, add, tenant, notifier, now):
        company, rep = tenant
        customer = await add(_customer(company.id, rep.id, now, last_order_date=now - timedelta(days=40)))
        await add(
            Task(
                id=str(uuid.uuid4()),
                company_id=company.id,
                title="Follow up: Kingston Hardware - No recent orders",
                related_to="Customer",
                related_id=customer.id,
                assigned_to=rep.id,
                status="Completed",
                automation_kind="stale_order",
            )
        )

        summary = await check_inactive_clients(db_session, now=now, notifier=notifier)

        assert summary["tasks_created"] == 1

    @pytest.mark.asyncio
    async def test_threshold_boundary_is_exclusive(self, db_session, add, tenant, notifier, now):
        company, rep = tenant
        await add(_customer(company.id, rep.id, now, last_order_date=now - timedelta(days=30)))

        summary = await check_inactive_clients(db_session, now=now, notifier=notifier)

        assert summary["stale_order_customers"] == 0
        assert summary["tasks_created"] == 0

    @pytest.mark.asyncio
    async def test_skips_inactive_and_unassigned_customers(self, db_session, add, tenant, notifier, now):
        company, rep = tenant
        await add(
            _customer(company.id, rep.id, now, status="Inactive", last_order_date=None),
            _customer(company.id, None, now, last_order_date=None),
        )

        summary = await check_inactive_clients(db_session, now=now, notifier=notifier)

        assert summary["tasks_created"] == 0
        assert summary["stale_order_customers"] == 1


class TestCustomerHealthDigest:
    @pytest.mark.asyncio
    async def test_managers_receive_counts(self, db_session, add, tenant, make_user, notifier, now):
        company, rep = tenant
        manager = await make_user(company.id, role="manager")
        await add(
            _customer(company.id, rep.id, now, last_contact_date=now - timedelta(days=70)),
            _customer(company.id, rep.id, now, last_contact_date=now - timedelta(days=95)),
            _customer(company.id, rep.id, now),
        )

        summary = await check_inactive_clients(db_session, now=now, notifier=notifier)

        assert summary["digests_sent"] == 1
        digest = (
            await db_session.execute(select(Notification).where(Notification.type == "weekly_digest"))
        ).scalar_one()
        assert digest.user_id == manager.id
        assert digest.data["inactiveCustomersCount"] == 2
        assert digest.data["highRiskCount"] == 1

    @pytest.mark.asyncio
    async def test_digest_only_goes_out_on_the_configured_weekday(self, db_session, add, tenant, make_user, notifier, now):
        company, rep = tenant
        await make_user(company.id, role="manager")
        await add(_customer(company.id, rep.id, now, last_contact_date=now - timedelta(days=95)))

        tuesday = now + timedelta(days=1)
        summary = await check_inactive_clients(db_session, now=tuesday, notifier=notifier)

        assert now.weekday() == 0
        assert summary["digests_sent"] == 0
        digests = (
            await db_session.execute(select(Notification).where(Notification.type == "weekly_digest"))
        ).scalars().all()
        assert digests == []
