"""Tests for the low stock and license expiry alerts."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from bizabode_automation.domain.models import Item, Notification
from bizabode_automation.services.license_check import check_licenses, urgency_level
from bizabode_automation.services.low_stock import check_low_stock
from bizabode_automation.services.timeutils import start_of_day


def _item(company_id, **kwargs):
    defaults = dict(
        id=str(uuid.uuid4()),
        company_id=company_id,
        name="Cement 42.5kg",
        sku=f"SKU-{uuid.uuid4().hex[:5]}",
        quantity=10,
        reorder_level=5,
        is_active=True,
        critical=False,
    )
    defaults.update(kwargs)
    return Item(**defaults)


async def _notifications(db, type_):
    result = await db.execute(select(Notification).where(Notification.type == type_))
    return result.scalars().all()


# ---------------------------------------------------------------------------
# Low stock
# ---------------------------------------------------------------------------


class TestLowStock:
    @pytest.mark.asyncio
    async def test_alerts_managers_with_item_list(self, db_session, add, make_company, make_user, notifier, mailer, now):
        company = await make_company(name="Acme Supplies")
        manager = await make_user(company.id, role="manager")
        await make_user(company.id, role="warehouse")
        await add(
            _item(company.id, name="At level", quantity=5, reorder_level=5),
            _item(company.id, name="Out", quantity=0, reorder_level=3, critical=True),
            _item(company.id, name="Plenty", quantity=50, reorder_level=5),
            _item(company.id, name="Retired", quantity=0, reorder_level=5, is_active=False),
        )

        summary = await check_low_stock(db_session, now=now, notifier=notifier)

        assert summary == {"success": True, "low_stock_items": 2, "companies_alerted": 1, "notifications_sent": 1}
        [alert] = await _notifications(db_session, "low_stock")
        assert alert.user_id == manager.id
        assert alert.priority == "Urgent"
        assert sorted(i["name"] for i in alert.data["items"]) == ["At level", "Out"]
        assert [i["name"] for i in alert.data["critical_items"]] == ["Out"]
        assert mailer.await_args.args[1] == "Low Stock Alert - 2 items need attention"

    @pytest.mark.asyncio
    async def test_companies_are_alerted_separately(self, db_session, add, make_company, make_user, notifier, now):
        first = await make_company(name="First")
        second = await make_company(name="Second")
        await make_user(first.id, role="admin")
        await make_user(second.id, role="admin")
        await add(_item(first.id, quantity=1), _item(second.id, quantity=0))

        summary = await check_low_stock(db_session, now=now, notifier=notifier)

        assert summary["companies_alerted"] == 2
        alerts = await _notifications(db_session, "low_stock")
        assert {a.company_id for a in alerts} == {first.id, second.id}
        assert all(len(a.data["items"]) == 1 for a in alerts)

    @pytest.mark.asyncio
    async def test_no_low_stock(self, db_session, add, make_company, notifier, mailer, now):
        company = await make_company()
        await add(_item(company.id, quantity=6, reorder_level=5))

        summary = await check_low_stock(db_session, now=now, notifier=notifier)

        assert summary["low_stock_items"] == 0
        mailer.assert_not_awaited()


# ---------------------------------------------------------------------------
# License expiry
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "days,level",
    [(0, "critical"), (7, "critical"), (8, "high"), (14, "high"), (15, "medium"), (21, "medium"), (22, "low"), (30, "low")],
)
def test_urgency_level(days, level):
    assert urgency_level(days) == level


class TestLicenseCheck:
    @pytest.mark.asyncio
    async def test_expiring_license_warns_managers(self, db_session, make_company, make_user, notifier, mailer, now):
        company = await make_company(name="Acme Supplies", license_expiry=start_of_day(now) + timedelta(days=5, hours=6))
        admin = await make_user(company.id, role="admin")
        await make_user(company.id, role="sales")

        summary = await check_licenses(db_session, now=now, notifier=notifier)

        assert summary == {"success": True, "expiring_licenses": 1, "notifications_sent": 1}
        [warning] = await _notifications(db_session, "license_expiry")
        assert warning.user_id == admin.id
        assert warning.priority == "Urgent"
        # ceil(5.25 days)
        assert warning.data["days_until_expiry"] == 6
        assert warning.data["urgency"] == "critical"
        assert mailer.await_args.args[1] == "License Expires in 6 Days - Acme Supplies"

    @pytest.mark.asyncio
    async def test_window_bounds(self, db_session, make_company, make_user, notifier, now):
        today = start_of_day(now)
        inside = await make_company(name="Edge", license_expiry=today + timedelta(days=30))
        await make_user(inside.id, role="admin")
        for name, expiry in (
            ("Too far", today + timedelta(days=30, seconds=1)),
            ("Already expired", today - timedelta(seconds=1)),
        ):
            company = await make_company(name=name, license_expiry=expiry)
            await make_user(company.id, role="admin")

        summary = await check_licenses(db_session, now=now, notifier=notifier)

        assert summary["expiring_licenses"] == 1
        [warning] = await _notifications(db_session, "license_expiry")
        assert warning.company_id == inside.id
        assert warning.data["urgency"] == "low"

    @pytest.mark.asyncio
    async def test_company_without_managers_is_skipped(self, db_session, make_company, make_user, notifier, now):
        company = await make_company(license_expiry=start_of_day(now) + timedelta(days=10))
        await make_user(company.id, role="sales")

        summary = await check_licenses(db_session, now=now, notifier=notifier)

        assert summary == {"success": True, "expiring_licenses": 1, "notifications_sent": 0}
