"""Workflow automation for the quote -> order -> delivery lifecycle.

Runs hourly:

1. Expire quotes past ``valid_until``
2. Convert accepted quotes into sales orders (once per quote)
3. Mark orders dispatched more than 24h ago as delivered
4. Complete open activities of recently delivered orders
5. Roll recently delivered orders into customer statistics (once per order)

Each rule returns ``{"success": ..., <count>: n}``; a rule that fails as a
whole reports ``success: False`` without stopping the others.
"""

import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bizabode_automation.domain.enums import (
    ActivityStatus,
    ActivityType,
    NotificationType,
    OrderStatus,
    QuoteStatus,
)
from bizabode_automation.domain.models import Activity, Customer, Quote, SalesOrder
from bizabode_automation.services.idempotence import claim_flag
from bizabode_automation.services.notification_service import NotificationService
from bizabode_automation.services.timeutils import utcnow
from bizabode_automation.services.workflow_state_machine import (
    EXPIRABLE_QUOTE_STATES,
    WorkflowStateMachine,
)

logger = logging.getLogger(__name__)

DELIVERY_GRACE = timedelta(hours=24)
DELIVERED_LOOKBACK = timedelta(hours=24)
DEFAULT_PAYMENT_TERMS = "Net 30"

_machine = WorkflowStateMachine()


def _log_activity(db: AsyncSession, company_id: str, subject: str, description: str, assigned_to, now: datetime, **related) -> None:
    db.add(
        Activity(
            id=str(uuid.uuid4()),
            company_id=company_id,
            type=ActivityType.NOTE.value,
            subject=subject,
            description=description,
            assigned_to=assigned_to,
            status=ActivityStatus.COMPLETED.value,
            completed_date=now,
            **related,
        )
    )


def _copy_line_items(items) -> list[dict]:
    return [
        {
            "item_id": item.get("item_id"),
            "name": item.get("name"),
            "description": item.get("description"),
            "quantity": item.get("quantity"),
            "unit_price": item.get("unit_price"),
            "discount": item.get("discount") or 0,
            "total": item.get("total"),
        }
        for item in (items or [])
    ]


# ---------------------------------------------------------------------------
# 1. Quote expiry
# ---------------------------------------------------------------------------


async def expire_quotes(db: AsyncSession, now: datetime | None = None) -> dict:
    """Move draft/sent quotes past ``valid_until`` to expired."""
    now = now or utcnow()
    try:
        rows = (
            await db.execute(
                select(Quote.id, Quote.company_id, Quote.quote_number, Quote.status, Quote.created_by).where(
                    Quote.status.in_(EXPIRABLE_QUOTE_STATES),
                    Quote.valid_until < now,
                )
            )
        ).all()
        logger.info("Found %d expired quotes", len(rows))

        expired = 0
        for row in rows:
            try:
                _machine.validate_quote_transition(row.status, QuoteStatus.EXPIRED)
                result = await db.execute(
                    update(Quote)
                    .where(Quote.id == row.id, Quote.status.in_(EXPIRABLE_QUOTE_STATES))
                    .values(status=QuoteStatus.EXPIRED.value)
                )
                if result.rowcount != 1:
                    continue
                _log_activity(
                    db,
                    row.company_id,
                    "Quote Expired",
                    f"Quote {row.quote_number} has expired automatically",
                    row.created_by,
                    now,
                    related_quote_id=row.id,
                )
                await db.commit()
                expired += 1
                logger.info("Expired quote: %s", row.quote_number)
            except Exception:
                await db.rollback()
                logger.exception("Failed to expire quote %s", row.id)

        return {"success": True, "expired_count": expired}
    except Exception as e:
        await db.rollback()
        logger.exception("Error expiring quotes")
        return {"success": False, "error": str(e)}


# ---------------------------------------------------------------------------
# 2. Quote conversion
# ---------------------------------------------------------------------------


async def _next_order_number(db: AsyncSession, company_id: str, now: datetime) -> str:
    count = (
        await db.execute(select(func.count(SalesOrder.id)).where(SalesOrder.company_id == company_id))
    ).scalar_one()
    return f"SO-{now.year}-{count + 1:04d}"


async def convert_accepted_quotes(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    """Create one sales order per accepted quote that has none.

    The quote stays ``accepted``; the order's ``quote_id`` (unique) is what
    marks it converted.
    """
    now = now or utcnow()
    notifier = notifier or NotificationService(db)
    try:
        quotes = (
            await db.execute(
                select(Quote)
                .outerjoin(SalesOrder, SalesOrder.quote_id == Quote.id)
                .where(Quote.status == QuoteStatus.ACCEPTED.value, SalesOrder.id.is_(None))
            )
        ).scalars().all()
        # Plain snapshots so a rollback mid-loop leaves nothing to lazy-load
        snapshots = [
            {
                "id": q.id,
                "company_id": q.company_id,
                "quote_number": q.quote_number,
                "customer_id": q.customer_id,
                "customer_name": q.customer_name,
                "customer_email": q.customer_email,
                "customer_phone": q.customer_phone,
                "customer_address": q.customer_address,
                "items": q.items,
                "subtotal": q.subtotal,
                "tax": q.tax,
                "tax_rate": q.tax_rate,
                "discount": q.discount,
                "total": q.total,
                "created_by": q.created_by,
            }
            for q in quotes
        ]
        logger.info("Found %d accepted quotes to convert", len(snapshots))

        converted = 0
        for quote in snapshots:
            try:
                existing = (
                    await db.execute(select(SalesOrder.id).where(SalesOrder.quote_id == quote["id"]).limit(1))
                ).first()
                if existing:
                    continue

                order_number = await _next_order_number(db, quote["company_id"], now)
                order_id = str(uuid.uuid4())
                order = SalesOrder(
                    id=order_id,
                    company_id=quote["company_id"],
                    order_number=order_number,
                    quote_id=quote["id"],
                    customer_id=quote["customer_id"],
                    customer_name=quote["customer_name"],
                    customer_email=quote["customer_email"],
                    customer_phone=quote["customer_phone"],
                    customer_address=quote["customer_address"],
                    items=_copy_line_items(quote["items"]),
                    subtotal=quote["subtotal"],
                    tax=quote["tax"],
                    tax_rate=quote["tax_rate"],
                    discount=quote["discount"],
                    total=quote["total"],
                    order_date=now,
                    payment_terms=DEFAULT_PAYMENT_TERMS,
                    notes=f"Auto-converted from quote {quote['quote_number']}",
                    created_by=quote["created_by"],
                    status=OrderStatus.PENDING.value,
                )
                db.add(order)
                _log_activity(
                    db,
                    quote["company_id"],
                    "Quote Converted to Order",
                    f"Quote {quote['quote_number']} was automatically converted to sales order {order_number}",
                    quote["created_by"],
                    now,
                    related_quote_id=quote["id"],
                    related_order_id=order_id,
                    related_customer_id=quote["customer_id"],
                )
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("Failed to create sales order for quote %s", quote["id"])
                continue

            converted += 1
            logger.info("Converted quote %s to order %s", quote["quote_number"], order_number)

            if not quote["created_by"]:
                continue
            try:
                await notifier.send_notification(
                    user_id=quote["created_by"],
                    company_id=quote["company_id"],
                    title="Quote Converted to Order",
                    message=(
                        f"Quote {quote['quote_number']} has been automatically converted to "
                        f"sales order {order_number}"
                    ),
                    type=NotificationType.QUOTE_CONVERTED.value,
                    data={"quoteId": quote["id"], "orderId": order_id, "orderNumber": order_number},
                    related_quote_id=quote["id"],
                    related_order_id=order_id,
                )
                await db.commit()
            except Exception:
                await db.rollback()
                logger.exception("Order %s created but conversion notification failed", order_number)

        return {"success": True, "converted_count": converted}
    except Exception as e:
        await db.rollback()
        logger.exception("Error converting accepted quotes")
        return {"success": False, "error": str(e)}


# ---------------------------------------------------------------------------
# 3. Dispatched -> Delivered
# ---------------------------------------------------------------------------


async def update_order_status(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    """Auto-deliver orders dispatched more than 24 hours ago."""
    now = now or utcnow()
    notifier = notifier or NotificationService(db)
    try:
        rows = (
            await db.execute(
                select(SalesOrder.id, SalesOrder.company_id, SalesOrder.order_number, SalesOrder.created_by).where(
                    SalesOrder.status == OrderStatus.DISPATCHED.value,
                    SalesOrder.dispatched_at < now - DELIVERY_GRACE,
                )
            )
        ).all()
        logger.info("Found %d orders to check for delivery", len(rows))

        delivered = 0
        for row in rows:
            try:
                _machine.validate_order_transition(OrderStatus.DISPATCHED, OrderStatus.DELIVERED)
                result = await db.execute(
                    update(SalesOrder)
                    .where(SalesOrder.id == row.id, SalesOrder.status == OrderStatus.DISPATCHED.value)
                    .values(status=OrderStatus.DELIVERED.value, delivered_at=now)
                )
                if result.rowcount != 1:
                    continue
                _log_activity(
                    db,
                    row.company_id,
                    "Order Delivered",
                    f"Order {row.order_number} has been automatically marked as delivered",
                    row.created_by,
                    now,
                    related_order_id=row.id,
                )
                if row.created_by:
                    await notifier.send_notification(
                        user_id=row.created_by,
                        company_id=row.company_id,
                        title="Order Delivered",
                        message=f"Order {row.order_number} has been automatically marked as delivered",
                        type=NotificationType.ORDER_DELIVERED.value,
                        data={"orderId": row.id, "orderNumber": row.order_number},
                        related_order_id=row.id,
                    )
                await db.commit()
                delivered += 1
                logger.info("Auto-delivered order: %s", row.order_number)
            except Exception:
                await db.rollback()
                logger.exception("Failed to update order %s", row.id)

        return {"success": True, "delivered_count": delivered}
    except Exception as e:
        await db.rollback()
        logger.exception("Error updating order status")
        return {"success": False, "error": str(e)}


# ---------------------------------------------------------------------------
# 4. Post-delivery activity completion
# ---------------------------------------------------------------------------


async def complete_related_activities(db: AsyncSession, now: datetime | None = None) -> dict:
    """Complete Scheduled / In Progress activities of orders delivered in the last 24h."""
    now = now or utcnow()
    try:
        order_ids = (
            await db.execute(
                select(SalesOrder.id).where(
                    SalesOrder.status == OrderStatus.DELIVERED.value,
                    SalesOrder.delivered_at >= now - DELIVERED_LOOKBACK,
                )
            )
        ).scalars().all()
        logger.info("Found %d recently delivered orders", len(order_ids))

        open_states = (ActivityStatus.SCHEDULED.value, ActivityStatus.IN_PROGRESS.value)
        completed = 0
        for order_id in order_ids:
            try:
                result = await db.execute(
                    update(Activity)
                    .where(Activity.related_order_id == order_id, Activity.status.in_(open_states))
                    .values(status=ActivityStatus.COMPLETED.value, completed_date=now)
                )
                await db.commit()
                completed += result.rowcount or 0
            except Exception:
                await db.rollback()
                logger.exception("Failed to complete activities for order %s", order_id)

        return {"success": True, "completed_activities": completed}
    except Exception as e:
        await db.rollback()
        logger.exception("Error completing related activities")
        return {"success": False, "error": str(e)}


# ---------------------------------------------------------------------------
# 5. Customer statistics rollup
# ---------------------------------------------------------------------------


async def update_customer_stats(db: AsyncSession, now: datetime | None = None) -> dict:
    """Add each recently delivered order to its customer's totals exactly once.

    The order's ``stats_rolled_up`` flag is claimed in the same transaction as
    the customer update, so re-runs inside the lookback window skip it.
    """
    now = now or utcnow()
    try:
        rows = (
            await db.execute(
                select(SalesOrder.id, SalesOrder.customer_id, SalesOrder.total, SalesOrder.delivered_at).where(
                    SalesOrder.status == OrderStatus.DELIVERED.value,
                    SalesOrder.delivered_at >= now - DELIVERED_LOOKBACK,
                    SalesOrder.stats_rolled_up == False,  # noqa: E712
                    SalesOrder.customer_id.isnot(None),
                )
            )
        ).all()
        logger.info("Found %d recently delivered orders to update customer stats", len(rows))

        updated = 0
        for row in rows:
            try:
                if not await claim_flag(db, SalesOrder, row.id, "stats_rolled_up"):
                    continue
                order_total = row.total or 0.0
                # Right-hand sides read the pre-update row
                result = await db.execute(
                    update(Customer)
                    .where(Customer.id == row.customer_id)
                    .values(
                        total_orders=Customer.total_orders + 1,
                        total_value=Customer.total_value + order_total,
                        average_order_value=(Customer.total_value + order_total) / (Customer.total_orders + 1),
                        last_order_date=row.delivered_at,
                        last_activity_date=now,
                    )
                    .execution_options(synchronize_session="fetch")
                )
                if result.rowcount != 1:
                    # Customer gone; release the flag with the rollback
                    await db.rollback()
                    logger.warning("Customer %s for order %s not found", row.customer_id, row.id)
                    continue
                await db.commit()
                updated += 1
            except Exception:
                await db.rollback()
                logger.exception("Failed to update customer stats for order %s", row.id)

        return {"success": True, "updated_customers": updated}
    except Exception as e:
        await db.rollback()
        logger.exception("Error updating customer stats")
        return {"success": False, "error": str(e)}


# ---------------------------------------------------------------------------
# Job entry point
# ---------------------------------------------------------------------------


async def run_all_automations(
    db: AsyncSession,
    now: datetime | None = None,
    notifier: NotificationService | None = None,
) -> dict:
    """Run the five workflow rules in order and return every rule's outcome."""
    now = now or utcnow()
    notifier = notifier or NotificationService(db)
    logger.info("Starting workflow automation...")

    results = {
        "expire_quotes": await expire_quotes(db, now),
        "convert_accepted_quotes": await convert_accepted_quotes(db, now, notifier),
        "update_order_status": await update_order_status(db, now, notifier),
        "complete_related_activities": await complete_related_activities(db, now),
        "update_customer_stats": await update_customer_stats(db, now),
    }
    logger.info("Workflow automation completed: %s", results)
    return {"success": all(r["success"] for r in results.values()), "results": results}
