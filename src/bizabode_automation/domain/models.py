"""SQLAlchemy ORM models for the Bizabode automation subsystem.

All models use SQLite-compatible types:
- String(36) for UUID primary keys
- JSON for structured data (no JSONB)
- DateTime for timestamps, stored as naive UTC
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func

from bizabode_automation.infra.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Tenancy
# ---------------------------------------------------------------------------


class Company(Base):
    """Tenant. Every other record is scoped by ``company_id``."""

    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=False)
    license_key = Column(String(100))
    license_plan = Column(String(20), nullable=False, default="trial")
    license_expiry = Column(DateTime, nullable=True, index=True)
    license_status = Column(String(20), nullable=False, default="active")
    created_at = Column(DateTime, default=func.now())


class User(Base):
    """Application user. Admins and managers receive digests and alerts."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    role = Column(String(20), nullable=False, default="sales")  # admin, manager, sales, warehouse, viewer
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=func.now())


# ---------------------------------------------------------------------------
# CRM
# ---------------------------------------------------------------------------


class Customer(Base):
    __tablename__ = "customers"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    company_name = Column(String(255), nullable=False)
    email = Column(String(255))
    status = Column(String(20), nullable=False, default="Active", index=True)
    assigned_to = Column(String(36), ForeignKey("users.id"), nullable=True)
    last_order_date = Column(DateTime, nullable=True)
    last_contact_date = Column(DateTime, nullable=True)
    last_activity_date = Column(DateTime, nullable=True)
    total_orders = Column(Integer, nullable=False, default=0)
    total_value = Column(Float, nullable=False, default=0.0)
    average_order_value = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=func.now())


class Task(Base):
    """Unit of work assigned to a user. Never deleted, only status-transitioned.

    ``automation_kind`` is set on tasks created by a rule; together with
    (related_to, related_id) it identifies "the" open task for that rule.
    """

    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_automation_lookup", "related_to", "related_id", "automation_kind", "status"),
        Index("ix_tasks_reminder", "reminder_date", "reminder_sent"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    title = Column(String(500), nullable=False)
    description = Column(Text)
    type = Column(String(20), nullable=False, default="Follow-up")
    related_to = Column(String(20), nullable=False, default="General")
    related_id = Column(String(36), nullable=True)
    assigned_to = Column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    due_date = Column(DateTime, nullable=True, index=True)
    priority = Column(String(10), nullable=False, default="Medium")
    status = Column(String(20), nullable=False, default="Pending", index=True)
    reminder_date = Column(DateTime, nullable=True)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    is_recurring = Column(Boolean, nullable=False, default=False)
    next_due_date = Column(DateTime, nullable=True)
    notes = Column(Text)
    automation_kind = Column(String(30), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class Activity(Base):
    """Append-only activity log entry. Only ``status`` moves after creation."""

    __tablename__ = "activities"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False, default="Note")
    subject = Column(String(500), nullable=False)
    description = Column(Text)
    assigned_to = Column(String(36), ForeignKey("users.id"), nullable=True)
    status = Column(String(20), nullable=False, default="Scheduled", index=True)
    outcome = Column(String(50), nullable=True)
    next_follow_up_date = Column(DateTime, nullable=True)
    completed_date = Column(DateTime, nullable=True)
    related_customer_id = Column(String(36), nullable=True)
    related_order_id = Column(String(36), nullable=True, index=True)
    related_quote_id = Column(String(36), nullable=True)
    related_invoice_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, default=func.now())


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


class Quote(Base):
    __tablename__ = "quotes"
    __table_args__ = (UniqueConstraint("company_id", "quote_number", name="uq_quotes_company_number"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    quote_number = Column(String(50), nullable=False)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=True)
    customer_name = Column(String(255))
    customer_email = Column(String(255))
    customer_phone = Column(String(50))
    customer_address = Column(String(500))
    items = Column(JSON, default=list)
    subtotal = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False, default=0.0)
    tax_rate = Column(Float, nullable=False, default=0.0)
    discount = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, default="draft", index=True)
    valid_until = Column(DateTime, nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class SalesOrder(Base):
    """Sales order. ``stats_rolled_up`` is consumed once by the customer stat rollup."""

    __tablename__ = "sales_orders"
    __table_args__ = (UniqueConstraint("company_id", "order_number", name="uq_sales_orders_company_number"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    order_number = Column(String(50), nullable=False)
    quote_id = Column(String(36), ForeignKey("quotes.id"), nullable=True, unique=True)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=True)
    customer_name = Column(String(255))
    customer_email = Column(String(255))
    customer_phone = Column(String(50))
    customer_address = Column(String(500))
    items = Column(JSON, default=list)
    subtotal = Column(Float, nullable=False, default=0.0)
    tax = Column(Float, nullable=False, default=0.0)
    tax_rate = Column(Float, nullable=False, default=0.0)
    discount = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)
    order_date = Column(DateTime, nullable=True)
    payment_terms = Column(String(50))
    notes = Column(Text)
    status = Column(String(20), nullable=False, default="Pending", index=True)
    dispatched_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    stats_rolled_up = Column(Boolean, nullable=False, default=False)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now())


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("company_id", "invoice_number", name="uq_invoices_company_number"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    invoice_number = Column(String(50), nullable=False)
    customer_id = Column(String(36), ForeignKey("customers.id"), nullable=True)
    customer_name = Column(String(255))
    status = Column(String(20), nullable=False, default="draft", index=True)
    due_date = Column(DateTime, nullable=True)
    total = Column(Float, nullable=False, default=0.0)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=func.now())


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


class Item(Base):
    __tablename__ = "items"

    id = Column(String(36), primary_key=True, default=_uuid)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    sku = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    reorder_level = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    critical = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=func.now())


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    """In-app notification. Rows past ``expires_at`` are removed by the cleanup job."""

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read"),
        Index("ix_notifications_company_type", "company_id", "type"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(30), nullable=False, default="general")
    priority = Column(String(10), nullable=False, default="Medium")
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime, nullable=True)
    data = Column(JSON, nullable=True)
    related_task_id = Column(String(36), nullable=True)
    related_activity_id = Column(String(36), nullable=True)
    related_customer_id = Column(String(36), nullable=True)
    related_order_id = Column(String(36), nullable=True)
    related_invoice_id = Column(String(36), nullable=True)
    related_quote_id = Column(String(36), nullable=True)
    expires_at = Column(DateTime, nullable=True, index=True)
    created_at = Column(DateTime, default=func.now())
