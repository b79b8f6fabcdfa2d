"""Domain enumerations for Bizabode automation.

All enums use the (str, Enum) pattern to ensure JSON serialization compatibility.
Columns store the ``.value``.
"""

from enum import Enum


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    SALES = "sales"
    WAREHOUSE = "warehouse"
    VIEWER = "viewer"


MANAGER_ROLES = (UserRole.ADMIN.value, UserRole.MANAGER.value)


class LicensePlan(str, Enum):
    TRIAL = "trial"
    BASIC = "basic"
    PROFESSIONAL = "professional"
    ENTERPRISE = "enterprise"


class LicenseStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"


class TaskType(str, Enum):
    FOLLOW_UP = "Follow-up"
    CALL = "Call"
    VISIT = "Visit"
    EMAIL = "Email"
    WHATSAPP = "WhatsApp"
    MEETING = "Meeting"
    REVIEW = "Review"
    OTHER = "Other"


class RelatedTo(str, Enum):
    """Entity kind a task points at via ``related_id``."""

    LEAD = "Lead"
    OPPORTUNITY = "Opportunity"
    CUSTOMER = "Customer"
    QUOTE = "Quote"
    ORDER = "Order"
    INVOICE = "Invoice"
    ACTIVITY = "Activity"
    GENERAL = "General"


class Priority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    OVERDUE = "Overdue"


OPEN_TASK_STATUSES = (TaskStatus.PENDING.value, TaskStatus.IN_PROGRESS.value)


class AutomationKind(str, Enum):
    """Tag identifying which automated rule created a task.

    Together with (related_to, related_id) this is the idempotence key for
    rule-created tasks.
    """

    ACTIVITY_FOLLOW_UP = "activity_follow_up"
    STALE_ORDER = "stale_order"
    STALE_CONTACT = "stale_contact"
    HIGH_RISK = "high_risk"
    OVERDUE_INVOICE = "overdue_invoice"


class ActivityType(str, Enum):
    CALL = "Call"
    EMAIL = "Email"
    MEETING = "Meeting"
    VISIT = "Visit"
    NOTE = "Note"
    WHATSAPP = "WhatsApp"
    OTHER = "Other"


class ActivityStatus(str, Enum):
    SCHEDULED = "Scheduled"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


FOLLOW_UP_REQUIRED = "Follow-up Required"


class CustomerStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    SUSPENDED = "Suspended"
    PROSPECT = "Prospect"


class QuoteStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PROCESSING = "Processing"
    DISPATCHED = "Dispatched"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class NotificationType(str, Enum):
    TASK_REMINDER = "task_reminder"
    TASK_CREATED = "task_created"
    TASK_OVERDUE = "task_overdue"
    CUSTOMER_REENGAGEMENT = "customer_reengagement"
    CUSTOMER_CONTACT = "customer_contact"
    CUSTOMER_HIGH_RISK = "customer_high_risk"
    OVERDUE_INVOICES = "overdue_invoices"
    LOW_STOCK = "low_stock"
    LICENSE_EXPIRY = "license_expiry"
    QUOTE_CONVERTED = "quote_converted"
    QUOTE_EXPIRED = "quote_expired"
    ORDER_DELIVERED = "order_delivered"
    DAILY_DIGEST = "daily_digest"
    WEEKLY_DIGEST = "weekly_digest"
    GENERAL = "general"
