"""HTML email bodies for automation notifications.

Each notification type that is emailed gets an inline-styled HTML body built
from the notification's ``data`` payload. Unknown types fall back to a
generic card colored by priority.
"""

from html import escape

# Urgency tier -> accent color
TIER_COLORS = {
    "low": "#3b82f6",
    "medium": "#d97706",
    "high": "#f59e0b",
    "critical": "#dc2626",
}

PRIORITY_COLORS = {
    "Low": "#6b7280",
    "Medium": "#3b82f6",
    "High": "#f59e0b",
    "Urgent": "#dc2626",
}

# Notification type -> frontend path used for the call-to-action link
DEEP_LINKS = {
    "task_reminder": "/crm/tasks",
    "task_created": "/crm/tasks",
    "task_overdue": "/crm/tasks",
    "customer_reengagement": "/crm/customers",
    "customer_contact": "/crm/customers",
    "customer_high_risk": "/crm/customers",
    "overdue_invoices": "/crm/invoices",
    "low_stock": "/inventory",
    "license_expiry": "/license",
    "quote_converted": "/crm/sales-orders",
    "quote_expired": "/crm/quotes",
    "order_delivered": "/crm/sales-orders",
    "daily_digest": "/crm/tasks",
    "weekly_digest": "/crm/customers",
}


def _format_money(value) -> str:
    try:
        return f"${float(value):,.2f}"
    except (ValueError, TypeError):
        return "$0.00"


def _link(frontend_url: str, notification_type: str) -> str:
    return frontend_url.rstrip("/") + DEEP_LINKS.get(notification_type, "/")


def _layout(heading: str, body: str, cta_url: str, cta_label: str) -> str:
    return f"""
<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"></head>
<body style="margin: 0; padding: 20px; font-family: Arial, sans-serif; background-color: #f3f4f6;">
    <div style="max-width: 600px; margin: 0 auto; background: #ffffff; border-radius: 8px; padding: 32px;">
        <h2 style="margin-top: 0; color: #111827;">{heading}</h2>
        <p style="color: #4b5563;">This is an automated alert from your Bizabode CRM system.</p>
        {body}
        <p style="margin-top: 24px;">
            <a href="{cta_url}" style="display: inline-block; background-color: #2563eb; color: #ffffff; text-decoration: none; padding: 10px 24px; border-radius: 6px;">
                {cta_label}
            </a>
        </p>
        <hr style="margin: 30px 0; border: none; border-top: 1px solid #e5e7eb;">
        <p style="color: #6b7280; font-size: 12px;">
            This is an automated message from Bizabode CRM.<br>
            To manage notification preferences, visit your account settings.
        </p>
    </div>
</body>
</html>
"""


def _item_rows(items: list[dict]) -> str:
    return "".join(
        f'<li style="padding: 2px 0;">{escape(str(i.get("name", "")))} (SKU: {escape(str(i.get("sku", "")))})'
        f' - {i.get("quantity", 0)} remaining (Reorder at: {i.get("reorder_level", 0)})</li>'
        for i in items
    )


def build_low_stock_html(recipient_name: str, data: dict, frontend_url: str) -> str:
    items = data.get("items") or []
    critical_items = data.get("critical_items") or []
    company_name = escape(str(data.get("company_name", "")))

    critical_block = ""
    if critical_items:
        critical_rows = "".join(
            f'<li style="padding: 2px 0;">{escape(str(i.get("name", "")))} (SKU: {escape(str(i.get("sku", "")))})'
            " - CRITICAL ITEM OUT OF STOCK</li>"
            for i in critical_items
        )
        critical_block = f"""
        <div style="background-color: #fee2e2; border: 1px solid #fca5a5; padding: 15px; border-radius: 5px; margin: 20px 0;">
            <h3 style="color: #dc2626; margin: 0 0 10px 0;">Critical items out of stock ({len(critical_items)})</h3>
            <ul style="margin: 0; padding-left: 20px;">{critical_rows}</ul>
        </div>
        """

    body = f"""
        <p style="color: #1f2937;">Hi {escape(recipient_name)},</p>
        {critical_block}
        <div style="background-color: #fef3c7; border: 1px solid #f59e0b; padding: 15px; border-radius: 5px; margin: 20px 0;">
            <h3 style="color: #d97706; margin: 0 0 10px 0;">Low stock items ({len(items)})</h3>
            <ul style="margin: 0; padding-left: 20px;">{_item_rows(items)}</ul>
        </div>
        <p style="color: #4b5563;">Please review your inventory and place orders as needed.</p>
    """
    return _layout(f"Low Stock Alert - {company_name}", body, _link(frontend_url, "low_stock"), "View Inventory")


def build_overdue_invoices_html(recipient_name: str, data: dict, frontend_url: str) -> str:
    invoices = data.get("invoices") or []
    company_name = escape(str(data.get("company_name", "")))

    rows = ""
    for inv in invoices:
        color = TIER_COLORS.get(inv.get("tier"), TIER_COLORS["low"])
        rows += f"""
            <tr>
                <td style="padding: 8px; border: 1px solid #ddd;">{escape(str(inv.get("invoice_number", "")))}</td>
                <td style="padding: 8px; border: 1px solid #ddd;">{escape(str(inv.get("customer_name") or ""))}</td>
                <td style="padding: 8px; border: 1px solid #ddd;">{_format_money(inv.get("total"))}</td>
                <td style="padding: 8px; border: 1px solid #ddd; color: {color}; font-weight: 600;">
                    {inv.get("days_overdue", 0)} days ({escape(str(inv.get("tier", "low")))})
                </td>
            </tr>
        """

    body = f"""
        <p style="color: #1f2937;">Hi {escape(recipient_name)},</p>
        <div style="background-color: #fee2e2; border: 1px solid #fca5a5; padding: 15px; border-radius: 5px; margin: 20px 0;">
            <h3 style="color: #dc2626; margin: 0 0 10px 0;">Overdue invoices ({len(invoices)})</h3>
            <p style="margin: 0 0 10px 0;"><strong>Total overdue amount: {_format_money(data.get("total_overdue"))}</strong></p>
            <table style="width: 100%; border-collapse: collapse;">
                <thead>
                    <tr style="background-color: #f5f5f5;">
                        <th style="padding: 8px; border: 1px solid #ddd;">Invoice #</th>
                        <th style="padding: 8px; border: 1px solid #ddd;">Customer</th>
                        <th style="padding: 8px; border: 1px solid #ddd;">Amount</th>
                        <th style="padding: 8px; border: 1px solid #ddd;">Overdue</th>
                    </tr>
                </thead>
                <tbody>{rows}</tbody>
            </table>
        </div>
        <p style="color: #4b5563;">Please follow up with customers to collect payment.</p>
    """
    return _layout(
        f"Overdue Invoices Alert - {company_name}", body, _link(frontend_url, "overdue_invoices"), "View Invoices"
    )


def build_license_expiry_html(recipient_name: str, data: dict, frontend_url: str) -> str:
    days = int(data.get("days_until_expiry", 0))
    urgency = data.get("urgency", "low")
    color = TIER_COLORS.get(urgency, TIER_COLORS["low"])
    plural = "s" if days != 1 else ""
    company_name = escape(str(data.get("company_name", "")))

    urgent_block = ""
    if urgency == "critical":
        urgent_block = f"""
        <div style="background-color: #fee2e2; border: 1px solid #fca5a5; padding: 15px; border-radius: 5px; margin: 20px 0;">
            <h3 style="color: #dc2626; margin: 0 0 10px 0;">Urgent action required</h3>
            <p style="margin: 0;">Your license expires in {days} day{plural}. Please renew immediately to avoid service interruption.</p>
        </div>
        """

    body = f"""
        <p style="color: #1f2937;">Hi {escape(recipient_name)},</p>
        <div style="background-color: {color}15; border: 1px solid {color}; padding: 15px; border-radius: 5px; margin: 20px 0;">
            <h3 style="color: {color}; margin: 0 0 10px 0;">License expiry warning</h3>
            <p style="margin: 0 0 5px 0;"><strong>Current plan:</strong> {escape(str(data.get("license_plan", "")))}</p>
            <p style="margin: 0 0 5px 0;"><strong>License key:</strong> {escape(str(data.get("license_key") or ""))}</p>
            <p style="margin: 0 0 5px 0;"><strong>Expiry date:</strong> {escape(str(data.get("expiry_date", "")))}</p>
            <p style="margin: 0; font-size: 18px; font-weight: bold; color: {color};">{days} day{plural} remaining</p>
        </div>
        {urgent_block}
        <p style="color: #4b5563;">To renew your license, contact Bizabode support or visit your license management page.</p>
    """
    return _layout(
        f"License Expiry Alert - {company_name}", body, _link(frontend_url, "license_expiry"), "Manage License"
    )


def build_generic_html(
    recipient_name: str,
    notification_type: str,
    title: str,
    message: str,
    priority: str,
    frontend_url: str,
) -> str:
    color = PRIORITY_COLORS.get(priority, PRIORITY_COLORS["Medium"])
    body = f"""
        <p style="color: #1f2937;">Hi {escape(recipient_name)},</p>
        <div style="border-left: 4px solid {color}; background-color: {color}15; padding: 15px; border-radius: 5px; margin: 20px 0;">
            <p style="margin: 0 0 6px 0; font-size: 12px; font-weight: 600; color: {color}; text-transform: uppercase;">{escape(priority)} priority</p>
            <p style="margin: 0; color: #1f2937;">{escape(message)}</p>
        </div>
    """
    return _layout(escape(title), body, _link(frontend_url, notification_type), "Open Bizabode")


def build_email(
    notification_type: str,
    recipient_name: str,
    title: str,
    message: str,
    data: dict | None,
    priority: str,
    frontend_url: str,
) -> tuple[str, str]:
    """Return (subject, html) for a notification email."""
    data = data or {}

    if notification_type == "low_stock":
        count = len(data.get("items") or [])
        return (
            f"Low Stock Alert - {count} items need attention",
            build_low_stock_html(recipient_name, data, frontend_url),
        )
    if notification_type == "overdue_invoices":
        return (
            f"Overdue Invoices Alert - {_format_money(data.get('total_overdue'))} outstanding",
            build_overdue_invoices_html(recipient_name, data, frontend_url),
        )
    if notification_type == "license_expiry":
        return (
            f"License Expires in {data.get('days_until_expiry')} Days - {data.get('company_name', '')}",
            build_license_expiry_html(recipient_name, data, frontend_url),
        )
    return title, build_generic_html(recipient_name, notification_type, title, message, priority, frontend_url)
