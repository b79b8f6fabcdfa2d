"""SendGrid mailer for automation emails.

Uses asyncio.to_thread to wrap the synchronous SendGrid client. Every public
call returns a bool and never raises: a failed send is logged per recipient
and the calling job moves on.
"""

import asyncio
import logging

import sendgrid
from sendgrid.helpers.mail import Email, HtmlContent, Mail, To

logger = logging.getLogger(__name__)


def _get_config():
    """Get email config from app settings (lazy to avoid import-time issues)."""
    from bizabode_automation.app.config import get_settings
    s = get_settings()
    return s.sendgrid_api_key, s.mail_from, s.mail_from_name


def _get_client() -> sendgrid.SendGridAPIClient:
    """Return a configured SendGrid API client."""
    api_key, _, _ = _get_config()
    return sendgrid.SendGridAPIClient(api_key=api_key)


def _send(mail: Mail) -> bool:
    """Synchronous send via SendGrid. Returns True on success."""
    client = _get_client()
    response = client.send(mail)
    if response.status_code in (200, 201, 202):
        return True
    logger.error(
        "SendGrid returned status %s: %s",
        response.status_code,
        response.body,
    )
    return False


async def send_mail(to: str, subject: str, html: str) -> bool:
    """Send one HTML email.

    Args:
        to: Recipient email address.
        subject: Subject line.
        html: Inline-styled HTML body.

    Returns:
        True on success, False on failure or when the mailer is not configured.
    """
    api_key, mail_from, from_name = _get_config()
    if not api_key:
        logger.warning("SENDGRID_API_KEY not set, skipping email to %s: %s", to, subject)
        return False

    try:
        mail = Mail(
            from_email=Email(mail_from, from_name),
            to_emails=To(to),
            subject=subject,
            html_content=HtmlContent(html),
        )
        result = await asyncio.to_thread(_send, mail)
        if result:
            logger.info("Email sent to %s: %s", to, subject)
        return result
    except Exception:
        logger.exception("Failed to send email to %s: %s", to, subject)
        return False
