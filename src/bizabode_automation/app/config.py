"""Application configuration via Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings

# Resolve .env from the project root regardless of CWD
_ENV_FILE = Path(__file__).resolve().parents[3] / ".env"


class Settings(BaseSettings):
    """Central configuration loaded from environment variables / .env file."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./bizabode_automation.db"

    # Mailer (SendGrid)
    sendgrid_api_key: str = ""
    mail_from: str = "noreply@bizabode.com"
    mail_from_name: str = "Bizabode CRM"

    # Deep links inside notification emails
    frontend_url: str = "http://localhost:3000"

    # Scheduler
    cron_timezone: str = "UTC"
    scheduler_enabled: bool = True
    reminders_cron: str = "0 * * * *"
    workflow_cron: str = "15 * * * *"
    inactive_clients_cron: str = "0 7 * * *"
    low_stock_cron: str = "0 8 * * *"
    overdue_invoices_cron: str = "0 9 * * *"
    license_check_cron: str = "0 10 * * *"
    notification_cleanup_cron: str = "0 3 * * *"

    # Notifications
    notification_ttl_days: int = 30
    # Weekday of the customer health digest (Monday=0)
    customer_health_digest_weekday: int = 0

    # Internal trigger endpoints
    internal_token: str = "change-me-in-production"

    # General
    debug: bool = True

    model_config = {"env_file": str(_ENV_FILE), "env_file_encoding": "utf-8", "extra": "ignore"}

    @property
    def job_crons(self) -> dict[str, str]:
        """Cron expression per registered job name."""
        return {
            "follow-up-reminders": self.reminders_cron,
            "workflow-automation": self.workflow_cron,
            "inactive-clients": self.inactive_clients_cron,
            "low-stock": self.low_stock_cron,
            "overdue-invoices": self.overdue_invoices_cron,
            "license-check": self.license_check_cron,
            "notification-cleanup": self.notification_cleanup_cron,
        }


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance."""
    return Settings()
