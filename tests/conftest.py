"""Shared test infrastructure for the Bizabode automation test suite.

Provides:
- db_session: async SQLite in-memory session with all tables created
- mailer: AsyncMock standing in for the SendGrid mailer
- notifier: NotificationService wired to db_session and the mock mailer
- now: fixed naive-UTC "current time" for rule evaluation
- add: persist-and-commit helper for seeding rows
- make_company / make_user: tenant and user factories
"""

import uuid
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import Base first, then models to register all tables
from bizabode_automation.infra.database import Base

import bizabode_automation.domain.models  # noqa: F401

from bizabode_automation.domain.models import Company, User
from bizabode_automation.services.notification_service import NotificationService


# ---------------------------------------------------------------------------
# Database session fixture
# ---------------------------------------------------------------------------

@pytest.fixture
async def db_session():
    """Async SQLite in-memory session with all tables created.

    Creates a fresh engine + tables for each test, yields a session,
    then rolls back and tears down.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


# ---------------------------------------------------------------------------
# Notification fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mailer():
    """Mock mailer capturing (to, subject, html) calls; always succeeds."""
    return AsyncMock(return_value=True)


@pytest.fixture
def notifier(db_session, mailer):
    return NotificationService(db_session, mailer=mailer)


@pytest.fixture
def now():
    return datetime(2026, 3, 16, 12, 0, 0)


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def add(db_session):
    """Add rows and commit, so evaluator rollbacks never discard seed data.

    Usage:
        task = await add(Task(...))
    """
    async def _add(*rows):
        db_session.add_all(rows)
        await db_session.commit()
        return rows[0] if len(rows) == 1 else rows

    return _add


@pytest.fixture
def make_company(add, now):
    """Factory that creates a Company row.

    Usage:
        company = await make_company(license_expiry=now + timedelta(days=5))
    """
    async def _factory(
        name: str = "Acme Supplies",
        license_plan: str = "professional",
        license_key: str = "BIZ-TEST-0001",
        license_expiry: datetime | None = None,
    ) -> Company:
        return await add(
            Company(
                id=str(uuid.uuid4()),
                name=name,
                license_plan=license_plan,
                license_key=license_key,
                license_expiry=license_expiry if license_expiry is not None else now + timedelta(days=365),
            )
        )

    return _factory


@pytest.fixture
def make_user(add):
    """Factory that creates a User row.

    Usage:
        manager = await make_user(company.id, role="manager")
    """
    async def _factory(
        company_id: str,
        role: str = "sales",
        name: str = "Test User",
        email: str | None = None,
    ) -> User:
        user_id = str(uuid.uuid4())
        return await add(
            User(
                id=user_id,
                company_id=company_id,
                name=name,
                email=email or f"{user_id[:8]}@example.com",
                role=role,
            )
        )

    return _factory
