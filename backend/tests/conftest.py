"""
Test configuration and fixtures
"""
import base64
import os
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import AsyncGenerator
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["ADMIN_USERNAME"] = "login"
os.environ["ADMIN_PASSWORD"] = "desk-test-password"


def _basic_auth_header(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("utf-8")
    return f"Basic {token}"


AUTH_HEADERS = {
    "Authorization": _basic_auth_header(
        os.environ["ADMIN_USERNAME"],
        os.environ["ADMIN_PASSWORD"],
    )
}

from auditdesk.db.database import Base, get_db
from auditdesk.main import app
from auditdesk.db.models import (
    Company, Audit, User,
    CompanyTier, AuditStatus, UserRole,
)
from auditdesk.services.audits import AuditLifecycleManager
from auditdesk.services.overdue import OverdueProcessor
from auditdesk.services.tiers import TierService


# Test database setup
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Wednesday
FIXED_NOW = datetime(2025, 1, 1, 9, 0, 0)


def fixed_clock() -> datetime:
    return FIXED_NOW


class RecordingNotificationGateway:
    """Collects notification requests instead of storing them"""

    def __init__(self):
        self.requests = []

    async def request(self, user_id, kind, related_company_id, scheduled_for, title="", message=""):
        self.requests.append({
            "user_id": user_id,
            "kind": kind,
            "related_company_id": related_company_id,
            "scheduled_for": scheduled_for,
            "title": title,
            "message": message,
        })


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create async engine for tests"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async_session = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def db_scope(db_session: AsyncSession):
    """Stand-in for session_scope that hands out the test session"""

    @asynccontextmanager
    async def scope():
        yield db_session

    return scope


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database session override"""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        ac.headers.update(AUTH_HEADERS)
        yield ac

    app.dependency_overrides.clear()
    app.state.job_coordinator = None


# === Services ===

@pytest.fixture
def notifications() -> RecordingNotificationGateway:
    return RecordingNotificationGateway()


@pytest.fixture
def manager(db_session: AsyncSession, notifications) -> AuditLifecycleManager:
    return AuditLifecycleManager.from_session(
        db_session,
        notifications=notifications,
        clock=fixed_clock,
        allow_unresolved_assignee=False,
        reminder_lead_days=1,
    )


@pytest.fixture
def tier_service(db_session: AsyncSession, notifications) -> TierService:
    return TierService.from_session(db_session, notifications=notifications, clock=fixed_clock)


@pytest.fixture
def overdue_processor(db_session: AsyncSession, notifications) -> OverdueProcessor:
    return OverdueProcessor.from_session(db_session, notifications=notifications, clock=fixed_clock)


# === Sample Data Fixtures ===

async def create_user(db: AsyncSession, username: str, role: UserRole = UserRole.TEAM_MEMBER) -> User:
    user = User(username=username, email=f"{username}@example.com", role=role)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_company(
    db: AsyncSession,
    name: str = "Acme Corp",
    age_days: int = 200,
    ad_spend: float = 1000.0,
    tier: CompanyTier = CompanyTier.TIER_3,
    created_by: uuid.UUID = None,
    now: datetime = FIXED_NOW,
) -> Company:
    company = Company(
        name=name,
        start_date=now - timedelta(days=age_days),
        ad_spend=ad_spend,
        tier=tier,
        created_by=created_by,
    )
    db.add(company)
    await db.commit()
    await db.refresh(company)
    return company


async def create_audit(
    db: AsyncSession,
    company_id: uuid.UUID,
    assigned_to: uuid.UUID,
    scheduled_date: datetime,
    status: AuditStatus = AuditStatus.SCHEDULED,
) -> Audit:
    audit = Audit(
        company_id=company_id,
        assigned_to=assigned_to,
        scheduled_date=scheduled_date,
        status=status,
        completed_date=scheduled_date if status == AuditStatus.COMPLETED else None,
    )
    db.add(audit)
    await db.commit()
    await db.refresh(audit)
    return audit


@pytest_asyncio.fixture
async def sample_ceo(db_session: AsyncSession) -> User:
    return await create_user(db_session, "ceo", UserRole.CEO)


@pytest_asyncio.fixture
async def sample_member(db_session: AsyncSession) -> User:
    return await create_user(db_session, "member", UserRole.TEAM_MEMBER)


@pytest_asyncio.fixture
async def sample_company(db_session: AsyncSession, sample_ceo: User) -> Company:
    """Established low-spend company (TIER_3)"""
    return await create_company(db_session, created_by=sample_ceo.id)


# === Mock Fixtures ===

@pytest.fixture
def mock_scheduler():
    """APScheduler stand-in: records add_job calls without running an event loop"""
    scheduler = MagicMock()
    scheduler.running = True
    scheduler.add_job.side_effect = lambda *args, **kwargs: MagicMock(next_run_time=None, id=kwargs.get("id"))
    return scheduler


@pytest.fixture
def mock_celery_task():
    """Mock Celery task for testing async task calls"""
    mock_task = MagicMock()
    mock_task.id = "test-task-id-123"
    mock_delay = MagicMock(return_value=mock_task)
    return mock_delay
