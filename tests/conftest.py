"""Pytest configuration and fixtures for async testing."""
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from credit_ledger.auth.jwt import Identity
from credit_ledger.config import Settings
from credit_ledger.models import Base, Plan, Team
from tests.utils.factories import PlanFactory, TeamFactory
from tests.utils.fakes import FakeAgentPlatform, FakeGateway, FakeNotifier


@pytest.fixture(scope="function")
def test_settings() -> Settings:
    """Settings with a zero polling interval and no external URLs."""
    return Settings(
        invoice_poll_interval_seconds=0,
        invoice_poll_max_attempts=3,
        asaas_webhook_token=None,
        analytics_webhook_url=None,
    )


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """
    Session factory over a fresh SQLite file per test.

    A file (not :memory:) so the workers' own sessions see committed data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path}/test.db", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.

    Yields:
        AsyncSession: Database session for testing
    """
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(scope="function")
def agent_platform() -> FakeAgentPlatform:
    return FakeAgentPlatform()


@pytest.fixture(scope="function")
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest_asyncio.fixture(scope="function")
async def test_plan(db_session: AsyncSession) -> Plan:
    """Pro plan: R$ 297.00 per month, 5000 credits."""
    plan = Plan(**PlanFactory.create({"name": "Pro", "monthly_price": Decimal("297.00"), "credit_limit": 5000}))
    db_session.add(plan)
    await db_session.commit()
    await db_session.refresh(plan)
    return plan


@pytest_asyncio.fixture(scope="function")
async def test_team(db_session: AsyncSession) -> Team:
    """Team with a tax id and no gateway customer yet."""
    team = Team(**TeamFactory.create())
    db_session.add(team)
    await db_session.commit()
    await db_session.refresh(team)
    return team


@pytest_asyncio.fixture(scope="function")
async def subscribed_team(db_session: AsyncSession, test_plan: Plan) -> Team:
    """Team already linked to a gateway customer and subscription on the Pro plan."""
    team = Team(
        **TeamFactory.create(
            {
                "gateway_customer_id": "cus_000005113026",
                "gateway_subscription_id": "sub_VXJBYgP2u0eO",
                "plan_id": test_plan.id,
                "plan_credit_limit": test_plan.credit_limit,
                "base_price": test_plan.monthly_price,
            }
        )
    )
    db_session.add(team)
    await db_session.commit()
    await db_session.refresh(team)
    return team


@pytest_asyncio.fixture(scope="function")
async def async_client(
    session_factory: async_sessionmaker,
    test_team: Team,
    gateway: FakeGateway,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client with database, identity and gateway overrides.

    The caller is authenticated as a member of test_team.
    """
    from credit_ledger.api.deps import get_analytics_forwarder, get_current_identity, get_db, get_gateway
    from credit_ledger.integrations.analytics_forwarder import AnalyticsForwarder
    from credit_ledger.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def override_identity() -> Identity:
        return Identity(user_id="user_123", email=test_team.billing_email, team_id=test_team.id)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_identity] = override_identity
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_analytics_forwarder] = lambda: AnalyticsForwarder(
        Settings(analytics_webhook_url=None)
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
