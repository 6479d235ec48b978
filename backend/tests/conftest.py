"""Pytest configuration and fixtures for async testing."""
import time
from typing import Any, AsyncGenerator, Awaitable, Callable, Generator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import plangate.models  # noqa: F401  registers every table on the metadata
from plangate.database import Base, get_db
from plangate.main import app
from plangate.models.plan import Plan, PlanTier
from plangate.models.subscription import Subscription, SubscriptionStatus
from plangate.models.user import User, UserRole
from plangate.services.plan_catalog import PlanCatalog

from utils.factories import PlanFactory, SubscriptionFactory, UserFactory

# In-memory SQLite shared across the single pooled connection
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture(autouse=True)
def server_timezone(monkeypatch) -> Generator[Callable[[str], None], None, None]:
    """
    Run every test with the server's local time zone set to UTC.

    Yields a setter so a test can switch to another zone, e.g.
    ``server_timezone("Asia/Tokyo")``.
    """

    def _set(name: str) -> None:
        monkeypatch.setenv("TZ", name)
        time.tzset()

    _set("UTC")
    yield _set
    monkeypatch.undo()
    time.tzset()


@pytest_asyncio.fixture(scope="function")
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a fresh in-memory database for each test.

    pysqlite's implicit transaction handling is switched off so SAVEPOINTs
    behave like they do on PostgreSQL.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    Database session for one test.

    Yields:
        AsyncSession: Database session for testing
    """
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def default_plans(db_session: AsyncSession) -> dict[PlanTier, Plan]:
    """Seeded FREE, PRO and ENTERPRISE plans keyed by tier."""
    await PlanCatalog(db_session).seed_default_plans()
    await db_session.commit()
    return {plan.name: plan for plan in await PlanCatalog(db_session).list_plans()}


@pytest.fixture
def create_plan(db_session: AsyncSession) -> Callable[..., Awaitable[Plan]]:
    """Factory fixture inserting a plan with custom features."""

    async def _create(tier: PlanTier = PlanTier.FREE, **features: Any) -> Plan:
        data = PlanFactory.create({"name": tier})
        data["features"] = {**data["features"], **features}
        if "maxRequestsPerMonth" in features:
            data["max_requests_per_month"] = features["maxRequestsPerMonth"]

        plan = Plan(**data)
        db_session.add(plan)
        await db_session.commit()
        return plan

    return _create


@pytest.fixture
def create_user(db_session: AsyncSession) -> Callable[..., Awaitable[User]]:
    """Factory fixture inserting a user, optionally with a subscription."""

    async def _create(
        plan: Plan | None = None,
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        role: UserRole = UserRole.USER,
        email: str | None = None,
    ) -> User:
        overrides: dict[str, Any] = {"role": role}
        if email:
            overrides["email"] = email
        user = User(**UserFactory.create(overrides))
        db_session.add(user)

        if plan is not None:
            db_session.add(
                Subscription(
                    **SubscriptionFactory.create(
                        {"user_id": user.id, "plan_id": plan.id, "status": status}
                    )
                )
            )

        await db_session.commit()
        return user

    return _create


@pytest_asyncio.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client bound to the test database session.

    Yields:
        AsyncClient: Async HTTP client for API testing
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session
        await db_session.flush()

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
