"""
Pytest configuration and shared fixtures for the Grocito policy tests.

Provides an in-memory SQLite session, an httpx client bound to the app,
fixed clock values and the default delivery policy.
"""
import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

# ── Test Configuration ───────────────────────────────────────────────
# Set before importing the app so Settings picks them up
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SIMULATION_MODE", "true")
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("CART_BACKEND", "sql")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:3000")

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, get_db
from domain.policy import DeliveryPolicy
from services.cart_store import InMemoryCartStore
from services.payment_service import SimulatedGateway

# ── Fixed Clock ──────────────────────────────────────────────────────
# Asia/Kolkata is UTC+05:30. 2024-01-10 is a Wednesday, 2024-01-13 a Saturday.

WEEKDAY_NOON = datetime(2024, 1, 10, 6, 30, tzinfo=timezone.utc)        # 12:00 IST, off-peak
WEEKDAY_MORNING_PEAK = datetime(2024, 1, 10, 2, 30, tzinfo=timezone.utc)  # 08:00 IST
WEEKDAY_EVENING_PEAK = datetime(2024, 1, 10, 13, 30, tzinfo=timezone.utc) # 19:00 IST
SATURDAY_NOON = datetime(2024, 1, 13, 6, 30, tzinfo=timezone.utc)       # 12:00 IST
SATURDAY_PEAK = datetime(2024, 1, 13, 3, 30, tzinfo=timezone.utc)       # 09:00 IST


@pytest.fixture
def policy() -> DeliveryPolicy:
    """The default delivery policy, independent of any .env file."""
    return DeliveryPolicy()


@pytest.fixture
def now() -> datetime:
    return WEEKDAY_NOON


# ── Database Fixtures ────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create an in-memory SQLite database session for each test.

    Uses StaticPool to allow in-memory SQLite with async SQLAlchemy.
    """
    import db_models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def memory_cart() -> InMemoryCartStore:
    return InMemoryCartStore()


@pytest.fixture
def gateway() -> SimulatedGateway:
    return SimulatedGateway()


# ── API Client ───────────────────────────────────────────────────────


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, gateway: SimulatedGateway):
    """
    httpx client bound to the app with the in-memory database.

    Overrides get_db and installs a fresh simulated gateway and memory cart.
    """
    from main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.state.payment_gateway = gateway
    app.state.memory_cart_store = InMemoryCartStore()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
