"""
Qota Compensation - Test Configuration

Pytest fixtures and configuration.
"""

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import qota.models  # noqa: F401
from qota.database import Base, get_async_session
from qota.services.calculators.metric_evaluator import LogicType, MetricDefinition, MultiplierTier
from qota.services.calculators.payout_split import PayoutSplitConfig
from qota.services.calculators.plan import CompensationPlan
from qota.services.calculators.renewal_multiplier import RenewalMultiplierTier
from main import app


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """File-backed SQLite database, fresh for each test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'qota_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session override."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

@pytest.fixture
def booking_split() -> PayoutSplitConfig:
    """75% at booking, 25% on collection."""
    return PayoutSplitConfig(booking_pct=Decimal("75"), year_end_pct=Decimal("0"))


@pytest.fixture
def renewal_tiers():
    return (
        RenewalMultiplierTier(1, 2, Decimal("1.0")),
        RenewalMultiplierTier(3, 5, Decimal("1.15")),
        RenewalMultiplierTier(6, 99, Decimal("1.3")),
    )


@pytest.fixture
def sales_plan(booking_split, renewal_tiers) -> CompensationPlan:
    """Two-metric plan: linear new-business ARR and gated closing ARR."""
    return CompensationPlan(
        name="FY2025 Account Executive",
        metrics=(
            MetricDefinition(
                name="New Software Booking ARR",
                weightage_pct=Decimal("40"),
                logic_type=LogicType.LINEAR,
                min_pct=Decimal("0"),
                max_pct=Decimal("150"),
                payout_split=booking_split,
            ),
            MetricDefinition(
                name="Closing ARR",
                weightage_pct=Decimal("60"),
                logic_type=LogicType.GATED,
                gate_threshold_pct=Decimal("85"),
                tiers=(
                    MultiplierTier(Decimal("85"), Decimal("100"), Decimal("0.8")),
                    MultiplierTier(Decimal("100"), Decimal("120"), Decimal("1.0")),
                    MultiplierTier(Decimal("120"), None, Decimal("1.4")),
                ),
                payout_split=booking_split,
            ),
        ),
        renewal_tiers=renewal_tiers,
    )


@pytest.fixture
def booking_month() -> date:
    return date(2025, 1, 1)
