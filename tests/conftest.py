"""
Shared test fixtures.

Repository tests use an in-memory SQLite database (via aiosqlite) with
the production models, so tests run without Docker / PostgreSQL / Redis.
``StaticPool`` keeps every session on the one in-memory connection.
Service tests use the in-memory port fakes from ``tests.fakes``.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.domain.pricing import FareCalculator
from src.infrastructure.database import Base, build_session_factory
from src.infrastructure import models  # noqa: F401  (registers tables)
from src.services.fare_estimator import FareEstimator
from tests.fakes import (
    TENANT_PRICING,
    FakeDriverIndex,
    FakeRideStore,
    FakeTenantStore,
    RecordingNotifier,
)

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


# ── Database ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Create tables, yield a session factory, then drop everything."""
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield build_session_factory(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


# ── Port fakes ────────────────────────────────────────────────────────


@pytest.fixture
def ride_store() -> FakeRideStore:
    return FakeRideStore()


@pytest.fixture
def tenant_store() -> FakeTenantStore:
    return FakeTenantStore(TENANT_PRICING)


@pytest.fixture
def driver_index() -> FakeDriverIndex:
    return FakeDriverIndex()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def estimator() -> FareEstimator:
    """Geodesic-only estimator at the platform VAT rate, no surge."""
    return FareEstimator(FareCalculator(0.135))
