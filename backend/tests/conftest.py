"""
ScanLedger Backend — Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets a fresh in-memory SQLite database (aiosqlite +
       StaticPool, so all sessions share the one connection), a seeded
       master catalog, a controllable warehouse clock and a ScanService wired
       to all of it. HTTP tests reach the real FastAPI app through an HTTPX
       AsyncClient with the database and service dependencies overridden.

Fixture Hierarchy:
    engine ─┬─ session_factory ─┬─ db_session ── catalog
            │                   └─ scan_service (clock, notifier)
            └─ test_client (scan_service, session_factory)
    make_token: mints bearer tokens signed with the test secret
"""

import os

# Override settings BEFORE any scanledger import; settings and the module
# engine are built at import time.
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["WAREHOUSE_TIMEZONE"] = "Asia/Jakarta"

from datetime import datetime, time, timedelta, timezone
from typing import AsyncGenerator, Optional
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from scanledger.database import Base, get_db_session
from scanledger.models.catalog import MasterCatalogEntry
from scanledger.models.scan import ScanEvent  # noqa: F401
from scanledger.models.stock import StockSummary  # noqa: F401
from scanledger.services.notifier import DashboardNotifier
from scanledger.services.recorder import ScanRecorder
from scanledger.services.scan_gate import ScanGate
from scanledger.services.scan_service import ScanService, get_scan_service
from scanledger.services.stock import StockAdjuster

JAKARTA = ZoneInfo("Asia/Jakarta")
TEST_SECRET = os.environ["JWT_SECRET"]

# Mid-morning on a working day, well clear of the maintenance window
DEFAULT_NOW = datetime(2024, 1, 15, 10, 0, 0, tzinfo=JAKARTA)


class FakeClock:
    """Callable clock the tests can move."""

    def __init__(self, now: datetime = DEFAULT_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine():
    """Fresh in-memory schema per test."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def catalog(db_session):
    """
    Seeds the master catalog.

    ABC123  one pair of ADIDAS M1, the standard end-to-end example
    BOX010  a carton of ten
    """
    entries = [
        MasterCatalogEntry(
            barcode="ABC123",
            brand="ADIDAS",
            color="RED",
            size="42",
            four_digit="0123",
            unit="PRS",
            quantity=1,
            production="LINE1",
            model="M1",
            model_code="M1",
            item="SHOE",
            stock=0,
        ),
        MasterCatalogEntry(
            barcode="BOX010",
            brand="ADIDAS",
            color="WHITE",
            size="40",
            four_digit="0010",
            unit="CTN",
            quantity=10,
            production="LINE-B",
            model="RUN-2",
            model_code="R2",
            item="SHOE",
            stock=0,
        ),
    ]
    db_session.add_all(entries)
    await db_session.commit()
    return {entry.barcode: entry for entry in entries}


# ══════════════════════════════════════════════════════════════════════════
# Services
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notifier() -> DashboardNotifier:
    return DashboardNotifier(queue_size=5)


@pytest.fixture
def scan_service(session_factory, clock, notifier) -> ScanService:
    """ScanService on the test database with a fixed clock and no retry waits."""
    return ScanService(
        gate=ScanGate(window_start=time(7, 30, 0), window_end=time(7, 30, 6), tz=JAKARTA),
        recorder=ScanRecorder(max_attempts=3, min_wait=0, max_wait=0),
        stock=StockAdjuster(session_factory=session_factory),
        notifier=notifier,
        clock=clock,
    )


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def make_token():
    """
    Returns a function minting signed bearer tokens.

    Usage:
        headers = {"Authorization": f"Bearer {make_token('budi', 'RECEIVING')}"}
    """

    def _make(
        username: str = "budi",
        position: str = "RECEIVING",
        description: str = "Dock 1",
        secret: str = TEST_SECRET,
        expires_in: Optional[timedelta] = timedelta(hours=1),
    ) -> str:
        claims = {"username": username, "position": position, "description": description}
        if expires_in is not None:
            claims["exp"] = datetime.now(timezone.utc) + expires_in
        return jwt.encode(claims, secret, algorithm="HS256")

    return _make


@pytest_asyncio.fixture
async def test_client(session_factory, scan_service):
    """
    HTTPX AsyncClient talking to the FastAPI app in-process.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from scanledger.main import app

    async def _db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = _db_session
    app.dependency_overrides[get_scan_service] = lambda: scan_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession for failure-path tests that need no real database.

    Usage:
        mock_db_session.execute = AsyncMock(side_effect=OperationalError(...))
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session
