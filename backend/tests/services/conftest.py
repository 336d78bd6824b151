"""Service test fixtures — async DB, scripted mServer and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - get_pohoda_client overridden with the real PohodaXmlClient on a MockTransport
    - db_manager patched for code that bypasses get_db (worker, readiness probe)

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for queue and route tests
      (PostgreSQL-specific features are not exercised here)
    - Settings built explicitly (no .env): payloads go to tmp_path, retry timings fixed
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import httpx
import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from pohoda_export.api.dependencies import get_pohoda_client
from pohoda_export.config import Settings, get_settings
from pohoda_export.db.base import Base
from pohoda_export.infrastructure.database import get_db, DatabaseSessionManager
from pohoda_export.infrastructure.pohoda_client import build_pohoda_client
from pohoda_export.models.order import Order, OrderItem
import pohoda_export.infrastructure.database as db_module
from pohoda_export.main import app

from tests.services.mock_pohoda import MockPohoda

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def db_manager(test_engine, test_session_factory):
    """DatabaseSessionManager wired to the test engine."""
    manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    manager.engine = test_engine
    manager._session_factory = test_session_factory
    return manager


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        pohoda_base_url="http://pohoda.test",
        pohoda_username="api",
        pohoda_password="secret",
        pohoda_application="CourseShop",
        pohoda_payload_dir=str(tmp_path / "payloads"),
        pohoda_export_worker_enabled=False,
        pohoda_export_worker_batch_size=10,
        pohoda_export_worker_concurrency=1,
        pohoda_max_retry_attempts=3,
        pohoda_retry_base_delay_seconds=30,
        pohoda_retry_max_delay_seconds=600,
    )


@pytest.fixture
def mock_pohoda():
    return MockPohoda()


@pytest.fixture
async def pohoda_client(settings, mock_pohoda):
    """Real PohodaXmlClient talking to the scripted mServer."""
    async with httpx.AsyncClient(transport=mock_pohoda.transport()) as http_client:
        yield build_pohoda_client(settings, http_client)


@pytest.fixture
async def client(db_manager, test_session_factory, settings, pohoda_client):
    """FastAPI test client with DB, settings and Pohoda dependencies overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_pohoda_client] = lambda: pohoda_client

    original_manager = db_module.db_manager
    db_module.db_manager = db_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


@pytest.fixture
def make_order(test_db):
    """Factory inserting a paid order with (title, qty, unit_net, vat, total) lines."""

    async def _make(
        order_id: int = 42,
        lines=(("Python basics", 1, "100.00", "21.00", "121.00"),
               ("SQL in practice", 2, "100.00", "42.00", "242.00")),
        total_price: str | None = None,
        total: str | None = None,
        customer_id: str | None = "cust-7",
    ) -> Order:
        items = [
            OrderItem(
                course_id=index,
                course_title=title,
                quantity=qty,
                unit_price_excl_vat=Decimal(unit),
                vat=Decimal(vat),
                total=Decimal(gross),
            )
            for index, (title, qty, unit, vat, gross) in enumerate(lines, start=1)
        ]
        gross_sum = sum((item.total for item in items), Decimal("0"))
        vat_sum = sum((item.vat for item in items), Decimal("0"))
        order = Order(
            id=order_id,
            customer_id=customer_id,
            created_at=datetime(2024, 2, 28, 9, 30, tzinfo=timezone.utc),
            price_excl_vat=gross_sum - vat_sum,
            vat=vat_sum,
            total=Decimal(total) if total is not None else gross_sum,
            total_price=Decimal(total_price) if total_price is not None else gross_sum,
            items=items,
        )
        test_db.add(order)
        await test_db.commit()
        return order

    return _make
