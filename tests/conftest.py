"""
Pytest configuration and shared fixtures for the order backend tests.

Provides in-memory SQLite (aiosqlite + StaticPool) for the durable store,
a deterministic clock, fake channel subscribers and a FastAPI test client.
"""
import os

# Test-only settings, applied before the app reads its configuration
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENV_MODE", "development")

from datetime import datetime, timedelta, timezone
from typing import Any, Generator, List

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.database import Base, DatabaseMonitor, build_engine, build_session_factory
from app.main import create_app
from app.schemas import OrderItem
from app.services.broadcast import BroadcastChannel
from app.services.orders import OrderService
from app.services.store import InMemoryOrderStore, OrderIdSequence, OrderStoreRouter, SqlOrderStore


MEMORY_DB_URL = "sqlite+aiosqlite:///:memory:"
UNREACHABLE_DB_URL = "sqlite+aiosqlite:////nonexistent-dir/qr-menu/orders.db"


# ── Helpers ──────────────────────────────────────────────────────────


class FakeClock:
    """Returns a strictly increasing UTC timestamp on every call."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


class FakeSubscriber:
    """Collects JSON frames like a WebSocket would; can be told to fail."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[Any] = []

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("connection closed")
        self.messages.append(data)

    @property
    def events(self) -> List[str]:
        return [m["event"] for m in self.messages]


class StubMonitor:
    """Connectivity monitor whose answer is set by the test."""

    def __init__(self, reachable: bool = True):
        self.reachable = reachable
        self.marked: List[str] = []
        self.last_error = None

    async def is_reachable(self) -> bool:
        return self.reachable

    def mark_unreachable(self, reason: str) -> None:
        self.reachable = False
        self.marked.append(reason)


def tea_items() -> List[OrderItem]:
    return [OrderItem(id="a", name="Tea", quantity=2, price=10)]


# ── Store Fixtures ───────────────────────────────────────────────────


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sequence() -> OrderIdSequence:
    return OrderIdSequence()


@pytest.fixture
def memory_store(sequence: OrderIdSequence) -> InMemoryOrderStore:
    return InMemoryOrderStore(sequence)


@pytest_asyncio.fixture
async def sql_engine():
    """In-memory SQLite engine with the schema created."""
    engine = build_engine(MEMORY_DB_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sql_store(sql_engine, sequence: OrderIdSequence) -> SqlOrderStore:
    return SqlOrderStore(build_session_factory(sql_engine), sequence)


# ── Service Fixtures ─────────────────────────────────────────────────


@pytest.fixture
def channel() -> BroadcastChannel:
    return BroadcastChannel()


@pytest.fixture
def service(memory_store: InMemoryOrderStore, channel: BroadcastChannel, clock: FakeClock) -> OrderService:
    """Order service running on the fallback store only."""
    return OrderService(OrderStoreRouter(fallback=memory_store), channel, clock=clock)


@pytest_asyncio.fixture
async def durable_service(sql_engine, sql_store, memory_store, channel, clock) -> OrderService:
    """Order service whose router prefers the SQLite store."""
    router = OrderStoreRouter(
        fallback=memory_store,
        durable=sql_store,
        monitor=DatabaseMonitor(sql_engine),
    )
    return OrderService(router, channel, clock=clock)


# ── API Fixtures ─────────────────────────────────────────────────────


@pytest.fixture
def test_client() -> Generator[TestClient, None, None]:
    """FastAPI test client backed by a fresh in-memory database."""
    app = create_app(Settings(database_url=MEMORY_DB_URL))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def fallback_client() -> Generator[TestClient, None, None]:
    """FastAPI test client whose database can never be reached."""
    app = create_app(Settings(database_url=UNREACHABLE_DB_URL, database_reprobe_seconds=3600))
    with TestClient(app) as client:
        yield client


@pytest.fixture
def tea_order_payload() -> dict:
    return {"items": [{"id": "a", "name": "Tea", "quantity": 2, "price": 10}], "total": 20}
