"""Shared pytest fixtures for service, store, and API tests."""

import datetime
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient

from shortlinks.audit import AuditLog
from shortlinks.config import Settings
from shortlinks.database import build_engine
from shortlinks.dependencies import ServiceManager
from shortlinks.main import app
from shortlinks.service import ShortLinkService
from shortlinks.sql_store import SQLAlchemyLinkStore
from shortlinks.store import InMemoryLinkStore

START = datetime.datetime(2026, 1, 1, 12, 0, 0, tzinfo=datetime.timezone.utc)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, now: datetime.datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime.datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += datetime.timedelta(**delta)


class FixedGeolocator:
    def __init__(self, country: str | None = "IN") -> None:
        self.country = country
        self.lookups: list[str | None] = []

    async def lookup_country(self, ip_address: str | None) -> str | None:
        self.lookups.append(ip_address)
        return self.country


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        STORE_BACKEND="memory",
        BASE_URL="http://sho.rt",
        GEOIP_ENABLED=False,
        LOG_LEVEL="DEBUG",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def geolocator() -> FixedGeolocator:
    return FixedGeolocator()


@pytest.fixture
def memory_store() -> InMemoryLinkStore:
    return InMemoryLinkStore()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Mock Redis client."""
    redis_client = AsyncMock(spec=redis.Redis)
    redis_client.ping = AsyncMock(return_value=True)
    redis_client.xadd = AsyncMock(return_value="1700000000000-0")
    redis_client.aclose = AsyncMock(return_value=None)
    return redis_client


@pytest.fixture
def audit(mock_redis: AsyncMock) -> AuditLog:
    return AuditLog(mock_redis, stream_key="audit_log", maxlen=100)


@pytest.fixture
def service(memory_store, settings, audit, geolocator, clock) -> ShortLinkService:
    return ShortLinkService(memory_store, settings=settings, audit=audit, geolocator=geolocator, clock=clock)


@pytest_asyncio.fixture(scope="function")
async def sql_store(tmp_path: Path) -> AsyncGenerator[SQLAlchemyLinkStore, None]:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'links.db'}")
    store = SQLAlchemyLinkStore(engine, timeout=10.0)
    await store.open()
    yield store
    await store.close()


@pytest_asyncio.fixture(scope="function")
async def manager(settings, memory_store, mock_redis, geolocator, clock) -> AsyncGenerator[ServiceManager, None]:
    service_manager = ServiceManager()
    await service_manager.initialize(
        settings=settings,
        store=memory_store,
        cache_writer=mock_redis,
        geolocator=geolocator,
        clock=clock,
    )
    yield service_manager
    await service_manager.cleanup()


@pytest_asyncio.fixture(scope="function")
async def client(manager: ServiceManager) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app, client=("203.0.113.7", 51234))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
