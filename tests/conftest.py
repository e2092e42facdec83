import os
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, AsyncGenerator, Dict, List, Optional
from unittest.mock import AsyncMock

# Settings are read at import time; point them at SQLite before any import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./leadscore_test.db")
os.environ.setdefault("DECAY_ENABLED", "false")

if TYPE_CHECKING:
    from leadscore.core.cache import CacheService

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from leadscore.core.database import get_db, get_session_factory
from leadscore.dependencies import get_redis_client
from leadscore.main import app
from leadscore.models import Base, Contact
from leadscore.repositories.scoring_model_repository import ScoringModelRepository
from leadscore.services.lead_scoring import ScoringEngine
from leadscore.services.rule_store import RuleStore


class FakeClock:
    """Deterministic replacement for ``utcnow`` that tests can advance."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database file per test, schema created from metadata."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'scoring.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rule_store() -> RuleStore:
    """Rule store with a private in-process snapshot cache and no Redis."""
    return RuleStore(local_snapshots={})


@pytest.fixture
def notifier() -> AsyncMock:
    notifier = AsyncMock()
    notifier.notify = AsyncMock()
    return notifier


@pytest.fixture
def scoring_engine(session_factory, rule_store, notifier, clock) -> ScoringEngine:
    return ScoringEngine(
        session_factory=session_factory,
        rule_store=rule_store,
        notifier=notifier,
        clock=clock,
        retry_backoff=0,
    )


@pytest.fixture
def make_model(session_factory):
    """Return a coroutine that inserts a scoring model with its rules."""

    async def _make(rules: List[Dict[str, Any]], **kwargs: Any):
        values = {
            "name": "Test Model",
            "is_active": True,
            "is_default": True,
            "qualified_threshold": 50,
            "customer_threshold": 100,
        }
        values.update(kwargs)
        rules = [{"conditions": [], **rule} for rule in rules]
        async with session_factory() as session:
            model = await ScoringModelRepository(session).create(rules=rules, **values)
            await session.commit()
            return model

    return _make


@pytest.fixture
def make_contact(session_factory):
    """Return a coroutine that inserts a contact (score 0, status new)."""

    async def _make(**kwargs: Any) -> Contact:
        values = {"first_name": "Ava", "last_name": "Walker", "email": "ava@example.com"}
        values.update(kwargs)
        async with session_factory() as session:
            contact = Contact(**values)
            session.add(contact)
            await session.commit()
            return contact

    return _make


@pytest.fixture
def fetch_contact(session_factory):
    """Return a coroutine that re-reads a contact in a fresh session."""

    async def _fetch(contact_id) -> Optional[Contact]:
        async with session_factory() as session:
            return await session.get(Contact, contact_id)

    return _fetch


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def async_client() -> AsyncGenerator[AsyncClient, None]:
    """Yield an ``httpx.AsyncClient`` wired to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def db_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose dependencies use the per-test SQLite database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_session_factory():
        return session_factory

    async def override_get_redis_client():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = override_get_session_factory
    app.dependency_overrides[get_redis_client] = override_get_redis_client
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Return an ``AsyncMock`` that behaves like ``redis.asyncio.Redis``."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.setex = AsyncMock()
    redis.delete = AsyncMock()
    redis.xadd = AsyncMock(return_value="1-0")
    redis.ping = AsyncMock()
    return redis


@pytest.fixture
def mock_cache(mock_redis) -> "CacheService":
    """Return a ``CacheService`` backed by the mock Redis client."""
    from leadscore.core.cache import CacheService

    return CacheService(redis_client=mock_redis)
