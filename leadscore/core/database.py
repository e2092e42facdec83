from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool

from leadscore.core.config import settings


def _engine_options(url: str) -> dict:
    """Pool settings for the configured backend.

    SQLite (used by the test suite) manages its own pool and rejects
    ``pool_size`` / ``max_overflow``.
    """
    if url.startswith("sqlite"):
        return {}
    return {
        "poolclass": AsyncAdaptedQueuePool,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_pre_ping": True,
    }


# Async engine with connection pooling (QueuePool for production)
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    future=True,
    **_engine_options(settings.DATABASE_URL),
)

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    future=True,
)


async def get_db():
    """Dependency for FastAPI routes to get async session."""
    async with AsyncSessionLocal() as session:
        yield session


async def get_session_factory() -> async_sessionmaker:
    """Dependency returning the session factory.

    The scoring engine opens one session per attempt so that a retried
    per-contact transaction never reuses a failed session.
    """
    return AsyncSessionLocal
