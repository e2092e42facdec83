import logging
from typing import Optional

from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from leadscore.core.cache import CacheService
from leadscore.core.config import settings
from leadscore.core.database import get_db, get_session_factory
from leadscore.services.decay_scheduler import DecayScheduler
from leadscore.services.lead_scoring import ScoringEngine
from leadscore.services.notifier import StreamStatusChangeNotifier
from leadscore.services.rule_store import RuleStore
from leadscore.services.scoring_admin_service import ScoringAdminService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Redis client factory
# ---------------------------------------------------------------------------


async def get_redis_client() -> Optional[Redis]:
    """Get an async Redis client instance using connection pooling."""
    try:
        client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
        await client.ping()
        return client
    except Exception:
        logger.warning("Redis unavailable, snapshot cache and status stream disabled for this request")
        return None


# ---------------------------------------------------------------------------
# Cache-backed collaborators
# ---------------------------------------------------------------------------


async def get_cache_service(
    redis_client: Optional[Redis] = Depends(get_redis_client),
) -> CacheService:
    """Build a :class:`CacheService` backed by the shared Redis client."""
    return CacheService(redis_client=redis_client)


async def get_rule_store(
    cache: CacheService = Depends(get_cache_service),
) -> RuleStore:
    return RuleStore(cache=cache)


async def get_status_notifier(
    cache: CacheService = Depends(get_cache_service),
) -> StreamStatusChangeNotifier:
    return StreamStatusChangeNotifier(cache=cache)


# ---------------------------------------------------------------------------
# Service factory functions
# ---------------------------------------------------------------------------


async def get_scoring_engine(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    rule_store: RuleStore = Depends(get_rule_store),
    notifier: StreamStatusChangeNotifier = Depends(get_status_notifier),
) -> ScoringEngine:
    """Build a :class:`ScoringEngine`; it opens its own per-contact sessions."""
    return ScoringEngine(
        session_factory=session_factory,
        rule_store=rule_store,
        notifier=notifier,
    )


async def get_decay_scheduler(
    session_factory: async_sessionmaker = Depends(get_session_factory),
    engine: ScoringEngine = Depends(get_scoring_engine),
) -> DecayScheduler:
    return DecayScheduler(session_factory=session_factory, engine=engine)


async def get_scoring_admin_service(
    db: AsyncSession = Depends(get_db),
    rule_store: RuleStore = Depends(get_rule_store),
) -> ScoringAdminService:
    """Build a :class:`ScoringAdminService` bound to the request session."""
    return ScoringAdminService(db=db, rule_store=rule_store)
