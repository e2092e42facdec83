import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CacheService:
    """Best-effort Redis access for rule snapshots and status fan-out.

    Scoring correctness never depends on Redis.  With no client, or when
    a command fails, every method logs and returns ``None``; callers fall
    back to the database (snapshots) or to logging alone (notifications).
    """

    def __init__(self, redis_client: Optional[Redis] = None) -> None:
        self._redis: Optional[Redis] = redis_client

    @property
    def is_available(self) -> bool:
        """``True`` when a Redis client is configured."""
        return self._redis is not None

    async def _call(
        self, command: str, target: str, run: Callable[[Redis], Awaitable[T]]
    ) -> Optional[T]:
        if self._redis is None:
            return None
        try:
            return await run(self._redis)
        except Exception:
            logger.warning("Redis %s failed for %s", command, target)
            return None

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    async def get(self, key: str) -> Optional[str]:
        return await self._call("GET", key, lambda r: r.get(key))

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Store *value*, expiring after *ttl* seconds when given."""
        if ttl:
            await self._call("SETEX", key, lambda r: r.setex(key, ttl, value))
        else:
            await self._call("SET", key, lambda r: r.set(key, value))

    async def delete(self, key: str) -> None:
        await self._call("DELETE", key, lambda r: r.delete(key))

    async def get_json(self, key: str) -> Optional[Dict[str, Any]]:
        raw = await self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Invalid JSON in cache key %s", key)
            return None

    async def set_json(
        self, key: str, data: Dict[str, Any], ttl: Optional[int] = None
    ) -> None:
        """Store *data* as JSON; UUIDs and datetimes are stringified."""
        try:
            payload = json.dumps(data, default=str)
        except (TypeError, ValueError):
            logger.warning("Failed to serialise data for cache key %s", key)
            return
        await self.set(key, payload, ttl=ttl)

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------

    async def xadd(self, stream: str, fields: Dict[str, Any]) -> Optional[str]:
        """Append *fields* to *stream* and return the entry id.

        Stream values must be flat strings: ``None`` becomes ``""`` and
        everything else goes through ``str``.
        """
        flat = {k: "" if v is None else str(v) for k, v in fields.items()}
        return await self._call("XADD", stream, lambda r: r.xadd(stream, flat))
