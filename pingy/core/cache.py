"""
Redis cache for unread badge counts.

Without a configured or reachable Redis every operation is a no-op and
callers fall back to the database. Cache failures are logged and never
raised.
"""
import logging
from typing import Any, Awaitable, Callable, Optional

from redis import asyncio as aioredis
from redis.exceptions import RedisError

from pingy.config import settings
from pingy.utils.helpers import generate_cache_key

logger = logging.getLogger(__name__)


class RedisCache:
    """Thin wrapper over a pooled redis.asyncio client."""

    def __init__(self):
        self.redis: Optional[aioredis.Redis] = None

    async def connect(self) -> None:
        """Open the connection pool if REDIS_URL is set."""
        if not settings.redis_url:
            logger.info("No Redis URL provided - running without Redis cache")
            return

        client = aioredis.from_url(
            settings.redis_url,
            password=settings.redis_password or None,
            decode_responses=True,
            max_connections=50,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as e:
            logger.warning(f"Could not connect to Redis: {e} - running without Redis cache")
            await client.aclose()
            return

        self.redis = client
        logger.info("Connected to Redis successfully")

    async def disconnect(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    async def _run(self, op: str, key: str, call: Callable[[aioredis.Redis], Awaitable[Any]]) -> Any:
        if self.redis is None:
            return None
        try:
            return await call(self.redis)
        except RedisError as e:
            logger.warning(f"Redis {op} {key} failed: {e}")
            return None

    async def get_int(self, key: str) -> Optional[int]:
        """Read an integer value, or None on miss."""
        value = await self._run("GET", key, lambda r: r.get(key))
        return int(value) if value is not None else None

    async def set_int(self, key: str, value: int, ttl: int) -> bool:
        """Store an integer value that expires after ttl seconds."""
        return bool(await self._run("SETEX", key, lambda r: r.setex(key, ttl, value)))

    async def delete(self, key: str) -> bool:
        return bool(await self._run("DEL", key, lambda r: r.delete(key)))

    async def ping(self) -> bool:
        """Check that the connected Redis answers (readiness probe)."""
        return bool(await self._run("PING", "-", lambda r: r.ping()))


# Global cache instance
cache = RedisCache()


def _unread_key(user_id: str) -> str:
    return generate_cache_key("unread", "total", user_id)


async def cache_unread_count(user_id: str, count: int) -> bool:
    """Remember a user's unread total for a short while."""
    return await cache.set_int(_unread_key(user_id), count, ttl=settings.cache_unread_ttl)


async def get_cached_unread_count(user_id: str) -> Optional[int]:
    """Cached unread total, or None on miss."""
    return await cache.get_int(_unread_key(user_id))


async def invalidate_unread_count_cache(user_id: str) -> bool:
    """Drop the cached unread total after it changed."""
    return await cache.delete(_unread_key(user_id))
