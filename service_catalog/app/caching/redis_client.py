"""
Redis cache backend client for the Catalog Service.
"""

import asyncio
from typing import Any, Awaitable, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import CacheUnavailableError


class RedisCacheClient:
    """
    Thin get/set/delete wrapper around Redis with a bounded timeout per call.

    Every failure (timeout, connection, protocol) is logged and reported as a
    miss (``None``) or an unsuccessful write (``False``). Nothing is raised to
    callers except from ``start``.
    """

    def __init__(
        self,
        redis_url: str,
        *,
        timeout_seconds: float = 0.25,
        max_ttl: int = 3600,
        client: Optional[redis.Redis] = None,
    ):
        self.redis_url = redis_url
        self.timeout_seconds = timeout_seconds
        self.max_ttl = max_ttl
        self.logger = get_logger("catalog.cache.redis")
        self.redis: Optional[redis.Redis] = client

    def _get_redis(self) -> redis.Redis:
        """Get Redis connection, created lazily."""
        if self.redis is None:
            self.redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=self.timeout_seconds,
                socket_timeout=self.timeout_seconds,
                health_check_interval=30
            )
        return self.redis

    async def start(self):
        """Open the connection and verify it answers."""
        if not await self.ping():
            raise CacheUnavailableError(details={"redis_url": self.redis_url})
        self.logger.info("Redis cache client started")

    async def close(self):
        """Close the Redis connection."""
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache client closed")

    async def _bounded(self, awaitable: Awaitable[Any]) -> Any:
        """Await a Redis call within the client timeout."""
        return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)

    async def get(self, key: str) -> Optional[str]:
        """Return the cached string for key, or None on miss or failure."""
        try:
            value = await self._bounded(self._get_redis().get(key))
        except asyncio.TimeoutError:
            self.logger.warning("Cache get timed out", key=key, timeout_seconds=self.timeout_seconds)
            return None
        except (RedisError, OSError) as exc:
            self.logger.warning("Cache get error", key=key, error=str(exc))
            return None

        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> bool:
        """Write value with a TTL; returns False instead of raising."""
        if ttl_seconds <= 0:
            self.logger.warning("Rejected cache write with non-positive TTL", key=key, ttl=ttl_seconds)
            return False

        if ttl_seconds > self.max_ttl:
            self.logger.debug("Clamping cache TTL to ceiling", key=key, ttl=ttl_seconds, max_ttl=self.max_ttl)
            ttl_seconds = self.max_ttl

        try:
            await self._bounded(self._get_redis().set(key, value, ex=ttl_seconds))
        except asyncio.TimeoutError:
            self.logger.warning("Cache set timed out", key=key, timeout_seconds=self.timeout_seconds)
            return False
        except (RedisError, OSError) as exc:
            self.logger.warning("Cache set error", key=key, error=str(exc))
            return False

        self.logger.debug("Cached value", key=key, ttl=ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        """Delete key; returns False when the backend could not be reached."""
        try:
            await self._bounded(self._get_redis().delete(key))
        except asyncio.TimeoutError:
            self.logger.warning("Cache delete timed out", key=key, timeout_seconds=self.timeout_seconds)
            return False
        except (RedisError, OSError) as exc:
            self.logger.warning("Cache delete error", key=key, error=str(exc))
            return False
        return True

    async def ping(self) -> bool:
        """Check the backend answers PING."""
        try:
            return bool(await self._bounded(self._get_redis().ping()))
        except (asyncio.TimeoutError, RedisError, OSError) as exc:
            self.logger.warning("Cache ping failed", error=str(exc) or type(exc).__name__)
            return False
