"""
Cache backend health monitor.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger
from .redis_client import RedisCacheClient

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_HEALTH_KEY = "dropdown:health-check"
DEFAULT_HEALTH_TTL = 10


class CacheHealthMonitor:
    """
    Round-trips a sentinel value through the cache backend.

    Health is advisory: the dropdown read/write path never consults it.
    """

    def __init__(
        self,
        cache: RedisCacheClient,
        *,
        key: str = DEFAULT_HEALTH_KEY,
        ttl_seconds: int = DEFAULT_HEALTH_TTL,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.key = key
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("catalog.cache.health")

        self.last_status: Optional[bool] = None
        self.last_checked_at: Optional[datetime] = None
        self._task: Optional[asyncio.Task] = None

    async def check_health(self) -> bool:
        """Write a sentinel, read it back, and compare."""
        sentinel = uuid.uuid4().hex
        # One key per check
        check_key = f"{self.key}:{sentinel}"
        healthy = False
        try:
            if await self.cache.set(check_key, sentinel, self.ttl_seconds):
                healthy = await self.cache.get(check_key) == sentinel
        except Exception as exc:
            self.logger.error("Cache health check raised", error=str(exc))
            healthy = False

        if not healthy:
            self.logger.warning("Cache health check failed", key=self.key)

        self.last_status = healthy
        self.last_checked_at = datetime.now(timezone.utc)
        if self.metrics:
            self.metrics.set_gauge("cache_backend_healthy", 1.0 if healthy else 0.0)
        return healthy

    def status(self) -> Dict[str, Any]:
        """Summary of the most recent check."""
        if self.last_status is None:
            state = "unknown"
        else:
            state = "ok" if self.last_status else "error"
        return {
            "status": state,
            "last_checked_at": self.last_checked_at.isoformat() if self.last_checked_at else None,
            "periodic": self._task is not None,
        }

    def start(self, interval_seconds: float) -> None:
        """Check periodically in the background."""
        if interval_seconds <= 0 or self._task is not None:
            return
        self._task = asyncio.create_task(self._run(interval_seconds))
        self.logger.info("Cache health monitor started", interval_seconds=interval_seconds)

    async def stop(self) -> None:
        """Stop the background checks."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Cache health monitor stopped")

    async def _run(self, interval_seconds: float) -> None:
        while True:
            await self.check_health()
            await asyncio.sleep(interval_seconds)
