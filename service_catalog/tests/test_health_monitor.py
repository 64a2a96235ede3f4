"""
Unit tests for the cache health monitor.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from service_catalog.app.caching.health_monitor import CacheHealthMonitor
from service_catalog.app.caching.redis_client import RedisCacheClient
from shared.test_helpers import InMemoryCacheClient


async def _hang(*args, **kwargs):
    await asyncio.sleep(1)


class SlowReadCache(InMemoryCacheClient):
    """Cache whose reads yield to the event loop before answering."""

    async def get(self, key):
        await asyncio.sleep(0.01)
        return await super().get(key)


class RecordingMetrics:
    def __init__(self):
        self.gauges = []

    def set_gauge(self, metric_name: str, value: float, **labels):
        self.gauges.append((metric_name, value))


class TestCacheHealthMonitor:
    """Test cases for CacheHealthMonitor."""

    @pytest.mark.asyncio
    async def test_round_trip_reports_healthy(self):
        cache = InMemoryCacheClient()
        metrics = RecordingMetrics()
        monitor = CacheHealthMonitor(cache, key="health", ttl_seconds=10, metrics=metrics)

        assert await monitor.check_health() is True

        key, value, ttl = cache.set_calls[0]
        assert key == f"health:{value}"
        assert ttl == 10
        assert cache.get_calls == [key]
        assert metrics.gauges == [("cache_backend_healthy", 1.0)]
        assert monitor.status()["status"] == "ok"

    @pytest.mark.asyncio
    async def test_each_check_uses_a_fresh_sentinel(self):
        cache = InMemoryCacheClient()
        monitor = CacheHealthMonitor(cache)

        await monitor.check_health()
        await monitor.check_health()

        assert cache.set_calls[0][1] != cache.set_calls[1][1]

    @pytest.mark.asyncio
    async def test_unreachable_backend_reports_unhealthy(self):
        cache = InMemoryCacheClient()
        cache.available = False
        metrics = RecordingMetrics()
        monitor = CacheHealthMonitor(cache, metrics=metrics)

        assert await monitor.check_health() is False
        assert metrics.gauges == [("cache_backend_healthy", 0.0)]
        assert monitor.status()["status"] == "error"

    @pytest.mark.asyncio
    async def test_concurrent_checks_on_shared_backend(self):
        cache = SlowReadCache()
        first = CacheHealthMonitor(cache, key="health")
        second = CacheHealthMonitor(cache, key="health")

        results = await asyncio.gather(first.check_health(), second.check_health())

        assert results == [True, True]
        assert cache.set_calls[0][0] != cache.set_calls[1][0]

    @pytest.mark.asyncio
    async def test_mismatched_read_reports_unhealthy(self):
        cache = AsyncMock()
        cache.set.return_value = True
        cache.get.return_value = "someone-else"
        monitor = CacheHealthMonitor(cache)

        assert await monitor.check_health() is False

    @pytest.mark.asyncio
    async def test_timeout_reports_unhealthy(self):
        redis_mock = AsyncMock()
        redis_mock.set.side_effect = _hang
        client = RedisCacheClient("redis://localhost:6379/0", timeout_seconds=0.05, client=redis_mock)
        monitor = CacheHealthMonitor(client)

        assert await monitor.check_health() is False
        redis_mock.get.assert_not_called()

    @pytest.mark.asyncio
    async def test_backend_exception_never_propagates(self):
        cache = AsyncMock()
        cache.set.side_effect = RuntimeError("boom")
        monitor = CacheHealthMonitor(cache)

        assert await monitor.check_health() is False

    @pytest.mark.asyncio
    async def test_sentinel_expires_with_ttl(self):
        cache = InMemoryCacheClient()
        monitor = CacheHealthMonitor(cache, key="health", ttl_seconds=10)

        await monitor.check_health()
        key = cache.set_calls[0][0]
        assert cache.has(key)

        cache.clock.advance(10)
        assert not cache.has(key)

    def test_status_before_first_check(self):
        monitor = CacheHealthMonitor(InMemoryCacheClient())

        status = monitor.status()

        assert status == {"status": "unknown", "last_checked_at": None, "periodic": False}

    @pytest.mark.asyncio
    async def test_periodic_check(self):
        cache = InMemoryCacheClient()
        monitor = CacheHealthMonitor(cache)

        monitor.start(0.01)
        try:
            for _ in range(50):
                if monitor.last_status is not None:
                    break
                await asyncio.sleep(0.01)
            assert monitor.status()["periodic"] is True
        finally:
            await monitor.stop()

        assert monitor.last_status is True
        assert monitor.status()["periodic"] is False
