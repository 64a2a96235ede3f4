"""
Dropdown reference-data cache for the Catalog Service.

Reads are cache-then-store: a hit on the aggregate key is returned without
touching the store; a miss (or any cache failure) fans out one fetch per
collection kind, assembles the payload and writes it back best-effort.
Prewarm always goes to the store and overwrites the aggregate entry.
"""

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

from shared.logging import get_logger, elapsed_ms
from shared.tracing import trace_operation
from ..models import (
    CacheWriteOutcome,
    DataSource,
    DropdownKind,
    DropdownPayload,
    DropdownResult,
    PrewarmResult,
    empty_payload,
)
from .redis_client import RedisCacheClient

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..persistence.postgres import ReferenceDataStore
    from shared.metrics import MetricsCollector


DEFAULT_DROPDOWN_CACHE_KEY = "dropdown:all"
DEFAULT_DROPDOWN_TTL = 600
DEFAULT_DEGRADED_TTL = 60
DEFAULT_STORE_TIMEOUT = 5.0


class DropdownCacheService:
    """Serves the aggregated dropdown payload from Redis with store fallback."""

    def __init__(
        self,
        cache: RedisCacheClient,
        store: "ReferenceDataStore",
        *,
        cache_key: str = DEFAULT_DROPDOWN_CACHE_KEY,
        ttl_seconds: int = DEFAULT_DROPDOWN_TTL,
        degraded_ttl_seconds: int = DEFAULT_DEGRADED_TTL,
        store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.store = store
        self.cache_key = cache_key
        self.ttl_seconds = ttl_seconds
        self.degraded_ttl_seconds = min(degraded_ttl_seconds, ttl_seconds)
        self.store_timeout_seconds = store_timeout_seconds
        self.metrics = metrics
        self.logger = get_logger("catalog.dropdown_cache")
        self._prewarm_task: Optional[asyncio.Task] = None

    async def get_all_dropdown_data(self) -> DropdownResult:
        """Return every dropdown collection, from cache when warm."""
        start = time.perf_counter()

        cached = await self._read_cached()
        if cached is not None:
            self._record_counter("dropdown_cache_requests_total", result="hit")
            self.logger.debug("Dropdown cache hit", key=self.cache_key, duration_ms=elapsed_ms(start))
            return DropdownResult(
                success=True,
                data=cached,
                message="Dropdown data retrieved from cache",
                source=DataSource.CACHE,
            )

        self._record_counter("dropdown_cache_requests_total", result="miss")
        payload, failed_kinds = await self._fetch_all_kinds()

        if len(failed_kinds) == len(DropdownKind):
            self.logger.error(
                "Dropdown store unavailable for every collection",
                failed_kinds=failed_kinds,
                duration_ms=elapsed_ms(start),
            )
            return DropdownResult(
                success=False,
                message="Failed to fetch dropdown data",
                failed_kinds=failed_kinds,
                cache_write=CacheWriteOutcome.SKIPPED,
            )

        ttl = self.degraded_ttl_seconds if failed_kinds else self.ttl_seconds
        cache_write = await self._write_payload(payload, ttl)

        self.logger.info(
            "Dropdown data loaded from store",
            failed_kinds=failed_kinds,
            cache_write=cache_write.value,
            ttl=ttl,
            duration_ms=elapsed_ms(start),
        )
        return DropdownResult(
            success=True,
            data=payload,
            message="Dropdown data retrieved successfully",
            source=DataSource.STORE,
            failed_kinds=failed_kinds,
            cache_write=cache_write,
        )

    async def get_dropdown_collection(self, kind: DropdownKind) -> DropdownResult:
        """Return a single collection, served from the aggregate entry."""
        result = await self.get_all_dropdown_data()
        if not result.success or result.data is None:
            return result

        return result.model_copy(update={
            "data": {kind.value: result.data.get(kind.value, [])},
            "failed_kinds": [k for k in result.failed_kinds if k == kind.value],
        })

    async def prewarm_cache(self) -> PrewarmResult:
        """
        Rebuild the aggregate entry from the store and overwrite the cache.

        The payload is assembled in full before anything is written, so a total
        store outage leaves an existing entry untouched. When only some kinds
        fail, their slices are carried over from the current entry if one is
        present; otherwise the payload is written with the degraded TTL.
        """
        start = time.perf_counter()
        payload, failed_kinds = await self._fetch_all_kinds()
        kinds_fetched = [kind.value for kind in DropdownKind if kind.value not in failed_kinds]

        if not kinds_fetched:
            self.logger.error("Dropdown cache prewarm failed: store unavailable", failed_kinds=failed_kinds)
            self._record_counter("dropdown_cache_prewarm_total", result="error")
            return PrewarmResult(
                success=False,
                message="Durable store unavailable; existing cache entry left untouched",
                failed_kinds=failed_kinds,
                cache_write=CacheWriteOutcome.SKIPPED,
                duration_ms=elapsed_ms(start),
            )

        carried_over: List[str] = []
        if failed_kinds:
            previous = await self._read_cached()
            for kind in failed_kinds:
                if previous and previous.get(kind):
                    payload[kind] = previous[kind]
                    carried_over.append(kind)

        ttl = self.ttl_seconds if len(carried_over) == len(failed_kinds) else self.degraded_ttl_seconds
        cache_write = await self._write_payload(payload, ttl)
        success = cache_write == CacheWriteOutcome.WRITTEN

        self._record_counter("dropdown_cache_prewarm_total", result="ok" if success else "error")
        self.logger.info(
            "Dropdown cache prewarm completed",
            success=success,
            kinds_fetched=kinds_fetched,
            failed_kinds=failed_kinds,
            carried_over=carried_over,
            ttl=ttl,
            duration_ms=elapsed_ms(start),
        )
        return PrewarmResult(
            success=success,
            message="Dropdown cache warmed" if success else "Dropdown cache write failed",
            kinds_fetched=kinds_fetched,
            failed_kinds=failed_kinds,
            carried_over_kinds=carried_over,
            ttl_seconds=ttl,
            cache_write=cache_write,
            duration_ms=elapsed_ms(start),
        )

    async def invalidate_cache(self) -> bool:
        """Drop the aggregate entry so the next read repopulates it."""
        deleted = await self.cache.delete(self.cache_key)
        if deleted:
            self.logger.info("Dropdown cache invalidated", key=self.cache_key)
        else:
            self.logger.warning("Dropdown cache invalidation failed", key=self.cache_key)
        return deleted

    def start_prewarm_schedule(self, interval_seconds: float) -> None:
        """Prewarm in the background every ``interval_seconds``."""
        if interval_seconds <= 0 or self._prewarm_task is not None:
            return
        self._prewarm_task = asyncio.create_task(self._prewarm_loop(interval_seconds))
        self.logger.info("Scheduled dropdown cache prewarm", interval_seconds=interval_seconds)

    async def stop_prewarm_schedule(self) -> None:
        """Cancel the background prewarm loop."""
        if self._prewarm_task is None:
            return
        self._prewarm_task.cancel()
        try:
            await self._prewarm_task
        except asyncio.CancelledError:
            pass
        self._prewarm_task = None

    async def _prewarm_loop(self, interval_seconds: float) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.prewarm_cache()
            except Exception as exc:
                self.logger.error("Scheduled dropdown cache prewarm raised", error=str(exc), exc_info=True)

    async def _read_cached(self) -> Optional[DropdownPayload]:
        """Read and decode the aggregate entry; anything unusable is a miss."""
        raw = await self.cache.get(self.cache_key)
        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
            data = envelope["data"]
            if not isinstance(data, dict):
                raise TypeError(f"expected object, got {type(data).__name__}")
        except (TypeError, KeyError, ValueError) as exc:
            self.logger.warning("Discarding undecodable dropdown cache entry", key=self.cache_key, error=str(exc))
            return None

        age_seconds = self._entry_age_seconds(envelope.get("cached_at"))
        if age_seconds is not None:
            self.logger.debug("Dropdown cache entry age", key=self.cache_key, age_seconds=age_seconds)

        payload = empty_payload()
        for kind in payload:
            records = data.get(kind)
            if isinstance(records, list):
                payload[kind] = records
        return payload

    async def _fetch_all_kinds(self) -> Tuple[DropdownPayload, List[str]]:
        """Fetch every kind concurrently; failed kinds become empty lists."""
        kinds = list(DropdownKind)
        outcomes = await asyncio.gather(
            *(self._fetch_kind(kind) for kind in kinds),
            return_exceptions=True,
        )

        payload = empty_payload()
        failed_kinds: List[str] = []
        for kind, outcome in zip(kinds, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(
                    "Dropdown store fetch failed",
                    kind=kind.value,
                    error=str(outcome) or type(outcome).__name__,
                )
                failed_kinds.append(kind.value)
                continue
            payload[kind.value] = list(outcome or [])

        return payload, failed_kinds

    async def _fetch_kind(self, kind: DropdownKind) -> List[Dict[str, Any]]:
        start = time.perf_counter()
        result = "error"
        try:
            with trace_operation("dropdown.store_fetch", kind=kind.value):
                records = await asyncio.wait_for(self.store.fetch(kind), timeout=self.store_timeout_seconds)
            result = "ok"
            return records
        finally:
            self._record_counter("dropdown_store_fetch_total", kind=kind.value, result=result)
            self._record_histogram(
                "dropdown_store_fetch_duration_seconds",
                time.perf_counter() - start,
                kind=kind.value,
            )

    async def _write_payload(self, payload: DropdownPayload, ttl: int) -> CacheWriteOutcome:
        """Best-effort write-back; the outcome is advisory only."""
        try:
            raw = json.dumps({"cached_at": datetime.now(timezone.utc).isoformat(), "data": payload})
        except (TypeError, ValueError) as exc:
            self.logger.warning("Failed to serialize dropdown payload", error=str(exc))
            outcome = CacheWriteOutcome.FAILED
        else:
            written = await self.cache.set(self.cache_key, raw, ttl)
            outcome = CacheWriteOutcome.WRITTEN if written else CacheWriteOutcome.FAILED

        self._record_counter("dropdown_cache_writes_total", result=outcome.value)
        return outcome

    @staticmethod
    def _entry_age_seconds(cached_at: Any) -> Optional[float]:
        if not isinstance(cached_at, str):
            return None
        try:
            parsed = datetime.fromisoformat(cached_at)
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return max(0.0, (datetime.now(timezone.utc) - parsed).total_seconds())

    def _record_counter(self, metric_name: str, **labels) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.increment_counter(metric_name, **labels)
        except Exception as exc:  # pragma: no cover
            self.logger.debug("Failed to record metric", metric=metric_name, error=str(exc))

    def _record_histogram(self, metric_name: str, value: float, **labels) -> None:
        if not self.metrics:
            return
        try:
            self.metrics.observe_histogram(metric_name, value, **labels)
        except Exception as exc:  # pragma: no cover
            self.logger.debug("Failed to record metric", metric=metric_name, error=str(exc))
