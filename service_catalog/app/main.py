"""
Catalog service for the Storefront platform.

Exposes the dropdown reference-data cache to storefront, admin and vendor
front-ends.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.errors import CacheUnavailableError, StorefrontException
from .caching.dropdown_cache import DropdownCacheService
from .caching.health_monitor import CacheHealthMonitor
from .caching.redis_client import RedisCacheClient
from .models import DropdownKind
from .persistence.postgres import PostgresReferenceStore, ReferenceDataStore


class CatalogService(BaseService):
    """Catalog service implementation."""

    def __init__(
        self,
        cache_client: Optional[RedisCacheClient] = None,
        store: Optional[ReferenceDataStore] = None,
    ):
        super().__init__("catalog", 8020)
        self.cache_client = cache_client or RedisCacheClient(
            self.config.redis_url,
            timeout_seconds=self.config.cache_timeout_seconds,
            max_ttl=self.config.cache_max_ttl,
        )
        self.store = store or PostgresReferenceStore(
            self.config.postgres_dsn,
            command_timeout=self.config.store_fetch_timeout_seconds,
        )
        self.dropdown_cache = DropdownCacheService(
            self.cache_client,
            self.store,
            cache_key=self.config.dropdown_cache_key,
            ttl_seconds=self.config.dropdown_cache_ttl,
            degraded_ttl_seconds=self.config.dropdown_degraded_ttl,
            store_timeout_seconds=self.config.store_fetch_timeout_seconds,
            metrics=self.metrics,
        )
        self.health_monitor = CacheHealthMonitor(
            self.cache_client,
            key=self.config.health_check_key,
            ttl_seconds=self.config.health_check_ttl,
            metrics=self.metrics,
        )

        @self.app.on_event("startup")
        async def _startup():
            await self.startup()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.shutdown()

        self._setup_catalog_routes()

    async def startup(self):
        """Connect backends, then warm the dropdown cache."""
        try:
            await self.cache_client.start()
        except CacheUnavailableError as exc:
            # Reads fall back to the store until Redis answers again
            self.logger.warning("Cache backend unavailable at startup", error=exc.message, **exc.details)

        try:
            await self.store.start()
        except StorefrontException as exc:
            # Warm cache entries keep serving; the store reconnects on first fetch
            self.logger.warning("Reference store unavailable at startup", code=exc.code, error=exc.message)

        self.health_monitor.start(self.config.health_check_interval_seconds)

        if self.config.prewarm_on_startup:
            result = await self.dropdown_cache.prewarm_cache()
            if not result.success:
                self.logger.warning("Startup prewarm did not populate the cache", message=result.message)

        self.dropdown_cache.start_prewarm_schedule(self.config.prewarm_interval_seconds)

    async def shutdown(self):
        """Stop background tasks and close backends."""
        await self.dropdown_cache.stop_prewarm_schedule()
        await self.health_monitor.stop()
        await self.store.stop()
        await self.cache_client.close()

    def _setup_catalog_routes(self):
        """Set up catalog-specific routes."""

        @self.app.get("/healthz")
        async def healthz():
            """Lightweight liveness endpoint with dependency status."""
            dependencies = await self._check_dependencies()
            status = "ok" if all(value == "ok" for value in dependencies.values()) else "error"
            return {
                "service": "catalog",
                "status": status,
                "dependencies": dependencies,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }

        @self.app.get("/api/v1/dropdown")
        async def get_all_dropdown_data():
            """Return every dropdown collection."""
            result = await self.dropdown_cache.get_all_dropdown_data()
            return JSONResponse(
                status_code=200 if result.success else 503,
                content=result.model_dump(mode="json"),
            )

        @self.app.get("/api/v1/dropdown/{kind}")
        async def get_dropdown_collection(kind: str):
            """Return a single dropdown collection."""
            result = await self.dropdown_cache.get_dropdown_collection(DropdownKind.parse(kind))
            return JSONResponse(
                status_code=200 if result.success else 503,
                content=result.model_dump(mode="json"),
            )

        @self.app.post("/api/v1/dropdown/prewarm")
        async def prewarm_cache():
            """Rebuild the dropdown cache from the store (operational endpoint)."""
            result = await self.dropdown_cache.prewarm_cache()
            return JSONResponse(
                status_code=200 if result.success else 503,
                content=result.model_dump(mode="json"),
            )

        @self.app.delete("/api/v1/dropdown/cache")
        async def invalidate_cache():
            """Drop the dropdown cache entry."""
            invalidated = await self.dropdown_cache.invalidate_cache()
            return JSONResponse(
                status_code=200 if invalidated else 503,
                content={
                    "success": invalidated,
                    "message": "Dropdown cache invalidated" if invalidated else "Cache backend unavailable",
                },
            )

        @self.app.get("/api/v1/cache/health")
        async def cache_health():
            """Check the cache backend now and report the result."""
            healthy = await self.health_monitor.check_health()
            return JSONResponse(
                status_code=200 if healthy else 503,
                content={"healthy": healthy, **self.health_monitor.status()},
            )

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check Redis and PostgreSQL reachability."""
        return {
            "redis": "ok" if await self.cache_client.ping() else "error",
            "postgres": "ok" if await self.store.ping() else "error",
        }


def create_app():
    """Create FastAPI application."""
    service = CatalogService()
    return service.app


if __name__ == "__main__":
    service = CatalogService()
    service.run()
