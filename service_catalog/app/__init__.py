"""
Catalog Service package for the Storefront platform.

The catalog service serves reference data (attributes, brands, sizes,
categories) used to populate selection UI in the storefront, admin and
vendor consoles:
- Cache-then-store reads backed by Redis with a single TTL policy
- Proactive cache warming on startup, on schedule or on demand
- Manual invalidation for administrative write paths
- Cache backend health probing for liveness/readiness checks

Structure:
- app.main: FastAPI app, routes, and startup/shutdown wiring.
- app.models: Collection kinds and result models.
- app.caching: Redis client, dropdown cache service, health monitor.
- app.persistence: Durable store adapters for reference data.
"""
