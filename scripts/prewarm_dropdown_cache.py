#!/usr/bin/env python3
"""
Prewarm the dropdown reference-data cache.

Mirrors the catalog service prewarm endpoint but can be executed from a deploy
hook, cron job or developer workstation. It reads every collection from
PostgreSQL and overwrites the aggregate Redis entry.
"""

import argparse
import asyncio
import json
from pathlib import Path
from typing import List, Optional
import sys

from shared.config import BaseConfig
from shared.logging import configure_logging
from service_catalog.app.caching.dropdown_cache import DropdownCacheService
from service_catalog.app.caching.health_monitor import CacheHealthMonitor
from service_catalog.app.caching.redis_client import RedisCacheClient
from service_catalog.app.persistence.postgres import PostgresReferenceStore


async def prewarm(
    *,
    config: BaseConfig,
    redis_url: str,
    postgres_dsn: str,
    ttl_seconds: int,
    check_health: bool,
) -> dict:
    """Execute the prewarm and return a summary."""
    cache_client = RedisCacheClient(
        redis_url,
        timeout_seconds=config.cache_timeout_seconds,
        max_ttl=config.cache_max_ttl,
    )
    store = PostgresReferenceStore(postgres_dsn, command_timeout=config.store_fetch_timeout_seconds)
    service = DropdownCacheService(
        cache_client,
        store,
        cache_key=config.dropdown_cache_key,
        ttl_seconds=ttl_seconds,
        degraded_ttl_seconds=config.dropdown_degraded_ttl,
        store_timeout_seconds=config.store_fetch_timeout_seconds,
    )

    summary: dict = {}
    await store.start()
    try:
        if check_health:
            monitor = CacheHealthMonitor(
                cache_client,
                key=config.health_check_key,
                ttl_seconds=config.health_check_ttl,
            )
            summary["cache_healthy"] = await monitor.check_health()

        result = await service.prewarm_cache()
        summary["prewarm"] = result.model_dump(mode="json")
    finally:
        await store.stop()
        await cache_client.close()

    return summary


def _parse_args(config: BaseConfig, argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Prewarm the dropdown reference-data cache.")
    parser.add_argument("--redis-url", default=config.redis_url, help="Redis connection URL")
    parser.add_argument("--postgres-dsn", default=config.postgres_dsn, help="PostgreSQL DSN for reference data")
    parser.add_argument("--ttl", type=int, default=config.dropdown_cache_ttl, help="TTL in seconds for the cache entry")
    parser.add_argument("--check-health", action="store_true", help="Check the cache backend before warming")
    parser.add_argument("--output", type=Path, default=None, help="Optional path to write JSON summary")
    return parser.parse_args(argv)


def main(config: Optional[BaseConfig] = None, argv: Optional[List[str]] = None) -> int:
    config = config or BaseConfig()
    args = _parse_args(config, argv)
    configure_logging("catalog", config.log_level)

    try:
        summary = asyncio.run(
            prewarm(
                config=config,
                redis_url=args.redis_url,
                postgres_dsn=args.postgres_dsn,
                ttl_seconds=args.ttl,
                check_health=args.check_health,
            )
        )
    except KeyboardInterrupt:
        return 130
    except Exception as exc:
        print(f"[dropdown-prewarm] failed: {exc}", file=sys.stderr)
        return 1

    print(json.dumps(summary, indent=2))

    if args.output:
        args.output.write_text(json.dumps(summary, indent=2))

    return 0 if summary["prewarm"]["success"] else 1


if __name__ == "__main__":
    raise SystemExit(main())
