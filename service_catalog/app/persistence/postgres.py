"""
PostgreSQL persistence layer for catalog reference data.
"""

import asyncio
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional

import asyncpg

from shared.logging import get_logger
from shared.errors import StorefrontException, StoreUnavailableError
from ..models import DropdownKind


STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, asyncio.TimeoutError, OSError)


class ReferenceDataStore(ABC):
    """
    System of record for dropdown reference data.

    One fetch coroutine per collection kind, each returning the full ordered
    collection or raising. Implementations hold no caching logic.
    """

    @abstractmethod
    async def fetch_attributes(self) -> List[Dict[str, Any]]:
        """Return all product attributes."""

    @abstractmethod
    async def fetch_brands(self) -> List[Dict[str, Any]]:
        """Return all brands."""

    @abstractmethod
    async def fetch_sizes(self) -> List[Dict[str, Any]]:
        """Return all sizes."""

    @abstractmethod
    async def fetch_categories(self) -> List[Dict[str, Any]]:
        """Return all categories."""

    async def start(self):
        """Open connections; stores without any need not override."""

    async def stop(self):
        """Release connections."""

    async def ping(self) -> bool:
        """Whether the store is reachable."""
        return True

    def fetcher(self, kind: DropdownKind) -> Callable[[], Awaitable[List[Dict[str, Any]]]]:
        """Resolve the fetch coroutine for a kind (``fetch_<kind>``)."""
        return getattr(self, f"fetch_{kind.value}")

    async def fetch(self, kind: DropdownKind) -> List[Dict[str, Any]]:
        """Fetch the collection for a kind."""
        return await self.fetcher(kind)()


class PostgresReferenceStore(ReferenceDataStore):
    """asyncpg-backed reference data store."""

    QUERIES = {
        DropdownKind.ATTRIBUTES: """
            SELECT id, name, slug, input_type, values
            FROM attributes
            ORDER BY name
        """,
        DropdownKind.BRANDS: """
            SELECT id, name, slug, image_id
            FROM brands
            ORDER BY name
        """,
        DropdownKind.SIZES: """
            SELECT id, label, value, sort_order
            FROM sizes
            ORDER BY sort_order, label
        """,
        DropdownKind.CATEGORIES: """
            SELECT id, name, slug, parent_id, level
            FROM categories
            WHERE is_active
            ORDER BY level, name
        """,
    }

    def __init__(self, dsn: str, *, command_timeout: float = 30):
        self.dsn = dsn
        self.command_timeout = command_timeout
        self.logger = get_logger("catalog.persistence.postgres")
        self.pool: Optional[asyncpg.Pool] = None
        self._stopped = False
        self._pool_lock = asyncio.Lock()

    async def _create_pool(self) -> asyncpg.Pool:
        return await asyncpg.create_pool(
            self.dsn,
            min_size=2,
            max_size=10,
            command_timeout=self.command_timeout
        )

    async def start(self):
        """Start the persistence layer."""
        self._stopped = False
        try:
            self.pool = await self._create_pool()
            self.logger.info("PostgreSQL reference store started")

        except STORE_ERRORS as e:
            self.logger.error("Failed to start PostgreSQL reference store", error=str(e))
            raise StorefrontException("POSTGRES_START_FAILED", str(e))

    async def stop(self):
        """Stop the persistence layer."""
        self._stopped = True
        if self.pool:
            await self.pool.close()
            self.pool = None
            self.logger.info("PostgreSQL reference store stopped")

    async def ping(self) -> bool:
        """Check the pool can run a trivial query."""
        if self.pool is None:
            return False
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return True
        except STORE_ERRORS as e:
            self.logger.warning("PostgreSQL ping failed", error=str(e))
            return False

    async def _get_pool(self, kind: DropdownKind) -> asyncpg.Pool:
        """Return the pool, connecting on demand if startup could not."""
        if self.pool is not None:
            return self.pool
        if self._stopped:
            raise StoreUnavailableError(kind.value, "store stopped")

        async with self._pool_lock:
            if self.pool is None:
                try:
                    self.pool = await self._create_pool()
                except STORE_ERRORS as e:
                    raise StoreUnavailableError(kind.value, f"not connected: {e}") from e
                self.logger.info("PostgreSQL reference store connected")
        return self.pool

    async def _fetch_all(self, kind: DropdownKind) -> List[Dict[str, Any]]:
        pool = await self._get_pool(kind)

        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(self.QUERIES[kind])
        except STORE_ERRORS as e:
            raise StoreUnavailableError(kind.value, str(e)) from e

        return [self._row_to_record(row) for row in rows]

    @classmethod
    def _row_to_record(cls, row: asyncpg.Record) -> Dict[str, Any]:
        """
        Convert a row into a plain JSON record.

        Values are converted to their JSON form here so a record read back
        from the cache equals the one returned by the store.
        """
        record = {key: cls._json_value(value) for key, value in dict(row).items()}
        if record.get("id") is not None:
            record["id"] = str(record["id"])
        if record.get("parent_id") is not None:
            record["parent_id"] = str(record["parent_id"])
        return record

    @classmethod
    def _json_value(cls, value: Any) -> Any:
        if value is None or isinstance(value, (bool, int, float, str)):
            return value
        if isinstance(value, (datetime, date, time)):
            return value.isoformat()
        if isinstance(value, (Decimal, uuid.UUID)):
            return str(value)
        if isinstance(value, (list, tuple)):
            return [cls._json_value(item) for item in value]
        if isinstance(value, dict):
            return {str(key): cls._json_value(item) for key, item in value.items()}
        return str(value)

    async def fetch_attributes(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(DropdownKind.ATTRIBUTES)

    async def fetch_brands(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(DropdownKind.BRANDS)

    async def fetch_sizes(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(DropdownKind.SIZES)

    async def fetch_categories(self) -> List[Dict[str, Any]]:
        return await self._fetch_all(DropdownKind.CATEGORIES)
