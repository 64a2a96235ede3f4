"""
Catalog caching package.

Provides the Redis client, the dropdown cache service and the cache health
monitor. Cache failures degrade to store reads; they are never surfaced to
callers.
"""
