"""
Shared configuration management for the Storefront catalog services.
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="STOREFRONT_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = "local"
    log_level: str = "info"

    # External services
    redis_url: str = "redis://localhost:6379/0"
    postgres_dsn: str = "postgres://localhost:5432/storefront"

    # Dropdown cache policy
    dropdown_cache_key: str = "dropdown:all"
    dropdown_cache_ttl: int = 600
    dropdown_degraded_ttl: int = 60
    cache_max_ttl: int = 3600
    cache_timeout_seconds: float = 0.25
    store_fetch_timeout_seconds: float = 5.0

    # Cache warming
    prewarm_on_startup: bool = True
    prewarm_interval_seconds: int = 0

    # Cache health check
    health_check_key: str = "dropdown:health-check"
    health_check_ttl: int = 10
    health_check_interval_seconds: int = 30

    # Observability
    enable_tracing: bool = False
    otel_exporter: Optional[str] = None


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port)
