"""
Shared utilities for the Storefront catalog services.

- config: Service configuration via pydantic-settings
- logging: Structured logging with request and trace correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton
- test_helpers: In-memory fakes and test data

Do not import from service packages into shared/.
"""
