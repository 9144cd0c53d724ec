"""
Shared utilities for the edge cache policy service.

This package aggregates common building blocks consumed by the service:

- config: Process settings via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton (health, metrics, error handlers)

Do not import from service_* packages into shared/.
"""
