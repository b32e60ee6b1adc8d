"""
Shared utilities for the Places cache proxy.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI app shell with health, metrics and error handlers

Do not import from service_* packages into shared/.
"""
