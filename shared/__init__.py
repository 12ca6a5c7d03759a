"""
Shared utilities for the Valstore Access Layer.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- retry: Retry helpers with backoff
- circuit_breaker: Resilient external call protection

Do not import from service_* packages into shared/.
"""
