"""
Shared utilities for the kube-scheduler rate limit gate.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with trace and pod correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service skeleton (health, metrics, error handlers)

Any cross-cutting logic should live here to avoid import cycles. Do not
import from service_* packages into shared/.
"""
