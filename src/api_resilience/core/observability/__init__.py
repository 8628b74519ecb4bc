"""
Observability utilities for api-resilience.

Provides metrics collection and audit logging for retries, rate limiting,
and health checks. Everything is emitted through the standard ``logging``
module so hosts can route it with their own handlers.

Example:
    from api_resilience.core.observability import audit_log, get_metrics

    audit_log("health_check", healthy=True, latency_ms=12.5)
    get_metrics().counter("attempts", labels={"operation": "fetch_posts"})
"""

from api_resilience.core.observability.audit import (
    AuditEvent,
    AuditEventType,
    AuditLogger,
    audit_log,
    get_audit_logger,
)
from api_resilience.core.observability.metrics import (
    Metric,
    MetricsCollector,
    MetricType,
    get_metrics,
)

__all__ = [
    # Metrics
    "Metric",
    "MetricType",
    "MetricsCollector",
    "get_metrics",
    # Audit
    "AuditEvent",
    "AuditEventType",
    "AuditLogger",
    "audit_log",
    "get_audit_logger",
]
