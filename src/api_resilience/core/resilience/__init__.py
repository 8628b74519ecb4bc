"""Resilience core: classification, retry, rate limiting and orchestration.

- ``classify`` maps any raw failure to a ``ClassifiedError``
- ``NetworkResilienceEngine`` runs operations with timeout, retry and pool telemetry
- ``RateLimiter`` throttles per actor and retries with rate-limit waits
- ``Orchestrator`` turns terminal failures into caller-facing errors

``ResilienceContext`` lives in ``api_resilience.core.resilience.context``
since it depends on the settings layer.
"""

from api_resilience.core.resilience.classifier import (
    Classifier,
    classify,
    is_certificate_code,
    parse_retry_after,
    transport_error_code,
)
from api_resilience.core.resilience.engine import NetworkResilienceEngine
from api_resilience.core.resilience.models import (
    POOL_FIELDS,
    ClassifiedError,
    ConnectionStats,
    ErrorType,
    FailurePattern,
    HealthCheckResult,
    OperationResult,
    RateLimitState,
    RateLimitStatistics,
    RateLimitStatus,
    ResilienceConfig,
    RetryPolicy,
    Severity,
    SleepFunc,
)
from api_resilience.core.resilience.orchestrator import (
    Orchestrator,
    format_message,
    get_retry_delay,
    get_troubleshooting_guidance,
)
from api_resilience.core.resilience.patterns import ErrorHistory, detect_failure_pattern
from api_resilience.core.resilience.rate_limiter import RateLimiter
from api_resilience.core.resilience.retry import exponential_delay_ms

__all__ = [
    # Models & enums
    "ClassifiedError",
    "ConnectionStats",
    "ErrorType",
    "FailurePattern",
    "HealthCheckResult",
    "OperationResult",
    "POOL_FIELDS",
    "RateLimitState",
    "RateLimitStatistics",
    "RateLimitStatus",
    "ResilienceConfig",
    "RetryPolicy",
    "Severity",
    "SleepFunc",
    # Classification
    "Classifier",
    "classify",
    "is_certificate_code",
    "parse_retry_after",
    "transport_error_code",
    # Patterns
    "ErrorHistory",
    "detect_failure_pattern",
    # Retry
    "exponential_delay_ms",
    # Components
    "NetworkResilienceEngine",
    "RateLimiter",
    "Orchestrator",
    "format_message",
    "get_retry_delay",
    "get_troubleshooting_guidance",
]
