"""api-resilience: classification, retry and rate limiting for unreliable remote APIs.

Usage:
    from api_resilience import ResilienceContext

    async with ResilienceContext.from_settings() as ctx:
        info = await ctx.orchestrator.execute_with_retry(fetch_info, "fetch_info")
"""

import logging

from api_resilience.config import ResilienceSettings, get_settings, set_settings
from api_resilience.core.errors import (
    ApiCallError,
    CallerInputError,
    ErrorKind,
    OperationalError,
    OperationTimeoutError,
    ResilienceError,
)
from api_resilience.core.resilience import (
    ClassifiedError,
    ErrorType,
    NetworkResilienceEngine,
    Orchestrator,
    RateLimiter,
    ResilienceConfig,
    RetryPolicy,
    classify,
)
from api_resilience.core.resilience.context import ResilienceContext

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "ApiCallError",
    "CallerInputError",
    "ClassifiedError",
    "ErrorKind",
    "ErrorType",
    "NetworkResilienceEngine",
    "OperationTimeoutError",
    "OperationalError",
    "Orchestrator",
    "RateLimiter",
    "ResilienceConfig",
    "ResilienceContext",
    "ResilienceError",
    "ResilienceSettings",
    "RetryPolicy",
    "classify",
    "get_settings",
    "set_settings",
]
