"""Unified error hierarchy for api-resilience.

All custom exception classes are defined in domain-specific modules within
this package. This __init__.py re-exports everything for convenient access.

Usage:
    from api_resilience.core.errors import OperationalError, error_kind_for
"""

from api_resilience.core.errors.base import (
    ERROR_CLASSES,
    ERROR_KIND_MAPPINGS,
    error_kind_for,
)
from api_resilience.core.errors.resilience import (
    ApiCallError,
    CallerInputError,
    ErrorKind,
    OperationalError,
    OperationTimeoutError,
    ResilienceError,
)

__all__ = [
    # Base / Registry
    "ERROR_CLASSES",
    "ERROR_KIND_MAPPINGS",
    "ErrorKind",
    "error_kind_for",
    # Resilience errors
    "ResilienceError",
    "OperationTimeoutError",
    # Caller-facing errors
    "ApiCallError",
    "CallerInputError",
    "OperationalError",
]
