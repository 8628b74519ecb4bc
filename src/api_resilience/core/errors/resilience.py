"""Resilience error classes.

Raised by the engine, the rate limiter, and the orchestrator. Each carries
the classified failure so callers never need to re-classify.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from api_resilience.core.resilience.models import ClassifiedError


class ErrorKind(str, Enum):
    """How the caller should treat a failure."""

    CALLER_INPUT = "caller-input"
    OPERATIONAL = "operational"


class OperationTimeoutError(TimeoutError):
    """A single attempt exceeded its timeout and was cancelled.

    Attributes:
        code: Transport error code, always ``ETIMEDOUT``.
        timeout_ms: The timeout that was exceeded.
        operation: Label of the operation that timed out.
    """

    code = "ETIMEDOUT"

    def __init__(
        self,
        message: str,
        timeout_ms: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.timeout_ms = timeout_ms
        self.operation = operation


class ResilienceError(Exception):
    """Terminal failure that crossed the resilience boundary.

    Attributes:
        classified: The classified error describing the failure.
    """

    def __init__(self, classified: ClassifiedError, message: Optional[str] = None):
        super().__init__(message or classified.message)
        self.classified = classified

    @property
    def retryable(self) -> bool:
        return self.classified.retryable


class ApiCallError(Exception):
    """Caller-facing error produced by the orchestrator.

    Attributes:
        message: Formatted message including troubleshooting text.
        code: HTTP-like status code of the underlying failure.
        troubleshooting: Guidance for the caller (may be empty).
        kind: Whether the caller must fix its input or the failure is operational.
        classified: The classified error this was built from.
    """

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        *,
        code: int,
        troubleshooting: str,
        classified: ClassifiedError,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.troubleshooting = troubleshooting
        self.classified = classified


class CallerInputError(ApiCallError):
    """The request was rejected because of the caller's input."""

    kind = ErrorKind.CALLER_INPUT


class OperationalError(ApiCallError):
    """The remote operation failed for operational reasons."""

    kind = ErrorKind.OPERATIONAL
