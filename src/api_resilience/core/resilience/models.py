"""Resilience data models, enums, and protocols.

Defines the core types used across the resilience sub-package:
- ErrorType enum for error classification
- ClassifiedError, the canonical record every failure is normalized into
- ResilienceConfig and RetryPolicy for engine and rate limiter tuning
- ConnectionStats, RateLimitState and friends for observability
- OperationResult, the explicit success/failure variant returned by the engine
- SleepFunc protocol for injectable async sleep
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, Generic, Optional, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ErrorType(str, Enum):
    """Canonical error categories for retry and reporting decisions."""

    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    VALIDATION = "validation"
    API_ERROR = "api_error"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    """Severity of a detected failure pattern."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class ClassifiedError:
    """Normalized record for any failure seen by the resilience layer.

    Attributes:
        type: Canonical category of the failure.
        code: HTTP-like status code (408 for transport timeouts, 0 for other
            transport failures without a status).
        message: Human-readable description naming the failing operation.
        retryable: Whether the resilience layer may retry the operation.
        retry_after_seconds: Server-requested wait, when one was given.
        details: Extra machine-readable context (response body, error code).
        timestamp: ISO-8601 UTC time of classification.
        original_error: The raw failure, kept for chaining and debugging.
    """

    type: ErrorType
    code: int
    message: str
    retryable: bool
    retry_after_seconds: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=_utc_now)
    original_error: Any = field(default=None, compare=False, repr=False)

    @property
    def error_code(self) -> Optional[str]:
        """Transport error code (e.g. ``ECONNREFUSED``) if one was recorded."""
        value = self.details.get("error_code")
        return value if isinstance(value, str) else None

    def without_timestamp(self) -> "ClassifiedError":
        """Return a copy with a fixed timestamp, for structural comparison."""
        return replace(self, timestamp="")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary (drops ``original_error``)."""
        data = asdict(replace(self, original_error=None))
        data.pop("original_error", None)
        data["type"] = self.type.value
        if self.retry_after_seconds is None:
            data.pop("retry_after_seconds")
        return data


class ResilienceConfig(BaseModel):
    """Network engine configuration.

    Immutable; use :meth:`with_overrides` to derive a modified copy.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_ms: int = Field(default=30_000, gt=0, description="Per-attempt timeout")
    max_retries: int = Field(default=3, ge=0, description="Retries after the first attempt")
    base_delay_ms: int = Field(default=1_000, ge=0, description="Initial backoff delay")
    max_delay_ms: int = Field(default=30_000, ge=0, description="Backoff delay cap")
    pool_size: int = Field(default=10, gt=0, description="Maximum pooled connections")
    keep_alive: bool = Field(default=True, description="Reuse idle connections")
    keep_alive_ms: int = Field(default=60_000, ge=0, description="Idle connection expiry")

    def with_overrides(self, **overrides: Any) -> "ResilienceConfig":
        """Return a validated copy with ``overrides`` applied."""
        if not overrides:
            return self
        return ResilienceConfig(**{**self.model_dump(), **overrides})


# Fields whose change requires a fresh connection pool
POOL_FIELDS: FrozenSet[str] = frozenset({"pool_size", "keep_alive", "keep_alive_ms", "timeout_ms"})


class RetryPolicy(BaseModel):
    """Retry policy for :class:`RateLimiter.execute_with_retry`."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_retries: int = Field(default=3, ge=0)
    base_delay_ms: int = Field(default=1_000, ge=0)
    max_delay_ms: int = Field(default=30_000, ge=0)
    backoff_multiplier: float = Field(default=2.0, ge=1.0)
    retryable_types: FrozenSet[ErrorType] = Field(
        default=frozenset({ErrorType.RATE_LIMIT, ErrorType.NETWORK, ErrorType.API_ERROR})
    )
    default_rate_limit_delay_ms: int = Field(default=60_000, ge=0)


@dataclass
class ConnectionStats:
    """Snapshot of connection pool statistics."""

    total_requests: int = 0
    failed_requests: int = 0
    active_connections: int = 0
    idle_connections: int = 0
    average_response_time_ms: float = 0.0


@dataclass
class RateLimitState:
    """Sliding request-count window for one actor."""

    actor_id: str
    window_start: float
    request_count: int = 0
    limit: int = 1000
    window_duration_ms: int = 3_600_000

    @property
    def reset_at(self) -> float:
        """Clock value (ms) at which the current window expires."""
        return self.window_start + self.window_duration_ms

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.request_count)

    def is_expired(self, now: float) -> bool:
        return now >= self.reset_at


@dataclass(frozen=True)
class RateLimitStatus:
    """Point-in-time rate limit status for one actor."""

    actor_id: str
    request_count: int
    reset_at: float
    limit: int


@dataclass(frozen=True)
class RateLimitStatistics:
    """Aggregate statistics across all tracked actors."""

    total_users: int
    total_requests: int
    active_users: int


@dataclass(frozen=True)
class FailurePattern:
    """Failure pattern derived from recent classified errors."""

    pattern: str
    severity: Severity
    recommendation: str


@dataclass(frozen=True)
class HealthCheckResult:
    """Result of a lightweight network probe."""

    healthy: bool
    latency_ms: float
    details: str


@dataclass
class OperationResult(Generic[T]):
    """Outcome of an engine call.

    Exactly one of ``data`` (on success) or ``error`` (on failure) is
    meaningful; callers must branch on ``success``.
    """

    success: bool
    attempts: int
    total_time_ms: float
    data: Optional[T] = None
    error: Optional[ClassifiedError] = None


class SleepFunc(Protocol):
    """Protocol for injectable sleep function."""

    async def __call__(self, seconds: float) -> None: ...
