"""Network failure-pattern detection over recent classified errors."""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Iterable, List, Optional, Sequence

from api_resilience.core.resilience.classifier import (
    ECONNREFUSED,
    ECONNRESET,
    ENOTFOUND,
    ETIMEDOUT,
)
from api_resilience.core.resilience.models import ClassifiedError, FailurePattern, Severity

PATTERN_WINDOW = 10

NO_ERRORS = FailurePattern(
    pattern="no_errors",
    severity=Severity.LOW,
    recommendation="Network is operating normally",
)
HIGH_TIMEOUT_RATE = FailurePattern(
    pattern="high_timeout_rate",
    severity=Severity.HIGH,
    recommendation=(
        "Increase timeout values or check network latency. "
        "Consider reducing request frequency."
    ),
)
CONNECTION_INSTABILITY = FailurePattern(
    pattern="connection_instability",
    severity=Severity.HIGH,
    recommendation=(
        "Check network connectivity and firewall settings. "
        "The remote API may be experiencing issues."
    ),
)
DNS_RESOLUTION_FAILURE = FailurePattern(
    pattern="dns_resolution_failure",
    severity=Severity.MEDIUM,
    recommendation=(
        "Check DNS settings and network configuration. "
        "Try using alternative DNS servers."
    ),
)
GENERAL_NETWORK_INSTABILITY = FailurePattern(
    pattern="general_network_instability",
    severity=Severity.MEDIUM,
    recommendation=(
        "Network appears unstable. Consider implementing circuit breaker "
        "pattern or reducing request rate."
    ),
)
SPORADIC_ERRORS = FailurePattern(
    pattern="sporadic_errors",
    severity=Severity.LOW,
    recommendation="Occasional network errors are normal. Monitor for patterns.",
)


def _is_timeout(error: ClassifiedError) -> bool:
    return "timeout" in error.message.lower() or error.error_code == ETIMEDOUT


def detect_failure_pattern(errors: Sequence[ClassifiedError]) -> FailurePattern:
    """Derive a failure pattern from an ordered error history.

    Only the last ``PATTERN_WINDOW`` entries (most recent last) are
    inspected. Checks run from most to least specific.

    Args:
        errors: Classified errors, oldest first.

    Returns:
        The matching :class:`FailurePattern`.
    """
    recent = list(errors)[-PATTERN_WINDOW:]
    if not recent:
        return NO_ERRORS

    timeouts = sum(1 for error in recent if _is_timeout(error))
    if timeouts >= 5:
        return HIGH_TIMEOUT_RATE

    connection_errors = sum(
        1 for error in recent if error.error_code in (ECONNREFUSED, ECONNRESET)
    )
    if connection_errors >= 5:
        return CONNECTION_INSTABILITY

    dns_errors = sum(1 for error in recent if error.error_code == ENOTFOUND)
    if dns_errors >= 3:
        return DNS_RESOLUTION_FAILURE

    if len(recent) >= 5:
        return GENERAL_NETWORK_INSTABILITY

    return SPORADIC_ERRORS


class ErrorHistory:
    """Bounded, append-only buffer of classified errors.

    Oldest entries are evicted once ``maxlen`` is reached. Safe to share
    between tasks and threads.
    """

    def __init__(self, maxlen: int = 50, errors: Optional[Iterable[ClassifiedError]] = None):
        if maxlen <= 0:
            raise ValueError("maxlen must be positive")
        self._errors: Deque[ClassifiedError] = deque(errors or (), maxlen=maxlen)
        self._lock = threading.Lock()

    @property
    def maxlen(self) -> int:
        return self._errors.maxlen or 0

    def append(self, error: ClassifiedError) -> None:
        with self._lock:
            self._errors.append(error)

    def snapshot(self) -> List[ClassifiedError]:
        """Return the recorded errors, oldest first."""
        with self._lock:
            return list(self._errors)

    def clear(self) -> None:
        with self._lock:
            self._errors.clear()

    def detect_pattern(self) -> FailurePattern:
        return detect_failure_pattern(self.snapshot())

    def __len__(self) -> int:
        return len(self._errors)
