"""Orchestrator: the single seam between classified failures and callers.

Composes the classifier and the network engine, formats classified errors
with troubleshooting guidance, and converts terminal failures into
:class:`CallerInputError` or :class:`OperationalError`.
"""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, TypeVar

import httpx

from api_resilience.core.errors.base import ERROR_CLASSES, error_kind_for
from api_resilience.core.errors.resilience import ApiCallError
from api_resilience.core.resilience.classifier import DEFAULT_OPERATION, Classifier, classify
from api_resilience.core.resilience.engine import NetworkResilienceEngine
from api_resilience.core.resilience.models import (
    ClassifiedError,
    ConnectionStats,
    ErrorType,
    FailurePattern,
    HealthCheckResult,
)
from api_resilience.core.resilience.patterns import ErrorHistory

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_BASE_DELAY_MS = 1000
RETRY_MAX_DELAY_MS = 30_000

API_ERROR_RETRYABLE_GUIDANCE = (
    "This appears to be a temporary server issue. The operation will be retried automatically."
)
API_ERROR_GUIDANCE = (
    "Check the API documentation for the specific endpoint requirements and limitations."
)

TROUBLESHOOTING_GUIDANCE: Dict[ErrorType, str] = {
    ErrorType.AUTHENTICATION: (
        "Verify your API credentials are correct and have not expired. "
        "Re-authenticate if necessary."
    ),
    ErrorType.RATE_LIMIT: (
        "Reduce the frequency of API requests or implement delays between operations. "
        "The API allows 1000 requests per hour per user."
    ),
    ErrorType.NETWORK: (
        "Check your internet connection and firewall settings. "
        "Ensure API endpoints are accessible."
    ),
    ErrorType.VALIDATION: (
        "Review the input parameters and ensure all required fields are provided "
        "with valid values."
    ),
}


def get_troubleshooting_guidance(error: ClassifiedError) -> str:
    """Guidance text for a classified error; empty when none applies."""
    if error.type == ErrorType.API_ERROR:
        return API_ERROR_RETRYABLE_GUIDANCE if error.retryable else API_ERROR_GUIDANCE
    return TROUBLESHOOTING_GUIDANCE.get(error.type, "")


def format_message(error: ClassifiedError) -> str:
    """Caller-facing message with the error type and optional guidance."""
    message = f"API Error ({error.type.value}): {error.message}"
    guidance = get_troubleshooting_guidance(error)
    if guidance:
        message += f"\n\nTroubleshooting: {guidance}"
    return message


def get_retry_delay(error: ClassifiedError, attempt: int) -> int:
    """Advised delay in ms before retrying after ``attempt`` (1-based)."""
    if error.type == ErrorType.RATE_LIMIT and error.retry_after_seconds is not None:
        return error.retry_after_seconds * 1000
    return min(RETRY_BASE_DELAY_MS * 2 ** (max(attempt, 1) - 1), RETRY_MAX_DELAY_MS)


class Orchestrator:
    """Caller-facing facade over the network engine.

    Keeps its own bounded :class:`ErrorHistory` of terminal failures so
    failure patterns can be detected without the caller tracking them.
    """

    def __init__(
        self,
        engine: Optional[NetworkResilienceEngine] = None,
        *,
        classifier: Optional[Classifier] = None,
        history: Optional[ErrorHistory] = None,
    ) -> None:
        self._classifier: Classifier = classifier or classify
        self.engine = engine or NetworkResilienceEngine(classifier=classifier)
        self.history = history if history is not None else ErrorHistory()

    # Formatting ---------------------------------------------------------

    format_message = staticmethod(format_message)
    get_troubleshooting_guidance = staticmethod(get_troubleshooting_guidance)
    get_retry_delay = staticmethod(get_retry_delay)

    def should_retry(self, error: ClassifiedError) -> bool:
        return self.engine.should_retry(error)

    def to_caller_error(self, error: ClassifiedError) -> ApiCallError:
        """Convert a classified error into the caller-facing exception."""
        error_class = ERROR_CLASSES[error_kind_for(error.type)]
        return error_class(
            format_message(error),
            code=error.code,
            troubleshooting=get_troubleshooting_guidance(error),
            classified=error,
        )

    # Execution ----------------------------------------------------------

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = DEFAULT_OPERATION,
        config_overrides: Optional[Mapping[str, Any]] = None,
    ) -> T:
        """Run ``operation`` through the engine and return its data.

        Raises:
            CallerInputError: For validation failures.
            OperationalError: For every other terminal failure.
        """
        result = await self.engine.execute_with_retry(operation, label, config_overrides)
        if result.success:
            return result.data  # type: ignore[return-value]

        error = result.error
        assert error is not None
        self.history.append(error)
        caller_error = self.to_caller_error(error)
        logger.info(
            "%s surfaced as %s error (code %s) after %d attempt(s)",
            label,
            caller_error.kind.value,
            error.code,
            result.attempts,
        )
        original = error.original_error
        if isinstance(original, BaseException):
            raise caller_error from original
        raise caller_error

    # Passthroughs -------------------------------------------------------

    def classify(self, raw: Any, operation: str = DEFAULT_OPERATION) -> ClassifiedError:
        return self._classifier(raw, operation)

    @property
    def client(self) -> httpx.AsyncClient:
        return self.engine.client

    def get_network_stats(self) -> ConnectionStats:
        return self.engine.get_connection_stats()

    async def perform_network_health_check(
        self,
        host: Optional[str] = None,
        url: Optional[str] = None,
    ) -> HealthCheckResult:
        return await self.engine.perform_health_check(host=host, url=url)

    def detect_network_failure_pattern(
        self,
        errors: Optional[Sequence[ClassifiedError]] = None,
    ) -> FailurePattern:
        """Failure pattern over ``errors``, or over this orchestrator's history."""
        if errors is None:
            errors = self.history.snapshot()
        return self.engine.detect_failure_pattern(errors)

    async def aclose(self) -> None:
        await self.engine.aclose()

    async def __aenter__(self) -> "Orchestrator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
