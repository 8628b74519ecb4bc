"""Network resilience engine.

Runs async operations under a per-attempt timeout, classifies failures,
retries transient ones with exponential backoff and jitter, and tracks
connection pool statistics for the shared ``httpx.AsyncClient``.

Example:
    async with NetworkResilienceEngine(ResilienceConfig(max_retries=2)) as engine:
        result = await engine.execute_with_retry(
            lambda: engine.client.get("https://api.example.com/v2/info"),
            "fetch_info",
        )
        if result.success:
            print(result.data.status_code)
"""

from __future__ import annotations

import asyncio
import functools
import logging
import random
import threading
import time
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Mapping, Optional, Sequence, TypeVar

import httpx

from api_resilience.core.context import ensure_correlation_id
from api_resilience.core.errors.resilience import OperationTimeoutError
from api_resilience.core.observability import audit_log, get_audit_logger, get_metrics
from api_resilience.core.resilience.classifier import (
    DEFAULT_SERVICE,
    Classifier,
    classify,
    is_certificate_code,
)
from api_resilience.core.resilience.models import (
    POOL_FIELDS,
    ClassifiedError,
    ConnectionStats,
    FailurePattern,
    HealthCheckResult,
    OperationResult,
    ResilienceConfig,
    SleepFunc,
)
from api_resilience.core.resilience.patterns import detect_failure_pattern
from api_resilience.core.resilience.retry import (
    exponential_delay_ms,
    retry_after_delay_ms,
    sleep_ms,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LABEL = "network_operation"
DEFAULT_HEALTH_HOST = "example.com"
RESPONSE_TIME_WINDOW = 100


class NetworkResilienceEngine:
    """Executes operations with timeout, retry and connection pool telemetry.

    The engine owns one ``httpx.AsyncClient`` whose pool limits follow the
    config. Operations are zero-argument async callables; they close over
    :attr:`client` when they need the pool.

    Statistics are guarded by a lock local to this engine, so engines in the
    same process never contend.
    """

    def __init__(
        self,
        config: Optional[ResilienceConfig] = None,
        *,
        classifier: Optional[Classifier] = None,
        service: str = DEFAULT_SERVICE,
        health_host: str = DEFAULT_HEALTH_HOST,
        health_url: Optional[str] = None,
        sleep_func: Optional[SleepFunc] = None,
        rng: Optional[random.Random] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Create an engine.

        Args:
            config: Engine configuration (defaults apply when omitted).
            classifier: Failure classifier; defaults to :func:`classify`.
            service: Name of the remote service used in error messages.
            health_host: Host resolved by :meth:`perform_health_check`.
            health_url: URL probed with ``HEAD`` instead of DNS, if set.
            sleep_func: Injectable async sleep for backoff waits.
            rng: Injectable Random instance for backoff jitter.
            transport: Optional httpx transport (e.g. ``httpx.MockTransport``).
        """
        self._config = config or ResilienceConfig()
        self._classifier: Classifier = classifier or functools.partial(classify, service=service)
        self._health_host = health_host
        self._health_url = health_url
        self._sleep = sleep_func
        self._rng = rng or random.Random()
        self._transport = transport

        self._lock = threading.Lock()
        self._total_requests = 0
        self._failed_requests = 0
        self._active_connections = 0
        self._response_times: Deque[float] = deque(maxlen=RESPONSE_TIME_WINDOW)

        self._client = self._build_client(self._config)

    # ------------------------------------------------------------------
    # Connection pool
    # ------------------------------------------------------------------

    def _build_client(self, config: ResilienceConfig) -> httpx.AsyncClient:
        limits = httpx.Limits(
            max_connections=config.pool_size,
            max_keepalive_connections=config.pool_size // 2 if config.keep_alive else 0,
            keepalive_expiry=config.keep_alive_ms / 1000.0,
        )
        logger.debug(
            "Creating connection pool: max=%d keepalive=%s",
            config.pool_size,
            config.keep_alive,
        )
        return httpx.AsyncClient(
            limits=limits,
            timeout=httpx.Timeout(config.timeout_ms / 1000.0),
            transport=self._transport,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        """The shared connection pool."""
        return self._client

    @property
    def config(self) -> ResilienceConfig:
        return self._config

    async def update_config(self, **overrides: Any) -> ResilienceConfig:
        """Apply config overrides, recreating the pool if pool settings changed.

        Raises:
            pydantic.ValidationError: If an override is invalid; the current
                config stays in effect.
        """
        previous = self._config
        updated = previous.with_overrides(**overrides)
        changed = sorted(
            name for name in overrides if getattr(updated, name) != getattr(previous, name)
        )
        self._config = updated

        if POOL_FIELDS.intersection(changed):
            old_client = self._client
            self._client = self._build_client(updated)
            await old_client.aclose()
            logger.info("Connection pool recreated after config change: %s", ", ".join(changed))

        if changed:
            audit_log("config_change", changed=changed)
        return updated

    async def aclose(self) -> None:
        """Close the connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "NetworkResilienceEngine":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str = DEFAULT_LABEL,
        config_overrides: Optional[Mapping[str, Any]] = None,
    ) -> OperationResult[T]:
        """Run ``operation`` with timeout and retry.

        Each attempt is cancelled when it exceeds ``timeout_ms``. Failures are
        classified; non-retryable ones end the loop at once, retryable ones
        are retried after :meth:`calculate_retry_delay` until ``max_retries``
        is used up.

        Args:
            operation: Zero-argument async callable.
            label: Operation name for messages, logs and metrics.
            config_overrides: Per-call config fields (validated).

        Returns:
            OperationResult with ``data`` on success or the last classified
            ``error`` on failure. Only caller cancellation propagates.
        """
        config = self._config.with_overrides(**dict(config_overrides or {}))
        max_attempts = config.max_retries + 1
        metrics = get_metrics()
        started = time.perf_counter()
        last_error: Optional[ClassifiedError] = None
        attempt = 0

        with ensure_correlation_id():
            while attempt < max_attempts:
                attempt += 1
                try:
                    data = await self._run_attempt(operation, label, config.timeout_ms)
                except Exception as exc:
                    last_error = self._classifier(exc, label)
                    metrics.counter(
                        "attempt_failures",
                        labels={"operation": label, "error_type": last_error.type.value},
                    )

                    if not self.should_retry(last_error):
                        logger.warning(
                            "%s failed with non-retryable %s error: %s",
                            label,
                            last_error.type.value,
                            last_error.message,
                        )
                        break
                    if attempt >= max_attempts:
                        break

                    delay_ms = self.calculate_retry_delay(attempt, last_error, config)
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.0fms",
                        label,
                        attempt,
                        max_attempts,
                        last_error.message,
                        delay_ms,
                    )
                    get_audit_logger().retry_attempt(
                        label,
                        attempt,
                        max_attempts,
                        delay_ms,
                        error_type=last_error.type.value,
                        error_code=last_error.error_code,
                    )
                    await sleep_ms(delay_ms, self._sleep)
                    continue

                total_time_ms = (time.perf_counter() - started) * 1000.0
                metrics.timer("operation_duration_ms", total_time_ms, labels={"operation": label})
                if attempt > 1:
                    audit_log("operation_succeeded", operation=label, attempts=attempt)
                return OperationResult(
                    success=True,
                    data=data,
                    attempts=attempt,
                    total_time_ms=total_time_ms,
                )

            total_time_ms = (time.perf_counter() - started) * 1000.0
            logger.error("%s failed after %d attempt(s): %s", label, attempt, last_error.message)
            audit_log(
                "operation_failed",
                operation=label,
                attempts=attempt,
                error_type=last_error.type.value,
                code=last_error.code,
            )
            return OperationResult(
                success=False,
                error=last_error,
                attempts=attempt,
                total_time_ms=total_time_ms,
            )

    async def _run_attempt(
        self,
        operation: Callable[[], Awaitable[T]],
        label: str,
        timeout_ms: int,
    ) -> T:
        with self._lock:
            self._total_requests += 1
            self._active_connections += 1
            active = self._active_connections
        get_metrics().gauge("active_connections", active, labels={"operation": label})

        started = time.perf_counter()
        timed_out = False
        completed = False
        try:
            task = asyncio.ensure_future(operation())
            try:
                done, _pending = await asyncio.wait({task}, timeout=timeout_ms / 1000.0)
            except asyncio.CancelledError:
                task.cancel()
                raise
            if not done:
                # Only the engine's own timer produces OperationTimeoutError
                timed_out = True
                task.cancel()
                await asyncio.wait({task})
                raise OperationTimeoutError(
                    f"Operation {label} timed out after {timeout_ms}ms",
                    timeout_ms=timeout_ms,
                    operation=label,
                )
            completed = True
            return task.result()
        except Exception:
            completed = not timed_out
            with self._lock:
                self._failed_requests += 1
            raise
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000.0
            with self._lock:
                self._active_connections = max(0, self._active_connections - 1)
                if completed:
                    self._response_times.append(elapsed_ms)
            get_metrics().timer("attempt_duration_ms", elapsed_ms, labels={"operation": label})

    def calculate_retry_delay(
        self,
        attempt: int,
        error: ClassifiedError,
        config: Optional[ResilienceConfig] = None,
    ) -> float:
        """Delay in ms before the attempt after ``attempt``.

        Honours a server-requested ``retry_after_seconds``; otherwise
        exponential backoff with up to 10% jitter, capped at ``max_delay_ms``.
        """
        requested = retry_after_delay_ms(error)
        if requested is not None:
            return float(requested)
        config = config or self._config
        return exponential_delay_ms(
            attempt,
            base_delay_ms=config.base_delay_ms,
            max_delay_ms=config.max_delay_ms,
            rng=self._rng,
        )

    def should_retry(self, error: ClassifiedError) -> bool:
        """Whether a classified failure may be retried."""
        if not error.retryable:
            return False
        code = error.error_code
        return not (code and is_certificate_code(code))

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def get_connection_stats(self) -> ConnectionStats:
        """Snapshot of the pool statistics."""
        with self._lock:
            times = list(self._response_times)
            active = self._active_connections
            stats = ConnectionStats(
                total_requests=self._total_requests,
                failed_requests=self._failed_requests,
                active_connections=active,
                average_response_time_ms=sum(times) / len(times) if times else 0.0,
            )
        if self._config.keep_alive:
            stats.idle_connections = max(0, self._config.pool_size // 2 - active)
        return stats

    def reset_connection_stats(self) -> None:
        """Zero the counters; in-flight attempts stay counted as active."""
        with self._lock:
            self._total_requests = 0
            self._failed_requests = 0
            self._response_times.clear()

    async def perform_health_check(
        self,
        host: Optional[str] = None,
        url: Optional[str] = None,
    ) -> HealthCheckResult:
        """Probe the network with one minimal round trip. Never raises.

        An explicit ``url`` is probed with ``HEAD`` through the pool; an
        explicit ``host`` is resolved via DNS. Without arguments the
        configured health URL, or else the configured host, is used.
        """
        timeout_s = self._config.timeout_ms / 1000.0
        target_url = url or (None if host else self._health_url)
        started = time.perf_counter()
        try:
            if target_url:
                response = await self._client.head(target_url, timeout=timeout_s)
                healthy = response.status_code < 500
                details = f"HEAD {target_url} returned {response.status_code}"
            else:
                target_host = host or self._health_host
                loop = asyncio.get_running_loop()
                await asyncio.wait_for(loop.getaddrinfo(target_host, 443), timeout=timeout_s)
                healthy = True
                details = f"DNS resolution successful for {target_host}"
        except Exception as exc:
            classified = self._classifier(exc, "health_check", timeout_ms=self._config.timeout_ms)
            healthy = False
            details = f"Health check failed: {classified.message}"

        result = HealthCheckResult(
            healthy=healthy,
            latency_ms=(time.perf_counter() - started) * 1000.0,
            details=details,
        )
        audit_log("health_check", healthy=result.healthy, latency_ms=round(result.latency_ms, 1))
        if not result.healthy:
            logger.warning("Health check failed: %s", details)
        return result

    def detect_failure_pattern(self, errors: Sequence[ClassifiedError]) -> FailurePattern:
        """Failure pattern over the last entries of ``errors`` (oldest first)."""
        return detect_failure_pattern(errors)
