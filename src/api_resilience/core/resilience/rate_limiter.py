"""Per-actor request-count rate limiter with retry wrapper.

Each actor (e.g. an authenticated account) gets a fixed window of
``window_duration_ms`` in which at most ``limit`` requests are recorded.
Windows reset lazily on the first read or write after they expire.

State is in-memory and process-local. Each actor has its own lock; a
short registry lock only guards lazy creation, so unrelated actors never
serialize on each other.
"""

from __future__ import annotations

import functools
import logging
import math
import random
import threading
import time
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
)

from api_resilience.core.errors.resilience import ResilienceError
from api_resilience.core.observability import get_audit_logger, get_metrics
from api_resilience.core.resilience.classifier import Classifier, classify
from api_resilience.core.resilience.models import (
    ClassifiedError,
    ErrorType,
    RateLimitState,
    RateLimitStatistics,
    RateLimitStatus,
    RetryPolicy,
    SleepFunc,
)
from api_resilience.core.resilience.retry import exponential_delay_ms, sleep_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LIMIT = 1000
DEFAULT_WINDOW_MS = 3_600_000
DEFAULT_BATCH_DELAY_MS = 100
DEFAULT_LABEL = "rate_limited_operation"


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class RateLimiter:
    """Sliding request-count window per actor, plus a retry executor.

    Example:
        limiter = RateLimiter(limit=100, window_duration_ms=60_000)
        result = await limiter.execute_with_retry(fetch_posts, actor_id="acct-1")

    Testing example:
        now = [0.0]
        sleeps = []
        async def fake_sleep(s): sleeps.append(s)
        limiter = RateLimiter(clock=lambda: now[0], sleep_func=fake_sleep)
    """

    def __init__(
        self,
        limit: int = DEFAULT_LIMIT,
        window_duration_ms: int = DEFAULT_WINDOW_MS,
        *,
        default_delay_ms: int = 60_000,
        clock: Optional[Callable[[], float]] = None,
        sleep_func: Optional[SleepFunc] = None,
        classifier: Optional[Classifier] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_duration_ms <= 0:
            raise ValueError("window_duration_ms must be positive")
        self.limit = limit
        self.window_duration_ms = window_duration_ms
        self.default_delay_ms = default_delay_ms
        self._clock = clock or _monotonic_ms
        self._sleep = sleep_func
        self._classifier: Classifier = classifier or classify
        self._rng = rng or random.Random()

        self._states: Dict[str, Tuple[RateLimitState, threading.Lock]] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    def _entry(self, actor_id: str) -> Tuple[RateLimitState, threading.Lock]:
        entry = self._states.get(actor_id)
        if entry is not None:
            return entry
        with self._registry_lock:
            entry = self._states.get(actor_id)
            if entry is None:
                state = RateLimitState(
                    actor_id=actor_id,
                    window_start=self._clock(),
                    limit=self.limit,
                    window_duration_ms=self.window_duration_ms,
                )
                entry = (state, threading.Lock())
                self._states[actor_id] = entry
            return entry

    def _refresh(self, state: RateLimitState, now: float) -> None:
        # Caller holds the actor lock
        if state.is_expired(now):
            state.window_start = now
            state.request_count = 0

    def check_rate_limit(self, actor_id: str) -> bool:
        """Whether ``actor_id`` may make another request in its current window."""
        state, lock = self._entry(actor_id)
        with lock:
            self._refresh(state, self._clock())
            return state.request_count < state.limit

    def record_request(self, actor_id: str) -> None:
        """Count one request against ``actor_id``'s current window."""
        state, lock = self._entry(actor_id)
        with lock:
            self._refresh(state, self._clock())
            state.request_count += 1

    def try_acquire(self, actor_id: str) -> bool:
        """Check and record one request for ``actor_id`` under a single lock.

        Returns ``False`` without recording when the window is exhausted.
        """
        state, lock = self._entry(actor_id)
        with lock:
            self._refresh(state, self._clock())
            if state.request_count >= state.limit:
                return False
            state.request_count += 1
            return True

    def get_rate_limit_status(self, actor_id: str) -> Optional[RateLimitStatus]:
        """Current window for ``actor_id``, or ``None`` if it was never seen."""
        entry = self._states.get(actor_id)
        if entry is None:
            return None
        state, lock = entry
        with lock:
            self._refresh(state, self._clock())
            return RateLimitStatus(
                actor_id=actor_id,
                request_count=state.request_count,
                reset_at=state.reset_at,
                limit=state.limit,
            )

    def get_time_until_reset(self, actor_id: str) -> int:
        """Whole seconds (rounded up) until ``actor_id``'s window resets."""
        entry = self._states.get(actor_id)
        if entry is None:
            return 0
        state, lock = entry
        with lock:
            remaining_ms = state.reset_at - self._clock()
        return max(0, math.ceil(remaining_ms / 1000.0))

    def reset_rate_limit(self, actor_id: str) -> None:
        with self._registry_lock:
            self._states.pop(actor_id, None)

    def clear_all_rate_limits(self) -> None:
        with self._registry_lock:
            self._states.clear()

    def get_statistics(self) -> RateLimitStatistics:
        """Totals across all tracked actors."""
        with self._registry_lock:
            entries = list(self._states.values())
        now = self._clock()
        total_requests = 0
        active_users = 0
        for state, lock in entries:
            with lock:
                total_requests += state.request_count
                if not state.is_expired(now):
                    active_users += 1
        return RateLimitStatistics(
            total_users=len(entries),
            total_requests=total_requests,
            active_users=active_users,
        )

    # ------------------------------------------------------------------
    # Waiting and retrying
    # ------------------------------------------------------------------

    async def handle_rate_limit(
        self,
        error: ClassifiedError,
        actor_id: Optional[str] = None,
        default_delay_ms: Optional[int] = None,
    ) -> None:
        """Wait out a rate-limit failure; no-op for any other error type.

        Without a Retry-After value the wait is ``default_delay_ms``, falling
        back to the limiter's own default.
        """
        if error.type != ErrorType.RATE_LIMIT:
            return
        if error.retry_after_seconds is not None:
            wait_ms = error.retry_after_seconds * 1000
        elif default_delay_ms is not None:
            wait_ms = default_delay_ms
        else:
            wait_ms = self.default_delay_ms
        logger.info("Rate limited, waiting %dms before retry", wait_ms)
        get_audit_logger().rate_limit_wait(wait_ms, actor_id=actor_id)
        await sleep_ms(wait_ms, self._sleep)

    def _limit_exceeded_error(self, actor_id: str) -> ClassifiedError:
        retry_after = self.get_time_until_reset(actor_id)
        return ClassifiedError(
            type=ErrorType.RATE_LIMIT,
            code=429,
            message=(
                f"Rate limit exceeded for actor {actor_id}. "
                f"Reset in {retry_after} seconds"
            ),
            retryable=True,
            retry_after_seconds=retry_after,
            details={"actor_id": actor_id, "limit": self.limit},
        )

    @staticmethod
    def _is_retryable(error: ClassifiedError, policy: RetryPolicy) -> bool:
        if not error.retryable or error.type not in policy.retryable_types:
            return False
        if error.type == ErrorType.API_ERROR:
            return error.code >= 500
        return True

    async def execute_with_retry(
        self,
        operation: Callable[[], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        actor_id: Optional[str] = None,
        label: str = DEFAULT_LABEL,
    ) -> T:
        """Run ``operation`` with retries, honouring the actor's rate limit.

        With an ``actor_id``, an exhausted window is waited out (or, on the
        final attempt, raised) before the request is recorded.

        Args:
            operation: Zero-argument async callable.
            policy: Retry policy; defaults to :class:`RetryPolicy`.
            actor_id: Rate-limit partition key, if any.
            label: Operation name for messages and logs.

        Returns:
            The operation's result.

        Raises:
            ResilienceError: Carrying the last classified error once retries
                are exhausted or a failure is not retryable. Chained to the
                original exception when there is one.
        """
        policy = policy or RetryPolicy()
        max_attempts = policy.max_retries + 1
        audit = get_audit_logger()

        for attempt in range(1, max_attempts + 1):
            if actor_id is not None and not self.try_acquire(actor_id):
                exceeded = self._limit_exceeded_error(actor_id)
                audit.rate_limit_exceeded(actor_id, limit=self.limit, attempt=attempt)
                get_metrics().counter("rate_limit_exceeded", labels={"operation": label})
                if attempt >= max_attempts:
                    raise ResilienceError(exceeded)
                await self.handle_rate_limit(exceeded, actor_id=actor_id)
                continue

            try:
                return await operation()
            except Exception as exc:
                error = self._classifier(exc, label)
                if attempt >= max_attempts or not self._is_retryable(error, policy):
                    logger.warning(
                        "%s failed after %d attempt(s): %s", label, attempt, error.message
                    )
                    raise ResilienceError(error) from exc

                if error.type == ErrorType.RATE_LIMIT:
                    await self.handle_rate_limit(
                        error,
                        actor_id=actor_id,
                        default_delay_ms=policy.default_rate_limit_delay_ms,
                    )
                else:
                    delay_ms = exponential_delay_ms(
                        attempt,
                        base_delay_ms=policy.base_delay_ms,
                        max_delay_ms=policy.max_delay_ms,
                        multiplier=policy.backoff_multiplier,
                        rng=self._rng,
                    )
                    audit.retry_attempt(
                        label,
                        attempt,
                        max_attempts,
                        delay_ms,
                        error_type=error.type.value,
                    )
                    logger.warning(
                        "%s attempt %d/%d failed (%s), retrying in %.0fms",
                        label,
                        attempt,
                        max_attempts,
                        error.message,
                        delay_ms,
                    )
                    await sleep_ms(delay_ms, self._sleep)

        raise RuntimeError("execute_with_retry: unexpected state")

    async def execute_batch(
        self,
        operations: Sequence[Callable[[], Awaitable[T]]],
        policy: Optional[RetryPolicy] = None,
        actor_id: Optional[str] = None,
        batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS,
    ) -> List[T]:
        """Run operations one after another, pausing between them.

        Stops at the first operation that still fails after retries.

        Returns:
            Results in the order of ``operations``.
        """
        results: List[T] = []
        for index, operation in enumerate(operations):
            results.append(
                await self.execute_with_retry(
                    operation,
                    policy=policy,
                    actor_id=actor_id,
                    label=f"batch_operation_{index}",
                )
            )
            if index < len(operations) - 1:
                await sleep_ms(batch_delay_ms, self._sleep)
        return results

    def rate_limited(
        self,
        fn: Callable[..., Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        actor_id: Optional[str] = None,
    ) -> Callable[..., Awaitable[T]]:
        """Wrap ``fn`` so every call goes through :meth:`execute_with_retry`."""

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await self.execute_with_retry(
                lambda: fn(*args, **kwargs),
                policy=policy,
                actor_id=actor_id,
                label=getattr(fn, "__name__", DEFAULT_LABEL),
            )

        return wrapper
