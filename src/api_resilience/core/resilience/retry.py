"""Backoff delay helpers shared by the engine, rate limiter and orchestrator.

Delays are in milliseconds. Jitter draws from an injectable
``random.Random`` so tests can pin it.
"""

import asyncio
import random
from typing import Optional

from api_resilience.core.resilience.models import ClassifiedError, SleepFunc

# Fraction of the exponential delay added as random jitter
JITTER_FRACTION = 0.1


def exponential_delay_ms(
    attempt: int,
    *,
    base_delay_ms: float,
    max_delay_ms: float,
    multiplier: float = 2.0,
    jitter: float = JITTER_FRACTION,
    rng: Optional[random.Random] = None,
) -> float:
    """Exponential backoff delay for a 1-based attempt number.

    Computes ``min(base * multiplier**(attempt-1) * (1 + U[0, jitter]), max)``.

    Args:
        attempt: Attempt that just failed (1 for the first attempt).
        base_delay_ms: Delay after the first failure.
        max_delay_ms: Upper bound on the returned delay.
        multiplier: Growth factor per attempt.
        jitter: Maximum jitter fraction; 0 disables jitter.
        rng: Injectable Random instance for deterministic testing.

    Returns:
        Delay in milliseconds.
    """
    exponent = max(attempt, 1) - 1
    delay = base_delay_ms * (multiplier**exponent)
    if jitter > 0:
        delay = delay * (1.0 + (rng or random).random() * jitter)
    return min(delay, max_delay_ms)


def retry_after_delay_ms(error: ClassifiedError) -> Optional[int]:
    """Server-requested delay in ms, or ``None`` when the error carries none."""
    if error.retry_after_seconds is None:
        return None
    return error.retry_after_seconds * 1000


async def sleep_ms(delay_ms: float, sleep_func: Optional[SleepFunc] = None) -> None:
    """Non-blocking wait of ``delay_ms`` milliseconds."""
    if delay_ms <= 0:
        return
    await (sleep_func or asyncio.sleep)(delay_ms / 1000.0)
