"""Explicit resilience context.

One :class:`ResilienceContext` per process (or per configuration) bundles the
orchestrator, which owns the network engine and its connection pool, with
the per-actor rate limiter. Call sites receive it by reference; there are
no module-level singletons for stats or rate-limit state.

Example:
    async with ResilienceContext.from_settings() as ctx:
        data = await ctx.orchestrator.execute_with_retry(fetch_info, "fetch_info")
        posts = await ctx.rate_limiter.execute_with_retry(fetch_posts, actor_id="acct-1")
"""

from __future__ import annotations

import functools
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional

import httpx

from api_resilience.config.settings import ResilienceSettings, get_settings
from api_resilience.core.resilience.classifier import classify
from api_resilience.core.resilience.engine import NetworkResilienceEngine
from api_resilience.core.resilience.models import RetryPolicy, SleepFunc
from api_resilience.core.resilience.orchestrator import Orchestrator
from api_resilience.core.resilience.rate_limiter import RateLimiter


@dataclass
class ResilienceContext:
    """Orchestrator, rate limiter and retry policy built from one settings object."""

    orchestrator: Orchestrator
    rate_limiter: RateLimiter
    retry_policy: RetryPolicy

    @classmethod
    def from_settings(
        cls,
        settings: Optional[ResilienceSettings] = None,
        *,
        sleep_func: Optional[SleepFunc] = None,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[random.Random] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ResilienceContext":
        """Build a context from ``settings`` (the global settings by default).

        ``sleep_func``, ``clock``, ``rng`` and ``transport`` are passed to the
        engine and rate limiter for deterministic tests.
        """
        settings = settings or get_settings()
        classifier = functools.partial(classify, service=settings.service_name)
        engine = NetworkResilienceEngine(
            settings.to_resilience_config(),
            classifier=classifier,
            health_host=settings.health_host,
            health_url=settings.health_url,
            sleep_func=sleep_func,
            rng=rng,
            transport=transport,
        )
        rate_limiter = RateLimiter(
            limit=settings.rate_limit,
            window_duration_ms=settings.rate_limit_window_ms,
            default_delay_ms=settings.rate_limit_default_delay_ms,
            clock=clock,
            sleep_func=sleep_func,
            classifier=classifier,
            rng=rng,
        )
        return cls(
            orchestrator=Orchestrator(engine, classifier=classifier),
            rate_limiter=rate_limiter,
            retry_policy=settings.to_retry_policy(),
        )

    @property
    def engine(self) -> NetworkResilienceEngine:
        return self.orchestrator.engine

    async def aclose(self) -> None:
        await self.orchestrator.aclose()

    async def __aenter__(self) -> "ResilienceContext":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
