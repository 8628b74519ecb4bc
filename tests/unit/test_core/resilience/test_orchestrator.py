"""Unit tests for the Orchestrator and ResilienceContext."""

from unittest.mock import AsyncMock

import httpx
import pytest
from pydantic import BaseModel, ValidationError

from api_resilience.config import ResilienceSettings
from api_resilience.core.errors import CallerInputError, ErrorKind, OperationalError
from api_resilience.core.resilience import (
    ErrorHistory,
    ErrorType,
    NetworkResilienceEngine,
    Orchestrator,
    ResilienceConfig,
    classify,
    format_message,
    get_retry_delay,
    get_troubleshooting_guidance,
)
from api_resilience.core.resilience.context import ResilienceContext


class _Post(BaseModel):
    title: str


@pytest.fixture
def orchestrator(fake_sleep):
    engine = NetworkResilienceEngine(ResilienceConfig(max_retries=1), sleep_func=fake_sleep)
    return Orchestrator(engine)


class TestFormatMessage:
    """Tests for format_message and troubleshooting guidance."""

    @pytest.mark.parametrize(
        "raw",
        [
            httpx.Response(401),
            httpx.Response(429, headers={"retry-after": "60"}),
            ConnectionRefusedError("refused"),
            httpx.Response(400),
            httpx.Response(503),
            httpx.Response(404),
        ],
    )
    def test_includes_guidance(self, raw):
        error = classify(raw)
        message = format_message(error)
        assert message.startswith(f"API Error ({error.type.value}): {error.message}")
        assert "\n\nTroubleshooting: " in message
        assert message.endswith(get_troubleshooting_guidance(error))

    def test_unknown_has_no_guidance(self):
        error = classify(RuntimeError("boom"))
        assert get_troubleshooting_guidance(error) == ""
        assert format_message(error) == "API Error (unknown): Unknown error occurred: boom"
        assert "Troubleshooting:" not in format_message(error)

    def test_api_error_guidance_depends_on_retryable(self):
        retryable = get_troubleshooting_guidance(classify(httpx.Response(503)))
        permanent = get_troubleshooting_guidance(classify(httpx.Response(404)))
        assert "retried automatically" in retryable
        assert "API documentation" in permanent


class TestGetRetryDelay:
    """Tests for get_retry_delay."""

    def test_rate_limit_retry_after(self):
        error = classify(httpx.Response(429, headers={"retry-after": "60"}))
        assert get_retry_delay(error, 1) == 60_000

    def test_exponential_and_capped(self):
        error = classify(ConnectionResetError())
        delays = [get_retry_delay(error, attempt) for attempt in range(1, 6)]
        assert delays == [1000, 2000, 4000, 8000, 16000]
        assert get_retry_delay(error, 6) == 30_000
        assert get_retry_delay(error, 20) == 30_000

    def test_rate_limit_without_retry_after_uses_backoff(self):
        error = classify(httpx.Response(429))
        assert get_retry_delay(error, 2) == 2000


class TestExecuteWithRetry:
    """Tests for Orchestrator.execute_with_retry and caller error conversion."""

    @pytest.mark.asyncio
    async def test_returns_data(self, orchestrator):
        async with orchestrator:
            assert await orchestrator.execute_with_retry(AsyncMock(return_value=42)) == 42

    @pytest.mark.asyncio
    async def test_validation_becomes_caller_input_error(self, orchestrator):
        async def create_post():
            return _Post()

        async with orchestrator:
            with pytest.raises(CallerInputError) as exc_info:
                await orchestrator.execute_with_retry(create_post, "create_post")

        error = exc_info.value
        assert error.kind is ErrorKind.CALLER_INPUT
        assert error.code == 400
        assert error.message.startswith("API Error (validation)")
        assert "Review the input parameters" in error.troubleshooting
        assert isinstance(error.__cause__, ValidationError)

    @pytest.mark.asyncio
    async def test_network_exhaustion_becomes_operational_error(self, orchestrator, sleeps):
        operation = AsyncMock(side_effect=ConnectionRefusedError("refused"))

        async with orchestrator:
            with pytest.raises(OperationalError) as exc_info:
                await orchestrator.execute_with_retry(operation, "fetch_posts")

        error = exc_info.value
        assert error.kind is ErrorKind.OPERATIONAL
        assert error.code == 0
        assert error.classified.error_code == "ECONNREFUSED"
        assert "Troubleshooting:" in str(error)
        assert operation.await_count == 2
        assert len(sleeps) == 1
        assert len(orchestrator.history) == 1
        assert orchestrator.detect_network_failure_pattern().pattern == "sporadic_errors"

    def test_to_caller_error(self, orchestrator):
        error = orchestrator.to_caller_error(classify(httpx.Response(503)))
        assert isinstance(error, OperationalError)
        assert error.code == 503
        assert "retried automatically" in error.troubleshooting


class TestPassthroughs:
    """Tests for orchestrator passthroughs to the engine."""

    def test_classify(self, orchestrator):
        assert orchestrator.classify(httpx.Response(401)).type is ErrorType.AUTHENTICATION

    def test_client_and_stats(self, orchestrator):
        assert orchestrator.client is orchestrator.engine.client
        assert orchestrator.get_network_stats().total_requests == 0

    def test_should_retry(self, orchestrator):
        assert orchestrator.should_retry(classify(httpx.Response(502))) is True
        assert orchestrator.should_retry(classify(httpx.Response(401))) is False

    def test_detect_pattern_with_explicit_errors(self, coded_error):
        orchestrator = Orchestrator(history=ErrorHistory(maxlen=5))
        errors = [classify(coded_error("ENOTFOUND")) for _ in range(3)]
        assert orchestrator.detect_network_failure_pattern(errors).pattern == "dns_resolution_failure"
        assert orchestrator.detect_network_failure_pattern().pattern == "no_errors"

    @pytest.mark.asyncio
    async def test_health_check(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200))
        async with Orchestrator(NetworkResilienceEngine(transport=transport)) as orchestrator:
            result = await orchestrator.perform_network_health_check(url="https://api.example.com")
        assert result.healthy is True


class TestResilienceContext:
    """Tests for building a ResilienceContext from settings."""

    @pytest.mark.asyncio
    async def test_from_settings(self, fake_sleep, clock):
        settings = ResilienceSettings(
            max_retries=1,
            pool_size=4,
            rate_limit=5,
            rate_limit_window_ms=1_000,
            service_name="Example API",
        )

        async with ResilienceContext.from_settings(
            settings, sleep_func=fake_sleep, clock=clock
        ) as ctx:
            assert ctx.engine.config.max_retries == 1
            assert ctx.engine.config.pool_size == 4
            assert ctx.rate_limiter.limit == 5
            assert ctx.rate_limiter.window_duration_ms == 1_000
            assert ctx.retry_policy.max_retries == 1

            with pytest.raises(OperationalError) as exc_info:
                await ctx.orchestrator.execute_with_retry(
                    AsyncMock(side_effect=ConnectionRefusedError("refused"))
                )

        assert "Example API" in exc_info.value.message
        assert ctx.engine.client.is_closed
