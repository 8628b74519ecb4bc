"""Unit tests for the api-resilience health command."""

import json
from unittest.mock import AsyncMock, patch

from api_resilience.cli.main import cli
from api_resilience.core.resilience import HealthCheckResult

_RUN = "api_resilience.cli.commands.health._run_health_check"


class TestHealthCommand:
    """Tests for health probe output (probe mocked)."""

    def test_healthy(self, cli_runner):
        result_obj = HealthCheckResult(
            healthy=True, latency_ms=12.5, details="DNS resolution successful for example.com"
        )
        with patch(_RUN, new=AsyncMock(return_value=result_obj)) as run:
            result = cli_runner.invoke(cli, ["health"])

        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["data"]["healthy"] is True
        assert data["data"]["latency_ms"] == 12.5
        _settings, host, url = run.await_args.args
        assert host is None
        assert url is None

    def test_options_forwarded(self, cli_runner):
        result_obj = HealthCheckResult(healthy=True, latency_ms=1.0, details="ok")
        with patch(_RUN, new=AsyncMock(return_value=result_obj)) as run:
            cli_runner.invoke(cli, ["health", "--url", "https://api.example.com"])

        _settings, host, url = run.await_args.args
        assert url == "https://api.example.com"

    def test_unhealthy_exits_nonzero(self, cli_runner):
        result_obj = HealthCheckResult(
            healthy=False,
            latency_ms=3.0,
            details="Health check failed: DNS resolution failed during health_check",
        )
        with patch(_RUN, new=AsyncMock(return_value=result_obj)):
            result = cli_runner.invoke(cli, ["health", "--host", "nonexistent.invalid"])

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        assert data["error"].startswith("Health check failed")
        assert data["data"]["error_code"] == "UNHEALTHY"
        assert data["data"]["healthy"] is False
