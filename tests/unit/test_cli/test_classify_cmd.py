"""Unit tests for the api-resilience classify command.

Tests cover:
- HTTP statuses (rate limit with Retry-After, validation, server errors)
- Transport error codes
- Argument validation (exactly one of --status / --code)
"""

import json

from api_resilience.cli.main import cli


def _invoke(cli_runner, *args):
    result = cli_runner.invoke(cli, ["classify", *args])
    return result, json.loads(result.output)


class TestClassifyStatus:
    """Tests for --status."""

    def test_rate_limit_with_retry_after(self, cli_runner):
        result, payload = _invoke(cli_runner, "--status", "429", "--retry-after", "60")
        assert result.exit_code == 0, f"Unexpected output: {result.output}"
        data = payload["data"]
        assert data["type"] == "rate_limit"
        assert data["code"] == 429
        assert data["retryable"] is True
        assert data["retry_after_seconds"] == 60
        assert data["retry_delay_ms"] == 60_000
        assert data["kind"] == "operational"

    def test_validation_is_caller_input(self, cli_runner):
        result, payload = _invoke(cli_runner, "--status", "400")
        assert result.exit_code == 0
        data = payload["data"]
        assert data["type"] == "validation"
        assert data["kind"] == "caller-input"
        assert data["retry_delay_ms"] is None
        assert "Troubleshooting:" in data["formatted_message"]

    def test_server_error_uses_service_name(self, cli_runner):
        result, payload = _invoke(cli_runner, "--status", "503")
        assert result.exit_code == 0
        data = payload["data"]
        assert data["retryable"] is True
        assert data["retry_delay_ms"] == 1000
        assert "remote API" in data["message"]


class TestClassifyCode:
    """Tests for --code."""

    def test_connection_refused(self, cli_runner):
        result, payload = _invoke(
            cli_runner, "--code", "ECONNREFUSED", "--operation", "fetch_posts"
        )
        assert result.exit_code == 0
        data = payload["data"]
        assert data["type"] == "network"
        assert data["code"] == 0
        assert data["details"]["error_code"] == "ECONNREFUSED"
        assert "fetch_posts" in data["message"]

    def test_certificate_code_not_retryable(self, cli_runner):
        result, payload = _invoke(cli_runner, "--code", "CERT_HAS_EXPIRED")
        assert result.exit_code == 0
        assert payload["data"]["retryable"] is False
        assert payload["data"]["retry_delay_ms"] is None


class TestClassifyArguments:
    """Tests for argument validation."""

    def test_neither_option(self, cli_runner):
        result, payload = _invoke(cli_runner)
        assert result.exit_code == 1
        assert payload["success"] is False
        assert payload["data"]["error_code"] == "VALIDATION_ERROR"
        assert "Exactly one" in payload["error"]

    def test_both_options(self, cli_runner):
        result, payload = _invoke(cli_runner, "--status", "500", "--code", "ECONNRESET")
        assert result.exit_code == 1
        assert payload["data"]["error_code"] == "VALIDATION_ERROR"
