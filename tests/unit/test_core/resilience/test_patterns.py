"""Unit tests for failure-pattern detection and the error history buffer."""

import pytest

from api_resilience.core.resilience import ErrorHistory, Severity, classify, detect_failure_pattern


@pytest.fixture
def errors_for(coded_error):
    """Build classified errors for a list of transport codes."""

    def _build(*codes):
        return [classify(coded_error(code), "fetch_posts") for code in codes]

    return _build


class TestDetectFailurePattern:
    """Tests for detect_failure_pattern thresholds."""

    def test_no_errors(self):
        pattern = detect_failure_pattern([])
        assert pattern.pattern == "no_errors"
        assert pattern.severity is Severity.LOW
        assert pattern.recommendation == "Network is operating normally"

    def test_high_timeout_rate(self, errors_for):
        pattern = detect_failure_pattern(errors_for(*["ETIMEDOUT"] * 6))
        assert pattern.pattern == "high_timeout_rate"
        assert pattern.severity is Severity.HIGH

    def test_connection_instability(self, errors_for):
        errors = errors_for("ECONNREFUSED", "ECONNRESET") * 3
        pattern = detect_failure_pattern(errors)
        assert pattern.pattern == "connection_instability"
        assert pattern.severity is Severity.HIGH

    def test_dns_resolution_failure(self, errors_for):
        pattern = detect_failure_pattern(errors_for(*["ENOTFOUND"] * 4))
        assert pattern.pattern == "dns_resolution_failure"
        assert pattern.severity is Severity.MEDIUM

    def test_general_network_instability(self, errors_for):
        errors = errors_for("ECONNREFUSED", "ENOTFOUND", "ECONNABORTED", "ECONNRESET", "ENOTFOUND")
        pattern = detect_failure_pattern(errors)
        assert pattern.pattern == "general_network_instability"
        assert pattern.severity is Severity.MEDIUM

    def test_sporadic_errors(self, errors_for):
        pattern = detect_failure_pattern(errors_for("ECONNRESET", "ETIMEDOUT"))
        assert pattern.pattern == "sporadic_errors"
        assert pattern.severity is Severity.LOW

    def test_timeout_detected_from_message(self):
        errors = [classify(RuntimeError("upstream timeout")) for _ in range(5)]
        assert detect_failure_pattern(errors).pattern == "high_timeout_rate"

    def test_only_last_ten_entries_count(self, errors_for):
        errors = errors_for(*["ETIMEDOUT"] * 6) + errors_for(*["ECONNABORTED"] * 10)
        assert detect_failure_pattern(errors).pattern == "general_network_instability"


class TestErrorHistory:
    """Tests for the bounded ErrorHistory buffer."""

    def test_evicts_oldest(self, errors_for):
        history = ErrorHistory(maxlen=3)
        for error in errors_for("ECONNRESET", "ENOTFOUND", "ETIMEDOUT", "ECONNREFUSED"):
            history.append(error)
        assert len(history) == 3
        assert [e.error_code for e in history.snapshot()] == ["ENOTFOUND", "ETIMEDOUT", "ECONNREFUSED"]

    def test_detect_pattern_uses_contents(self, errors_for):
        history = ErrorHistory(errors=errors_for(*["ENOTFOUND"] * 3))
        assert history.detect_pattern().pattern == "dns_resolution_failure"
        history.clear()
        assert history.detect_pattern().pattern == "no_errors"

    def test_rejects_non_positive_maxlen(self):
        with pytest.raises(ValueError):
            ErrorHistory(maxlen=0)
