"""Unit tests for correlation ids, audit events and metrics records."""

import logging
from unittest.mock import AsyncMock

import pytest

from api_resilience.core.context import (
    correlation_context,
    ensure_correlation_id,
    get_correlation_id,
    new_correlation_id,
)
from api_resilience.core.observability import AuditEvent, AuditEventType, audit_log
from api_resilience.core.resilience import NetworkResilienceEngine, ResilienceConfig

AUDIT_LOGGER = "api_resilience.core.observability.audit"
METRICS_LOGGER = "api_resilience.core.observability.metrics"


def _audit_records(caplog):
    return [record.audit for record in caplog.records if hasattr(record, "audit")]


class TestCorrelationContext:
    """Tests for correlation id binding."""

    def test_new_ids_are_unique(self):
        assert new_correlation_id() != new_correlation_id()
        assert len(new_correlation_id()) == 26

    def test_context_binds_and_resets(self):
        assert get_correlation_id() == ""
        with correlation_context("req-123") as cid:
            assert cid == "req-123"
            assert get_correlation_id() == "req-123"
        assert get_correlation_id() == ""

    def test_ensure_reuses_existing(self):
        with correlation_context("req-123"):
            with ensure_correlation_id() as cid:
                assert cid == "req-123"

        with ensure_correlation_id() as cid:
            assert cid
            assert get_correlation_id() == cid
        assert get_correlation_id() == ""


class TestAuditEvents:
    """Tests for audit event construction and emission."""

    def test_event_picks_up_correlation_id(self):
        with correlation_context("req-9"):
            event = AuditEvent(event_type=AuditEventType.HEALTH_CHECK, actor_id="acct-1")
        data = event.to_dict()
        assert data["event_type"] == "health_check"
        assert data["correlation_id"] == "req-9"
        assert data["actor_id"] == "acct-1"

    def test_unknown_event_type_is_kept_in_details(self, caplog):
        with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER):
            audit_log("something_else", operation="fetch_posts")
        (record,) = _audit_records(caplog)
        assert record["event_type"] == "operation_failed"
        assert record["details"]["original_event_type"] == "something_else"

    @pytest.mark.asyncio
    async def test_engine_retry_emits_audit_trail(self, caplog, fake_sleep):
        operation = AsyncMock(side_effect=[ConnectionResetError("reset"), "ok"])

        with caplog.at_level(logging.INFO, logger=AUDIT_LOGGER):
            async with NetworkResilienceEngine(
                ResilienceConfig(max_retries=2), sleep_func=fake_sleep
            ) as engine:
                with correlation_context("req-42"):
                    result = await engine.execute_with_retry(operation, "fetch_posts")

        assert result.success is True
        events = _audit_records(caplog)
        assert [event["event_type"] for event in events] == [
            "retry_attempt",
            "operation_succeeded",
        ]
        assert all(event["correlation_id"] == "req-42" for event in events)
        assert events[0]["details"]["error_code"] == "ECONNRESET"
        assert events[0]["details"]["attempt"] == 1
        assert events[1]["details"]["attempts"] == 2


class TestMetrics:
    """Metrics records are emitted only at DEBUG."""

    @pytest.mark.asyncio
    async def test_metrics_at_debug(self, caplog):
        with caplog.at_level(logging.DEBUG, logger=METRICS_LOGGER):
            async with NetworkResilienceEngine() as engine:
                await engine.execute_with_retry(AsyncMock(return_value=1), "fetch_info")

        metrics = [record.metric for record in caplog.records if hasattr(record, "metric")]
        assert metrics[-1]["name"] == "operation_duration_ms"
        assert metrics[-1]["labels"] == {"operation": "fetch_info"}

    @pytest.mark.asyncio
    async def test_no_metrics_at_info(self, caplog):
        with caplog.at_level(logging.INFO, logger=METRICS_LOGGER):
            async with NetworkResilienceEngine() as engine:
                await engine.execute_with_retry(AsyncMock(return_value=1), "fetch_info")

        assert not [record for record in caplog.records if hasattr(record, "metric")]

    @pytest.mark.asyncio
    async def test_active_connections_gauge(self, caplog):
        with caplog.at_level(logging.DEBUG, logger=METRICS_LOGGER):
            async with NetworkResilienceEngine() as engine:
                await engine.execute_with_retry(AsyncMock(return_value=1), "fetch_info")

        gauges = [
            record.metric
            for record in caplog.records
            if hasattr(record, "metric") and record.metric["type"] == "gauge"
        ]
        assert [gauge["name"] for gauge in gauges] == ["active_connections"]
        assert gauges[0]["value"] == 1
        assert gauges[0]["labels"] == {"operation": "fetch_info"}
