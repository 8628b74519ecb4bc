"""Metric records for the resilience layer.

Counters (attempt failures, local rate-limit rejections), gauges (in-flight
attempts) and timers (attempt and operation durations) are written as DEBUG
records on the ``api_resilience.core.observability.metrics.metrics`` logger.
Each record carries the metric under ``record.metric``.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

Number = Union[int, float]


class MetricType(Enum):
    """Kinds of metric records."""

    COUNTER = "counter"
    GAUGE = "gauge"
    TIMER = "timer"


@dataclass
class Metric:
    """One metric sample."""

    name: str
    value: Number
    metric_type: MetricType
    labels: Dict[str, str] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "value": self.value,
            "type": self.metric_type.value,
            "labels": self.labels,
            "timestamp": self.timestamp,
        }


class MetricsCollector:
    """Writes metric samples to a dedicated logger.

    Nothing is built unless the logger is enabled for DEBUG, so hot paths
    pay only a level check by default.
    """

    def __init__(self, prefix: str = "api_resilience"):
        self.prefix = prefix
        self._logger = logging.getLogger(f"{__name__}.metrics")

    @property
    def enabled(self) -> bool:
        return self._logger.isEnabledFor(logging.DEBUG)

    def emit(self, metric: Metric) -> None:
        """Write ``metric`` as one DEBUG record."""
        self._logger.debug(
            "METRIC: %s.%s=%s",
            self.prefix,
            metric.name,
            metric.value,
            extra={"metric": metric.to_dict()},
        )

    def _record(
        self,
        metric_type: MetricType,
        name: str,
        value: Number,
        labels: Optional[Mapping[str, str]],
    ) -> None:
        if not self.enabled:
            return
        self.emit(Metric(name=name, value=value, metric_type=metric_type, labels=dict(labels or {})))

    def counter(self, name: str, value: int = 1, labels: Optional[Mapping[str, str]] = None) -> None:
        self._record(MetricType.COUNTER, name, value, labels)

    def gauge(self, name: str, value: Number, labels: Optional[Mapping[str, str]] = None) -> None:
        """Current level of something, e.g. in-flight attempts."""
        self._record(MetricType.GAUGE, name, value, labels)

    def timer(self, name: str, duration_ms: float, labels: Optional[Mapping[str, str]] = None) -> None:
        """Duration in milliseconds."""
        self._record(MetricType.TIMER, name, round(duration_ms, 3), labels)


_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Process-wide collector."""
    return _metrics
