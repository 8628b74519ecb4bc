"""Audit logging for resilience events.

Provides structured audit logging with automatic correlation ID
population from request context.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from api_resilience.core.context import get_correlation_id

logger = logging.getLogger(__name__)


class AuditEventType(Enum):
    """Types of audit events emitted by the resilience layer."""

    RETRY_ATTEMPT = "retry_attempt"
    RATE_LIMIT_WAIT = "rate_limit_wait"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    OPERATION_SUCCEEDED = "operation_succeeded"
    OPERATION_FAILED = "operation_failed"
    HEALTH_CHECK = "health_check"
    CONFIG_CHANGE = "config_change"


@dataclass
class AuditEvent:
    """Structured audit event."""

    event_type: AuditEventType
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    correlation_id: Optional[str] = None
    actor_id: Optional[str] = None

    def __post_init__(self) -> None:
        """Auto-populate correlation_id from context if not set."""
        if self.correlation_id is None:
            self.correlation_id = get_correlation_id() or None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "event_type": self.event_type.value,
            "timestamp": self.timestamp,
            "details": self.details,
        }
        if self.correlation_id:
            result["correlation_id"] = self.correlation_id
        if self.actor_id:
            result["actor_id"] = self.actor_id
        return result


class AuditLogger:
    """
    Structured audit logging for resilience events.

    Audit logs are written to a separate logger for easy filtering.
    """

    def __init__(self):
        self._logger = logging.getLogger(f"{__name__}.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        self._logger.info(f"AUDIT: {event.event_type.value}", extra={"audit": event.to_dict()})

    def retry_attempt(
        self,
        operation: str,
        attempt: int,
        max_attempts: int,
        delay_ms: float,
        **details: Any,
    ) -> None:
        """Log a scheduled retry."""
        self.log(
            AuditEvent(
                event_type=AuditEventType.RETRY_ATTEMPT,
                details={
                    "operation": operation,
                    "attempt": attempt,
                    "max_attempts": max_attempts,
                    "delay_ms": round(delay_ms, 1),
                    **details,
                },
            )
        )

    def rate_limit_wait(self, wait_ms: float, actor_id: Optional[str] = None, **details: Any) -> None:
        """Log a wait imposed by a rate limit."""
        self.log(
            AuditEvent(
                event_type=AuditEventType.RATE_LIMIT_WAIT,
                actor_id=actor_id,
                details={"wait_ms": round(wait_ms, 1), **details},
            )
        )

    def rate_limit_exceeded(
        self,
        actor_id: str,
        limit: Optional[int] = None,
        **details: Any,
    ) -> None:
        """Log a locally enforced rate limit rejection."""
        self.log(
            AuditEvent(
                event_type=AuditEventType.RATE_LIMIT_EXCEEDED,
                actor_id=actor_id,
                details={"limit": limit, **details},
            )
        )


# Global audit logger
_audit = AuditLogger()


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger."""
    return _audit


def audit_log(event_type: str, **details: Any) -> None:
    """
    Convenience function for audit logging.

    Args:
        event_type: Type of event (retry_attempt, rate_limit_wait, operation_failed, ...)
        **details: Additional details to include in the audit log
    """
    try:
        event_enum = AuditEventType(event_type)
    except ValueError:
        event_enum = AuditEventType.OPERATION_FAILED
        details["original_event_type"] = event_type

    _audit.log(AuditEvent(event_type=event_enum, details=details))
