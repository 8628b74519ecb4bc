"""Classify a synthetic failure and show how it would be reported."""

from typing import Optional

import click
import httpx

from api_resilience.cli.output import emit_error, emit_success
from api_resilience.config import ResilienceSettings
from api_resilience.core.errors.base import error_kind_for
from api_resilience.core.resilience.classifier import classify
from api_resilience.core.resilience.orchestrator import format_message, get_retry_delay


class TransportFailure(Exception):
    """Stand-in for a transport error carrying only a code."""

    def __init__(self, code: str, message: str = ""):
        super().__init__(message or code)
        self.code = code


@click.command("classify")
@click.option("--status", type=int, default=None, help="HTTP status code of the response.")
@click.option("--retry-after", default=None, help="Retry-After header value (with --status).")
@click.option("--code", default=None, help="Transport error code, e.g. ECONNREFUSED.")
@click.option("--message", default="", help="Error message (with --code).")
@click.option("--operation", default="api_operation", show_default=True)
@click.pass_obj
def classify_cmd(
    settings: ResilienceSettings,
    status: Optional[int],
    retry_after: Optional[str],
    code: Optional[str],
    message: str,
    operation: str,
) -> None:
    """Classify an HTTP status or transport error code."""
    if (status is None) == (code is None):
        emit_error(
            "Exactly one of --status or --code is required",
            code="VALIDATION_ERROR",
            error_type="validation",
            remediation="Pass --status 503 or --code ECONNREFUSED",
        )

    if status is not None:
        headers = {"retry-after": retry_after} if retry_after is not None else {}
        raw = httpx.Response(status, headers=headers)
    else:
        raw = TransportFailure(code, message)

    classified = classify(raw, operation, service=settings.service_name)
    data = classified.to_dict()
    data["kind"] = error_kind_for(classified.type).value
    data["formatted_message"] = format_message(classified)
    data["retry_delay_ms"] = get_retry_delay(classified, 1) if classified.retryable else None
    emit_success(data)
