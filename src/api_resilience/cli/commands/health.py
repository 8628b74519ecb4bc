"""Network health check command."""

import asyncio
from dataclasses import asdict
from typing import Optional

import click

from api_resilience.cli.output import emit_error, emit_success
from api_resilience.config import ResilienceSettings
from api_resilience.core.resilience.context import ResilienceContext
from api_resilience.core.resilience.models import HealthCheckResult


async def _run_health_check(
    settings: ResilienceSettings,
    host: Optional[str],
    url: Optional[str],
) -> HealthCheckResult:
    async with ResilienceContext.from_settings(settings) as ctx:
        return await ctx.orchestrator.perform_network_health_check(host=host, url=url)


@click.command("health")
@click.option("--host", default=None, help="Host to resolve via DNS.")
@click.option("--url", default=None, help="URL to probe with a HEAD request.")
@click.pass_obj
def health_cmd(settings: ResilienceSettings, host: Optional[str], url: Optional[str]) -> None:
    """Run one health probe; exits 1 when the network is unhealthy."""
    result = asyncio.run(_run_health_check(settings, host, url))
    payload = asdict(result)
    if not result.healthy:
        emit_error(
            result.details,
            code="UNHEALTHY",
            error_type="network",
            remediation="Check your internet connection, DNS and firewall settings.",
            details=payload,
        )
    emit_success(payload)
