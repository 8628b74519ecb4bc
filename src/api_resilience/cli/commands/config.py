"""Show the effective settings."""

import click

from api_resilience.cli.output import emit_success
from api_resilience.config import ResilienceSettings


@click.command("config")
@click.pass_obj
def config_cmd(settings: ResilienceSettings) -> None:
    """Print the effective settings after TOML and environment overrides."""
    emit_success(settings.to_dict())
