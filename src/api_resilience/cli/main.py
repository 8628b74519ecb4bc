"""Entry point for the ``api-resilience`` diagnostics CLI."""

import click

from api_resilience.cli.commands import classify_cmd, config_cmd, health_cmd
from api_resilience.config import ResilienceSettings


@click.group()
@click.option(
    "--config-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="TOML config file (overrides the default search path).",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default=None,
    help="Enable logging to stderr at this level.",
)
@click.pass_context
def cli(ctx: click.Context, config_file, log_level) -> None:
    """Inspect resilience settings, probe the network and classify failures."""
    settings = ResilienceSettings.from_env(config_file)
    if log_level:
        settings.log_level = log_level.upper()
        settings.setup_logging()
    ctx.obj = settings


cli.add_command(config_cmd)
cli.add_command(health_cmd)
cli.add_command(classify_cmd)


if __name__ == "__main__":
    cli()
