"""CLI commands."""

from api_resilience.cli.commands.classify import classify_cmd
from api_resilience.cli.commands.config import config_cmd
from api_resilience.cli.commands.health import health_cmd

__all__ = [
    "classify_cmd",
    "config_cmd",
    "health_cmd",
]
