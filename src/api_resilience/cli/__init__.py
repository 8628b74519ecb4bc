"""Diagnostics CLI for api-resilience."""

from api_resilience.cli.main import cli

__all__ = ["cli"]
