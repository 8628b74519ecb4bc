"""Shared fixtures for CLI command tests."""

import os
from unittest.mock import patch

import pytest
from click.testing import CliRunner


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_env(tmp_path):
    """Keep user config and API_RESILIENCE_* variables out of CLI runs."""
    with patch.dict(os.environ, {"XDG_CONFIG_HOME": str(tmp_path / "xdg")}, clear=True):
        original_cwd = os.getcwd()
        os.chdir(tmp_path)
        try:
            yield
        finally:
            os.chdir(original_cwd)
