"""ResilienceSettings loading logic.

Provides ``_SettingsLoader``, a mixin whose methods are inherited by
``ResilienceSettings`` (defined in ``settings.py``). Keeping the loading
code here leaves ``settings.py`` focused on fields and projections.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, cast

if TYPE_CHECKING:
    from api_resilience.config.settings import ResilienceSettings

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # Python < 3.11 fallback

from api_resilience.config.parsing import (
    _normalize_log_level,
    _optional_str,
    _parse_bool,
    _parse_int,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "API_RESILIENCE_"
CONFIG_FILE_ENV_VAR = f"{ENV_PREFIX}CONFIG_FILE"
PROJECT_CONFIG_NAME = "api-resilience.toml"

# attribute -> (toml section, toml key, env var suffix, minimum)
_INT_SETTINGS: Dict[str, Tuple[str, str, str, int]] = {
    "timeout_ms": ("resilience", "timeout_ms", "TIMEOUT_MS", 1),
    "max_retries": ("resilience", "max_retries", "MAX_RETRIES", 0),
    "base_delay_ms": ("resilience", "base_delay_ms", "BASE_DELAY_MS", 0),
    "max_delay_ms": ("resilience", "max_delay_ms", "MAX_DELAY_MS", 0),
    "pool_size": ("resilience", "pool_size", "POOL_SIZE", 1),
    "keep_alive_ms": ("resilience", "keep_alive_ms", "KEEP_ALIVE_MS", 0),
    "rate_limit": ("rate_limit", "limit", "RATE_LIMIT", 1),
    "rate_limit_window_ms": ("rate_limit", "window_duration_ms", "RATE_LIMIT_WINDOW_MS", 1),
    "rate_limit_default_delay_ms": (
        "rate_limit",
        "default_delay_ms",
        "RATE_LIMIT_DEFAULT_DELAY_MS",
        0,
    ),
}


def user_config_path() -> Path:
    """XDG location of the user-level config file."""
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")
    return Path(xdg_config_home) / "api-resilience" / "config.toml"


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    values = data.get(name)
    return values if isinstance(values, dict) else {}


class _SettingsLoader:
    """Mixin providing config-loading methods for ``ResilienceSettings``."""

    if TYPE_CHECKING:
        timeout_ms: int
        keep_alive: bool
        service_name: str
        health_host: str
        health_url: Optional[str]
        log_level: str
        structured_logging: bool

    @classmethod
    def from_env(cls, config_file: Optional[str] = None) -> "ResilienceSettings":
        """
        Create settings from environment variables and optional TOML files.

        Priority (highest to lowest):
        1. Environment variables (``API_RESILIENCE_*``)
        2. Explicit config file (argument or ``API_RESILIENCE_CONFIG_FILE``),
           otherwise project TOML (``./api-resilience.toml``)
        3. User TOML (``~/.config/api-resilience/config.toml``)
        4. Default values
        """
        settings = cls()

        toml_path = config_file or os.environ.get(CONFIG_FILE_ENV_VAR)
        if toml_path:
            settings._load_toml(Path(toml_path))
        else:
            user_config = user_config_path()
            if user_config.exists():
                settings._load_toml(user_config)
                logger.debug("Loaded user config from %s", user_config)

            project_config = Path(PROJECT_CONFIG_NAME)
            if project_config.exists():
                settings._load_toml(project_config)
                logger.debug("Loaded project config from %s", project_config)

        settings._load_env()
        return cast("ResilienceSettings", settings)

    def _load_toml(self, path: Path) -> None:
        """Load settings from a TOML file."""
        if not path.exists():
            logger.warning("Config file not found: %s", path)
            return

        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.error("Failed to load config from %s: %s", path, e)
            return

        self._apply_mapping(data)

    def _apply_mapping(self, data: Dict[str, Any]) -> None:
        for attr, (section, key, _env, minimum) in _INT_SETTINGS.items():
            values = _section(data, section)
            if key in values:
                setattr(
                    self,
                    attr,
                    _parse_int(values[key], f"{section}.{key}", getattr(self, attr), minimum),
                )

        resilience = _section(data, "resilience")
        if "keep_alive" in resilience:
            self.keep_alive = _parse_bool(resilience["keep_alive"])
        if "service_name" in resilience:
            self.service_name = str(resilience["service_name"])

        health = _section(data, "health")
        if "host" in health:
            self.health_host = str(health["host"])
        if "url" in health:
            self.health_url = _optional_str(health["url"])

        logging_section = _section(data, "logging")
        if "level" in logging_section:
            self.log_level = _normalize_log_level(logging_section["level"], self.log_level)
        if "structured" in logging_section:
            self.structured_logging = _parse_bool(logging_section["structured"])

    def _load_env(self) -> None:
        """Load settings from ``API_RESILIENCE_*`` environment variables."""
        for attr, (_table, _key, suffix, minimum) in _INT_SETTINGS.items():
            if raw := os.environ.get(f"{ENV_PREFIX}{suffix}"):
                setattr(
                    self,
                    attr,
                    _parse_int(raw, f"{ENV_PREFIX}{suffix}", getattr(self, attr), minimum),
                )

        if keep_alive := os.environ.get(f"{ENV_PREFIX}KEEP_ALIVE"):
            self.keep_alive = _parse_bool(keep_alive)
        if service := os.environ.get(f"{ENV_PREFIX}SERVICE_NAME"):
            self.service_name = service
        if host := os.environ.get(f"{ENV_PREFIX}HEALTH_HOST"):
            self.health_host = host
        if url := os.environ.get(f"{ENV_PREFIX}HEALTH_URL"):
            self.health_url = _optional_str(url)
        if level := os.environ.get(f"{ENV_PREFIX}LOG_LEVEL"):
            self.log_level = _normalize_log_level(level, self.log_level)
        if structured := os.environ.get(f"{ENV_PREFIX}STRUCTURED_LOGGING"):
            self.structured_logging = _parse_bool(structured)
