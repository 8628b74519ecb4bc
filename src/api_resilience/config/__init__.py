"""Settings for api-resilience.

Settings are read from ``API_RESILIENCE_*`` environment variables and
TOML files (``./api-resilience.toml``, ``~/.config/api-resilience/config.toml``).

Usage:
    from api_resilience.config import get_settings

    settings = get_settings()
    settings.setup_logging()
"""

from api_resilience.config.loader import CONFIG_FILE_ENV_VAR, ENV_PREFIX, user_config_path
from api_resilience.config.settings import ResilienceSettings, get_settings, set_settings

__all__ = [
    "CONFIG_FILE_ENV_VAR",
    "ENV_PREFIX",
    "ResilienceSettings",
    "get_settings",
    "set_settings",
    "user_config_path",
]
