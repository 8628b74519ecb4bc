"""ResilienceSettings dataclass and process-level accessors.

Contains the settings fields, projections onto the engine and retry
models, logging setup, and the global ``get_settings`` / ``set_settings``
helpers. Loading logic lives in the ``_SettingsLoader`` mixin
(``loader.py``).
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from api_resilience.config.loader import _SettingsLoader
from api_resilience.core.resilience.models import ResilienceConfig, RetryPolicy

_LOGGER_NAME = "api_resilience"


@dataclass
class ResilienceSettings(_SettingsLoader):
    """Process-level resilience settings.

    Defaults match :class:`ResilienceConfig` and a limit of 1000 requests
    per hour per actor.
    """

    # [resilience]
    timeout_ms: int = 30_000
    max_retries: int = 3
    base_delay_ms: int = 1_000
    max_delay_ms: int = 30_000
    pool_size: int = 10
    keep_alive: bool = True
    keep_alive_ms: int = 60_000
    service_name: str = "remote API"

    # [rate_limit]
    rate_limit: int = 1000
    rate_limit_window_ms: int = 3_600_000
    rate_limit_default_delay_ms: int = 60_000

    # [health]
    health_host: str = "example.com"
    health_url: Optional[str] = None

    # [logging]
    log_level: str = "INFO"
    structured_logging: bool = False

    def to_resilience_config(self) -> ResilienceConfig:
        """Engine configuration derived from these settings."""
        return ResilienceConfig(
            timeout_ms=self.timeout_ms,
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            pool_size=self.pool_size,
            keep_alive=self.keep_alive,
            keep_alive_ms=self.keep_alive_ms,
        )

    def to_retry_policy(self) -> RetryPolicy:
        """Rate limiter retry policy derived from these settings."""
        return RetryPolicy(
            max_retries=self.max_retries,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms,
            default_rate_limit_delay_ms=self.rate_limit_default_delay_ms,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def setup_logging(self) -> None:
        """Configure the ``api_resilience`` logger based on settings."""
        level = getattr(logging, self.log_level, logging.INFO)

        if self.structured_logging:
            # JSON-style structured logging
            formatter = logging.Formatter(
                '{"timestamp":"%(asctime)s","level":"%(levelname)s","logger":"%(name)s","message":"%(message)s"}'
            )
        else:
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

        handler = logging.StreamHandler()
        handler.setFormatter(formatter)

        package_logger = logging.getLogger(_LOGGER_NAME)
        package_logger.setLevel(level)
        package_logger.addHandler(handler)


# Global settings instance
_settings: Optional[ResilienceSettings] = None


def get_settings() -> ResilienceSettings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = ResilienceSettings.from_env()
    return _settings


def set_settings(settings: Optional[ResilienceSettings]) -> None:
    """Set (or, with ``None``, reset) the global settings instance."""
    global _settings
    _settings = settings
