"""Parsing and normalization helpers for configuration values.

Invalid values are logged and the current value is kept, so a typo in an
environment variable never prevents startup.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)

_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def _parse_int(value: Any, key: str, current: int, minimum: int = 0) -> int:
    """Parse an integer setting, keeping ``current`` when invalid.

    Args:
        value: Raw value from TOML or the environment.
        key: Setting name, for the warning message.
        current: Value to keep when ``value`` is invalid.
        minimum: Smallest accepted value.
    """
    if isinstance(value, bool):
        logger.warning("Invalid value for %s: %r (expected integer). Keeping %d", key, value, current)
        return current
    try:
        parsed = int(str(value).strip()) if not isinstance(value, int) else value
    except ValueError:
        logger.warning("Invalid value for %s: %r (expected integer). Keeping %d", key, value, current)
        return current
    if parsed < minimum:
        logger.warning("Invalid value for %s: %d (minimum %d). Keeping %d", key, parsed, minimum, current)
        return current
    return parsed


def _normalize_log_level(value: Any, current: str) -> str:
    normalized = str(value).strip().upper()
    if normalized not in _VALID_LOG_LEVELS:
        logger.warning(
            "Invalid log level '%s'. Keeping '%s'. Valid options: %s",
            value,
            current,
            ", ".join(sorted(_VALID_LOG_LEVELS)),
        )
        return current
    return normalized


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
