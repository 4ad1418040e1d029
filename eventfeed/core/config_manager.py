"""Environment-based configuration for eventfeed."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# env var -> config key
ENV_KEYS: dict[str, str] = {
    "EVENTFEED_PROBE_URL": "probe_url",
    "EVENTFEED_PROBE_TIMEOUT": "probe_timeout_seconds",
    "EVENTFEED_CACHE_MAX_AGE_HOURS": "cache_max_age_hours",
    "EVENTFEED_HORIZON_MONTHS": "horizon_months",
    "EVENTFEED_DISPLAY_LIMIT": "display_limit",
    "EVENTFEED_CACHE_PATH": "cache_path",
    "EVENTFEED_FIRESTORE_PROJECT_ID": "firestore_project_id",
    "EVENTFEED_FIRESTORE_API_KEY": "firestore_api_key",
    "EVENTFEED_EVENTS_COLLECTION": "events_collection",
    "EVENTFEED_LOG_LEVEL": "log_level",
}


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", path, exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


class ConfigManager:
    """Manages configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file into the environment without overriding existing keys.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        parsed = parse_env_file(self.env_file_path)
        set_keys = []
        for key, val in parsed.items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build a raw configuration mapping from EVENTFEED_* variables.

        Values are left as strings; FeedConfig.from_dict does the coercion.
        """
        cfg: dict[str, Any] = {}
        for env_key, cfg_key in ENV_KEYS.items():
            value = os.environ.get(env_key)
            if value:
                cfg[cfg_key] = value
        return cfg

    def load_full_config(self) -> dict[str, Any]:
        """Load .env file and build configuration from environment."""
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and dataclass-like objects."""
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
