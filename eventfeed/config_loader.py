"""eventfeed.config_loader

Config loader for eventfeed.

- Reads YAML (PyYAML); JSON files load too since JSON is valid YAML.
- Exposes a typed dataclass `FeedConfig` and a `load_config()` helper that
  accepts an optional path override.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .core.connectivity import (
    DEFAULT_CACHE_SECONDS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_PROBE_URL,
)

logger = logging.getLogger(__name__)


@dataclass
class FeedConfig:
    """Typed configuration for eventfeed.

    Fields:
        probe_url: resource fetched to test reachability
        probe_timeout_seconds: single probe timeout (0.5..30)
        probe_cache_seconds: how long a probe result is reused
        probe_poll_interval_seconds: delay between probes while waiting for network
        cache_max_age_hours: freshness limit for fresh cache reads (1..168)
        horizon_months: recurrence expansion horizon (1..24)
        display_limit: number of upcoming events returned by default
        cache_path: sqlite file backing the cache
        firestore_project_id: Firestore project holding the events collection
        firestore_api_key: optional API key appended to Firestore requests
        events_collection: collection name to query
        log_level: logging level name
    """

    probe_url: str = DEFAULT_PROBE_URL
    probe_timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS
    probe_cache_seconds: float = DEFAULT_CACHE_SECONDS
    probe_poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    cache_max_age_hours: int = 24
    horizon_months: int = 12
    display_limit: int = 3
    cache_path: str = "eventfeed_cache.sqlite3"
    firestore_project_id: Optional[str] = None
    firestore_api_key: Optional[str] = None
    events_collection: str = "events"
    log_level: str = "INFO"

    @property
    def cache_max_age_ms(self) -> int:
        return self.cache_max_age_hours * 60 * 60 * 1000

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> FeedConfig:
        """Create FeedConfig from a plain mapping, applying defaults and bounds.

        Numeric values are coerced; out-of-range values are clamped with a
        warning rather than rejected.
        """
        if data is None:
            data = {}

        def _coerce_int(key: str, default: int, lo: int, hi: int) -> int:
            raw = data.get(key, default)
            try:
                value = int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default
            if value < lo or value > hi:
                clamped = max(lo, min(value, hi))
                logger.warning("Config %s=%d out of range; coercing to %d", key, value, clamped)
                return clamped
            return value

        def _coerce_float(key: str, default: float, lo: float, hi: float) -> float:
            raw = data.get(key, default)
            try:
                value = float(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not a number; using default %s", key, raw, default)
                return default
            return max(lo, min(value, hi))

        def _optional_str(key: str) -> Optional[str]:
            raw = data.get(key)
            return str(raw) if raw not in (None, "") else None

        log_level = data.get("log_level", "INFO")
        log_level = str(log_level).upper() if log_level is not None else "INFO"

        return cls(
            probe_url=str(data.get("probe_url") or DEFAULT_PROBE_URL),
            probe_timeout_seconds=_coerce_float(
                "probe_timeout_seconds", DEFAULT_PROBE_TIMEOUT_SECONDS, 0.5, 30.0
            ),
            probe_cache_seconds=_coerce_float("probe_cache_seconds", DEFAULT_CACHE_SECONDS, 0.0, 300.0),
            probe_poll_interval_seconds=_coerce_float(
                "probe_poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS, 0.1, 60.0
            ),
            cache_max_age_hours=_coerce_int("cache_max_age_hours", 24, 1, 168),
            horizon_months=_coerce_int("horizon_months", 12, 1, 24),
            display_limit=_coerce_int("display_limit", 3, 1, 100),
            cache_path=str(data.get("cache_path") or "eventfeed_cache.sqlite3"),
            firestore_project_id=_optional_str("firestore_project_id"),
            firestore_api_key=_optional_str("firestore_api_key"),
            events_collection=str(data.get("events_collection") or "events"),
            log_level=log_level,
        )


def load_config(path: str | None = None, env_overrides: bool = True) -> FeedConfig:
    """Load configuration from a YAML/JSON file and return a FeedConfig.

    Args:
        path: Optional path to the config file. Defaults to ./eventfeed.yaml.
        env_overrides: Apply EVENTFEED_* environment variables on top of the file

    Returns:
        FeedConfig instance with values from file, environment, or defaults.

    Raises:
        ValueError: if the file exists but its top level is not a mapping.
    """
    p = Path(path) if path else Path.cwd() / "eventfeed.yaml"
    raw: dict[str, Any] = {}

    if p.exists():
        loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            logger.warning("Config file %s parsed but top-level is not a mapping: %r", p, loaded)
            raise ValueError("Config file must contain a mapping at top level")  # noqa: TRY004
        raw.update(loaded)
        logger.info("Loaded configuration from %s", p)
    else:
        logger.info("Config file %s not found; using defaults", p)

    if env_overrides:
        from .core.config_manager import ConfigManager

        raw.update(ConfigManager().load_full_config())

    cfg = FeedConfig.from_dict(raw)
    logger.debug("Configuration values: %s", cfg)
    return cfg
