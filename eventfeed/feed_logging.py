"""
Central logging configuration for eventfeed.

Suppresses verbose debug logs from the HTTP and storage libraries while
keeping the feed's own diagnostics, and tags every record with the id of
the feed load that produced it.
"""

import logging
import os
import uuid
from contextvars import ContextVar
from typing import Optional

# Id of the feed load currently running in this task context
load_id_var: ContextVar[str] = ContextVar("load_id", default="")


def new_load_id() -> str:
    """Generate a load id and bind it to the current context.

    Returns:
        The new short load id
    """
    load_id = uuid.uuid4().hex[:8]
    load_id_var.set(load_id)
    return load_id


def get_load_id() -> str:
    """Get the current feed load id, or "no-load-id" outside a load."""
    return load_id_var.get() or "no-load-id"


class LoadIdFilter(logging.Filter):
    """Add the current feed load id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.load_id = get_load_id()
        return True


def configure_feed_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for eventfeed.

    Args:
        debug_mode: Whether to enable debug logging for eventfeed modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        EVENTFEED_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        EVENTFEED_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("EVENTFEED_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("EVENTFEED_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(root_level)

    load_filter = LoadIdFilter()

    # Keep an existing colored handler from eventfeed._init_logging
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(root_level)
        formatter = logging.Formatter(
            "[%(asctime)s] [%(load_id)s] %(levelname)s - %(name)s - %(message)s"
        )
        handler.setFormatter(formatter)
        handler.addFilter(load_filter)
        root_logger.addHandler(handler)
    else:
        for existing_handler in root_logger.handlers:
            existing_handler.addFilter(load_filter)

    logger_config: dict[str, int] = {
        "httpx": logging.WARNING,
        "httpcore": logging.WARNING,
        "aiosqlite": logging.WARNING,
        "asyncio": logging.WARNING,
    }

    feed_level = logging.DEBUG if final_debug else logging.INFO
    for module in (
        "eventfeed",
        "eventfeed.cache",
        "eventfeed.core",
        "eventfeed.domain",
        "eventfeed.sources",
    ):
        logger_config[module] = feed_level

    for logger_name, level in logger_config.items():
        logging.getLogger(logger_name).setLevel(level)

    if final_debug:
        root_logger.info("Debug logging enabled for eventfeed modules")
    else:
        root_logger.debug("Production logging configuration applied")


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("eventfeed", "httpx", "aiosqlite", "asyncio"):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
