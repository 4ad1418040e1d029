"""eventfeed - offline-resilient upcoming events feed.

Loads a church's event collection from a remote document store, expands
weekly recurring events into dated instances and falls back to a local
cache when the network is unavailable.
"""

__version__ = "0.1.0"

from typing import Any, Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream colored output to the console.

    Honors EVENTFEED_DEBUG (truthy values: "1", "true", "yes", "on") which
    forces DEBUG verbosity regardless of ``level_name``.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    from .feed_logging import LoadIdFilter

    debug_env = os.environ.get("EVENTFEED_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   [load id] logger.name: message
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s [%(load_id)s] %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        handler.addFilter(LoadIdFilter())
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug("Logging initialized at level %s", logging.getLevelName(level))


def build_orchestrator(
    config: Any,
    events_file: Optional[str] = None,
    offline: bool = False,
) -> Any:
    """Wire a FeedOrchestrator from configuration.

    Args:
        config: FeedConfig or plain mapping with the same keys
        events_file: Read events from this JSON export instead of Firestore
        offline: Skip the network probe and serve from the cache only

    Returns:
        FeedOrchestrator ready for ``load_upcoming_events``

    Raises:
        ValueError: if no event source is configured
    """
    from .cache import SqliteKeyValueStore, TieredCache
    from .cache.tiered_cache import DEFAULT_MAX_AGE_MS
    from .core import connectivity
    from .core.clock import system_clock
    from .core.config_manager import get_config_value
    from .core.health_tracker import FeedHealthTracker
    from .domain.feed import FeedOrchestrator
    from .sources import FirestoreEventStore, JsonFileEventStore

    clock = system_clock()
    project_id = get_config_value(config, "firestore_project_id")
    if events_file:
        store: Any = JsonFileEventStore(events_file)
    elif project_id:
        store = FirestoreEventStore(
            project_id,
            collection=get_config_value(config, "events_collection", "events"),
            api_key=get_config_value(config, "firestore_api_key"),
        )
    else:
        raise ValueError("No event source configured: set firestore_project_id or pass an events file")

    if offline:
        probe: Any = connectivity.StaticProbe(online=False)
    else:
        probe = connectivity.ConnectivityProbe(
            clock=clock,
            url=get_config_value(config, "probe_url", connectivity.DEFAULT_PROBE_URL),
            timeout_seconds=get_config_value(
                config, "probe_timeout_seconds", connectivity.DEFAULT_PROBE_TIMEOUT_SECONDS
            ),
            cache_seconds=get_config_value(config, "probe_cache_seconds", connectivity.DEFAULT_CACHE_SECONDS),
            poll_interval_seconds=get_config_value(
                config, "probe_poll_interval_seconds", connectivity.DEFAULT_POLL_INTERVAL_SECONDS
            ),
        )

    cache = TieredCache(
        SqliteKeyValueStore(get_config_value(config, "cache_path", "eventfeed_cache.sqlite3")),
        clock=clock,
    )
    max_age_hours = get_config_value(config, "cache_max_age_hours")
    max_age_ms = int(max_age_hours) * 60 * 60 * 1000 if max_age_hours else DEFAULT_MAX_AGE_MS

    return FeedOrchestrator(
        store=store,
        cache=cache,
        probe=probe,
        clock=clock,
        horizon_months=get_config_value(config, "horizon_months", 12),
        cache_max_age_ms=max_age_ms,
        health_tracker=FeedHealthTracker(clock=clock),
    )


async def _load_and_close(orchestrator: Any, limit: int) -> list[Any]:
    from .core.http_client import close_all_clients

    try:
        return await orchestrator.load_upcoming_events(limit)
    finally:
        await close_all_clients()


def run_feed(args: Optional[object] = None) -> int:
    """Load the upcoming events once and print them.

    Args:
        args: argparse Namespace with optional ``config``, ``limit``,
            ``events_file`` and ``offline`` attributes

    Returns:
        Process exit code
    """
    import asyncio
    import logging

    from .config_loader import load_config
    from .domain.recurrence import format_recurrence
    from .feed_logging import configure_feed_logging

    config_path = getattr(args, "config", None)
    try:
        cfg = load_config(config_path)
    except (OSError, ValueError) as e:
        print(f"Error: cannot load configuration: {e}")
        return 2

    _init_logging(cfg.log_level)
    configure_feed_logging(debug_mode=cfg.log_level == "DEBUG")
    logger = logging.getLogger(__name__)

    try:
        orchestrator = build_orchestrator(
            cfg,
            events_file=getattr(args, "events_file", None),
            offline=bool(getattr(args, "offline", False)),
        )
    except ValueError as e:
        print(f"Error: {e}")
        return 2

    limit = getattr(args, "limit", None)
    if limit is None:
        limit = cfg.display_limit
    instances = asyncio.run(_load_and_close(orchestrator, limit))

    outcome = orchestrator.last_outcome
    logger.debug("Feed health: %s", orchestrator.health_tracker.as_dict())
    source = outcome.state.value if outcome else "unknown"
    print(f"Upcoming events ({source}):")
    if not instances:
        print("  No upcoming events")
        return 0

    for instance in instances:
        line = f"  {instance.date.isoformat()}"
        if instance.time:
            line += f" {instance.time}"
        line += f"  {instance.title}"
        if instance.location:
            line += f" @ {instance.location}"
        if instance.is_recurring_instance:
            recurrence = format_recurrence(instance.recurrence_pattern)
            if recurrence:
                line += f" ({recurrence})"
        print(line)
    return 0
