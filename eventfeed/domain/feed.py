"""Upcoming-events feed: remote first, cache when the network is unusable."""

from __future__ import annotations

import datetime as dt
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Optional, Union

from dateutil import parser as date_parser

from ..cache.tiered_cache import DEFAULT_MAX_AGE_MS, CacheKey, TieredCache
from ..core.clock import Clock, system_clock
from ..core.connectivity import ConnectivityProbe, StaticProbe
from ..core.health_tracker import FeedHealthTracker
from ..feed_logging import new_load_id
from ..sources import EventStore
from .feed_state import FeedSignal, FeedState, classify_cache_hit, transition
from .models import EventInstance, EventRecord, parse_records
from .recurrence import DEFAULT_HORIZON_MONTHS, expand

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_LIMIT = 3

_TIME_RANGE_SPLIT = re.compile(r"\s*(?:-|–|\bto\b)\s*", re.IGNORECASE)
_PARSE_DEFAULT = dt.datetime(2000, 1, 1)
_NAMED_TIMES = {"noon": 12 * 60, "midday": 12 * 60, "midnight": 0}


@dataclass
class FeedOutcome:
    """Where the last load got its data and how much it produced."""

    state: FeedState
    record_count: int = 0
    instance_count: int = 0
    cache_age_ms: Optional[int] = None


def time_of_day_minutes(time_text: str) -> int:
    """Convert a display time like "6:30 PM" or "18:30" to minutes after midnight.

    Only the start of a range ("10:00 AM - 12:00 PM") is used. A bare
    number is an hour of the day and "noon" or "midnight" are understood.
    Text that does not parse as a time sorts as the start of the day.
    """
    if not time_text or not time_text.strip():
        return 0
    start = _TIME_RANGE_SPLIT.split(time_text.strip(), maxsplit=1)[0].strip()
    lowered = start.lower()
    if lowered in _NAMED_TIMES:
        return _NAMED_TIMES[lowered]
    # dateutil reads a bare number as the day of the month
    if start.isdigit():
        hour = int(start)
        return hour * 60 if hour < 24 else 0
    try:
        parsed = date_parser.parse(start, default=_PARSE_DEFAULT)
    except (ValueError, OverflowError):
        return 0
    return parsed.hour * 60 + parsed.minute


def _display_sort_key(instance: EventInstance) -> tuple[dt.date, int]:
    return instance.date, time_of_day_minutes(instance.time)


def _clip_to_today(instance: EventInstance, today: dt.date) -> Optional[EventInstance]:
    """Return ``instance`` if it is still upcoming or in progress on ``today``.

    A multi-day event that started before today and has not ended yet is
    moved to today; its real start is kept in ``original_date``.
    """
    if instance.date >= today:
        return instance
    if instance.is_multi_day and instance.end_date is not None and instance.end_date >= today:
        return instance.model_copy(
            update={"date": today, "original_date": instance.original_date or instance.date}
        )
    return None


def select_upcoming(
    records: Sequence[EventRecord],
    today: dt.date,
    limit: int = DEFAULT_DISPLAY_LIMIT,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> list[EventInstance]:
    """Expand records and return the next ``limit`` instances on or after ``today``.

    Multi-day events still in progress are included, dated today.
    Instances are ordered by date, then time of day. Ties keep expansion
    order.
    """
    if limit <= 0:
        return []
    upcoming = []
    for instance in expand(records, horizon_months, today):
        kept = _clip_to_today(instance, today)
        if kept is not None:
            upcoming.append(kept)
    upcoming.sort(key=_display_sort_key)
    return upcoming[:limit]


def _sort_records_by_date(records: list[EventRecord]) -> list[EventRecord]:
    return sorted(records, key=lambda r: (r.date is None, r.date or dt.date.min))


class FeedOrchestrator:
    """Loads the upcoming-events list, degrading from remote to cache to empty.

    Every load runs the ``feed_state`` machine: probe, then the remote
    store when online, then the cache when offline or when the remote
    query fails. A successful remote load refreshes the cache.
    """

    def __init__(
        self,
        store: EventStore,
        cache: TieredCache,
        probe: Union[ConnectivityProbe, StaticProbe],
        clock: Optional[Clock] = None,
        horizon_months: int = DEFAULT_HORIZON_MONTHS,
        cache_max_age_ms: int = DEFAULT_MAX_AGE_MS,
        health_tracker: Optional[FeedHealthTracker] = None,
    ):
        """Initialize the orchestrator.

        Args:
            store: Remote events collection
            cache: Cache holding the last good record collection
            probe: Connectivity probe consulted before every load
            clock: Clock supplying "today" (defaults to the system clock)
            horizon_months: Recurrence expansion horizon
            cache_max_age_ms: Age separating fresh from stale cache loads
            health_tracker: Optional tracker told about every load
        """
        self.store = store
        self.cache = cache
        self.probe = probe
        self.horizon_months = horizon_months
        self.cache_max_age_ms = cache_max_age_ms
        self.health_tracker = health_tracker
        self._clock = clock or system_clock()
        self.last_outcome: Optional[FeedOutcome] = None

    async def load_upcoming_events(self, limit: int = DEFAULT_DISPLAY_LIMIT) -> list[EventInstance]:
        """Return the next ``limit`` upcoming event instances.

        Never raises: when nothing usable can be found the result is empty.

        Args:
            limit: Maximum number of instances to return

        Returns:
            Instances ordered by date and time of day
        """
        load_id = new_load_id()
        today = self._clock.today()
        outcome = FeedOutcome(state=FeedState.PROBING)
        logger.debug("Feed load %s started for %s (limit=%d)", load_id, today, limit)

        try:
            records = await self._acquire_records(outcome)
            result = select_upcoming(records, today, limit, self.horizon_months)
        except Exception:
            logger.exception("Feed load failed, retrying from cache")
            result = await self._cache_fallback(today, limit, outcome)

        outcome.instance_count = len(result)
        self.last_outcome = outcome
        if self.health_tracker is not None:
            self.health_tracker.record_load(
                outcome.state.value, outcome.instance_count, outcome.cache_age_ms
            )

        logger.info(
            "Feed load finished: source=%s records=%d instances=%d",
            outcome.state.value,
            outcome.record_count,
            outcome.instance_count,
        )
        return result

    async def refresh(self, limit: int = DEFAULT_DISPLAY_LIMIT) -> list[EventInstance]:
        """Re-probe the network and reload, ignoring any memoized probe result."""
        self.probe.invalidate()
        return await self.load_upcoming_events(limit)

    async def _acquire_records(self, outcome: FeedOutcome) -> list[EventRecord]:
        """Walk the state machine to a terminal state and return its records."""
        online = await self.probe.is_online()
        state = transition(outcome.state, FeedSignal.ONLINE if online else FeedSignal.OFFLINE)
        outcome.state = state

        if state is FeedState.FETCHING_REMOTE:
            try:
                records = await self._fetch_remote()
            except Exception as e:
                logger.warning("Remote events query failed, falling back to cache: %s", e)
                if self.health_tracker is not None:
                    self.health_tracker.record_remote_failure()
                outcome.state = transition(state, FeedSignal.REMOTE_FAILED)
            else:
                outcome.state = transition(state, FeedSignal.REMOTE_OK)
                outcome.record_count = len(records)
                return records
        else:
            logger.info("Offline, loading events from cache")

        return await self._read_cache(outcome)

    async def _fetch_remote(self) -> list[EventRecord]:
        """Query the store, preferring server-side ordering, and refresh the cache."""
        try:
            raw = await self.store.query_events(ordered=True)
            records = parse_records(raw)
        except Exception as e:
            logger.info("Ordered events query failed (%s), retrying unordered", e)
            raw = await self.store.query_events(ordered=False)
            records = _sort_records_by_date(parse_records(raw))

        await self.cache.write(CacheKey.EVENTS, [record.to_dict() for record in records])
        logger.debug("Fetched %d event records from remote store", len(records))
        return records

    async def _read_cache(self, outcome: FeedOutcome) -> list[EventRecord]:
        data: Any = await self.cache.read_stale(CacheKey.EVENTS)
        age_ms = await self.cache.age(CacheKey.EVENTS)

        if data is not None and not isinstance(data, list):
            logger.warning("Cached events entry is not a list, ignoring it")
            data = None

        outcome.state = transition(outcome.state, classify_cache_hit(data, age_ms, self.cache_max_age_ms))
        if data is None:
            logger.info("No cached events available")
            return []

        outcome.cache_age_ms = age_ms
        records = parse_records(data)
        outcome.record_count = len(records)
        if outcome.state is FeedState.CACHE_STALE:
            logger.info("Serving stale cached events (age %sms)", age_ms)
        return records

    async def _cache_fallback(self, today: dt.date, limit: int, outcome: FeedOutcome) -> list[EventInstance]:
        """Last resort after an unexpected failure: whatever the cache holds."""
        try:
            outcome.state = FeedState.READING_CACHE
            outcome.record_count = 0
            records = await self._read_cache(outcome)
            return select_upcoming(records, today, limit, self.horizon_months)
        except Exception:
            logger.exception("Cache fallback failed, returning no events")
            outcome.state = FeedState.EMPTY
            return []
