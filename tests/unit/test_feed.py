"""Unit tests for eventfeed.domain.feed."""

from datetime import date
from unittest.mock import AsyncMock, Mock

import pytest

from eventfeed.cache import CacheKey
from eventfeed.core.connectivity import StaticProbe
from eventfeed.core.health_tracker import FeedHealthTracker
from eventfeed.domain.feed import FeedOrchestrator, select_upcoming, time_of_day_minutes
from eventfeed.domain.feed_state import FeedState
from eventfeed.domain.models import EventRecord, parse_records

pytestmark = pytest.mark.unit


class TestTimeOfDay:
    @pytest.mark.parametrize(
        ("text", "minutes"),
        [
            ("6:30 PM", 18 * 60 + 30),
            ("6:30pm", 18 * 60 + 30),
            ("18:30", 18 * 60 + 30),
            ("10 AM", 10 * 60),
            ("12:00 AM", 0),
            ("10:00 AM - 12:00 PM", 10 * 60),
            ("7pm to 9pm", 19 * 60),
            ("", 0),
            ("7", 7 * 60),
            ("Noon", 12 * 60),
            ("TBD", 0),
        ],
    )
    def test_parses_display_times(self, text, minutes):
        assert time_of_day_minutes(text) == minutes


class TestSelectUpcoming:
    def test_next_three_in_date_then_time_order(self, sample_documents, today):
        records = parse_records(sample_documents)

        upcoming = select_upcoming(records, today, limit=3)

        assert [(i.id, i.date) for i in upcoming] == [
            ("bible-study_2025-03-05", date(2025, 3, 5)),
            ("youth-night", date(2025, 3, 7)),
            ("sunday-service_2025-03-09", date(2025, 3, 9)),
        ]

    def test_past_events_are_excluded(self, sample_documents, today):
        upcoming = select_upcoming(parse_records(sample_documents), today, limit=100)
        assert all(i.date >= today for i in upcoming)
        assert "past-concert" not in {i.id for i in upcoming}

    def test_ongoing_multi_day_event_is_kept_as_today(self, today):
        records = parse_records(
            [{"id": "conf", "title": "Conference", "date": "2025-03-04", "endDate": "2025-03-07", "isMultiDay": True}]
        )

        upcoming = select_upcoming(records, today, limit=3)

        assert [i.id for i in upcoming] == ["conf"]
        assert upcoming[0].date == today
        assert upcoming[0].end_date == date(2025, 3, 7)
        assert upcoming[0].original_date == date(2025, 3, 4)

    def test_multi_day_event_ending_today_is_kept(self, today):
        records = [EventRecord(id="camp", date=date(2025, 3, 1), end_date=today, is_multi_day=True)]
        assert [i.date for i in select_upcoming(records, today)] == [today]

    def test_finished_multi_day_event_is_excluded(self, today):
        records = [
            EventRecord(id="done", date=date(2025, 3, 1), end_date=date(2025, 3, 4), is_multi_day=True),
            EventRecord(id="no-end", date=date(2025, 3, 1), is_multi_day=True),
        ]
        assert select_upcoming(records, today) == []

    def test_ongoing_event_sorts_before_later_events(self, today):
        records = [
            EventRecord(id="later", date=date(2025, 3, 6)),
            EventRecord(id="ongoing", date=date(2025, 3, 3), end_date=date(2025, 3, 8), is_multi_day=True),
        ]
        assert [i.id for i in select_upcoming(records, today)] == ["ongoing", "later"]

    def test_same_day_sorted_by_time(self, today):
        records = [
            EventRecord(id="evening", date=today, time="7:00 PM"),
            EventRecord(id="morning", date=today, time="9:00 AM"),
            EventRecord(id="noon", date=today, time="12:00 PM"),
        ]
        assert [i.id for i in select_upcoming(records, today, limit=3)] == ["morning", "noon", "evening"]

    def test_ties_keep_input_order(self, today):
        records = [
            EventRecord(id="first", date=today, time="TBD"),
            EventRecord(id="second", date=today),
        ]
        assert [i.id for i in select_upcoming(records, today, limit=2)] == ["first", "second"]

    def test_limit_bounds_result(self, sample_documents, today):
        records = parse_records(sample_documents)
        assert len(select_upcoming(records, today, limit=1)) == 1
        assert select_upcoming(records, today, limit=0) == []

    def test_horizon_is_respected(self, today):
        records = [EventRecord(id="later", date=date(2025, 6, 1))]
        assert select_upcoming(records, today, limit=3, horizon_months=1) == []
        assert len(select_upcoming(records, today, limit=3, horizon_months=6)) == 1


def _orchestrator(store, cache, fixed_clock, online=True, **kwargs) -> FeedOrchestrator:
    return FeedOrchestrator(
        store=store,
        cache=cache,
        probe=StaticProbe(online=online),
        clock=fixed_clock,
        **kwargs,
    )


class TestFeedOrchestrator:
    @pytest.mark.asyncio
    async def test_online_load_uses_remote_and_writes_cache(
        self, fake_store_factory, sample_documents, cache, fixed_clock
    ):
        store = fake_store_factory(sample_documents)
        feed = _orchestrator(store, cache, fixed_clock)

        result = await feed.load_upcoming_events()

        assert len(result) == 3
        assert store.calls == [True]
        assert feed.last_outcome.state is FeedState.REMOTE
        assert feed.last_outcome.record_count == 5
        cached = await cache.read_stale(CacheKey.EVENTS)
        assert {doc["id"] for doc in cached} == {d["id"] for d in sample_documents}

    @pytest.mark.asyncio
    async def test_ordered_failure_retries_unordered(
        self, fake_store_factory, sample_documents, remote_errors, cache, fixed_clock
    ):
        store = fake_store_factory(list(reversed(sample_documents)), ordered_error=remote_errors["index"])
        feed = _orchestrator(store, cache, fixed_clock)

        result = await feed.load_upcoming_events()

        assert store.calls == [True, False]
        assert feed.last_outcome.state is FeedState.REMOTE
        assert [i.id for i in result][0] == "bible-study_2025-03-05"
        cached_dates = [doc["date"] for doc in await cache.read_stale(CacheKey.EVENTS)]
        assert cached_dates == sorted(cached_dates)

    @pytest.mark.asyncio
    async def test_offline_skips_remote(self, fake_store_factory, sample_documents, cache, fixed_clock):
        store = fake_store_factory(sample_documents)
        await cache.write(CacheKey.EVENTS, sample_documents)
        feed = _orchestrator(store, cache, fixed_clock, online=False)

        result = await feed.load_upcoming_events()

        assert store.calls == []
        assert len(result) == 3
        assert feed.last_outcome.state is FeedState.CACHE_FRESH
        assert feed.last_outcome.cache_age_ms == 0

    @pytest.mark.asyncio
    async def test_stale_cache_served_when_offline(self, fake_store_factory, sample_documents, cache, fixed_clock):
        await cache.write(CacheKey.EVENTS, sample_documents)
        fixed_clock.advance(3 * 24 * 60 * 60)
        feed = _orchestrator(fake_store_factory([]), cache, fixed_clock, online=False)

        result = await feed.load_upcoming_events()

        assert feed.last_outcome.state is FeedState.CACHE_STALE
        assert result
        # Stale reads never evict
        assert await cache.read_stale(CacheKey.EVENTS) is not None

    @pytest.mark.asyncio
    async def test_empty_when_offline_without_cache(self, fake_store_factory, cache, fixed_clock):
        feed = _orchestrator(fake_store_factory([]), cache, fixed_clock, online=False)

        assert await feed.load_upcoming_events() == []
        assert feed.last_outcome.state is FeedState.EMPTY

    @pytest.mark.asyncio
    async def test_non_list_cache_entry_is_a_miss(self, fake_store_factory, cache, fixed_clock):
        await cache.write(CacheKey.EVENTS, {"unexpected": "shape"})
        feed = _orchestrator(fake_store_factory([]), cache, fixed_clock, online=False)

        assert await feed.load_upcoming_events() == []
        assert feed.last_outcome.state is FeedState.EMPTY

    @pytest.mark.asyncio
    async def test_remote_failure_falls_back_and_is_tracked(
        self, fake_store_factory, sample_documents, remote_errors, cache, fixed_clock
    ):
        await cache.write(CacheKey.EVENTS, sample_documents)
        tracker = FeedHealthTracker()
        store = fake_store_factory(sample_documents, error=remote_errors["transient"])
        feed = _orchestrator(store, cache, fixed_clock, health_tracker=tracker)

        result = await feed.load_upcoming_events()

        assert len(result) == 3
        assert feed.last_outcome.state is FeedState.CACHE_FRESH
        status = tracker.get_status()
        assert status.remote_failures == 1
        assert status.status == "degraded"
        assert status.last_source == "cache_fresh"

    @pytest.mark.asyncio
    async def test_limit_is_passed_through(self, fake_store_factory, sample_documents, cache, fixed_clock):
        feed = _orchestrator(fake_store_factory(sample_documents), cache, fixed_clock)
        assert len(await feed.load_upcoming_events(limit=5)) == 5

    @pytest.mark.asyncio
    async def test_unexpected_probe_error_falls_back_to_cache(
        self, fake_store_factory, sample_documents, cache, fixed_clock
    ):
        await cache.write(CacheKey.EVENTS, sample_documents)
        probe = Mock()
        probe.is_online = AsyncMock(side_effect=RuntimeError("probe exploded"))
        feed = FeedOrchestrator(
            store=fake_store_factory(sample_documents), cache=cache, probe=probe, clock=fixed_clock
        )

        result = await feed.load_upcoming_events()

        assert len(result) == 3
        assert feed.last_outcome.state is FeedState.CACHE_FRESH

    @pytest.mark.asyncio
    async def test_never_raises_when_everything_fails(self, fake_store_factory, fixed_clock):
        probe = Mock()
        probe.is_online = AsyncMock(side_effect=RuntimeError("probe exploded"))
        broken_cache = Mock()
        broken_cache.read_stale = AsyncMock(side_effect=RuntimeError("cache exploded"))
        feed = FeedOrchestrator(
            store=fake_store_factory([]), cache=broken_cache, probe=probe, clock=fixed_clock
        )

        assert await feed.load_upcoming_events() == []
        assert feed.last_outcome.state is FeedState.EMPTY

    @pytest.mark.asyncio
    async def test_refresh_invalidates_probe(self, fake_store_factory, cache, fixed_clock):
        probe = Mock()
        probe.is_online = AsyncMock(return_value=False)
        feed = FeedOrchestrator(store=fake_store_factory([]), cache=cache, probe=probe, clock=fixed_clock)

        await feed.refresh()

        probe.invalidate.assert_called_once()
