"""Shared fixtures for eventfeed tests."""

from collections.abc import Generator
from datetime import date, datetime
from typing import Any, Optional

import pytest

from eventfeed.cache import MemoryKeyValueStore, TieredCache
from eventfeed.core.clock import FixedClock
from eventfeed.exceptions import QueryShapeError, RemoteQueryError

# Wednesday
TODAY = date(2025, 3, 5)


def pytest_configure(config: Any) -> None:
    """Register test markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Multi-component feed scenarios")
    config.addinivalue_line("markers", "fast: Tests that finish in well under a second")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear EVENTFEED_* variables so host settings cannot leak into tests."""
    for name in (
        "EVENTFEED_TEST_TIME",
        "EVENTFEED_DEBUG",
        "EVENTFEED_LOG_LEVEL",
        "EVENTFEED_PROBE_URL",
        "EVENTFEED_PROBE_TIMEOUT",
        "EVENTFEED_CACHE_MAX_AGE_HOURS",
        "EVENTFEED_HORIZON_MONTHS",
        "EVENTFEED_DISPLAY_LIMIT",
        "EVENTFEED_CACHE_PATH",
        "EVENTFEED_FIRESTORE_PROJECT_ID",
        "EVENTFEED_FIRESTORE_API_KEY",
        "EVENTFEED_EVENTS_COLLECTION",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def fixed_clock() -> FixedClock:
    """Clock pinned to 09:00 on TODAY."""
    return FixedClock(datetime(2025, 3, 5, 9, 0), epoch_ms=1_741_165_200_000)


@pytest.fixture
def memory_store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def cache(memory_store: MemoryKeyValueStore, fixed_clock: FixedClock) -> TieredCache:
    return TieredCache(memory_store, clock=fixed_clock)


@pytest.fixture
def sample_documents() -> list[dict[str, Any]]:
    """Event documents as the remote store returns them (camelCase)."""
    return [
        {
            "id": "bible-study",
            "title": "Midweek Bible Study",
            "location": "Fellowship Hall",
            "category": "study",
            "date": "2025-01-01",
            "time": "6:00 PM",
            "isRecurring": True,
            "recurrencePattern": {"dayOfWeek": 3, "startDate": "2025-01-01", "time": "7:00 PM"},
        },
        {
            "id": "youth-night",
            "title": "Youth Night",
            "location": "Gym",
            "date": "2025-03-07",
            "time": "6:30 PM",
        },
        {
            "id": "retreat",
            "title": "Spring Retreat",
            "date": "2025-03-14",
            "time": "4:00 PM",
            "isMultiDay": True,
            "endDate": "2025-03-16",
        },
        {
            "id": "past-concert",
            "title": "Winter Concert",
            "date": "2025-02-01",
            "time": "7:00 PM",
        },
        {
            "id": "sunday-service",
            "title": "Sunday Worship",
            "date": "2025-01-05",
            "time": "10:00 AM",
            "isRecurring": True,
            "recurrencePattern": {"dayOfWeek": 0, "startDate": "2025-01-05"},
        },
    ]


class FakeEventStore:
    """In-memory EventStore that can be told to fail."""

    def __init__(
        self,
        documents: list[dict[str, Any]],
        ordered_error: Optional[Exception] = None,
        error: Optional[Exception] = None,
    ):
        self.documents = documents
        self.ordered_error = ordered_error
        self.error = error
        self.calls: list[bool] = []

    async def query_events(self, ordered: bool = True) -> list[dict[str, Any]]:
        self.calls.append(ordered)
        if self.error is not None:
            raise self.error
        if ordered and self.ordered_error is not None:
            raise self.ordered_error
        docs = list(self.documents)
        if ordered:
            docs.sort(key=lambda d: str(d.get("date") or ""))
        return docs


@pytest.fixture
def fake_store_factory() -> Any:
    """Return the FakeEventStore class for building stores in tests."""
    return FakeEventStore


@pytest.fixture
def remote_errors() -> dict[str, Exception]:
    return {
        "transient": RemoteQueryError("connection reset"),
        "index": QueryShapeError("The query requires an index"),
    }
