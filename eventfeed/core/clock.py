"""Injectable clocks for the event feed.

Everything that needs "now" or "today" takes a ``Clock`` instead of reading
the system time directly, so expansion and cache expiry can be tested
against pinned dates.
"""

from __future__ import annotations

import datetime
import logging
import os
import time
from typing import Optional, Protocol

from dateutil import parser as date_parser

logger = logging.getLogger(__name__)

TEST_TIME_ENV = "EVENTFEED_TEST_TIME"


class Clock(Protocol):
    """Source of wall-clock and monotonic time."""

    def now(self) -> datetime.datetime:
        """Return the current local wall-clock time (naive)."""
        ...

    def today(self) -> datetime.date:
        """Return the current local calendar date."""
        ...

    def now_ms(self) -> int:
        """Return the current time as epoch milliseconds."""
        ...

    def monotonic(self) -> float:
        """Return a monotonic timestamp in seconds."""
        ...


class SystemClock:
    """Clock backed by the host clock, with test time override support.

    If ``EVENTFEED_TEST_TIME`` is set to an ISO-8601 datetime, ``now()`` and
    ``today()`` report that instant instead. Epoch and monotonic time are not
    affected so timeouts keep working.
    """

    def now(self) -> datetime.datetime:
        test_time = os.environ.get(TEST_TIME_ENV)
        if test_time:
            try:
                dt = date_parser.isoparse(test_time)
                if dt.tzinfo is not None:
                    dt = dt.astimezone().replace(tzinfo=None)
                return dt
            except (ValueError, OverflowError) as e:
                logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV, test_time, e)
        return datetime.datetime.now()

    def today(self) -> datetime.date:
        return self.now().date()

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def monotonic(self) -> float:
        return time.monotonic()


class FixedClock:
    """Manually driven clock for tests.

    Wall-clock, epoch and monotonic time all move together when ``advance``
    is called.
    """

    def __init__(self, start: datetime.datetime, epoch_ms: Optional[int] = None):
        self._now = start
        self._epoch_ms = epoch_ms if epoch_ms is not None else int(start.timestamp() * 1000)
        self._monotonic = 0.0

    def now(self) -> datetime.datetime:
        return self._now

    def today(self) -> datetime.date:
        return self._now.date()

    def now_ms(self) -> int:
        return self._epoch_ms

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        """Move every time source forward by ``seconds``."""
        self._now += datetime.timedelta(seconds=seconds)
        self._epoch_ms += int(seconds * 1000)
        self._monotonic += seconds


_system_clock = SystemClock()


def system_clock() -> SystemClock:
    """Return the shared system clock instance."""
    return _system_clock
