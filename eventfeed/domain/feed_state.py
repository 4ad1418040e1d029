"""State machine for choosing where a feed load gets its records.

The transition function is pure so the fallback order can be tested
without any I/O::

    PROBING --ONLINE--> FETCHING_REMOTE --REMOTE_OK--> REMOTE
       |                      |
       OFFLINE           REMOTE_FAILED
       v                      v
    READING_CACHE <-----------+
       |--CACHE_HIT_FRESH--> CACHE_FRESH
       |--CACHE_HIT_STALE--> CACHE_STALE
       +--CACHE_MISS-------> EMPTY
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from ..exceptions import InvalidTransitionError


class FeedState(str, Enum):
    PROBING = "probing"
    FETCHING_REMOTE = "fetching_remote"
    READING_CACHE = "reading_cache"
    # terminal
    REMOTE = "remote"
    CACHE_FRESH = "cache_fresh"
    CACHE_STALE = "cache_stale"
    EMPTY = "empty"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


class FeedSignal(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"
    REMOTE_OK = "remote_ok"
    REMOTE_FAILED = "remote_failed"
    CACHE_HIT_FRESH = "cache_hit_fresh"
    CACHE_HIT_STALE = "cache_hit_stale"
    CACHE_MISS = "cache_miss"


TERMINAL_STATES = frozenset(
    {FeedState.REMOTE, FeedState.CACHE_FRESH, FeedState.CACHE_STALE, FeedState.EMPTY}
)

_TRANSITIONS: dict[tuple[FeedState, FeedSignal], FeedState] = {
    (FeedState.PROBING, FeedSignal.ONLINE): FeedState.FETCHING_REMOTE,
    (FeedState.PROBING, FeedSignal.OFFLINE): FeedState.READING_CACHE,
    (FeedState.FETCHING_REMOTE, FeedSignal.REMOTE_OK): FeedState.REMOTE,
    (FeedState.FETCHING_REMOTE, FeedSignal.REMOTE_FAILED): FeedState.READING_CACHE,
    (FeedState.READING_CACHE, FeedSignal.CACHE_HIT_FRESH): FeedState.CACHE_FRESH,
    (FeedState.READING_CACHE, FeedSignal.CACHE_HIT_STALE): FeedState.CACHE_STALE,
    (FeedState.READING_CACHE, FeedSignal.CACHE_MISS): FeedState.EMPTY,
}


def transition(state: FeedState, signal: FeedSignal) -> FeedState:
    """Return the state reached from ``state`` on ``signal``.

    Raises:
        InvalidTransitionError: if ``signal`` is not valid in ``state``
    """
    try:
        return _TRANSITIONS[(state, signal)]
    except KeyError:
        raise InvalidTransitionError(f"No transition from {state.value} on {signal.value}") from None


def classify_cache_hit(
    data: object,
    age_ms: Optional[int],
    max_age_ms: int,
) -> FeedSignal:
    """Map a stale-read result and its age to the cache signal.

    Data without a known age counts as stale.
    """
    if data is None:
        return FeedSignal.CACHE_MISS
    if age_ms is not None and age_ms <= max_age_ms:
        return FeedSignal.CACHE_HIT_FRESH
    return FeedSignal.CACHE_HIT_STALE
