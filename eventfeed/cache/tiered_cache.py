"""Timestamped cache with fresh and stale read tiers.

Each logical dataset lives under one ``CacheKey`` as a single JSON entry
``{"data": ..., "timestamp": <epoch ms>}``. Entries are only ever replaced
whole.

Two reads are exposed on purpose:

- ``read_fresh`` returns data only while it is younger than a maximum age
  and evicts it once it is not, pushing the caller onto the network path.
- ``read_stale`` returns whatever is stored, however old. Only offline
  fallback paths should use it.

Every operation swallows storage and decoding failures: the cache is an
optimization and must never abort the caller.

Example:
    cache = TieredCache(MemoryKeyValueStore())

    await cache.write(CacheKey.EVENTS, records)

    fresh = await cache.read_fresh(CacheKey.EVENTS)
    if fresh is None:
        fresh = await fetch_from_network()
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ValidationError

from ..core.clock import Clock, system_clock
from ..exceptions import CacheCorruptionError
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

# 24 hours in milliseconds
DEFAULT_MAX_AGE_MS = 24 * 60 * 60 * 1000


class CacheKey(str, Enum):
    """One key per logical dataset."""

    EVENTS = "@cache:events"
    ANNOUNCEMENTS = "@cache:announcements"
    DEVOTIONALS = "@cache:devotionals"
    DEPARTMENTS = "@cache:departments"
    MINISTRIES = "@cache:ministries"
    USER_PROFILE = "@cache:userProfile"
    SERMONS = "@cache:sermons"


KeyLike = Union[CacheKey, str]


class CacheEntry(BaseModel):
    """Stored cache payload."""

    data: Any = None
    timestamp: int


def _key_str(key: KeyLike) -> str:
    return key.value if isinstance(key, CacheKey) else str(key)


class TieredCache:
    """Cache of JSON-serializable values with write timestamps."""

    def __init__(self, store: KeyValueStore, clock: Optional[Clock] = None):
        """Initialize the cache.

        Args:
            store: Key-value store holding serialized entries
            clock: Clock providing epoch milliseconds (defaults to system clock)
        """
        self.store = store
        self._clock = clock or system_clock()
        self.stats = {
            "hits": 0,
            "misses": 0,
            "expirations": 0,
            "corrupt_reads": 0,
            "write_failures": 0,
        }

    async def write(self, key: KeyLike, value: Any) -> None:
        """Store ``value`` under ``key`` with the current timestamp.

        Overwrites any previous entry. Failures are logged, never raised.
        """
        k = _key_str(key)
        try:
            payload = json.dumps({"data": value, "timestamp": self._clock.now_ms()})
            await self.store.set_item(k, payload)
            logger.debug("Cached %s (%d bytes)", k, len(payload))
        except Exception as e:
            self.stats["write_failures"] += 1
            logger.error("Error caching data for %s: %s", k, e)

    async def read_fresh(self, key: KeyLike, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> Any:
        """Return cached data if it is no older than ``max_age_ms``.

        An expired entry is deleted as a side effect.

        Args:
            key: Cache key
            max_age_ms: Maximum age in milliseconds

        Returns:
            The cached value, or None if absent, expired or unreadable
        """
        k = _key_str(key)
        try:
            entry = await self._load_entry(k)
            if entry is None:
                self.stats["misses"] += 1
                return None

            age = self._clock.now_ms() - entry.timestamp
            if age > max_age_ms:
                self.stats["expirations"] += 1
                self.stats["misses"] += 1
                logger.debug("Cache entry %s expired (age %dms > %dms)", k, age, max_age_ms)
                await self.evict(k)
                return None

            self.stats["hits"] += 1
            return entry.data
        except Exception as e:
            self.stats["misses"] += 1
            logger.error("Error getting cached data for %s: %s", k, e)
            return None

    async def read_stale(self, key: KeyLike) -> Any:
        """Return cached data regardless of age, or None if absent or unreadable."""
        k = _key_str(key)
        try:
            entry = await self._load_entry(k)
        except Exception as e:
            logger.error("Error getting offline cached data for %s: %s", k, e)
            entry = None

        if entry is None:
            self.stats["misses"] += 1
            return None
        self.stats["hits"] += 1
        return entry.data

    async def evict(self, key: KeyLike) -> None:
        """Remove one entry."""
        k = _key_str(key)
        try:
            await self.store.remove_item(k)
        except Exception as e:
            logger.error("Error clearing cache for %s: %s", k, e)

    async def evict_all(self) -> None:
        """Remove the entry of every known dataset."""
        try:
            await self.store.multi_remove([key.value for key in CacheKey])
            logger.info("Cleared all cache entries")
        except Exception as e:
            logger.error("Error clearing all cache: %s", e)

    async def age(self, key: KeyLike) -> Optional[int]:
        """Return the age of the entry in milliseconds, or None if absent."""
        try:
            entry = await self._load_entry(_key_str(key))
        except Exception:
            return None
        if entry is None:
            return None
        return self._clock.now_ms() - entry.timestamp

    async def has_valid(self, key: KeyLike, max_age_ms: int = DEFAULT_MAX_AGE_MS) -> bool:
        """Return True if a fresh entry exists. Evicts it if expired."""
        return await self.read_fresh(key, max_age_ms) is not None

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics, including hit rate as a percentage."""
        total = self.stats["hits"] + self.stats["misses"]
        hit_rate = (self.stats["hits"] / total * 100) if total > 0 else 0.0
        return {**self.stats, "hit_rate": round(hit_rate, 2)}

    async def _load_entry(self, key: str) -> Optional[CacheEntry]:
        """Read and decode an entry. Corrupt entries are reported as absent."""
        raw = await self.store.get_item(key)
        if not raw:
            return None
        try:
            return decode_entry(raw)
        except CacheCorruptionError as e:
            self.stats["corrupt_reads"] += 1
            logger.warning("Treating corrupt cache entry %s as a miss: %s", key, e)
            return None


def decode_entry(raw: str) -> CacheEntry:
    """Decode a serialized cache entry.

    Raises:
        CacheCorruptionError: if ``raw`` is not a JSON object with a timestamp
    """
    try:
        return CacheEntry.model_validate_json(raw)
    except ValidationError as e:
        raise CacheCorruptionError(str(e)) from e
