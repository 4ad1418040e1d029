"""Persistent cache used when the remote store is unreachable."""

from .storage import KeyValueStore, MemoryKeyValueStore, SqliteKeyValueStore
from .tiered_cache import DEFAULT_MAX_AGE_MS, CacheEntry, CacheKey, TieredCache

__all__ = [
    "DEFAULT_MAX_AGE_MS",
    "CacheEntry",
    "CacheKey",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SqliteKeyValueStore",
    "TieredCache",
]
