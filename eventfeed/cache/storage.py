"""Persistent key-value stores backing the tiered cache.

A store maps string keys to opaque serialized strings. It knows nothing
about timestamps or expiry; that is the tiered cache's job.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Optional, Protocol, Union

import aiosqlite

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Async string key-value store with single-key atomic operations."""

    async def get_item(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent."""
        ...

    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...

    async def remove_item(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...

    async def multi_remove(self, keys: Iterable[str]) -> None:
        """Remove every key in ``keys`` that is present."""
        ...


class MemoryKeyValueStore:
    """In-process store, used in tests and when no cache file is configured."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    async def multi_remove(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class SqliteKeyValueStore:
    """SQLite-backed key-value store.

    One table, ``kv_store(key TEXT PRIMARY KEY, value TEXT)``. Writes are
    single-statement upserts, so each key is replaced atomically and
    concurrent writers to the same key resolve last-writer-wins.
    """

    def __init__(self, database_path: Union[Path, str]):
        """Initialize the store lazily; the schema is created on first use.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self._initialized = False
        self._initialization_lock: Optional[asyncio.Lock] = None

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        if self._initialization_lock is None:
            self._initialization_lock = asyncio.Lock()

        async with self._initialization_lock:
            if self._initialized:
                return

            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self.database_path)) as db:
                await db.execute("PRAGMA journal_mode=WAL")
                await db.execute("PRAGMA synchronous=NORMAL")
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """
                )
                await db.commit()

            self._initialized = True
            logger.debug("Key-value store initialized: %s", self.database_path)

    async def get_item(self, key: str) -> Optional[str]:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self.database_path)) as db:
            async with db.execute("SELECT value FROM kv_store WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        return row[0] if row else None

    async def set_item(self, key: str, value: str) -> None:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self.database_path)) as db:
            await db.execute(
                """
                INSERT INTO kv_store (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
                (key, value),
            )
            await db.commit()

    async def remove_item(self, key: str) -> None:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self.database_path)) as db:
            await db.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            await db.commit()

    async def multi_remove(self, keys: Iterable[str]) -> None:
        await self._ensure_initialized()
        key_list = [(k,) for k in keys]
        if not key_list:
            return
        async with aiosqlite.connect(str(self.database_path)) as db:
            await db.executemany("DELETE FROM kv_store WHERE key = ?", key_list)
            await db.commit()
