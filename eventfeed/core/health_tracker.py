"""Health tracking for feed loads."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .clock import Clock, system_clock


@dataclass
class FeedHealthStatus:
    """Snapshot of feed health for diagnostics."""

    status: str  # "ok", "degraded", or "offline"
    load_count: int
    last_source: Optional[str]
    last_instance_count: int
    last_remote_success_age_seconds: Optional[int]
    last_cache_age_ms: Optional[int]
    remote_failures: int


class FeedHealthTracker:
    """Records where each feed load got its data from."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or system_clock()
        self._load_count = 0
        self._last_source: Optional[str] = None
        self._last_instance_count = 0
        self._last_remote_success_ms: Optional[int] = None
        self._last_cache_age_ms: Optional[int] = None
        self._remote_failures = 0

    def record_load(
        self,
        source: str,
        instance_count: int,
        cache_age_ms: Optional[int] = None,
    ) -> None:
        """Record the outcome of a completed feed load.

        Args:
            source: Terminal feed state name ("remote", "cache_stale", ...)
            instance_count: Number of instances returned to the caller
            cache_age_ms: Age of the cache entry used, if the cache served the load
        """
        self._load_count += 1
        self._last_source = source
        self._last_instance_count = instance_count
        self._last_cache_age_ms = cache_age_ms
        if source == "remote":
            self._last_remote_success_ms = self._clock.now_ms()

    def record_remote_failure(self) -> None:
        """Record that a remote query failed while the probe said online."""
        self._remote_failures += 1

    def get_status(self) -> FeedHealthStatus:
        """Build a health snapshot.

        "ok" means the last load came from the remote store, "degraded" that
        it came from the cache, "offline" that it came back empty.
        """
        if self._last_source == "remote":
            status = "ok"
        elif self._last_source in ("cache_fresh", "cache_stale"):
            status = "degraded"
        elif self._last_source is None:
            status = "ok"
        else:
            status = "offline"

        remote_age = None
        if self._last_remote_success_ms is not None:
            remote_age = (self._clock.now_ms() - self._last_remote_success_ms) // 1000

        return FeedHealthStatus(
            status=status,
            load_count=self._load_count,
            last_source=self._last_source,
            last_instance_count=self._last_instance_count,
            last_remote_success_age_seconds=remote_age,
            last_cache_age_ms=self._last_cache_age_ms,
            remote_failures=self._remote_failures,
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the health snapshot as a plain dict."""
        s = self.get_status()
        return {
            "status": s.status,
            "load_count": s.load_count,
            "last_source": s.last_source,
            "last_instance_count": s.last_instance_count,
            "last_remote_success_age_seconds": s.last_remote_success_age_seconds,
            "last_cache_age_ms": s.last_cache_age_ms,
            "remote_failures": s.remote_failures,
        }
