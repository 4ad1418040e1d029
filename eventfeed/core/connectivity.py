"""Best-effort connectivity probe.

A probe owns its memoized result, so several UI components asking "are we
online?" in the same pass share one network round trip while independent
probes (and tests) never see each other's state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from typing import Callable, Optional

import httpx

from .clock import Clock, system_clock
from .http_client import get_shared_client, record_client_error, record_client_success

logger = logging.getLogger(__name__)

DEFAULT_PROBE_URL = "https://www.google.com/favicon.ico"
DEFAULT_PROBE_TIMEOUT_SECONDS = 3.0
DEFAULT_CACHE_SECONDS = 5.0
DEFAULT_POLL_INTERVAL_SECONDS = 2.0

PROBE_CLIENT_ID = "connectivity"

Sleeper = Callable[[float], Awaitable[None]]


class ConnectivityProbe:
    """Checks outbound reachability with a HEAD request and memoizes the answer.

    Any HTTP response, whatever its status, counts as online: only timeouts
    and transport errors mean offline. The probe never raises.
    """

    def __init__(
        self,
        url: str = DEFAULT_PROBE_URL,
        timeout_seconds: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        cache_seconds: float = DEFAULT_CACHE_SECONDS,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        clock: Optional[Clock] = None,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleeper] = None,
    ):
        """Initialize the probe.

        Args:
            url: Lightweight resource used purely to test reachability
            timeout_seconds: Hard timeout for a single probe request
            cache_seconds: How long a probe result is reused
            poll_interval_seconds: Delay between probes in wait_for_online
            clock: Clock providing monotonic time (defaults to the system clock)
            client: HTTP client to use (defaults to the shared pooled client)
            sleep: Coroutine used to wait between polls (defaults to asyncio.sleep)
        """
        self.url = url
        self.timeout_seconds = timeout_seconds
        self.cache_seconds = cache_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self._clock = clock or system_clock()
        self._client = client
        self._sleep = sleep or asyncio.sleep

        self._cached_status = False
        self._last_check: Optional[float] = None

    async def is_online(self) -> bool:
        """Return whether outbound network access currently succeeds.

        Returns:
            The memoized result if it is younger than ``cache_seconds``,
            otherwise the result of a fresh probe. False on any error.
        """
        try:
            now = self._clock.monotonic()
            if self._last_check is not None and now - self._last_check < self.cache_seconds:
                return self._cached_status

            online = await self._probe()
        except Exception as e:
            logger.debug("Connectivity probe raised, assuming offline: %s", e)
            online = False

        self._cached_status = online
        self._last_check = self._clock.monotonic()
        return online

    async def wait_for_online(self, timeout_seconds: float = 30.0) -> bool:
        """Poll until the probe reports online or ``timeout_seconds`` elapses.

        Args:
            timeout_seconds: Maximum time to wait

        Returns:
            True once online, False on timeout. Never raises.
        """
        try:
            start = self._clock.monotonic()
            while True:
                if await self.is_online():
                    return True
                if self._clock.monotonic() - start >= timeout_seconds:
                    logger.debug("Still offline after %.1fs", timeout_seconds)
                    return False
                await self._sleep(self.poll_interval_seconds)
        except Exception as e:
            logger.warning("wait_for_online failed: %s", e)
            return False

    def invalidate(self) -> None:
        """Forget the memoized result so the next call probes again."""
        self._last_check = None

    async def _probe(self) -> bool:
        client = self._client or await get_shared_client(PROBE_CLIENT_ID)
        try:
            await asyncio.wait_for(
                client.head(self.url, timeout=self.timeout_seconds),
                timeout=self.timeout_seconds,
            )
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.debug("Connectivity probe to %s failed: %s", self.url, e)
            if self._client is None:
                await record_client_error(PROBE_CLIENT_ID)
            return False

        if self._client is None:
            await record_client_success(PROBE_CLIENT_ID)
        return True


class StaticProbe:
    """Probe with a fixed answer, used for forced-offline runs."""

    def __init__(self, online: bool = False):
        self.online = online

    async def is_online(self) -> bool:
        return self.online

    async def wait_for_online(self, timeout_seconds: float = 30.0) -> bool:
        return self.online

    def invalidate(self) -> None:
        pass
