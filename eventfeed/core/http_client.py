"""Pooled httpx clients shared by the connectivity probe and the remote store.

Each component asks for its client by id ("probe", "firestore") and gets
the same ``httpx.AsyncClient`` back on every call, so connections are
reused between loads. A client that fails ``HEALTH_ERROR_THRESHOLD`` times
in a row within ``HEALTH_WINDOW_SECONDS`` is closed and replaced on the
next request.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .clock import system_clock

logger = logging.getLogger(__name__)

USER_AGENT = "eventfeed/0.1"

# Probe and store requests are small; a handful of connections is plenty
POOL_LIMITS = httpx.Limits(max_connections=4, max_keepalive_connections=2)
POOL_TIMEOUT = httpx.Timeout(10.0, read=20.0)

HEALTH_ERROR_THRESHOLD = 3
HEALTH_WINDOW_SECONDS = 300


@dataclass
class _PooledClient:
    client: httpx.AsyncClient
    consecutive_errors: int = 0
    last_error_at: float = 0.0

    def is_unhealthy(self, now: float) -> bool:
        return (
            self.consecutive_errors >= HEALTH_ERROR_THRESHOLD
            and now - self.last_error_at < HEALTH_WINDOW_SECONDS
        )


_pool: dict[str, _PooledClient] = {}
_pool_lock = asyncio.Lock()


def _now() -> float:
    return system_clock().monotonic()


async def get_shared_client(client_id: str, timeout: Optional[httpx.Timeout] = None) -> httpx.AsyncClient:
    """Return the pooled client for ``client_id``, creating it if needed.

    Args:
        client_id: Name of the component using the client
        timeout: Timeout for a newly created client (default ``POOL_TIMEOUT``)
    """
    async with _pool_lock:
        entry = _pool.get(client_id)
        if entry is not None and entry.is_unhealthy(_now()):
            logger.warning(
                "Replacing HTTP client '%s' after %d consecutive errors",
                client_id,
                entry.consecutive_errors,
            )
            await _close(client_id, entry.client)
            entry = None

        if entry is None or entry.client.is_closed:
            entry = _PooledClient(
                httpx.AsyncClient(
                    limits=POOL_LIMITS,
                    timeout=timeout or POOL_TIMEOUT,
                    follow_redirects=True,
                    headers={"User-Agent": USER_AGENT},
                )
            )
            _pool[client_id] = entry
            logger.debug("Opened HTTP client '%s'", client_id)

        return entry.client


async def record_client_error(client_id: str) -> None:
    """Count a failed request against ``client_id``."""
    async with _pool_lock:
        entry = _pool.get(client_id)
        if entry is None:
            return
        entry.consecutive_errors += 1
        entry.last_error_at = _now()
        logger.debug("HTTP client '%s' error count now %d", client_id, entry.consecutive_errors)


async def record_client_success(client_id: str) -> None:
    """Clear the error count of ``client_id`` after a request succeeded."""
    async with _pool_lock:
        entry = _pool.get(client_id)
        if entry is not None:
            entry.consecutive_errors = 0


async def close_all_clients() -> None:
    """Close every pooled client. Called once the feed run is finished."""
    async with _pool_lock:
        for client_id, entry in list(_pool.items()):
            await _close(client_id, entry.client)
        _pool.clear()


async def _close(client_id: str, client: httpx.AsyncClient) -> None:
    try:
        if not client.is_closed:
            await client.aclose()
    except httpx.HTTPError as e:
        logger.warning("Error closing HTTP client '%s': %s", client_id, e)
    _pool.pop(client_id, None)
