"""Remote event document stores."""

from typing import Any, Protocol

from .firestore_store import FirestoreEventStore
from .json_store import JsonFileEventStore


class EventStore(Protocol):
    """Read-only access to the events collection."""

    async def query_events(self, ordered: bool = True) -> list[dict[str, Any]]:
        """Return every event document, sorted by date if ``ordered``."""
        ...


__all__ = ["EventStore", "FirestoreEventStore", "JsonFileEventStore"]
