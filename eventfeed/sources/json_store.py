"""Event store reading a local JSON export of the events collection."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Union

from ..exceptions import RemoteQueryError

logger = logging.getLogger(__name__)


class JsonFileEventStore:
    """Serves event documents from a JSON file.

    The file holds either a list of documents or ``{"events": [...]}``.
    Useful for the CLI and for exercising the feed without a backend.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def query_events(self, ordered: bool = True) -> list[dict[str, Any]]:
        try:
            text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
            data = json.loads(text)
        except (OSError, ValueError) as e:
            raise RemoteQueryError(f"Cannot read events from {self.path}: {e}") from e

        if isinstance(data, dict):
            data = data.get("events", [])
        if not isinstance(data, list):
            raise RemoteQueryError(f"{self.path} does not contain a list of events")

        documents = [doc for doc in data if isinstance(doc, dict)]
        if ordered:
            documents.sort(key=lambda doc: str(doc.get("date") or ""))
        logger.debug("Loaded %d documents from %s", len(documents), self.path)
        return documents
