"""Firestore REST adapter for the events collection.

Issues ``documents:runQuery`` requests through the shared httpx client and
decodes Firestore's typed values into plain JSON documents. The ordered
query sorts on ``date`` server-side; Firestore answers FAILED_PRECONDITION
when the index that needs is missing, which is surfaced as
``QueryShapeError`` so the caller can retry unordered.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..core.http_client import get_shared_client, record_client_error, record_client_success
from ..exceptions import QueryShapeError, RemoteQueryError

logger = logging.getLogger(__name__)

FIRESTORE_BASE_URL = "https://firestore.googleapis.com/v1"
FIRESTORE_CLIENT_ID = "firestore"


def decode_value(value: dict[str, Any]) -> Any:
    """Decode one Firestore typed value into a plain Python value.

    Args:
        value: e.g. {"stringValue": "Youth Night"} or {"mapValue": {"fields": {...}}}

    Returns:
        The plain value. Unknown value types are returned as their raw payload.
    """
    if "stringValue" in value:
        return value["stringValue"]
    if "booleanValue" in value:
        return bool(value["booleanValue"])
    if "integerValue" in value:
        return int(value["integerValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "nullValue" in value:
        return None
    if "timestampValue" in value:
        return value["timestampValue"]
    if "mapValue" in value:
        return decode_fields(value["mapValue"].get("fields", {}))
    if "arrayValue" in value:
        return [decode_value(v) for v in value["arrayValue"].get("values", [])]
    if value:
        return next(iter(value.values()))
    return None


def decode_fields(fields: dict[str, Any]) -> dict[str, Any]:
    """Decode a Firestore ``fields`` mapping."""
    return {name: decode_value(v) for name, v in fields.items()}


def decode_document(document: dict[str, Any]) -> dict[str, Any]:
    """Decode a Firestore document; its id is the last segment of ``name``."""
    doc = decode_fields(document.get("fields", {}))
    name = document.get("name", "")
    doc["id"] = name.rsplit("/", 1)[-1] if name else doc.get("id", "")
    return doc


def _error_status(response: httpx.Response) -> tuple[str, str]:
    """Extract (status, message) from a Firestore error body."""
    try:
        body = response.json()
    except ValueError:
        return "", response.text[:200]
    if isinstance(body, list) and body:
        body = body[0]
    error = body.get("error", {}) if isinstance(body, dict) else {}
    return str(error.get("status", "")), str(error.get("message", ""))


class FirestoreEventStore:
    """Reads event documents from a Firestore collection over REST."""

    def __init__(
        self,
        project_id: str,
        collection: str = "events",
        api_key: Optional[str] = None,
        base_url: str = FIRESTORE_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 15.0,
    ):
        """Initialize the store.

        Args:
            project_id: Firestore project id
            collection: Collection holding event documents
            api_key: Optional web API key sent as the ``key`` query parameter
            base_url: API root (override for the emulator)
            client: HTTP client to use (defaults to the shared pooled client)
            timeout_seconds: Per-request timeout
        """
        self.project_id = project_id
        self.collection = collection
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def query_url(self) -> str:
        return f"{self.base_url}/projects/{self.project_id}/databases/(default)/documents:runQuery"

    def build_query(self, ordered: bool) -> dict[str, Any]:
        """Build the structuredQuery body for the collection."""
        query: dict[str, Any] = {"from": [{"collectionId": self.collection}]}
        if ordered:
            query["orderBy"] = [{"field": {"fieldPath": "date"}, "direction": "ASCENDING"}]
        return {"structuredQuery": query}

    async def query_events(self, ordered: bool = True) -> list[dict[str, Any]]:
        """Fetch every event document.

        Args:
            ordered: Ask the server to sort by date ascending

        Returns:
            Decoded documents, each with an ``id``

        Raises:
            QueryShapeError: if the ordered query is rejected for a missing index
            RemoteQueryError: on any other transport, status or decoding failure
        """
        client = self._client or await get_shared_client(FIRESTORE_CLIENT_ID)
        params = {"key": self.api_key} if self.api_key else None

        try:
            response = await client.post(
                self.query_url,
                json=self.build_query(ordered),
                params=params,
                timeout=self.timeout_seconds,
            )
        except httpx.HTTPError as e:
            await self._record_error()
            raise RemoteQueryError(f"Firestore request failed: {e}") from e

        if response.status_code >= 400:
            status, message = _error_status(response)
            await self._record_error()
            if ordered and (status == "FAILED_PRECONDITION" or "index" in message.lower()):
                raise QueryShapeError(f"Ordered query rejected ({status}): {message}")
            raise RemoteQueryError(
                f"Firestore query failed with HTTP {response.status_code} {status}: {message}"
            )

        try:
            rows = response.json()
        except ValueError as e:
            await self._record_error()
            raise RemoteQueryError("Firestore returned a non-JSON body") from e

        if not isinstance(rows, list):
            raise RemoteQueryError("Firestore runQuery response is not a list")

        documents = [decode_document(row["document"]) for row in rows if isinstance(row, dict) and "document" in row]
        if self._client is None:
            await record_client_success(FIRESTORE_CLIENT_ID)

        logger.debug(
            "Fetched %d documents from %s (ordered=%s)", len(documents), self.collection, ordered
        )
        return documents

    async def _record_error(self) -> None:
        if self._client is None:
            await record_client_error(FIRESTORE_CLIENT_ID)
