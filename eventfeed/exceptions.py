"""Custom exception hierarchy for the event feed.

Most of these never cross the feed boundary: the orchestrator and cache
recover from them locally and log. They exist so the recovery sites can
catch exactly what they mean to catch and so logs name the failure class.
"""


class EventFeedError(Exception):
    """Base exception for all event feed errors."""


class RemoteQueryError(EventFeedError):
    """Remote document store query failed.

    Raised when:
    - The HTTP request to the store times out or cannot connect
    - The store responds with a non-success status
    - The response body cannot be decoded into documents

    Recovered by the orchestrator by falling back to the cache.
    """


class QueryShapeError(RemoteQueryError):
    """The requested query shape is not supported by the store.

    Raised when:
    - The ordered query needs a composite index that does not exist
      (Firestore reports FAILED_PRECONDITION)

    Recovered by retrying with the unordered query and sorting in memory.
    """


class CacheCorruptionError(EventFeedError):
    """A stored cache payload could not be decoded.

    Raised internally while decoding an entry; callers of the tiered cache
    only ever observe it as a miss.
    """


class RecurrenceRuleError(EventFeedError):
    """A recurrence rule is malformed.

    Raised when:
    - dayOfWeek is missing or outside 0..6
    - The rule has no usable start date
    - The rule's end date precedes its start date

    Only the offending record is dropped from the expansion.
    """

    def __init__(self, record_id: str, reason: str):
        super().__init__(f"Invalid recurrence rule on {record_id!r}: {reason}")
        self.record_id = record_id
        self.reason = reason


class InvalidTransitionError(EventFeedError):
    """Feed state machine received a signal not valid in its current state."""
