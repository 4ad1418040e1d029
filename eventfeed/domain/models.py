"""Event data models.

``EventRecord`` is the stored, declarative shape (possibly a weekly rule);
``EventInstance`` is one concrete dated occurrence. They are distinct types
so an expanded instance cannot be mistaken for a record and expanded again.
Both accept the camelCase field names used by the remote store.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

DISPLAY_FIELDS = ("title", "location", "category", "description", "time")


def _coerce_date(value: Any) -> Any:
    """Accept ISO dates, ISO datetimes and datetime objects; map blanks to None."""
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # "2025-03-05T00:00:00.000Z" -> "2025-03-05"
        return dt.date.fromisoformat(text[:10])
    return value


class RecurrencePattern(BaseModel):
    """Weekly recurrence rule.

    ``day_of_week`` uses 0 = Sunday .. 6 = Saturday. It is not range-checked
    here; the expander rejects bad values per record so that one broken rule
    cannot fail a whole collection at parse time.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    day_of_week: Optional[int] = Field(default=None, alias="dayOfWeek")
    start_date: Optional[dt.date] = Field(default=None, alias="startDate")
    end_date: Optional[dt.date] = Field(default=None, alias="endDate")
    time: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _normalize_dates(cls, v: Any) -> Any:
        # Unparseable bounds are dropped; the expander falls back to the record date
        try:
            return _coerce_date(v)
        except ValueError:
            logger.debug("Ignoring unparseable recurrence date %r", v)
            return None


class EventRecord(BaseModel):
    """Event as stored in the remote document store."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    kind: Literal["record"] = Field(default="record", exclude=True)

    id: str
    title: str = ""
    location: str = ""
    category: str = ""
    description: str = ""
    date: Optional[dt.date] = None
    time: str = ""
    is_multi_day: bool = Field(default=False, alias="isMultiDay")
    end_date: Optional[dt.date] = Field(default=None, alias="endDate")
    is_recurring: bool = Field(default=False, alias="isRecurring")
    recurrence_pattern: Optional[RecurrencePattern] = Field(default=None, alias="recurrencePattern")

    @model_validator(mode="before")
    @classmethod
    def _reject_instances(cls, data: Any) -> Any:
        if isinstance(data, EventInstance):
            raise ValueError("an expanded EventInstance is not an EventRecord")
        if isinstance(data, dict) and (
            data.get("kind") == "instance" or data.get("isRecurringInstance") or data.get("is_recurring_instance")
        ):
            raise ValueError("expanded event instances cannot be used as records")
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _id_to_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v

    @field_validator(*DISPLAY_FIELDS, mode="before")
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("date", "end_date", mode="before")
    @classmethod
    def _normalize_dates(cls, v: Any) -> Any:
        return _coerce_date(v)

    @model_validator(mode="after")
    def _check_multi_day_recurring(self) -> EventRecord:
        if self.is_multi_day and self.is_recurring:
            raise ValueError("multi-day recurring events are not supported")
        return self

    @property
    def is_rule(self) -> bool:
        """True if this record should be expanded as a weekly rule."""
        return self.is_recurring and self.recurrence_pattern is not None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON shape used by the store and the cache."""
        return self.model_dump(by_alias=True, mode="json")


class EventInstance(BaseModel):
    """One concrete, dated occurrence ready for display."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    kind: Literal["instance"] = Field(default="instance", exclude=True)

    id: str
    title: str = ""
    location: str = ""
    category: str = ""
    description: str = ""
    date: dt.date
    time: str = ""
    is_multi_day: bool = Field(default=False, alias="isMultiDay")
    end_date: Optional[dt.date] = Field(default=None, alias="endDate")
    is_recurring: bool = Field(default=False, alias="isRecurring")
    recurrence_pattern: Optional[RecurrencePattern] = Field(default=None, alias="recurrencePattern")

    is_recurring_instance: bool = Field(default=False, alias="isRecurringInstance")
    recurring_event_id: Optional[str] = Field(default=None, alias="recurringEventId")
    original_date: Optional[dt.date] = Field(default=None, alias="originalDate")

    @classmethod
    def from_record(cls, record: EventRecord, **overrides: Any) -> EventInstance:
        """Build an instance carrying the record's fields, with ``overrides`` applied."""
        data = record.model_dump()
        data.update(overrides)
        return cls.model_validate(data)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def parse_records(raw_records: Iterable[Any]) -> list[EventRecord]:
    """Validate raw documents into records, dropping the ones that do not validate.

    Args:
        raw_records: Plain dicts (or EventRecord objects) from the store or cache

    Returns:
        Valid records in input order
    """
    records: list[EventRecord] = []
    for i, raw in enumerate(raw_records):
        if isinstance(raw, EventRecord):
            records.append(raw)
            continue
        try:
            records.append(EventRecord.model_validate(raw))
        except ValidationError as e:
            doc_id = raw.get("id") if isinstance(raw, dict) else None
            logger.warning(
                "Dropping invalid event record %r (index %d): %s",
                doc_id,
                i,
                e.errors(include_url=False),
            )
    return records
