"""Weekly recurrence expansion for event records.

Expansion is a pure function of its inputs: "today" is a parameter, never
read from the system clock, so identical inputs always give identical
output.
"""

from __future__ import annotations

import datetime as dt
import logging
from collections.abc import Iterable, Sequence
from typing import Optional

from dateutil.relativedelta import relativedelta
from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from ..exceptions import RecurrenceRuleError
from .models import EventInstance, EventRecord, RecurrencePattern

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_MONTHS = 12

# Indexed by dayOfWeek (0 = Sunday)
DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")
_RRULE_WEEKDAYS = (SU, MO, TU, WE, TH, FR, SA)


def day_name(day_of_week: Optional[int]) -> Optional[str]:
    """Return the weekday name for 0 = Sunday .. 6 = Saturday, else None."""
    if day_of_week is None or not 0 <= day_of_week <= 6:
        return None
    return DAY_NAMES[day_of_week]


def day_number(name: str) -> Optional[int]:
    """Return 0 = Sunday .. 6 = Saturday for a weekday name, else None."""
    try:
        return DAY_NAMES.index(name.strip().capitalize())
    except (ValueError, AttributeError):
        return None


def format_recurrence(pattern: Optional[RecurrencePattern]) -> str:
    """Describe a rule for display, e.g. "Every Wednesday"; empty if invalid."""
    if pattern is None:
        return ""
    name = day_name(pattern.day_of_week)
    return f"Every {name}" if name else ""


def horizon_end(today: dt.date, horizon_months: int) -> dt.date:
    """Last date that may be materialized: ``today`` plus calendar months."""
    return today + relativedelta(months=horizon_months)


def occurrence_dates(record: EventRecord, today: dt.date, last_date: dt.date) -> list[dt.date]:
    """Compute the concrete dates of a weekly rule inside [today, last_date].

    Args:
        record: Recurring record with a recurrence pattern
        today: First date that may be produced
        last_date: Last date that may be produced (the horizon end)

    Returns:
        Ascending list of dates falling on the rule's weekday

    Raises:
        RecurrenceRuleError: if the rule is malformed
    """
    pattern = record.recurrence_pattern
    if pattern is None:
        raise RecurrenceRuleError(record.id, "missing recurrencePattern")

    dow = pattern.day_of_week
    if dow is None or not 0 <= dow <= 6:
        raise RecurrenceRuleError(record.id, f"dayOfWeek {dow!r} outside 0..6")

    start = pattern.start_date or record.date
    if start is None:
        raise RecurrenceRuleError(record.id, "no startDate")

    end = pattern.end_date
    if end is not None and end < start:
        raise RecurrenceRuleError(record.id, f"endDate {end} before startDate {start}")

    window_start = max(start, today)
    window_end = last_date if end is None else min(end, last_date)
    if window_start > window_end:
        return []

    rule = rrule(
        WEEKLY,
        byweekday=_RRULE_WEEKDAYS[dow],
        dtstart=dt.datetime.combine(window_start, dt.time()),
        until=dt.datetime.combine(window_end, dt.time()),
    )
    return [occurrence.date() for occurrence in rule]


def generate_instances(record: EventRecord, dates: Iterable[dt.date]) -> list[EventInstance]:
    """Create one instance per date, back-referencing the originating rule."""
    pattern = record.recurrence_pattern
    instance_time = (pattern.time if pattern and pattern.time else None) or record.time

    return [
        EventInstance.from_record(
            record,
            id=f"{record.id}_{occurrence.isoformat()}",
            date=occurrence,
            time=instance_time,
            is_recurring_instance=True,
            recurring_event_id=record.id,
            original_date=record.date,
        )
        for occurrence in dates
    ]


def dedupe_instances(instances: Iterable[EventInstance]) -> list[EventInstance]:
    """Drop repeated occurrences, keeping the first.

    Two instances are the same occurrence if they come from the same rule
    (or the same one-off record) on the same date.
    """
    seen: set[tuple[str, dt.date]] = set()
    result = []
    for instance in instances:
        key = (instance.recurring_event_id or instance.id, instance.date)
        if key in seen:
            continue
        seen.add(key)
        result.append(instance)
    return result


def expand(
    records: Sequence[EventRecord],
    horizon_months: int,
    today: dt.date,
) -> list[EventInstance]:
    """Expand records into concrete dated instances.

    One-off and multi-day records pass through as one instance each (a
    multi-day instance keeps its end date). Recurring records produce one
    instance per matching weekday between max(startDate, today) and
    min(endDate, today + horizon_months). Nothing dated after the horizon
    is produced. A malformed rule is logged and skipped without affecting
    the other records.

    Args:
        records: Event records; expanded instances are rejected
        horizon_months: Calendar months to materialize ahead of today
        today: Date expansion is relative to

    Returns:
        Instances in input order, rule occurrences ascending, deduplicated

    Raises:
        TypeError: if an element is not an EventRecord
    """
    last_date = horizon_end(today, horizon_months)
    instances: list[EventInstance] = []

    for record in records:
        if not isinstance(record, EventRecord):
            raise TypeError(f"expand() takes EventRecord values, got {type(record).__name__}")

        if record.is_rule:
            try:
                dates = occurrence_dates(record, today, last_date)
            except RecurrenceRuleError as e:
                logger.warning("Skipping recurring event: %s", e)
                continue
            instances.extend(generate_instances(record, dates))
            continue

        if record.date is None:
            logger.debug("Skipping event %r with no date", record.id)
            continue
        if record.date > last_date:
            continue
        instances.append(EventInstance.from_record(record))

    result = dedupe_instances(instances)
    logger.debug(
        "Expanded %d records into %d instances (horizon %s)",
        len(records),
        len(result),
        last_date,
    )
    return result
