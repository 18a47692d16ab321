"""Occurrence expansion for one-time and recurring events."""
import logging
from datetime import timedelta
from typing import List

from processor.dates import midnight, parse_ymd, to_datetime
from processor.models import Event, Occurrence, RecurrenceFrequency, RecurrenceRule

logger = logging.getLogger(__name__)

# Roughly five years of days
MAX_ITERATIONS = 365 * 5


def js_weekday(value) -> int:
    """Day of week with 0=Sunday .. 6=Saturday."""
    return (value.weekday() + 1) % 7


def _matches(rule: RecurrenceRule, cursor) -> bool:
    if rule.frequency == RecurrenceFrequency.WEEKLY:
        return js_weekday(cursor) in (rule.weekly_days or ())
    if rule.frequency == RecurrenceFrequency.MONTHLY:
        return cursor.day in (rule.monthly_days or ())
    return False


def generate_occurrences(event: Event, view_start, view_end) -> List[Occurrence]:
    """
    Expand an event into the occurrences that overlap a viewing window.

    One-time events yield one occurrence per time range. Recurring events
    walk day by day from the anchor range start until the rule's end date
    (inclusive), stopping after MAX_ITERATIONS days regardless.

    Args:
        event: Event to expand
        view_start: First instant of the window (date or datetime)
        view_end: Last instant of the window (date or datetime)

    Returns:
        Occurrences in ascending start order
    """
    if not event.time_ranges:
        return []

    view_start = to_datetime(view_start)
    view_end = to_datetime(view_end)

    if event.recurrence_rule is None:
        occurrences = []
        for time_range in event.time_ranges:
            start_date = parse_ymd(time_range.start)
            end_date = parse_ymd(time_range.end)
            if start_date is None or end_date is None:
                continue
            start = midnight(start_date)
            end = midnight(end_date)
            if start <= view_end and end >= view_start:
                occurrences.append(Occurrence(start=start, end=end))
        return occurrences

    rule = event.recurrence_rule
    anchor = event.time_ranges[0]
    anchor_start = parse_ymd(anchor.start)
    anchor_end = parse_ymd(anchor.end)
    until = parse_ymd(rule.end_date)
    if anchor_start is None or anchor_end is None or until is None:
        return []

    duration = midnight(anchor_end) - midnight(anchor_start)
    if duration < timedelta(0):
        return []

    occurrences = []
    cursor = anchor_start
    iterations = 0
    while cursor <= until and iterations < MAX_ITERATIONS:
        iterations += 1
        if _matches(rule, cursor):
            start = midnight(cursor)
            end = start + duration
            if start <= view_end and end >= view_start:
                occurrences.append(Occurrence(start=start, end=end))
        cursor += timedelta(days=1)

    if iterations >= MAX_ITERATIONS and cursor <= until:
        logger.debug(
            f"Recurrence expansion for event '{event.id}' stopped after "
            f"{MAX_ITERATIONS} days"
        )
    return occurrences
