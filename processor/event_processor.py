"""Event processor for validating, normalizing and merging event data."""
import json
import logging
import re
import time
from datetime import date
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from processor.dates import format_ymd, parse_input_date
from processor.import_validator import ValidationResult, parse_import
from processor.models import (
    CalendarError,
    Event,
    EventNotFoundError,
    EventValidationError,
    ImportResult,
    NotificationMethod,
    NothingToExportError,
    RecurrenceFrequency,
    RecurrenceRule,
    Settings,
    TimeRange,
)

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r'(?:2[0-3]|[01]?[0-9]):[0-5][0-9]')

ERROR_MESSAGES = {
    'title_required': 'Title cannot be empty.',
    'date_range_missing': 'Please add at least one date range.',
    'invalid_date': 'Invalid date format. Please use YYYY/MM/DD.',
    'date_range_order': "A date range's end date cannot be earlier than its start date.",
    'invalid_time': 'Invalid time format. Please use HH:mm.',
    'recurrence_end': 'Recurring events must have an end date.',
    'invalid_frequency': 'Recurring events must repeat weekly or monthly.',
    'weekly_day': 'Weekly recurring events must select at least one day.',
    'invalid_month_day': 'Day of month must be a number between 1 and 31.',
    'monthly_day_missing': 'Monthly recurring events must select at least one day.',
    'invalid_url': 'Please enter a valid URL.',
}

EventCollection = Dict[str, Event]


class ImportRejectedError(CalendarError):
    """An import file failed validation; nothing was merged."""

    def __init__(self, result: ValidationResult):
        self.result = result
        super().__init__(result.message)


def _fail(code: str) -> EventValidationError:
    return EventValidationError(code, ERROR_MESSAGES[code])


class EventProcessor:
    """Processor for user-entered events, reminders, imports and exports."""

    EXPORT_FILENAME = 'calendar-events-{date}.json'

    def build_event(
        self,
        payload: Dict[str, Any],
        existing: Optional[Event] = None
    ) -> Event:
        """
        Validate and normalize an event submitted from the entry form.

        Dates may be typed as YYYY/MM/DD (single-digit month or day
        allowed) or YYYY-MM-DD; they are stored as YYYY-MM-DD.

        Args:
            payload: Form data using the wire field names
            existing: Event being edited, whose reminder is preserved

        Returns:
            Normalized Event

        Raises:
            EventValidationError: If the input is rejected
        """
        title = payload.get('eventTitle')
        if not isinstance(title, str) or not title.strip():
            raise _fail('title_required')
        title = title.strip()

        raw_ranges = payload.get('eventTimeRanges') or []
        if not isinstance(raw_ranges, list) or not raw_ranges:
            raise _fail('date_range_missing')

        parsed_ranges = []
        for raw in raw_ranges:
            if not isinstance(raw, dict):
                raise _fail('invalid_date')
            start = parse_input_date(raw.get('timeRangeStart'))
            end = parse_input_date(raw.get('timeRangeEnd'))
            if start is None or end is None:
                raise _fail('invalid_date')
            range_id = raw.get('timeRangeId')
            if not isinstance(range_id, str) or not range_id:
                range_id = self._new_id()
            parsed_ranges.append((range_id, start, end))

        if any(start > end for _, start, end in parsed_ranges):
            raise _fail('date_range_order')

        rule = None
        raw_rule = payload.get('eventRecurrenceRule')
        if raw_rule:
            if not isinstance(raw_rule, dict):
                raise _fail('invalid_frequency')
            rule = self._build_rule(raw_rule, parsed_ranges[0][1])

        description = payload.get('eventDescription')
        return Event(
            id=self._payload_id(payload) or self._new_id(),
            title=title,
            description=description if isinstance(description, str) else '',
            time_ranges=[
                TimeRange(id=range_id, start=format_ymd(start), end=format_ymd(end))
                for range_id, start, end in parsed_ranges
            ],
            recurrence_rule=rule,
            reminder=existing.reminder if existing else None
        )

    def _build_rule(self, raw_rule: Dict[str, Any], anchor_start: date) -> RecurrenceRule:
        until = parse_input_date(raw_rule.get('ruleEndDate'))
        if until is None:
            raise _fail('recurrence_end')
        if until < anchor_start:
            raise _fail('date_range_order')

        try:
            frequency = RecurrenceFrequency(raw_rule.get('ruleFrequency'))
        except ValueError:
            raise _fail('invalid_frequency')

        if frequency == RecurrenceFrequency.WEEKLY:
            raw_days = raw_rule.get('ruleWeeklyDays') or []
            if not isinstance(raw_days, list) or not raw_days:
                raise _fail('weekly_day')
            if any(not isinstance(d, int) or isinstance(d, bool) or not 0 <= d <= 6
                   for d in raw_days):
                raise _fail('weekly_day')
            weekly_days = sorted(set(raw_days))
            return RecurrenceRule(
                frequency=frequency,
                end_date=format_ymd(until),
                weekly_days=weekly_days
            )

        monthly_days = self._parse_monthly_days(raw_rule.get('ruleMonthlyDays'))
        return RecurrenceRule(
            frequency=frequency,
            end_date=format_ymd(until),
            monthly_days=monthly_days
        )

    def _parse_monthly_days(self, value: Any) -> List[int]:
        """
        Parse monthly days from a comma separated string or a list.

        Every entry must be an integer 1..31 and entries must be distinct.
        """
        if isinstance(value, str):
            parts = [p.strip() for p in value.split(',') if p.strip()]
        elif isinstance(value, list):
            parts = value
        elif value:
            raise _fail('invalid_month_day')
        else:
            parts = []

        days = []
        for part in parts:
            try:
                day = int(part) if isinstance(part, str) else part
            except ValueError:
                raise _fail('invalid_month_day')
            if not isinstance(day, int) or isinstance(day, bool) or not 1 <= day <= 31:
                raise _fail('invalid_month_day')
            days.append(day)

        if len(set(days)) != len(days):
            raise _fail('invalid_month_day')
        if not days:
            raise _fail('monthly_day_missing')
        return sorted(days)

    def _new_id(self) -> str:
        return str(int(time.time() * 1000))

    def _payload_id(self, payload: Dict[str, Any]) -> str:
        event_id = payload.get('eventId')
        return event_id if isinstance(event_id, str) else ''

    def save_event(
        self,
        events: EventCollection,
        payload: Dict[str, Any]
    ) -> Tuple[Event, bool]:
        """
        Create or update an event from form data.

        Args:
            events: Live collection, mutated in place
            payload: Form data

        Returns:
            Tuple of (saved Event, True if it was newly created)
        """
        existing = events.get(self._payload_id(payload))
        event = self.build_event(payload, existing=existing)
        events[event.id] = event
        logger.info(
            f"{'Updated' if existing else 'Added'} event '{event.id}'"
        )
        return event, existing is None

    def delete_event(self, events: EventCollection, event_id: str) -> Event:
        """
        Remove an event from the collection.

        Raises:
            EventNotFoundError: If no event has this id
        """
        if event_id not in events:
            raise EventNotFoundError(f"Event '{event_id}' not found")
        logger.info(f"Deleted event '{event_id}'")
        return events.pop(event_id)

    def set_reminder(
        self,
        events: EventCollection,
        event_id: str,
        date_str: str,
        time_str: str
    ) -> Event:
        """
        Set an event's reminder from a form date (YYYY/MM/DD) and time (HH:MM).

        The stored value is YYYY-MM-DDTHH:MM:00. A new value always makes
        the reminder pending again.

        Raises:
            EventNotFoundError: If no event has this id
            EventValidationError: If the date or time is rejected
        """
        event = events.get(event_id)
        if event is None:
            raise EventNotFoundError(f"Event '{event_id}' not found")

        reminder_date = parse_input_date(date_str)
        if reminder_date is None:
            raise _fail('invalid_date')
        time_str = (time_str or '').strip()
        if not TIME_PATTERN.fullmatch(time_str):
            raise _fail('invalid_time')

        hours, minutes = time_str.split(':')
        event.reminder = f"{format_ymd(reminder_date)}T{int(hours):02d}:{minutes}:00"
        logger.info(f"Reminder for event '{event_id}' set to {event.reminder}")
        return event

    def build_settings(self, robot_url: str) -> Settings:
        """
        Validate reminder settings; an empty URL disables delivery.

        Raises:
            EventValidationError: If the URL is not absolute
        """
        robot_url = (robot_url or '').strip()
        if not robot_url:
            return Settings()
        parsed = urlparse(robot_url)
        if not parsed.scheme or not parsed.netloc:
            raise _fail('invalid_url')
        return Settings(
            notification_method=NotificationMethod.WECOM,
            notification_robot_url=robot_url
        )

    def merge_import(self, events: EventCollection, data: Dict[str, Any]) -> ImportResult:
        """
        Merge a validated import into the live collection.

        Existing ids are overwritten and counted as updates. Re-importing the
        same data yields the same collection, reported as all updated.

        Args:
            events: Live collection, mutated in place
            data: Import data that already passed validate_import

        Returns:
            ImportResult with counts of added and updated events
        """
        incoming = {
            event_id: Event.from_dict(entry) for event_id, entry in data.items()
        }

        added = 0
        updated = 0
        for event_id in incoming:
            if event_id in events:
                updated += 1
            else:
                added += 1
        events.update(incoming)

        logger.info(f"Import merged: {added} added, {updated} updated")
        return ImportResult(added=added, updated=updated)

    def import_events(self, events: EventCollection, text: str) -> ImportResult:
        """
        Validate an import file and merge it if every entry is valid.

        Raises:
            ImportRejectedError: If validation fails; events is untouched
        """
        data, result = parse_import(text)
        if not result.valid:
            raise ImportRejectedError(result)
        return self.merge_import(events, data)

    def export_events(
        self,
        events: EventCollection,
        today: Optional[date] = None
    ) -> Tuple[str, str]:
        """
        Serialize the collection for download.

        Returns:
            Tuple of (file name, pretty-printed JSON text)

        Raises:
            NothingToExportError: If the collection is empty
        """
        if not events:
            raise NothingToExportError('No events to export')
        today = today or date.today()
        filename = self.EXPORT_FILENAME.format(date=format_ymd(today))
        content = json.dumps(
            {event_id: event.to_dict() for event_id, event in events.items()},
            indent=2,
            ensure_ascii=False
        )
        return filename, content
