"""Structural validation of imported event collections."""
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

from processor.dates import YMD_PATTERN, parse_reminder
from processor.models import RecurrenceFrequency

logger = logging.getLogger(__name__)


class ImportErrorCode(str, Enum):
    """Reasons an import is rejected, with English message templates."""

    INVALID_FORMAT = (
        'Invalid format: The file must contain a single JSON object '
        'mapping event IDs to event data.'
    )
    EVENT_NOT_OBJECT = 'Event data for ID "{event_id}" is not an object.'
    ID_MISMATCH = (
        'Mismatch between key "{event_id}" and eventId property '
        '"{property_id}".'
    )
    MISSING_TITLE = 'Event title for "{event_id}" is missing or not a string.'
    MISSING_DESCRIPTION = (
        'Event description for "{event_id}" is missing or not a string.'
    )
    TIME_RANGES_NOT_ARRAY = 'eventTimeRanges for event "{event_id}" must be an array.'
    RECURRING_NEEDS_RANGE = (
        'Recurring event "{event_id}" must have at least one time range to '
        'define its schedule.'
    )
    TIME_RANGE_NOT_OBJECT = 'Time range in event "{event_id}" is not an object.'
    MISSING_TIME_RANGE_ID = (
        'timeRangeId in event "{event_id}" is missing or not a string.'
    )
    INVALID_TIME_RANGE_START = (
        'timeRangeStart in event "{event_id}" has an invalid format. '
        'Expected YYYY-MM-DD.'
    )
    INVALID_TIME_RANGE_END = (
        'timeRangeEnd in event "{event_id}" has an invalid format. '
        'Expected YYYY-MM-DD.'
    )
    RECURRENCE_RULE_NOT_OBJECT = (
        'eventRecurrenceRule for event "{event_id}" must be an object if it '
        'exists.'
    )
    INVALID_RECURRENCE_FREQUENCY = 'Invalid ruleFrequency for event "{event_id}".'
    INVALID_RECURRENCE_END_DATE = (
        'Invalid or missing ruleEndDate for event "{event_id}".'
    )
    WEEKLY_DAYS_EMPTY = (
        'ruleWeeklyDays for weekly event "{event_id}" must be a non-empty array.'
    )
    WEEKLY_DAYS_INVALID = (
        'ruleWeeklyDays for weekly event "{event_id}" must contain only '
        'integers between 0 and 6.'
    )
    MONTHLY_DAYS_EMPTY = (
        'ruleMonthlyDays for monthly event "{event_id}" must be a non-empty '
        'array.'
    )
    MONTHLY_DAYS_INVALID = (
        'ruleMonthlyDays for monthly event "{event_id}" must contain only '
        'distinct integers between 1 and 31.'
    )
    REMINDER_NOT_STRING = 'eventReminder for event "{event_id}" must be a string.'
    REMINDER_INVALID_DATE = (
        'eventReminder for event "{event_id}" is not a valid date string.'
    )


@dataclass
class ValidationResult:
    """Verdict of import validation."""
    valid: bool
    code: Optional[ImportErrorCode] = None
    event_id: Optional[str] = None
    property_id: Any = None

    @property
    def message(self) -> Optional[str]:
        if self.code is None:
            return None
        return self.code.value.format(
            event_id=self.event_id,
            property_id=self.property_id
        )


VALID = ValidationResult(valid=True)


def _invalid(code: ImportErrorCode, event_id: Optional[str] = None,
             property_id: Any = None) -> ValidationResult:
    return ValidationResult(
        valid=False,
        code=code,
        event_id=event_id,
        property_id=property_id
    )


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, float) and value.is_integer()


def _is_date_string(value: Any) -> bool:
    return isinstance(value, str) and bool(YMD_PATTERN.fullmatch(value))


def _validate_rule(rule: Any, event_id: str) -> Optional[ValidationResult]:
    if not isinstance(rule, dict):
        return _invalid(ImportErrorCode.RECURRENCE_RULE_NOT_OBJECT, event_id)

    frequencies = [f.value for f in RecurrenceFrequency]
    if rule.get('ruleFrequency') not in frequencies:
        return _invalid(ImportErrorCode.INVALID_RECURRENCE_FREQUENCY, event_id)
    if not _is_date_string(rule.get('ruleEndDate')):
        return _invalid(ImportErrorCode.INVALID_RECURRENCE_END_DATE, event_id)

    if rule['ruleFrequency'] == RecurrenceFrequency.WEEKLY.value:
        days = rule.get('ruleWeeklyDays')
        if not isinstance(days, list) or not days:
            return _invalid(ImportErrorCode.WEEKLY_DAYS_EMPTY, event_id)
        if any(not _is_integer(d) or d < 0 or d > 6 for d in days):
            return _invalid(ImportErrorCode.WEEKLY_DAYS_INVALID, event_id)
    else:
        days = rule.get('ruleMonthlyDays')
        if not isinstance(days, list) or not days:
            return _invalid(ImportErrorCode.MONTHLY_DAYS_EMPTY, event_id)
        if any(not _is_integer(d) or d < 1 or d > 31 for d in days):
            return _invalid(ImportErrorCode.MONTHLY_DAYS_INVALID, event_id)
        if len(set(days)) != len(days):
            return _invalid(ImportErrorCode.MONTHLY_DAYS_INVALID, event_id)

    return None


def _validate_entry(event_id: str, entry: Any) -> Optional[ValidationResult]:
    if not isinstance(entry, dict):
        return _invalid(ImportErrorCode.EVENT_NOT_OBJECT, event_id)

    property_id = entry.get('eventId')
    if not isinstance(property_id, str) or property_id != event_id:
        return _invalid(ImportErrorCode.ID_MISMATCH, event_id, property_id)

    if not isinstance(entry.get('eventTitle'), str):
        return _invalid(ImportErrorCode.MISSING_TITLE, event_id)
    if not isinstance(entry.get('eventDescription'), str):
        return _invalid(ImportErrorCode.MISSING_DESCRIPTION, event_id)

    time_ranges = entry.get('eventTimeRanges')
    if not isinstance(time_ranges, list):
        return _invalid(ImportErrorCode.TIME_RANGES_NOT_ARRAY, event_id)

    rule = entry.get('eventRecurrenceRule')
    if rule and not time_ranges:
        return _invalid(ImportErrorCode.RECURRING_NEEDS_RANGE, event_id)

    for time_range in time_ranges:
        if not isinstance(time_range, dict):
            return _invalid(ImportErrorCode.TIME_RANGE_NOT_OBJECT, event_id)
        if not isinstance(time_range.get('timeRangeId'), str):
            return _invalid(ImportErrorCode.MISSING_TIME_RANGE_ID, event_id)
        if not _is_date_string(time_range.get('timeRangeStart')):
            return _invalid(ImportErrorCode.INVALID_TIME_RANGE_START, event_id)
        if not _is_date_string(time_range.get('timeRangeEnd')):
            return _invalid(ImportErrorCode.INVALID_TIME_RANGE_END, event_id)

    if rule is not None:
        failure = _validate_rule(rule, event_id)
        if failure:
            return failure

    reminder = entry.get('eventReminder')
    if reminder is not None:
        if not isinstance(reminder, str):
            return _invalid(ImportErrorCode.REMINDER_NOT_STRING, event_id)
        if parse_reminder(reminder) is None:
            return _invalid(ImportErrorCode.REMINDER_INVALID_DATE, event_id)

    return None


def validate_import(data: Any) -> ValidationResult:
    """
    Validate an untrusted event collection before it is merged.

    The check is all-or-nothing: the first failing entry rejects the
    whole collection. Nothing is normalized or coerced.

    Args:
        data: Decoded JSON value

    Returns:
        ValidationResult; never raises for malformed input
    """
    if not isinstance(data, dict):
        return _invalid(ImportErrorCode.INVALID_FORMAT)

    for event_id, entry in data.items():
        failure = _validate_entry(event_id, entry)
        if failure:
            logger.info(f"Import rejected: {failure.message}")
            return failure

    return VALID


def parse_import(text: str) -> Tuple[Any, ValidationResult]:
    """
    Decode and validate the text of an import file.

    Returns:
        Tuple of (decoded data or None, ValidationResult)
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        logger.warning(f"Import file is not valid JSON: {e}")
        return None, _invalid(ImportErrorCode.INVALID_FORMAT)
    return data, validate_import(data)
