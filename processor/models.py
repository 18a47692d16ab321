"""Data models for calendar events and reminders."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class CalendarError(Exception):
    """Base exception for calendar errors."""


class EventValidationError(CalendarError):
    """User-entered event data was rejected."""

    def __init__(self, code: str, message: Optional[str] = None):
        self.code = code
        super().__init__(message or code)


class EventNotFoundError(CalendarError):
    """No event with the given id exists."""


class NothingToExportError(CalendarError):
    """Export was requested for an empty collection."""


class RecurrenceFrequency(str, Enum):
    WEEKLY = 'WEEKLY'
    MONTHLY = 'MONTHLY'


class NotificationMethod(str, Enum):
    NONE = 'NONE'
    WECOM = 'WECOM'


@dataclass
class TimeRange:
    """A single span of days, stored as YYYY-MM-DD strings."""
    id: str
    start: str
    end: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timeRangeId': self.id,
            'timeRangeStart': self.start,
            'timeRangeEnd': self.end
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimeRange':
        return cls(
            id=data['timeRangeId'],
            start=data['timeRangeStart'],
            end=data['timeRangeEnd']
        )


@dataclass
class RecurrenceRule:
    """Weekly or monthly repetition of an event's anchor range."""
    frequency: RecurrenceFrequency
    end_date: str
    weekly_days: Optional[List[int]] = None
    monthly_days: Optional[List[int]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'ruleFrequency': self.frequency.value,
            'ruleEndDate': self.end_date
        }
        if self.weekly_days is not None:
            data['ruleWeeklyDays'] = list(self.weekly_days)
        if self.monthly_days is not None:
            data['ruleMonthlyDays'] = list(self.monthly_days)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RecurrenceRule':
        frequency = RecurrenceFrequency(data['ruleFrequency'])
        # Only the day list matching the frequency is meaningful
        if frequency == RecurrenceFrequency.WEEKLY:
            weekly, monthly = data.get('ruleWeeklyDays'), None
        else:
            weekly, monthly = None, data.get('ruleMonthlyDays')
        return cls(
            frequency=frequency,
            end_date=data['ruleEndDate'],
            weekly_days=list(weekly) if isinstance(weekly, list) else None,
            monthly_days=list(monthly) if isinstance(monthly, list) else None
        )


@dataclass
class Event:
    """A calendar event, one-time or recurring."""
    id: str
    title: str
    description: str
    time_ranges: List[TimeRange] = field(default_factory=list)
    recurrence_rule: Optional[RecurrenceRule] = None
    reminder: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'eventId': self.id,
            'eventTitle': self.title,
            'eventDescription': self.description,
            'eventTimeRanges': [r.to_dict() for r in self.time_ranges]
        }
        if self.recurrence_rule is not None:
            data['eventRecurrenceRule'] = self.recurrence_rule.to_dict()
        if self.reminder is not None:
            data['eventReminder'] = self.reminder
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        rule = data.get('eventRecurrenceRule')
        return cls(
            id=data['eventId'],
            title=data['eventTitle'],
            description=data['eventDescription'],
            time_ranges=[TimeRange.from_dict(r) for r in data['eventTimeRanges']],
            recurrence_rule=RecurrenceRule.from_dict(rule) if rule else None,
            reminder=data.get('eventReminder')
        )


@dataclass
class Occurrence:
    """One concrete dated instance of an event."""
    start: datetime
    end: datetime


@dataclass
class Settings:
    """Reminder delivery settings."""
    notification_method: NotificationMethod = NotificationMethod.NONE
    notification_robot_url: str = ''

    @property
    def reminders_enabled(self) -> bool:
        return (
            self.notification_method == NotificationMethod.WECOM and
            bool(self.notification_robot_url)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'notificationMethod': self.notification_method.value,
            'notificationRobotUrl': self.notification_robot_url
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        try:
            method = NotificationMethod(data.get('notificationMethod'))
        except ValueError:
            method = NotificationMethod.NONE
        url = data.get('notificationRobotUrl')
        return cls(
            notification_method=method,
            notification_robot_url=url if isinstance(url, str) else ''
        )


@dataclass(frozen=True)
class Pending:
    """Reminder set but not yet delivered at its current value."""
    reminder: str


@dataclass(frozen=True)
class Sent:
    """Reminder delivered at exactly this value."""
    reminder: str


@dataclass
class ImportResult:
    """Result of an import merge."""
    added: int
    updated: int


@dataclass
class ReminderCycleResult:
    """Result of one reminder scheduler cycle."""
    due: int = 0
    sent: int = 0
    failed: int = 0
    skipped: bool = False
