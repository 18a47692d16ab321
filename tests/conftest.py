"""Shared pytest fixtures."""
import os

import pytest

from processor.models import Event, RecurrenceFrequency, RecurrenceRule, TimeRange


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


def make_event(event_id='1', title='Standup', start='2024-01-01', end=None,
               rule=None, reminder=None, description=''):
    """Build an Event with a single time range."""
    return Event(
        id=event_id,
        title=title,
        description=description,
        time_ranges=[TimeRange(id=f'r{event_id}', start=start, end=end or start)],
        recurrence_rule=rule,
        reminder=reminder
    )


def weekly(days, end_date):
    return RecurrenceRule(
        frequency=RecurrenceFrequency.WEEKLY,
        end_date=end_date,
        weekly_days=list(days)
    )


def monthly(days, end_date):
    return RecurrenceRule(
        frequency=RecurrenceFrequency.MONTHLY,
        end_date=end_date,
        monthly_days=list(days)
    )


def raw_event(event_id='1', **overrides):
    """Wire-format event dict as found in import files."""
    data = {
        'eventId': event_id,
        'eventTitle': 'Dentist',
        'eventDescription': 'Bring card',
        'eventTimeRanges': [
            {'timeRangeId': 'a', 'timeRangeStart': '2024-03-01', 'timeRangeEnd': '2024-03-01'}
        ]
    }
    data.update(overrides)
    return data
