"""Unit tests for EventProcessor."""
import json
from datetime import date
from unittest.mock import patch

import pytest

from conftest import make_event, raw_event
from processor.event_processor import EventProcessor, ImportRejectedError
from processor.import_validator import ImportErrorCode
from processor.models import (
    EventNotFoundError,
    EventValidationError,
    NotificationMethod,
    NothingToExportError,
    RecurrenceFrequency,
)


def form_payload(**overrides):
    payload = {
        'eventTitle': '  Yoga  ',
        'eventDescription': 'Mat',
        'eventTimeRanges': [
            {'timeRangeId': 'r1', 'timeRangeStart': '2024/1/5', 'timeRangeEnd': '2024/01/06'}
        ]
    }
    payload.update(overrides)
    return payload


class TestBuildEvent:
    """Form normalization."""

    def test_normalizes_dates_and_title(self):
        processor = EventProcessor()

        event = processor.build_event(form_payload(eventId='42'))

        assert event.id == '42'
        assert event.title == 'Yoga'
        assert event.description == 'Mat'
        assert event.time_ranges[0].start == '2024-01-05'
        assert event.time_ranges[0].end == '2024-01-06'
        assert event.recurrence_rule is None
        assert event.reminder is None

    def test_new_event_gets_time_based_id(self):
        processor = EventProcessor()
        with patch('processor.event_processor.time.time', return_value=1700000000.5):
            event = processor.build_event(form_payload())
        assert event.id == '1700000000500'

    @pytest.mark.parametrize('overrides,code', [
        ({'eventTitle': '   '}, 'title_required'),
        ({'eventTimeRanges': []}, 'date_range_missing'),
        ({'eventTimeRanges': [{'timeRangeId': 'r', 'timeRangeStart': '2024/02/30',
                               'timeRangeEnd': '2024/03/01'}]}, 'invalid_date'),
        ({'eventTimeRanges': [{'timeRangeId': 'r', 'timeRangeStart': '2024/03/02',
                               'timeRangeEnd': '2024/03/01'}]}, 'date_range_order'),
    ])
    def test_rejects_bad_input(self, overrides, code):
        with pytest.raises(EventValidationError) as exc_info:
            EventProcessor().build_event(form_payload(**overrides))
        assert exc_info.value.code == code

    def test_weekly_rule(self):
        rule = {'ruleFrequency': 'WEEKLY', 'ruleWeeklyDays': [5, 1, 5], 'ruleEndDate': '2024/02/05'}

        event = EventProcessor().build_event(form_payload(eventRecurrenceRule=rule))

        assert event.recurrence_rule.frequency == RecurrenceFrequency.WEEKLY
        assert event.recurrence_rule.weekly_days == [1, 5]
        assert event.recurrence_rule.end_date == '2024-02-05'

    def test_monthly_rule_from_text(self):
        rule = {'ruleFrequency': 'MONTHLY', 'ruleMonthlyDays': '15, 1, 31', 'ruleEndDate': '2024/12/31'}

        event = EventProcessor().build_event(form_payload(eventRecurrenceRule=rule))

        assert event.recurrence_rule.monthly_days == [1, 15, 31]
        assert event.recurrence_rule.weekly_days is None

    @pytest.mark.parametrize('overrides,code', [
        ({'eventTitle': 42}, 'title_required'),
        ({'eventTitle': None}, 'title_required'),
        ({'eventTimeRanges': '2024/01/01'}, 'date_range_missing'),
        ({'eventTimeRanges': ['2024/01/01']}, 'invalid_date'),
        ({'eventRecurrenceRule': 'WEEKLY'}, 'invalid_frequency'),
        ({'eventRecurrenceRule': {'ruleFrequency': 'WEEKLY', 'ruleWeeklyDays': 3,
                                  'ruleEndDate': '2024/03/01'}}, 'weekly_day'),
        ({'eventRecurrenceRule': {'ruleFrequency': 'MONTHLY', 'ruleMonthlyDays': 3,
                                  'ruleEndDate': '2024/03/01'}}, 'invalid_month_day'),
    ])
    def test_rejects_wrong_types(self, overrides, code):
        with pytest.raises(EventValidationError) as exc_info:
            EventProcessor().build_event(form_payload(**overrides))
        assert exc_info.value.code == code

    def test_non_string_id_gets_new_id(self):
        with patch('processor.event_processor.time.time', return_value=1700000000.5):
            event = EventProcessor().build_event(form_payload(eventId=7))
        assert event.id == '1700000000500'

    @pytest.mark.parametrize('rule,code', [
        ({'ruleFrequency': 'WEEKLY', 'ruleWeeklyDays': [1], 'ruleEndDate': ''}, 'recurrence_end'),
        ({'ruleFrequency': 'WEEKLY', 'ruleWeeklyDays': [1], 'ruleEndDate': '2024/01/01'}, 'date_range_order'),
        ({'ruleFrequency': 'WEEKLY', 'ruleWeeklyDays': [], 'ruleEndDate': '2024/03/01'}, 'weekly_day'),
        ({'ruleFrequency': 'DAILY', 'ruleEndDate': '2024/03/01'}, 'invalid_frequency'),
        ({'ruleFrequency': 'MONTHLY', 'ruleMonthlyDays': '', 'ruleEndDate': '2024/03/01'}, 'monthly_day_missing'),
        ({'ruleFrequency': 'MONTHLY', 'ruleMonthlyDays': '1, 32', 'ruleEndDate': '2024/03/01'}, 'invalid_month_day'),
        ({'ruleFrequency': 'MONTHLY', 'ruleMonthlyDays': '3, 3', 'ruleEndDate': '2024/03/01'}, 'invalid_month_day'),
    ])
    def test_rejects_bad_rules(self, rule, code):
        with pytest.raises(EventValidationError) as exc_info:
            EventProcessor().build_event(form_payload(eventRecurrenceRule=rule))
        assert exc_info.value.code == code


class TestCollectionOperations:
    """Save, delete and reminder operations."""

    def test_save_preserves_existing_reminder(self):
        events = {'42': make_event('42', reminder='2024-01-01T09:00:00')}

        event, created = EventProcessor().save_event(events, form_payload(eventId='42'))

        assert created is False
        assert event.reminder == '2024-01-01T09:00:00'
        assert events['42'].title == 'Yoga'

    def test_save_adds_new_event(self):
        events = {}
        event, created = EventProcessor().save_event(events, form_payload(eventId='9'))
        assert created is True
        assert events == {'9': event}

    def test_delete(self):
        events = {'1': make_event('1')}
        EventProcessor().delete_event(events, '1')
        assert events == {}
        with pytest.raises(EventNotFoundError):
            EventProcessor().delete_event(events, '1')

    def test_set_reminder(self):
        events = {'1': make_event('1')}

        event = EventProcessor().set_reminder(events, '1', '2024/3/9', '7:05')

        assert event.reminder == '2024-03-09T07:05:00'

    @pytest.mark.parametrize('date_str,time_str,code', [
        ('2024/02/31', '09:00', 'invalid_date'),
        ('2024/03/01', '24:00', 'invalid_time'),
        ('2024/03/01', '9', 'invalid_time'),
    ])
    def test_set_reminder_rejects_bad_input(self, date_str, time_str, code):
        events = {'1': make_event('1')}
        with pytest.raises(EventValidationError) as exc_info:
            EventProcessor().set_reminder(events, '1', date_str, time_str)
        assert exc_info.value.code == code
        assert events['1'].reminder is None

    def test_set_reminder_unknown_event(self):
        with pytest.raises(EventNotFoundError):
            EventProcessor().set_reminder({}, 'nope', '2024/03/01', '09:00')

    def test_build_settings(self):
        processor = EventProcessor()

        settings = processor.build_settings(' https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key=abc ')
        assert settings.notification_method == NotificationMethod.WECOM
        assert settings.reminders_enabled

        assert not processor.build_settings('').reminders_enabled
        with pytest.raises(EventValidationError):
            processor.build_settings('not a url')


class TestImportExport:
    """Import merge and export."""

    def test_import_twice_is_idempotent(self):
        processor = EventProcessor()
        events = {'old': make_event('old')}
        text = json.dumps({'1': raw_event('1'), '2': raw_event('2')})

        first = processor.import_events(events, text)
        snapshot = {k: v.to_dict() for k, v in events.items()}
        second = processor.import_events(events, text)

        assert (first.added, first.updated) == (2, 0)
        assert (second.added, second.updated) == (0, 2)
        assert {k: v.to_dict() for k, v in events.items()} == snapshot
        assert set(events) == {'old', '1', '2'}

    def test_import_overwrites_existing_event(self):
        events = {'1': make_event('1', title='Before', reminder='2024-01-01T00:00:00')}

        result = EventProcessor().import_events(events, json.dumps({'1': raw_event('1')}))

        assert (result.added, result.updated) == (0, 1)
        assert events['1'].title == 'Dentist'
        assert events['1'].reminder is None

    def test_rejected_import_leaves_collection_untouched(self):
        events = {'1': make_event('1')}
        text = json.dumps({'2': raw_event('2'), '3': raw_event('4')})

        with pytest.raises(ImportRejectedError) as exc_info:
            EventProcessor().import_events(events, text)

        assert exc_info.value.result.code == ImportErrorCode.ID_MISMATCH
        assert exc_info.value.result.event_id == '3'
        assert set(events) == {'1'}

    def test_stray_day_list_for_other_frequency_is_ignored(self):
        events = {}
        rule = {'ruleFrequency': 'WEEKLY', 'ruleWeeklyDays': [1], 'ruleEndDate': '2024-06-30',
                'ruleMonthlyDays': 5}
        text = json.dumps({'1': raw_event('1'), '2': raw_event('2', eventRecurrenceRule=rule)})

        result = EventProcessor().import_events(events, text)

        assert (result.added, result.updated) == (2, 0)
        assert events['2'].recurrence_rule.weekly_days == [1]
        assert events['2'].recurrence_rule.monthly_days is None

    def test_merge_failure_leaves_collection_untouched(self):
        events = {'old': make_event('old')}
        data = {'1': raw_event('1'), '2': {'eventId': '2'}}

        with pytest.raises(KeyError):
            EventProcessor().merge_import(events, data)

        assert set(events) == {'old'}

    def test_export(self):
        events = {'1': make_event('1', reminder='2024-01-01T09:00:00')}

        filename, content = EventProcessor().export_events(events, today=date(2024, 5, 6))

        assert filename == 'calendar-events-2024-05-06.json'
        data = json.loads(content)
        assert data['1']['eventTitle'] == 'Standup'
        assert data['1']['eventReminder'] == '2024-01-01T09:00:00'
        assert '\n  ' in content

    def test_export_then_import_reports_updates(self):
        processor = EventProcessor()
        events = {'1': make_event('1')}
        _, content = processor.export_events(events)

        result = processor.import_events(events, content)

        assert (result.added, result.updated) == (0, 1)

    def test_export_empty_collection(self):
        with pytest.raises(NothingToExportError):
            EventProcessor().export_events({})
