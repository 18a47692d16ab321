"""AWS Lambda handler and long-running entry point for the event calendar."""
import asyncio
import json
import logging
import os
import signal
import time
from datetime import date
from typing import Any, Dict

from notifier.webhook_notifier import WebhookNotifier
from processor.calendar_view import (
    list_events,
    month_view,
    recent_events,
    recurrence_description,
)
from processor.dates import format_display_date, format_ymd, parse_ymd
from processor.event_processor import EventProcessor, ImportRejectedError
from processor.models import (
    EventNotFoundError,
    EventValidationError,
    NothingToExportError,
)
from scheduler.reminder_scheduler import PeriodicReminderTask, ReminderScheduler
from storage.dynamodb_store import DynamoDBStore


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def load_config() -> Dict[str, Any]:
    """Read configuration from environment variables."""
    return {
        'table_name': os.environ.get('TABLE_NAME', 'calendar-events'),
        'log_level': os.environ.get('LOG_LEVEL', 'INFO'),
        'notify_timeout': int(os.environ.get('NOTIFY_TIMEOUT_SECONDS', '10')),
        'reminder_interval': float(os.environ.get('REMINDER_INTERVAL_SECONDS', '60')),
        'endpoint_url': os.environ.get('DYNAMODB_ENDPOINT_URL') or None
    }


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body, ensure_ascii=False)}


def _check_reminders(store, config, request):
    scheduler = ReminderScheduler(store, WebhookNotifier(timeout=config['notify_timeout']))
    result = asyncio.run(scheduler.run_cycle())
    return _response(200, {
        'message': 'Reminder check skipped' if result.skipped else 'Reminder check completed',
        'statistics': {
            'reminders_due': result.due,
            'reminders_sent': result.sent,
            'reminders_failed': result.failed
        }
    })


def _import(store, config, request):
    body = request.get('body')
    if not isinstance(body, str):
        body = json.dumps(request.get('events'))
    events = store.load_events()
    result = EventProcessor().import_events(events, body)
    store.save_events(events)
    return _response(200, {
        'message': 'Import complete',
        'statistics': {'events_added': result.added, 'events_updated': result.updated}
    })


def _export(store, config, request):
    filename, content = EventProcessor().export_events(store.load_events())
    return _response(200, {'filename': filename, 'content': content})


def _save_event(store, config, request):
    payload = request.get('event')
    events = store.load_events()
    event, created = EventProcessor().save_event(
        events, payload if isinstance(payload, dict) else {}
    )
    store.save_events(events)
    return _response(201 if created else 200, {
        'message': 'Event added' if created else 'Event updated',
        'event': event.to_dict()
    })


def _delete_event(store, config, request):
    events = store.load_events()
    EventProcessor().delete_event(events, request.get('event_id'))
    store.save_events(events)
    return _response(200, {'message': 'Event deleted'})


def _set_reminder(store, config, request):
    events = store.load_events()
    event = EventProcessor().set_reminder(
        events, request.get('event_id'), request.get('date'), request.get('time')
    )
    store.save_events(events)
    return _response(200, {'message': 'Reminder set', 'event': event.to_dict()})


def _save_settings(store, config, request):
    settings = EventProcessor().build_settings(request.get('robot_url'))
    store.save_settings(settings)
    return _response(200, {'message': 'Settings saved', 'settings': settings.to_dict()})


def _month_view(store, config, request):
    today = date.today()
    selected = parse_ymd(request.get('selected') or '')
    view = month_view(
        store.load_events(),
        int(request.get('year', today.year)),
        int(request.get('month', today.month)),
        selected=selected
    )
    return _response(200, {
        'cells': [
            {
                'date': format_ymd(cell.date),
                'is_current_month': cell.is_current_month,
                'is_today': cell.is_today,
                'has_events': cell.has_events
            }
            for cell in view['cells']
        ],
        'day_events': [event.to_dict() for event in view['day_events']]
    })


def _list_events(store, config, request):
    listed = []
    for event in list_events(store.load_events()):
        item = event.to_dict()
        item['recurrenceDescription'] = recurrence_description(event)
        rule_end = parse_ymd(event.recurrence_rule.end_date) if event.recurrence_rule else None
        item['recurrenceEnds'] = format_display_date(rule_end) if rule_end else None
        listed.append(item)
    return _response(200, {'events': listed})


def _recent_events(store, config, request):
    return _response(200, {
        'events': [event.to_dict() for event in recent_events(store.load_events())]
    })


ACTIONS = {
    'check_reminders': _check_reminders,
    'import': _import,
    'export': _export,
    'save_event': _save_event,
    'delete_event': _delete_event,
    'set_reminder': _set_reminder,
    'save_settings': _save_settings,
    'month_view': _month_view,
    'list_events': _list_events,
    'recent_events': _recent_events,
}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function.

    Scheduled EventBridge invocations carry no action and run one
    reminder check.

    Args:
        event: Request payload with an optional 'action' key
        context: Lambda context object

    Returns:
        Response dict with statusCode and JSON body
    """
    config = load_config()
    setup_logging(config['log_level'])
    logger = logging.getLogger(__name__)

    start_time = time.time()
    action_name = event.get('action', 'check_reminders')
    action = ACTIONS.get(action_name)
    if action is None:
        logger.warning(f"Unknown action '{action_name}'")
        return _response(400, {'message': f"Unknown action '{action_name}'"})

    logger.info(f"Handling action '{action_name}'")

    try:
        store = DynamoDBStore(config['table_name'], endpoint_url=config['endpoint_url'])
        response = action(store, config, event)
    except ImportRejectedError as e:
        logger.warning(f"Import rejected: {e}")
        return _response(400, {
            'message': 'Import failed',
            'error': str(e),
            'error_code': e.result.code.name,
            'event_id': e.result.event_id
        })
    except (EventValidationError, NothingToExportError) as e:
        logger.warning(f"Request rejected: {e}")
        return _response(400, {
            'message': str(e),
            'error_code': getattr(e, 'code', type(e).__name__)
        })
    except EventNotFoundError as e:
        logger.warning(str(e))
        return _response(404, {'message': str(e)})
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Action '{action_name}' failed: {str(e)}",
            exc_info=True
        )
        return _response(500, {
            'message': 'Request failed',
            'error': str(e),
            'error_type': type(e).__name__,
            'duration_seconds': round(duration, 2)
        })

    duration = time.time() - start_time
    logger.info(f"Action '{action_name}' completed in {round(duration, 2)}s")
    return response


async def run_forever(config: Dict[str, Any]) -> None:
    """Run the reminder scheduler until SIGINT or SIGTERM."""
    store = DynamoDBStore(config['table_name'], endpoint_url=config['endpoint_url'])
    scheduler = ReminderScheduler(store, WebhookNotifier(timeout=config['notify_timeout']))
    task = PeriodicReminderTask(scheduler, interval=config['reminder_interval'])

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    task.start()
    try:
        await stop_event.wait()
    finally:
        await task.stop()


def main() -> None:
    config = load_config()
    setup_logging(config['log_level'])
    asyncio.run(run_forever(config))


if __name__ == '__main__':
    main()
