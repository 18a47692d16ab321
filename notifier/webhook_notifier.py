"""Webhook notifier for WeCom robot reminders."""
import logging

import requests

from processor.dates import parse_reminder
from processor.models import Event

logger = logging.getLogger(__name__)


class WebhookNotifier:
    """Pushes reminder messages to a WeCom robot webhook."""

    def __init__(self, timeout: int = 10):
        """
        Initialize the notifier.

        Args:
            timeout: HTTP request timeout in seconds (default: 10)
        """
        self.timeout = timeout

    def build_payload(self, event: Event) -> dict:
        """
        Build the markdown message for an event's reminder.

        Args:
            event: Event with a reminder set

        Returns:
            WeCom markdown payload dict
        """
        reminder_time = parse_reminder(event.reminder)
        if reminder_time is not None:
            time_text = reminder_time.strftime('%Y-%m-%d %H:%M')
        else:
            time_text = event.reminder

        content = '\n\n'.join([
            f"### Event Reminder: {event.title}",
            f"> **Time**: {time_text}",
            f"> **Description**: {event.description or '-'}"
        ])
        return {
            'msgtype': 'markdown',
            'markdown': {'content': content}
        }

    def notify(self, url: str, event: Event) -> bool:
        """
        Send one reminder. No retries are made here.

        Args:
            url: Webhook URL
            event: Event whose reminder is due

        Returns:
            True if the webhook answered with a 2xx status, False otherwise
        """
        if not event.reminder:
            logger.warning(f"Event '{event.id}' has no reminder to send")
            return False

        try:
            response = requests.post(
                url,
                json=self.build_payload(event),
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Webhook delivery failed for event '{event.id}': {e}")
            return False

        if not 200 <= response.status_code < 300:
            logger.error(
                f"Webhook delivery failed for event '{event.id}': "
                f"status {response.status_code}"
            )
            return False

        logger.info(f"Reminder delivered for event '{event.id}'")
        return True
