"""DynamoDB key/value store for events, settings and sent reminders."""
import json
import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError

from processor.import_validator import validate_import
from processor.models import Event, Settings

logger = logging.getLogger(__name__)

EVENTS_KEY = 'calendarEvents'
SETTINGS_KEY = 'calendarSettings'
SENT_REMINDERS_KEY = 'sentReminders'


class DynamoDBStore:
    """Stores JSON documents under logical keys, last write wins."""

    def __init__(self, table_name: str, endpoint_url: Optional[str] = None):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table (hash key 'store_key')
            endpoint_url: Optional endpoint, e.g. a local DynamoDB
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb', endpoint_url=endpoint_url)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBStore for table: {table_name}")

    def get_json(self, key: str, default: Any) -> Any:
        """
        Read the JSON document stored under a key.

        A missing item, undecodable JSON, or a value of a different type
        than the default is treated as absent.

        Args:
            key: Logical key
            default: Value returned when nothing usable is stored

        Returns:
            Decoded document or default

        Raises:
            ClientError: If DynamoDB itself fails
        """
        try:
            response = self.table.get_item(Key={'store_key': key})
        except ClientError as e:
            logger.error(f"Error reading '{key}' from DynamoDB: {e}")
            raise

        item = response.get('Item')
        if not item:
            return default

        try:
            value = json.loads(item.get('value', ''))
        except (TypeError, ValueError) as e:
            logger.warning(f"Stored value for '{key}' is not valid JSON: {e}")
            return default

        if not isinstance(value, type(default)):
            logger.warning(
                f"Stored value for '{key}' has type {type(value).__name__}, "
                f"expected {type(default).__name__}"
            )
            return default
        return value

    def put_json(self, key: str, value: Any) -> None:
        """
        Write a JSON document under a key.

        Raises:
            ClientError: If DynamoDB fails
        """
        try:
            self.table.put_item(Item={
                'store_key': key,
                'value': json.dumps(value, ensure_ascii=False)
            })
        except ClientError as e:
            logger.error(f"Error writing '{key}' to DynamoDB: {e}")
            raise

    def load_events(self) -> Dict[str, Event]:
        """
        Load the event collection, dropping entries that are malformed.

        Returns:
            Dictionary mapping event id to Event
        """
        raw = self.get_json(EVENTS_KEY, {})
        events = {}
        for event_id, entry in raw.items():
            result = validate_import({event_id: entry})
            if not result.valid:
                logger.warning(f"Skipping stored event '{event_id}': {result.message}")
                continue
            try:
                events[event_id] = Event.from_dict(entry)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping stored event '{event_id}': {e}")
        logger.info(f"Loaded {len(events)} events")
        return events

    def save_events(self, events: Dict[str, Event]) -> None:
        self.put_json(
            EVENTS_KEY,
            {event_id: event.to_dict() for event_id, event in events.items()}
        )
        logger.info(f"Saved {len(events)} events")

    def load_settings(self) -> Settings:
        return Settings.from_dict(self.get_json(SETTINGS_KEY, {}))

    def save_settings(self, settings: Settings) -> None:
        self.put_json(SETTINGS_KEY, settings.to_dict())

    def load_sent_reminders(self) -> Dict[str, str]:
        """Load the map of event id to last delivered reminder value."""
        raw = self.get_json(SENT_REMINDERS_KEY, {})
        return {k: v for k, v in raw.items() if isinstance(v, str)}

    def save_sent_reminders(self, sent: Dict[str, str]) -> None:
        self.put_json(SENT_REMINDERS_KEY, sent)
