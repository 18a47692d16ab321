"""Periodic delivery of due event reminders."""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Dict, Optional, Union

from notifier.webhook_notifier import WebhookNotifier
from processor.dates import parse_reminder
from processor.models import Event, Pending, ReminderCycleResult, Sent
from storage.dynamodb_store import DynamoDBStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60

ResultCallback = Callable[[Event, bool], None]


def reminder_state(event: Event, sent_log: Dict[str, str]) -> Optional[Union[Pending, Sent]]:
    """
    Derive an event's reminder state from the sent log.

    A reminder is Sent only when the log holds exactly its current value,
    so changing the reminder always makes it Pending again.

    Returns:
        Pending, Sent, or None when the event has no reminder
    """
    if not event.reminder:
        return None
    if sent_log.get(event.id) == event.reminder:
        return Sent(event.reminder)
    return Pending(event.reminder)


def is_due(event: Event, sent_log: Dict[str, str], now: datetime) -> bool:
    """True if the reminder is pending and its time has passed."""
    if not isinstance(reminder_state(event, sent_log), Pending):
        return False
    reminder_time = parse_reminder(event.reminder)
    return reminder_time is not None and reminder_time <= now


class ReminderScheduler:
    """Runs reminder cycles against the stored event collection."""

    def __init__(
        self,
        store: DynamoDBStore,
        notifier: WebhookNotifier,
        on_result: Optional[ResultCallback] = None,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the scheduler.

        Args:
            store: Persistence for events, settings and the sent log
            notifier: Delivers one reminder, returning True on success
            on_result: Called with (event, success) after each attempt
            clock: Returns the current naive local time
        """
        self.store = store
        self.notifier = notifier
        self.on_result = on_result
        self.clock = clock

    async def run_cycle(self, now: Optional[datetime] = None) -> ReminderCycleResult:
        """
        Deliver every due reminder once.

        Deliveries run sequentially in collection order. A failed delivery
        leaves the event pending so the next cycle retries it. The sent log
        is written only if something was delivered.

        Args:
            now: Evaluation time (defaults to the clock)

        Returns:
            ReminderCycleResult with due/sent/failed counts
        """
        settings = self.store.load_settings()
        if not settings.reminders_enabled:
            logger.debug("Reminder delivery disabled, skipping cycle")
            return ReminderCycleResult(skipped=True)

        events = self.store.load_events()
        sent_log = self.store.load_sent_reminders()
        staged = dict(sent_log)
        now = now or self.clock()
        result = ReminderCycleResult()

        for event in events.values():
            if not is_due(event, sent_log, now):
                continue
            result.due += 1

            success = await self._deliver(settings.notification_robot_url, event)
            if success:
                staged[event.id] = event.reminder
                result.sent += 1
            else:
                result.failed += 1
            self._report(event, success)

        if result.sent:
            self.store.save_sent_reminders(staged)

        logger.info(
            f"Reminder cycle complete: {result.due} due, {result.sent} sent, "
            f"{result.failed} failed"
        )
        return result

    async def _deliver(self, url: str, event: Event) -> bool:
        try:
            return bool(await asyncio.to_thread(self.notifier.notify, url, event))
        except Exception as e:
            logger.error(
                f"Notifier raised for event '{event.id}': {e}",
                exc_info=True
            )
            return False

    def _report(self, event: Event, success: bool) -> None:
        if self.on_result is None:
            return
        try:
            self.on_result(event, success)
        except Exception as e:
            logger.warning(f"Reminder result callback failed: {e}")


class PeriodicReminderTask:
    """
    Owns the asyncio task that drives a ReminderScheduler.

    One cycle runs immediately on start, then one every interval seconds
    until stop() is awaited. Errors inside a cycle are logged and the
    task keeps running.
    """

    def __init__(
        self,
        scheduler: ReminderScheduler,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        sleep: Callable = asyncio.sleep
    ):
        self.scheduler = scheduler
        self.interval = interval
        self.sleep = sleep
        self.cycles = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Start the periodic task on the running event loop."""
        if self.running:
            return self._task
        self._task = asyncio.create_task(self._run(), name='reminder-scheduler')
        logger.info(f"Reminder scheduler started with interval {self.interval}s")
        return self._task

    async def stop(self) -> None:
        """Cancel the periodic task and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Reminder scheduler stopped")

    async def _run(self) -> None:
        while True:
            try:
                await self.scheduler.run_cycle()
            except Exception as e:
                logger.error(f"Reminder cycle failed: {e}", exc_info=True)
            self.cycles += 1
            await self.sleep(self.interval)
