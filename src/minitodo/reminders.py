"""
Reminder time parsing and one-time reminder scheduling.

Reminder times are stored as text in the fixed 'YYYY-MM-DD HH:MM' format
(local time, 24-hour clock). Empty text means "no reminder". Text that does not
parse is treated exactly like no reminder when ordering tasks.
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)

REMIND_TIME_FORMAT = "%Y-%m-%d %H:%M"

# A reminder that is already due when scheduled is pushed this far into the future.
PAST_REMINDER_DELAY = timedelta(minutes=1)
DEFAULT_LEAD = timedelta(minutes=10)

NO_REMINDER_KEY: Tuple[int, datetime] = (1, datetime.max)


# PUBLIC_INTERFACE
def parse_remind_time(text: Optional[str]) -> Optional[datetime]:
    """Return the naive local datetime for `text`, or None if empty or unparseable."""
    if not text:
        return None
    try:
        return datetime.strptime(text, REMIND_TIME_FORMAT)
    except ValueError:
        return None


# PUBLIC_INTERFACE
def format_remind_time(value: datetime) -> str:
    """Format a datetime into the stored reminder text format."""
    return value.strftime(REMIND_TIME_FORMAT)


# PUBLIC_INTERFACE
def reminder_key(text: Optional[str]) -> Tuple[int, datetime]:
    """
    Sortable key for a reminder text.

    Usable reminders sort by their naive local time; empty or unparseable text
    sorts after every usable reminder. The key never needs a timezone, so any
    year that parses is accepted.
    """
    parsed = parse_remind_time(text)
    if parsed is None:
        return NO_REMINDER_KEY
    return (0, parsed)


# PUBLIC_INTERFACE
def has_reached_time(text: Optional[str], now: Optional[datetime] = None) -> bool:
    """True when `text` parses and its time is not in the future."""
    parsed = parse_remind_time(text)
    if parsed is None:
        return False
    return (now or datetime.now()) >= parsed


# PUBLIC_INTERFACE
def compute_fire_time(remind_time: str, now: datetime, lead: timedelta = DEFAULT_LEAD) -> Optional[datetime]:
    """
    Return when the alert for `remind_time` should fire, or None if it does not parse.

    A reminder that is not in the future is moved to now + 1 minute before the
    lead time is subtracted, so it fires right away.
    """
    target = parse_remind_time(remind_time)
    if target is None:
        return None
    if target <= now:
        target = now + PAST_REMINDER_DELAY
    return target - lead


# PUBLIC_INTERFACE
class NotificationPresenter(Protocol):
    """Displays a user-visible alert when a reminder fires."""

    def show(self, task_id: int, title: str, remind_time: str) -> None:
        ...


class LoggingNotificationPresenter:
    """Presenter that writes the alert to the application log."""

    def show(self, task_id: int, title: str, remind_time: str) -> None:
        logger.info("Reminder for task %s\nReminder: %s\n%s", task_id, remind_time, title)


# PUBLIC_INTERFACE
class ReminderScheduler:
    """
    One-time reminder wake-ups on the running asyncio loop.

    At most one wake-up is pending per task id; scheduling again replaces it.
    Must be used from the event loop thread.
    """

    def __init__(
        self,
        presenter: NotificationPresenter,
        *,
        lead: timedelta = DEFAULT_LEAD,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._presenter = presenter
        self._lead = lead
        self._clock = clock
        self._pending: Dict[int, asyncio.TimerHandle] = {}

    def pending_ids(self) -> list[int]:
        return sorted(self._pending)

    def schedule_reminder(self, task_id: int, title: str, remind_time: str) -> bool:
        """
        Arrange a wake-up for `task_id`. Returns False if `remind_time` does not parse.
        """
        now = datetime.fromtimestamp(self._clock())
        fire_at = compute_fire_time(remind_time, now, self._lead)
        if fire_at is None:
            logger.error("Cannot schedule reminder for task %s: bad time %r", task_id, remind_time)
            return False

        self.cancel_reminder(task_id)
        delay = max(0.0, (fire_at - now).total_seconds())
        loop = asyncio.get_running_loop()
        self._pending[task_id] = loop.call_later(delay, self._fire, task_id, title, remind_time)
        logger.debug(
            "Reminder set for task %s: now=%s fire_at=%s reminder=%s title=%s",
            task_id,
            now.isoformat(timespec="seconds"),
            fire_at.isoformat(timespec="seconds"),
            remind_time,
            title,
        )
        return True

    def cancel_reminder(self, task_id: int) -> None:
        handle = self._pending.pop(task_id, None)
        if handle is not None:
            handle.cancel()
            logger.debug("Reminder cancelled for task %s", task_id)

    def cancel_all(self) -> None:
        for task_id in list(self._pending):
            self.cancel_reminder(task_id)

    def _fire(self, task_id: int, title: str, remind_time: str) -> None:
        self._pending.pop(task_id, None)
        try:
            self._presenter.show(task_id, title, remind_time)
        except Exception:
            logger.exception("Failed to show reminder for task %s", task_id)
