from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Tuple

from .models import TaskEntity
from .reminders import reminder_key


def _sort_key(task: TaskEntity) -> Tuple[bool, int, datetime, int]:
    has_no_reminder, reminder_at = reminder_key(task["remind_time"])
    # Newest first, but only between tasks that both lack a usable reminder.
    # Tasks with a reminder all get 0 here so equal reminders keep input order.
    created_tiebreak = -task["created_at"] if has_no_reminder else 0
    return (task["is_done"], has_no_reminder, reminder_at, created_tiebreak)


# PUBLIC_INTERFACE
def sort_tasks(tasks: Iterable[TaskEntity]) -> List[TaskEntity]:
    """
    Return tasks in display order using one stable composite sort.

    Order:
    1. incomplete before completed
    2. soonest usable reminder first; empty or unparseable reminders last
    3. among tasks without a usable reminder, most recently created first
    """
    return sorted(tasks, key=_sort_key)
