from __future__ import annotations

import time
from typing import Iterable, NamedTuple

from .models import TaskEntity


class TaskStatistics(NamedTuple):
    total: int
    completed: int
    uncompleted: int


# PUBLIC_INTERFACE
def now_millis() -> int:
    """Current wall-clock time in milliseconds since epoch."""
    return int(time.time() * 1000)


# PUBLIC_INTERFACE
def task_statistics(tasks: Iterable[TaskEntity]) -> TaskStatistics:
    """
    Count tasks by completion state.

    Returns:
        TaskStatistics where total == completed + uncompleted.
    """
    completed = 0
    uncompleted = 0
    for t in tasks:
        if t["is_done"]:
            completed += 1
        else:
            uncompleted += 1
    return TaskStatistics(total=completed + uncompleted, completed=completed, uncompleted=uncompleted)
