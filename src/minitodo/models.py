from __future__ import annotations

from typing import TypedDict


# PUBLIC_INTERFACE
class NewTask(TypedDict):
    """
    A task record that has not been persisted yet (the store assigns the id).

    Fields:
    - title: Short title (1..200 chars, trimmed before persistence)
    - is_done: Completion flag
    - created_at: Creation timestamp in milliseconds since epoch, never changed afterwards
    - remind_time: 'YYYY-MM-DD HH:MM' or '' when no reminder is set
    """

    title: str
    is_done: bool
    created_at: int
    remind_time: str


# PUBLIC_INTERFACE
class TaskEntity(NewTask):
    """
    A persisted task record. `id` is assigned by the store and never reused.
    """

    id: int
