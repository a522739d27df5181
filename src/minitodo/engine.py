"""
Task list engine.

Owns the UI-facing state derived from the task store: the ordered task list,
the completion counters, the last error message and the scroll-to-top flag.

Mutations never touch that state directly. They hand the change to the store
in a background job and return at once; the state only changes when the
store's subscription delivers the next full snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Coroutine, Optional, Set, Tuple

from .errors import TaskValidationError
from .models import NewTask, TaskEntity
from .ordering import sort_tasks
from .schemas import normalize_title
from .state import ObservableValue
from .store import TaskStore
from .utils import now_millis, task_statistics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineSnapshot:
    tasks: Tuple[TaskEntity, ...]
    total_count: int
    completed_count: int
    uncompleted_count: int
    error_message: Optional[str]
    should_scroll_to_top: bool


# PUBLIC_INTERFACE
class TaskListEngine:
    """
    Single source of truth for the presentation layer.

    Must be constructed while an asyncio event loop is running; it starts
    observing the store immediately and keeps doing so until `aclose()`.
    All methods must be called from the loop thread.
    """

    def __init__(self, store: TaskStore, *, clock: Callable[[], int] = now_millis) -> None:
        self._store = store
        self._clock = clock

        self.tasks: ObservableValue[Tuple[TaskEntity, ...]] = ObservableValue(())
        self.total_count: ObservableValue[int] = ObservableValue(0)
        self.completed_count: ObservableValue[int] = ObservableValue(0)
        self.uncompleted_count: ObservableValue[int] = ObservableValue(0)
        self.error_message: ObservableValue[Optional[str]] = ObservableValue(None)
        self.should_scroll_to_top: ObservableValue[bool] = ObservableValue(False)

        self._jobs: Set[asyncio.Task[None]] = set()
        self._observer = asyncio.get_running_loop().create_task(self._observe_tasks())

    # ---- store subscription ----

    async def _observe_tasks(self) -> None:
        try:
            async for snapshot in self._store.subscribe_all():
                self._publish(snapshot)
        except Exception as e:
            logger.exception("Error observing tasks")
            self.error_message.set(f"Failed to load tasks: {e}")

    def _publish(self, snapshot: list[TaskEntity]) -> None:
        ordered = tuple(sort_tasks(snapshot))
        stats = task_statistics(ordered)
        self.tasks.set(ordered)
        self.completed_count.set(stats.completed)
        self.uncompleted_count.set(stats.uncompleted)
        self.total_count.set(stats.total)

    # ---- background jobs ----

    def _launch(self, action: str, job: Coroutine[None, None, None]) -> None:
        task = asyncio.get_running_loop().create_task(self._run(action, job))
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)

    async def _run(self, action: str, job: Coroutine[None, None, None]) -> None:
        try:
            await job
        except Exception as e:
            logger.exception("Error trying to %s task", action)
            self.error_message.set(f"Failed to {action} task: {e}")
        else:
            self.error_message.set(None)

    def _reject(self, error: TaskValidationError) -> bool:
        self.error_message.set(str(error))
        return False

    # ---- operations ----

    def add_task(self, raw_title: str) -> bool:
        """
        Validate and persist a new task. Returns False if the title was rejected.
        """
        try:
            title = normalize_title(raw_title)
        except TaskValidationError as e:
            return self._reject(e)

        self.should_scroll_to_top.set(True)
        new_task: NewTask = {
            "title": title,
            "is_done": False,
            "created_at": self._clock(),
            "remind_time": "",
        }
        self._launch("add", self._store.insert(new_task))
        return True

    def toggle_task(self, task: TaskEntity) -> bool:
        toggled: TaskEntity = {**task, "is_done": not task["is_done"]}
        self._launch("update", self._store.update(toggled))
        return True

    def update_task(self, task: TaskEntity) -> bool:
        """
        Replace a stored task with `task` (matched by id). The title is
        validated the same way as in `add_task`.
        """
        try:
            title = normalize_title(task["title"])
        except TaskValidationError as e:
            return self._reject(e)

        self._launch("update", self._store.update({**task, "title": title}))
        return True

    def delete_task(self, task: TaskEntity) -> bool:
        self._launch("delete", self._store.delete(task))
        return True

    def clear_error(self) -> None:
        self.error_message.set(None)

    def clear_scroll_flag(self) -> None:
        self.should_scroll_to_top.set(False)

    # ---- reads ----

    def find_task(self, task_id: int) -> Optional[TaskEntity]:
        for t in self.tasks.value:
            if t["id"] == task_id:
                return t
        return None

    def snapshot(self) -> EngineSnapshot:
        return EngineSnapshot(
            tasks=self.tasks.value,
            total_count=self.total_count.value,
            completed_count=self.completed_count.value,
            uncompleted_count=self.uncompleted_count.value,
            error_message=self.error_message.value,
            should_scroll_to_top=self.should_scroll_to_top.value,
        )

    async def changes(self) -> AsyncIterator[EngineSnapshot]:
        """
        Yield the current snapshot, then a fresh one whenever any state value
        changes. Bursts of changes collapse into one snapshot.
        """
        changed = asyncio.Event()
        cells = (
            self.tasks,
            self.total_count,
            self.completed_count,
            self.uncompleted_count,
            self.error_message,
            self.should_scroll_to_top,
        )
        unsubscribers = [cell.subscribe(lambda _value: changed.set()) for cell in cells]
        try:
            while True:
                changed.clear()
                yield self.snapshot()
                await changed.wait()
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()

    # ---- lifecycle ----

    async def join(self) -> None:
        """Wait until every persistence job started so far has finished."""
        while self._jobs:
            await asyncio.gather(*list(self._jobs))

    async def aclose(self) -> None:
        await self.join()
        self._observer.cancel()
        try:
            await self._observer
        except asyncio.CancelledError:
            pass
