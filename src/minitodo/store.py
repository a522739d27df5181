from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, List, Set, TypeVar

from .errors import StorageError
from .models import NewTask, TaskEntity
from .repositories import Repository

logger = logging.getLogger(__name__)

R = TypeVar("R")


# PUBLIC_INTERFACE
class TaskStore:
    """
    Async gateway to a Repository.

    Blocking repository calls run in a worker thread. Every failure surfaces as
    StorageError. After each successful write all subscribers are told the task
    table changed and re-read it.
    """

    def __init__(self, repository: Repository) -> None:
        self._repository = repository
        self._watchers: Set[asyncio.Event] = set()

    async def _call(self, fn: Callable[..., R], *args: object) -> R:
        try:
            return await asyncio.to_thread(fn, *args)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(str(e) or e.__class__.__name__) from e

    def _notify(self) -> None:
        for changed in list(self._watchers):
            changed.set()

    async def insert(self, task: NewTask) -> None:
        created = await self._call(self._repository.insert, task)
        logger.debug("Task inserted id=%s", created["id"])
        self._notify()

    async def update(self, task: TaskEntity) -> None:
        found = await self._call(self._repository.update, task)
        if not found:
            raise StorageError(f"task {task['id']} does not exist")
        logger.debug("Task updated id=%s", task["id"])
        self._notify()

    async def delete(self, task: TaskEntity) -> None:
        """Delete `task`; deleting a record that is already gone is not an error."""
        deleted = await self._call(self._repository.delete, task["id"])
        if deleted:
            logger.debug("Task deleted id=%s", task["id"])
            self._notify()

    async def subscribe_all(self) -> AsyncIterator[List[TaskEntity]]:
        """
        Yield the full task list now and again after every change.

        Several changes made while the consumer is busy yield a single, latest
        snapshot. Never finishes on its own; raises StorageError if a read fails.
        """
        changed = asyncio.Event()
        self._watchers.add(changed)
        try:
            while True:
                changed.clear()
                yield await self._call(self._repository.list_all)
                await changed.wait()
        finally:
            self._watchers.discard(changed)
