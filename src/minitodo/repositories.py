from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from threading import Lock, RLock
from typing import List, Optional

from .models import NewTask, TaskEntity
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class Repository(ABC):
    """
    Blocking storage contract for task records.

    Implementations only store data; validation happens before records get here.
    """

    @abstractmethod
    def insert(self, task: NewTask) -> TaskEntity:
        """Persist a new record, assign it an id and return the stored entity."""

    @abstractmethod
    def update(self, task: TaskEntity) -> bool:
        """
        Replace title, is_done and remind_time of the record with `task["id"]`.
        `created_at` is never overwritten. Return False if the id does not exist.
        """

    @abstractmethod
    def delete(self, task_id: int) -> bool:
        """Delete a record by id. Return True if deleted, False if not found."""

    @abstractmethod
    def list_all(self) -> List[TaskEntity]:
        """Return every stored record. Order is unspecified."""


class InMemoryRepository(Repository):
    """
    Thread-safe in-memory repository suitable for testing and default runtime.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: dict[int, TaskEntity] = {}
        self._next_id = 1

    def _allocate_id(self) -> int:
        with self._lock:
            i = self._next_id
            self._next_id += 1
            return i

    def insert(self, task: NewTask) -> TaskEntity:
        with self._lock:
            entity: TaskEntity = {
                "id": self._allocate_id(),
                "title": task["title"],
                "is_done": task["is_done"],
                "created_at": task["created_at"],
                "remind_time": task["remind_time"],
            }
            self._items[entity["id"]] = entity
            return entity.copy()

    def update(self, task: TaskEntity) -> bool:
        with self._lock:
            existing = self._items.get(task["id"])
            if existing is None:
                return False
            updated = existing.copy()
            updated["title"] = task["title"]
            updated["is_done"] = task["is_done"]
            updated["remind_time"] = task["remind_time"]
            self._items[task["id"]] = updated
            return True

    def delete(self, task_id: int) -> bool:
        with self._lock:
            return self._items.pop(task_id, None) is not None

    def list_all(self) -> List[TaskEntity]:
        with self._lock:
            # Return copies to avoid external mutation
            return [t.copy() for t in self._items.values()]


def build_repository(settings: Settings) -> Repository:
    """
    Return a new repository for the configured backend.
    - memory: InMemoryRepository
    - sqlite: SQLiteRepository at settings.sqlite_db_path
    """
    if settings.persistence_backend == "sqlite":
        from .db import SQLiteRepository

        return SQLiteRepository(settings.sqlite_db_path)
    return InMemoryRepository()


_repository: Optional[Repository] = None
_repository_lock = Lock()


# PUBLIC_INTERFACE
def get_repository() -> Repository:
    """
    Return the process-wide repository, creating it on first use.
    """
    global _repository
    with _repository_lock:
        if _repository is None:
            settings = get_settings()
            _repository = build_repository(settings)
            logger.info("Repository ready backend=%s", settings.persistence_backend)
        return _repository
