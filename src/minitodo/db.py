from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, List

from .models import NewTask, TaskEntity
from .repositories import Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Cols:
    table: str = "tasks"
    id: str = "id"
    title: str = "title"
    is_done: str = "is_done"
    created_at: str = "created_at"
    remind_time: str = "remind_time"


_COLS = _Cols()


class SQLiteRepository(Repository):
    """
    Lightweight SQLite repository implementing the Repository interface.

    Each call opens its own connection, so instances can be shared across threads.
    """

    def __init__(self, db_path: str) -> None:
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._db_path = db_path
        self._init_db()

    @contextmanager
    def _conn(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self._db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {_COLS.table} (
                    {_COLS.id} INTEGER PRIMARY KEY AUTOINCREMENT,
                    {_COLS.title} TEXT NOT NULL,
                    {_COLS.is_done} INTEGER NOT NULL DEFAULT 0,
                    {_COLS.created_at} INTEGER NOT NULL,
                    {_COLS.remind_time} TEXT NOT NULL DEFAULT ''
                )
                """
            )
            # Files created before reminders existed lack the column.
            cols = {row["name"] for row in conn.execute(f"PRAGMA table_info({_COLS.table})")}
            if _COLS.remind_time not in cols:
                conn.execute(
                    f"ALTER TABLE {_COLS.table} ADD COLUMN {_COLS.remind_time} TEXT NOT NULL DEFAULT ''"
                )
                logger.info("SQLiteRepository migration: added column %s", _COLS.remind_time)

    def _row_to_entity(self, row: sqlite3.Row) -> TaskEntity:
        return {
            "id": int(row[_COLS.id]),
            "title": str(row[_COLS.title]),
            "is_done": bool(row[_COLS.is_done]),
            "created_at": int(row[_COLS.created_at]),
            "remind_time": str(row[_COLS.remind_time] or ""),
        }

    def insert(self, task: NewTask) -> TaskEntity:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                INSERT OR REPLACE INTO {_COLS.table} ({_COLS.title}, {_COLS.is_done},
                    {_COLS.created_at}, {_COLS.remind_time})
                VALUES (?, ?, ?, ?)
                """,
                (task["title"], 1 if task["is_done"] else 0, task["created_at"], task["remind_time"]),
            )
            new_id = cur.lastrowid
            if new_id is None:
                raise sqlite3.DatabaseError("SQLite did not return lastrowid for tasks insert")
            return {
                "id": int(new_id),
                "title": task["title"],
                "is_done": task["is_done"],
                "created_at": task["created_at"],
                "remind_time": task["remind_time"],
            }

    def update(self, task: TaskEntity) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                f"""
                UPDATE {_COLS.table}
                SET {_COLS.title} = ?, {_COLS.is_done} = ?, {_COLS.remind_time} = ?
                WHERE {_COLS.id} = ?
                """,
                (task["title"], 1 if task["is_done"] else 0, task["remind_time"], task["id"]),
            )
            return cur.rowcount > 0

    def delete(self, task_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(f"DELETE FROM {_COLS.table} WHERE {_COLS.id} = ?", (task_id,))
            return cur.rowcount > 0

    def list_all(self) -> List[TaskEntity]:
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT * FROM {_COLS.table} ORDER BY {_COLS.created_at} DESC"
            ).fetchall()
            return [self._row_to_entity(r) for r in rows]
