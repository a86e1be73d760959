"""SQLite storage for scheduled tasks."""

from __future__ import annotations

import logging
import os
import sqlite3
import threading
from dataclasses import asdict, dataclass
from typing import Any

log = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS scheduler (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date CHAR(8) NOT NULL DEFAULT '',
    title VARCHAR(255) NOT NULL,
    comment TEXT,
    repeat VARCHAR(128)
);

CREATE INDEX IF NOT EXISTS idx_date ON scheduler(date);
"""

_COLUMNS = "id, date, title, comment, repeat"


class TaskNotFound(LookupError):
    """Raised when no task has the requested id."""

    def __init__(self, message: str = "task not found") -> None:
        super().__init__(message)


@dataclass
class Task:
    """A scheduled task; every field is text, as sent over the API."""

    id: str = ""
    date: str = ""
    title: str = ""
    comment: str = ""
    repeat: str = ""

    @classmethod
    def _from_row(cls, row: tuple[Any, ...]) -> Task:
        return cls(*("" if value is None else str(value) for value in row))

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


class TaskStore:
    """A connection to the task database."""

    def __init__(self, path: str | os.PathLike[str]) -> None:
        path = os.fspath(path)
        if path != ":memory:" and not os.path.exists(path):
            log.info("database %s not found, creating it", path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
        try:
            self._conn.executescript(SCHEMA)
        except sqlite3.Error:
            self._conn.close()
            raise

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> TaskStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _execute(self, query: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        with self._lock:
            return self._conn.execute(query, params)

    def add_task(self, task: Task) -> int:
        cursor = self._execute(
            "INSERT INTO scheduler (date, title, comment, repeat) VALUES (?, ?, ?, ?)",
            (task.date, task.title, task.comment, task.repeat),
        )
        return cursor.lastrowid

    def update_task(self, task: Task) -> None:
        cursor = self._execute(
            "UPDATE scheduler SET date = ?, title = ?, comment = ?, repeat = ? WHERE id = ?",
            (task.date, task.title, task.comment, task.repeat, task.id),
        )
        if cursor.rowcount == 0:
            raise TaskNotFound()

    def get_task(self, task_id: str | int) -> Task:
        log.debug("get task %s", task_id)
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM scheduler WHERE id = ?", (task_id,)
            ).fetchone()
        if row is None:
            raise TaskNotFound()
        return Task._from_row(row)

    def delete_task(self, task_id: str | int) -> None:
        cursor = self._execute("DELETE FROM scheduler WHERE id = ?", (task_id,))
        if cursor.rowcount == 0:
            raise TaskNotFound()

    def update_date(self, new_date: str, task_id: str | int) -> None:
        self._execute("UPDATE scheduler SET date = ? WHERE id = ?", (new_date, task_id))

    def tasks(self, limit: int = 50, search: str = "", date_search: str = "") -> list[Task]:
        """Tasks ordered by date, filtered by a text search and/or an exact date."""
        query = f"SELECT {_COLUMNS} FROM scheduler"
        params: list[Any] = []
        if search:
            query += " WHERE title LIKE ? OR comment LIKE ?"
            pattern = f"%{search}%"
            params += [pattern, pattern]
        if date_search:
            query += " AND date = ?" if search else " WHERE date = ?"
            params.append(date_search)
        query += " ORDER BY date LIMIT ?"
        params.append(limit)
        with self._lock:
            rows = self._conn.execute(query, params).fetchall()
        return [Task._from_row(row) for row in rows]