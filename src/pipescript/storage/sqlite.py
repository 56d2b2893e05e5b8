"""SQLite storage for the history of pipeline runs and their tasks."""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from pipescript.common.formatting import utc_now

LOGGER = logging.getLogger(__name__)

DEFAULT_DB_NAME = "history.db"

FINAL_STATUSES = frozenset({"success", "failure", "skipped"})

SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    script_path TEXT NOT NULL,
    selection TEXT NOT NULL DEFAULT 'all.all',
    status TEXT NOT NULL,
    start_time TEXT NOT NULL,
    end_time TEXT
);

CREATE TABLE IF NOT EXISTS tasks (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id INTEGER NOT NULL REFERENCES runs(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    kind TEXT NOT NULL,
    status TEXT NOT NULL,
    start_time TEXT,
    end_time TEXT,
    log TEXT
);

CREATE INDEX IF NOT EXISTS idx_runs_start ON runs (start_time DESC);
CREATE INDEX IF NOT EXISTS idx_tasks_run ON tasks (run_id);
"""


@dataclass(frozen=True)
class RunRecord:
    """One invocation of a script."""

    id: int
    script_path: str
    selection: str
    status: str
    start_time: Optional[str]
    end_time: Optional[str]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "RunRecord":
        return cls(**{key: row[key] for key in row.keys()})


@dataclass(frozen=True)
class TaskRecord:
    """A ``step`` or ``parallel`` block recorded for a run, with its output."""

    id: int
    run_id: int
    name: str
    kind: str
    status: str
    start_time: Optional[str]
    end_time: Optional[str]
    log: Optional[str]

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> "TaskRecord":
        return cls(**{key: row[key] for key in row.keys()})


class HistoryStore:
    """Run history kept in a SQLite file.

    A connection is opened per call, so parallel tasks can record their
    results from worker threads.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA)
        LOGGER.debug("Using history database %s", self.db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _insert(self, sql: str, params: tuple) -> int:
        with self._connect() as conn:
            return int(conn.execute(sql, params).lastrowid)

    def _fetch(self, sql: str, params: tuple) -> List[sqlite3.Row]:
        with self._connect() as conn:
            return conn.execute(sql, params).fetchall()

    # Runs ---------------------------------------------------------------

    def create_run(
        self,
        script_path: str,
        selection: str = "all.all",
        status: str = "running",
        start_time: Optional[str] = None,
    ) -> int:
        return self._insert(
            "INSERT INTO runs (script_path, selection, status, start_time) VALUES (?, ?, ?, ?)",
            (script_path, selection, status, start_time or utc_now()),
        )

    def update_run_status(self, run_id: int, status: str, end_time: Optional[str] = None) -> None:
        if end_time is None and status in FINAL_STATUSES:
            end_time = utc_now()
        with self._connect() as conn:
            conn.execute(
                "UPDATE runs SET status = ?, end_time = COALESCE(?, end_time) WHERE id = ?",
                (status, end_time, run_id),
            )

    def get_run(self, run_id: int) -> Optional[RunRecord]:
        rows = self._fetch("SELECT * FROM runs WHERE id = ?", (run_id,))
        return RunRecord.from_row(rows[0]) if rows else None

    def get_recent_runs(self, limit: int = 10) -> List[RunRecord]:
        if limit <= 0:
            return []
        rows = self._fetch(
            "SELECT * FROM runs ORDER BY start_time DESC, id DESC LIMIT ?",
            (limit,),
        )
        return [RunRecord.from_row(row) for row in rows]

    # Tasks --------------------------------------------------------------

    def create_task(
        self,
        run_id: int,
        name: str,
        kind: str,
        status: str = "pending",
        start_time: Optional[str] = None,
    ) -> int:
        return self._insert(
            "INSERT INTO tasks (run_id, name, kind, status, start_time) VALUES (?, ?, ?, ?, ?)",
            (run_id, name, kind, status, start_time),
        )

    def update_task_status(
        self,
        task_id: int,
        status: str,
        end_time: Optional[str] = None,
        start_time: Optional[str] = None,
    ) -> None:
        """Set the status; ``success`` and ``failure`` also stamp the end time."""

        if end_time is None and status in {"success", "failure"}:
            end_time = utc_now()
        with self._connect() as conn:
            conn.execute(
                """
                UPDATE tasks
                   SET status = ?,
                       start_time = COALESCE(?, start_time),
                       end_time = COALESCE(?, end_time)
                 WHERE id = ?
                """,
                (status, start_time, end_time, task_id),
            )

    def set_task_log(self, task_id: int, log: str) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE tasks SET log = ? WHERE id = ?", (log, task_id))

    def get_tasks_for_run(self, run_id: int) -> List[TaskRecord]:
        rows = self._fetch("SELECT * FROM tasks WHERE run_id = ? ORDER BY id", (run_id,))
        return [TaskRecord.from_row(row) for row in rows]

    def get_task(self, task_id: int) -> Optional[TaskRecord]:
        rows = self._fetch("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return TaskRecord.from_row(rows[0]) if rows else None


__all__ = [
    "DEFAULT_DB_NAME",
    "FINAL_STATUSES",
    "HistoryStore",
    "RunRecord",
    "TaskRecord",
]
