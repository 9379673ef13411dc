"""Action persistence: the store interface and its SQLite document-table backend."""

from __future__ import annotations

import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any

import pydantic
import structlog

from .exceptions import ActionNotFoundError, ConflictError, PersistenceError
from .filters import ActionFilter, column_timestamp
from .models import Action, ActionStatus

logger = structlog.get_logger()

_SCHEMA = """
CREATE TABLE IF NOT EXISTS actions (
    id TEXT PRIMARY KEY,
    type TEXT NOT NULL,
    category TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Pending',
    priority TEXT NOT NULL DEFAULT 'Medium',
    assigned_to TEXT,
    created_by TEXT NOT NULL,
    is_recurring INTEGER NOT NULL DEFAULT 0,
    scheduled_for TEXT,
    next_run_at TEXT,
    created_at TEXT NOT NULL,
    version INTEGER NOT NULL,
    document TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_actions_status ON actions(status);
CREATE INDEX IF NOT EXISTS idx_actions_category ON actions(category);
CREATE INDEX IF NOT EXISTS idx_actions_priority ON actions(priority);
CREATE INDEX IF NOT EXISTS idx_actions_assigned_to ON actions(assigned_to);
CREATE INDEX IF NOT EXISTS idx_actions_scheduled_for ON actions(scheduled_for);
CREATE INDEX IF NOT EXISTS idx_actions_created_at ON actions(created_at DESC);
CREATE INDEX IF NOT EXISTS idx_actions_status_priority ON actions(status, priority);
CREATE INDEX IF NOT EXISTS idx_actions_assignee_status ON actions(assigned_to, status);
"""

_ROW_FIELDS = (
    "type, category, status, priority, assigned_to, created_by, "
    "is_recurring, scheduled_for, next_run_at, created_at, version, document"
)


def _ts(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return column_timestamp(dt)


class ActionStore(ABC):
    """Persistence operations the action service depends on."""

    @abstractmethod
    def load(self, action_id: str) -> Action:
        """Return the stored action or raise ActionNotFoundError."""

    @abstractmethod
    def save(self, action: Action) -> Action:
        """Write the action if its version still matches the stored one.

        An action with version 0 is inserted. Returns the stored copy with its
        version bumped; raises ConflictError if another write got there first.
        """

    @abstractmethod
    def query(self, action_filter: ActionFilter, now: datetime | None = None) -> list[Action]:
        ...

    @abstractmethod
    def query_by_status(self, status: ActionStatus) -> list[Action]:
        ...

    @abstractmethod
    def query_overdue(self, now: datetime) -> list[Action]:
        ...

    @abstractmethod
    def query_assigned_to(self, user_id: str, status: ActionStatus | None = None) -> list[Action]:
        ...

    @abstractmethod
    def query_due_recurring(self, now: datetime) -> list[Action]:
        """Completed recurring actions whose next run is at or before ``now``."""

    def close(self) -> None:
        pass


class SqliteActionStore(ActionStore):
    """Actions kept as JSON documents, with their queried fields mirrored into
    indexed columns."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(_SCHEMA)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot open action store at {db_path}: {exc}") from exc

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def load(self, action_id: str) -> Action:
        rows = self._select("SELECT document FROM actions WHERE id = ?", (action_id,))
        if not rows:
            raise ActionNotFoundError(action_id)
        return rows[0]

    def save(self, action: Action) -> Action:
        expected = action.version
        stored = action.model_copy(update={"version": expected + 1})
        row = self._row_values(stored)
        with self._lock:
            try:
                if expected == 0:
                    self._conn.execute(
                        f"INSERT INTO actions (id, {_ROW_FIELDS}) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (stored.id, *row),
                    )
                    self._conn.commit()
                    return stored

                cursor = self._conn.execute(
                    """UPDATE actions SET
                       type = ?, category = ?, status = ?, priority = ?, assigned_to = ?,
                       created_by = ?, is_recurring = ?, scheduled_for = ?, next_run_at = ?,
                       created_at = ?, version = ?, document = ?
                       WHERE id = ? AND version = ?""",
                    (*row, stored.id, expected),
                )
                self._conn.commit()
                if cursor.rowcount == 1:
                    return stored
                exists = self._conn.execute(
                    "SELECT 1 FROM actions WHERE id = ?", (stored.id,)
                ).fetchone()
            except sqlite3.IntegrityError as exc:
                self._conn.rollback()
                raise ConflictError(action.id, expected) from exc
            except sqlite3.Error as exc:
                raise PersistenceError(f"Failed to save action {action.id}: {exc}") from exc

        if exists is None:
            raise ActionNotFoundError(action.id)
        logger.debug("action_save_conflict", action_id=action.id, expected_version=expected)
        raise ConflictError(action.id, expected)

    def query(self, action_filter: ActionFilter, now: datetime | None = None) -> list[Action]:
        where, params = action_filter.to_sql(now)
        return self._select(
            f"SELECT document FROM actions WHERE {where} ORDER BY created_at DESC", params
        )

    def query_by_status(self, status: ActionStatus) -> list[Action]:
        return self.query(ActionFilter(status=status))

    def query_overdue(self, now: datetime) -> list[Action]:
        where, params = ActionFilter(overdue=True).to_sql(now)
        return self._select(
            f"SELECT document FROM actions WHERE {where} ORDER BY scheduled_for", params
        )

    def query_assigned_to(self, user_id: str, status: ActionStatus | None = None) -> list[Action]:
        where, params = ActionFilter(assigned_to=user_id, status=status).to_sql()
        return self._select(
            f"SELECT document FROM actions WHERE {where} "
            "ORDER BY scheduled_for IS NULL, scheduled_for, created_at DESC",
            params,
        )

    def query_due_recurring(self, now: datetime) -> list[Action]:
        return self._select(
            """SELECT document FROM actions
               WHERE status = ? AND is_recurring = 1
                 AND next_run_at IS NOT NULL AND next_run_at <= ?
               ORDER BY next_run_at""",
            (ActionStatus.COMPLETED.value, column_timestamp(now)),
        )

    def _select(self, sql: str, params: Any) -> list[Action]:
        with self._lock:
            try:
                rows = self._conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise PersistenceError(f"Action query failed: {exc}") from exc
        return [self._row_to_action(r) for r in rows]

    @staticmethod
    def _row_values(action: Action) -> tuple[Any, ...]:
        return (
            action.type.value,
            action.category.value,
            action.status.value,
            action.priority.value,
            action.assigned_to,
            action.created_by,
            int(action.is_recurring),
            _ts(action.scheduled_for),
            _ts(action.next_run_at),
            _ts(action.created_at),
            action.version,
            action.model_dump_json(),
        )

    @staticmethod
    def _row_to_action(row: sqlite3.Row) -> Action:
        try:
            return Action.model_validate_json(row["document"])
        except pydantic.ValidationError as exc:
            raise PersistenceError(f"Stored action document is invalid: {exc}") from exc
