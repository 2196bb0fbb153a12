"""Async SQLite database operations for todomirror."""

import contextlib
import json
from datetime import datetime
from pathlib import Path
from typing import Any

import aiosqlite

from todomirror.db.models import Category, Recurrence, Task, TaskStatus

SCHEMA = """
-- Categories table
CREATE TABLE IF NOT EXISTS categories (
    category_id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    color TEXT NOT NULL,
    is_default INTEGER DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now'))
);

-- Tasks table
CREATE TABLE IF NOT EXISTS tasks (
    task_id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'open',
    parent_id TEXT,
    category_ids TEXT NOT NULL DEFAULT '[]',
    description TEXT,
    due_date TEXT,
    recurrence TEXT,
    recurrence_interval INTEGER,
    sort_order REAL NOT NULL DEFAULT 0,
    created_at TEXT DEFAULT (datetime('now')),
    completed_at TEXT
);

-- Key-value metadata (persisted folder handle, etc.)
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT DEFAULT (datetime('now'))
);

-- Indexes
CREATE UNIQUE INDEX IF NOT EXISTS idx_categories_name ON categories(lower(name));
CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id);
CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);
CREATE INDEX IF NOT EXISTS idx_tasks_sort ON tasks(sort_order);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: Path | str):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self.db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Connect to database and initialize schema."""
        self._connection = await aiosqlite.connect(self.db_path)
        self._connection.row_factory = aiosqlite.Row

        await self._connection.execute("PRAGMA journal_mode = WAL")
        await self._connection.execute("PRAGMA synchronous = NORMAL")

        await self._connection.executescript(SCHEMA)
        await self._connection.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    @property
    def conn(self) -> aiosqlite.Connection:
        """Get active connection."""
        if not self._connection:
            raise RuntimeError("Database not connected")
        return self._connection

    # =========================================================================
    # Category CRUD
    # =========================================================================

    async def create_category(self, category: Category) -> Category:
        """Create a new category."""
        await self.conn.execute(
            """
            INSERT INTO categories (category_id, name, color, is_default, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                category.category_id,
                category.name,
                category.color,
                1 if category.is_default else 0,
                category.created_at.isoformat(),
            ),
        )
        await self.conn.commit()
        return category

    async def get_category_by_name(self, name: str) -> Category | None:
        """Get a category by name, ignoring case."""
        async with self.conn.execute(
            "SELECT * FROM categories WHERE lower(name) = lower(?)",
            (name,),
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_category(row)
            return None

    async def get_all_categories(self) -> list[Category]:
        """Get all categories in creation order."""
        async with self.conn.execute(
            "SELECT * FROM categories ORDER BY created_at, rowid"
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_category(row) for row in rows]

    def _row_to_category(self, row: aiosqlite.Row) -> Category:
        """Convert database row to Category model."""
        return Category(
            category_id=row["category_id"],
            name=row["name"],
            color=row["color"],
            is_default=bool(row["is_default"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # =========================================================================
    # Task CRUD
    # =========================================================================

    async def create_task(self, task: Task) -> Task:
        """Create a new task."""
        await self.conn.execute(
            """
            INSERT INTO tasks (
                task_id, title, status, parent_id, category_ids, description,
                due_date, recurrence, recurrence_interval, sort_order,
                created_at, completed_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                task.task_id,
                task.title,
                task.status.value,
                task.parent_id,
                json.dumps(task.category_ids),
                task.description,
                task.due_date,
                task.recurrence.value if task.recurrence else None,
                task.recurrence_interval,
                task.sort_order,
                task.created_at.isoformat(),
                task.completed_at.isoformat() if task.completed_at else None,
            ),
        )
        await self.conn.commit()
        return task

    async def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        async with self.conn.execute(
            "SELECT * FROM tasks WHERE task_id = ?",
            (task_id,),
        ) as cursor:
            row = await cursor.fetchone()
            if row:
                return self._row_to_task(row)
            return None

    async def get_all_tasks(self) -> list[Task]:
        """Get all tasks ordered by sort order."""
        async with self.conn.execute(
            "SELECT * FROM tasks ORDER BY sort_order, created_at"
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_task(row) for row in rows]

    async def get_tasks_by_category(self, category_id: str) -> list[Task]:
        """Get all tasks that belong to a category."""
        async with self.conn.execute(
            """
            SELECT * FROM tasks
            WHERE EXISTS (
                SELECT 1 FROM json_each(tasks.category_ids)
                WHERE json_each.value = ?
            )
            ORDER BY sort_order, created_at
            """,
            (category_id,),
        ) as cursor:
            rows = await cursor.fetchall()
            return [self._row_to_task(row) for row in rows]

    async def get_max_sort_order(self) -> float | None:
        """Get the largest sort order in use, or None when there are no tasks."""
        async with self.conn.execute("SELECT MAX(sort_order) FROM tasks") as cursor:
            row = await cursor.fetchone()
            return row[0] if row else None

    async def update_task(self, task: Task) -> Task:
        """Update an existing task."""
        await self.conn.execute(
            """
            UPDATE tasks SET
                title = ?, status = ?, parent_id = ?, category_ids = ?,
                description = ?, due_date = ?, recurrence = ?,
                recurrence_interval = ?, sort_order = ?, completed_at = ?
            WHERE task_id = ?
            """,
            (
                task.title,
                task.status.value,
                task.parent_id,
                json.dumps(task.category_ids),
                task.description,
                task.due_date,
                task.recurrence.value if task.recurrence else None,
                task.recurrence_interval,
                task.sort_order,
                task.completed_at.isoformat() if task.completed_at else None,
                task.task_id,
            ),
        )
        await self.conn.commit()
        return task

    async def delete_task(self, task_id: str) -> bool:
        """Delete a task."""
        cursor = await self.conn.execute(
            "DELETE FROM tasks WHERE task_id = ?",
            (task_id,),
        )
        await self.conn.commit()
        return cursor.rowcount > 0

    def _row_to_task(self, row: aiosqlite.Row) -> Task:
        """Convert database row to Task model."""
        return Task(
            task_id=row["task_id"],
            title=row["title"],
            status=TaskStatus(row["status"]),
            parent_id=row["parent_id"],
            category_ids=json.loads(row["category_ids"] or "[]"),
            description=row["description"],
            due_date=row["due_date"],
            recurrence=Recurrence(row["recurrence"]) if row["recurrence"] else None,
            recurrence_interval=row["recurrence_interval"],
            sort_order=row["sort_order"],
            created_at=datetime.fromisoformat(row["created_at"]),
            completed_at=(
                datetime.fromisoformat(row["completed_at"])
                if row["completed_at"]
                else None
            ),
        )

    # =========================================================================
    # Metadata
    # =========================================================================

    async def get_meta(self, key: str) -> Any | None:
        """Get a metadata value by key.

        Args:
            key: Metadata key.

        Returns:
            The decoded JSON value, or None if missing or unreadable.
        """
        async with self.conn.execute(
            "SELECT value FROM meta WHERE key = ?",
            (key,),
        ) as cursor:
            row = await cursor.fetchone()
            if not row:
                return None
            with contextlib.suppress(json.JSONDecodeError):
                return json.loads(row["value"])
            return None

    async def set_meta(self, key: str, value: Any) -> None:
        """Store a JSON-serializable metadata value.

        Args:
            key: Metadata key.
            value: Value to store.
        """
        await self.conn.execute(
            """
            INSERT INTO meta (key, value, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (key, json.dumps(value)),
        )
        await self.conn.commit()

    async def delete_meta(self, key: str) -> bool:
        """Delete a metadata value."""
        cursor = await self.conn.execute(
            "DELETE FROM meta WHERE key = ?",
            (key,),
        )
        await self.conn.commit()
        return cursor.rowcount > 0
