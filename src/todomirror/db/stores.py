"""Record stores with change subscriptions.

Thin layer over :class:`Database` that enforces task invariants
(``completed_at`` tracks status, parent chains stay acyclic, category
names stay unique) and notifies listeners after every mutation.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

from todomirror.db.database import Database
from todomirror.db.models import Category, Task, TaskCreate, TaskStatus
from todomirror import hierarchy

log = structlog.get_logger()

Listener = Callable[[], None]

UPDATABLE_TASK_FIELDS = frozenset(
    {
        "title",
        "status",
        "parent_id",
        "category_ids",
        "description",
        "due_date",
        "recurrence",
        "recurrence_interval",
        "sort_order",
        "completed_at",
    }
)


class _Observable:
    """Listener registry shared by the stores."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener called after each mutation.

        Returns:
            Callable that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                log.exception("store_listener_failed", store=type(self).__name__)


class TaskStore(_Observable):
    """Task records backed by the database."""

    def __init__(self, db: Database):
        super().__init__()
        self.db = db

    async def all(self) -> list[Task]:
        """Get every task."""
        return await self.db.get_all_tasks()

    async def list_by_category(self, category_id: str) -> list[Task]:
        """Get the tasks that belong to a category."""
        return await self.db.get_tasks_by_category(category_id)

    async def get(self, task_id: str) -> Task | None:
        """Get a task by ID."""
        return await self.db.get_task(task_id)

    async def create(self, data: TaskCreate) -> Task:
        """Create an open task at the end of the sort order.

        Args:
            data: Creation input.

        Returns:
            The created task.
        """
        max_order = await self.db.get_max_sort_order()
        task = Task(
            **data.model_dump(),
            status=TaskStatus.OPEN,
            sort_order=0 if max_order is None else max_order + 1,
        )
        await self.db.create_task(task)
        self._notify()
        return task

    async def update(self, task_id: str, changes: dict[str, Any]) -> Task:
        """Apply a partial update to a task.

        A status change sets or clears ``completed_at`` unless the caller
        provides it.

        Args:
            task_id: Task to update.
            changes: Field name to new value.

        Returns:
            The updated task.

        Raises:
            ValueError: Unknown task or field, or the new parent would
                create a cycle.
        """
        unknown = set(changes) - UPDATABLE_TASK_FIELDS
        if unknown:
            raise ValueError(f"Cannot update task fields: {sorted(unknown)}")

        task = await self.db.get_task(task_id)
        if not task:
            raise ValueError(f"Task '{task_id}' not found")

        changes = dict(changes)
        if "parent_id" in changes:
            if changes["parent_id"] == task_id:
                raise ValueError(f"Task '{task_id}' cannot be its own parent")
            tasks = await self.db.get_all_tasks()
            if hierarchy.would_create_cycle(tasks, task_id, changes["parent_id"]):
                raise ValueError(
                    f"Parent '{changes['parent_id']}' would create a cycle for '{task_id}'"
                )

        if "status" in changes and "completed_at" not in changes:
            status = TaskStatus(changes["status"])
            changes["status"] = status
            if status == TaskStatus.COMPLETED:
                if task.status != TaskStatus.COMPLETED or task.completed_at is None:
                    changes["completed_at"] = datetime.now(timezone.utc)
            else:
                changes["completed_at"] = None

        updated = Task.model_validate({**task.model_dump(), **changes})
        await self.db.update_task(updated)
        self._notify()
        return updated

    async def delete(self, task_id: str) -> bool:
        """Delete a task. Its children become roots (orphan-as-root)."""
        deleted = await self.db.delete_task(task_id)
        if deleted:
            self._notify()
        return deleted


class CategoryStore(_Observable):
    """Category records backed by the database."""

    def __init__(self, db: Database):
        super().__init__()
        self.db = db

    async def all(self) -> list[Category]:
        """Get every category."""
        return await self.db.get_all_categories()

    async def find_by_name(self, name: str) -> Category | None:
        """Find a category by name, ignoring case."""
        return await self.db.get_category_by_name(name)

    async def create(self, name: str, color: str, is_default: bool = False) -> Category:
        """Create a category.

        Raises:
            ValueError: A category with the same name (ignoring case) exists.
        """
        if await self.db.get_category_by_name(name):
            raise ValueError(f"Category '{name}' already exists")

        category = Category(name=name, color=color, is_default=is_default)
        await self.db.create_category(category)
        self._notify()
        return category


class MetaStore:
    """Durable key-value store used to remember the sync folder."""

    def __init__(self, db: Database):
        self.db = db

    async def put(self, key: str, value: Any) -> None:
        """Store a value."""
        await self.db.set_meta(key, value)

    async def get(self, key: str) -> Any | None:
        """Load a value, or None if missing."""
        return await self.db.get_meta(key)

    async def delete(self, key: str) -> None:
        """Remove a value."""
        await self.db.delete_meta(key)
