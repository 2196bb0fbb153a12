"""Database layer for todomirror."""

from todomirror.db.database import Database
from todomirror.db.models import (
    CATEGORY_COLORS,
    Category,
    Recurrence,
    Task,
    TaskCreate,
    TaskStatus,
)
from todomirror.db.stores import CategoryStore, MetaStore, TaskStore

__all__ = [
    "CATEGORY_COLORS",
    "Category",
    "CategoryStore",
    "Database",
    "MetaStore",
    "Recurrence",
    "Task",
    "TaskCreate",
    "TaskStatus",
    "TaskStore",
]
