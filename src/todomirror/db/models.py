"""Pydantic models for todomirror entities."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def _utc_now() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate an opaque record identifier."""
    return uuid.uuid4().hex


# Palette for categories created by import; first unused color wins.
CATEGORY_COLORS: list[str] = [
    "#3b82f6",
    "#ef4444",
    "#22c55e",
    "#f59e0b",
    "#8b5cf6",
    "#ec4899",
    "#14b8a6",
    "#f97316",
    "#64748b",
    "#84cc16",
]


class TaskStatus(str, Enum):
    """Task status enumeration."""

    OPEN = "open"
    COMPLETED = "completed"


class Recurrence(str, Enum):
    """Recurrence rule for repeating tasks."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class Category(BaseModel):
    """A named partition of tasks, mirrored to one markdown document."""

    category_id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=50)
    color: str = CATEGORY_COLORS[0]
    is_default: bool = False
    created_at: datetime = Field(default_factory=_utc_now)


class Task(BaseModel):
    """A task, optionally nested under another task."""

    task_id: str = Field(default_factory=new_id)
    title: str = Field(..., min_length=1)
    status: TaskStatus = TaskStatus.OPEN
    parent_id: str | None = None
    category_ids: list[str] = Field(default_factory=list)
    description: str | None = None
    due_date: str | None = None
    recurrence: Recurrence | None = None
    recurrence_interval: int | None = Field(default=None, gt=0)
    sort_order: float = 0
    created_at: datetime = Field(default_factory=_utc_now)
    completed_at: datetime | None = None


class TaskCreate(BaseModel):
    """Input for creating a task. Status always starts open."""

    title: str = Field(..., min_length=1)
    category_ids: list[str] = Field(default_factory=list)
    parent_id: str | None = None
    description: str | None = None
    due_date: str | None = None
    recurrence: Recurrence | None = None
    recurrence_interval: int | None = Field(default=None, gt=0)
