"""Task hierarchy helpers.

Turns a flat list of tasks with parent pointers into a depth-annotated,
pre-order sequence. Used for markdown export and for reconciliation.
"""

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass

from todomirror.db.models import Task


@dataclass(frozen=True)
class HierarchyEntry:
    """A task and its nesting depth (0 = top level)."""

    task: Task
    depth: int


def _sorted(tasks: Iterable[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: t.sort_order)


def build_hierarchy(tasks: list[Task]) -> list[HierarchyEntry]:
    """Build the depth-first order of a task list.

    Roots are tasks without a parent or whose parent is not in ``tasks``
    (orphans are treated as roots). Siblings are ordered by ``sort_order``;
    ties keep input order. Each task is followed by all of its descendants
    before its next sibling.

    Tasks that only reach each other through a parent cycle have no root
    and are left out.

    Args:
        tasks: Flat task list.

    Returns:
        Depth-annotated tasks in pre-order.
    """
    ids = {t.task_id for t in tasks}
    children: dict[str, list[Task]] = defaultdict(list)
    roots: list[Task] = []

    for task in tasks:
        if task.parent_id and task.parent_id in ids:
            children[task.parent_id].append(task)
        else:
            roots.append(task)

    result: list[HierarchyEntry] = []

    def add_with_children(task: Task, depth: int) -> None:
        result.append(HierarchyEntry(task=task, depth=depth))
        for child in _sorted(children.get(task.task_id, [])):
            add_with_children(child, depth + 1)

    for root in _sorted(roots):
        add_with_children(root, 0)

    return result


def would_create_cycle(tasks: list[Task], task_id: str, parent_id: str | None) -> bool:
    """Check whether making ``parent_id`` the parent of ``task_id`` forms a cycle.

    Args:
        tasks: Current tasks.
        task_id: Task being re-parented.
        parent_id: Proposed parent, or None for a root.

    Returns:
        True if the proposed parent chain leads back to ``task_id``.
    """
    if parent_id is None:
        return False

    parents = {t.task_id: t.parent_id for t in tasks}
    seen: set[str] = set()
    current: str | None = parent_id
    while current is not None:
        if current == task_id:
            return True
        if current in seen:
            # Pre-existing cycle above the new parent; it does not include task_id.
            return False
        seen.add(current)
        current = parents.get(current)
    return False
