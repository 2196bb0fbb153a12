"""Render a category's tasks as checkbox markdown."""

import re

from todomirror.db.models import Task, TaskStatus
from todomirror.hierarchy import build_hierarchy

_UNSAFE_FILENAME_RE = re.compile(r"[/\\]")


def category_filename(name: str) -> str:
    """File name of a category's document inside the sync folder."""
    return f"{_UNSAFE_FILENAME_RE.sub('-', name)}.md"


def tasks_to_markdown(category_name: str, tasks: list[Task]) -> str:
    """Convert tasks to a checkbox markdown document.

    Args:
        category_name: Heading of the document.
        tasks: Tasks of the category, in any order.

    Returns:
        ``# name`` followed by a blank line and one ``- [ ]``/``- [x]`` line
        per task in hierarchy order, indented two spaces per level.
    """
    lines = [f"# {category_name}"]

    if not tasks:
        return "\n".join(lines) + "\n"

    lines.append("")

    for entry in build_hierarchy(tasks):
        indent = "  " * entry.depth
        checkbox = "[x]" if entry.task.status == TaskStatus.COMPLETED else "[ ]"
        lines.append(f"{indent}- {checkbox} {entry.task.title}")

    return "\n".join(lines) + "\n"
