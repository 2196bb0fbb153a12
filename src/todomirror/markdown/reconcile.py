"""Reconcile a parsed document against the stored tasks of its category.

Plain-text documents carry no record ids, so lines are matched to tasks
heuristically, in four phases:

1. Positional: line ``i`` matches hierarchy entry ``i`` when the titles agree.
2. Title: remaining lines match the first remaining task with the same title.
3. Create: lines still unmatched become new tasks.
4. Delete: tasks still unmatched are removed.

Matching is greedy; the first acceptable match wins, so duplicate titles
resolve by position.
"""

from dataclasses import dataclass, field
from typing import Any

from todomirror.db.models import Task, TaskStatus
from todomirror.hierarchy import build_hierarchy
from todomirror.markdown.parser import ParsedLine

# Marker for a parent that cannot be determined from matched lines.
_UNRESOLVED = object()


@dataclass(frozen=True)
class CreateEntry:
    """A task to create for an unmatched line.

    ``parent_id`` is only ever None here. For nested lines ``parent_index``
    points at the line that should become the parent once it has an id.
    """

    title: str
    completed: bool
    parent_id: str | None
    depth: int
    index: int
    parent_index: int | None = None


@dataclass(frozen=True)
class UpdateEntry:
    """Field changes for a matched task (``status`` and/or ``parent_id``).

    ``parent_index`` is set when the line's parent line was unmatched when
    the task was matched. ``changes`` then holds the fallback, and the
    parent can be resolved from that line's id at apply time.
    """

    task_id: str
    changes: dict[str, Any]
    parent_index: int | None = None


@dataclass
class Changeset:
    """Create/update/delete instructions for one category."""

    to_create: list[CreateEntry] = field(default_factory=list)
    to_update: list[UpdateEntry] = field(default_factory=list)
    to_delete: list[str] = field(default_factory=list)
    # Parsed line index -> id of the existing task it matched.
    matched: dict[int, str] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """True when nothing needs to change."""
        return not (self.to_create or self.to_update or self.to_delete)


def _status_for(line: ParsedLine) -> TaskStatus:
    return TaskStatus.COMPLETED if line.completed else TaskStatus.OPEN


def parent_line_index(parsed: list[ParsedLine], index: int) -> int | None:
    """Index of the nearest preceding line one level shallower, if any."""
    depth = parsed[index].depth
    if depth == 0:
        return None
    for j in range(index - 1, -1, -1):
        if parsed[j].depth == depth - 1:
            return j
    return None


def _positional_parent(
    parsed: list[ParsedLine], index: int, matched: dict[int, str]
) -> tuple[str | None, int | None]:
    """Parent for a positionally matched line, plus a deferred line index.

    When the parent line is not matched (yet) the task falls back to the
    top level, and the parent line index is returned so the parent can be
    resolved once that line has an id.
    """
    j = parent_line_index(parsed, index)
    if j is None:
        return None, None
    if j in matched:
        return matched[j], None
    return None, j


def _title_parent(
    parsed: list[ParsedLine], index: int, matched: dict[int, str]
) -> tuple[Any, int | None]:
    """Parent for a title-matched line (or ``_UNRESOLVED``), plus deferred index."""
    if parsed[index].depth == 0:
        return None, None
    j = parent_line_index(parsed, index)
    if j is not None and j in matched:
        return matched[j], None
    return _UNRESOLVED, j


def _changes_for(
    line: ParsedLine, task: Task, parent: Any, known_ids: set[str]
) -> dict[str, Any]:
    changes: dict[str, Any] = {}
    status = _status_for(line)
    if status != task.status:
        changes["status"] = status
    if parent is _UNRESOLVED:
        return changes
    # A top-level line for an orphan keeps its dangling parent.
    if parent is None and task.parent_id not in known_ids:
        return changes
    if parent != task.parent_id:
        changes["parent_id"] = parent
    return changes


def reconcile(parsed: list[ParsedLine], existing: list[Task]) -> Changeset:
    """Compute the changes that make ``existing`` match ``parsed``.

    Args:
        parsed: Task lines of a freshly parsed document.
        existing: Current tasks of the document's category.

    Returns:
        Changeset with creates, updates and deletes.
    """
    changeset = Changeset()
    hierarchy = build_hierarchy(existing)
    matched = changeset.matched
    matched_task_ids: set[str] = set()
    known_ids = {t.task_id for t in existing}

    # Phase 1: positional
    for i in range(min(len(parsed), len(hierarchy))):
        task = hierarchy[i].task
        if parsed[i].title != task.title:
            continue
        matched[i] = task.task_id
        matched_task_ids.add(task.task_id)

        parent, deferred = _positional_parent(parsed, i, matched)
        changes = _changes_for(parsed[i], task, parent, known_ids)
        if changes or deferred is not None:
            changeset.to_update.append(UpdateEntry(task.task_id, changes, deferred))

    # Phase 2: title
    for i, line in enumerate(parsed):
        if i in matched:
            continue
        candidate = next(
            (
                entry.task
                for entry in hierarchy
                if entry.task.task_id not in matched_task_ids
                and entry.task.title == line.title
            ),
            None,
        )
        if candidate is None:
            continue
        matched[i] = candidate.task_id
        matched_task_ids.add(candidate.task_id)

        parent, deferred = _title_parent(parsed, i, matched)
        changes = _changes_for(line, candidate, parent, known_ids)
        if changes or deferred is not None:
            changeset.to_update.append(
                UpdateEntry(candidate.task_id, changes, deferred)
            )

    # Phase 3: create
    for i, line in enumerate(parsed):
        if i in matched:
            continue
        changeset.to_create.append(
            CreateEntry(
                title=line.title,
                completed=line.completed,
                parent_id=None,
                depth=line.depth,
                index=i,
                parent_index=parent_line_index(parsed, i),
            )
        )

    # Phase 4: delete
    for entry in hierarchy:
        if entry.task.task_id not in matched_task_ids:
            changeset.to_delete.append(entry.task.task_id)

    return changeset
