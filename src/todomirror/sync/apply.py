"""Apply reconciliation results and imported documents to the stores."""

from dataclasses import dataclass

import structlog

from todomirror.db.models import CATEGORY_COLORS, Category, TaskCreate, TaskStatus
from todomirror.markdown.parser import ParsedLine
from todomirror.markdown.reconcile import Changeset, parent_line_index
from todomirror.sync.ports import CategoryRepo, TaskRepo

log = structlog.get_logger()


@dataclass
class ApplyResult:
    """Counts of what a changeset or import did."""

    created: int = 0
    updated: int = 0
    deleted: int = 0
    detached: int = 0
    skipped: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "detached": self.detached,
            "skipped": self.skipped,
        }


async def find_or_create_category(categories: CategoryRepo, name: str) -> Category:
    """Find a category by name (ignoring case) or create it.

    New categories get the first palette color not already in use.
    """
    existing = await categories.find_by_name(name)
    if existing:
        return existing

    used = {c.color for c in await categories.all()}
    color = next((c for c in CATEGORY_COLORS if c not in used), CATEGORY_COLORS[0])
    category = await categories.create(name, color)
    log.info("category_created", category=name, color=color)
    return category


async def _complete(tasks: TaskRepo, task_ids: list[str], result: ApplyResult) -> None:
    for task_id in task_ids:
        await tasks.update(task_id, {"status": TaskStatus.COMPLETED})
        result.updated += 1


async def apply_changeset(
    tasks: TaskRepo,
    category_id: str,
    changeset: Changeset,
    *,
    resolve_parents: bool = True,
) -> ApplyResult:
    """Apply a changeset: creates, then updates, then deletes.

    Creates go in document order so a nested line can point at the task
    created (or matched) for the line above it. Checked lines are created
    open and completed in a second pass.

    Args:
        tasks: Task store.
        category_id: Category the document belongs to.
        changeset: Output of ``reconcile``.
        resolve_parents: Nest new tasks, and matched tasks whose parent
            line is new, under the task for their parent line. When False,
            new tasks are created at the top level and such matched tasks
            keep the fallback from ``reconcile``.

    Returns:
        ApplyResult with counts.
    """
    result = ApplyResult()
    created_ids: dict[int, str] = {}
    to_complete: list[str] = []

    for entry in changeset.to_create:
        parent_id = entry.parent_id
        if resolve_parents and entry.parent_index is not None:
            parent_id = created_ids.get(entry.parent_index) or changeset.matched.get(
                entry.parent_index
            )

        task = await tasks.create(
            TaskCreate(title=entry.title, category_ids=[category_id], parent_id=parent_id)
        )
        created_ids[entry.index] = task.task_id
        result.created += 1
        if entry.completed:
            to_complete.append(task.task_id)

    await _complete(tasks, to_complete, result)

    for update in changeset.to_update:
        changes = dict(update.changes)
        if resolve_parents and update.parent_index is not None:
            parent_id = created_ids.get(update.parent_index) or changeset.matched.get(
                update.parent_index
            )
            if parent_id is not None:
                changes["parent_id"] = parent_id
        if not changes:
            continue

        try:
            await tasks.update(update.task_id, changes)
            result.updated += 1
        except ValueError as e:
            log.warning(
                "task_update_skipped",
                task_id=update.task_id,
                changes=changes,
                error=str(e),
            )

    for task_id in changeset.to_delete:
        task = await tasks.get(task_id)
        if task is None:
            continue
        others = [c for c in task.category_ids if c != category_id]
        if others:
            await tasks.update(task_id, {"category_ids": others})
            result.detached += 1
        else:
            await tasks.delete(task_id)
            result.deleted += 1

    return result


async def import_lines(
    tasks: TaskRepo,
    category_id: str,
    lines: list[ParsedLine],
    *,
    resolve_parents: bool = True,
    skip_duplicates: bool = False,
) -> ApplyResult:
    """Create tasks for parsed lines.

    Args:
        tasks: Task store.
        category_id: Target category.
        lines: Parsed task lines in document order.
        resolve_parents: Nest tasks under their parent line; otherwise flat.
        skip_duplicates: Skip lines whose title already exists in the
            category. A skipped line still serves as parent for the lines
            nested under it.

    Returns:
        ApplyResult with created and skipped counts.
    """
    result = ApplyResult()
    line_ids: dict[int, str] = {}
    to_complete: list[str] = []

    existing_by_title: dict[str, str] = {}
    if skip_duplicates:
        for task in await tasks.list_by_category(category_id):
            existing_by_title.setdefault(task.title, task.task_id)

    for i, line in enumerate(lines):
        if skip_duplicates and line.title in existing_by_title:
            line_ids[i] = existing_by_title[line.title]
            result.skipped += 1
            continue

        parent_id = None
        if resolve_parents:
            j = parent_line_index(lines, i)
            parent_id = line_ids.get(j) if j is not None else None

        task = await tasks.create(
            TaskCreate(title=line.title, category_ids=[category_id], parent_id=parent_id)
        )
        line_ids[i] = task.task_id
        if skip_duplicates:
            existing_by_title.setdefault(line.title, task.task_id)
        result.created += 1
        if line.completed:
            to_complete.append(task.task_id)

    await _complete(tasks, to_complete, result)
    return result
