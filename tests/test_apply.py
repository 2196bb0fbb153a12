"""Tests for applying changesets and importing parsed lines."""

import pytest

from todomirror.db import (
    CATEGORY_COLORS,
    Category,
    CategoryStore,
    Database,
    TaskCreate,
    TaskStatus,
    TaskStore,
)
from todomirror.hierarchy import build_hierarchy
from todomirror.markdown import (
    Changeset,
    CreateEntry,
    UpdateEntry,
    parse_markdown,
    reconcile,
)
from todomirror.sync import apply_changeset, find_or_create_category, import_lines


@pytest.fixture
async def db():
    """Create an in-memory database for testing."""
    database = Database(":memory:")
    await database.connect()
    yield database
    await database.close()


@pytest.fixture
def tasks(db: Database) -> TaskStore:
    return TaskStore(db)


@pytest.fixture
def categories(db: Database) -> CategoryStore:
    return CategoryStore(db)


@pytest.fixture
async def work(categories: CategoryStore) -> Category:
    return await categories.create("Work", CATEGORY_COLORS[0])


async def outline(tasks: TaskStore, category: Category) -> list[tuple[str, int, bool]]:
    """Titles, depths and completion of a category in hierarchy order."""
    entries = build_hierarchy(await tasks.list_by_category(category.category_id))
    return [
        (e.task.title, e.depth, e.task.status == TaskStatus.COMPLETED) for e in entries
    ]


class TestApplyChangeset:
    """Test apply_changeset."""

    async def test_document_edit_round_trip(self, tasks: TaskStore, work: Category):
        """Test that applying a reconciled document reproduces it."""
        a = await tasks.create(TaskCreate(title="A", category_ids=[work.category_id]))
        await tasks.create(TaskCreate(title="B", category_ids=[work.category_id]))

        content = "# Work\n\n- [x] A\n  - [ ] A1\n    - [x] A1a\n- [ ] C\n"
        parsed = parse_markdown(content).lines
        changeset = reconcile(parsed, await tasks.list_by_category(work.category_id))
        result = await apply_changeset(tasks, work.category_id, changeset)

        assert await outline(tasks, work) == [
            ("A", 0, True),
            ("A1", 1, False),
            ("A1a", 2, True),
            ("C", 0, False),
        ]
        assert (await tasks.get(a.task_id)).status == TaskStatus.COMPLETED
        assert result.created == 3
        assert result.deleted == 1

    async def test_created_tasks_flat_without_parent_resolution(
        self, tasks: TaskStore, work: Category
    ):
        """Test the flat creation mode."""
        parsed = parse_markdown("- [ ] A\n  - [ ] B\n").lines
        changeset = reconcile(parsed, [])
        await apply_changeset(tasks, work.category_id, changeset, resolve_parents=False)

        assert await outline(tasks, work) == [("A", 0, False), ("B", 0, False)]

    async def test_new_child_of_matched_line(self, tasks: TaskStore, work: Category):
        """Test that a new nested line goes under the matched task above it."""
        parent = await tasks.create(TaskCreate(title="Parent", category_ids=[work.category_id]))
        changeset = reconcile(
            parse_markdown("- [ ] Parent\n  - [ ] Child\n").lines,
            await tasks.list_by_category(work.category_id),
        )
        await apply_changeset(tasks, work.category_id, changeset)

        children = [
            t for t in await tasks.list_by_category(work.category_id) if t.title == "Child"
        ]
        assert children[0].parent_id == parent.task_id

    async def test_renamed_parent_keeps_children(self, tasks: TaskStore, work: Category):
        """Test that children follow a renamed parent line."""
        report = await tasks.create(
            TaskCreate(title="Write report", category_ids=[work.category_id])
        )
        numbers = await tasks.create(
            TaskCreate(
                title="Collect numbers",
                category_ids=[work.category_id],
                parent_id=report.task_id,
            )
        )
        changeset = reconcile(
            parse_markdown("- [ ] Write final report\n  - [ ] Collect numbers\n").lines,
            await tasks.list_by_category(work.category_id),
        )
        result = await apply_changeset(tasks, work.category_id, changeset)

        assert await outline(tasks, work) == [
            ("Write final report", 0, False),
            ("Collect numbers", 1, False),
        ]
        assert await tasks.get(report.task_id) is None
        assert (await tasks.get(numbers.task_id)).parent_id != report.task_id
        assert (result.created, result.updated, result.deleted) == (1, 1, 1)

    async def test_renamed_parent_flat_without_parent_resolution(
        self, tasks: TaskStore, work: Category
    ):
        """Test that the flat mode moves children of a renamed line to the top."""
        report = await tasks.create(
            TaskCreate(title="Write report", category_ids=[work.category_id])
        )
        await tasks.create(
            TaskCreate(
                title="Collect numbers",
                category_ids=[work.category_id],
                parent_id=report.task_id,
            )
        )
        changeset = reconcile(
            parse_markdown("- [ ] Write final report\n  - [ ] Collect numbers\n").lines,
            await tasks.list_by_category(work.category_id),
        )
        await apply_changeset(tasks, work.category_id, changeset, resolve_parents=False)

        assert await outline(tasks, work) == [
            ("Collect numbers", 0, False),
            ("Write final report", 0, False),
        ]

    @pytest.mark.parametrize(
        "resolve_parents, expected",
        [
            (True, [("A", 0, False), ("B", 1, False), ("C", 0, False), ("D", 1, False)]),
            (False, [("A", 0, False), ("B", 1, False), ("D", 0, False), ("C", 0, False)]),
        ],
    )
    async def test_moved_task_under_new_line(
        self, tasks: TaskStore, work: Category, resolve_parents, expected
    ):
        """Test a title-matched task moved under a brand-new line."""
        for title in ("A", "B", "D"):
            await tasks.create(TaskCreate(title=title, category_ids=[work.category_id]))
        changeset = reconcile(
            parse_markdown("- [ ] A\n  - [ ] B\n- [ ] C\n  - [ ] D\n").lines,
            await tasks.list_by_category(work.category_id),
        )
        await apply_changeset(
            tasks, work.category_id, changeset, resolve_parents=resolve_parents
        )

        assert await outline(tasks, work) == expected

    async def test_completed_create_gets_timestamp(self, tasks: TaskStore, work: Category):
        """Test that checked new lines end up completed."""
        changeset = Changeset(
            to_create=[CreateEntry("Done", True, None, 0, 0)],
        )
        result = await apply_changeset(tasks, work.category_id, changeset)

        [task] = await tasks.list_by_category(work.category_id)
        assert task.status == TaskStatus.COMPLETED
        assert task.completed_at is not None
        assert result.created == 1
        assert result.updated == 1

    async def test_delete_detaches_shared_task(self, tasks: TaskStore, work: Category):
        """Test that a task in other categories only leaves this one."""
        shared = await tasks.create(
            TaskCreate(title="Shared", category_ids=[work.category_id, "home"])
        )
        only = await tasks.create(TaskCreate(title="Only", category_ids=[work.category_id]))

        changeset = Changeset(to_delete=[shared.task_id, only.task_id, "missing"])
        result = await apply_changeset(tasks, work.category_id, changeset)

        assert (await tasks.get(shared.task_id)).category_ids == ["home"]
        assert await tasks.get(only.task_id) is None
        assert result.detached == 1
        assert result.deleted == 1

    async def test_rejected_update_is_skipped(self, tasks: TaskStore, work: Category):
        """Test that a cycle-creating update does not stop the rest."""
        a = await tasks.create(TaskCreate(title="A", category_ids=[work.category_id]))
        b = await tasks.create(
            TaskCreate(title="B", category_ids=[work.category_id], parent_id=a.task_id)
        )

        changeset = Changeset(
            to_update=[
                UpdateEntry(a.task_id, {"parent_id": b.task_id}),
                UpdateEntry(b.task_id, {"status": TaskStatus.COMPLETED}),
            ]
        )
        result = await apply_changeset(tasks, work.category_id, changeset)

        assert (await tasks.get(a.task_id)).parent_id is None
        assert (await tasks.get(b.task_id)).status == TaskStatus.COMPLETED
        assert result.updated == 1


class TestImportLines:
    """Test import_lines."""

    async def test_import_nested(self, tasks: TaskStore, work: Category):
        """Test importing a nested document."""
        parsed = parse_markdown("- [ ] A\n  - [x] B\n  - [ ] C\n- [ ] D\n").lines
        result = await import_lines(tasks, work.category_id, parsed)

        assert await outline(tasks, work) == [
            ("A", 0, False),
            ("B", 1, True),
            ("C", 1, False),
            ("D", 0, False),
        ]
        assert result.created == 4

    async def test_import_flat(self, tasks: TaskStore, work: Category):
        """Test importing without parent resolution."""
        parsed = parse_markdown("- [ ] A\n  - [ ] B\n").lines
        await import_lines(tasks, work.category_id, parsed, resolve_parents=False)

        assert await outline(tasks, work) == [("A", 0, False), ("B", 0, False)]

    async def test_skip_duplicates(self, tasks: TaskStore, work: Category):
        """Test that existing titles are skipped but still parent new lines."""
        existing = await tasks.create(TaskCreate(title="A", category_ids=[work.category_id]))

        parsed = parse_markdown("- [ ] A\n  - [ ] New\n- [ ] Fresh\n- [ ] Fresh\n").lines
        result = await import_lines(tasks, work.category_id, parsed, skip_duplicates=True)

        assert result.created == 2
        assert result.skipped == 2
        [new] = [t for t in await tasks.list_by_category(work.category_id) if t.title == "New"]
        assert new.parent_id == existing.task_id

    async def test_duplicates_kept_by_default(self, tasks: TaskStore, work: Category):
        """Test that without skipping every line is created."""
        await tasks.create(TaskCreate(title="A", category_ids=[work.category_id]))
        parsed = parse_markdown("- [ ] A\n").lines
        result = await import_lines(tasks, work.category_id, parsed)

        assert result.created == 1
        assert len(await tasks.list_by_category(work.category_id)) == 2


class TestFindOrCreateCategory:
    """Test find_or_create_category."""

    async def test_finds_existing_ignoring_case(
        self, categories: CategoryStore, work: Category
    ):
        """Test that an existing category is reused."""
        found = await find_or_create_category(categories, "WORK")
        assert found.category_id == work.category_id
        assert len(await categories.all()) == 1

    async def test_first_unused_color(self, categories: CategoryStore, work: Category):
        """Test palette assignment for new categories."""
        await categories.create("Home", CATEGORY_COLORS[2])

        errands = await find_or_create_category(categories, "Errands")
        assert errands.color == CATEGORY_COLORS[1]

        later = await find_or_create_category(categories, "Later")
        assert later.color == CATEGORY_COLORS[3]

    async def test_palette_exhausted(self, categories: CategoryStore):
        """Test that the first color is reused once all are taken."""
        for i, color in enumerate(CATEGORY_COLORS):
            await categories.create(f"C{i}", color)

        extra = await find_or_create_category(categories, "Extra")
        assert extra.color == CATEGORY_COLORS[0]
