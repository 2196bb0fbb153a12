"""One-shot export and import of category documents."""

import asyncio
from pathlib import Path

import structlog

from todomirror.markdown.parser import parse_markdown
from todomirror.markdown.serializer import category_filename, tasks_to_markdown
from todomirror.sync.apply import ApplyResult, find_or_create_category, import_lines
from todomirror.sync.folder import LocalDirectoryHandle
from todomirror.sync.ports import CategoryRepo, TaskRepo

log = structlog.get_logger()


async def export_categories(
    tasks: TaskRepo, categories: CategoryRepo, folder: Path
) -> list[Path]:
    """Write one document per category into a folder.

    Existing files with the same names are overwritten.

    Args:
        tasks: Task store.
        categories: Category store.
        folder: Destination folder, created if missing.

    Returns:
        Paths written, in category order.
    """
    folder = Path(folder).expanduser().resolve()
    await asyncio.to_thread(folder.mkdir, parents=True, exist_ok=True)
    directory = LocalDirectoryHandle(folder)

    written: list[Path] = []
    for category in await categories.all():
        filename = category_filename(category.name)
        content = tasks_to_markdown(
            category.name, await tasks.list_by_category(category.category_id)
        )
        file = await directory.get_file(filename, create=True)
        await file.write(content)
        written.append(file.path)

    log.info("categories_exported", folder=str(folder), count=len(written))
    return written


async def import_markdown_file(
    tasks: TaskRepo, categories: CategoryRepo, path: Path
) -> ApplyResult:
    """Import a markdown document into its category.

    The category is taken from the first heading, or from the file name
    when there is none, and created if needed. Lines whose title already
    exists in the category are skipped.

    Args:
        tasks: Task store.
        categories: Category store.
        path: Markdown file to import.

    Returns:
        ApplyResult with created and skipped counts.
    """
    path = Path(path)
    content = await asyncio.to_thread(path.read_text, encoding="utf-8")
    parsed = parse_markdown(content)
    if parsed.errors:
        log.warning(
            "import_parse_diagnostics",
            file=str(path),
            errors=[(e.line_number, e.kind.value) for e in parsed.errors],
        )

    category = await find_or_create_category(
        categories, parsed.category_name or path.stem
    )
    result = await import_lines(
        tasks,
        category.category_id,
        parsed.lines,
        resolve_parents=True,
        skip_duplicates=True,
    )
    log.info("file_imported", file=str(path), category=category.name, **result.as_dict())
    return result
