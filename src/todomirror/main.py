"""todomirror CLI entry point."""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

import structlog
from dotenv import load_dotenv

from todomirror import __version__
from todomirror.config import Settings, load_settings
from todomirror.db import CategoryStore, Database, MetaStore, TaskStore
from todomirror.markdown import category_filename, tasks_to_markdown
from todomirror.sync import (
    FolderAccessError,
    FolderSyncCoordinator,
    LocalFolderHost,
    export_categories,
    import_markdown_file,
)


def configure_logging(level: str) -> None:
    """Configure structlog for the application."""
    # Configure stdlib logging
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=True),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _setup(root: Path) -> Settings:
    """Load .env and settings, create data dirs and configure logging."""
    root = root.expanduser().resolve()
    env_file = root / ".env"
    if not env_file.exists():
        env_file = root / ".todomirror" / ".env"
    load_dotenv(env_file if env_file.exists() else None)

    settings = load_settings(root)
    settings.ensure_dirs()
    configure_logging(settings.log_level)
    return settings


async def _open_database(settings: Settings) -> Database:
    log = structlog.get_logger()
    log.info("database_connecting", path=str(settings.db_path))
    db = Database(settings.db_path)
    await db.connect()
    log.info("database_ready", path=str(settings.db_path))
    return db


async def run_sync(root: Path, folder: Path | None) -> None:
    """Connect to the sync folder and keep it in step until interrupted.

    Args:
        root: Root directory holding the data directory.
        folder: Folder to connect to. Without it the folder from the last
            run is restored, falling back to the configured one.
    """
    settings = _setup(root)
    log = structlog.get_logger()

    db = await _open_database(settings)
    tasks = TaskStore(db)
    categories = CategoryStore(db)

    coordinator = FolderSyncCoordinator(
        tasks,
        categories,
        LocalFolderHost(folder or settings.sync_folder),
        MetaStore(db),
        poll_interval=settings.poll_interval,
        write_debounce=settings.write_debounce,
        resolve_new_parents=settings.resolve_new_parents,
    )

    try:
        connected = False
        if folder is None:
            connected = await coordinator.restore()
        if not connected:
            connected = await coordinator.connect()
    except FolderAccessError as e:
        log.error("folder_unavailable", error=str(e))
        print(f"\nNo sync folder: {e}")
        print("Pass --folder PATH or set SYNC_FOLDER in .env\n")
        await db.close()
        sys.exit(1)

    if not connected:
        log.error("folder_sync_unsupported")
        await db.close()
        sys.exit(1)

    # Set up graceful shutdown
    shutdown_event = asyncio.Event()

    def signal_handler():
        log.info("shutdown_signal_received", message="Ctrl+C pressed, shutting down...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    log.info(
        "sync_running",
        folder=coordinator.folder_name,
        poll_interval=settings.poll_interval,
        write_debounce_ms=settings.write_debounce_ms,
    )

    await shutdown_event.wait()

    # Cleanup: flush pending local changes before stopping
    log.info("shutting_down")
    await coordinator.write_all_files()
    coordinator.close()
    await db.close()
    log.info("todomirror_stopped")


async def run_disconnect(root: Path) -> None:
    """Forget the remembered sync folder."""
    settings = _setup(root)
    db = await _open_database(settings)
    coordinator = FolderSyncCoordinator(
        TaskStore(db), CategoryStore(db), LocalFolderHost(), MetaStore(db)
    )
    await coordinator.disconnect()
    await db.close()
    print("Sync folder forgotten.")


async def run_export(root: Path, out: Path) -> None:
    """Write every category to a folder once."""
    settings = _setup(root)
    db = await _open_database(settings)
    paths = await export_categories(TaskStore(db), CategoryStore(db), out)
    await db.close()

    print(f"Exported {len(paths)} categories:\n")
    for path in paths:
        print(f"  {path}")


async def run_import(root: Path, files: list[Path]) -> None:
    """Import markdown files, skipping tasks that already exist."""
    settings = _setup(root)
    log = structlog.get_logger()
    db = await _open_database(settings)
    tasks = TaskStore(db)
    categories = CategoryStore(db)

    failed = 0
    for path in files:
        try:
            result = await import_markdown_file(tasks, categories, path)
        except (OSError, UnicodeDecodeError) as e:
            log.error("import_failed", file=str(path), error=str(e))
            failed += 1
            continue
        print(f"{path}: {result.created} created, {result.skipped} skipped")

    await db.close()
    if failed:
        sys.exit(1)


async def run_show(root: Path, category_name: str | None) -> None:
    """Print category documents."""
    settings = _setup(root)
    db = await _open_database(settings)
    tasks = TaskStore(db)
    categories = CategoryStore(db)

    if category_name:
        category = await categories.find_by_name(category_name)
        selected = [category] if category else []
    else:
        selected = await categories.all()

    if not selected:
        await db.close()
        print(f"No category named '{category_name}'" if category_name else "No categories")
        sys.exit(1)

    for category in selected:
        print(f"==> {category_filename(category.name)} <==")
        print(tasks_to_markdown(category.name, await tasks.list_by_category(category.category_id)))

    await db.close()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="todomirror",
        description="Mirror todo categories into a folder of markdown checklists",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_root(sub: argparse.ArgumentParser) -> None:
        sub.add_argument(
            "--root",
            type=Path,
            default=Path.cwd(),
            help="Directory holding the .todomirror data directory (default: current directory)",
        )

    # sync command
    sync_parser = subparsers.add_parser(
        "sync",
        help="Keep a folder of markdown files in sync until interrupted",
    )
    add_root(sync_parser)
    sync_parser.add_argument(
        "--folder",
        type=Path,
        default=None,
        help="Folder to sync with (default: last used folder, then SYNC_FOLDER)",
    )

    # disconnect command
    disconnect_parser = subparsers.add_parser(
        "disconnect",
        help="Forget the remembered sync folder",
    )
    add_root(disconnect_parser)

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Write every category to a folder once",
    )
    add_root(export_parser)
    export_parser.add_argument(
        "--out",
        type=Path,
        required=True,
        help="Destination folder",
    )

    # import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import markdown checklists",
    )
    add_root(import_parser)
    import_parser.add_argument("files", type=Path, nargs="+", help="Markdown files")

    # show command
    show_parser = subparsers.add_parser(
        "show",
        help="Print category documents",
    )
    add_root(show_parser)
    show_parser.add_argument("category", nargs="?", default=None, help="Category name")

    args = parser.parse_args()

    if args.command == "sync":
        asyncio.run(run_sync(args.root, args.folder))
    elif args.command == "disconnect":
        asyncio.run(run_disconnect(args.root))
    elif args.command == "export":
        asyncio.run(run_export(args.root, args.out))
    elif args.command == "import":
        asyncio.run(run_import(args.root, args.files))
    elif args.command == "show":
        asyncio.run(run_show(args.root, args.category))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
