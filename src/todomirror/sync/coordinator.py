"""Two-way sync between the task stores and a folder of markdown files.

One file per category, named after the category. Local changes are
exported after a short debounce; the folder is polled for external edits,
which are reconciled back into the stores. The text last written to (or
read from) each file is cached so the coordinator never re-imports its own
writes.
"""

from enum import Enum

import structlog

from todomirror.db.models import Category
from todomirror.markdown.parser import parse_markdown
from todomirror.markdown.reconcile import reconcile
from todomirror.markdown.serializer import category_filename, tasks_to_markdown
from todomirror.sync.apply import apply_changeset, find_or_create_category, import_lines
from todomirror.sync.ports import (
    CategoryRepo,
    DirectoryHandle,
    DirectoryHost,
    HandleStore,
    TaskRepo,
)
from todomirror.sync.session import Debouncer, PeriodicTimer, SyncSession

log = structlog.get_logger()

HANDLE_KEY = "folder_handle"

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_WRITE_DEBOUNCE = 0.5


class SyncStatus(str, Enum):
    """Folder sync connection state."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class FolderSyncCoordinator:
    """Keeps a folder of category documents in step with the stores."""

    def __init__(
        self,
        tasks: TaskRepo,
        categories: CategoryRepo,
        host: DirectoryHost,
        handles: HandleStore,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        write_debounce: float = DEFAULT_WRITE_DEBOUNCE,
        resolve_new_parents: bool = True,
    ):
        """Initialize the coordinator.

        Args:
            tasks: Task store.
            categories: Category store.
            host: Provides the folder and file access.
            handles: Remembers the folder between runs.
            poll_interval: Seconds between folder polls.
            write_debounce: Seconds to wait after the last local change
                before exporting.
            resolve_new_parents: Nest tasks created from a document under
                their parent line instead of creating them flat.
        """
        self.tasks = tasks
        self.categories = categories
        self.host = host
        self.handles = handles
        self.poll_interval = poll_interval
        self.write_debounce = write_debounce
        self.resolve_new_parents = resolve_new_parents
        self._session: SyncSession | None = None

    @property
    def session(self) -> SyncSession | None:
        return self._session

    @property
    def status(self) -> SyncStatus:
        return SyncStatus.CONNECTED if self._session else SyncStatus.DISCONNECTED

    @property
    def folder_name(self) -> str:
        return self._session.handle.name if self._session else ""

    def is_supported(self) -> bool:
        """Check whether the host can provide a folder at all."""
        return self.host.is_supported()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def connect(self) -> bool:
        """Ask the host for a folder and start syncing with it.

        Returns:
            False if folder sync is not supported here.

        Raises:
            FolderAccessError: No folder was chosen or it is not writable.
                The coordinator stays as it was.
        """
        if not self.is_supported():
            log.warning("folder_sync_unsupported")
            return False

        handle = await self.host.request_directory()
        await self.handles.put(HANDLE_KEY, handle.persisted_value())
        await self._activate(handle)
        log.info("folder_connected", folder=handle.name)
        return True

    async def disconnect(self) -> None:
        """Stop syncing and forget the folder."""
        session = self._session
        self._session = None
        if session is not None:
            session.close()

        try:
            await self.handles.delete(HANDLE_KEY)
        except Exception as e:
            log.warning("folder_handle_remove_failed", error=str(e))

        log.info("folder_disconnected")

    def close(self) -> None:
        """Stop syncing but keep the remembered folder for the next run."""
        session = self._session
        self._session = None
        if session is not None:
            session.close()
            log.info("folder_sync_stopped", folder=session.handle.name)

    async def restore(self) -> bool:
        """Reconnect to the folder remembered from a previous run.

        The remembered folder is kept when access is not granted, so a
        later manual connect can still use it.

        Returns:
            True if connected afterwards.
        """
        if self._session is not None:
            return True
        if not self.is_supported():
            return False

        try:
            persisted = await self.handles.get(HANDLE_KEY)
        except Exception as e:
            log.warning("folder_handle_load_failed", error=str(e))
            return False
        if persisted is None:
            return False

        try:
            handle = self.host.open_directory(persisted)
            granted = await self._verify_permission(handle)
        except Exception as e:
            log.warning("folder_restore_failed", folder=str(persisted), error=str(e))
            return False

        if not granted:
            log.warning("folder_permission_missing", folder=str(persisted))
            return False

        await self._activate(handle)
        log.info("folder_restored", folder=handle.name)
        return True

    async def _verify_permission(self, handle: DirectoryHandle) -> bool:
        if await handle.query_permission() == "granted":
            return True
        return await handle.request_permission() == "granted"

    async def _activate(self, handle: DirectoryHandle) -> None:
        if self._session is not None:
            self._session.close()

        session = SyncSession(handle=handle)
        session.write_timer = Debouncer(self.write_debounce, self.write_all_files)
        session.poll_timer = PeriodicTimer(
            self.poll_interval, self.poll_for_changes, name="folder_poll"
        )
        self._session = session

        await self.write_all_files()
        if self._session is not session:
            return

        session.unsubscribes = [
            self.tasks.subscribe(self.schedule_write),
            self.categories.subscribe(self.schedule_write),
        ]
        session.poll_timer.start()

    # =========================================================================
    # Write-back
    # =========================================================================

    def schedule_write(self) -> None:
        """Export soon; repeated calls push the export back."""
        session = self._session
        if session is not None and session.write_timer is not None:
            session.write_timer.trigger()

    async def write_all_files(self) -> int:
        """Export every category whose document changed.

        Returns:
            Number of files written.
        """
        session = self._session
        if session is None:
            return 0
        if session.writing or session.polling:
            # Try again once the running export or poll is done.
            if session.write_timer is not None:
                session.write_timer.trigger()
            return 0

        session.writing = True
        written = 0
        try:
            for category in await self.categories.all():
                if session.closed:
                    break
                filename = category_filename(category.name)
                try:
                    tasks = await self.tasks.list_by_category(category.category_id)
                    content = tasks_to_markdown(category.name, tasks)
                    if session.last_written.get(filename) == content:
                        continue

                    file = await session.handle.get_file(filename, create=True)
                    await file.write(content)
                    session.last_written[filename] = content
                    written += 1
                except Exception as e:
                    log.warning("folder_write_failed", file=filename, error=str(e))
        except Exception:
            log.exception("folder_export_failed")
        finally:
            session.writing = False

        if written:
            log.info("folder_files_written", count=written, folder=session.handle.name)
        return written

    # =========================================================================
    # Polling
    # =========================================================================

    async def poll_for_changes(self) -> None:
        """Pull external edits from the folder into the stores."""
        session = self._session
        if session is None or session.writing or session.polling:
            return

        session.polling = True
        try:
            categories = await self.categories.all()
            for category in categories:
                if self._session is not session:
                    return
                await self._sync_category(session, category)

            if self._session is session:
                await self._import_new_files(session, categories)
        except Exception:
            log.exception("folder_poll_failed")
        finally:
            session.polling = False

    async def _sync_category(self, session: SyncSession, category: Category) -> None:
        filename = category_filename(category.name)
        try:
            file = await session.handle.get_file(filename)
            content = await file.read()
        except FileNotFoundError:
            # Removed externally; forget it so the next export recreates it.
            if session.last_written.pop(filename, None) is not None:
                log.info("folder_file_missing", file=filename)
                self.schedule_write()
            return
        except Exception as e:
            log.warning("folder_read_failed", file=filename, error=str(e))
            return

        if content == session.last_written.get(filename):
            return

        try:
            parsed = parse_markdown(content)
            if parsed.errors:
                log.warning(
                    "folder_parse_diagnostics",
                    file=filename,
                    errors=[(e.line_number, e.kind.value) for e in parsed.errors],
                )

            existing = await self.tasks.list_by_category(category.category_id)
            changeset = reconcile(parsed.lines, existing)
            if not changeset.is_empty:
                result = await apply_changeset(
                    self.tasks,
                    category.category_id,
                    changeset,
                    resolve_parents=self.resolve_new_parents,
                )
                log.info("folder_changes_applied", file=filename, **result.as_dict())
        except Exception as e:
            log.warning("folder_sync_failed", file=filename, error=str(e))
            return

        if self._session is session:
            session.last_written[filename] = content

    async def _import_new_files(
        self, session: SyncSession, categories: list[Category]
    ) -> None:
        known_files = {category_filename(c.name).lower() for c in categories}

        try:
            entries = await session.handle.list_entries()
        except Exception as e:
            log.warning("folder_list_failed", error=str(e))
            return

        for name, kind in entries:
            if kind != "file" or name.startswith(".") or not name.lower().endswith(".md"):
                continue
            if name in session.last_written or name.lower() in known_files:
                continue
            if self._session is not session:
                return

            try:
                file = await session.handle.get_file(name)
                content = await file.read()
                parsed = parse_markdown(content)
                category_name = parsed.category_name or name[: -len(".md")]
                # A file whose stem differs from its heading is found again
                # every session; only the first import may add duplicates.
                existing = await self.categories.find_by_name(category_name)
                category = existing or await find_or_create_category(
                    self.categories, category_name
                )
                result = await import_lines(
                    self.tasks,
                    category.category_id,
                    parsed.lines,
                    resolve_parents=self.resolve_new_parents,
                    skip_duplicates=existing is not None,
                )
            except Exception as e:
                log.warning("folder_import_failed", file=name, error=str(e))
                continue

            known_files.add(category_filename(category.name).lower())
            if self._session is session:
                session.last_written[name] = content
            log.info(
                "folder_file_imported",
                file=name,
                category=category.name,
                **result.as_dict(),
            )
