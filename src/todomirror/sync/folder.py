"""Local filesystem implementation of the directory host.

File reads and writes run in worker threads so the event loop keeps
ticking while the disk is busy.
"""

import asyncio
import os
import tempfile
from pathlib import Path

import structlog

from todomirror.sync.ports import (
    EntryKind,
    FolderPermissionDenied,
    FolderPickerCancelled,
    PermissionState,
)

log = structlog.get_logger()


def _atomic_write(path: Path, text: str) -> None:
    """Write via a temp file and rename, so editors never see half a file."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class LocalFileHandle:
    """A markdown file inside the sync folder."""

    def __init__(self, path: Path):
        self.path = path

    async def read(self) -> str:
        return await asyncio.to_thread(self.path.read_text, encoding="utf-8")

    async def write(self, text: str) -> None:
        await asyncio.to_thread(_atomic_write, self.path, text)


class LocalDirectoryHandle:
    """A folder on the local filesystem."""

    def __init__(self, path: Path):
        self.path = path

    @property
    def name(self) -> str:
        return self.path.name

    def persisted_value(self) -> str:
        return str(self.path)

    async def get_file(self, name: str, create: bool = False) -> LocalFileHandle:
        path = self.path / name
        if path.parent != self.path:
            raise ValueError(f"File name escapes the sync folder: {name!r}")
        if not create and not await asyncio.to_thread(path.is_file):
            raise FileNotFoundError(str(path))
        return LocalFileHandle(path)

    async def list_entries(self) -> list[tuple[str, EntryKind]]:
        def scan() -> list[tuple[str, EntryKind]]:
            entries: list[tuple[str, EntryKind]] = []
            for entry in sorted(self.path.iterdir()):
                entries.append((entry.name, "directory" if entry.is_dir() else "file"))
            return entries

        return await asyncio.to_thread(scan)

    async def query_permission(self) -> PermissionState:
        def check() -> PermissionState:
            if not self.path.is_dir():
                return "denied"
            if os.access(self.path, os.R_OK | os.W_OK | os.X_OK):
                return "granted"
            return "denied"

        return await asyncio.to_thread(check)

    async def request_permission(self) -> PermissionState:
        # Local folders cannot be granted interactively; re-check instead.
        return await self.query_permission()


class LocalFolderHost:
    """Directory host backed by a configured folder path.

    The configured folder plays the role of the folder picker: when none
    is set, a request behaves like a cancelled picker.
    """

    def __init__(self, folder: Path | None = None, create: bool = True):
        """Initialize the host.

        Args:
            folder: Folder to hand out on request.
            create: Create the folder if it does not exist.
        """
        self.folder = folder
        self.create = create

    def is_supported(self) -> bool:
        return True

    async def request_directory(self) -> LocalDirectoryHandle:
        if self.folder is None:
            raise FolderPickerCancelled("No sync folder configured")

        folder = Path(self.folder).expanduser().resolve()
        if self.create:
            try:
                await asyncio.to_thread(folder.mkdir, parents=True, exist_ok=True)
            except OSError as e:
                raise FolderPermissionDenied(f"Cannot create {folder}: {e}") from e

        handle = LocalDirectoryHandle(folder)
        if await handle.query_permission() != "granted":
            raise FolderPermissionDenied(f"No read/write access to {folder}")

        log.debug("folder_requested", folder=str(folder))
        return handle

    def open_directory(self, persisted: str) -> LocalDirectoryHandle:
        return LocalDirectoryHandle(Path(persisted))
