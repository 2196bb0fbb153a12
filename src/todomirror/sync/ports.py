"""Ports (interfaces) used by the folder sync coordinator.

The coordinator depends on Protocols instead of concrete implementations,
so the local filesystem host and the SQLite stores can be swapped out
(tests use the real stores with an in-memory database).
"""

from collections.abc import Callable
from typing import Any, Literal, Protocol

from todomirror.db.models import Category, Task, TaskCreate

PermissionState = Literal["granted", "denied", "prompt"]
EntryKind = Literal["file", "directory"]


class FolderAccessError(Exception):
    """The sync folder could not be obtained or used."""


class FolderPickerCancelled(FolderAccessError):
    """No folder was chosen."""


class FolderPermissionDenied(FolderAccessError):
    """The folder exists but cannot be read and written."""


class FileHandle(Protocol):
    async def read(self) -> str: ...
    async def write(self, text: str) -> None: ...


class DirectoryHandle(Protocol):
    @property
    def name(self) -> str: ...

    def persisted_value(self) -> Any:
        """JSON-serializable value that ``DirectoryHost.open_directory`` accepts."""
        ...

    async def get_file(self, name: str, create: bool = False) -> FileHandle:
        """Open a file in the folder. Raises FileNotFoundError if missing and not ``create``."""
        ...

    async def list_entries(self) -> list[tuple[str, EntryKind]]: ...
    async def query_permission(self) -> PermissionState: ...
    async def request_permission(self) -> PermissionState: ...


class DirectoryHost(Protocol):
    def is_supported(self) -> bool: ...

    async def request_directory(self) -> DirectoryHandle:
        """Ask for a folder. Raises FolderAccessError subclasses on failure."""
        ...

    def open_directory(self, persisted: Any) -> DirectoryHandle: ...


class HandleStore(Protocol):
    async def put(self, key: str, value: Any) -> None: ...
    async def get(self, key: str) -> Any | None: ...
    async def delete(self, key: str) -> None: ...


class TaskRepo(Protocol):
    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]: ...
    async def list_by_category(self, category_id: str) -> list[Task]: ...
    async def get(self, task_id: str) -> Task | None: ...
    async def create(self, data: TaskCreate) -> Task: ...
    async def update(self, task_id: str, changes: dict[str, Any]) -> Task: ...
    async def delete(self, task_id: str) -> bool: ...


class CategoryRepo(Protocol):
    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]: ...
    async def all(self) -> list[Category]: ...
    async def find_by_name(self, name: str) -> Category | None: ...
    async def create(self, name: str, color: str, is_default: bool = False) -> Category: ...
