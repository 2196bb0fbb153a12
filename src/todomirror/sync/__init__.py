"""Folder sync: keep category documents in a folder in step with the stores."""

from todomirror.sync.apply import (
    ApplyResult,
    apply_changeset,
    find_or_create_category,
    import_lines,
)
from todomirror.sync.coordinator import HANDLE_KEY, FolderSyncCoordinator, SyncStatus
from todomirror.sync.folder import LocalDirectoryHandle, LocalFileHandle, LocalFolderHost
from todomirror.sync.ports import (
    FolderAccessError,
    FolderPermissionDenied,
    FolderPickerCancelled,
)
from todomirror.sync.transfer import export_categories, import_markdown_file

__all__ = [
    "HANDLE_KEY",
    "ApplyResult",
    "FolderAccessError",
    "FolderPermissionDenied",
    "FolderPickerCancelled",
    "FolderSyncCoordinator",
    "LocalDirectoryHandle",
    "LocalFileHandle",
    "LocalFolderHost",
    "SyncStatus",
    "apply_changeset",
    "export_categories",
    "find_or_create_category",
    "import_lines",
    "import_markdown_file",
]
