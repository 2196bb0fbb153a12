"""Tests for the local filesystem directory host."""

from pathlib import Path

import pytest

from todomirror.sync import (
    FolderPermissionDenied,
    FolderPickerCancelled,
    LocalDirectoryHandle,
    LocalFolderHost,
)


class TestLocalFolderHost:
    """Test LocalFolderHost."""

    async def test_no_folder_is_cancelled(self):
        """Test that a host without a folder behaves like a cancelled picker."""
        host = LocalFolderHost()
        assert host.is_supported() is True
        with pytest.raises(FolderPickerCancelled):
            await host.request_directory()

    async def test_creates_missing_folder(self, tmp_path: Path):
        """Test that the folder is created on request."""
        folder = tmp_path / "notes" / "todos"
        handle = await LocalFolderHost(folder).request_directory()

        assert folder.is_dir()
        assert handle.name == "todos"
        assert handle.persisted_value() == str(folder.resolve())

    async def test_missing_folder_without_create(self, tmp_path: Path):
        """Test that a missing folder is denied when creation is off."""
        host = LocalFolderHost(tmp_path / "missing", create=False)
        with pytest.raises(FolderPermissionDenied):
            await host.request_directory()

    async def test_uncreatable_folder(self, tmp_path: Path):
        """Test that a folder below a regular file is denied."""
        blocker = tmp_path / "file.txt"
        blocker.write_text("x")
        with pytest.raises(FolderPermissionDenied):
            await LocalFolderHost(blocker / "sub").request_directory()

    async def test_open_directory(self, tmp_path: Path):
        """Test reopening a persisted folder."""
        handle = LocalFolderHost().open_directory(str(tmp_path))
        assert isinstance(handle, LocalDirectoryHandle)
        assert handle.path == tmp_path
        assert await handle.query_permission() == "granted"


class TestLocalDirectoryHandle:
    """Test LocalDirectoryHandle and its files."""

    async def test_write_then_read(self, tmp_path: Path):
        """Test a write followed by a read."""
        handle = LocalDirectoryHandle(tmp_path)
        file = await handle.get_file("Work.md", create=True)
        await file.write("# Work\n\n- [ ] A\n")

        assert (tmp_path / "Work.md").read_text() == "# Work\n\n- [ ] A\n"
        assert await (await handle.get_file("Work.md")).read() == "# Work\n\n- [ ] A\n"

    async def test_write_leaves_no_temp_files(self, tmp_path: Path):
        """Test that replacing a file leaves only the file."""
        handle = LocalDirectoryHandle(tmp_path)
        file = await handle.get_file("Work.md", create=True)
        await file.write("one\n")
        await file.write("two\n")

        assert [p.name for p in tmp_path.iterdir()] == ["Work.md"]
        assert (tmp_path / "Work.md").read_text() == "two\n"

    async def test_line_endings_written_as_given(self, tmp_path: Path):
        """Test that newlines are not translated."""
        file = await LocalDirectoryHandle(tmp_path).get_file("a.md", create=True)
        await file.write("# A\n- [ ] x\n")
        assert (tmp_path / "a.md").read_bytes() == b"# A\n- [ ] x\n"

    async def test_missing_file(self, tmp_path: Path):
        """Test that opening a missing file without create raises."""
        with pytest.raises(FileNotFoundError):
            await LocalDirectoryHandle(tmp_path).get_file("nope.md")

    @pytest.mark.parametrize("name", ["../escape.md", "sub/inner.md"])
    async def test_names_stay_inside_folder(self, tmp_path: Path, name: str):
        """Test that file names cannot leave the folder."""
        with pytest.raises(ValueError):
            await LocalDirectoryHandle(tmp_path).get_file(name, create=True)

    async def test_list_entries(self, tmp_path: Path):
        """Test listing files and directories."""
        (tmp_path / "b.md").write_text("")
        (tmp_path / "a.md").write_text("")
        (tmp_path / "archive").mkdir()

        entries = await LocalDirectoryHandle(tmp_path).list_entries()
        assert entries == [("a.md", "file"), ("archive", "directory"), ("b.md", "file")]

    async def test_permission_on_missing_folder(self, tmp_path: Path):
        """Test that a vanished folder is denied."""
        handle = LocalDirectoryHandle(tmp_path / "gone")
        assert await handle.query_permission() == "denied"
        assert await handle.request_permission() == "denied"
