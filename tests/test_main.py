"""Tests for the command line interface."""

import sys
from pathlib import Path

import pytest

from todomirror.main import main


def run(monkeypatch, *args: str) -> None:
    monkeypatch.setattr(sys, "argv", ["todomirror", *args])
    main()


class TestCommands:
    """Test the subcommands end to end against a data directory."""

    def test_import_show_export(self, monkeypatch, capsys, tmp_path: Path):
        """Test importing a file, printing it and exporting it again."""
        root = tmp_path / "root"
        root.mkdir()
        source = tmp_path / "Groceries.md"
        source.write_text("# Groceries\n\n- [ ] Fruit\n  - [x] Apples\n")

        run(monkeypatch, "import", "--root", str(root), str(source))
        assert "2 created, 0 skipped" in capsys.readouterr().out
        assert (root / ".todomirror" / "todos.db").exists()

        run(monkeypatch, "show", "--root", str(root), "groceries")
        out = capsys.readouterr().out
        assert "==> Groceries.md <==" in out
        assert "- [ ] Fruit\n  - [x] Apples\n" in out

        run(monkeypatch, "export", "--root", str(root), "--out", str(tmp_path / "out"))
        assert (tmp_path / "out" / "Groceries.md").read_text() == source.read_text()

    def test_show_unknown_category(self, monkeypatch, tmp_path: Path):
        """Test that showing a missing category fails."""
        with pytest.raises(SystemExit) as exc:
            run(monkeypatch, "show", "--root", str(tmp_path), "Nope")
        assert exc.value.code == 1

    def test_import_missing_file(self, monkeypatch, tmp_path: Path):
        """Test that a missing file makes import fail."""
        with pytest.raises(SystemExit) as exc:
            run(monkeypatch, "import", "--root", str(tmp_path), str(tmp_path / "nope.md"))
        assert exc.value.code == 1

    def test_disconnect(self, monkeypatch, capsys, tmp_path: Path):
        """Test forgetting the sync folder when none is remembered."""
        run(monkeypatch, "disconnect", "--root", str(tmp_path))
        assert "forgotten" in capsys.readouterr().out

    def test_no_command(self, monkeypatch):
        """Test that running without a command prints help and fails."""
        with pytest.raises(SystemExit) as exc:
            run(monkeypatch)
        assert exc.value.code == 1

    def test_version(self, monkeypatch, capsys):
        """Test --version."""
        with pytest.raises(SystemExit) as exc:
            run(monkeypatch, "--version")
        assert exc.value.code == 0
        assert "todomirror 0.1.0" in capsys.readouterr().out
