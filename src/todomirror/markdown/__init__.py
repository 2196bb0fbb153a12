"""Checkbox markdown encoding and reconciliation."""

from todomirror.markdown.parser import (
    DiagnosticKind,
    ParseDiagnostic,
    ParsedLine,
    ParseResult,
    parse_markdown,
)
from todomirror.markdown.reconcile import (
    Changeset,
    CreateEntry,
    UpdateEntry,
    reconcile,
)
from todomirror.markdown.serializer import category_filename, tasks_to_markdown

__all__ = [
    "Changeset",
    "CreateEntry",
    "DiagnosticKind",
    "ParseDiagnostic",
    "ParseResult",
    "ParsedLine",
    "UpdateEntry",
    "category_filename",
    "parse_markdown",
    "reconcile",
    "tasks_to_markdown",
]
