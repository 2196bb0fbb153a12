"""Checkbox markdown parser.

A category document looks like::

    # Work

    - [ ] Write report
      - [x] Collect numbers
    - [ ] Book flights

Each two-space indent is one level of nesting.
"""

import re
from dataclasses import dataclass, field
from enum import Enum

TASK_LINE_RE = re.compile(r"^( *)- \[(x| )\] (.+)$")
HEADER_RE = re.compile(r"^# (.+)$")

INDENT_UNIT = 2


class DiagnosticKind(str, Enum):
    """Why a line was skipped."""

    ODD_INDENT = "odd_indent"
    DEPTH_JUMP = "depth_jump"
    INVALID_LINE = "invalid_line"


@dataclass(frozen=True)
class ParsedLine:
    """A task line decoded from a document."""

    title: str
    completed: bool
    depth: int
    line_number: int


@dataclass(frozen=True)
class ParseDiagnostic:
    """A skipped line and the reason it was skipped."""

    line_number: int
    kind: DiagnosticKind
    text: str = ""


@dataclass
class ParseResult:
    """Outcome of parsing one document."""

    category_name: str | None = None
    lines: list[ParsedLine] = field(default_factory=list)
    errors: list[ParseDiagnostic] = field(default_factory=list)


def parse_markdown(text: str) -> ParseResult:
    """Parse a checkbox markdown document.

    The first ``# `` heading names the category. Task lines must be
    indented by a multiple of two spaces, the first task must be at the
    top level, and each task may be at most one level deeper than the one
    before it. Offending lines are reported in ``errors`` and skipped;
    blank lines are ignored.

    Args:
        text: Document content.

    Returns:
        ParseResult with the heading, accepted task lines and diagnostics.
    """
    result = ParseResult()

    for index, raw in enumerate(text.split("\n")):
        line = raw.rstrip("\r")
        line_number = index + 1

        if not line.strip():
            continue

        header_match = HEADER_RE.match(line)
        if header_match:
            if result.category_name is None:
                result.category_name = header_match.group(1)
            continue

        task_match = TASK_LINE_RE.match(line)
        if not task_match:
            result.errors.append(
                ParseDiagnostic(line_number, DiagnosticKind.INVALID_LINE, line)
            )
            continue

        indent = len(task_match.group(1))
        if indent % INDENT_UNIT != 0:
            result.errors.append(
                ParseDiagnostic(line_number, DiagnosticKind.ODD_INDENT, line)
            )
            continue

        depth = indent // INDENT_UNIT
        max_depth = result.lines[-1].depth + 1 if result.lines else 0
        if depth > max_depth:
            result.errors.append(
                ParseDiagnostic(line_number, DiagnosticKind.DEPTH_JUMP, line)
            )
            continue

        result.lines.append(
            ParsedLine(
                title=task_match.group(3),
                completed=task_match.group(2) == "x",
                depth=depth,
                line_number=line_number,
            )
        )

    return result
