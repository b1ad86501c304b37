# SPDX-License-Identifier: MIT
"""Diff parser and rule context — added-line facts extracted from a unified diff."""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class AddedLine:
    """A line introduced by the diff, at its 1-based position in the new file."""

    file_path: str
    line_number: int
    text: str


@dataclass(frozen=True)
class RuleContext:
    """Context passed to each rule — the file's added lines + current index.

    Only added lines are visible. Unchanged lines of the original file never
    reach a rule, so multi-line signals that straddle an unchanged line are
    not seen.
    """

    lines_in_file: tuple[AddedLine, ...]
    index_in_file: int

    @property
    def current(self) -> AddedLine:
        return self.lines_in_file[self.index_in_file]

    def nearby(self, distance: int) -> list[str]:
        """Return text of added lines within ±distance of the current index."""
        start = max(0, self.index_in_file - distance)
        end = min(len(self.lines_in_file), self.index_in_file + distance + 1)
        return [ln.text for ln in self.lines_in_file[start:end]]


# --- Diff parser ---

_HUNK_HEADER_RE = re.compile(r"^@@\s+-\d+(?:,\d+)?\s+\+(\d+)(?:,\d+)?\s+@@")
_LINE_SPLIT_RE = re.compile(r"\r?\n")
_NEW_FILE_PREFIX = "+++ "
_DEV_NULL = "/dev/null"


def _new_file_path(header: str) -> str | None:
    """Extract the new-file path from a ``+++ `` header. /dev/null → None."""
    value = header[len(_NEW_FILE_PREFIX) :].strip()
    if value == _DEV_NULL:
        return None
    if value.startswith("b/"):
        return value[2:]
    return value


def parse_added_lines(diff_text: str) -> list[AddedLine]:
    """Parse a unified diff into the ordered list of added lines.

    Never raises: text without file or hunk headers yields an empty list.
    Removed lines do not advance the new-file counter; context lines do.
    """
    added: list[AddedLine] = []
    current_file: str | None = None
    new_line = 0
    in_hunk = False

    for raw in _LINE_SPLIT_RE.split(diff_text):
        if raw.startswith(_NEW_FILE_PREFIX):
            current_file = _new_file_path(raw)
            in_hunk = False
            continue

        hunk_match = _HUNK_HEADER_RE.match(raw)
        if hunk_match:
            new_line = int(hunk_match.group(1))
            in_hunk = True
            continue

        if not in_hunk or current_file is None:
            continue

        # "+++" inside a hunk is a header fragment, never an added line
        if raw.startswith("+") and not raw.startswith("+++"):
            added.append(AddedLine(file_path=current_file, line_number=new_line, text=raw[1:]))
            new_line += 1
        elif raw.startswith(" "):
            new_line += 1
        # "-" removed lines and "\ No newline" markers do not move the counter

    return added


def group_by_file(lines: list[AddedLine]) -> dict[str, list[AddedLine]]:
    """Group added lines by file, preserving first-seen file order and diff order."""
    grouped: dict[str, list[AddedLine]] = {}
    for line in lines:
        grouped.setdefault(line.file_path, []).append(line)
    return grouped
