"""Path extraction for multi-file patch envelopes.

Patches arrive as plain text in the envelope format consumed by the
patch-applying tool::

    *** Begin Patch
    *** Add File: docs/new.md
    +hello
    *** Update File: src/app.py
    *** Move to: src/main.py
    @@ def main():
    -    pass
    +    run()
    *** Delete File: old.txt
    *** End Patch

Only the file records are interpreted here. Hunk and content lines are
skipped, since the goal is to learn every path a patch will touch before
it is applied, not to validate the edits themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

BEGIN_MARKER = "*** Begin Patch"
END_MARKER = "*** End Patch"
END_OF_FILE_MARKER = "*** End of File"

ADD_FILE_PREFIX = "*** Add File:"
DELETE_FILE_PREFIX = "*** Delete File:"
UPDATE_FILE_PREFIX = "*** Update File:"
MOVE_TO_PREFIX = "*** Move to:"

HUNK_PREFIX = "@@"
RECORD_PREFIX = "***"

# cat <<'EOF' ... EOF, apply_patch <<"PATCH" ... PATCH, <<EOF ... EOF
_HEREDOC_RE = re.compile(r"^(?:[\w.-]+\s+)?<<(['\"]?)(\w+)\1\s*\n([\s\S]*?)\n\2\s*$")


class PatchParseError(ValueError):
    """Raised when patch text does not honour the Begin/End envelope."""

    def __init__(self, message: str = "Invalid patch format: missing Begin/End markers"):
        self.message = message
        super().__init__(message)


class PatchAction(str, Enum):
    """Kind of change a patch record makes."""

    ADD = "add"
    DELETE = "delete"
    UPDATE = "update"


@dataclass(frozen=True)
class PatchEntry:
    """One file record of a patch envelope."""

    action: PatchAction
    file_path: str
    move_path: str | None = None
    hunks: int = 0

    @property
    def paths(self) -> list[str]:
        """Paths this record touches, original first."""
        if self.move_path:
            return [self.file_path, self.move_path]
        return [self.file_path]


def strip_heredoc(text: str) -> str:
    """Unwrap a shell heredoc around the patch, if there is one."""
    match = _HEREDOC_RE.match(text)
    if match and match.group(3):
        return match.group(3)
    return text


def parse_patch(patch_text: str) -> list[PatchEntry]:
    """Parse the file records of a patch envelope.

    Args:
        patch_text: Raw patch text, optionally wrapped in a heredoc

    Returns:
        Records in the order they appear in the patch

    Raises:
        PatchParseError: If the Begin/End markers are missing or inverted
    """
    lines = strip_heredoc(patch_text.strip()).split("\n")

    begin_idx = _find_marker(lines, BEGIN_MARKER)
    end_idx = _find_marker(lines, END_MARKER)
    if begin_idx < 0 or end_idx < 0 or begin_idx >= end_idx:
        raise PatchParseError()

    entries: list[PatchEntry] = []
    i = begin_idx + 1

    while i < end_idx:
        line = lines[i]

        if line.startswith(ADD_FILE_PREFIX):
            path = _header_value(line)
            if not path:
                i += 1
                continue
            i = _skip_add_content(lines, i + 1, end_idx)
            entries.append(PatchEntry(PatchAction.ADD, path))

        elif line.startswith(DELETE_FILE_PREFIX):
            path = _header_value(line)
            i += 1
            if path:
                entries.append(PatchEntry(PatchAction.DELETE, path))

        elif line.startswith(UPDATE_FILE_PREFIX):
            path = _header_value(line)
            if not path:
                i += 1
                continue

            move_path = None
            i += 1
            if i < end_idx and lines[i].startswith(MOVE_TO_PREFIX):
                move_path = _header_value(lines[i]) or None
                i += 1

            i, hunks = _skip_update_hunks(lines, i, end_idx)
            entries.append(PatchEntry(PatchAction.UPDATE, path, move_path, hunks))

        else:
            i += 1

    return entries


def parse_file_paths(patch_text: str) -> list[str]:
    """Return every path a patch will add, delete, update or move to.

    Paths are returned in record order and are not deduplicated.

    Raises:
        PatchParseError: If the Begin/End markers are missing or inverted
    """
    paths: list[str] = []
    for entry in parse_patch(patch_text):
        paths.extend(entry.paths)
    return paths


def _find_marker(lines: list[str], marker: str) -> int:
    for idx, line in enumerate(lines):
        if line.strip() == marker:
            return idx
    return -1


def _header_value(line: str) -> str:
    return line.split(":", 1)[1].strip()


def _skip_add_content(lines: list[str], start: int, end: int) -> int:
    i = start
    while i < end and not lines[i].startswith(RECORD_PREFIX):
        i += 1
    return i


def _skip_update_hunks(lines: list[str], start: int, end: int) -> tuple[int, int]:
    """Skip the hunks of an update record, returning (next index, hunk count)."""
    i = start
    hunks = 0

    while i < end and not lines[i].startswith(RECORD_PREFIX):
        if not lines[i].startswith(HUNK_PREFIX):
            i += 1
            continue

        hunks += 1
        i += 1
        while i < end:
            line = lines[i]
            if line == END_OF_FILE_MARKER:
                i += 1
                break
            if line.startswith(HUNK_PREFIX) or line.startswith(RECORD_PREFIX):
                break
            i += 1

    return i, hunks


__all__ = [
    "PatchParseError",
    "PatchAction",
    "PatchEntry",
    "strip_heredoc",
    "parse_patch",
    "parse_file_paths",
]
