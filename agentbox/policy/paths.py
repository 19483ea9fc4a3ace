"""Lexical path handling for the policy engine.

Paths are reasoned about as declared strings: nothing here touches the
filesystem, resolves symlinks or checks for existence.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

# "~" alone or followed by a separator; "~user" is left alone
_HOME_MARKER = re.compile(r"^~(?=$|/|\\)")


def expand_home(path: str, home: str | None = None) -> str:
    """Substitute a leading bare ``~`` with the home directory."""
    if home is None:
        home = os.environ.get("HOME") or str(Path.home())
    return _HOME_MARKER.sub(lambda _: home, path, count=1)


def normalize_path(path: str, project_root: str, home: str | None = None) -> str:
    """Return an absolute form of path.

    Absolute paths come back unchanged (after home expansion). Relative
    paths are joined onto project_root and lexically normalized, so
    ``"."`` becomes the project root itself.

    Raises:
        TypeError: If path is not a string
    """
    if not isinstance(path, str):
        raise TypeError(f"Path must be a string, got {type(path).__name__}")

    expanded = expand_home(path, home)
    if os.path.isabs(expanded):
        return expanded

    return os.path.normpath(os.path.join(project_root, expanded))


def matches_prefix(path: str, prefix: str, segment_match: bool = False) -> bool:
    """Check whether a normalized path falls under a configured prefix.

    The default is a literal string-prefix test, so ``/a/allowed`` also
    matches ``/a/allowedX``. With segment_match the prefix must be the
    whole path or be followed by a separator.
    """
    if not path.startswith(prefix):
        return False
    if not segment_match:
        return True
    if len(path) == len(prefix) or prefix.endswith(("/", os.sep)):
        return True
    return path[len(prefix)] in ("/", os.sep)


def first_matching_prefix(
    path: str,
    prefixes: tuple[str, ...] | list[str],
    segment_match: bool = False,
) -> str | None:
    """Return the first prefix that path falls under, if any."""
    for prefix in prefixes:
        if matches_prefix(path, prefix, segment_match):
            return prefix
    return None


__all__ = [
    "expand_home",
    "normalize_path",
    "matches_prefix",
    "first_matching_prefix",
]
