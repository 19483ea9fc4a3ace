"""Post-hoc filtering of listing and search results.

Tool results are classified into a closed set of variants before
filtering:
- ListingResult: a mapping with a ``files`` list of path strings
- MatchResult: a mapping with a ``matches`` list of records, each
  optionally carrying its path under ``file``
- OpaqueResult: anything else, passed through untouched

Entries whose path the filesystem policy denies for reading are dropped.
An entry whose path cannot be normalized is dropped as well.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .conditions import is_path_blocked
from .models import FilesystemConfig, Operation, ToolKind

logger = logging.getLogger("agentbox.policy")

FILTERED_TOOLS = frozenset({ToolKind.GLOB, ToolKind.GREP, ToolKind.LIST})

MATCH_PATH_KEY = "file"


@dataclass(frozen=True)
class ListingResult:
    payload: Mapping[str, Any]

    @property
    def files(self) -> list[Any]:
        return self.payload["files"]


@dataclass(frozen=True)
class MatchResult:
    payload: Mapping[str, Any]

    @property
    def matches(self) -> list[Any]:
        return self.payload["matches"]


@dataclass(frozen=True)
class OpaqueResult:
    payload: Any


ToolResult = ListingResult | MatchResult | OpaqueResult


def classify_result(payload: Any) -> ToolResult:
    """Wrap a raw tool result in its result variant."""
    if isinstance(payload, Mapping):
        if isinstance(payload.get("files"), list):
            return ListingResult(payload)
        if isinstance(payload.get("matches"), list):
            return MatchResult(payload)
    return OpaqueResult(payload)


def filter_results(
    tool: ToolKind | str,
    payload: Any,
    config: FilesystemConfig,
    project_root: str,
) -> Any:
    """Remove entries the filesystem policy does not let the agent read.

    Args:
        tool: Tool that produced the payload
        payload: Raw tool result; never mutated
        config: Resolved filesystem policy
        project_root: Root that relative result paths are resolved against

    Returns:
        A payload of the same shape with blocked entries removed, or the
        original payload if the tool or shape is not filterable
    """
    if ToolKind.parse(tool) not in FILTERED_TOOLS:
        return payload

    result = classify_result(payload)

    if isinstance(result, ListingResult):
        kept = [f for f in result.files if _is_readable(f, config, project_root)]
        _log_dropped(tool, len(result.files) - len(kept))
        return {**result.payload, "files": kept}

    if isinstance(result, MatchResult):
        kept = [m for m in result.matches if _keep_match(m, config, project_root)]
        _log_dropped(tool, len(result.matches) - len(kept))
        return {**result.payload, "matches": kept}

    return result.payload


def _is_readable(path: Any, config: FilesystemConfig, project_root: str) -> bool:
    try:
        return not is_path_blocked(config, path, project_root, Operation.READ)
    except (TypeError, ValueError) as e:
        logger.debug(f"Dropping unparseable result path {path!r}: {e}")
        return False


def _keep_match(match: Any, config: FilesystemConfig, project_root: str) -> bool:
    if not isinstance(match, Mapping) or not match.get(MATCH_PATH_KEY):
        return True
    return _is_readable(match[MATCH_PATH_KEY], config, project_root)


def _log_dropped(tool: ToolKind | str, count: int) -> None:
    if count:
        logger.info(f"Filtered {count} blocked entries from {ToolKind.parse(tool).value} result")


__all__ = [
    "ListingResult",
    "MatchResult",
    "OpaqueResult",
    "ToolResult",
    "classify_result",
    "filter_results",
]
