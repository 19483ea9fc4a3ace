"""Policy models for agentbox.

This module defines the data models for the policy engine including:
- SandboxConfig: The filesystem and network policy handed to the engine
- PolicyDecision: The result of a policy evaluation
- ToolKind / Operation: The closed set of policed tools and access kinds
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .paths import normalize_path


class Operation(str, Enum):
    """Kind of filesystem access requested by a tool call."""

    READ = "read"
    WRITE = "write"


class ToolKind(str, Enum):
    """Tools the policy engine knows how to police."""

    READ = "read"
    WRITE = "write"
    EDIT = "edit"
    GLOB = "glob"
    GREP = "grep"
    LIST = "list"
    WEBFETCH = "webfetch"
    APPLY_PATCH = "apply_patch"

    @classmethod
    def parse(cls, name: str | ToolKind) -> ToolKind | None:
        """Return the tool kind for a host tool name, or None if unknown."""
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            return None

    @property
    def is_directory_scoped(self) -> bool:
        return self in (ToolKind.GLOB, ToolKind.GREP, ToolKind.LIST)


class PathInfo(BaseModel):
    """A filesystem target resolved from a tool call's arguments."""

    model_config = ConfigDict(frozen=True)

    path: str
    is_directory: bool = False
    operation: Operation = Operation.READ


class PolicyDecision(BaseModel):
    """Result of evaluating a policy for a tool call.

    Attributes:
        allowed: Whether the operation is permitted
        reason: Human-readable explanation, shown verbatim on denial
        tool: The tool that was evaluated
        target: The offending (or checked) path or URL
        operation: Filesystem operation, if any
        matched_rules: Config entries that decided the outcome
        metadata: Additional context about the decision
    """

    allowed: bool = Field(..., description="Whether the operation is permitted")
    reason: str = Field(..., description="Human-readable explanation")
    tool: str | None = Field(default=None, description="Tool that was evaluated")
    target: str | None = Field(default=None, description="Path or URL evaluated")
    operation: Operation | None = Field(default=None, description="Filesystem operation")
    matched_rules: list[str] = Field(default_factory=list, description="Rules that matched")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Additional context")

    @classmethod
    def allow(
        cls,
        reason: str = "Allowed by policy",
        matched_rules: list[str] | None = None,
        **kwargs: Any,
    ) -> PolicyDecision:
        """Create an allow decision."""
        return cls(allowed=True, reason=reason, matched_rules=matched_rules or [], **kwargs)

    @classmethod
    def deny(
        cls,
        reason: str,
        matched_rules: list[str] | None = None,
        **kwargs: Any,
    ) -> PolicyDecision:
        """Create a deny decision."""
        return cls(allowed=False, reason=reason, matched_rules=matched_rules or [], **kwargs)


# -----------------------------------------------------------------------------
# Configuration Models
# -----------------------------------------------------------------------------


class FilesystemConfig(BaseModel):
    """Filesystem access policy.

    Attributes:
        deny_read: Path prefixes that may not be read (reads default to allow)
        allow_write: Path prefixes that may be written (writes default to deny)
        deny_write: Path prefixes that may never be written, even when allowed
        segment_match: Require a prefix to end on a path segment boundary
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    deny_read: tuple[str, ...] = Field(default=(), alias="denyRead")
    allow_write: tuple[str, ...] = Field(default=(), alias="allowWrite")
    deny_write: tuple[str, ...] = Field(default=(), alias="denyWrite")
    segment_match: bool = Field(default=False, alias="segmentMatch")

    def resolve(self, project_root: str) -> FilesystemConfig:
        """Return a copy with every prefix normalized against project_root."""
        return self.model_copy(
            update={
                "deny_read": tuple(normalize_path(p, project_root) for p in self.deny_read),
                "allow_write": tuple(normalize_path(p, project_root) for p in self.allow_write),
                "deny_write": tuple(normalize_path(p, project_root) for p in self.deny_write),
            }
        )


class NetworkConfig(BaseModel):
    """Network access policy.

    Attributes:
        allowed_domains: Hostnames or ``*.domain`` patterns that may be fetched
        denied_domains: Patterns that are always blocked (deny wins)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    allowed_domains: tuple[str, ...] = Field(default=(), alias="allowedDomains")
    denied_domains: tuple[str, ...] = Field(default=(), alias="deniedDomains")


class SandboxConfig(BaseModel):
    """Complete sandbox configuration for one session."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    filesystem: FilesystemConfig = Field(default_factory=FilesystemConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)

    def resolve(self, project_root: str) -> SandboxConfig:
        """Normalize filesystem prefixes for a given project root."""
        return self.model_copy(update={"filesystem": self.filesystem.resolve(project_root)})


__all__ = [
    "Operation",
    "ToolKind",
    "PathInfo",
    "PolicyDecision",
    "FilesystemConfig",
    "NetworkConfig",
    "SandboxConfig",
]
