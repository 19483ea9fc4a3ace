"""Policy engine for agentbox.

The PolicyEngine is the facade the host consults before and after every
tool call. It resolves the path(s) or URL a call touches, decides them
against the session's SandboxConfig and either lets the call proceed,
raises a PolicyViolationError, or scrubs the call's result.

Every method is a pure function of the (immutable) config and its
arguments, so one engine can serve concurrent tool calls.
"""

from __future__ import annotations

import logging
from typing import Any

from .conditions import evaluate_filesystem_condition, evaluate_network_condition
from .filters import filter_results
from .models import Operation, PathInfo, PolicyDecision, SandboxConfig, ToolKind
from .patch import parse_file_paths

logger = logging.getLogger("agentbox.policy")

# The project root itself is never evaluated for directory-scoped tools
PROJECT_ROOT_PATH = "."


class PolicyViolationError(Exception):
    """Raised when a tool call is blocked by policy."""

    def __init__(self, decision: PolicyDecision):
        self.decision = decision
        super().__init__(decision.reason)


DenialError = PolicyViolationError


class PolicyEngine:
    """Enforces the sandbox policy for one project root.

    Usage:
        engine = PolicyEngine(config, "/home/me/project")
        engine.authorize("write", {"filePath": "src/app.py"})
        output = engine.filter_output("glob", {"files": [...]})
    """

    def __init__(self, config: SandboxConfig, project_root: str, resolved: bool = False):
        """Initialize the policy engine.

        Args:
            config: Sandbox configuration as loaded from its source
            project_root: Absolute root that relative paths resolve against
            resolved: Set when config prefixes are already normalized
        """
        self.project_root = project_root
        self.config = config if resolved else config.resolve(project_root)
        fs = self.config.filesystem
        logger.info(
            f"Policy engine initialized for {project_root} "
            f"({len(fs.deny_read)} denyRead, {len(fs.allow_write)} allowWrite, "
            f"{len(fs.deny_write)} denyWrite, "
            f"{len(self.config.network.allowed_domains)} allowed domains)"
        )

    def evaluate(self, tool: ToolKind | str, args: dict[str, Any] | None = None) -> PolicyDecision:
        """Evaluate a tool call against the policy.

        Args:
            tool: Tool name as reported by the host
            args: The tool's arguments

        Returns:
            The first denying decision, or an allow decision

        Raises:
            PatchParseError: If an apply_patch envelope is malformed
            InvalidUrlError: If a webfetch URL is malformed
        """
        args = args or {}
        kind = ToolKind.parse(tool)
        tool_name = kind.value if kind else str(tool)

        logger.debug(f"Evaluating policy for {tool_name}")

        if kind is None:
            return PolicyDecision.allow(reason="Tool is not policed", tool=tool_name)

        if kind == ToolKind.WEBFETCH:
            return self._evaluate_webfetch(args)

        if kind == ToolKind.APPLY_PATCH:
            return self._evaluate_patch(args)

        path_info = self.extract_path_info(kind, args)
        if path_info is None:
            return PolicyDecision.allow(reason="No path to check", tool=tool_name)

        if path_info.is_directory and path_info.path == PROJECT_ROOT_PATH:
            return PolicyDecision.allow(
                reason="Project root is always permitted",
                tool=tool_name,
                target=path_info.path,
                operation=path_info.operation,
            )

        decision = evaluate_filesystem_condition(
            self.config.filesystem,
            path_info.path,
            self.project_root,
            path_info.operation,
        )
        if decision.allowed:
            return decision.model_copy(update={"tool": tool_name})

        return decision.model_copy(
            update={
                "tool": tool_name,
                "reason": f"{path_info.operation.value} {path_info.path}: Operation not permitted",
                "metadata": {**decision.metadata, "detail": decision.reason},
            }
        )

    def authorize(self, tool: ToolKind | str, args: dict[str, Any] | None = None) -> PolicyDecision:
        """Evaluate a tool call and raise if it is blocked.

        Returns:
            The allow decision

        Raises:
            PolicyViolationError: If policy blocks the call
            PatchParseError: If an apply_patch envelope is malformed
            InvalidUrlError: If a webfetch URL is malformed
        """
        decision = self.evaluate(tool, args)
        if not decision.allowed:
            logger.warning(f"Denied: {decision.reason}")
            raise PolicyViolationError(decision)
        return decision

    def filter_output(self, tool: ToolKind | str, payload: Any) -> Any:
        """Drop result entries the agent is not allowed to read."""
        return filter_results(tool, payload, self.config.filesystem, self.project_root)

    @staticmethod
    def extract_path_info(tool: ToolKind | str, args: dict[str, Any]) -> PathInfo | None:
        """Resolve the filesystem target of a single-path tool call.

        Returns None for tools that do not operate on a single path, or
        when a file tool is called without one.
        """
        kind = ToolKind.parse(tool)

        if kind in (ToolKind.READ, ToolKind.WRITE, ToolKind.EDIT):
            path = args.get("filePath") or args.get("file_path")
            if not path:
                return None
            operation = Operation.READ if kind == ToolKind.READ else Operation.WRITE
            return PathInfo(path=path, is_directory=False, operation=operation)

        if kind is not None and kind.is_directory_scoped:
            path = args.get("path") or PROJECT_ROOT_PATH
            return PathInfo(path=path, is_directory=True, operation=Operation.READ)

        return None

    def explain_decision(self, decision: PolicyDecision) -> str:
        """Generate a human-readable explanation of a policy decision."""
        lines = []

        if decision.allowed:
            lines.append(f"ALLOWED: {decision.reason}")
        else:
            lines.append(f"DENIED: {decision.reason}")

        if decision.target:
            lines.append(f"Target: {decision.target}")

        if decision.matched_rules:
            lines.append(f"Matched rules: {', '.join(decision.matched_rules)}")

        detail = decision.metadata.get("detail")
        if detail:
            lines.append(f"Detail: {detail}")

        return "\n".join(lines)

    # -------------------------------------------------------------------------
    # Internal Methods
    # -------------------------------------------------------------------------

    def _evaluate_webfetch(self, args: dict[str, Any]) -> PolicyDecision:
        url = args.get("url")
        decision = evaluate_network_condition(self.config.network, url)
        if decision.allowed:
            return decision.model_copy(update={"tool": ToolKind.WEBFETCH.value})

        return decision.model_copy(
            update={
                "tool": ToolKind.WEBFETCH.value,
                "reason": f"WebFetch {url}: Connection blocked by network allowlist",
                "metadata": {**decision.metadata, "detail": decision.reason},
            }
        )

    def _evaluate_patch(self, args: dict[str, Any]) -> PolicyDecision:
        tool_name = ToolKind.APPLY_PATCH.value
        patch_text = args.get("patchText") or args.get("patch_text")

        if not isinstance(patch_text, str) or not patch_text:
            return PolicyDecision.deny(
                reason=f"{tool_name}: patchText is required",
                tool=tool_name,
                operation=Operation.WRITE,
            )

        paths = parse_file_paths(patch_text)
        for path in paths:
            decision = evaluate_filesystem_condition(
                self.config.filesystem,
                path,
                self.project_root,
                Operation.WRITE,
            )
            if not decision.allowed:
                return decision.model_copy(
                    update={
                        "tool": tool_name,
                        "reason": f"{tool_name}: Write operation not permitted: {path}",
                        "metadata": {**decision.metadata, "detail": decision.reason, "paths": paths},
                    }
                )

        return PolicyDecision.allow(
            reason=f"All {len(paths)} patch paths are writable",
            tool=tool_name,
            operation=Operation.WRITE,
            metadata={"paths": paths},
        )


__all__ = [
    "PolicyEngine",
    "PolicyViolationError",
    "DenialError",
    "PROJECT_ROOT_PATH",
]
