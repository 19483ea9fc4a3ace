"""Condition evaluators for the policy engine.

This module decides individual filesystem and network accesses:
- Filesystem: deny-wins prefix matching, reads default to allow,
  writes default to deny
- Network: exact and ``*.domain`` host patterns, default deny
"""

from __future__ import annotations

from urllib.parse import urlparse

from .models import FilesystemConfig, NetworkConfig, Operation, PolicyDecision
from .paths import first_matching_prefix, normalize_path


class InvalidUrlError(ValueError):
    """Raised when a URL cannot be parsed into a hostname."""

    def __init__(self, url: object, reason: str = "cannot parse URL"):
        self.url = url
        super().__init__(f"Invalid URL {url!r}: {reason}")


def evaluate_filesystem_condition(
    config: FilesystemConfig,
    target_path: str,
    project_root: str,
    operation: Operation | str = Operation.READ,
) -> PolicyDecision:
    """Evaluate filesystem access against a resolved FilesystemConfig.

    Args:
        config: Filesystem policy with already-normalized prefixes
        target_path: The path being accessed, absolute or project-relative
        project_root: Root that relative paths are resolved against
        operation: read or write

    Returns:
        PolicyDecision indicating whether access is allowed
    """
    operation = Operation(operation)
    normalized = normalize_path(target_path, project_root)
    segment = config.segment_match

    if operation == Operation.WRITE:
        # Every deny prefix is consulted before any allow prefix
        denied = first_matching_prefix(normalized, config.deny_write, segment)
        if denied is not None:
            return PolicyDecision.deny(
                reason=f"Path matches denyWrite entry: {denied}",
                matched_rules=[f"deny_write:{denied}"],
                target=normalized,
                operation=operation,
            )

        allowed = first_matching_prefix(normalized, config.allow_write, segment)
        if allowed is not None:
            return PolicyDecision.allow(
                reason=f"Path allowed by allowWrite entry: {allowed}",
                matched_rules=[f"allow_write:{allowed}"],
                target=normalized,
                operation=operation,
            )

        return PolicyDecision.deny(
            reason="Path not in allowWrite list",
            target=normalized,
            operation=operation,
        )

    denied = first_matching_prefix(normalized, config.deny_read, segment)
    if denied is not None:
        return PolicyDecision.deny(
            reason=f"Path matches denyRead entry: {denied}",
            matched_rules=[f"deny_read:{denied}"],
            target=normalized,
            operation=operation,
        )

    return PolicyDecision.allow(
        reason="Path not explicitly denied",
        target=normalized,
        operation=operation,
    )


def is_path_blocked(
    config: FilesystemConfig,
    target_path: str,
    project_root: str,
    operation: Operation | str = Operation.READ,
) -> bool:
    """Return True if policy blocks the operation on target_path."""
    return not evaluate_filesystem_condition(config, target_path, project_root, operation).allowed


def host_matches(host: str, patterns: tuple[str, ...] | list[str]) -> bool:
    """Check a hostname against a list of domain patterns.

    Supports:
    - Exact match: "example.com"
    - Wildcard subdomain: "*.example.com" (also matches "example.com")
    """
    return _first_matching_domain(host, patterns) is not None


def is_host_allowed(config: NetworkConfig, host: str) -> bool:
    """Return True if outbound access to host is permitted."""
    if host_matches(host, config.denied_domains):
        return False
    return host_matches(host, config.allowed_domains)


def extract_host(url: object) -> str:
    """Return the hostname component of url.

    Raises:
        InvalidUrlError: If url is not a string with a scheme and host
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidUrlError(url, "a URL string is required")

    try:
        parsed = urlparse(url.strip())
        host = parsed.hostname
    except ValueError as e:
        raise InvalidUrlError(url, str(e)) from e

    if not parsed.scheme or not host:
        raise InvalidUrlError(url, "missing scheme or host")
    return host


def evaluate_network_condition(config: NetworkConfig, url: str) -> PolicyDecision:
    """Evaluate network access to url against policy conditions.

    Raises:
        InvalidUrlError: If the URL is malformed
    """
    host = extract_host(url)

    denied = _first_matching_domain(host, config.denied_domains)
    if denied is not None:
        return PolicyDecision.deny(
            reason=f"Domain matches denied pattern: {denied}",
            matched_rules=[f"denied_domain:{denied}"],
            target=url,
            metadata={"host": host},
        )

    allowed = _first_matching_domain(host, config.allowed_domains)
    if allowed is None:
        return PolicyDecision.deny(
            reason="Domain not in allowed list",
            target=url,
            metadata={"host": host},
        )

    return PolicyDecision.allow(
        reason=f"Domain allowed by pattern: {allowed}",
        matched_rules=[f"allowed_domain:{allowed}"],
        target=url,
        metadata={"host": host},
    )


# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------


def _match_domain(host: str, pattern: str) -> bool:
    host = host.lower().strip()
    pattern = pattern.lower().strip()

    if host == pattern:
        return True

    if pattern.startswith("*."):
        base = pattern[2:]
        return host == base or host.endswith("." + base)

    return False


def _first_matching_domain(host: str, patterns: tuple[str, ...] | list[str]) -> str | None:
    for pattern in patterns:
        if _match_domain(host, pattern):
            return pattern
    return None


__all__ = [
    "InvalidUrlError",
    "evaluate_filesystem_condition",
    "is_path_blocked",
    "host_matches",
    "is_host_allowed",
    "extract_host",
    "evaluate_network_condition",
]
