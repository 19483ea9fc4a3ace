"""Policy engine for agentbox.

The policy module decides, per tool call, whether an autonomous agent may
touch a filesystem path or network host, and scrubs listing and search
results of entries it may not read. It is a cooperative layer that the
host consults before every sensitive operation, not an OS-level sandbox.

Key components:
- PolicyEngine: Facade with authorize() and filter_output()
- SandboxConfig: Filesystem and network policy for one session
- PolicyDecision: Result of policy evaluation
- parse_file_paths: Paths touched by a multi-file patch envelope

Usage:
    from agentbox.policy import PolicyEngine, PolicyViolationError

    engine = PolicyEngine(config, project_root)
    try:
        engine.authorize("write", {"filePath": "src/app.py"})
    except PolicyViolationError as e:
        print(e.decision.reason)

Precedence:
    Reads are allowed unless a denyRead prefix matches.
    Writes are denied unless an allowWrite prefix matches and no denyWrite
    prefix does; denyWrite always wins.
    Network access is denied unless the host matches allowedDomains and
    does not match deniedDomains.
"""

from .conditions import (
    InvalidUrlError,
    evaluate_filesystem_condition,
    evaluate_network_condition,
    extract_host,
    host_matches,
    is_host_allowed,
    is_path_blocked,
)
from .engine import (
    DenialError,
    PolicyEngine,
    PolicyViolationError,
)
from .filters import (
    ListingResult,
    MatchResult,
    OpaqueResult,
    classify_result,
    filter_results,
)
from .loader import (
    ConfigError,
    ConfigResult,
    get_config,
    load_config,
    load_config_from_command,
    load_config_from_file,
    load_config_from_json,
    save_config_to_file,
)
from .models import (
    FilesystemConfig,
    NetworkConfig,
    Operation,
    PathInfo,
    PolicyDecision,
    SandboxConfig,
    ToolKind,
)
from .patch import (
    PatchAction,
    PatchEntry,
    PatchParseError,
    parse_file_paths,
    parse_patch,
    strip_heredoc,
)
from .paths import normalize_path

__all__ = [
    # Engine
    "PolicyEngine",
    "PolicyViolationError",
    "DenialError",
    # Models
    "Operation",
    "ToolKind",
    "PathInfo",
    "PolicyDecision",
    "FilesystemConfig",
    "NetworkConfig",
    "SandboxConfig",
    # Loader
    "ConfigError",
    "ConfigResult",
    "get_config",
    "load_config",
    "load_config_from_command",
    "load_config_from_file",
    "load_config_from_json",
    "save_config_to_file",
    # Conditions
    "InvalidUrlError",
    "evaluate_filesystem_condition",
    "evaluate_network_condition",
    "extract_host",
    "host_matches",
    "is_host_allowed",
    "is_path_blocked",
    "normalize_path",
    # Patches
    "PatchAction",
    "PatchEntry",
    "PatchParseError",
    "parse_file_paths",
    "parse_patch",
    "strip_heredoc",
    # Results
    "ListingResult",
    "MatchResult",
    "OpaqueResult",
    "classify_result",
    "filter_results",
]
