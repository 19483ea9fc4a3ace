"""agentbox CLI.

Provides a command-line interface to the policy engine, including:
- Checking a single tool call against a sandbox config
- Filtering a tool result read from stdin
- Listing the paths a patch envelope touches
- Printing the resolved config
"""

import argparse
import json
import logging
import os
import sys

from .. import __version__
from ..policy.conditions import InvalidUrlError
from ..policy.engine import PolicyEngine
from ..policy.loader import ConfigError, load_config, load_config_from_file
from ..policy.models import SandboxConfig, ToolKind
from ..policy.patch import PatchParseError, parse_patch

EXIT_ALLOWED = 0
EXIT_DENIED = 1
EXIT_ERROR = 2


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="agentbox",
        description="agentbox - filesystem and network policy for tool-using agents",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        default=None,
        help="Sandbox config file (default: from AGENTBOX_* settings)",
    )
    common.add_argument(
        "--root",
        default=None,
        help="Project root (default: AGENTBOX_PROJECT_ROOT or cwd)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # check command
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Check whether a tool call is allowed",
        description="Evaluate one tool call; exits 0 if allowed, 1 if denied",
    )
    check_parser.add_argument(
        "tool",
        choices=[kind.value for kind in ToolKind],
        help="Tool name",
    )
    check_parser.add_argument(
        "--arg",
        dest="tool_args",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Tool argument, e.g. filePath=src/app.py (repeatable)",
    )
    check_parser.add_argument(
        "--patch-file",
        default=None,
        help="Read apply_patch patchText from this file ('-' for stdin)",
    )

    # filter command
    filter_parser = subparsers.add_parser(
        "filter",
        parents=[common],
        help="Filter a tool result read from stdin",
        description="Read a JSON tool result on stdin and print it with blocked entries removed",
    )
    filter_parser.add_argument("tool", help="Tool that produced the result")

    # patch-paths command
    patch_parser = subparsers.add_parser(
        "patch-paths",
        help="List the paths a patch touches",
        description="Print one '<action> <path>' line per path in a patch envelope",
    )
    patch_parser.add_argument(
        "file",
        nargs="?",
        default="-",
        help="Patch file (default: stdin)",
    )

    # print-config command
    subparsers.add_parser(
        "print-config",
        parents=[common],
        help="Print the resolved sandbox config as JSON",
    )

    return parser


def _read_text(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path) as f:
        return f.read()


def _project_root(args: argparse.Namespace) -> str:
    from ..config.settings import get_settings

    root = args.root or get_settings().project_root or os.getcwd()
    return os.path.abspath(str(root))


def _load_engine(args: argparse.Namespace) -> PolicyEngine:
    from ..config.settings import get_settings

    if args.config:
        config = load_config_from_file(args.config)
    else:
        config, _ = load_config(get_settings())
    return PolicyEngine(config, _project_root(args))


def _parse_tool_args(pairs: list[str]) -> dict[str, str]:
    tool_args = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid --arg {pair!r}, expected KEY=VALUE")
        tool_args[key] = value
    return tool_args


def run_check(args: argparse.Namespace) -> int:
    """Run the check command."""
    engine = _load_engine(args)
    tool_args = _parse_tool_args(args.tool_args)
    if args.patch_file:
        tool_args["patchText"] = _read_text(args.patch_file)

    decision = engine.evaluate(args.tool, tool_args)
    print(engine.explain_decision(decision))
    return EXIT_ALLOWED if decision.allowed else EXIT_DENIED


def run_filter(args: argparse.Namespace) -> int:
    """Run the filter command."""
    engine = _load_engine(args)
    payload = json.loads(sys.stdin.read())
    print(json.dumps(engine.filter_output(args.tool, payload), indent=2))
    return 0


def run_patch_paths(args: argparse.Namespace) -> int:
    """Run the patch-paths command."""
    for entry in parse_patch(_read_text(args.file)):
        print(f"{entry.action.value} {entry.file_path}")
        if entry.move_path:
            print(f"move {entry.move_path}")
    return 0


def run_print_config(args: argparse.Namespace) -> int:
    """Run the print-config command."""
    engine = _load_engine(args)
    config: SandboxConfig = engine.config
    print(json.dumps(config.model_dump(by_alias=True, mode="json"), indent=2))
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    from ..config.settings import get_settings

    logging.basicConfig(
        level=get_settings().log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "check":
            return run_check(args)
        elif args.command == "filter":
            return run_filter(args)
        elif args.command == "patch-paths":
            return run_patch_paths(args)
        elif args.command == "print-config":
            return run_print_config(args)
        else:
            parser.print_help()
            return EXIT_ERROR
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    except (ConfigError, PatchParseError, InvalidUrlError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
