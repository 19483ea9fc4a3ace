"""Config loader for agentbox.

Loads the sandbox configuration from a YAML/JSON file or from the JSON
printed by a sandbox shell's ``print-config`` command.
"""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ValidationError

from .models import SandboxConfig

if TYPE_CHECKING:
    from ..config.settings import Settings

logger = logging.getLogger("agentbox.policy")

# Default config file locations (in order of precedence)
DEFAULT_CONFIG_PATHS = [
    "./agentbox.yaml",
    "./.agentbox/config.yaml",
    "~/.config/agentbox/config.yaml",
]

PRINT_CONFIG_ARG = "print-config"
CONFIG_COMMAND_TIMEOUT = 30

NO_SANDBOX_MESSAGE = (
    "No sandbox config found. Set AGENTBOX_CONFIG_PATH or AGENTBOX_CONFIG_COMMAND, "
    "or run inside the sandbox shell to get filesystem and network sandboxing."
)


class ConfigError(Exception):
    """Error loading the sandbox configuration."""

    pass


class ConfigResult(BaseModel):
    """Outcome of acquiring the session's config.

    Exactly one of config and error is set.
    """

    ok: bool
    config: SandboxConfig | None = None
    error: str | None = None
    source: str | None = None


def parse_config(data: Any) -> SandboxConfig:
    """Validate a decoded config mapping.

    Raises:
        ConfigError: If the shape is wrong
    """
    if not isinstance(data, dict):
        raise ConfigError("Sandbox config must be a mapping")

    try:
        return SandboxConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid sandbox configuration: {e}")


def load_config_from_json(text: str) -> SandboxConfig:
    """Load a config from a JSON document.

    Raises:
        ConfigError: If the text is not valid JSON or has the wrong shape
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in sandbox config: {e}")
    return parse_config(data)


def load_config_from_file(path: str | Path) -> SandboxConfig:
    """Load a config from a YAML or JSON file.

    Args:
        path: Path to the config file

    Returns:
        SandboxConfig instance (not yet resolved against a project root)

    Raises:
        ConfigError: If the file cannot be loaded or parsed
    """
    path = Path(path).expanduser().resolve()

    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    if not path.is_file():
        raise ConfigError(f"Config path is not a file: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file: {e}")
    except UnicodeDecodeError as e:
        raise ConfigError(f"Config file is not valid UTF-8: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}")

    config = parse_config(data)
    logger.info(f"Loaded sandbox config from {path}")
    return config


def load_config_from_command(command: str, timeout: int = CONFIG_COMMAND_TIMEOUT) -> SandboxConfig:
    """Run ``<command> print-config`` and load the JSON it prints.

    Anything written to stderr is treated as a config error.

    Raises:
        ConfigError: If the command fails or prints an invalid config
    """
    try:
        proc = subprocess.run(
            [command, PRINT_CONFIG_ARG],
            capture_output=True,
            text=True,
            encoding="utf-8",
            timeout=timeout,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise ConfigError(f"Cannot run {command} {PRINT_CONFIG_ARG}: {e}")
    except UnicodeDecodeError as e:
        raise ConfigError(f"{command} {PRINT_CONFIG_ARG} printed invalid UTF-8: {e}")

    error = proc.stderr.strip()
    if error:
        raise ConfigError(error)
    if proc.returncode != 0:
        raise ConfigError(f"{command} {PRINT_CONFIG_ARG} exited with status {proc.returncode}")

    config = load_config_from_json(proc.stdout)
    logger.info(f"Loaded sandbox config from {command} {PRINT_CONFIG_ARG}")
    return config


def find_config_command(settings: Settings) -> str | None:
    """Pick the print-config command: explicit setting, else a sandbox $SHELL."""
    if settings.config_command:
        return settings.config_command

    shell = os.environ.get("SHELL")
    if shell and re.search(settings.sandbox_shell_pattern, shell):
        return shell
    return None


def load_config(settings: Settings) -> tuple[SandboxConfig, str]:
    """Load the raw config from the configured source.

    Precedence:
    1. AGENTBOX_CONFIG_PATH
    2. AGENTBOX_CONFIG_COMMAND, or $SHELL when it is the sandbox shell
    3. Default config file locations

    Returns:
        (config, description of its source)

    Raises:
        ConfigError: If no source is found or the source is invalid
    """
    if settings.config_path:
        return load_config_from_file(settings.config_path), str(settings.config_path)

    command = find_config_command(settings)
    if command:
        return load_config_from_command(command), f"{command} {PRINT_CONFIG_ARG}"

    for path_str in DEFAULT_CONFIG_PATHS:
        path = Path(path_str).expanduser()
        if path.exists():
            return load_config_from_file(path), str(path)

    raise ConfigError(NO_SANDBOX_MESSAGE)


def get_config(settings: Settings, project_root: str) -> ConfigResult:
    """Load and resolve the session config, reporting failure instead of raising.

    Whether to continue unprotected on failure is the caller's decision.
    """
    try:
        config, source = load_config(settings)
        resolved = config.resolve(project_root)
    except ConfigError as e:
        logger.warning(f"Sandbox config unavailable: {e}")
        return ConfigResult(ok=False, error=f"Config error:\n\n{e}")

    return ConfigResult(ok=True, config=resolved, source=source)


def save_config_to_file(config: SandboxConfig, path: str | Path) -> None:
    """Save a config to a YAML file using the external key names.

    Raises:
        ConfigError: If the file cannot be written
    """
    path = Path(path).expanduser().resolve()
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        data = config.model_dump(by_alias=True, mode="json")
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        logger.info(f"Saved sandbox config to {path}")
    except OSError as e:
        raise ConfigError(f"Cannot write config file: {e}")


__all__ = [
    "ConfigError",
    "ConfigResult",
    "DEFAULT_CONFIG_PATHS",
    "parse_config",
    "load_config_from_json",
    "load_config_from_file",
    "load_config_from_command",
    "find_config_command",
    "load_config",
    "get_config",
    "save_config_to_file",
]
