"""Configuration settings using Pydantic."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Sandbox config sources
    config_path: Path | None = Field(
        default=None,
        alias="AGENTBOX_CONFIG_PATH",
        description="Path to a YAML/JSON sandbox config file",
    )
    config_command: str | None = Field(
        default=None,
        alias="AGENTBOX_CONFIG_COMMAND",
        description="Executable whose `print-config` output is the sandbox config",
    )
    sandbox_shell_pattern: str = Field(
        default=r"opencode-shell$",
        alias="AGENTBOX_SANDBOX_SHELL_PATTERN",
        description="Regex identifying a sandbox shell in $SHELL",
    )

    # Project
    project_root: Path | None = Field(
        default=None,
        alias="AGENTBOX_PROJECT_ROOT",
        description="Root that relative paths resolve against (default: cwd)",
    )

    # Audit Logging
    audit_log_path: Path = Field(
        default=Path("./logs/agentbox-audit.jsonl"),
        alias="AGENTBOX_AUDIT_LOG_PATH",
        description="Path to audit log file (JSONL format)",
    )
    audit_log_enabled: bool = Field(
        default=False,
        alias="AGENTBOX_AUDIT_ENABLED",
        description="Enable the policy audit log",
    )

    # Logging
    log_level: str = Field(default="WARNING", alias="LOG_LEVEL")


@lru_cache
def get_settings() -> Settings:
    """Get application settings (cached)."""
    return Settings()
