"""Audit logging for agentbox policy decisions.

This module provides structured JSONL audit logging with:
- JSONL format for machine-readable logs
- Log rotation by size
- One entry per denial, filtered result, config load and session event
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger("agentbox.audit")


class AuditEventType(str, Enum):
    """Types of audit events."""

    # Tool events
    TOOL_DENIED = "tool_denied"
    TOOL_REJECTED = "tool_rejected"
    RESULT_FILTERED = "result_filtered"

    # Config events
    CONFIG_LOADED = "config_loaded"
    CONFIG_ERROR = "config_error"

    # Session events
    SESSION_CREATED = "session_created"
    SESSION_DELETED = "session_deleted"


class AuditEntry(BaseModel):
    """A single audit log entry.

    Attributes:
        timestamp: ISO 8601 timestamp
        event_type: Type of audit event
        session_id: Host session identifier
        tool: Tool name (if applicable)
        target: Path or URL involved (if applicable)
        allowed: Whether the operation was allowed
        reason: Human-readable explanation
        metadata: Additional context
    """

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    event_type: AuditEventType
    session_id: str | None = None
    tool: str | None = None
    target: str | None = None
    allowed: bool | None = None
    reason: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class AuditLogConfig(BaseModel):
    """Configuration for the audit logger.

    Attributes:
        enabled: Whether audit logging is enabled
        log_path: Path to the audit log file
        max_file_size_mb: Maximum size before rotation (MB)
        max_file_size_bytes: Exact size limit, takes precedence when set
        max_files: Maximum number of rotated files to keep
    """

    enabled: bool = True
    log_path: Path = Field(default=Path("./logs/agentbox-audit.jsonl"))
    max_file_size_mb: int = 10
    max_file_size_bytes: int | None = None
    max_files: int = 5


class AuditLogger:
    """Thread-safe JSONL audit logger with size-based rotation."""

    def __init__(self, config: AuditLogConfig | None = None):
        self.config = config or AuditLogConfig()
        self._file_handle: Any | None = None
        self._lock = threading.Lock()
        self._current_file_size = 0

        if self.config.enabled:
            self._initialize_log_file()

    def _initialize_log_file(self) -> None:
        """Open the log file, creating directories if needed."""
        try:
            self.config.log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(self.config.log_path, "a", encoding="utf-8")
            self._current_file_size = self.config.log_path.stat().st_size
            logger.info(f"Audit logging initialized: {self.config.log_path}")
        except OSError as e:
            logger.error(f"Failed to initialize audit log: {e}")
            self.config.enabled = False

    def _max_size_bytes(self) -> int:
        if self.config.max_file_size_bytes is not None:
            return self.config.max_file_size_bytes
        return self.config.max_file_size_mb * 1024 * 1024

    def _rotate_logs(self) -> None:
        """Move the current log aside and prune old rotations."""
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

        log_path = self.config.log_path
        timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S_%f")
        rotated_path = log_path.parent / f"{log_path.stem}_{timestamp}{log_path.suffix}"

        try:
            log_path.rename(rotated_path)
            logger.info(f"Rotated audit log to: {rotated_path}")
        except OSError as e:
            logger.error(f"Failed to rotate audit log: {e}")

        rotated_files = sorted(
            log_path.parent.glob(f"{log_path.stem}_*{log_path.suffix}"),
            key=lambda p: p.name,
            reverse=True,
        )
        for old_file in rotated_files[max(self.config.max_files - 1, 0) :]:
            try:
                old_file.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove old audit log {old_file}: {e}")

        self._current_file_size = 0

    def log_raw(self, entry: AuditEntry) -> None:
        """Append an entry to the log."""
        if not self.config.enabled:
            return

        json_line = json.dumps(entry.model_dump(mode="json", exclude_none=True), default=str) + "\n"

        with self._lock:
            if self._current_file_size >= self._max_size_bytes():
                self._rotate_logs()
            if not self._file_handle:
                self._initialize_log_file()
            if not self._file_handle:
                return

            self._file_handle.write(json_line)
            self._file_handle.flush()
            self._current_file_size += len(json_line.encode("utf-8"))

    def close(self) -> None:
        """Close the log file."""
        with self._lock:
            if self._file_handle:
                self._file_handle.close()
                self._file_handle = None

    # --- High-level logging methods ---

    def log_denial(
        self,
        tool: str,
        reason: str,
        target: str | None = None,
        session_id: str | None = None,
        matched_rules: list[str] | None = None,
        **metadata: Any,
    ) -> None:
        """Log a tool call blocked by policy."""
        self.log_raw(
            AuditEntry(
                event_type=AuditEventType.TOOL_DENIED,
                session_id=session_id,
                tool=tool,
                target=target,
                allowed=False,
                reason=reason,
                metadata={"matched_rules": matched_rules or [], **metadata},
            )
        )

    def log_rejection(self, tool: str, error: str, session_id: str | None = None) -> None:
        """Log a tool call whose arguments could not be evaluated."""
        self.log_raw(
            AuditEntry(
                event_type=AuditEventType.TOOL_REJECTED,
                session_id=session_id,
                tool=tool,
                allowed=False,
                reason=error,
            )
        )

    def log_filtered(self, tool: str, removed: int, session_id: str | None = None) -> None:
        """Log entries removed from a tool result."""
        self.log_raw(
            AuditEntry(
                event_type=AuditEventType.RESULT_FILTERED,
                session_id=session_id,
                tool=tool,
                metadata={"removed": removed},
            )
        )

    def log_config(self, ok: bool, details: str | None = None, **metadata: Any) -> None:
        """Log the outcome of loading the sandbox config."""
        self.log_raw(
            AuditEntry(
                event_type=AuditEventType.CONFIG_LOADED if ok else AuditEventType.CONFIG_ERROR,
                allowed=ok,
                reason=details,
                metadata=metadata,
            )
        )

    def log_session_event(self, event_type: AuditEventType, session_id: str) -> None:
        """Log a session created/deleted notification."""
        self.log_raw(AuditEntry(event_type=event_type, session_id=session_id))


__all__ = [
    "AuditEventType",
    "AuditEntry",
    "AuditLogConfig",
    "AuditLogger",
]
