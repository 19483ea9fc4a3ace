"""Host-facing adapter for agentbox.

SandboxHooks is what a tool-running host wires into its event dispatch:
``before_tool`` rejects calls the policy blocks, ``after_tool`` scrubs
listing and search results, and ``on_chat_message`` yields a one-off
notice per session saying whether the sandbox is active.

Per-session state lives in an explicit SessionStore keyed by session id,
populated and cleared by the host's session created/deleted events.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel

from .audit import AuditEventType, AuditLogConfig, AuditLogger
from .config.settings import Settings, get_settings
from .policy.conditions import InvalidUrlError
from .policy.engine import PolicyEngine, PolicyViolationError
from .policy.filters import ListingResult, MatchResult, classify_result
from .policy.loader import ConfigResult, get_config
from .policy.patch import PatchParseError

logger = logging.getLogger("agentbox.hooks")

CONFIG_HINT = "Configure: ~/.config/agentbox/config.yaml"


class SandboxNotice(BaseModel):
    """A message the host should surface to the user once per session."""

    title: str
    message: str
    variant: str  # success, warning


@dataclass
class SessionState:
    """Sandbox bookkeeping for one host session."""

    session_id: str
    created_at: datetime
    notice_shown: bool = False
    denials: int = 0


class SessionStore:
    """In-memory map of session id to SessionState."""

    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}
        self._lock = threading.Lock()

    def create(self, session_id: str) -> SessionState:
        with self._lock:
            state = self._sessions.get(session_id)
            if state is None:
                state = SessionState(session_id=session_id, created_at=datetime.now(UTC))
                self._sessions[session_id] = state
            return state

    def get(self, session_id: str) -> SessionState | None:
        with self._lock:
            return self._sessions.get(session_id)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def mark_notice_shown(self, session_id: str) -> bool:
        """Flag the session's notice as shown; False if it already was."""
        state = self.create(session_id)
        with self._lock:
            if state.notice_shown:
                return False
            state.notice_shown = True
            return True

    def record_denial(self, session_id: str) -> None:
        state = self.create(session_id)
        with self._lock:
            state.denials += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions


class SandboxHooks:
    """Binds one project's policy engine to host tool events.

    When no valid config could be loaded the hooks let every call
    through; the notice tells the user the session is unprotected.
    """

    def __init__(
        self,
        config_result: ConfigResult,
        project_root: str,
        audit: AuditLogger | None = None,
    ):
        self.config_result = config_result
        self.project_root = project_root
        self.audit = audit or AuditLogger(AuditLogConfig(enabled=False))
        self.sessions = SessionStore()
        self.engine: PolicyEngine | None = None

        if config_result.ok and config_result.config is not None:
            self.engine = PolicyEngine(config_result.config, project_root, resolved=True)
            self.audit.log_config(True, source=config_result.source, project_root=project_root)
        else:
            logger.warning(f"Sandbox disabled for {project_root}: {config_result.error}")
            self.audit.log_config(False, config_result.error, project_root=project_root)

    @classmethod
    def create(
        cls,
        directory: str,
        worktree: str | None = None,
        settings: Settings | None = None,
    ) -> SandboxHooks:
        """Load the config for a project and build its hooks.

        Args:
            directory: The host's working directory
            worktree: Version-control root, preferred over directory
            settings: Settings to use (default: from environment)
        """
        settings = settings or get_settings()
        project_root = os.path.abspath(worktree or directory)
        audit = AuditLogger(
            AuditLogConfig(
                enabled=settings.audit_log_enabled,
                log_path=settings.audit_log_path,
            )
        )
        return cls(get_config(settings, project_root), project_root, audit)

    @property
    def active(self) -> bool:
        return self.engine is not None

    # --- Session lifecycle ---

    def on_session_created(self, session_id: str) -> None:
        self.sessions.create(session_id)
        self.audit.log_session_event(AuditEventType.SESSION_CREATED, session_id)

    def on_session_deleted(self, session_id: str) -> None:
        if self.sessions.delete(session_id):
            self.audit.log_session_event(AuditEventType.SESSION_DELETED, session_id)

    def on_chat_message(self, session_id: str) -> SandboxNotice | None:
        """Return the sandbox notice on a session's first message, else None."""
        if not self.sessions.mark_notice_shown(session_id):
            return None

        if not self.active:
            return SandboxNotice(
                title="No sandbox detected",
                message=self.config_result.error or "Sandbox config unavailable",
                variant="warning",
            )

        return SandboxNotice(title="Sandbox activated", message=CONFIG_HINT, variant="success")

    # --- Tool events ---

    def before_tool(
        self,
        tool: str,
        args: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> None:
        """Reject a tool call that the policy blocks.

        Raises:
            PolicyViolationError: If the call is denied
            PatchParseError: If an apply_patch envelope is malformed
            InvalidUrlError: If a webfetch URL is malformed
        """
        if self.engine is None:
            return

        try:
            self.engine.authorize(tool, args)
        except PolicyViolationError as e:
            decision = e.decision
            if session_id:
                self.sessions.record_denial(session_id)
            self.audit.log_denial(
                tool=str(tool),
                reason=decision.reason,
                target=decision.target,
                session_id=session_id,
                matched_rules=decision.matched_rules,
            )
            raise
        except (PatchParseError, InvalidUrlError) as e:
            self.audit.log_rejection(str(tool), str(e), session_id=session_id)
            raise

    def after_tool(self, tool: str, output: Any, session_id: str | None = None) -> Any:
        """Return output with entries the agent may not read removed."""
        if self.engine is None:
            return output

        filtered = self.engine.filter_output(tool, output)
        if filtered is not output:
            removed = _entry_count(output) - _entry_count(filtered)
            if removed:
                self.audit.log_filtered(str(tool), removed, session_id=session_id)
        return filtered


def _entry_count(payload: Any) -> int:
    result = classify_result(payload)
    if isinstance(result, ListingResult):
        return len(result.files)
    if isinstance(result, MatchResult):
        return len(result.matches)
    return 0


__all__ = [
    "SandboxHooks",
    "SandboxNotice",
    "SessionState",
    "SessionStore",
]
