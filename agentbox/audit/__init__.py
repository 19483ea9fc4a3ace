"""agentbox audit logging.

Writes a JSONL trail of what the sandbox blocked:
- Tool calls denied by policy
- Result entries filtered out of listings and searches
- Config load outcomes and session lifecycle

Example usage:
    from agentbox.audit import AuditLogConfig, AuditLogger

    audit = AuditLogger(AuditLogConfig(log_path=Path("logs/audit.jsonl")))
    audit.log_denial(tool="read", reason="read .env: Operation not permitted")
"""

from .logger import (
    AuditEntry,
    AuditEventType,
    AuditLogConfig,
    AuditLogger,
)

__all__ = [
    "AuditEntry",
    "AuditEventType",
    "AuditLogConfig",
    "AuditLogger",
]
