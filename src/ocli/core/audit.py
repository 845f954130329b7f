"""Audit trail for operations that change databases, settings or the server.

Each event is one JSON object per line in ``~/.ocli/audit.log``. Values
under password-like keys are redacted before they are written. The file
is rotated by size (``audit.log.1`` ... ``audit.log.N``).

Audit failures never abort a command; they are reported at debug level.
Set ``OCLI_AUDIT=0`` to turn the trail off.
"""

import fcntl
import json
import os
import pwd
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from ocli.core.output import console


DEFAULT_LOG_PATH = Path.home() / ".ocli" / "audit.log"
DEFAULT_MAX_SIZE_MB = 10
DEFAULT_BACKUP_COUNT = 5

REDACTED = "***REDACTED***"
SENSITIVE_KEYS = ("password", "passwd", "secret", "token", "api_key")


class AuditEventType(Enum):
    """Auditable operations."""
    DATABASE_INIT = "database.init"
    DATABASE_CREATE = "database.create"
    DATABASE_COPY = "database.copy"
    DATABASE_RENAME = "database.rename"
    DATABASE_DROP = "database.drop"
    DATABASE_BACKUP = "database.backup"
    DATABASE_RESTORE = "database.restore"

    CONFIG_CREATE = "config.create"
    CONFIG_MODIFY = "config.modify"

    SERVER_START = "server.start"
    SERVER_STOP = "server.stop"


class AuditResult(Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    DRY_RUN = "dry_run"


def redact(key: str, value: Any) -> Any:
    """Replace values stored under sensitive keys, recursing into containers."""
    if any(word in key.lower() for word in SENSITIVE_KEYS):
        return REDACTED
    if isinstance(value, dict):
        return {k: redact(k, v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(key, v) for v in value]
    return value


def _current_user() -> str:
    try:
        return pwd.getpwuid(os.getuid()).pw_name
    except KeyError:
        return str(os.getuid())


@dataclass
class AuditEvent:
    """A single audited operation."""
    event_type: AuditEventType
    result: AuditResult
    target_type: str
    target_name: str
    message: Optional[str] = None
    error: Optional[str] = None
    parameters: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    actor: str = field(default_factory=_current_user)

    def to_dict(self, session_id: Optional[str] = None) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "session_id": session_id,
            "actor": self.actor,
            "event_type": self.event_type.value,
            "result": self.result.value,
            "target": {"type": self.target_type, "name": self.target_name},
            "parameters": redact("parameters", self.parameters),
            "message": self.message,
            "error": self.error,
        }


class AuditLogger:
    """Appends audit events to a JSON-lines file."""

    def __init__(
        self,
        log_path: Optional[Path] = None,
        max_size_mb: int = DEFAULT_MAX_SIZE_MB,
        backup_count: int = DEFAULT_BACKUP_COUNT,
        enabled: bool = True,
    ) -> None:
        self.log_path = Path(log_path or DEFAULT_LOG_PATH)
        self.max_size_bytes = max_size_mb * 1024 * 1024
        self.backup_count = backup_count
        self.enabled = enabled
        # Groups the events of one ocli invocation
        self.session_id = uuid.uuid4().hex

    def log(self, event: AuditEvent) -> None:
        if not self.enabled:
            return

        line = json.dumps(event.to_dict(self.session_id), default=str) + "\n"
        try:
            self.log_path.parent.mkdir(mode=0o750, parents=True, exist_ok=True)
            self._append(line)
            if self.log_path.stat().st_size > self.max_size_bytes:
                self._rotate()
        except OSError as e:
            console.debug(f"Audit log not written ({self.log_path}): {e}")

    def _append(self, line: str) -> None:
        fd = os.open(self.log_path, os.O_WRONLY | os.O_APPEND | os.O_CREAT, 0o640)
        with os.fdopen(fd, "a") as f:
            # Concurrent ocli processes append whole lines
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            f.write(line)
            f.flush()

    def _backup_path(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    def _rotate(self) -> None:
        self._backup_path(self.backup_count).unlink(missing_ok=True)
        for index in range(self.backup_count - 1, 0, -1):
            source = self._backup_path(index)
            if source.exists():
                source.rename(self._backup_path(index + 1))
        self.log_path.rename(self._backup_path(1))

    def log_success(
        self,
        event_type: AuditEventType,
        target_type: str,
        target_name: str,
        message: Optional[str] = None,
        parameters: Optional[dict[str, Any]] = None,
    ) -> None:
        self.log(AuditEvent(
            event_type, AuditResult.SUCCESS, target_type, target_name,
            message=message, parameters=parameters or {},
        ))

    def log_failure(
        self,
        event_type: AuditEventType,
        target_type: str,
        target_name: str,
        error: str,
    ) -> None:
        self.log(AuditEvent(event_type, AuditResult.FAILURE, target_type, target_name, error=error))

    def log_dry_run(
        self,
        event_type: AuditEventType,
        target_type: str,
        target_name: str,
        message: Optional[str] = None,
    ) -> None:
        self.log(AuditEvent(event_type, AuditResult.DRY_RUN, target_type, target_name, message=message))


_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Return the process audit logger, creating it on first use."""
    global _audit_logger
    if _audit_logger is None:
        enabled = os.environ.get("OCLI_AUDIT", "1").lower() not in ("0", "false", "no")
        _audit_logger = AuditLogger(enabled=enabled)
    return _audit_logger


def configure_audit_logger(
    log_path: Optional[Path] = None,
    enabled: bool = True,
) -> AuditLogger:
    """Replace the process audit logger."""
    global _audit_logger
    _audit_logger = AuditLogger(log_path=log_path, enabled=enabled)
    return _audit_logger
