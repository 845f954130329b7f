"""Core framework components for the ocli CLI."""

from ocli.core.exceptions import (
    OcliError,
    ConfigurationError,
    ValidationError,
    ExecutionError,
    PostgresError,
    PostgresConnectionError,
    SupervisorError,
)

from ocli.core.context import ExecutionContext, create_context
from ocli.core.output import console, Console, Verbosity
from ocli.core.config import OcliConfig, PGSettings
from ocli.core.audit import AuditLogger, AuditEvent, AuditEventType, AuditResult, get_audit_logger
from ocli.core.executor import CommandExecutor, CommandResult

__all__ = [
    # Exceptions
    "OcliError",
    "ConfigurationError",
    "ValidationError",
    "ExecutionError",
    "PostgresError",
    "PostgresConnectionError",
    "SupervisorError",
    # Context
    "ExecutionContext",
    "create_context",
    # Output
    "console",
    "Console",
    "Verbosity",
    # Config
    "OcliConfig",
    "PGSettings",
    # Audit
    "AuditLogger",
    "AuditEvent",
    "AuditEventType",
    "AuditResult",
    "get_audit_logger",
    # Executor
    "CommandExecutor",
    "CommandResult",
]
