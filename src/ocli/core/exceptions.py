"""Custom exceptions for the ocli CLI.

All exceptions provide:
- Clear error messages
- Optional hints for resolution
- Optional details for debugging
- Exit codes for proper shell integration
"""

from typing import Optional


class OcliError(Exception):
    """Base exception for all ocli errors.

    Attributes:
        message: Human-readable error description
        hint: Suggested action to resolve the error
        details: Additional context for debugging
        exit_code: Shell exit code (1-127)
    """

    exit_code: int = 1

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or []

    def __str__(self) -> str:
        return self.message


class ConfigurationError(OcliError):
    """Configuration file or settings errors.

    Raised when:
    - ocli.yml is unreadable or not valid YAML
    - The Odoo server config is missing database parameters
    - A managed file (odoo.conf, pyrightconfig.json) cannot be parsed
    """
    exit_code = 2


class ValidationError(OcliError):
    """Input validation errors.

    Raised when:
    - A database name breaks PostgreSQL identifier rules
    - A required argument is missing
    """
    exit_code = 3


class ExecutionError(OcliError):
    """External command failures.

    Raised when:
    - odoo-bin returns a non-zero exit code
    - The binary cannot be found or executed
    """
    exit_code = 5

    def __init__(
        self,
        message: str,
        *,
        command: Optional[str] = None,
        return_code: Optional[int] = None,
        output: Optional[str] = None,
        hint: Optional[str] = None,
        details: Optional[list[str]] = None,
    ) -> None:
        if not details:
            details = []
        if return_code is not None:
            details.append(f"Exit code: {return_code}")
        if output:
            details.append(f"Output: {output.strip()}")
        super().__init__(message, hint=hint, details=details)
        self.command = command
        self.return_code = return_code
        self.output = output


# Domain-specific exceptions

class PostgresError(OcliError):
    """PostgreSQL-specific errors.

    Raised when:
    - A catalog query fails
    - CREATE/DROP/ALTER DATABASE fails
    """
    exit_code = 10


class PostgresConnectionError(PostgresError):
    """PostgreSQL connectivity errors.

    Raised when:
    - The server cannot be reached
    - Authentication or the initial ping fails
    """


class SupervisorError(OcliError):
    """Odoo server supervision errors.

    Raised when:
    - The server process cannot be spawned
    - The server cannot be killed after the shutdown grace period
    """
    exit_code = 11
