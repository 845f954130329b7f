"""Service abstractions for PostgreSQL, odoo-bin and the Odoo server."""

from ocli.services.postgresql import PGConfig, PostgreSQLService, format_bytes
from ocli.services.odoo import OdooBin, InitOptions, get_backup_file_path
from ocli.services.supervisor import ServerSupervisor, SupervisorResult, SupervisorState

__all__ = [
    "PGConfig",
    "PostgreSQLService",
    "format_bytes",
    "OdooBin",
    "InitOptions",
    "get_backup_file_path",
    "ServerSupervisor",
    "SupervisorResult",
    "SupervisorState",
]
