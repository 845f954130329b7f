"""Options and helpers shared by command modules."""

from pathlib import Path
from typing import Annotated, NoReturn, Optional

import typer
from rich.markup import escape

from ocli.core import (
    CommandExecutor,
    ExecutionContext,
    OcliError,
    PGSettings,
    console,
    create_context,
)
from ocli.core.config import DEFAULT_SETTINGS_PATH, load_odoo_db_params
from ocli.services.odoo import OdooBin
from ocli.services.postgresql import PGConfig, PostgreSQLService


# Type aliases for common options
SettingsOption = Annotated[
    Optional[Path],
    typer.Option(
        "--settings",
        envvar="OCLI_SETTINGS",
        help=f"Path to the ocli settings file. Default: ./{DEFAULT_SETTINGS_PATH}",
        dir_okay=False,
    ),
]

BinOption = Annotated[
    Optional[Path],
    typer.Option("--bin", "-b", help="Path to the Odoo binary"),
]

OdooConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Odoo configuration file path (odoo.conf)"),
]

DatabaseOption = Annotated[
    Optional[str],
    typer.Option("--database", "-d", help="Database name"),
]

NewDatabaseOption = Annotated[
    Optional[str],
    typer.Option("--new-db", "-n", help="New database name"),
]

DumpPathOption = Annotated[
    Optional[Path],
    typer.Option("--dump-path", "-D", help="Backup directory"),
]

DryRunOption = Annotated[
    bool,
    typer.Option("--dry-run", help="Preview commands and SQL without executing"),
]

VerboseOption = Annotated[
    int,
    typer.Option("--verbose", "-v", count=True, help="Increase verbosity (-v, -vv)"),
]

QuietOption = Annotated[
    bool,
    typer.Option("--quiet", "-q", help="Only show errors"),
]

NoColorOption = Annotated[
    bool,
    typer.Option("--no-color", help="Disable colored output"),
]

DirectOption = Annotated[
    bool,
    typer.Option(
        "--direct",
        help="Operate on PostgreSQL directly instead of through odoo-bin (no filestore)",
    ),
]

# Connection overrides (take precedence over the Odoo config)
DBHostOption = Annotated[Optional[str], typer.Option("--db-host", help="PostgreSQL host")]
DBPortOption = Annotated[Optional[int], typer.Option("--db-port", help="PostgreSQL port")]
DBUserOption = Annotated[Optional[str], typer.Option("--db-user", help="PostgreSQL user")]
DBPasswordOption = Annotated[
    Optional[str],
    typer.Option("--db-password", envvar="OCLI_DB_PASSWORD", help="PostgreSQL password"),
]


def handle_error(error: OcliError) -> NoReturn:
    """Print a formatted error and exit with its code.

    Message text comes from odoo-bin output, file contents and exception
    strings, so it is escaped before Rich renders it.
    """
    console.error(escape(error.message))

    for detail in error.details:
        console.print(f"  [dim]{escape(detail)}[/dim]")

    if error.hint:
        console.hint(escape(error.hint))

    raise typer.Exit(error.exit_code)


def get_context(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    settings: Optional[Path] = None,
) -> ExecutionContext:
    """Create execution context from command options."""
    return create_context(
        dry_run=dry_run,
        verbose=verbose,
        quiet=quiet,
        no_color=no_color,
        settings=settings,
    )


def resolve_odoo_config(ctx: ExecutionContext, config_path: Optional[Path]) -> Path:
    """--config if given, else odoo.config_file from settings."""
    return config_path or ctx.config.odoo.config_file


def get_odoo(
    ctx: ExecutionContext,
    odoo_bin: Optional[Path] = None,
    config_path: Optional[Path] = None,
) -> OdooBin:
    """Create an OdooBin wrapper with settings fallbacks."""
    return OdooBin(
        ctx,
        CommandExecutor(ctx),
        odoo_bin or ctx.config.odoo.odoo_bin,
        resolve_odoo_config(ctx, config_path),
    )


def build_pg_config(
    ctx: ExecutionContext,
    config_path: Optional[Path] = None,
    *,
    host: Optional[str] = None,
    port: Optional[int] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
) -> PGConfig:
    """Build PGConfig from the Odoo config, CLI overrides and OCLI_PG_* tuning."""
    params = load_odoo_db_params(
        resolve_odoo_config(ctx, config_path),
        overrides={
            "db_host": host,
            "db_port": str(port) if port else None,
            "db_user": user,
            "db_password": password,
        },
    )
    return PGConfig.from_odoo_params(params, PGSettings())


def get_postgres(ctx: ExecutionContext, pg_config: PGConfig) -> PostgreSQLService:
    """Create the database administration client and check the server answers."""
    pg = PostgreSQLService(ctx, pg_config)
    try:
        pg.ping()
    except OcliError:
        pg.close()
        raise
    return pg
