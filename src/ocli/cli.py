"""Main CLI entry point using Typer.

This module defines the root CLI application and global options.
Commands are registered from the modules in ``ocli.commands``.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from ocli import __version__
from ocli.commands import addons, db, server
from ocli.commands.common import NoColorOption, SettingsOption, get_context, handle_error
from ocli.core import AuditEventType, OcliError, get_audit_logger
from ocli.core.config import DEFAULT_SETTINGS_PATH, init_config


# Create the main Typer app
app = typer.Typer(
    name="ocli",
    help="Odoo CLI - database and server management for Odoo deployments.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    pretty_exceptions_enable=True,
    pretty_exceptions_show_locals=False,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console = Console()
        console.print(f"ocli version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Odoo CLI - database and server management for Odoo deployments.

    Wraps [bold]odoo-bin db[/bold] for database lifecycle operations, talks
    to PostgreSQL directly for listing and --direct operations, supervises
    the Odoo server, and keeps addon paths in sync.

    [bold]Examples:[/bold]
        ocli init
        ocli listdb
        ocli backupdb -d mydb
        ocli restoredb -d mydb -n mydb_test
        ocli copydb -d production -n staging --direct
        ocli start
    """
    pass


@app.command("init")
def init_settings(
    settings: SettingsOption = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing settings file."),
    ] = False,
    no_color: NoColorOption = False,
) -> None:
    """Create a default ocli.yml settings file.

    Writes the settings file (./ocli.yml unless --settings is given) with
    default Odoo, addon and backup locations.
    """
    ctx = get_context(no_color=no_color, settings=settings)
    settings_path: Path = ctx.settings_path
    audit = get_audit_logger()

    try:
        init_config(settings_path, force=force)
    except OcliError as e:
        audit.log_failure(AuditEventType.CONFIG_CREATE, "config", str(settings_path), str(e))
        handle_error(e)

    audit.log_success(AuditEventType.CONFIG_CREATE, "config", str(settings_path))
    ctx.console.success(f"Settings file created: {settings_path}")
    ctx.console.info("Edit the file to match your Odoo installation, then run commands.")
    if settings_path != DEFAULT_SETTINGS_PATH:
        ctx.console.hint(f"Pass --settings {settings_path} (or set OCLI_SETTINGS) to use it")


db.register(app)
addons.register(app)
server.register(app)


if __name__ == "__main__":
    app()
