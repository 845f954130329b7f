"""Odoo server command.

Commands:
- ocli start
"""

from typing import Optional

import typer

from ocli.commands.common import (
    BinOption,
    DryRunOption,
    NoColorOption,
    OdooConfigOption,
    QuietOption,
    SettingsOption,
    VerboseOption,
    get_context,
    handle_error,
    resolve_odoo_config,
)
from ocli.core import AuditEventType, OcliError, get_audit_logger
from ocli.services.supervisor import DEFAULT_GRACE_PERIOD, ServerSupervisor


def start_server(
    odoo_bin: BinOption = None,
    config: OdooConfigOption = None,
    grace_period: float = typer.Option(
        DEFAULT_GRACE_PERIOD, "--grace-period",
        min=0.0,
        help="Seconds to wait after SIGTERM before killing the server",
    ),
    extra_args: Optional[list[str]] = typer.Argument(
        None,
        help="Extra arguments passed to odoo-bin (after --)",
    ),
    dry_run: DryRunOption = False,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Start the Odoo server in the foreground.

    SIGINT, SIGTERM and SIGQUIT are forwarded as a graceful shutdown;
    the server is killed if it is still running after the grace period.

    Examples:

        ocli start

        ocli start -c /etc/odoo/odoo.conf -- --dev=all
    """
    ctx = get_context(dry_run=dry_run, verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)
    audit = get_audit_logger()

    target = str(config) if config else "server"
    try:
        binary = odoo_bin or ctx.config.odoo.odoo_bin
        config_path = resolve_odoo_config(ctx, config)
        target = str(config_path)
        command = [str(binary), "-c", target, *(extra_args or [])]

        if ctx.dry_run:
            ctx.console.dry_run_msg(f"Execute: {' '.join(command)}")
            audit.log_dry_run(AuditEventType.SERVER_START, "server", target)
            return

        ctx.console.info(f"Starting Odoo with {config_path}")
        result = ServerSupervisor(ctx, command, grace_period=grace_period).run()
    except OcliError as e:
        audit.log_failure(AuditEventType.SERVER_START, "server", target, str(e))
        handle_error(e)

    audit.log_success(
        AuditEventType.SERVER_STOP,
        "server",
        target,
        message=result.describe(),
        parameters={
            "state": result.state.value,
            "signal": result.received_signal,
            "forced": result.forced,
        },
    )

    # A signal-initiated shutdown is a normal way to stop the server
    if result.received_signal is None and not result.success:
        raise typer.Exit(result.exit_code)


def register(app: typer.Typer) -> None:
    """Register the server command on the root application."""
    app.command("start")(start_server)
