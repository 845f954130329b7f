"""Addon path synchronization command.

Commands:
- ocli addon
"""

from pathlib import Path
from typing import Optional

import typer

from ocli.commands.common import (
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
from ocli.services.addons import TOOL_CONFIG_NAME, clean_paths, update_server_config, update_tool_config


def sync_addons(
    addons: Optional[list[str]] = typer.Option(
        None, "--addon", "-a",
        help="Addon directory (repeatable; default: odoo.addons from ocli.yml)",
    ),
    config: OdooConfigOption = None,
    tool_config: Optional[Path] = typer.Option(
        None, "--tool-config",
        help=f"Pyright config to update. Default: ./{TOOL_CONFIG_NAME}",
        dir_okay=False,
    ),
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Write the addon list into odoo.conf and pyrightconfig.json.

    The addons_path line of the Odoo config is replaced (or appended) and
    extraPaths in the Pyright config is set to the same list.

    Examples:

        ocli addon

        ocli addon -a /workspace/odoo/addons -a /workspace/custom-addons
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)
    audit = get_audit_logger()

    try:
        paths = clean_paths(addons or ctx.config.odoo.addons)
        config_path = resolve_odoo_config(ctx, config)
        tool_config_path = tool_config or Path.cwd() / TOOL_CONFIG_NAME

        ctx.console.info(f"Addons paths detected ({len(paths)} total)")
        for path in paths:
            ctx.console.verbose(f"  {path}")

        addons_path = update_server_config(config_path, paths)
        ctx.console.success(f"Updated {config_path}")

        update_tool_config(tool_config_path, paths)
        ctx.console.success(f"Updated {tool_config_path}")
    except OcliError as e:
        audit.log_failure(AuditEventType.CONFIG_MODIFY, "config", str(config or ""), str(e))
        handle_error(e)

    audit.log_success(
        AuditEventType.CONFIG_MODIFY,
        "config",
        str(config_path),
        parameters={"addons_path": addons_path},
    )
    ctx.console.summary("Addons", {
        "Odoo config": str(config_path),
        "Tool config": str(tool_config_path),
        "addons_path": addons_path or "(empty)",
    })


def register(app: typer.Typer) -> None:
    """Register the addon command on the root application."""
    app.command("addon")(sync_addons)
