"""Database lifecycle commands.

Commands:
- ocli listdb
- ocli initdb
- ocli createdb
- ocli backupdb
- ocli restoredb
- ocli copydb
- ocli renamedb
- ocli dropdb

odoo-bin does the work unless ``--direct`` is given, in which case the
operation runs against PostgreSQL (no filestore handling).
"""

from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import typer

from ocli.commands.common import (
    BinOption,
    DatabaseOption,
    DBHostOption,
    DBPasswordOption,
    DBPortOption,
    DBUserOption,
    DirectOption,
    DryRunOption,
    DumpPathOption,
    NewDatabaseOption,
    NoColorOption,
    OdooConfigOption,
    QuietOption,
    SettingsOption,
    VerboseOption,
    build_pg_config,
    get_context,
    get_odoo,
    get_postgres,
    handle_error,
)
from ocli.core import (
    AuditEventType,
    ExecutionContext,
    OcliError,
    ValidationError,
    get_audit_logger,
)
from ocli.core.validation import require, validate_db_name
from ocli.services.odoo import (
    DUPLICATE_FORCE_DEFAULT,
    DUPLICATE_NEUTRALIZE_DEFAULT,
    InitOptions,
    get_backup_file_path,
    resolve_flag,
)
from ocli.services.postgresql import PostgreSQLService


BASE_URL_KEY = "web.base.url"


@contextmanager
def audited(
    ctx: ExecutionContext,
    event_type: AuditEventType,
    target_name: Optional[str],
    **parameters: Any,
) -> Iterator[None]:
    """Audit the wrapped operation and turn OcliError into a clean exit."""
    audit = get_audit_logger()
    try:
        yield
    except OcliError as e:
        audit.log_failure(event_type, "database", target_name or "", str(e))
        handle_error(e)

    if ctx.dry_run:
        audit.log_dry_run(event_type, "database", target_name or "")
    else:
        audit.log_success(event_type, "database", target_name or "", parameters=parameters)


def _module_count(pg: PostgreSQLService, name: str, initialized: bool) -> str:
    if not initialized and not pg.is_initialized(name):
        return "-"
    return str(len(pg.get_installed_modules(name)))


def list_databases(
    config: OdooConfigOption = None,
    initialized: bool = typer.Option(
        False, "--initialized", "-i",
        help="Only show databases with an Odoo installation",
    ),
    modules: bool = typer.Option(
        False, "--modules", "-m",
        help="Show the number of installed Odoo modules",
    ),
    db_host: DBHostOption = None,
    db_port: DBPortOption = None,
    db_user: DBUserOption = None,
    db_password: DBPasswordOption = None,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """List databases with their sizes.

    Connection parameters are read from the Odoo config
    (db_host, db_port, db_user, db_password).

    Examples:

        ocli listdb

        ocli listdb -c /etc/odoo/odoo.conf --initialized

        ocli listdb --modules
    """
    ctx = get_context(verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)

    try:
        pg_config = build_pg_config(
            ctx, config, host=db_host, port=db_port, user=db_user, password=db_password,
        )
        with get_postgres(ctx, pg_config) as pg:
            names = pg.list_initialized_databases() if initialized else pg.list_databases()
            rows = []
            for name in names:
                row = [name, pg.get_database_size(name)]
                if modules:
                    row.append(_module_count(pg, name, initialized))
                rows.append(row)
    except OcliError as e:
        handle_error(e)

    if not rows:
        ctx.console.info("No databases found")
        return

    ctx.console.print()
    ctx.console.table(
        f"Found {len(rows)} database(s)",
        ["Database", "Size", "Modules"] if modules else ["Database", "Size"],
        rows,
    )


def init_database(
    database: DatabaseOption = None,
    odoo_bin: BinOption = None,
    config: OdooConfigOption = None,
    with_demo: Optional[bool] = typer.Option(
        None, "--with-demo/--no-with-demo",
        help="Load demo data [default: no demo]",
    ),
    force: Optional[bool] = typer.Option(
        None, "--force/--no-force",
        help="Recreate the database if it already exists [default: no force]",
    ),
    lang: Optional[str] = typer.Option(None, "--lang", help="Language code for the new database"),
    username: Optional[str] = typer.Option(None, "--username", help="Administrator username"),
    password: Optional[str] = typer.Option(None, "--password", help="Administrator password"),
    country: Optional[str] = typer.Option(None, "--country", help="Country code for localization"),
    dry_run: DryRunOption = False,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Initialize a new Odoo database with odoo-bin.

    Examples:

        ocli initdb -d mydb

        ocli initdb -d mydb --with-demo --lang es_ES --country ES
    """
    ctx = get_context(dry_run=dry_run, verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)

    options = InitOptions(
        with_demo=with_demo,
        force=force,
        language=lang,
        username=username,
        password=password,
        country=country,
    )
    with audited(ctx, AuditEventType.DATABASE_INIT, database, with_demo=with_demo, force=force):
        get_odoo(ctx, odoo_bin, config).init(database, options)  # type: ignore[arg-type]

    ctx.console.success(f"Database init completed successfully: {database}")


def create_database(
    database: DatabaseOption = None,
    template: Optional[str] = typer.Option(
        None, "--template", "-t",
        help="Copy an existing database instead of creating an empty one",
    ),
    config: OdooConfigOption = None,
    db_host: DBHostOption = None,
    db_port: DBPortOption = None,
    db_user: DBUserOption = None,
    db_password: DBPasswordOption = None,
    dry_run: DryRunOption = False,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Create an empty PostgreSQL database (or a template copy).

    Examples:

        ocli createdb -d scratch

        ocli createdb -d staging -t production
    """
    ctx = get_context(dry_run=dry_run, verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)

    with audited(ctx, AuditEventType.DATABASE_CREATE, database, template=template):
        validate_db_name(require(database, "Database name", "--database or -d"))
        pg_config = build_pg_config(
            ctx, config, host=db_host, port=db_port, user=db_user, password=db_password,
        )
        with get_postgres(ctx, pg_config) as pg:
            if pg.database_exists(database):  # type: ignore[arg-type]
                raise ValidationError(f"Database '{database}' already exists")
            if template:
                if not pg.database_exists(template):
                    raise ValidationError(f"Template database '{template}' does not exist")
                pg.create_database_from_template(database, template)  # type: ignore[arg-type]
            else:
                pg.create_database(database)  # type: ignore[arg-type]


def backup_database(
    database: DatabaseOption = None,
    odoo_bin: BinOption = None,
    config: OdooConfigOption = None,
    dump_path: DumpPathOption = None,
    backup_format: Optional[str] = typer.Option(
        None, "--format", "-f",
        help="Backup file format (e.g., zip, dump)",
    ),
    no_filestore: bool = typer.Option(False, "--no-filestore", help="Exclude filestore from backup"),
    dry_run: DryRunOption = False,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Back up an Odoo database with odoo-bin.

    The backup is written to <dump-path>/<database>.<format>
    (<database>_no_fs.<format> with --no-filestore).

    Examples:

        ocli backupdb -d mydb

        ocli backupdb -d mydb -D /backups -f dump --no-filestore
    """
    ctx = get_context(dry_run=dry_run, verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)

    dump_file: Optional[Path] = None
    with audited(ctx, AuditEventType.DATABASE_BACKUP, database, no_filestore=no_filestore):
        require(database, "Database name", "--database or -d")
        dump_file = get_backup_file_path(
            dump_path or ctx.config.db.dump_path,
            database,  # type: ignore[arg-type]
            backup_format or ctx.config.db.dump_format,
            no_filestore,
            create_dir=not ctx.dry_run,
        )
        ctx.console.info(f"Backing up database: {database}")
        get_odoo(ctx, odoo_bin, config).dump(database, dump_file, no_filestore)  # type: ignore[arg-type]

    ctx.console.success(f"Backup completed successfully: {dump_file}")


def restore_database(
    database: DatabaseOption = None,
    new_name: NewDatabaseOption = None,
    odoo_bin: BinOption = None,
    config: OdooConfigOption = None,
    dump_path: DumpPathOption = None,
    backup_file: Optional[Path] = typer.Option(
        None, "--file", "-F",
        help="Backup file to restore (default: <dump-path>/<database>.<format>)",
        dir_okay=False,
    ),
    force: Optional[bool] = typer.Option(
        None, "--force/--no-force", "-f",
        help="Overwrite an existing database [default: no force]",
    ),
    neutralize: Optional[bool] = typer.Option(
        None, "--neutralize/--no-neutralize", "-N",
        help="Neutralize the restored database [default: no neutralize]",
    ),
    dry_run: DryRunOption = False,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Restore an Odoo database from a backup file.

    Examples:

        ocli restoredb -d mydb

        ocli restoredb -d mydb -n mydb_test --force --neutralize
    """
    ctx = get_context(dry_run=dry_run, verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)

    target = new_name or database
    with audited(ctx, AuditEventType.DATABASE_RESTORE, target, force=force, neutralize=neutralize):
        require(database, "Database name", "--database or -d")
        if backup_file is None:
            backup_file = get_backup_file_path(
                dump_path or ctx.config.db.dump_path,
                database,  # type: ignore[arg-type]
                ctx.config.db.dump_format,
                create_dir=False,
            )
        if not ctx.dry_run and not backup_file.is_file():
            raise ValidationError(
                f"Backup file not found: {backup_file}",
                hint="Use --file or --dump-path to point at the backup",
            )
        ctx.console.info(f"Restoring database: {target} from backup file: {backup_file}")
        get_odoo(ctx, odoo_bin, config).load(target, backup_file, force, neutralize)  # type: ignore[arg-type]

    ctx.console.success(f"Restore completed successfully: {target}")


def _set_base_url(ctx: ExecutionContext, pg: PostgreSQLService, name: str, url: str) -> None:
    """Set web.base.url on a database; the old value is shown with -v."""
    if not ctx.dry_run:
        previous = pg.get_config_parameter(name, BASE_URL_KEY)
        ctx.console.verbose(f"{BASE_URL_KEY} was {previous or 'unset'}")
    pg.set_config_parameter(name, BASE_URL_KEY, url)
    ctx.console.info(f"Set {BASE_URL_KEY} of '{name}' to {url}")


def copy_database(
    database: DatabaseOption = None,
    new_name: NewDatabaseOption = None,
    odoo_bin: BinOption = None,
    config: OdooConfigOption = None,
    force: Optional[bool] = typer.Option(
        None, "--force/--no-force", "-f",
        help="Overwrite the target if it exists [default: no force]",
    ),
    neutralize: Optional[bool] = typer.Option(
        None, "--neutralize/--no-neutralize", "-N",
        help="Neutralize the copy [default: no neutralize]",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url",
        help="Set web.base.url in the copy (e.g. http://staging.example.com)",
    ),
    direct: DirectOption = False,
    db_host: DBHostOption = None,
    db_port: DBPortOption = None,
    db_user: DBUserOption = None,
    db_password: DBPasswordOption = None,
    dry_run: DryRunOption = False,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Duplicate an Odoo database.

    Useful for staging or testing environments and for safety copies
    before major changes.

    Examples:

        ocli copydb -d production -n staging

        ocli copydb -d production -n staging --direct --neutralize

        ocli copydb -d production -n staging --base-url http://localhost:8069
    """
    ctx = get_context(dry_run=dry_run, verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)

    with audited(ctx, AuditEventType.DATABASE_COPY, new_name, source=database, direct=direct, base_url=base_url):
        require(database, "Database name", "--database or -d")
        require(new_name, "New database name", "--new-db or -n")

        if not direct:
            get_odoo(ctx, odoo_bin, config).duplicate(database, new_name, force, neutralize)  # type: ignore[arg-type]
            if base_url:
                pg_config = build_pg_config(
                    ctx, config, host=db_host, port=db_port, user=db_user, password=db_password,
                )
                with get_postgres(ctx, pg_config) as pg:
                    _set_base_url(ctx, pg, new_name, base_url)  # type: ignore[arg-type]
        else:
            validate_db_name(new_name, "new database")
            pg_config = build_pg_config(
                ctx, config, host=db_host, port=db_port, user=db_user, password=db_password,
            )
            with get_postgres(ctx, pg_config) as pg:
                if not pg.database_exists(database):  # type: ignore[arg-type]
                    raise ValidationError(f"Database '{database}' does not exist")
                if pg.database_exists(new_name):  # type: ignore[arg-type]
                    if not resolve_flag(force, DUPLICATE_FORCE_DEFAULT):
                        raise ValidationError(
                            f"Database '{new_name}' already exists",
                            hint="Use --force to overwrite it",
                        )
                    pg.drop_database(new_name)  # type: ignore[arg-type]
                pg.copy_database(database, new_name)  # type: ignore[arg-type]
                if resolve_flag(neutralize, DUPLICATE_NEUTRALIZE_DEFAULT):
                    pg.neutralize(new_name)  # type: ignore[arg-type]
                if base_url:
                    _set_base_url(ctx, pg, new_name, base_url)  # type: ignore[arg-type]

    ctx.console.success(f"Duplicate completed successfully: {new_name}")


def rename_database(
    database: DatabaseOption = None,
    new_name: NewDatabaseOption = None,
    odoo_bin: BinOption = None,
    config: OdooConfigOption = None,
    force: Optional[bool] = typer.Option(
        None, "--force/--no-force", "-f",
        help="Pass --force to odoo-bin [default: no force]",
    ),
    direct: DirectOption = False,
    db_host: DBHostOption = None,
    db_port: DBPortOption = None,
    db_user: DBUserOption = None,
    db_password: DBPasswordOption = None,
    dry_run: DryRunOption = False,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Rename an Odoo database.

    Examples:

        ocli renamedb -d mydb_old -n mydb_new

        ocli renamedb -d mydb_old -n mydb_new --direct
    """
    ctx = get_context(dry_run=dry_run, verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)

    with audited(ctx, AuditEventType.DATABASE_RENAME, database, new_name=new_name, direct=direct):
        require(database, "Database name", "--database or -d")
        require(new_name, "New database name", "--new-db or -n")

        if not direct:
            get_odoo(ctx, odoo_bin, config).rename(database, new_name, force)  # type: ignore[arg-type]
        else:
            validate_db_name(new_name, "new database")
            pg_config = build_pg_config(
                ctx, config, host=db_host, port=db_port, user=db_user, password=db_password,
            )
            with get_postgres(ctx, pg_config) as pg:
                if not pg.database_exists(database):  # type: ignore[arg-type]
                    raise ValidationError(f"Database '{database}' does not exist")
                pg.rename_database(database, new_name)  # type: ignore[arg-type]

    ctx.console.success(f"Rename completed successfully: {new_name}")


def drop_database(
    database: DatabaseOption = None,
    odoo_bin: BinOption = None,
    config: OdooConfigOption = None,
    direct: DirectOption = False,
    db_host: DBHostOption = None,
    db_port: DBPortOption = None,
    db_user: DBUserOption = None,
    db_password: DBPasswordOption = None,
    dry_run: DryRunOption = False,
    settings: SettingsOption = None,
    verbose: VerboseOption = 0,
    quiet: QuietOption = False,
    no_color: NoColorOption = False,
) -> None:
    """Drop an Odoo database.

    Examples:

        ocli dropdb -d mydb

        ocli dropdb -d mydb --direct
    """
    ctx = get_context(dry_run=dry_run, verbose=verbose, quiet=quiet, no_color=no_color, settings=settings)

    with audited(ctx, AuditEventType.DATABASE_DROP, database, direct=direct):
        require(database, "Database name", "--database or -d")

        if not direct:
            get_odoo(ctx, odoo_bin, config).drop(database)  # type: ignore[arg-type]
        else:
            validate_db_name(database)
            pg_config = build_pg_config(
                ctx, config, host=db_host, port=db_port, user=db_user, password=db_password,
            )
            with get_postgres(ctx, pg_config) as pg:
                if not pg.database_exists(database):  # type: ignore[arg-type]
                    ctx.console.warn(f"Database '{database}' does not exist")
                pg.drop_database(database)  # type: ignore[arg-type]

    ctx.console.success(f"Database drop completed successfully: {database}")


def register(app: typer.Typer) -> None:
    """Register database commands on the root application."""
    app.command("listdb")(list_databases)
    app.command("initdb")(init_database)
    app.command("createdb")(create_database)
    app.command("backupdb")(backup_database)
    app.command("restoredb")(restore_database)
    app.command("copydb")(copy_database)
    app.command("renamedb")(rename_database)
    app.command("dropdb")(drop_database)
