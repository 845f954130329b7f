"""odoo-bin database lifecycle commands.

Builds the argument vectors for ``odoo-bin db`` sub-commands and runs them
through the CommandExecutor:

    odoo-bin db -c <config> init <db> [--with-demo] [--force] [--language=..]
    odoo-bin db -c <config> dump <db> <file> [--no-filestore]
    odoo-bin db -c <config> load <db> <file> [--force] [--neutralize]
    odoo-bin db -c <config> duplicate <src> <dst> [--force] [--neutralize]
    odoo-bin db -c <config> rename <src> <dst> [--force]
    odoo-bin db -c <config> drop <db>

Boolean switches are tri-state: ``None`` means the operator did not pass
the option, and it resolves to the verb's default below.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ocli.core.context import ExecutionContext
from ocli.core.exceptions import ConfigurationError
from ocli.core.executor import CommandExecutor, CommandResult
from ocli.core.validation import require


# Defaults applied when a tri-state switch is left unset
INIT_WITH_DEMO_DEFAULT = False
INIT_FORCE_DEFAULT = False
LOAD_FORCE_DEFAULT = False
LOAD_NEUTRALIZE_DEFAULT = False
DUPLICATE_FORCE_DEFAULT = False
DUPLICATE_NEUTRALIZE_DEFAULT = False
RENAME_FORCE_DEFAULT = False


def resolve_flag(value: Optional[bool], default: bool) -> bool:
    """Resolve a tri-state switch: unset takes the default, explicit wins."""
    return default if value is None else value


def get_backup_file_path(
    backup_dir: Path,
    db_name: str,
    backup_format: str,
    no_filestore: bool = False,
    *,
    create_dir: bool = True,
) -> Path:
    """Build the backup artifact path, creating its directory if needed.

    ``<dir>/<db>.<fmt>``, or ``<dir>/<db>_no_fs.<fmt>`` when the filestore
    is excluded.
    """
    backup_dir = Path(backup_dir)
    if create_dir:
        try:
            backup_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create backup directory: {backup_dir}",
                details=[str(e)],
                hint="Check --dump-path or db.dump_path in ocli.yml",
            ) from e
    suffix = "_no_fs" if no_filestore else ""
    return backup_dir / f"{db_name}{suffix}.{backup_format}"


@dataclass(frozen=True)
class InitOptions:
    """Options for ``odoo-bin db init``."""
    with_demo: Optional[bool] = None
    force: Optional[bool] = None
    language: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    country: Optional[str] = None


class OdooBin:
    """Wrapper around the ``odoo-bin db`` command family."""

    def __init__(
        self,
        ctx: ExecutionContext,
        executor: CommandExecutor,
        odoo_bin: Path,
        config_path: Path,
    ) -> None:
        self.ctx = ctx
        self.executor = executor
        self.odoo_bin = Path(odoo_bin)
        self.config_path = Path(config_path)

    def _base(self, verb: str) -> list[str]:
        return ["db", "-c", str(self.config_path), verb]

    # =========================================================================
    # Argument builders
    # =========================================================================

    def init_args(self, db_name: str, options: Optional[InitOptions] = None) -> list[str]:
        options = options or InitOptions()
        require(db_name, "Database name", "--database or -d")

        args = self._base("init") + [db_name]
        if resolve_flag(options.with_demo, INIT_WITH_DEMO_DEFAULT):
            args.append("--with-demo")
        if resolve_flag(options.force, INIT_FORCE_DEFAULT):
            args.append("--force")
        if options.language:
            args.append(f"--language={options.language}")
        if options.username:
            args.append(f"--username={options.username}")
        if options.password:
            args.append(f"--password={options.password}")
        if options.country:
            args.append(f"--country={options.country}")
        return args

    def dump_args(self, db_name: str, dump_file: Path, no_filestore: bool = False) -> list[str]:
        require(db_name, "Database name", "--database or -d")

        args = self._base("dump") + [db_name, str(dump_file)]
        if no_filestore:
            args.append("--no-filestore")
        return args

    def load_args(
        self,
        db_name: str,
        dump_file: Path,
        force: Optional[bool] = None,
        neutralize: Optional[bool] = None,
    ) -> list[str]:
        require(db_name, "Database name", "--database or -d")

        args = self._base("load") + [db_name, str(dump_file)]
        if resolve_flag(force, LOAD_FORCE_DEFAULT):
            args.append("--force")
        if resolve_flag(neutralize, LOAD_NEUTRALIZE_DEFAULT):
            args.append("--neutralize")
        return args

    def duplicate_args(
        self,
        source: str,
        target: str,
        force: Optional[bool] = None,
        neutralize: Optional[bool] = None,
    ) -> list[str]:
        require(source, "Database name", "--database or -d")
        require(target, "New database name", "--new-db or -n")

        args = self._base("duplicate") + [source, target]
        if resolve_flag(force, DUPLICATE_FORCE_DEFAULT):
            args.append("--force")
        if resolve_flag(neutralize, DUPLICATE_NEUTRALIZE_DEFAULT):
            args.append("--neutralize")
        return args

    def rename_args(self, source: str, target: str, force: Optional[bool] = None) -> list[str]:
        require(source, "Database name", "--database or -d")
        require(target, "New database name", "--new-db or -n")

        args = self._base("rename") + [source, target]
        if resolve_flag(force, RENAME_FORCE_DEFAULT):
            args.append("--force")
        return args

    def drop_args(self, db_name: str) -> list[str]:
        require(db_name, "Database name", "--database or -d")
        return self._base("drop") + [db_name]

    # =========================================================================
    # Execution
    # =========================================================================

    def run(self, args: list[str], *, description: str, capture: bool = True) -> CommandResult:
        """Run odoo-bin with the given arguments.

        Captured output is attached to the ExecutionError on failure;
        with ``capture=False`` the binary writes straight to the terminal.
        """
        return self.executor.run(
            [str(self.odoo_bin), *args],
            description=description,
            capture=capture,
        )

    def init(self, db_name: str, options: Optional[InitOptions] = None) -> CommandResult:
        return self.run(self.init_args(db_name, options), description=f"Initialize database '{db_name}'")

    def dump(self, db_name: str, dump_file: Path, no_filestore: bool = False) -> CommandResult:
        return self.run(
            self.dump_args(db_name, dump_file, no_filestore),
            description=f"Back up database '{db_name}' to {dump_file}",
            capture=False,
        )

    def load(
        self,
        db_name: str,
        dump_file: Path,
        force: Optional[bool] = None,
        neutralize: Optional[bool] = None,
    ) -> CommandResult:
        return self.run(
            self.load_args(db_name, dump_file, force, neutralize),
            description=f"Restore database '{db_name}' from {dump_file}",
            capture=False,
        )

    def duplicate(
        self,
        source: str,
        target: str,
        force: Optional[bool] = None,
        neutralize: Optional[bool] = None,
    ) -> CommandResult:
        return self.run(
            self.duplicate_args(source, target, force, neutralize),
            description=f"Duplicate database '{source}' to '{target}'",
            capture=False,
        )

    def rename(self, source: str, target: str, force: Optional[bool] = None) -> CommandResult:
        return self.run(
            self.rename_args(source, target, force),
            description=f"Rename database '{source}' to '{target}'",
            capture=False,
        )

    def drop(self, db_name: str) -> CommandResult:
        return self.run(self.drop_args(db_name), description=f"Drop database '{db_name}'")
