"""PostgreSQL service abstraction.

Provides a safe interface for database administration against the
cluster that backs Odoo: listing, sizing, existence checks and
CREATE/DROP/ALTER DATABASE.

All values use bound parameters; database names are always quoted as
identifiers.
"""

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.dialects import postgresql
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import DisconnectionError, SQLAlchemyError

from ocli.core.config import OdooDBParams, PGSettings
from ocli.core.context import ExecutionContext
from ocli.core.exceptions import PostgresConnectionError, PostgresError
from ocli.core.validation import validate_db_name


ADMIN_DATABASE = "postgres"

# Table that only exists once Odoo has initialized a database
ODOO_MARKER_TABLE = "ir_module_module"

SIZE_UNITS = ("KB", "MB", "GB", "TB", "PB")

_PREPARER = postgresql.dialect().identifier_preparer

LIST_DATABASES_SQL = """
    SELECT datname FROM pg_database
    WHERE datistemplate = false
    AND datname != 'postgres'
    ORDER BY datname
"""

TERMINATE_CONNECTIONS_SQL = """
    SELECT pg_terminate_backend(pid)
    FROM pg_stat_activity
    WHERE datname = :name AND pid <> pg_backend_pid()
"""

NEUTRALIZE_STATEMENTS = (
    "UPDATE ir_cron SET active = false",
    "UPDATE ir_mail_server SET active = false",
    "UPDATE ir_config_parameter SET value = 'test' WHERE key LIKE '%api_key%'",
    "UPDATE ir_config_parameter SET value = 'http://localhost' WHERE key LIKE '%base_url%'",
)


def format_bytes(size: int) -> str:
    """Convert a byte count to a human-readable string (1024 base).

    >>> format_bytes(1536)
    '1.50 KB'
    """
    unit = 1024
    if size < unit:
        return f"{size} B"

    div, exp = unit, 0
    n = size // unit
    while n >= unit and exp < len(SIZE_UNITS) - 1:
        div *= unit
        exp += 1
        n //= unit

    return f"{size / div:.2f} {SIZE_UNITS[exp]}"


def quote_ident(name: str) -> str:
    """Quote a PostgreSQL identifier unconditionally."""
    return _PREPARER.quote_identifier(name)


@dataclass(frozen=True)
class PGConfig:
    """PostgreSQL connection configuration with pool tuning."""

    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = ""
    sslmode: str = "disable"
    max_open_conns: int = 25
    max_idle_conns: int = 5
    conn_max_lifetime: float = 300.0
    conn_max_idle_time: float = 60.0
    connect_timeout: int = 10

    @classmethod
    def from_odoo_params(
        cls,
        params: OdooDBParams,
        settings: Optional[PGSettings] = None,
    ) -> "PGConfig":
        """Build a config from Odoo's db_* parameters and OCLI_PG_* tuning."""
        settings = settings or PGSettings()
        return cls(
            host=params.host,
            port=params.port,
            user=params.user,
            password=params.password,
            sslmode=settings.sslmode or "disable",
            max_open_conns=settings.max_open_conns,
            max_idle_conns=settings.max_idle_conns,
            conn_max_lifetime=settings.conn_max_lifetime,
            conn_max_idle_time=settings.conn_max_idle_time,
            connect_timeout=settings.connect_timeout,
        )

    def url(self, database: str) -> URL:
        """SQLAlchemy URL for the given database (psycopg v3 driver)."""
        return URL.create(
            "postgresql+psycopg",
            username=self.user,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=database,
        )


def create_pooled_engine(cfg: PGConfig, database: str) -> Engine:
    """Create an engine with a bounded connection pool.

    Pool mapping:

    - ``max_idle_conns`` -> ``pool_size`` (connections kept open)
    - ``max_open_conns`` -> ``pool_size + max_overflow``
    - ``conn_max_lifetime`` -> ``pool_recycle``
    - ``conn_max_idle_time`` -> connections idle longer are replaced on checkout

    DDL such as CREATE DATABASE cannot run inside a transaction block, so
    every connection is in AUTOCOMMIT mode.
    """
    pool_size = max(1, cfg.max_idle_conns)
    max_overflow = max(0, cfg.max_open_conns - pool_size)

    engine = create_engine(
        cfg.url(database),
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=int(cfg.conn_max_lifetime) if cfg.conn_max_lifetime > 0 else -1,
        pool_pre_ping=True,
        isolation_level="AUTOCOMMIT",
        connect_args={
            "connect_timeout": cfg.connect_timeout,
            "sslmode": cfg.sslmode or "disable",
        },
    )

    if cfg.conn_max_idle_time > 0:
        max_idle = cfg.conn_max_idle_time

        @event.listens_for(engine, "checkin")
        def _stamp_checkin(dbapi_connection: Any, connection_record: Any) -> None:
            connection_record.info["checked_in_at"] = time.monotonic()

        @event.listens_for(engine, "checkout")
        def _expire_idle(dbapi_connection: Any, connection_record: Any, connection_proxy: Any) -> None:
            checked_in_at = connection_record.info.get("checked_in_at")
            if checked_in_at is not None and time.monotonic() - checked_in_at > max_idle:
                # The pool invalidates the connection and retries with a fresh one
                raise DisconnectionError("connection exceeded idle time")

    return engine


EngineFactory = Callable[[PGConfig, str], Engine]


class PostgreSQLService:
    """Database administration client.

    Usage:
        with PostgreSQLService(ctx, pg_config) as pg:
            for name in pg.list_databases():
                print(name, pg.get_database_size(name))

    Destructive operations (drop, rename, template copy) terminate the
    backends connected to the affected database first. A failure to
    terminate is reported as a warning and the operation continues.
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        config: PGConfig,
        *,
        engine_factory: EngineFactory = create_pooled_engine,
    ) -> None:
        """Initialize PostgreSQL service.

        Args:
            ctx: Execution context
            config: Connection configuration
            engine_factory: Builds an engine for (config, database)
        """
        self.ctx = ctx
        self.config = config
        self._engine_factory = engine_factory
        self._admin_engine: Optional[Engine] = None

    def __enter__(self) -> "PostgreSQLService":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        """Release all pooled connections."""
        if self._admin_engine is not None:
            self._admin_engine.dispose()
            self._admin_engine = None

    # =========================================================================
    # Connection helpers
    # =========================================================================

    @property
    def _server(self) -> str:
        return f"{self.config.host}:{self.config.port}"

    def _admin(self) -> Engine:
        if self._admin_engine is None:
            self._admin_engine = self._engine_factory(self.config, ADMIN_DATABASE)
        return self._admin_engine

    @contextmanager
    def _connect(self, engine: Engine, database: str) -> Iterator[Connection]:
        """Check a connection out of the pool and return it on exit."""
        try:
            conn = engine.connect()
        except SQLAlchemyError as e:
            raise PostgresConnectionError(
                f"Cannot connect to database '{database}' on {self._server}",
                details=[str(e).strip()],
                hint="Check db_host/db_port/db_user/db_password in the Odoo config",
            ) from e
        with conn:
            yield conn

    @contextmanager
    def _admin_connection(self) -> Iterator[Connection]:
        with self._connect(self._admin(), ADMIN_DATABASE) as conn:
            yield conn

    @staticmethod
    def _error(message: str, error: SQLAlchemyError) -> PostgresError:
        return PostgresError(message, details=[str(error).strip()])

    def _execute_ddl(self, conn: Connection, sql: str, failure: str) -> None:
        self.ctx.console.debug(f"SQL: {sql}")
        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Execute SQL: {sql}")
            return
        try:
            conn.execute(text(sql))
        except SQLAlchemyError as e:
            raise self._error(failure, e) from e

    def _terminate_connections(self, conn: Connection, name: str) -> None:
        """Terminate other backends connected to a database (best effort)."""
        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Terminate connections to '{name}'")
            return
        try:
            result = conn.execute(text(TERMINATE_CONNECTIONS_SQL), {"name": name})
            terminated = sum(1 for row in result if row[0])
        except SQLAlchemyError as e:
            self.ctx.console.warn(
                f"Failed to terminate connections to '{name}', continuing anyway: {str(e).strip()}"
            )
            return
        if terminated:
            self.ctx.console.verbose(f"Terminated {terminated} connection(s) to '{name}'")

    # =========================================================================
    # Queries
    # =========================================================================

    def ping(self) -> None:
        """Verify the server is reachable.

        Raises:
            PostgresConnectionError: If the ping fails
        """
        with self._admin_connection() as conn:
            try:
                conn.execute(text("SELECT 1"))
            except SQLAlchemyError as e:
                raise PostgresConnectionError(
                    f"Failed to ping PostgreSQL on {self._server}",
                    details=[str(e).strip()],
                ) from e

    def list_databases(self) -> list[str]:
        """List non-template databases except 'postgres', ordered by name."""
        with self._admin_connection() as conn:
            try:
                return list(conn.execute(text(LIST_DATABASES_SQL)).scalars().all())
            except SQLAlchemyError as e:
                raise self._error("Failed to list databases", e) from e

    def list_initialized_databases(self) -> list[str]:
        """List databases that contain an Odoo installation."""
        initialized = []
        for name in self.list_databases():
            try:
                if self.is_initialized(name):
                    initialized.append(name)
            except PostgresError as e:
                self.ctx.console.warn(f"Skipping '{name}': {e}")
        return initialized

    def get_database_size(self, name: str) -> str:
        """Return the on-disk size of a database, human-readable."""
        with self._admin_connection() as conn:
            try:
                size = conn.execute(
                    text("SELECT pg_database_size(:name)"), {"name": name}
                ).scalar()
            except SQLAlchemyError as e:
                raise self._error(f"Failed to get size of database '{name}'", e) from e
        return format_bytes(int(size or 0))

    def database_exists(self, name: str) -> bool:
        """Check if a database exists."""
        with self._admin_connection() as conn:
            try:
                return bool(conn.execute(
                    text("SELECT EXISTS(SELECT 1 FROM pg_database WHERE datname = :name)"),
                    {"name": name},
                ).scalar())
            except SQLAlchemyError as e:
                raise self._error(f"Failed to check existence of database '{name}'", e) from e

    def is_initialized(self, name: str) -> bool:
        """Check if a database exists and holds Odoo's module registry."""
        if not self.database_exists(name):
            return False

        engine = self._engine_factory(self.config, name)
        try:
            with self._connect(engine, name) as conn:
                try:
                    return bool(conn.execute(
                        text(
                            "SELECT EXISTS (SELECT 1 FROM information_schema.tables "
                            "WHERE table_schema = 'public' AND table_name = :table)"
                        ),
                        {"table": ODOO_MARKER_TABLE},
                    ).scalar())
                except SQLAlchemyError as e:
                    raise self._error(f"Failed to inspect database '{name}'", e) from e
        finally:
            engine.dispose()

    def get_installed_modules(self, name: str) -> list[str]:
        """List Odoo modules installed (or pending upgrade) in a database."""
        engine = self._engine_factory(self.config, name)
        try:
            with self._connect(engine, name) as conn:
                try:
                    return list(conn.execute(text(
                        "SELECT name FROM ir_module_module "
                        "WHERE state IN ('installed', 'to upgrade') ORDER BY name"
                    )).scalars().all())
                except SQLAlchemyError as e:
                    raise self._error(f"Failed to query modules of '{name}'", e) from e
        finally:
            engine.dispose()

    # =========================================================================
    # Database Operations
    # =========================================================================

    def create_database(self, name: str) -> None:
        """Create an empty UTF8 database.

        Raises:
            ValidationError: If the name is invalid
            PostgresError: If creation fails
        """
        validate_db_name(name)

        with self._admin_connection() as conn:
            self._execute_ddl(
                conn,
                f"CREATE DATABASE {quote_ident(name)} ENCODING 'UTF8'",
                f"Failed to create database '{name}'",
            )

        self.ctx.console.success(f"Database '{name}' created")

    def create_database_from_template(self, name: str, template: str) -> None:
        """Create a database as a copy of a template database.

        Raises:
            ValidationError: If the new name is invalid
            PostgresError: If creation fails
        """
        validate_db_name(name)

        with self._admin_connection() as conn:
            # CREATE ... TEMPLATE fails while other sessions use the template
            self._terminate_connections(conn, template)
            self._execute_ddl(
                conn,
                f"CREATE DATABASE {quote_ident(name)} WITH TEMPLATE {quote_ident(template)}",
                f"Failed to create database '{name}' from template '{template}'",
            )

        self.ctx.console.success(f"Database '{name}' created from template '{template}'")

    def copy_database(self, source: str, target: str) -> None:
        """Copy a database (without filestore) through a template copy."""
        self.create_database_from_template(target, source)

    def drop_database(self, name: str) -> None:
        """Drop a database if it exists.

        Raises:
            ValidationError: If the name is invalid
            PostgresError: If the drop fails
        """
        validate_db_name(name)

        with self._admin_connection() as conn:
            self._terminate_connections(conn, name)
            self._execute_ddl(
                conn,
                f"DROP DATABASE IF EXISTS {quote_ident(name)}",
                f"Failed to drop database '{name}'",
            )

        self.ctx.console.success(f"Database '{name}' dropped")

    def rename_database(self, old_name: str, new_name: str) -> None:
        """Rename a database.

        Raises:
            ValidationError: If the new name is invalid
            PostgresError: If the rename fails
        """
        validate_db_name(new_name, "new database")

        with self._admin_connection() as conn:
            self._terminate_connections(conn, old_name)
            self._execute_ddl(
                conn,
                f"ALTER DATABASE {quote_ident(old_name)} RENAME TO {quote_ident(new_name)}",
                f"Failed to rename database '{old_name}' to '{new_name}'",
            )

        self.ctx.console.success(f"Database '{old_name}' renamed to '{new_name}'")

    # =========================================================================
    # Odoo parameters
    # =========================================================================

    def neutralize(self, name: str) -> None:
        """Disable crons, mail servers and external keys in a copied database.

        Each statement is best effort: failures are reported as warnings.
        """
        if self.ctx.dry_run:
            for sql in NEUTRALIZE_STATEMENTS:
                self.ctx.console.dry_run_msg(f"Execute SQL on '{name}': {sql}")
            return

        engine = self._engine_factory(self.config, name)
        try:
            with self._connect(engine, name) as conn:
                for sql in NEUTRALIZE_STATEMENTS:
                    try:
                        conn.execute(text(sql))
                    except SQLAlchemyError as e:
                        self.ctx.console.warn(f"Neutralization statement failed: {sql}: {str(e).strip()}")
        finally:
            engine.dispose()

        self.ctx.console.success(f"Database '{name}' neutralized")

    def get_config_parameter(self, name: str, key: str) -> Optional[str]:
        """Read an ir_config_parameter value (None when unset)."""
        engine = self._engine_factory(self.config, name)
        try:
            with self._connect(engine, name) as conn:
                try:
                    return conn.execute(
                        text("SELECT value FROM ir_config_parameter WHERE key = :key"),
                        {"key": key},
                    ).scalar()
                except SQLAlchemyError as e:
                    raise self._error(f"Failed to read config parameter '{key}'", e) from e
        finally:
            engine.dispose()

    def set_config_parameter(self, name: str, key: str, value: str) -> None:
        """Insert or update an ir_config_parameter value."""
        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Set {key} = {value} on '{name}'")
            return

        engine = self._engine_factory(self.config, name)
        try:
            with self._connect(engine, name) as conn:
                try:
                    conn.execute(
                        text(
                            "INSERT INTO ir_config_parameter "
                            "(key, value, create_uid, create_date, write_uid, write_date) "
                            "VALUES (:key, :value, 1, NOW(), 1, NOW()) "
                            "ON CONFLICT (key) DO UPDATE "
                            "SET value = :value, write_date = NOW(), write_uid = 1"
                        ),
                        {"key": key, "value": value},
                    )
                except SQLAlchemyError as e:
                    raise self._error(f"Failed to set config parameter '{key}'", e) from e
        finally:
            engine.dispose()
