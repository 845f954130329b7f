"""Unit tests for the PostgreSQL administration client.

The engine factory is replaced with one returning MagicMock engines, so
the tests check the SQL that would be sent rather than talking to a server.
"""

from typing import Any
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from ocli.core.config import OdooDBParams, PGSettings
from ocli.core.context import ExecutionContext
from ocli.core.exceptions import PostgresConnectionError, PostgresError, ValidationError
from ocli.services.postgresql import (
    NEUTRALIZE_STATEMENTS,
    PGConfig,
    PostgreSQLService,
    create_pooled_engine,
    format_bytes,
    quote_ident,
)


def _sql(call: Any) -> str:
    return str(call.args[0])


def _executed(conn: MagicMock) -> list[str]:
    return [_sql(c) for c in conn.execute.call_args_list]


@pytest.fixture
def ctx() -> ExecutionContext:
    return ExecutionContext()


@pytest.fixture
def conn() -> MagicMock:
    connection = MagicMock()
    connection.__enter__.return_value = connection
    return connection


@pytest.fixture
def engine(conn: MagicMock) -> MagicMock:
    mock = MagicMock()
    mock.connect.return_value = conn
    return mock


@pytest.fixture
def factory(engine: MagicMock) -> MagicMock:
    return MagicMock(return_value=engine)


@pytest.fixture
def pg(ctx: ExecutionContext, factory: MagicMock) -> PostgreSQLService:
    return PostgreSQLService(ctx, PGConfig(), engine_factory=factory)


class TestFormatBytes:
    """Tests for human-readable sizes."""

    @pytest.mark.parametrize("size,expected", [
        (0, "0 B"),
        (1023, "1023 B"),
        (1024, "1.00 KB"),
        (1536, "1.50 KB"),
        (1024 ** 2, "1.00 MB"),
        (1024 ** 3, "1.00 GB"),
        (5 * 1024 ** 4, "5.00 TB"),
        (3 * 1024 ** 6, "3072.00 PB"),
    ])
    def test_format(self, size, expected):
        assert format_bytes(size) == expected


class TestQuoteIdent:
    def test_always_quoted(self):
        assert quote_ident("mydb") == '"mydb"'

    def test_embedded_quote_doubled(self):
        assert quote_ident('a"b') == '"a""b"'


class TestPGConfig:
    """Tests for connection configuration."""

    def test_from_odoo_params(self):
        params = OdooDBParams(host="db", port=5433, user="odoo", password="pw")
        settings = PGSettings(sslmode="require", max_open_conns=10, max_idle_conns=2)

        cfg = PGConfig.from_odoo_params(params, settings)

        assert (cfg.host, cfg.port, cfg.user, cfg.password) == ("db", 5433, "odoo", "pw")
        assert cfg.sslmode == "require"
        assert cfg.max_open_conns == 10
        assert cfg.max_idle_conns == 2

    def test_url(self):
        url = PGConfig(host="db", port=5433, user="odoo", password="pw").url("sales")
        assert url.drivername == "postgresql+psycopg"
        assert url.host == "db"
        assert url.port == 5433
        assert url.database == "sales"
        assert url.password == "pw"

    def test_pool_sizing(self):
        engine = create_pooled_engine(PGConfig(max_open_conns=25, max_idle_conns=5), "postgres")
        try:
            assert engine.pool.size() == 5
            assert engine.pool._max_overflow == 20
            assert engine.pool._recycle == 300
        finally:
            engine.dispose()


class TestQueries:
    """Tests for read-only catalog queries."""

    def test_list_databases(self, pg: PostgreSQLService, conn: MagicMock, factory: MagicMock):
        conn.execute.return_value.scalars.return_value.all.return_value = ["a", "b"]

        assert pg.list_databases() == ["a", "b"]
        sql = _executed(conn)[0]
        assert "datistemplate = false" in sql
        assert "datname != 'postgres'" in sql
        assert "ORDER BY datname" in sql
        factory.assert_called_once_with(pg.config, "postgres")

    def test_admin_engine_reused(self, pg: PostgreSQLService, conn: MagicMock, factory: MagicMock):
        conn.execute.return_value.scalars.return_value.all.return_value = []
        pg.list_databases()
        pg.list_databases()
        assert factory.call_count == 1

    def test_close_disposes_engine(self, pg: PostgreSQLService, engine: MagicMock, conn: MagicMock):
        conn.execute.return_value.scalars.return_value.all.return_value = []
        with pg:
            pg.list_databases()
        engine.dispose.assert_called_once()

    def test_database_exists(self, pg: PostgreSQLService, conn: MagicMock):
        conn.execute.return_value.scalar.return_value = True

        assert pg.database_exists("mydb") is True
        call = conn.execute.call_args
        assert "pg_database WHERE datname = :name" in _sql(call)
        assert call.args[1] == {"name": "mydb"}

    def test_get_database_size(self, pg: PostgreSQLService, conn: MagicMock):
        conn.execute.return_value.scalar.return_value = 1536
        assert pg.get_database_size("mydb") == "1.50 KB"

    def test_query_failure(self, pg: PostgreSQLService, conn: MagicMock):
        conn.execute.side_effect = OperationalError("SELECT", {}, Exception("boom"))
        with pytest.raises(PostgresError) as exc:
            pg.list_databases()
        assert exc.value.exit_code == 10

    def test_connect_failure(self, pg: PostgreSQLService, engine: MagicMock):
        engine.connect.side_effect = OperationalError("connect", {}, Exception("refused"))
        with pytest.raises(PostgresConnectionError) as exc:
            pg.ping()
        assert "localhost:5432" in str(exc.value)

    def test_ping(self, pg: PostgreSQLService, conn: MagicMock):
        pg.ping()
        assert _executed(conn) == ["SELECT 1"]

    def test_is_initialized_missing_database(self, pg: PostgreSQLService, conn: MagicMock, factory: MagicMock):
        conn.execute.return_value.scalar.return_value = False
        assert pg.is_initialized("ghost") is False
        # Only the admin engine was created
        assert factory.call_count == 1

    def test_is_initialized_checks_marker_table(self, pg: PostgreSQLService, conn: MagicMock, engine: MagicMock):
        conn.execute.return_value.scalar.return_value = True

        assert pg.is_initialized("mydb") is True
        call = conn.execute.call_args
        assert "information_schema.tables" in _sql(call)
        assert call.args[1] == {"table": "ir_module_module"}
        engine.dispose.assert_called_once()

    def test_list_initialized_skips_failures(self, ctx: ExecutionContext, pg: PostgreSQLService):
        pg.list_databases = MagicMock(return_value=["good", "broken", "plain"])  # type: ignore[method-assign]

        def initialized(name: str) -> bool:
            if name == "broken":
                raise PostgresError("cannot inspect")
            return name == "good"

        pg.is_initialized = MagicMock(side_effect=initialized)  # type: ignore[method-assign]
        assert pg.list_initialized_databases() == ["good"]

    def test_get_installed_modules(self, pg: PostgreSQLService, conn: MagicMock):
        conn.execute.return_value.scalars.return_value.all.return_value = ["base", "sale"]
        assert pg.get_installed_modules("mydb") == ["base", "sale"]
        assert "ir_module_module" in _executed(conn)[0]


class TestDatabaseOperations:
    """Tests for CREATE/DROP/ALTER DATABASE."""

    def test_create_database(self, pg: PostgreSQLService, conn: MagicMock):
        pg.create_database("newdb")
        assert _executed(conn) == ['CREATE DATABASE "newdb" ENCODING \'UTF8\'']

    def test_create_invalid_name_before_connect(self, pg: PostgreSQLService, factory: MagicMock):
        with pytest.raises(ValidationError):
            pg.create_database("bad;name")
        factory.assert_not_called()

    def test_create_from_template_terminates_template_sessions(self, pg: PostgreSQLService, conn: MagicMock):
        pg.copy_database("production", "staging")

        terminate, create = conn.execute.call_args_list
        assert "pg_terminate_backend" in _sql(terminate)
        assert terminate.args[1] == {"name": "production"}
        assert _sql(create) == 'CREATE DATABASE "staging" WITH TEMPLATE "production"'

    def test_drop_database(self, pg: PostgreSQLService, conn: MagicMock):
        pg.drop_database("olddb")

        terminate, drop = conn.execute.call_args_list
        assert terminate.args[1] == {"name": "olddb"}
        assert _sql(drop) == 'DROP DATABASE IF EXISTS "olddb"'

    def test_drop_reserved_name(self, pg: PostgreSQLService, factory: MagicMock):
        with pytest.raises(ValidationError):
            pg.drop_database("template1")
        factory.assert_not_called()

    def test_drop_continues_when_terminate_fails(self, pg: PostgreSQLService, conn: MagicMock):
        def execute(statement: Any, params: Any = None) -> MagicMock:
            if "pg_terminate_backend" in str(statement):
                raise OperationalError("terminate", {}, Exception("permission denied"))
            return MagicMock()

        conn.execute.side_effect = execute
        pg.drop_database("olddb")

        assert _executed(conn)[-1] == 'DROP DATABASE IF EXISTS "olddb"'

    def test_drop_failure(self, pg: PostgreSQLService, conn: MagicMock):
        def execute(statement: Any, params: Any = None) -> MagicMock:
            if str(statement).startswith("DROP"):
                raise OperationalError("drop", {}, Exception("in use"))
            return MagicMock()

        conn.execute.side_effect = execute
        with pytest.raises(PostgresError) as exc:
            pg.drop_database("olddb")
        assert "Failed to drop database 'olddb'" in str(exc.value)

    def test_rename_database(self, pg: PostgreSQLService, conn: MagicMock):
        pg.rename_database("old", "new")

        terminate, rename = conn.execute.call_args_list
        assert terminate.args[1] == {"name": "old"}
        assert _sql(rename) == 'ALTER DATABASE "old" RENAME TO "new"'

    def test_rename_validates_new_name(self, pg: PostgreSQLService, factory: MagicMock):
        with pytest.raises(ValidationError) as exc:
            pg.rename_database("old", "new-name")
        assert "new database" in str(exc.value)
        factory.assert_not_called()

    def test_dry_run_sends_nothing(self, factory: MagicMock, conn: MagicMock):
        pg = PostgreSQLService(ExecutionContext(dry_run=True), PGConfig(), engine_factory=factory)
        pg.drop_database("olddb")
        conn.execute.assert_not_called()


class TestOdooParameters:
    """Tests for neutralization and ir_config_parameter access."""

    def test_neutralize_runs_every_statement(self, pg: PostgreSQLService, conn: MagicMock, factory: MagicMock):
        pg.neutralize("staging")

        assert _executed(conn) == list(NEUTRALIZE_STATEMENTS)
        factory.assert_called_with(pg.config, "staging")

    def test_neutralize_is_best_effort(self, pg: PostgreSQLService, conn: MagicMock):
        conn.execute.side_effect = [
            OperationalError("cron", {}, Exception("no table")),
            MagicMock(),
            MagicMock(),
            MagicMock(),
        ]
        pg.neutralize("staging")
        assert conn.execute.call_count == len(NEUTRALIZE_STATEMENTS)

    def test_get_config_parameter(self, pg: PostgreSQLService, conn: MagicMock):
        conn.execute.return_value.scalar.return_value = "http://example.com"

        assert pg.get_config_parameter("mydb", "web.base.url") == "http://example.com"
        assert conn.execute.call_args.args[1] == {"key": "web.base.url"}

    def test_set_config_parameter_upserts(self, pg: PostgreSQLService, conn: MagicMock):
        pg.set_config_parameter("mydb", "web.base.url", "http://localhost")

        call = conn.execute.call_args
        assert "ON CONFLICT (key) DO UPDATE" in _sql(call)
        assert call.args[1] == {"key": "web.base.url", "value": "http://localhost"}

    def test_set_config_parameter_dry_run(self, factory: MagicMock):
        pg = PostgreSQLService(ExecutionContext(dry_run=True), PGConfig(), engine_factory=factory)

        pg.set_config_parameter("mydb", "web.base.url", "http://localhost")

        factory.assert_not_called()
