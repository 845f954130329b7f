"""Unit tests for settings loading and Odoo config parsing."""

from pathlib import Path

import pytest
import yaml

from ocli.core.config import (
    DEFAULT_DUMP_FORMAT,
    DEFAULT_ODOO_BIN,
    DEFAULT_ODOO_CONFIG,
    EXAMPLE_ADDONS,
    OcliConfig,
    PGSettings,
    get_example_config,
    init_config,
    load_odoo_db_params,
    read_odoo_config,
)
from ocli.core.exceptions import ConfigurationError


ODOO_CONF = """\
[options]
; comment
# another comment
admin_passwd = admin
db_host = db.internal
db_port = 5433
db_user = odoo
db_password = secret=with=equals
addons_path = /opt/odoo/addons
"""


@pytest.fixture
def odoo_conf(tmp_path: Path) -> Path:
    path = tmp_path / "odoo.conf"
    path.write_text(ODOO_CONF)
    return path


class TestOcliConfig:
    """Tests for ocli.yml loading."""

    def test_defaults(self):
        config = OcliConfig()
        assert config.odoo.config_file == DEFAULT_ODOO_CONFIG
        assert config.odoo.odoo_bin == DEFAULT_ODOO_BIN
        assert config.odoo.addons == ()
        assert config.db.dump_format == DEFAULT_DUMP_FORMAT

    def test_load_yaml(self, tmp_path: Path):
        path = tmp_path / "ocli.yml"
        path.write_text(yaml.dump({
            "odoo": {
                "config_file": "/srv/odoo.conf",
                "odoo_bin": "/srv/odoo/odoo-bin",
                "addons": ["/srv/a", "/srv/b"],
            },
            "db": {"dump_path": "/backups", "dump_format": ".dump"},
        }))

        config = OcliConfig.load(path)

        assert config.odoo.config_file == Path("/srv/odoo.conf")
        assert config.odoo.addons == ("/srv/a", "/srv/b")
        assert config.db.dump_path == Path("/backups")
        assert config.db.dump_format == "dump"

    def test_empty_addons_key(self, tmp_path: Path):
        path = tmp_path / "ocli.yml"
        path.write_text("odoo:\n  addons:\n")
        assert OcliConfig.load(path).odoo.addons == ()

    def test_frozen(self):
        config = OcliConfig()
        with pytest.raises(Exception):
            config.db = None  # type: ignore[misc]

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "ocli.yml"
        path.write_text("odoo: [unclosed\n")
        with pytest.raises(ConfigurationError) as exc:
            OcliConfig.load(path)
        assert "Invalid YAML" in str(exc.value)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "ocli.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigurationError):
            OcliConfig.load(path)

    def test_invalid_dump_format(self, tmp_path: Path):
        path = tmp_path / "ocli.yml"
        path.write_text("db:\n  dump_format: 'tar/gz'\n")
        with pytest.raises(ConfigurationError) as exc:
            OcliConfig.load(path)
        assert exc.value.exit_code == 2

    def test_load_or_default_missing_file(self, tmp_path: Path):
        assert OcliConfig.load_or_default(tmp_path / "missing.yml") == OcliConfig()


class TestInitConfig:
    """Tests for writing the default settings file."""

    def test_example_is_valid_settings(self, tmp_path: Path):
        path = tmp_path / "ocli.yml"
        init_config(path)

        config = OcliConfig.load(path)
        assert config.odoo.addons == EXAMPLE_ADDONS
        assert path.read_text().endswith("\n")

    def test_refuses_overwrite(self, tmp_path: Path):
        path = tmp_path / "ocli.yml"
        path.write_text("keep: me\n")

        with pytest.raises(ConfigurationError) as exc:
            init_config(path)

        assert "already exists" in str(exc.value)
        assert path.read_text() == "keep: me\n"

    def test_force_overwrites(self, tmp_path: Path):
        path = tmp_path / "ocli.yml"
        path.write_text("keep: me\n")
        init_config(path, force=True)
        assert path.read_text() == get_example_config() + "\n"

    def test_creates_parent_directory(self, tmp_path: Path):
        path = tmp_path / "nested" / "ocli.yml"
        init_config(path)
        assert path.exists()


class TestOdooConfig:
    """Tests for Odoo server config parsing."""

    def test_read_values(self, odoo_conf: Path):
        values = read_odoo_config(odoo_conf)
        assert values["db_host"] == "db.internal"
        assert values["db_password"] == "secret=with=equals"
        assert "[options]" not in values
        assert not any(key.startswith((";", "#")) for key in values)

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            read_odoo_config(tmp_path / "missing.conf")

    def test_db_params(self, odoo_conf: Path):
        params = load_odoo_db_params(odoo_conf)
        assert params.host == "db.internal"
        assert params.port == 5433
        assert params.user == "odoo"
        assert params.password == "secret=with=equals"

    def test_overrides_win(self, odoo_conf: Path):
        params = load_odoo_db_params(odoo_conf, {"db_host": "localhost", "db_port": None})
        assert params.host == "localhost"
        assert params.port == 5433

    def test_full_overrides_skip_file(self, tmp_path: Path):
        params = load_odoo_db_params(tmp_path / "missing.conf", {
            "db_host": "h", "db_port": "5432", "db_user": "u", "db_password": "p",
        })
        assert (params.host, params.port, params.user, params.password) == ("h", 5432, "u", "p")

    def test_missing_params(self, tmp_path: Path):
        path = tmp_path / "odoo.conf"
        path.write_text("[options]\ndb_host = localhost\n")

        with pytest.raises(ConfigurationError) as exc:
            load_odoo_db_params(path)

        assert "Missing database parameters" in str(exc.value)
        assert "Missing: db_port, db_user, db_password" in exc.value.details

    def test_non_integer_port(self, tmp_path: Path):
        path = tmp_path / "odoo.conf"
        path.write_text("db_host = h\ndb_port = five\ndb_user = u\ndb_password = p\n")
        with pytest.raises(ConfigurationError) as exc:
            load_odoo_db_params(path)
        assert "db_port" in str(exc.value)


class TestPGSettings:
    """Tests for OCLI_PG_* environment overrides."""

    def test_defaults(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.chdir(tmp_path)
        settings = PGSettings()
        assert settings.sslmode == "disable"
        assert settings.max_open_conns == 25
        assert settings.max_idle_conns == 5

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("OCLI_PG_SSLMODE", "require")
        monkeypatch.setenv("OCLI_PG_MAX_OPEN_CONNS", "50")
        settings = PGSettings()
        assert settings.sslmode == "require"
        assert settings.max_open_conns == 50
