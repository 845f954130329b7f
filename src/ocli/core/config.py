"""Configuration management using Pydantic.

Provides:
- Typed, immutable settings loaded from ocli.yml (or built-in defaults)
- Environment variable overrides for PostgreSQL tuning
- Database parameter extraction from the Odoo server config
- Settings file initialization from a template
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml
from jinja2 import Environment, PackageLoader, select_autoescape
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ocli.core.exceptions import ConfigurationError


# Default paths
DEFAULT_SETTINGS_PATH = Path("ocli.yml")
DEFAULT_ODOO_CONFIG = Path("/workspace/odoo.conf")
DEFAULT_ODOO_BIN = Path("/workspace/odoo/odoo-bin")
DEFAULT_DUMP_PATH = Path("/workspace/dbs")
DEFAULT_DUMP_FORMAT = "zip"

# Addons written into a freshly initialized ocli.yml
EXAMPLE_ADDONS = (
    "/workspace/odoo/addons",
    "/workspace/enterprise",
    "/workspace/custom-addons",
)


class OdooSection(BaseModel):
    """Odoo server locations and addon search paths."""

    model_config = ConfigDict(frozen=True)

    config_file: Path = DEFAULT_ODOO_CONFIG
    odoo_bin: Path = DEFAULT_ODOO_BIN
    addons: tuple[str, ...] = ()

    @field_validator("addons", mode="before")
    @classmethod
    def validate_addons(cls, v: object) -> object:
        # An empty "addons:" key is loaded as None
        return () if v is None else v


class DBSection(BaseModel):
    """Backup location and format."""

    model_config = ConfigDict(frozen=True)

    dump_path: Path = DEFAULT_DUMP_PATH
    dump_format: str = DEFAULT_DUMP_FORMAT

    @field_validator("dump_format")
    @classmethod
    def validate_dump_format(cls, v: str) -> str:
        v = v.strip().lstrip(".")
        if not v or not v.isalnum():
            raise ValueError("dump_format must be a plain file extension (e.g. zip, dump)")
        return v


class OcliConfig(BaseModel):
    """Root settings model loaded from ocli.yml.

    Loaded once at startup and passed explicitly to every command
    through the execution context.
    """

    model_config = ConfigDict(frozen=True)

    odoo: OdooSection = Field(default_factory=OdooSection)
    db: DBSection = Field(default_factory=DBSection)

    @classmethod
    def load(cls, path: Path) -> "OcliConfig":
        """Load settings from a YAML file.

        Raises:
            ConfigurationError: If the file is unreadable or invalid
        """
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in settings file: {path}",
                details=[str(e)],
            ) from e
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read settings file: {path}",
                details=[str(e)],
            ) from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Settings file must contain a mapping: {path}",
                hint="See 'ocli init' for the expected layout",
            )

        try:
            return cls(**data)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid settings in {path}",
                details=[err["msg"] + " at " + ".".join(str(p) for p in err["loc"]) for err in e.errors()],
            ) from e

    @classmethod
    def load_or_default(cls, path: Optional[Path] = None) -> "OcliConfig":
        """Load settings, falling back to built-in defaults if the file is absent."""
        if path is None:
            path = DEFAULT_SETTINGS_PATH

        if path.exists():
            return cls.load(path)
        return cls()

    def to_yaml(self) -> str:
        """Convert settings to YAML string."""
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False)


class PGSettings(BaseSettings):
    """PostgreSQL connection tuning read from OCLI_PG_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OCLI_PG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sslmode: str = "disable"
    max_open_conns: int = 25
    max_idle_conns: int = 5
    conn_max_lifetime: float = 300.0  # seconds
    conn_max_idle_time: float = 60.0  # seconds
    connect_timeout: int = 10  # seconds


@dataclass(frozen=True)
class OdooDBParams:
    """Database connection parameters found in an Odoo server config."""
    host: str
    port: int
    user: str
    password: str


DB_PARAM_KEYS = ("db_host", "db_port", "db_user", "db_password")


def read_odoo_config(config_path: Path) -> dict[str, str]:
    """Read ``key = value`` pairs from an Odoo server config.

    Blank lines, ``;``/``#`` comments and ``[section]`` headers are skipped.

    Raises:
        ConfigurationError: If the file cannot be read
    """
    try:
        lines = config_path.read_text().splitlines()
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read Odoo config: {config_path}",
            details=[str(e)],
        ) from e

    values: dict[str, str] = {}
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith((";", "#")):
            continue
        if line.startswith("[") and line.endswith("]"):
            continue
        key, sep, value = line.partition("=")
        if sep:
            values[key.strip()] = value.strip()
    return values


def load_odoo_db_params(
    config_path: Path,
    overrides: Optional[dict[str, Optional[str]]] = None,
) -> OdooDBParams:
    """Extract db_host/db_port/db_user/db_password from an Odoo config file.

    Args:
        config_path: Odoo server config
        overrides: Values (keyed like the config) that take precedence;
            when all four are given the file is not read

    Raises:
        ConfigurationError: If the file cannot be read, the port is not an
            integer, or any of the four parameters is missing
    """
    given = {k: str(v) for k, v in (overrides or {}).items() if v not in (None, "")}
    if all(key in given for key in DB_PARAM_KEYS):
        values = given
    else:
        values = {**read_odoo_config(config_path), **given}

    port = 0
    if values.get("db_port"):
        try:
            port = int(values["db_port"])
        except ValueError as e:
            raise ConfigurationError(
                f"db_port is not an integer in {config_path}: {values['db_port']!r}",
            ) from e

    missing = [
        key for key in DB_PARAM_KEYS
        if not values.get(key) or (key == "db_port" and port == 0)
    ]
    if missing:
        raise ConfigurationError(
            f"Missing database parameters in {config_path}",
            details=[f"Missing: {', '.join(missing)}"],
            hint="Set db_host, db_port, db_user and db_password in the Odoo config",
        )

    return OdooDBParams(
        host=values["db_host"],
        port=port,
        user=values["db_user"],
        password=values["db_password"],
    )


def _jinja_env() -> Environment:
    return Environment(
        loader=PackageLoader("ocli", "templates"),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
    )


def get_example_config() -> str:
    """Render the default ocli.yml content."""
    return _jinja_env().get_template("ocli.yml.j2").render(
        config_file=DEFAULT_ODOO_CONFIG,
        odoo_bin=DEFAULT_ODOO_BIN,
        addons=EXAMPLE_ADDONS,
        dump_path=DEFAULT_DUMP_PATH,
        dump_format=DEFAULT_DUMP_FORMAT,
    )


def init_config(path: Path, force: bool = False) -> None:
    """Write a default settings file.

    Raises:
        ConfigurationError: If the file exists and force is False
    """
    if path.exists() and not force:
        raise ConfigurationError(
            f"Settings file already exists: {path}",
            hint="Use --force to overwrite",
        )

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(get_example_config() + "\n")
