"""Per-invocation execution context.

Commands build one ExecutionContext from their options and hand it to
the executor and services. Settings are read from ocli.yml the first
time they are needed and then stay fixed for the rest of the run, so
nothing reads configuration from module-level state.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from ocli.core.config import DEFAULT_SETTINGS_PATH, OcliConfig
from ocli.core.output import Console, Verbosity, console


@dataclass
class ExecutionContext:
    """Runtime flags and settings for one ocli command.

    Attributes:
        dry_run: Print external commands and SQL instead of running them
        verbosity: Verbosity level (see Verbosity)
        no_color: Plain output
        settings_path: ocli.yml location
    """

    dry_run: bool = False
    verbosity: int = Verbosity.NORMAL
    no_color: bool = False
    settings_path: Path = DEFAULT_SETTINGS_PATH

    _config: Optional[OcliConfig] = field(default=None, repr=False)
    _console: Console = field(default_factory=lambda: console, repr=False)

    def __post_init__(self) -> None:
        self._console.configure(
            verbosity=self.verbosity,
            dry_run=self.dry_run,
            no_color=self.no_color,
        )

    @property
    def config(self) -> OcliConfig:
        """Settings from ocli.yml, or built-in defaults when it is absent."""
        if self._config is None:
            self._config = OcliConfig.load_or_default(self.settings_path)
        return self._config

    @property
    def console(self) -> Console:
        return self._console


def create_context(
    dry_run: bool = False,
    verbose: int = 0,
    quiet: bool = False,
    no_color: bool = False,
    settings: Optional[Path] = None,
) -> ExecutionContext:
    """Build a context from the common command options.

    ``quiet`` wins over ``verbose``; each ``-v`` raises the level by one
    up to DEBUG.
    """
    verbosity = Verbosity.QUIET if quiet else min(Verbosity.NORMAL + verbose, Verbosity.DEBUG)
    return ExecutionContext(
        dry_run=dry_run,
        verbosity=verbosity,
        no_color=no_color,
        settings_path=settings or DEFAULT_SETTINGS_PATH,
    )
