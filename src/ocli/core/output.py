"""Operator-facing output.

Every message goes through one Console instance so verbosity, dry-run
markers and --no-color are applied in a single place. Warnings, errors
and hints are written to stderr so that stdout stays usable in pipes
(``ocli listdb -q``).
"""

from enum import IntEnum
from typing import Any

from rich import box
from rich.console import Console as RichConsole
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme


class Verbosity(IntEnum):
    """Output verbosity levels."""
    QUIET = 0    # Errors only
    NORMAL = 1   # Standard output
    VERBOSE = 2  # -v
    DEBUG = 3    # -vv


OCLI_THEME = Theme({
    "ocli.info": "green",
    "ocli.ok": "bold green",
    "ocli.warn": "yellow",
    "ocli.error": "bold red",
    "ocli.debug": "cyan",
    "ocli.step": "blue",
    "ocli.dry": "magenta",
    "ocli.hint": "cyan",
})


def _rich_console(stderr: bool, no_color: bool) -> RichConsole:
    return RichConsole(stderr=stderr, highlight=False, no_color=no_color, theme=OCLI_THEME)


class Console:
    """Leveled console output backed by Rich."""

    def __init__(self) -> None:
        self.verbosity = Verbosity.NORMAL
        self.dry_run = False
        self.no_color = False
        self._out = _rich_console(stderr=False, no_color=False)
        self._err = _rich_console(stderr=True, no_color=False)

    def configure(
        self,
        verbosity: int = Verbosity.NORMAL,
        dry_run: bool = False,
        no_color: bool = False,
    ) -> None:
        """Apply the run's output flags."""
        self.verbosity = Verbosity(min(max(verbosity, Verbosity.QUIET), Verbosity.DEBUG))
        self.dry_run = dry_run
        if no_color != self.no_color:
            self._out = _rich_console(stderr=False, no_color=no_color)
            self._err = _rich_console(stderr=True, no_color=no_color)
        self.no_color = no_color

    def _emit(self, level: Verbosity, tag: str, style: str, message: str) -> None:
        if self.verbosity >= level:
            self._out.print(f"[{style}]{tag}[/{style}] {message}")

    def info(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, "[INFO]", "ocli.info", message)

    def success(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, "[OK]", "ocli.ok", message)

    def step(self, message: str) -> None:
        self._emit(Verbosity.NORMAL, "->", "ocli.step", message)

    def debug(self, message: str) -> None:
        self._emit(Verbosity.DEBUG, "[DEBUG]", "ocli.debug", message)

    def verbose(self, message: str) -> None:
        """Dim detail line shown with -v."""
        if self.verbosity >= Verbosity.VERBOSE:
            self._out.print(message, style="dim")

    def warn(self, message: str) -> None:
        """Warnings are shown even with --quiet."""
        self._err.print(f"[ocli.warn][WARN][/ocli.warn] {message}")

    def error(self, message: str) -> None:
        self._err.print(f"[ocli.error][ERROR][/ocli.error] {message}")

    def hint(self, message: str) -> None:
        self._err.print(f"[ocli.hint]Hint:[/ocli.hint] {message}")

    def dry_run_msg(self, message: str) -> None:
        """Describe an action that --dry-run skipped."""
        if self.dry_run:
            self._out.print(f"[ocli.dry][DRY-RUN][/ocli.dry] Would: {message}")

    def print(self, message: Any = "", **kwargs: Any) -> None:
        """Print markup or a Rich renderable as is."""
        self._out.print(message, **kwargs)

    def table(
        self,
        title: str,
        columns: list[str],
        rows: list[list[str]],
        box_style: box.Box = box.ROUNDED,
    ) -> None:
        table = Table(*columns, title=title, box=box_style)
        for row in rows:
            table.add_row(*(str(cell) for cell in row))
        self._out.print(table)

    def summary(self, title: str, items: dict[str, Any]) -> None:
        """Key/value panel, skipped with --quiet."""
        if self.verbosity < Verbosity.NORMAL:
            return

        def render(value: Any) -> str:
            if isinstance(value, bool):
                return "[green]Yes[/green]" if value else "[red]No[/red]"
            return str(value)

        body = "\n".join(f"[bold]{key}:[/bold] {render(value)}" for key, value in items.items())
        self._out.print(Panel(body, title=title, border_style="blue"))


# Shared console instance
console = Console()
