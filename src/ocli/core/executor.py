"""Running external programs (odoo-bin).

Long-running verbs stream to the terminal (``capture=False``); short ones
capture combined stdout/stderr so it can be shown when they fail. With
--dry-run nothing is executed and the command line is printed instead.
"""

import os
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Union

from ocli.core.context import ExecutionContext
from ocli.core.exceptions import ExecutionError


# Argument prefixes whose values are masked when a command is displayed
SENSITIVE_PREFIXES = ("--password=",)


@dataclass
class CommandResult:
    command: list[str]
    return_code: int
    output: str

    @property
    def success(self) -> bool:
        return self.return_code == 0


def display_command(command: Sequence[str]) -> str:
    """Shell-quoted command line with secrets masked."""
    shown = []
    for arg in command:
        prefix = next((p for p in SENSITIVE_PREFIXES if arg.startswith(p)), None)
        shown.append(f"{prefix}***" if prefix else arg)
    return shlex.join(shown)


class CommandExecutor:
    """Synchronous subprocess runner bound to an execution context."""

    def __init__(self, ctx: ExecutionContext) -> None:
        self.ctx = ctx

    def run(
        self,
        command: Sequence[Union[str, Path]],
        *,
        description: Optional[str] = None,
        check: bool = True,
        capture: bool = True,
        timeout: Optional[int] = None,
        env: Optional[dict[str, str]] = None,
        cwd: Optional[Path] = None,
    ) -> CommandResult:
        """Run ``command`` and wait for it.

        ``env`` entries are added to the current environment. With
        ``check`` a non-zero exit raises ExecutionError carrying the exit
        code and any captured output.

        Raises:
            ExecutionError: Not executable, timed out, or failed with check=True
        """
        argv = [str(arg) for arg in command]
        shown = display_command(argv)

        if description:
            self.ctx.console.step(description)
        self.ctx.console.verbose(f"Executing: {shown}")

        if self.ctx.dry_run:
            self.ctx.console.dry_run_msg(f"Run: {shown}")
            return CommandResult(command=argv, return_code=0, output="")

        options: dict = {"timeout": timeout, "cwd": cwd}
        if env:
            options["env"] = {**os.environ, **env}
        if capture:
            options.update(stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)

        try:
            completed = subprocess.run(argv, **options)
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(
                f"Command timed out after {timeout}s: {description or shown}",
                command=shown,
            ) from e
        except OSError as e:
            raise ExecutionError(
                f"Cannot execute {argv[0]}: {e.strerror or e}",
                command=shown,
                hint="Check the binary path (--bin or odoo.odoo_bin in ocli.yml)",
            ) from e

        output = (completed.stdout or "") if capture else ""
        if check and completed.returncode != 0:
            raise ExecutionError(
                f"Command failed: {description or shown}",
                command=shown,
                return_code=completed.returncode,
                output=output or None,
            )

        return CommandResult(command=argv, return_code=completed.returncode, output=output)
